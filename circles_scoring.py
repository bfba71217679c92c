"""Fitness heuristic shared by the hint search and the genetic solver."""

from __future__ import annotations

from typing import Sequence, Tuple

from circles_engine import LEFT, RIGHT, TOKEN_COUNT, TOP, Move, PuzzleState, permute_all

MAX_SCORE = TOKEN_COUNT * 2

# Six recognized solved colorings, one character per slot.
SOLUTION_TEMPLATES: Tuple[str, ...] = (
    "1111111111111111112222222222233333333",
    "1111111111111111113333333322222222222",
    "2222222211111112223333333311111111111",
    "3333322211111113332222222211111111111",
    "3333311111112223331111111111122222222",
    "2222211111112222221111111111133333333",
)

# (table, first, last) of each ring's exclusive run, inclusive bounds.
ADJACENCY_SEGMENTS: Tuple[Tuple[Tuple[int, ...], int, int], ...] = (
    (TOP, 0, 17),
    (LEFT, 3, 13),
    (RIGHT, 9, 16),
)


def color_string(colors: Sequence[int]) -> str:
    return "".join(str(c) for c in colors)


def template_score(colors: Sequence[int]) -> int:
    text = color_string(colors)
    best = 0
    for template in SOLUTION_TEMPLATES:
        matches = sum(1 for a, b in zip(text, template) if a == b)
        if matches > best:
            best = matches
    return best


def adjacency_score(colors: Sequence[int], ring: Sequence[int], start: int, end: int) -> int:
    score = 1
    for i in range(start + 1, end + 1):
        if colors[ring[i]] == colors[ring[i - 1]]:
            score += 1
    return score


def score_colors(colors: Sequence[int]) -> int:
    matched = template_score(colors)
    if matched == TOKEN_COUNT:
        return MAX_SCORE
    return matched + sum(adjacency_score(colors, ring, start, end) for ring, start, end in ADJACENCY_SEGMENTS)


def score_state(state: PuzzleState) -> int:
    return score_colors(state.colors())


def evaluate_hypothetical(baseline: Sequence[int], moves: Sequence[Move]) -> int:
    """Score ``baseline`` after ``moves`` without touching any live state."""
    return score_colors(permute_all(baseline, moves))


def colors_solved(colors: Sequence[int]) -> bool:
    return color_string(colors) in SOLUTION_TEMPLATES


def is_solved(state: PuzzleState) -> bool:
    return colors_solved(state.colors())
