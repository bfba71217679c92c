"""Depth-bounded lookahead search that suggests the next move (a hint)."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional, Tuple
import time

from circles_engine import MOVES, GameState, Move, PuzzleState, format_moves, is_redundant
from circles_scoring import is_solved, score_state
from circles_telemetry import (
    HintEndEvent,
    HintStartEvent,
    HintUpdateEvent,
    TelemetrySink,
    emit_dataclass_event,
)

HINT_DEPTH = 2


@dataclass
class BestHint:
    """Mutable best-so-far holder threaded through the recursion."""

    score: int
    move: Optional[Move] = None
    path: Tuple[Move, ...] = ()


@dataclass(frozen=True)
class HintResult:
    move: Move
    score: int
    path: Tuple[Move, ...] = field(default=())


@dataclass
class _HintContext:
    state: PuzzleState
    max_level: int
    forbidden: Optional[Move]
    best: BestHint
    telemetry_sink: Optional[TelemetrySink] = None
    nodes: int = 0


def _search(context: _HintContext, level: int, moves: List[Move]) -> None:
    state = context.state
    for move in MOVES:
        if level == 0 and move == context.forbidden:
            continue
        if is_redundant(move, moves):
            continue
        state.apply_move(move)
        moves.append(move)
        context.nodes += 1
        score = score_state(state)
        if score > context.best.score:
            context.best.score = score
            context.best.move = moves[0]
            context.best.path = tuple(moves)
            emit_dataclass_event(
                context.telemetry_sink,
                "hint_update",
                HintUpdateEvent(path=format_moves(moves), score=score),
            )
        if level < context.max_level:
            _search(context, level + 1, moves)
        moves.pop()
        state.apply_move(move.inverse)


def lookahead(
    state: PuzzleState,
    level: int,
    moves: List[Move],
    max_level: int,
    forbidden: Optional[Move],
    best: BestHint,
    telemetry_sink: Optional[TelemetrySink] = None,
) -> int:
    """Explore every non-redundant line up to ``max_level`` and record the best.

    ``best`` is only overwritten on a strict improvement, so the first line
    reaching a score wins ties. ``state`` is back to where it started when
    this returns. Returns the number of positions scored.
    """
    context = _HintContext(
        state=state,
        max_level=max_level,
        forbidden=forbidden,
        best=best,
        telemetry_sink=telemetry_sink,
    )
    if level == 0:
        state.game_state = GameState.SOLVING
    _search(context, level, moves)
    if level == 0:
        state.game_state = GameState.PARTIALLY_SOLVED
    return context.nodes


def request_hint(
    state: PuzzleState,
    previous_hint: Optional[HintResult] = None,
    max_level: int = HINT_DEPTH,
    telemetry_sink: Optional[TelemetrySink] = None,
) -> Optional[HintResult]:
    """Return the best next move, or None when no explored line beats the current score."""
    if is_solved(state):
        return None

    start = time.perf_counter()
    start_score = score_state(state)
    # Don't immediately undo the hint that was just taken.
    forbidden = previous_hint.move.inverse if previous_hint is not None else None
    emit_dataclass_event(
        telemetry_sink,
        "hint_start",
        HintStartEvent(
            start_score=start_score,
            max_level=max_level,
            forbidden=None if forbidden is None else forbidden.value,
        ),
    )

    best = BestHint(score=start_score)
    nodes = lookahead(state, 0, [], max_level, forbidden, best, telemetry_sink=telemetry_sink)

    result: Optional[HintResult] = None
    if best.move is not None and best.score > start_score:
        result = HintResult(move=best.move, score=best.score, path=best.path)
    emit_dataclass_event(
        telemetry_sink,
        "hint_end",
        HintEndEvent(
            move=None if result is None else result.move.value,
            score=best.score,
            improved=result is not None,
            nodes=nodes,
            elapsed_ms=int((time.perf_counter() - start) * 1000),
        ),
    )
    return result
