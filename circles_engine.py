"""Core state and move engine for the three-ring Circles puzzle."""

from __future__ import annotations

import enum
import random
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Sequence, Tuple, Union

TOKEN_COUNT = 37
RING_SIZE = 18
NOTCH = 3
SHUFFLE_STEPS = 50

TOP: Tuple[int, ...] = tuple(range(0, 18))
LEFT: Tuple[int, ...] = (5, 7, 6) + tuple(range(18, 29)) + (9, 11, 10, 8)
RIGHT: Tuple[int, ...] = (14, 13, 11, 8, 10, 9, 26, 28, 27) + tuple(range(29, 37)) + (12,)


class NoSnapshotError(RuntimeError):
    """Raised when an operation needs a saved snapshot and none exists."""


class GameState(enum.Enum):
    UNINITIALIZED = 0
    INITIALIZED = 1
    SHUFFLED = 2
    SOLVING = 4
    PARTIALLY_SOLVED = 8
    SOLVED = 16


class Ring(enum.Enum):
    TOP = "top"
    LEFT = "left"
    RIGHT = "right"


class Direction(enum.IntEnum):
    CW = 1
    CCW = -1


RING_TABLES: Dict[Ring, Tuple[int, ...]] = {
    Ring.TOP: TOP,
    Ring.LEFT: LEFT,
    Ring.RIGHT: RIGHT,
}


class Move(enum.Enum):
    """One notch of one ring. Uppercase is clockwise."""

    TOP_CW = "T"
    TOP_CCW = "t"
    LEFT_CW = "L"
    LEFT_CCW = "l"
    RIGHT_CW = "R"
    RIGHT_CCW = "r"

    @classmethod
    def parse(cls, raw: str) -> "Move":
        try:
            return cls(raw)
        except ValueError:
            raise ValueError(f"unknown move {raw!r}; expected one of TtLlRr") from None

    @property
    def ring(self) -> Ring:
        return MOVE_TABLE[self][0]

    @property
    def direction(self) -> Direction:
        return MOVE_TABLE[self][1]

    @property
    def inverse(self) -> "Move":
        return INVERSE_MOVES[self]

    def __str__(self) -> str:
        return self.value


MOVES: Tuple[Move, ...] = tuple(Move)

MOVE_TABLE: Dict[Move, Tuple[Ring, Direction]] = {
    Move.TOP_CW: (Ring.TOP, Direction.CW),
    Move.TOP_CCW: (Ring.TOP, Direction.CCW),
    Move.LEFT_CW: (Ring.LEFT, Direction.CW),
    Move.LEFT_CCW: (Ring.LEFT, Direction.CCW),
    Move.RIGHT_CW: (Ring.RIGHT, Direction.CW),
    Move.RIGHT_CCW: (Ring.RIGHT, Direction.CCW),
}

INVERSE_MOVES: Dict[Move, Move] = {
    move: next(
        other
        for other, (ring, direction) in MOVE_TABLE.items()
        if ring == move_ring and direction == -move_direction
    )
    for move, (move_ring, move_direction) in MOVE_TABLE.items()
}


def _ring_permutation(ring: Sequence[int], direction: Direction) -> Tuple[int, ...]:
    # perm[slot] is the slot whose token lands in `slot` after the move.
    perm = list(range(TOKEN_COUNT))
    size = len(ring)
    shift = NOTCH * int(direction)
    for i, slot in enumerate(ring):
        perm[slot] = ring[(i + shift) % size]
    return tuple(perm)


MOVE_PERMUTATIONS: Dict[Move, Tuple[int, ...]] = {
    move: _ring_permutation(RING_TABLES[ring], direction)
    for move, (ring, direction) in MOVE_TABLE.items()
}


@dataclass(frozen=True)
class Token:
    color: int
    id: int


def initial_color(slot: int) -> int:
    if slot < 18:
        return 1
    if slot < 29:
        return 2
    return 3


def permute(items: Sequence, move: Move) -> list:
    perm = MOVE_PERMUTATIONS[move]
    return [items[src] for src in perm]


def permute_all(items: Sequence, moves: Iterable[Move]) -> list:
    current = list(items)
    for move in moves:
        current = permute(current, move)
    return current


def parse_moves(text: str) -> List[Move]:
    return [Move.parse(ch) for ch in text if not ch.isspace()]


def format_moves(moves: Iterable[Move]) -> str:
    return "".join(move.value for move in moves)


MoveLike = Union[Move, Sequence[Move]]


def reverse(moves: MoveLike) -> MoveLike:
    """Invert each move in place; the order of a sequence is kept as-is.

    A full undo of a sequence also needs ``reversed(...)`` on the result.
    """
    if isinstance(moves, Move):
        return moves.inverse
    return [move.inverse for move in moves]


def is_redundant(candidate: Move, prior: Sequence[Move]) -> bool:
    if prior and prior[-1] == candidate.inverse:
        return True
    if len(prior) >= 3 and prior[-1] == candidate and prior[-2] == candidate and prior[-3] == candidate:
        return True
    return False


def simplify(moves: Sequence[Move]) -> List[Move]:
    result = list(moves)
    i = 1
    while i < len(result):
        if result[i - 1] == result[i].inverse:
            del result[i - 1 : i + 1]
            i = max(1, i - 1)
        else:
            i += 1
    return result


def random_moves(count: int, rng: Optional[random.Random] = None) -> List[Move]:
    if count < 0:
        raise ValueError("move count must be non-negative")
    rng = rng or random.Random()
    return [rng.choice(MOVES) for _ in range(count)]


class PuzzleState:
    """The master token array, the ring tables and the single snapshot."""

    def __init__(self) -> None:
        self.tokens: List[Token] = []
        self.rings: Dict[Ring, Tuple[int, ...]] = {}
        self.game_state = GameState.UNINITIALIZED
        self._snapshot: Optional[List[Token]] = None

    def initialize(self) -> None:
        self.tokens = [Token(initial_color(slot), slot) for slot in range(TOKEN_COUNT)]
        self.rings = dict(RING_TABLES)
        self._snapshot = None
        self.game_state = GameState.INITIALIZED

    def colors(self) -> Tuple[int, ...]:
        return tuple(token.color for token in self.tokens)

    def ring_colors(self, ring: Ring) -> Tuple[int, ...]:
        return tuple(self.tokens[slot].color for slot in self.rings[ring])

    @property
    def has_snapshot(self) -> bool:
        return self._snapshot is not None

    def save_snapshot(self) -> None:
        self._snapshot = list(self.tokens)

    def restore_snapshot(self) -> None:
        if self._snapshot is not None:
            self.tokens = list(self._snapshot)

    def snapshot_colors(self) -> Tuple[int, ...]:
        if self._snapshot is None:
            raise NoSnapshotError("no snapshot saved; call save_snapshot() first")
        return tuple(token.color for token in self._snapshot)

    def apply_move(self, move: Move) -> None:
        self.tokens = permute(self.tokens, move)

    def apply_moves(self, moves: Iterable[Move]) -> None:
        for move in moves:
            self.apply_move(move)

    def shuffle(self, steps: int = SHUFFLE_STEPS, rng: Optional[random.Random] = None) -> List[Move]:
        sequence = simplify(random_moves(steps, rng))
        self.apply_moves(sequence)
        self.game_state = GameState.SHUFFLED
        return sequence

    def copy(self) -> "PuzzleState":
        clone = PuzzleState()
        clone.tokens = list(self.tokens)
        clone.rings = dict(self.rings)
        clone.game_state = self.game_state
        clone._snapshot = None if self._snapshot is None else list(self._snapshot)
        return clone


def new_puzzle() -> PuzzleState:
    state = PuzzleState()
    state.initialize()
    return state


def pretty_print(state: PuzzleState) -> str:
    """
    Text readout of the three rings.

    Each ring is listed in table order. Slots shared with another ring are
    wrapped in brackets so the coupling is visible.
    """
    counts: Dict[int, int] = {}
    for table in state.rings.values():
        for slot in table:
            counts[slot] = counts.get(slot, 0) + 1

    def cell(slot: int) -> str:
        color = str(state.tokens[slot].color)
        return f"[{color}]" if counts[slot] > 1 else f" {color} "

    lines = [f"State: {state.game_state.name}"]
    for ring in Ring:
        table = state.rings.get(ring, ())
        lines.append(f"{ring.name:<5} " + "".join(cell(slot) for slot in table))
    lines.append("Colors: " + "".join(str(c) for c in state.colors()))
    return "\n".join(lines)
