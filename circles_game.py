"""Session facade: the operations a front end calls to play and solve the puzzle."""

from __future__ import annotations

from typing import List, Optional, Sequence, Union
import random

import circles_engine as engine
from circles_engine import SHUFFLE_STEPS, GameState, Move, MoveLike, PuzzleState, format_moves
from circles_genetic import (
    GeneticConfig,
    GeneticRunner,
    GeneticSession,
    GeneticStatus,
    ManualScheduler,
    Scheduler,
    init_session,
)
from circles_scoring import evaluate_hypothetical, is_solved, score_state
from circles_solver import HINT_DEPTH, HintResult, request_hint
from circles_telemetry import ShuffleEvent, TelemetrySink, emit_dataclass_event


class PuzzleBusyError(RuntimeError):
    """Raised when the puzzle is being searched or solved."""


def _as_move(move: Union[Move, str]) -> Move:
    return move if isinstance(move, Move) else Move.parse(move)


def _as_moves(moves: Union[str, Sequence[Union[Move, str]]]) -> List[Move]:
    if isinstance(moves, str):
        return engine.parse_moves(moves)
    return [_as_move(move) for move in moves]


class CirclesGame:
    def __init__(
        self,
        config: Optional[GeneticConfig] = None,
        scheduler: Optional[Scheduler] = None,
        rng: Optional[random.Random] = None,
        telemetry_sink: Optional[TelemetrySink] = None,
    ) -> None:
        self.state = PuzzleState()
        self.config = config or GeneticConfig()
        self.scheduler: Scheduler = scheduler if scheduler is not None else ManualScheduler()
        self.rng = rng or random.Random()
        self.telemetry_sink = telemetry_sink
        self.last_solution: Optional[List[Move]] = None
        self._runner: Optional[GeneticRunner] = None
        self._state_before_solve = GameState.UNINITIALIZED

    @property
    def game_state(self) -> GameState:
        return self.state.game_state

    def _ensure_idle(self) -> None:
        if self.state.game_state == GameState.SOLVING:
            raise PuzzleBusyError("puzzle is busy solving")

    def _ensure_ready(self) -> None:
        self._ensure_idle()
        if self.state.game_state == GameState.UNINITIALIZED:
            self.state.initialize()

    def initialize(self) -> None:
        self.cancel_solve()
        self.state.initialize()
        self.last_solution = None

    def shuffle(self, step_count: int = SHUFFLE_STEPS) -> List[Move]:
        self.cancel_solve()
        if self.state.game_state == GameState.UNINITIALIZED:
            self.state.initialize()
        applied = self.state.shuffle(step_count, self.rng)
        emit_dataclass_event(
            self.telemetry_sink,
            "shuffle",
            ShuffleEvent(requested=step_count, applied=format_moves(applied)),
        )
        return applied

    def save_snapshot(self) -> None:
        self.state.save_snapshot()

    def restore_snapshot(self) -> None:
        self._ensure_idle()
        self.state.restore_snapshot()

    def apply_move(self, move: Union[Move, str]) -> None:
        self._ensure_ready()
        self.state.apply_move(_as_move(move))
        if self.state.game_state in (GameState.SHUFFLED, GameState.PARTIALLY_SOLVED) and is_solved(self.state):
            self.state.game_state = GameState.SOLVED

    def apply_moves(self, moves: Union[str, Sequence[Union[Move, str]]]) -> None:
        for move in _as_moves(moves):
            self.apply_move(move)

    @staticmethod
    def reverse(moves: MoveLike) -> MoveLike:
        return engine.reverse(moves)

    @staticmethod
    def is_redundant(candidate: Move, prior: Sequence[Move]) -> bool:
        return engine.is_redundant(candidate, prior)

    @staticmethod
    def simplify(moves: Sequence[Move]) -> List[Move]:
        return engine.simplify(moves)

    def score(self, moves: Optional[Union[str, Sequence[Union[Move, str]]]] = None) -> int:
        """Direct score of the live puzzle, or of the snapshot after ``moves``.

        The hypothetical form needs a saved snapshot and raises
        ``NoSnapshotError`` otherwise. It never changes the live puzzle.
        """
        if moves is None:
            if self.state.game_state == GameState.UNINITIALIZED:
                self.state.initialize()
            return score_state(self.state)
        return evaluate_hypothetical(self.state.snapshot_colors(), _as_moves(moves))

    def is_solved(self) -> bool:
        return is_solved(self.state)

    def request_hint(self, previous_hint: Optional[HintResult] = None) -> Optional[HintResult]:
        self._ensure_ready()
        return request_hint(
            self.state,
            previous_hint=previous_hint,
            max_level=HINT_DEPTH,
            telemetry_sink=self.telemetry_sink,
        )

    def request_solve(
        self, population: Optional[Sequence[Sequence[Move]]] = None
    ) -> Optional[GeneticStatus]:
        """Snapshot the current puzzle and start the genetic solver on it.

        Returns None when the puzzle is already solved. The solve advances
        only as the scheduler runs its steps; poll ``solve_status()``.
        """
        self._ensure_ready()
        if self.is_solved():
            return None
        self.state.save_snapshot()
        session = init_session(self.state.snapshot_colors(), self.config, self.rng, population)
        self._state_before_solve = self.state.game_state
        self.state.game_state = GameState.SOLVING
        self.last_solution = None
        self._runner = GeneticRunner(
            session,
            self.scheduler,
            on_done=self._finish_solve,
            on_error=self._abort_solve,
            telemetry_sink=self.telemetry_sink,
        )
        self._runner.start()
        return self._runner.status()

    def cancel_solve(self) -> None:
        runner = self._runner
        if runner is None:
            return
        self._runner = None
        if runner.done or runner.cancelled:
            return
        runner.cancel()
        self.state.game_state = self._state_before_solve

    def solve_status(self) -> Optional[GeneticStatus]:
        if self._runner is None:
            return None
        return self._runner.status()

    def _abort_solve(self, _exc: Exception) -> None:
        # The live puzzle is untouched while solving; only the lock is released.
        self.state.game_state = self._state_before_solve

    def _finish_solve(self, session: GeneticSession) -> None:
        self.state.restore_snapshot()
        solution = engine.simplify(session.best)
        self.state.apply_moves(solution)
        self.last_solution = solution
        if is_solved(self.state):
            self.state.game_state = GameState.SOLVED
        else:
            self.state.game_state = GameState.PARTIALLY_SOLVED
