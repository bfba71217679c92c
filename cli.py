"""CLI for the three-ring Circles puzzle and its solvers."""

from __future__ import annotations

import argparse
import random
from typing import List, Optional

from circles_engine import SHUFFLE_STEPS, GameState, Move, NoSnapshotError, format_moves, parse_moves, pretty_print
from circles_game import CirclesGame, PuzzleBusyError
from circles_genetic import (
    CROSSOVER_RATE,
    GENERATIONS,
    MUTATION_RATE,
    POPULATION,
    TOURNAMENT_SIZE,
    GeneticConfig,
    GeneticConfigError,
    GeneticStatus,
    ManualScheduler,
)
from circles_scoring import MAX_SCORE
from circles_solver import HintResult
from circles_telemetry import JsonlStreamSink, TelemetrySink, ThreadedTCPSink, parse_host_port, sink_from_env

PROGRESS_FRAMES = "|/-\\"


def print_help() -> None:
    print("Moves: T/t = top ring cw/ccw, L/l = left ring, R/r = right ring (several at once: 'TlR').")
    print("Commands: s=shuffle, h=hint, a=apply last hint, g=genetic solve, u=undo,")
    print("          save, restore, reset, ?=help, q=quit.")


def read_command(prompt: str) -> str:
    try:
        return input(prompt).strip()
    except EOFError:
        print()
        return "q"


class Spinner:
    def __init__(self) -> None:
        self._idx = 0

    def next(self) -> str:
        frame = PROGRESS_FRAMES[self._idx]
        self._idx = (self._idx + 1) % len(PROGRESS_FRAMES)
        return frame


def report_solve(game: CirclesGame, status: Optional[GeneticStatus]) -> None:
    if status is None:
        return
    solution = game.last_solution or []
    label = "Solved" if game.is_solved() else "Partially solved"
    print(f"{label}: {status.best_score}/{MAX_SCORE} after {status.generation} generations.")
    if solution:
        print(f"Solution ({len(solution)}): {format_moves(solution)}")


def run_solve(game: CirclesGame, use_qt: bool) -> None:
    spinner = Spinner()

    def _progress(status: GeneticStatus) -> None:
        print(
            f"\r{spinner.next()} Solving... generation {status.generation} "
            f"score: {status.best_score}/{MAX_SCORE}",
            end="",
            flush=True,
        )

    if game.request_solve() is None:
        print("Already solved.")
        return

    scheduler = game.scheduler
    if use_qt or not isinstance(scheduler, ManualScheduler):
        from circles_qt import run_solve_blocking

        status = run_solve_blocking(game, on_status=_progress)
    else:
        try:
            while scheduler.run_once():
                current = game.solve_status()
                if current is not None and not current.done:
                    _progress(current)
        except KeyboardInterrupt:
            game.cancel_solve()
            print("\nSolve cancelled.")
            return
        status = game.solve_status()
    print()
    report_solve(game, status)


def build_telemetry(args: argparse.Namespace) -> Optional[TelemetrySink]:
    if args.telemetry_file:
        return JsonlStreamSink(open(args.telemetry_file, "a", encoding="utf-8"), close_stream=True)
    if args.telemetry:
        endpoint = parse_host_port(args.telemetry)
        if endpoint is not None:
            return ThreadedTCPSink(*endpoint)
    return sink_from_env()


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Three-ring Circles puzzle with hint and genetic solvers")
    parser.add_argument(
        "--shuffle-steps",
        type=int,
        default=SHUFFLE_STEPS,
        help=f"random moves per shuffle before simplification (default: {SHUFFLE_STEPS})",
    )
    parser.add_argument("--population", type=int, default=POPULATION, help=f"genetic population (default: {POPULATION})")
    parser.add_argument(
        "--generations", type=int, default=GENERATIONS, help=f"genetic generation budget (default: {GENERATIONS})"
    )
    parser.add_argument("--crossover-rate", type=float, default=CROSSOVER_RATE)
    parser.add_argument("--mutation-rate", type=float, default=MUTATION_RATE)
    parser.add_argument("--tournament-size", type=int, default=TOURNAMENT_SIZE)
    parser.add_argument("--seed", type=int, default=None, help="random seed for shuffles and solver")
    parser.add_argument("--qt", action="store_true", help="run solves in a Qt event loop")
    parser.add_argument("--telemetry", default="", help="stream telemetry as JSONL to HOST:PORT")
    parser.add_argument("--telemetry-file", default="", help="append telemetry as JSONL to a file")
    args = parser.parse_args(argv)

    if args.shuffle_steps < 0:
        print("--shuffle-steps must be non-negative")
        return 2

    config = GeneticConfig(
        population=args.population,
        generations=args.generations,
        crossover_rate=args.crossover_rate,
        mutation_rate=args.mutation_rate,
        tournament_size=args.tournament_size,
        chromosome_length=max(3, args.shuffle_steps),
    )
    try:
        config.validate()
    except GeneticConfigError as exc:
        print(f"Invalid solver settings: {exc}")
        return 2

    if args.qt:
        from circles_qt import QtIdleScheduler, ensure_app

        ensure_app()
        scheduler = QtIdleScheduler()
    else:
        scheduler = ManualScheduler()

    telemetry = build_telemetry(args)
    game = CirclesGame(config=config, scheduler=scheduler, rng=random.Random(args.seed), telemetry_sink=telemetry)
    game.initialize()
    history: List[List[Move]] = []
    last_hint: Optional[HintResult] = None

    try:
        while True:
            print()
            print(pretty_print(game.state))
            print(f"Score: {game.score()}/{MAX_SCORE}")

            raw = read_command("Move or command (? for help): ")
            cmd = raw.lower()
            if cmd in {"q", "quit"}:
                return 0
            if cmd in {"?", "help"}:
                print_help()
                continue
            was_solved = game.game_state == GameState.SOLVED
            try:
                if cmd == "s":
                    applied = game.shuffle(args.shuffle_steps)
                    history.clear()
                    last_hint = None
                    print(f"Shuffle({len(applied)}): {format_moves(applied)}")
                elif cmd == "reset":
                    game.initialize()
                    history.clear()
                    last_hint = None
                    print("Puzzle reset.")
                elif cmd == "save":
                    game.save_snapshot()
                    print("Snapshot saved.")
                elif cmd == "restore":
                    game.restore_snapshot()
                    history.clear()
                    print("Snapshot restored.")
                elif cmd == "u":
                    if not history:
                        print("Nothing to undo.")
                        continue
                    game.apply_moves(list(reversed(game.reverse(history.pop()))))
                elif cmd == "h":
                    if game.is_solved():
                        print("Already solved.")
                        continue
                    current = game.score()
                    hint = game.request_hint(last_hint)
                    if hint is None:
                        print(f"None of the next three moves has a better score: {current}")
                    else:
                        last_hint = hint
                        print(f"Hint: {hint.move} (score {hint.score}, line {format_moves(hint.path)})")
                elif cmd == "a":
                    if last_hint is None:
                        print("No hint to apply; press h first.")
                        continue
                    game.apply_move(last_hint.move)
                    history.append([last_hint.move])
                elif cmd == "g":
                    run_solve(game, args.qt)
                    history.clear()
                else:
                    moves = parse_moves(raw)
                    if not moves:
                        continue
                    game.apply_moves(moves)
                    history.append(moves)
            except (ValueError, NoSnapshotError, PuzzleBusyError) as exc:
                print(str(exc))
                continue

            if not was_solved and game.game_state == GameState.SOLVED and cmd != "g":
                print("Solved!")
    finally:
        if telemetry is not None:
            telemetry.close()


if __name__ == "__main__":
    raise SystemExit(main())
