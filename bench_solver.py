"""Deterministic benchmark harness for the Circles hint and genetic solvers."""

from __future__ import annotations

import argparse
import gc
import platform
import random
import statistics
import sys
import time
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple

from circles_engine import SHUFFLE_STEPS, PuzzleState, format_moves, new_puzzle, parse_moves
from circles_genetic import GeneticConfig, init_session, run_session
from circles_scoring import MAX_SCORE, score_state
from circles_solver import HINT_DEPTH, request_hint


def _generate_positions(*, positions: int, steps: int, seed: int) -> List[str]:
    rng = random.Random(seed)
    out: List[str] = []
    while len(out) < positions:
        state = new_puzzle()
        applied = state.shuffle(steps, rng)
        if applied:
            out.append(format_moves(applied))
    return out


def _load_positions(path: Path, limit: int) -> List[str]:
    shuffles: List[str] = []
    with path.open("r", encoding="utf-8") as handle:
        for line_no, raw in enumerate(handle, start=1):
            line = raw.strip()
            if not line:
                continue
            try:
                parse_moves(line)
            except ValueError as exc:
                raise ValueError(f"invalid shuffle at line {line_no}: {exc}") from None
            shuffles.append(line)
            if len(shuffles) >= limit:
                break
    return shuffles


def _save_positions(path: Path, shuffles: Sequence[str]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", encoding="utf-8") as handle:
        for line in shuffles:
            handle.write(line + "\n")


def _position(shuffle: str) -> PuzzleState:
    state = new_puzzle()
    state.apply_moves(parse_moves(shuffle))
    return state


def _summary(values: Sequence[float]) -> Dict[str, float]:
    if not values:
        return {"mean": 0.0, "median": 0.0, "p95": 0.0}
    ordered = sorted(values)
    if len(ordered) > 1:
        p95 = statistics.quantiles(ordered, n=20, method="inclusive")[-1]
    else:
        p95 = ordered[0]
    return {
        "mean": statistics.fmean(ordered),
        "median": statistics.median(ordered),
        "p95": p95,
    }


def bench_hints(shuffles: Sequence[str], depth: int) -> Tuple[List[float], int]:
    timings: List[float] = []
    improved = 0
    for shuffle in shuffles:
        state = _position(shuffle)
        start = time.perf_counter()
        hint = request_hint(state, max_level=depth)
        timings.append((time.perf_counter() - start) * 1000)
        if hint is not None:
            improved += 1
    return timings, improved


def bench_genetic(
    shuffles: Sequence[str],
    config: GeneticConfig,
    seed: int,
) -> Tuple[List[float], List[int], int]:
    timings: List[float] = []
    scores: List[int] = []
    solved = 0
    for idx, shuffle in enumerate(shuffles):
        baseline = _position(shuffle).colors()
        start = time.perf_counter()
        session = run_session(init_session(baseline, config, random.Random(seed + idx)))
        timings.append((time.perf_counter() - start) * 1000)
        scores.append(session.best_score)
        if session.solved:
            solved += 1
    return timings, scores, solved


def _print_summary(label: str, values: Sequence[float], unit: str = "ms") -> None:
    stats = _summary(values)
    print(
        f"{label:<18} mean={stats['mean']:.1f}{unit} "
        f"median={stats['median']:.1f}{unit} p95={stats['p95']:.1f}{unit}"
    )


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Benchmark the Circles solvers on seeded shuffles")
    parser.add_argument("--positions", type=int, default=20, help="number of shuffled positions (default: 20)")
    parser.add_argument("--steps", type=int, default=SHUFFLE_STEPS, help="shuffle length before simplification")
    parser.add_argument("--seed", type=int, default=1234, help="seed for positions and solver RNG")
    parser.add_argument("--hint-depth", type=int, default=HINT_DEPTH)
    parser.add_argument("--population", type=int, default=200, help="genetic population (default: 200)")
    parser.add_argument("--generations", type=int, default=20, help="genetic generations (default: 20)")
    parser.add_argument("--skip-genetic", action="store_true")
    parser.add_argument("--positions-file", type=Path, default=None, help="read shuffles, one per line")
    parser.add_argument("--save-positions", type=Path, default=None, help="write generated shuffles here")
    args = parser.parse_args(argv)

    if args.positions <= 0:
        print("--positions must be positive", file=sys.stderr)
        return 2
    if args.positions_file is None and args.steps <= 0:
        print("--steps must be positive", file=sys.stderr)
        return 2

    if args.positions_file is not None:
        shuffles = _load_positions(args.positions_file, args.positions)
    else:
        shuffles = _generate_positions(positions=args.positions, steps=args.steps, seed=args.seed)
    if args.save_positions is not None:
        _save_positions(args.save_positions, shuffles)

    print(f"python {platform.python_version()} on {platform.machine()} ({platform.system()})")
    print(f"positions={len(shuffles)} steps={args.steps} seed={args.seed}")
    start_scores = [score_state(_position(shuffle)) for shuffle in shuffles]
    _print_summary("start score", start_scores, unit="")

    gc.collect()
    hint_ms, improved = bench_hints(shuffles, args.hint_depth)
    _print_summary(f"hint depth={args.hint_depth}", hint_ms)
    print(f"hints improving: {improved}/{len(shuffles)}")

    if not args.skip_genetic:
        config = GeneticConfig(
            population=args.population,
            generations=args.generations,
            chromosome_length=max(3, args.steps),
        )
        gc.collect()
        ga_ms, ga_scores, solved = bench_genetic(shuffles, config, args.seed)
        _print_summary("genetic", ga_ms)
        _print_summary("genetic score", ga_scores, unit="")
        print(f"genetic solved: {solved}/{len(shuffles)} (max score {MAX_SCORE})")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
