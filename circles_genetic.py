"""Generational genetic solver over fixed-length move sequences.

The algorithm is split into a pure step function, ``step_generation``, and a
``GeneticRunner`` that feeds those steps to whatever scheduler the host
provides. Tests drive steps synchronously; an event-loop host can hand the
runner an idle-time scheduler instead (see ``circles_qt``).
"""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field, replace
from typing import Callable, Deque, List, Optional, Protocol, Sequence, Tuple
import random
import time

from circles_engine import MOVES, SHUFFLE_STEPS, Move, format_moves, random_moves
from circles_scoring import MAX_SCORE, evaluate_hypothetical
from circles_telemetry import (
    BestUpdateEvent,
    GenerationDoneEvent,
    SolveEndEvent,
    SolveStartEvent,
    TelemetrySink,
    emit_dataclass_event,
)

POPULATION = 10_000
GENERATIONS = 200
CROSSOVER_RATE = 0.9
MUTATION_RATE = 0.01
TOURNAMENT_SIZE = 3

Chromosome = Tuple[Move, ...]


class GeneticConfigError(ValueError):
    """Raised for solver parameters the algorithm cannot run with."""


@dataclass(frozen=True)
class GeneticConfig:
    population: int = POPULATION
    generations: int = GENERATIONS
    crossover_rate: float = CROSSOVER_RATE
    mutation_rate: float = MUTATION_RATE
    tournament_size: int = TOURNAMENT_SIZE
    chromosome_length: int = SHUFFLE_STEPS
    max_score: int = MAX_SCORE

    def validate(self) -> None:
        if self.population <= 0 or self.population % 2 != 0:
            raise GeneticConfigError("population must be a positive even number")
        if self.tournament_size < 1:
            raise GeneticConfigError("tournament size must be at least 1")
        if self.tournament_size > self.population:
            raise GeneticConfigError("tournament size must not exceed the population")
        if self.chromosome_length < 3:
            raise GeneticConfigError("chromosome length must be at least 3 for crossover")
        if self.generations < 0:
            raise GeneticConfigError("generations must be non-negative")
        for name in ("crossover_rate", "mutation_rate"):
            rate = getattr(self, name)
            if not 0.0 <= rate <= 1.0:
                raise GeneticConfigError(f"{name} must be within [0, 1]")


@dataclass(frozen=True)
class GeneticSession:
    config: GeneticConfig
    baseline: Tuple[int, ...]
    population: Tuple[Chromosome, ...]
    rng: random.Random = field(compare=False, repr=False)
    generation: int = 0
    best: Chromosome = ()
    best_score: int = 0
    mean_score: float = 0.0
    done: bool = False

    @property
    def solved(self) -> bool:
        return self.best_score >= self.config.max_score


@dataclass(frozen=True)
class GeneticStatus:
    generation: int
    best_score: int
    done: bool
    cancelled: bool = False


def random_chromosome(length: int, rng: random.Random) -> Chromosome:
    return tuple(random_moves(length, rng))


def tournament_select(
    population: Sequence[Chromosome],
    scores: Sequence[int],
    k: int,
    rng: random.Random,
) -> Chromosome:
    winner = rng.randrange(len(population))
    for _ in range(k - 1):
        challenger = rng.randrange(len(population))
        if scores[challenger] > scores[winner]:
            winner = challenger
    return population[winner]


def crossover(
    p1: Chromosome,
    p2: Chromosome,
    rate: float,
    rng: random.Random,
) -> Tuple[Chromosome, Chromosome]:
    if rng.random() >= rate:
        return p1, p2
    # Cut after the first gene and clear of the last two; three genes cut at 1.
    pt = rng.randint(1, max(1, len(p1) - 3))
    return p1[:pt] + p2[pt:], p2[:pt] + p1[pt:]


def mutate(chromosome: Chromosome, rate: float, rng: random.Random) -> Chromosome:
    genes = list(chromosome)
    for i, gene in enumerate(genes):
        if rng.random() < rate:
            new_gene = rng.choice(MOVES)
            while new_gene == gene:
                new_gene = rng.choice(MOVES)
            genes[i] = new_gene
    return tuple(genes)


def init_session(
    baseline: Sequence[int],
    config: Optional[GeneticConfig] = None,
    rng: Optional[random.Random] = None,
    population: Optional[Sequence[Sequence[Move]]] = None,
) -> GeneticSession:
    """Build generation 0 for solving ``baseline`` (the saved snapshot colors).

    ``population`` seeds the initial chromosomes instead of drawing random
    ones; its size and every chromosome length must match the config.
    """
    config = config or GeneticConfig()
    config.validate()
    rng = rng or random.Random()
    baseline = tuple(baseline)

    if population is None:
        pop = tuple(random_chromosome(config.chromosome_length, rng) for _ in range(config.population))
    else:
        pop = tuple(tuple(chrom) for chrom in population)
        if len(pop) != config.population:
            raise GeneticConfigError(
                f"seeded population has {len(pop)} chromosomes, expected {config.population}"
            )
        for chrom in pop:
            if len(chrom) != config.chromosome_length:
                raise GeneticConfigError(
                    f"seeded chromosome has {len(chrom)} genes, expected {config.chromosome_length}"
                )

    return GeneticSession(
        config=config,
        baseline=baseline,
        population=pop,
        rng=rng,
        best=pop[0],
        best_score=evaluate_hypothetical(baseline, pop[0]),
    )


def step_generation(session: GeneticSession) -> GeneticSession:
    """Run one generation and return the next session.

    Best tracking is non-elitist: the best chromosome is remembered even if
    selection drops it from the population.
    """
    if session.done:
        return session
    config = session.config
    if session.generation >= config.generations:
        return replace(session, done=True)

    rng = session.rng
    population = session.population
    scores = [evaluate_hypothetical(session.baseline, chrom) for chrom in population]
    best, best_score = session.best, session.best_score
    for chrom, score in zip(population, scores):
        if score > best_score:
            best, best_score = chrom, score
    mean_score = sum(scores) / len(scores)

    if best_score >= config.max_score:
        return replace(session, best=best, best_score=best_score, mean_score=mean_score, done=True)

    selected = [
        tournament_select(population, scores, config.tournament_size, rng) for _ in range(len(population))
    ]
    children: List[Chromosome] = []
    for i in range(0, len(selected), 2):
        c1, c2 = crossover(selected[i], selected[i + 1], config.crossover_rate, rng)
        children.append(mutate(c1, config.mutation_rate, rng))
        children.append(mutate(c2, config.mutation_rate, rng))

    return replace(
        session,
        population=tuple(children),
        generation=session.generation + 1,
        best=best,
        best_score=best_score,
        mean_score=mean_score,
    )


def run_session(session: GeneticSession) -> GeneticSession:
    while not session.done:
        session = step_generation(session)
    return session


class Scheduler(Protocol):
    def call_soon(self, callback: Callable[[], None]) -> object:
        ...

    def cancel(self, handle: object) -> None:
        ...


class ManualScheduler:
    """FIFO of pending callbacks, drained explicitly by the caller."""

    def __init__(self) -> None:
        self._pending: Deque[Tuple[int, Callable[[], None]]] = deque()
        self._next_handle = 0

    def call_soon(self, callback: Callable[[], None]) -> int:
        self._next_handle += 1
        self._pending.append((self._next_handle, callback))
        return self._next_handle

    def cancel(self, handle: object) -> None:
        self._pending = deque(item for item in self._pending if item[0] != handle)

    @property
    def pending(self) -> int:
        return len(self._pending)

    def run_once(self) -> bool:
        if not self._pending:
            return False
        _, callback = self._pending.popleft()
        callback()
        return True

    def run_until_idle(self, max_calls: Optional[int] = None) -> int:
        calls = 0
        while self._pending and (max_calls is None or calls < max_calls):
            self.run_once()
            calls += 1
        return calls


class GeneticRunner:
    """Feeds one generation at a time to a scheduler until the session is done."""

    def __init__(
        self,
        session: GeneticSession,
        scheduler: Scheduler,
        on_done: Optional[Callable[[GeneticSession], None]] = None,
        on_error: Optional[Callable[[Exception], None]] = None,
        telemetry_sink: Optional[TelemetrySink] = None,
    ) -> None:
        self.session = session
        self._scheduler = scheduler
        self._on_done = on_done
        self._on_error = on_error
        self._telemetry_sink = telemetry_sink
        self._handle: Optional[object] = None
        self._stepping = False
        self.cancelled = False

    @property
    def done(self) -> bool:
        return self.session.done

    def status(self) -> GeneticStatus:
        return GeneticStatus(
            generation=self.session.generation,
            best_score=self.session.best_score,
            done=self.session.done,
            cancelled=self.cancelled,
        )

    def start(self) -> None:
        config = self.session.config
        emit_dataclass_event(
            self._telemetry_sink,
            "solve_start",
            SolveStartEvent(
                population=config.population,
                generations=config.generations,
                chromosome_length=config.chromosome_length,
                start_score=evaluate_hypothetical(self.session.baseline, ()),
            ),
        )
        self._schedule()

    def cancel(self) -> None:
        if self.cancelled or self.session.done:
            return
        if self._handle is not None:
            self._scheduler.cancel(self._handle)
            self._handle = None
        self.cancelled = True
        self._emit_end("cancelled")

    def _schedule(self) -> None:
        self._handle = self._scheduler.call_soon(self._step)

    def _step(self) -> None:
        self._handle = None
        if self.cancelled or self.session.done or self._stepping:
            return
        self._stepping = True
        try:
            start = time.perf_counter()
            before = self.session
            try:
                self.session = step_generation(before)
            except Exception as exc:
                self.cancelled = True
                self._emit_end("error")
                if self._on_error is not None:
                    self._on_error(exc)
                raise
            self._emit_progress(before, int((time.perf_counter() - start) * 1000))
        finally:
            self._stepping = False

        if not self.session.done:
            self._schedule()
            return
        self._emit_end("solved" if self.session.solved else "exhausted")
        if self._on_done is not None:
            self._on_done(self.session)

    def _emit_progress(self, before: GeneticSession, elapsed_ms: int) -> None:
        after = self.session
        if after.best_score > before.best_score:
            emit_dataclass_event(
                self._telemetry_sink,
                "best_update",
                BestUpdateEvent(
                    generation=before.generation,
                    score=after.best_score,
                    chromosome=format_moves(after.best),
                ),
            )
        # The step that only notices an exhausted budget scores nothing.
        if before.generation < before.config.generations:
            emit_dataclass_event(
                self._telemetry_sink,
                "generation_done",
                GenerationDoneEvent(
                    generation=before.generation,
                    best_score=after.best_score,
                    mean_score=round(after.mean_score, 3),
                    elapsed_ms=elapsed_ms,
                ),
            )

    def _emit_end(self, reason: str) -> None:
        emit_dataclass_event(
            self._telemetry_sink,
            "solve_end",
            SolveEndEvent(
                generation=self.session.generation,
                best_score=self.session.best_score,
                solution=[move.value for move in self.session.best],
                reason=reason,
            ),
        )


def solve_baseline(
    baseline: Sequence[int],
    config: Optional[GeneticConfig] = None,
    rng: Optional[random.Random] = None,
    telemetry_sink: Optional[TelemetrySink] = None,
) -> GeneticSession:
    """Synchronous convenience wrapper: run a fresh session to completion."""
    scheduler = ManualScheduler()
    runner = GeneticRunner(init_session(baseline, config, rng), scheduler, telemetry_sink=telemetry_sink)
    runner.start()
    scheduler.run_until_idle()
    return runner.session
