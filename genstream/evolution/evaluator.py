"""
Concurrent fitness evaluation.

The FitnessEvaluator applies the user's fitness function to every phenotype
that has no fitness yet, using a bounded worker pool. Results are attached by
population index, so the order in which workers finish never changes which
phenotype receives which fitness.

A failing fitness function is never papered over: every submitted
evaluation is awaited, then an EvaluationError is raised that carries the
failures and a population holding every successful result.
"""

import logging
import math
import numbers
import threading
import time
from concurrent.futures import Executor, Future, ProcessPoolExecutor, ThreadPoolExecutor, wait
from multiprocessing import cpu_count
from typing import Any, Callable, Dict, Iterable, List, Optional, Set, Tuple, Union

from ..core.errors import (
    ConfigurationError,
    EvaluationError,
    EvolutionCancelled,
    GenerationTimeout,
)
from ..core.genotype import Genotype
from ..core.phenotype import Phenotype, Population

logger = logging.getLogger(__name__)

UNBOUNDED = 'unbounded'
EXECUTORS = ('thread', 'process')

# How often a waiting evaluation checks the cancel event
CANCEL_POLL_SECONDS = 0.05

FitnessFunction = Callable[[Genotype], Any]


def default_workers() -> int:
    """Default pool size: one core left free for the caller."""
    return max(1, cpu_count() - 1)


def resolve_max_workers(max_workers: Union[int, str, None]) -> Union[int, str]:
    """Validate a parallelism bound; None means ``default_workers()``."""
    if max_workers is None:
        return default_workers()
    if max_workers == UNBOUNDED:
        return UNBOUNDED
    if isinstance(max_workers, bool) or not isinstance(max_workers, int) or max_workers < 1:
        raise ConfigurationError(
            f"max_workers must be a positive int, None or '{UNBOUNDED}', got {max_workers!r}"
        )
    return max_workers


class FitnessEvaluator:
    """
    Evaluate unevaluated phenotypes with a bounded worker pool.

    Args:
        fitness: Callable mapping a Genotype to its fitness
        max_workers: Positive pool size, None for cpu_count - 1, or
            'unbounded' for one worker per pending individual. With 1 and no
            timeout the fitness function runs inline on the calling thread;
            with a timeout it runs on a single pooled worker so that a call
            that never returns still times out.
        executor: 'thread' or 'process'. Process pools need a picklable
            fitness function.
    """

    def __init__(
        self,
        fitness: FitnessFunction,
        max_workers: Union[int, str, None] = None,
        executor: str = 'thread',
    ):
        if not callable(fitness):
            raise ConfigurationError(f"Fitness function must be callable, got {fitness!r}")
        if executor not in EXECUTORS:
            raise ConfigurationError(f"executor must be one of {EXECUTORS}, got {executor!r}")

        self.fitness = fitness
        self.max_workers = resolve_max_workers(max_workers)
        self.executor = executor

        self._pool: Optional[Executor] = None
        self._pool_lock = threading.Lock()

    # -------------------------------------------------------------------------
    # Pool management
    # -------------------------------------------------------------------------

    def _create_pool(self, workers: int) -> Executor:
        if self.executor == 'process':
            return ProcessPoolExecutor(max_workers=workers)
        return ThreadPoolExecutor(max_workers=workers, thread_name_prefix='genstream-fitness')

    def _acquire_pool(self, pending: int) -> Tuple[Executor, bool]:
        """Return (pool, owned); owned pools are shut down after the call."""
        if self.max_workers == UNBOUNDED:
            return self._create_pool(pending), True
        with self._pool_lock:
            if self._pool is None:
                logger.info(
                    f"Starting {self.executor} pool for fitness evaluation: "
                    f"max_workers={self.max_workers}"
                )
                self._pool = self._create_pool(self.max_workers)
            return self._pool, False

    def shutdown(self, wait: bool = True) -> None:
        """Release the worker pool."""
        with self._pool_lock:
            if self._pool is not None:
                self._pool.shutdown(wait=wait)
                self._pool = None

    def __enter__(self) -> 'FitnessEvaluator':
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.shutdown()

    # -------------------------------------------------------------------------
    # Evaluation
    # -------------------------------------------------------------------------

    def evaluate(
        self,
        population: Iterable[Phenotype],
        generation: Optional[int] = None,
        timeout: Optional[float] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> Population:
        """
        Evaluate every phenotype that has no fitness.

        Existing fitness values are kept as they are, never recomputed.

        Args:
            population: Population with some unevaluated phenotypes
            generation: Generation number, used in errors and logs
            timeout: Seconds allowed for the whole call. Calls still running
                at the deadline are left to finish in the background.
            cancel_event: Event that, once set, cancels pending evaluations

        Returns:
            New Population in which every phenotype is evaluated

        Raises:
            EvaluationError: If the fitness function failed for any individual,
                or returned None or NaN
            GenerationTimeout: If evaluations did not finish within timeout
            EvolutionCancelled: If cancel_event was set while waiting
        """
        if not isinstance(population, Population):
            population = Population(population)
        pending = population.unevaluated_indices()
        if not pending:
            return population

        logger.debug(f"Evaluating {len(pending)}/{len(population)} phenotypes (generation={generation})")
        if self.max_workers == 1 and timeout is None:
            outcomes = self._evaluate_inline(population, pending, cancel_event)
        else:
            outcomes = self._evaluate_concurrent(population, pending, generation, timeout, cancel_event)

        phenotypes = list(population)
        failures = []
        for index in pending:
            ok, value = outcomes[index]
            if ok and value is None:
                ok, value = False, ValueError("Fitness function returned None")
            elif ok and _is_nan(value):
                ok, value = False, ValueError("Fitness function returned NaN")
            if ok:
                phenotypes[index] = phenotypes[index].with_fitness(value)
            else:
                failures.append((index, phenotypes[index], value))

        evaluated = Population(phenotypes)
        if failures:
            for index, _, cause in failures:
                logger.error(f"Fitness evaluation failed for individual {index}: {cause!r}")
            raise EvaluationError(failures, population=evaluated, generation=generation)
        return evaluated

    def _evaluate_inline(
        self,
        population: Population,
        pending: List[int],
        cancel_event: Optional[threading.Event],
    ) -> Dict[int, Tuple[bool, Any]]:
        outcomes: Dict[int, Tuple[bool, Any]] = {}
        for done, index in enumerate(pending):
            if cancel_event is not None and cancel_event.is_set():
                raise EvolutionCancelled(f"Evaluation cancelled with {len(pending) - done} pending")
            try:
                outcomes[index] = (True, self.fitness(population[index].genotype))
            except Exception as e:
                outcomes[index] = (False, e)
        return outcomes

    def _evaluate_concurrent(
        self,
        population: Population,
        pending: List[int],
        generation: Optional[int],
        timeout: Optional[float],
        cancel_event: Optional[threading.Event],
    ) -> Dict[int, Tuple[bool, Any]]:
        pool, owned = self._acquire_pool(len(pending))
        deadline = None if timeout is None else time.monotonic() + timeout
        try:
            futures: Dict[Future, int] = {
                pool.submit(self.fitness, population[index].genotype): index
                for index in pending
            }
            not_done: Set[Future] = set(futures)
            while not_done:
                wait_for = CANCEL_POLL_SECONDS if cancel_event is not None else None
                if deadline is not None:
                    remaining = deadline - time.monotonic()
                    if remaining <= 0:
                        _cancel(not_done)
                        raise GenerationTimeout(timeout, len(not_done), generation)
                    wait_for = remaining if wait_for is None else min(wait_for, remaining)

                _, not_done = wait(not_done, timeout=wait_for)
                if not_done and cancel_event is not None and cancel_event.is_set():
                    _cancel(not_done)
                    raise EvolutionCancelled(f"Evaluation cancelled with {len(not_done)} pending")

            outcomes: Dict[int, Tuple[bool, Any]] = {}
            for future, index in futures.items():
                try:
                    outcomes[index] = (True, future.result())
                except Exception as e:
                    outcomes[index] = (False, e)
            return outcomes
        finally:
            if owned:
                pool.shutdown(wait=False, cancel_futures=True)


def _is_nan(value: Any) -> bool:
    return isinstance(value, numbers.Real) and math.isnan(value)


def _cancel(futures: Iterable[Future]) -> None:
    """Best-effort cancellation; running functions finish on their own."""
    for future in futures:
        future.cancel()
