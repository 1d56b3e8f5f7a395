"""
Main evolutionary engine.

Orchestrates one generation at a time:
1. Select offspring and survivors from the current population
2. Alter the offspring (crossover/mutation)
3. Replace over-aged or invalid individuals with fresh random ones
4. Evaluate fitness of every unevaluated individual (parallel)
5. Merge offspring and survivors into the next population
6. Emit an EvolutionResult

The generations are exposed as an EvolutionStream: a lazy, non-restartable
iterator the caller limits or cancels. All random draws come from one numpy
Generator seeded from the config, consumed in the order above (offspring
selection, survivor selection, alteration, replacement of killed
individuals), so a seeded run is reproducible regardless of how the worker
pool schedules fitness evaluations.
"""

import logging
import threading
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Tuple, Union

import numpy as np

from ..core.errors import (
    ConfigurationError,
    EvolutionCancelled,
    GenerationTimeout,
)
from ..core.genotype import Genotype
from ..core.optimize import Optimize
from ..core.phenotype import Phenotype, Population
from .alterers import Alterer, Mutator, SinglePointCrossover
from .evaluator import EXECUTORS, FitnessEvaluator, FitnessFunction, resolve_max_workers
from .limits import Predicate, by_generation_count
from .selectors import Selector, TournamentSelector

logger = logging.getLogger(__name__)

GenotypeFactory = Callable[[np.random.Generator], Genotype]


@dataclass
class EvolutionConfig:
    """Configuration for an evolution run."""
    # Population parameters
    population_size: int = 50
    offspring_fraction: float = 0.6

    # Operators
    offspring_selector: Selector = field(default_factory=lambda: TournamentSelector(3))
    survivors_selector: Selector = field(default_factory=lambda: TournamentSelector(3))
    alterers: Sequence[Alterer] = field(
        default_factory=lambda: [SinglePointCrossover(0.2), Mutator(0.01)]
    )
    optimize: Optimize = Optimize.MAXIMUM

    # Individuals older than this many generations are replaced
    max_phenotype_age: int = 70

    # Parallelization
    max_workers: Union[int, str, None] = None
    executor: str = 'thread'
    generation_timeout: Optional[float] = None

    # Reproducibility
    seed: Optional[int] = None

    def __post_init__(self):
        """Validate eagerly so bad settings never reach generation time."""
        size = self.population_size
        if isinstance(size, bool) or not isinstance(size, int) or size < 1:
            raise ConfigurationError(f"population_size must be a positive int, got {size!r}")
        if not 0.0 < self.offspring_fraction <= 1.0:
            raise ConfigurationError(
                f"offspring_fraction must be in (0, 1], got {self.offspring_fraction}"
            )
        for name in ('offspring_selector', 'survivors_selector'):
            if not isinstance(getattr(self, name), Selector):
                raise ConfigurationError(f"{name} must be a Selector, got {getattr(self, name)!r}")

        if isinstance(self.alterers, Alterer):
            self.alterers = [self.alterers]
        self.alterers = list(self.alterers)
        for alterer in self.alterers:
            if not isinstance(alterer, Alterer):
                raise ConfigurationError(f"Not an Alterer: {alterer!r}")

        try:
            self.optimize = Optimize(self.optimize)
        except ValueError as e:
            raise ConfigurationError(f"Unknown optimize direction: {self.optimize!r}") from e

        if self.max_phenotype_age < 1:
            raise ConfigurationError(
                f"max_phenotype_age must be positive, got {self.max_phenotype_age}"
            )
        resolve_max_workers(self.max_workers)
        if self.executor not in EXECUTORS:
            raise ConfigurationError(f"executor must be one of {EXECUTORS}, got {self.executor!r}")
        if self.generation_timeout is not None and self.generation_timeout <= 0:
            raise ConfigurationError(
                f"generation_timeout must be positive, got {self.generation_timeout}"
            )
        if self.seed is not None and (isinstance(self.seed, bool) or not isinstance(self.seed, int)):
            raise ConfigurationError(f"seed must be an int, got {self.seed!r}")

    @property
    def offspring_count(self) -> int:
        """Offspring share of the population, with halves rounded up."""
        return int(self.population_size * self.offspring_fraction + 0.5)

    @property
    def survivors_count(self) -> int:
        return self.population_size - self.offspring_count

    def to_dict(self) -> Dict[str, Any]:
        return {
            'population_size': self.population_size,
            'offspring_fraction': self.offspring_fraction,
            'offspring_selector': repr(self.offspring_selector),
            'survivors_selector': repr(self.survivors_selector),
            'alterers': [repr(a) for a in self.alterers],
            'optimize': self.optimize.value,
            'max_phenotype_age': self.max_phenotype_age,
            'max_workers': self.max_workers,
            'executor': self.executor,
            'generation_timeout': self.generation_timeout,
            'seed': self.seed,
        }


@dataclass(frozen=True)
class EvolutionResult:
    """
    Immutable snapshot of one generation.

    Attributes:
        generation: Generation number (the initial population is generation 0)
        population: Fully evaluated population of this generation
        best_phenotype: Best phenotype seen so far in the run
        optimize: Optimisation direction of the run
        alter_count: Genes altered while producing this generation
        kill_count: Individuals replaced for exceeding the maximum age
        invalid_count: Individuals replaced for having an invalid genotype
        duration: Wall-clock seconds spent on this generation
    """
    generation: int
    population: Population
    best_phenotype: Phenotype
    optimize: Optimize = Optimize.MAXIMUM
    alter_count: int = 0
    kill_count: int = 0
    invalid_count: int = 0
    duration: float = 0.0

    @property
    def best_fitness(self) -> Any:
        return self.best_phenotype.fitness

    @property
    def population_best(self) -> Phenotype:
        """Best phenotype of this generation's population."""
        return self.population.best(self.optimize)

    @property
    def worst_phenotype(self) -> Phenotype:
        return self.population.worst(self.optimize)

    def summary(self) -> str:
        """Generate summary string."""
        lines = [
            f"Generation: {self.generation}",
            f"Best fitness: {self.best_fitness}",
            f"Population best: {self.population_best.fitness}",
            f"Population worst: {self.worst_phenotype.fitness}",
            f"Altered genes: {self.alter_count}",
            f"Killed: {self.kill_count} (invalid: {self.invalid_count})",
            f"Duration: {self.duration:.3f}s",
        ]
        return '\n'.join(lines)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'generation': self.generation,
            'population_size': len(self.population),
            'best_fitness': self.best_fitness,
            'best_genotype': self.best_phenotype.genotype.to_record(),
            'optimize': self.optimize.value,
            'alter_count': self.alter_count,
            'kill_count': self.kill_count,
            'invalid_count': self.invalid_count,
            'duration': self.duration,
        }


class StopReason(str, Enum):
    LIMIT = 'limit'
    CANCELLED = 'cancelled'
    FAILED = 'failed'
    TIMEOUT = 'timeout'


class EvolutionEngine:
    """
    Generational evolution engine.

    Args:
        genotype_factory: Template Genotype (fresh individuals come from its
            ``new_instance``) or a callable ``rng -> Genotype``
        fitness: Callable mapping a Genotype to its fitness
        config: Evolution configuration (defaults to EvolutionConfig())
    """

    def __init__(
        self,
        genotype_factory: Union[Genotype, GenotypeFactory],
        fitness: FitnessFunction,
        config: Optional[EvolutionConfig] = None,
    ):
        self.config = config or EvolutionConfig()

        if isinstance(genotype_factory, Genotype):
            self._factory: GenotypeFactory = genotype_factory.new_instance
        elif callable(genotype_factory):
            self._factory = genotype_factory
        else:
            raise ConfigurationError(
                f"genotype_factory must be a Genotype or callable, got {genotype_factory!r}"
            )

        self.evaluator = FitnessEvaluator(
            fitness,
            max_workers=self.config.max_workers,
            executor=self.config.executor,
        )
        self.alterer = Alterer.of(*self.config.alterers) if self.config.alterers else None
        self.rng = np.random.default_rng(self.config.seed)

    def __enter__(self) -> 'EvolutionEngine':
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.shutdown()

    def shutdown(self) -> None:
        """Release the fitness worker pool."""
        self.evaluator.shutdown()

    def _new_genotype(self) -> Genotype:
        genotype = self._factory(self.rng)
        if not isinstance(genotype, Genotype):
            raise TypeError(f"genotype_factory returned {type(genotype).__name__}, not Genotype")
        return genotype

    def initial_population(
        self,
        individuals: Optional[Iterable[Union[Genotype, Phenotype]]] = None,
        generation: int = 0,
        cancel_event: Optional[threading.Event] = None,
    ) -> Population:
        """
        Create and evaluate the starting population.

        Given individuals are kept (phenotypes with their fitness), padded
        with random ones up to the population size; extras are dropped.

        Args:
            individuals: Optional genotypes or phenotypes to seed from
            generation: Generation number of the new individuals
            cancel_event: Event that cancels pending evaluations

        Returns:
            Evaluated Population of exactly ``population_size`` phenotypes
        """
        size = self.config.population_size
        phenotypes: List[Phenotype] = []
        for individual in individuals or ():
            if len(phenotypes) == size:
                break
            if isinstance(individual, Phenotype):
                phenotypes.append(individual)
            elif isinstance(individual, Genotype):
                phenotypes.append(Phenotype(individual, generation))
            else:
                raise TypeError(f"Expected Genotype or Phenotype, got {type(individual).__name__}")

        while len(phenotypes) < size:
            phenotypes.append(Phenotype(self._new_genotype(), generation))

        return self.evaluator.evaluate(
            Population(phenotypes),
            generation=generation,
            timeout=self.config.generation_timeout,
            cancel_event=cancel_event,
        )

    def evolve_generation(
        self,
        population: Population,
        generation: int,
        best_phenotype: Optional[Phenotype] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> EvolutionResult:
        """
        Execute one generation of evolution.

        Args:
            population: Evaluated population of generation ``generation``
            generation: Generation number of ``population``
            best_phenotype: Best phenotype seen so far, carried into the result
            cancel_event: Event that cancels pending evaluations

        Returns:
            EvolutionResult for generation ``generation + 1``
        """
        config = self.config
        optimize = config.optimize
        if len(population) != config.population_size:
            raise ValueError(
                f"Population has {len(population)} individuals, expected {config.population_size}"
            )
        start = time.perf_counter()
        next_generation = generation + 1

        # 1. Selection (offspring draws before survivor draws)
        offspring = config.offspring_selector.select(
            population, config.offspring_count, optimize, self.rng
        )
        survivors = config.survivors_selector.select(
            population, config.survivors_count, optimize, self.rng
        )

        # 2. Alteration
        alter_count = 0
        if self.alterer is not None:
            offspring, alter_count = self.alterer.alter(offspring, next_generation, self.rng)

        # 3. Replace over-aged and invalid individuals
        offspring, killed, invalid = self._filter(offspring, next_generation)
        survivors, killed_survivors, invalid_survivors = self._filter(survivors, next_generation)
        killed += killed_survivors
        invalid += invalid_survivors

        # 4. Evaluation
        merged = self.evaluator.evaluate(
            offspring + survivors,
            generation=next_generation,
            timeout=config.generation_timeout,
            cancel_event=cancel_event,
        )

        # 5. Best so far
        best = merged.best(optimize)
        if best_phenotype is not None and not optimize.is_better(best.fitness, best_phenotype.fitness):
            best = best_phenotype

        duration = time.perf_counter() - start
        logger.debug(
            f"Generation {next_generation}: best={best.fitness!r}, "
            f"altered={alter_count}, killed={killed}, invalid={invalid}, "
            f"duration={duration:.3f}s"
        )
        return EvolutionResult(
            generation=next_generation,
            population=merged,
            best_phenotype=best,
            optimize=optimize,
            alter_count=alter_count,
            kill_count=killed,
            invalid_count=invalid,
            duration=duration,
        )

    def _filter(self, population: Population, generation: int) -> Tuple[Population, int, int]:
        """Replace phenotypes that are too old or invalid."""
        phenotypes = []
        killed = 0
        invalid = 0
        for phenotype in population:
            if not phenotype.genotype.is_valid():
                invalid += 1
                phenotype = Phenotype(self._new_genotype(), generation)
            elif phenotype.age(generation) > self.config.max_phenotype_age:
                killed += 1
                phenotype = Phenotype(self._new_genotype(), generation)
            phenotypes.append(phenotype)
        if invalid:
            logger.warning(f"Replaced {invalid} invalid individual(s) in generation {generation}")
        if killed:
            logger.debug(f"Replaced {killed} over-aged individual(s) in generation {generation}")
        return Population(phenotypes), killed, invalid

    def stream(
        self,
        initial_population: Optional[Iterable[Union[Genotype, Phenotype]]] = None,
        generation: int = 0,
    ) -> 'EvolutionStream':
        """
        Lazily stream generations.

        Args:
            initial_population: Optional genotypes or phenotypes to start from,
                e.g. ``last_result.population`` of an earlier stream
            generation: Generation number of the initial population

        Returns:
            An unbounded EvolutionStream; limit or cancel it to stop
        """
        return EvolutionStream(self, initial_population, generation)

    def evolve(self, n_generations: int) -> EvolutionResult:
        """
        Run a fixed number of generations.

        Args:
            n_generations: Number of generations to run

        Returns:
            EvolutionResult of the last generation
        """
        result = None
        for result in self.stream().limit(by_generation_count(n_generations)):
            pass
        return result


class EvolutionStream:
    """
    Lazy, non-restartable iterator of EvolutionResults.

    The initial population is created and evaluated on the first ``next``.
    Every ``next`` advances the engine by one generation. Errors raised while
    evolving, GenerationTimeout included, propagate out of ``next`` and end
    the stream; cancellation ends it quietly. ``last_result`` keeps the last
    successful generation so a new stream can be started from its population.
    """

    def __init__(
        self,
        engine: EvolutionEngine,
        initial_population: Optional[Iterable[Union[Genotype, Phenotype]]] = None,
        generation: int = 0,
    ):
        self._engine = engine
        self._initial = initial_population
        self._population: Optional[Population] = None
        self._generation = generation
        self._predicates: List[Predicate] = []
        self._cancel_event = threading.Event()
        self._limit_reached = False
        self._best: Optional[Phenotype] = None

        self.stop_reason: Optional[StopReason] = None
        self.last_result: Optional[EvolutionResult] = None

    def limit(self, *predicates: Predicate) -> 'EvolutionStream':
        """Add termination predicates; all must hold to continue."""
        self._predicates.extend(predicates)
        return self

    def cancel(self) -> None:
        """
        Request cancellation.

        Takes effect between generations, and at the next poll for
        evaluations still waiting in the pool. Fitness functions already
        running finish on their own.
        """
        self._cancel_event.set()

    @property
    def cancelled(self) -> bool:
        return self._cancel_event.is_set()

    @property
    def finished(self) -> bool:
        return self.stop_reason is not None

    def __iter__(self) -> 'EvolutionStream':
        return self

    def _stop(self, reason: StopReason) -> None:
        if self.stop_reason is None:
            self.stop_reason = reason
            logger.info(f"Evolution stream stopped after generation {self._generation}: {reason.value}")

    def __next__(self) -> EvolutionResult:
        if self.stop_reason is not None:
            raise StopIteration from None
        if self._limit_reached:
            self._stop(StopReason.LIMIT)
            raise StopIteration from None
        if self._cancel_event.is_set():
            self._stop(StopReason.CANCELLED)
            raise StopIteration from None

        try:
            if self._population is None:
                logger.info(
                    f"Starting evolution stream at generation {self._generation}: "
                    f"population_size={self._engine.config.population_size}"
                )
                self._population = self._engine.initial_population(
                    self._initial, self._generation, self._cancel_event
                )
            result = self._engine.evolve_generation(
                self._population, self._generation, self._best, self._cancel_event
            )
        except EvolutionCancelled:
            self._stop(StopReason.CANCELLED)
            raise StopIteration from None
        except GenerationTimeout:
            self._stop(StopReason.TIMEOUT)
            raise
        except Exception:
            # EvaluationError and operator failures end the stream
            self._stop(StopReason.FAILED)
            raise

        self._population = result.population
        self._generation = result.generation
        self._best = result.best_phenotype
        self.last_result = result

        if not all(predicate(result) for predicate in self._predicates):
            self._limit_reached = True
        return result
