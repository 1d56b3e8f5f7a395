"""
Selection strategies.

A selector turns an evaluated population into ``count`` individuals drawn
with replacement. All randomness comes from the numpy Generator passed to
``select``, so a fixed seed and a fixed population order always give the
same selection.

Strategies:
- TruncationSelector: deterministic top-n
- TournamentSelector: best of k uniform draws
- RouletteWheelSelector: fitness-proportional draws
- StochasticUniversalSelector: fitness-proportional, evenly spaced pointers
- LinearRankSelector: rank-proportional draws
- EliteSelector: top individuals plus a wrapped selector for the rest
"""

from abc import ABC, abstractmethod
from typing import Iterable, List, Optional

import numpy as np

from ..core.errors import ConfigurationError
from ..core.genes import RandomSource, as_generator
from ..core.optimize import Optimize
from ..core.phenotype import Phenotype, Population


class Selector(ABC):
    """Base class for selection strategies."""

    def select(
        self,
        population: Iterable[Phenotype],
        count: int,
        optimize: Optimize = Optimize.MAXIMUM,
        rng: RandomSource = None,
    ) -> Population:
        """
        Select ``count`` phenotypes with replacement.

        Args:
            population: Evaluated population to select from
            count: Number of individuals to return
            optimize: Optimisation direction
            rng: Seed or numpy Generator

        Returns:
            New Population of exactly ``count`` phenotypes

        Raises:
            ValueError: If count is negative, the population is empty while
                count > 0, or any phenotype lacks fitness
        """
        if not isinstance(population, Population):
            population = Population(population)
        if count < 0:
            raise ValueError(f"Selection count must be non-negative, got {count}")
        if count == 0:
            return Population()
        if not population:
            raise ValueError(f"Cannot select {count} individuals from an empty population")
        if not population.is_evaluated:
            raise ValueError("Selection requires every phenotype to be evaluated")

        selected = self._select(population, count, optimize, as_generator(rng))
        return Population(selected)

    @abstractmethod
    def _select(
        self,
        population: Population,
        count: int,
        optimize: Optimize,
        rng: np.random.Generator,
    ) -> List[Phenotype]:
        ...

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"


# =============================================================================
# Deterministic selection
# =============================================================================

class TruncationSelector(Selector):
    """
    Take the best ``count`` individuals.

    Ties keep the population order. When ``count`` exceeds the number of
    candidates the ranked list is repeated from the top.

    Args:
        max_count: Only the best ``max_count`` individuals are candidates
    """

    def __init__(self, max_count: Optional[int] = None):
        if max_count is not None and max_count < 1:
            raise ConfigurationError(f"max_count must be positive, got {max_count}")
        self.max_count = max_count

    def _select(self, population, count, optimize, rng):
        ranked = optimize.sort_best_first(population)
        if self.max_count is not None:
            ranked = ranked[:self.max_count]
        return [ranked[i % len(ranked)] for i in range(count)]

    def __repr__(self) -> str:
        return f"TruncationSelector(max_count={self.max_count})"


class EliteSelector(Selector):
    """
    Copy the best individuals unchanged and fill the rest with another selector.

    Keeps the population's best fitness from getting worse between
    generations when used as the survivors selector.

    Args:
        elite_count: Number of elite individuals
        non_elite_selector: Selector for the remaining slots
    """

    def __init__(self, elite_count: int = 1, non_elite_selector: Optional[Selector] = None):
        if elite_count < 1:
            raise ConfigurationError(f"elite_count must be positive, got {elite_count}")
        self.elite_count = elite_count
        self.non_elite_selector = non_elite_selector or TournamentSelector(3)
        self._elite = TruncationSelector()

    def _select(self, population, count, optimize, rng):
        n_elite = min(self.elite_count, count, len(population))
        elite = list(self._elite.select(population, n_elite, optimize, rng))
        rest = self.non_elite_selector.select(population, count - n_elite, optimize, rng)
        return elite + list(rest)

    def __repr__(self) -> str:
        return f"EliteSelector(elite_count={self.elite_count}, non_elite_selector={self.non_elite_selector!r})"


# =============================================================================
# Tournament selection
# =============================================================================

class TournamentSelector(Selector):
    """
    Tournament selection with replacement.

    Each pick draws ``size`` individuals uniformly at random and keeps the
    fittest; the earliest draw wins ties. Repeated ``count`` times.

    Args:
        size: Number of individuals per tournament
    """

    def __init__(self, size: int = 3):
        if size < 1:
            raise ConfigurationError(f"Tournament size must be positive, got {size}")
        self.size = size

    def _select(self, population, count, optimize, rng):
        n = len(population)
        selected = []
        for _ in range(count):
            contestants = rng.integers(0, n, size=self.size)
            winner = population[int(contestants[0])]
            for index in contestants[1:]:
                candidate = population[int(index)]
                if optimize.is_better(candidate.fitness, winner.fitness):
                    winner = candidate
            selected.append(winner)
        return selected

    def __repr__(self) -> str:
        return f"TournamentSelector(size={self.size})"


# =============================================================================
# Probability-based selection
# =============================================================================

class ProbabilitySelector(Selector):
    """Selector drawing indices from a per-individual probability vector."""

    @abstractmethod
    def probabilities(self, population: Population, optimize: Optimize) -> np.ndarray:
        """Selection probability of each individual; sums to 1."""

    def _select(self, population, count, optimize, rng):
        probabilities = self.probabilities(population, optimize)
        indices = rng.choice(len(population), size=count, replace=True, p=probabilities)
        return [population[int(i)] for i in indices]


def _uniform(n: int) -> np.ndarray:
    return np.full(n, 1.0 / n)


class RouletteWheelSelector(ProbabilitySelector):
    """
    Fitness-proportional selection.

    Weights are made non-negative before normalising: when maximising they
    are shifted by the minimum if any fitness is negative, when minimising
    they are inverted as ``max - f``. If every weight is zero (all fitness
    values equal) selection falls back to uniform.
    """

    def probabilities(self, population, optimize):
        fitness = np.asarray(population.fitness_values(), dtype=np.float64)
        if optimize is Optimize.MINIMUM:
            weights = fitness.max() - fitness
        else:
            weights = fitness - min(fitness.min(), 0.0)

        total = weights.sum()
        if not np.isfinite(total) or total <= 0.0:
            return _uniform(len(population))
        return weights / total


class StochasticUniversalSelector(RouletteWheelSelector):
    """
    Stochastic universal sampling.

    Uses the roulette weights, but draws a single offset in
    ``[0, total / count)`` and places ``count`` evenly spaced pointers from
    it. The number of copies of each individual deviates less from its
    expectation than with independent roulette draws.
    """

    def _select(self, population, count, optimize, rng):
        probabilities = self.probabilities(population, optimize)
        cumulative = np.cumsum(probabilities)
        step = 1.0 / count
        offset = rng.uniform(0.0, step)
        pointers = offset + step * np.arange(count)
        indices = np.searchsorted(cumulative, pointers, side='right')
        indices = np.minimum(indices, len(population) - 1)
        return [population[int(i)] for i in indices]


class LinearRankSelector(ProbabilitySelector):
    """
    Linear ranking selection.

    Selection probability depends on rank rather than raw fitness, which
    lowers selection pressure compared to roulette.

    Args:
        nminus: Expected copies of the worst individual, in [0, 1]; the best
            gets ``2 - nminus``
    """

    def __init__(self, nminus: float = 0.5):
        if not 0.0 <= nminus <= 1.0:
            raise ConfigurationError(f"nminus must be in [0, 1], got {nminus}")
        self.nminus = nminus
        self.nplus = 2.0 - nminus

    def probabilities(self, population, optimize):
        n = len(population)
        if n == 1:
            return np.ones(1)

        fitness = population.fitness_values()
        # Worst first, so rank 0 is the worst individual
        ranked = sorted(
            range(n),
            key=lambda i: fitness[i],
            reverse=optimize is Optimize.MINIMUM,
        )
        probabilities = np.empty(n)
        for rank, index in enumerate(ranked):
            probabilities[index] = (
                self.nminus + (self.nplus - self.nminus) * rank / (n - 1)
            ) / n
        return probabilities / probabilities.sum()

    def __repr__(self) -> str:
        return f"LinearRankSelector(nminus={self.nminus})"
