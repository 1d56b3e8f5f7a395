"""
Tests for selection strategies.

Run with: python -m pytest tests/test_selectors.py -v
"""

from collections import Counter

import pytest
import numpy as np

from genstream.core.chromosomes import BitChromosome
from genstream.core.errors import ConfigurationError
from genstream.core.genotype import Genotype
from genstream.core.optimize import Optimize
from genstream.core.phenotype import Phenotype, Population
from genstream.evolution.selectors import (
    TruncationSelector,
    EliteSelector,
    TournamentSelector,
    RouletteWheelSelector,
    StochasticUniversalSelector,
    LinearRankSelector,
)

ALL_SELECTORS = [
    TruncationSelector(),
    EliteSelector(2),
    TournamentSelector(3),
    RouletteWheelSelector(),
    StochasticUniversalSelector(),
    LinearRankSelector(),
]


def make_population(fitness_values):
    """Population whose i-th genotype encodes i in binary."""
    phenotypes = []
    for i, fitness in enumerate(fitness_values):
        bits = format(i, '08b')
        phenotypes.append(Phenotype(Genotype.of(BitChromosome.from_bits(bits)), 0, fitness))
    return Population(phenotypes)


@pytest.fixture
def population():
    return make_population([5.0, 1.0, 9.0, 3.0, 7.0, 2.0, 8.0, 4.0, 6.0, 0.0])


class TestSelectorContract:
    """Behaviour shared by every selector."""

    @pytest.mark.parametrize('selector', ALL_SELECTORS, ids=lambda s: type(s).__name__)
    def test_exact_count(self, selector, population):
        for count in (0, 1, 7, 25):
            selected = selector.select(population, count, Optimize.MAXIMUM, rng=1)
            assert isinstance(selected, Population)
            assert len(selected) == count
            assert all(p in population.phenotypes for p in selected)

    @pytest.mark.parametrize('selector', ALL_SELECTORS, ids=lambda s: type(s).__name__)
    def test_deterministic_for_fixed_seed(self, selector, population):
        for optimize in Optimize:
            a = selector.select(population, 20, optimize, np.random.default_rng(123))
            b = selector.select(population, 20, optimize, np.random.default_rng(123))
            assert a == b

    @pytest.mark.parametrize('selector', ALL_SELECTORS, ids=lambda s: type(s).__name__)
    def test_requires_evaluated_population(self, selector, population):
        unevaluated = population.with_replaced(0, Phenotype(population[0].genotype, 0))
        with pytest.raises(ValueError):
            selector.select(unevaluated, 3, Optimize.MAXIMUM, rng=1)

    @pytest.mark.parametrize('selector', ALL_SELECTORS, ids=lambda s: type(s).__name__)
    def test_empty_population(self, selector):
        assert len(selector.select(Population(), 0, Optimize.MAXIMUM, rng=1)) == 0
        with pytest.raises(ValueError):
            selector.select(Population(), 1, Optimize.MAXIMUM, rng=1)

    def test_negative_count(self, population):
        with pytest.raises(ValueError):
            TournamentSelector().select(population, -1)


class TestTruncationSelector:
    """Tests for TruncationSelector."""

    def test_top_n(self, population):
        selected = TruncationSelector().select(population, 3, Optimize.MAXIMUM)
        assert [p.fitness for p in selected] == [9.0, 8.0, 7.0]

    def test_minimize(self, population):
        selected = TruncationSelector().select(population, 3, Optimize.MINIMUM)
        assert [p.fitness for p in selected] == [0.0, 1.0, 2.0]

    def test_stable_ties(self):
        population = make_population([1.0, 2.0, 2.0, 1.0])
        selected = TruncationSelector().select(population, 2, Optimize.MAXIMUM)
        assert selected[0] is population[1]
        assert selected[1] is population[2]

    def test_cycles_when_count_exceeds_candidates(self, population):
        selected = TruncationSelector(max_count=2).select(population, 5, Optimize.MAXIMUM)
        assert [p.fitness for p in selected] == [9.0, 8.0, 9.0, 8.0, 9.0]

    def test_invalid_max_count(self):
        with pytest.raises(ConfigurationError):
            TruncationSelector(max_count=0)


class TestTournamentSelector:
    """Tests for TournamentSelector."""

    def test_large_tournament_picks_best(self, population):
        selected = TournamentSelector(size=100).select(population, 10, Optimize.MAXIMUM, rng=0)
        # 100 draws out of 10 individuals almost surely include the best one
        assert Counter(p.fitness for p in selected)[9.0] >= 9

    def test_size_one_is_uniform(self, population):
        selected = TournamentSelector(size=1).select(population, 2000, Optimize.MAXIMUM, rng=0)
        counts = Counter(p.fitness for p in selected)
        assert len(counts) == 10
        assert min(counts.values()) > 120

    def test_invalid_size(self):
        with pytest.raises(ConfigurationError):
            TournamentSelector(size=0)


class TestProbabilitySelectors:
    """Tests for roulette, SUS and rank selection."""

    def test_roulette_probabilities_sum_to_one(self, population):
        for optimize in Optimize:
            p = RouletteWheelSelector().probabilities(population, optimize)
            assert p.sum() == pytest.approx(1.0)
            assert (p >= 0).all()

    def test_roulette_maximize_proportional(self):
        population = make_population([1.0, 3.0])
        p = RouletteWheelSelector().probabilities(population, Optimize.MAXIMUM)
        assert p == pytest.approx([0.25, 0.75])

    def test_roulette_minimize_inverts(self):
        population = make_population([1.0, 3.0, 2.0])
        p = RouletteWheelSelector().probabilities(population, Optimize.MINIMUM)
        # Weights max - f = [2, 0, 1]
        assert p == pytest.approx([2 / 3, 0.0, 1 / 3])

    def test_roulette_negative_fitness_shifted(self):
        population = make_population([-2.0, 0.0, 2.0])
        p = RouletteWheelSelector().probabilities(population, Optimize.MAXIMUM)
        assert p == pytest.approx([0.0, 2 / 6, 4 / 6])

    def test_roulette_uniform_fallback(self):
        population = make_population([4.0, 4.0, 4.0, 4.0])
        for optimize in Optimize:
            p = RouletteWheelSelector().probabilities(population, optimize)
            assert p == pytest.approx([0.25] * 4)

    def test_roulette_all_zero_fitness(self):
        population = make_population([0.0, 0.0])
        p = RouletteWheelSelector().probabilities(population, Optimize.MAXIMUM)
        assert p == pytest.approx([0.5, 0.5])

    def test_sus_spread(self):
        population = make_population([1.0, 1.0, 1.0, 1.0])
        selected = StochasticUniversalSelector().select(population, 8, Optimize.MAXIMUM, rng=5)
        counts = Counter(id(p) for p in selected)
        # Evenly spaced pointers give each equal-weight individual exactly 2 copies
        assert sorted(counts.values()) == [2, 2, 2, 2]

    def test_sus_never_selects_zero_weight(self):
        population = make_population([0.0, 5.0, 5.0])
        selected = StochasticUniversalSelector().select(population, 30, Optimize.MAXIMUM, rng=2)
        assert all(p.fitness == 5.0 for p in selected)

    def test_linear_rank_orders_probabilities(self, population):
        p = LinearRankSelector().probabilities(population, Optimize.MAXIMUM)
        fitness = population.fitness_values()
        best = fitness.index(max(fitness))
        worst = fitness.index(min(fitness))
        assert p.sum() == pytest.approx(1.0)
        assert p[best] == p.max()
        assert p[worst] == p.min()

        p_min = LinearRankSelector().probabilities(population, Optimize.MINIMUM)
        assert p_min[worst] == p_min.max()

    def test_linear_rank_single_individual(self):
        population = make_population([3.0])
        selected = LinearRankSelector().select(population, 4, Optimize.MAXIMUM, rng=1)
        assert len(selected) == 4

    def test_linear_rank_invalid_nminus(self):
        with pytest.raises(ConfigurationError):
            LinearRankSelector(nminus=1.5)


class TestEliteSelector:
    """Tests for EliteSelector."""

    def test_elites_first(self, population):
        selected = EliteSelector(2).select(population, 6, Optimize.MAXIMUM, rng=3)
        assert [p.fitness for p in selected[:2]] == [9.0, 8.0]
        assert len(selected) == 6

    def test_count_below_elite_count(self, population):
        selected = EliteSelector(5).select(population, 2, Optimize.MINIMUM, rng=3)
        assert [p.fitness for p in selected] == [0.0, 1.0]

    def test_custom_non_elite_selector(self, population):
        selector = EliteSelector(1, TruncationSelector())
        selected = selector.select(population, 3, Optimize.MAXIMUM, rng=3)
        assert [p.fitness for p in selected] == [9.0, 9.0, 8.0]

    def test_invalid_elite_count(self):
        with pytest.raises(ConfigurationError):
            EliteSelector(0)
