"""
Tests for mutation and crossover operators.

Run with: python -m pytest tests/test_alterers.py -v
"""

import pytest
import numpy as np

from genstream.core.chromosomes import (
    BitChromosome,
    IntegerChromosome,
    DoubleChromosome,
    PermutationChromosome,
)
from genstream.core.errors import ConfigurationError
from genstream.core.genes import DoubleGene, IntegerGene
from genstream.core.genotype import Genotype
from genstream.core.phenotype import Phenotype, Population
from genstream.evolution.alterers import (
    Alterer,
    CompositeAlterer,
    Mutator,
    BitFlipMutator,
    GaussianMutator,
    SwapMutator,
    SinglePointCrossover,
    MultiPointCrossover,
    UniformCrossover,
    ArithmeticCrossover,
    PartiallyMatchedCrossover,
    OrderCrossover,
    CycleCrossover,
)
from genstream.evolution.alterers import _cx_children, _ox_child, _pmx_child


def evaluated_population(genotypes, fitness=1.0):
    return Population(Phenotype(g, 0, fitness) for g in genotypes)


@pytest.fixture
def permutation_population():
    rng = np.random.default_rng(11)
    return evaluated_population(
        Genotype.of(PermutationChromosome.of_integer(20, rng=rng)) for _ in range(30)
    )


@pytest.fixture
def bit_population():
    rng = np.random.default_rng(12)
    return evaluated_population(Genotype.of(BitChromosome.of(16, rng=rng)) for _ in range(30))


PERMUTATION_ALTERERS = [
    PartiallyMatchedCrossover(1.0),
    OrderCrossover(1.0),
    CycleCrossover(1.0),
    SinglePointCrossover(1.0),
    MultiPointCrossover(1.0, points=3),
    UniformCrossover(1.0),
    Mutator(0.3),
    SwapMutator(0.3),
]


class TestPermutationSafety:
    """Every operator keeps permutation chromosomes bijective."""

    @pytest.mark.parametrize('alterer', PERMUTATION_ALTERERS, ids=lambda a: type(a).__name__)
    def test_bijection_preserved(self, alterer, permutation_population):
        rng = np.random.default_rng(3)
        population = permutation_population
        for generation in range(1, 6):
            population, _ = alterer.alter(population, generation, rng)
            assert len(population) == 30
            for phenotype in population:
                chromosome = phenotype.genotype.chromosome
                assert chromosome.is_valid()
                assert sorted(chromosome.indices()) == list(range(20))

    def test_pmx_child(self):
        child = _pmx_child([1, 2, 3, 4, 5, 6, 7, 8], [3, 7, 5, 1, 6, 8, 2, 4], 3, 6)
        assert child[3:6] == [1, 6, 8]
        assert sorted(child) == list(range(1, 9))

    def test_ox_child(self):
        child = _ox_child([0, 1, 2, 3, 4, 5, 6, 7], [7, 6, 5, 4, 3, 2, 1, 0], 2, 5)
        assert child[2:5] == [2, 3, 4]
        assert sorted(child) == list(range(8))
        # Remaining values follow the donor's order from the segment end
        assert [child[k % 8] for k in range(5, 10)] == [1, 0, 7, 6, 5]

    def test_cx_children(self):
        p1 = [0, 1, 2, 3, 4, 5, 6, 7]
        p2 = [1, 2, 0, 4, 3, 6, 7, 5]
        c1, c2 = _cx_children(p1, p2)
        assert sorted(c1) == list(range(8))
        assert sorted(c2) == list(range(8))
        for i in range(8):
            assert c1[i] in (p1[i], p2[i])
            assert {c1[i], c2[i]} == {p1[i], p2[i]}

    @pytest.mark.parametrize(
        'crossover',
        [PartiallyMatchedCrossover(1.0), OrderCrossover(1.0), CycleCrossover(1.0)],
        ids=lambda a: type(a).__name__,
    )
    def test_permutation_crossover_rejects_bits(self, crossover, bit_population):
        with pytest.raises(TypeError):
            crossover.alter(bit_population, 1, rng=0)


class TestMutators:
    """Tests for the mutators."""

    def test_zero_probability_is_noop(self, bit_population):
        population, count = Mutator(0.0).alter(bit_population, 1, rng=0)
        assert count == 0
        assert population == bit_population

    def test_bit_flip_all(self):
        population = evaluated_population([Genotype.of(BitChromosome.from_bits('1010'))])
        altered, count = BitFlipMutator(1.0).alter(population, 2, rng=0)
        assert count == 4
        phenotype = altered[0]
        assert phenotype.genotype.chromosome.to_bit_string() == '0101'
        assert not phenotype.is_evaluated
        assert phenotype.generation == 2

    def test_untouched_phenotypes_keep_fitness(self, bit_population):
        population, count = BitFlipMutator(0.02).alter(bit_population, 1, rng=5)
        changed = [a for a, b in zip(population, bit_population) if a is not b]
        assert all(not p.is_evaluated for p in changed)
        assert all(p.fitness == 1.0 for p in population if p not in changed)
        assert count >= len(changed)

    def test_mutator_keeps_bounds(self):
        rng = np.random.default_rng(4)
        population = evaluated_population(
            Genotype.of(IntegerChromosome.of(-3, 3, 10, rng=rng), DoubleChromosome.of(0.0, 1.0, 10, rng=rng))
            for _ in range(10)
        )
        for mutator in (Mutator(0.5), GaussianMutator(0.5, sigma=2.0)):
            altered, count = mutator.alter(population, 1, rng)
            assert count > 0
            for phenotype in altered:
                integers, doubles = phenotype.genotype
                assert all(-3 <= v <= 3 for v in integers.to_array())
                assert all(0.0 <= v <= 1.0 for v in doubles.to_array())

    def test_gaussian_rounds_integers(self):
        population = evaluated_population([Genotype.of(IntegerChromosome.of(0, 100, 20, rng=1))])
        altered, _ = GaussianMutator(1.0).alter(population, 1, rng=2)
        assert all(isinstance(g.allele, int) for g in altered[0].genotype.chromosome)

    def test_swap_mutator_keeps_multiset(self):
        chromosome = IntegerChromosome.of(0, 9, 30, rng=8)
        population = evaluated_population([Genotype.of(chromosome)])
        altered, count = SwapMutator(0.5).alter(population, 1, rng=9)
        assert count > 0
        assert sorted(altered[0].genotype.chromosome.to_array()) == sorted(chromosome.to_array())

    def test_count_matches_changed_genes(self):
        original = BitChromosome.from_bits('0' * 16)
        population = evaluated_population([Genotype.of(original)])
        for seed in range(10):
            altered, count = Mutator(1.0).alter(population, 1, rng=seed)
            bits = altered[0].genotype.chromosome.to_bit_string()
            assert count == bits.count('1')

    def test_unchanged_draws_keep_phenotype(self, bit_population):
        for seed in range(5):
            altered, count = Mutator(0.5).alter(bit_population, 1, rng=seed)
            total = 0
            for before, after in zip(bit_population, altered):
                diff = sum(
                    1 for x, y in zip(before.genotype.chromosome, after.genotype.chromosome) if x != y
                )
                total += diff
                if diff == 0:
                    assert after is before
                    assert after.fitness == 1.0
            assert count == total

    def test_swap_uses_distinct_positions(self):
        population = evaluated_population([Genotype.of(BitChromosome.from_bits('01'))])
        swapped = 0
        for seed in range(20):
            altered, count = SwapMutator(0.5).alter(population, 1, rng=seed)
            if altered[0].genotype.chromosome.to_bit_string() == '10':
                assert count == 2
                assert not altered[0].is_evaluated
                swapped += 1
            else:
                # No hit, or both positions swapped back
                assert count == 0
                assert altered[0] is population[0]
        assert swapped > 0

    def test_swap_of_equal_values_is_noop(self):
        chromosome = IntegerChromosome([IntegerGene(3, 0, 9)] * 5)
        population = evaluated_population([Genotype.of(chromosome)])
        altered, count = SwapMutator(1.0).alter(population, 1, rng=0)
        assert count == 0
        assert altered[0] is population[0]
        assert altered[0].fitness == 1.0

    def test_invalid_probability(self):
        with pytest.raises(ConfigurationError):
            Mutator(1.5)
        with pytest.raises(ConfigurationError):
            SinglePointCrossover(-0.1)
        with pytest.raises(ConfigurationError):
            GaussianMutator(0.1, sigma=0)


class TestCrossovers:
    """Tests for the positional and arithmetic crossovers."""

    def test_single_point_exchanges_tails(self):
        population = evaluated_population([
            Genotype.of(BitChromosome.from_bits('11111111')),
            Genotype.of(BitChromosome.from_bits('00000000')),
        ])
        altered, count = SinglePointCrossover(1.0).alter(population, 1, rng=0)
        a = altered[0].genotype.chromosome.to_bit_string()
        b = altered[1].genotype.chromosome.to_bit_string()
        assert a.count('1') + b.count('1') == 8
        assert a == ''.join('1' if c == '0' else '0' for c in b)
        assert a.startswith('1') or b.startswith('1')
        assert count > 0
        assert not altered[0].is_evaluated and not altered[1].is_evaluated

    def test_count_is_changed_positions(self):
        """Count is the number of changed gene positions over both children."""
        population = evaluated_population([
            Genotype.of(BitChromosome.from_bits('1111')),
            Genotype.of(BitChromosome.from_bits('0000')),
        ])
        _, count = SinglePointCrossover(1.0).alter(population, 1, np.random.default_rng(1))

        # Replay the draws: per individual a hit, the mate, the chromosome, the cut
        rng = np.random.default_rng(1)
        points = []
        for _ in range(2):
            rng.random()
            rng.integers(1)
            rng.integers(1)
            points.append(int(rng.integers(1, 4)))
        # Parents stay complementary, so every position after a cut changes in both children
        assert count == sum(2 * (4 - point) for point in points)

    def test_identical_parents_not_counted(self):
        genotype = Genotype.of(BitChromosome.from_bits('1010'))
        population = evaluated_population([genotype, genotype])
        altered, count = UniformCrossover(1.0).alter(population, 1, rng=0)
        assert count == 0
        assert all(p.is_evaluated for p in altered)

    def test_single_individual_is_noop(self, bit_population):
        altered, count = SinglePointCrossover(1.0).alter(bit_population[:1], 1, rng=0)
        assert count == 0
        assert altered == bit_population[:1]

    def test_arithmetic_blend_in_bounds(self):
        population = evaluated_population([
            Genotype.of(DoubleChromosome([DoubleGene(0.0, 0.0, 1.0)] * 3)),
            Genotype.of(DoubleChromosome([DoubleGene(1.0, 0.0, 1.0)] * 3)),
        ])
        altered, _ = ArithmeticCrossover(1.0).alter(population, 1, rng=4)
        a = altered[0].genotype.chromosome.to_array()
        b = altered[1].genotype.chromosome.to_array()
        assert np.allclose(a + b, 1.0)
        assert ((a >= 0.0) & (a <= 1.0)).all()

    def test_arithmetic_ignores_bits(self, bit_population):
        altered, count = ArithmeticCrossover(1.0).alter(bit_population, 1, rng=0)
        assert count == 0
        assert altered == bit_population

    def test_mismatched_chromosome_types(self):
        population = evaluated_population([
            Genotype.of(BitChromosome.from_bits('1010')),
            Genotype.of(IntegerChromosome.of(0, 1, 4, rng=0)),
        ])
        with pytest.raises(TypeError):
            SinglePointCrossover(1.0).alter(population, 1, rng=0)

    def test_multi_point_invalid_points(self):
        with pytest.raises(ConfigurationError):
            MultiPointCrossover(0.5, points=0)


class TestCompositeAlterer:
    """Tests for alterer composition."""

    def test_of_single_returns_itself(self):
        mutator = Mutator(0.1)
        assert Alterer.of(mutator) is mutator

    def test_flattens_and_sums(self, bit_population):
        composite = Alterer.of(SinglePointCrossover(0.5), BitFlipMutator(0.1)).and_then(SwapMutator(0.1))
        assert isinstance(composite, CompositeAlterer)
        assert len(composite.alterers) == 3

        rng_a = np.random.default_rng(21)
        altered, total = composite.alter(bit_population, 1, rng_a)

        rng_b = np.random.default_rng(21)
        population = bit_population
        expected = 0
        for stage in composite.alterers:
            population, count = stage.alter(population, 1, rng_b)
            expected += count
        assert total == expected
        assert altered == population

    def test_rejects_non_alterers(self):
        with pytest.raises(ConfigurationError):
            CompositeAlterer([Mutator(0.1), 'swap'])

    def test_deterministic_for_fixed_seed(self, permutation_population):
        alterer = Alterer.of(PartiallyMatchedCrossover(0.5), SwapMutator(0.1))
        a = alterer.alter(permutation_population, 1, np.random.default_rng(7))
        b = alterer.alter(permutation_population, 1, np.random.default_rng(7))
        assert a == b


