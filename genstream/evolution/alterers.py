"""
Alteration operators: mutation and crossover.

An alterer transforms a population of offspring and reports how many genes it
changed. Altered individuals become new, unevaluated phenotypes born in the
current generation; untouched individuals are passed through with their
fitness intact. No alterer ever returns an invalid chromosome: positional
results are rebuilt with ``chromosome.repair`` and the permutation crossovers
construct valid permutations directly.

Random draw order is fixed so seeded runs are reproducible:

- Mutators: per chromosome, one uniform draw per gene position, then the
  replacement draws for each hit in position order.
- Crossovers: per individual, one uniform draw; on a hit the mate index, then
  the chromosome index, then the operator's own cut points or masks.
- CompositeAlterer: stages run in configured order on the shared generator.
"""

from abc import ABC, abstractmethod
from typing import Any, Iterable, List, NamedTuple, Sequence, Tuple

import numpy as np

from ..core.chromosomes import BaseChromosome, PermutationChromosome
from ..core.errors import ConfigurationError
from ..core.genes import BitGene, IntegerGene, RandomSource, as_generator, is_numeric_gene
from ..core.genotype import Genotype
from ..core.phenotype import Phenotype, Population


class AltererResult(NamedTuple):
    """Altered population and number of altered genes."""
    population: Population
    alterations: int


def _check_probability(probability: float) -> float:
    if not 0.0 <= probability <= 1.0:
        raise ConfigurationError(f"Probability {probability} outside [0, 1]")
    return float(probability)


def _as_population(population: Iterable[Phenotype]) -> Population:
    if isinstance(population, Population):
        return population
    return Population(population)


class Alterer(ABC):
    """Base class for alteration strategies."""

    @abstractmethod
    def alter(
        self,
        population: Iterable[Phenotype],
        generation: int,
        rng: RandomSource = None,
    ) -> AltererResult:
        """
        Alter a population of offspring.

        Args:
            population: Phenotypes to alter
            generation: Generation the altered phenotypes are born in
            rng: Seed or numpy Generator

        Returns:
            AltererResult(population, alterations)
        """

    @staticmethod
    def of(*alterers: 'Alterer') -> 'Alterer':
        """Combine alterers into one, applied in the given order."""
        if len(alterers) == 1:
            return alterers[0]
        return CompositeAlterer(alterers)

    def and_then(self, other: 'Alterer') -> 'CompositeAlterer':
        return CompositeAlterer([self, other])


def _changed(before: BaseChromosome, after: BaseChromosome) -> int:
    """Number of gene positions whose value differs."""
    return sum(1 for x, y in zip(before, after) if x != y)


class CompositeAlterer(Alterer):
    """Apply a fixed sequence of alterers and sum their counts."""

    def __init__(self, alterers: Iterable[Alterer]):
        flattened: List[Alterer] = []
        for alterer in alterers:
            if isinstance(alterer, CompositeAlterer):
                flattened.extend(alterer.alterers)
            elif isinstance(alterer, Alterer):
                flattened.append(alterer)
            else:
                raise ConfigurationError(f"Not an Alterer: {alterer!r}")
        self.alterers: Tuple[Alterer, ...] = tuple(flattened)

    def alter(self, population, generation, rng=None):
        gen = as_generator(rng)
        population = _as_population(population)
        total = 0
        for alterer in self.alterers:
            population, count = alterer.alter(population, generation, gen)
            total += count
        return AltererResult(population, total)

    def __repr__(self) -> str:
        return f"CompositeAlterer({list(self.alterers)!r})"


# =============================================================================
# Mutation Operators
# =============================================================================

class Mutator(Alterer):
    """
    Replace each gene, independently with the given probability, by a new
    random gene of the same domain.

    Permutation chromosomes are rebuilt through ``repair``, so a replaced
    index that would duplicate another position is resolved back into a
    valid permutation. SwapMutator is the natural choice for permutations.

    The reported count is the number of gene positions whose value actually
    changed. An individual whose draws leave every gene as it was is passed
    through with its fitness.

    Args:
        probability: Per-gene mutation probability
    """

    def __init__(self, probability: float = 0.01):
        self.probability = _check_probability(probability)

    def alter(self, population, generation, rng=None):
        gen = as_generator(rng)
        population = _as_population(population)

        altered = []
        total = 0
        for phenotype in population:
            genotype, count = self._mutate_genotype(phenotype.genotype, gen)
            if count:
                altered.append(Phenotype(genotype, generation))
                total += count
            else:
                altered.append(phenotype)
        return AltererResult(Population(altered), total)

    def _mutate_genotype(self, genotype: Genotype, rng: np.random.Generator) -> Tuple[Genotype, int]:
        chromosomes = []
        total = 0
        for chromosome in genotype:
            mutated, count = self._mutate_chromosome(chromosome, rng)
            chromosomes.append(mutated)
            total += count
        if not total:
            return genotype, 0
        return Genotype(chromosomes), total

    def _mutate_chromosome(
        self,
        chromosome: BaseChromosome,
        rng: np.random.Generator,
    ) -> Tuple[BaseChromosome, int]:
        hits = np.flatnonzero(rng.random(len(chromosome)) < self.probability)
        if hits.size == 0:
            return chromosome, 0

        genes = list(chromosome.genes)
        for position in hits:
            genes[position] = self._mutate_gene(genes[position], rng)
        return _counted(chromosome, chromosome.repair(genes))

    def _mutate_gene(self, gene: Any, rng: np.random.Generator) -> Any:
        return gene.new_instance(rng)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(probability={self.probability})"


def _counted(before: BaseChromosome, after: BaseChromosome) -> Tuple[BaseChromosome, int]:
    """Pair a mutated chromosome with its changed-gene count; unchanged keeps the original."""
    count = _changed(before, after)
    if not count:
        return before, 0
    return after, count


class BitFlipMutator(Mutator):
    """Flip bit genes; other gene kinds get a new random value."""

    def _mutate_gene(self, gene, rng):
        if isinstance(gene, BitGene):
            return gene.flipped()
        return gene.new_instance(rng)


class GaussianMutator(Mutator):
    """
    Gaussian perturbation for numeric genes.

    The new allele is drawn from N(allele, sigma * (max - min)) and clamped to
    the gene's bounds; integer genes are rounded. Non-numeric genes get a new
    random value.

    Args:
        probability: Per-gene mutation probability
        sigma: Standard deviation as a fraction of the gene's range
    """

    def __init__(self, probability: float = 0.01, sigma: float = 0.25):
        super().__init__(probability)
        if sigma <= 0:
            raise ConfigurationError(f"sigma must be positive, got {sigma}")
        self.sigma = sigma

    def _mutate_gene(self, gene, rng):
        if not is_numeric_gene(gene):
            return gene.new_instance(rng)
        std = self.sigma * (gene.max - gene.min)
        value = float(np.clip(rng.normal(gene.allele, std) if std > 0 else gene.allele, gene.min, gene.max))
        if isinstance(gene, IntegerGene):
            return gene.with_allele(int(round(value)))
        return gene.with_allele(value)


class SwapMutator(Mutator):
    """
    Swap each gene, with the given probability, with a random other position
    of the same chromosome. Keeps permutations valid without repair.
    """

    def _mutate_chromosome(self, chromosome, rng):
        length = len(chromosome)
        hits = np.flatnonzero(rng.random(length) < self.probability)
        if hits.size == 0 or length < 2:
            return chromosome, 0

        genes = list(chromosome.genes)
        for position in hits:
            other = int(rng.integers(length - 1))
            if other >= position:
                other += 1
            genes[position], genes[other] = genes[other], genes[position]
        return _counted(chromosome, chromosome.with_genes(genes))


# =============================================================================
# Crossover Operators
# =============================================================================

class Crossover(Alterer):
    """
    Base class for pairwise recombination.

    Every individual is chosen with the given probability; a chosen
    individual is paired with a uniformly drawn different mate, one
    chromosome index is drawn, and both children replace their parents in
    the working population.

    Args:
        probability: Per-individual crossover probability
    """

    def __init__(self, probability: float = 0.05):
        self.probability = _check_probability(probability)

    def alter(self, population, generation, rng=None):
        gen = as_generator(rng)
        phenotypes = list(_as_population(population))
        n = len(phenotypes)
        if n < 2:
            return AltererResult(Population(phenotypes), 0)

        total = 0
        for i in range(n):
            if gen.random() >= self.probability:
                continue
            j = int(gen.integers(n - 1))
            if j >= i:
                j += 1

            genotype_a = phenotypes[i].genotype
            genotype_b = phenotypes[j].genotype
            c = int(gen.integers(min(len(genotype_a), len(genotype_b))))
            parent_a, parent_b = genotype_a[c], genotype_b[c]
            if type(parent_a) is not type(parent_b):
                raise TypeError(
                    f"Cannot recombine {type(parent_a).__name__} with {type(parent_b).__name__}"
                )

            child_a, child_b = self._recombine(parent_a, parent_b, gen)
            count = _changed(parent_a, child_a) + _changed(parent_b, child_b)
            if not count:
                continue
            phenotypes[i] = Phenotype(genotype_a.with_chromosome(c, child_a), generation)
            phenotypes[j] = Phenotype(genotype_b.with_chromosome(c, child_b), generation)
            total += count

        return AltererResult(Population(phenotypes), total)

    @abstractmethod
    def _recombine(
        self,
        a: BaseChromosome,
        b: BaseChromosome,
        rng: np.random.Generator,
    ) -> Tuple[BaseChromosome, BaseChromosome]:
        ...

    def __repr__(self) -> str:
        return f"{type(self).__name__}(probability={self.probability})"


class SinglePointCrossover(Crossover):
    """
    Swap the gene tails after one random cut point.

    Example:
        Parent 1: 1111|111
        Parent 2: 0000|000
        Cut at 4:
        Child 1:  1111|000
        Child 2:  0000|111
    """

    def _recombine(self, a, b, rng):
        length = min(len(a), len(b))
        if length < 2:
            return a, b
        point = int(rng.integers(1, length))
        genes_a, genes_b = list(a.genes), list(b.genes)
        genes_a[point:length], genes_b[point:length] = genes_b[point:length], genes_a[point:length]
        return a.repair(genes_a), b.repair(genes_b)


class MultiPointCrossover(Crossover):
    """
    Swap alternating segments between ``points`` distinct cut points.

    Args:
        probability: Per-individual crossover probability
        points: Number of cut points
    """

    def __init__(self, probability: float = 0.05, points: int = 2):
        super().__init__(probability)
        if points < 1:
            raise ConfigurationError(f"points must be positive, got {points}")
        self.points = points

    def _recombine(self, a, b, rng):
        length = min(len(a), len(b))
        k = min(self.points, length - 1)
        if k < 1:
            return a, b
        cuts = sorted(int(x) for x in rng.choice(np.arange(1, length), size=k, replace=False))

        genes_a, genes_b = list(a.genes), list(b.genes)
        for index in range(0, k, 2):
            start = cuts[index]
            end = cuts[index + 1] if index + 1 < k else length
            genes_a[start:end], genes_b[start:end] = genes_b[start:end], genes_a[start:end]
        return a.repair(genes_a), b.repair(genes_b)


class UniformCrossover(Crossover):
    """
    Swap each gene position independently with ``swap_probability``.

    Args:
        probability: Per-individual crossover probability
        swap_probability: Per-position swap probability
    """

    def __init__(self, probability: float = 0.05, swap_probability: float = 0.5):
        super().__init__(probability)
        self.swap_probability = _check_probability(swap_probability)

    def _recombine(self, a, b, rng):
        length = min(len(a), len(b))
        mask = rng.random(length) < self.swap_probability
        genes_a, genes_b = list(a.genes), list(b.genes)
        for position in np.flatnonzero(mask):
            genes_a[position], genes_b[position] = genes_b[position], genes_a[position]
        return a.repair(genes_a), b.repair(genes_b)


class ArithmeticCrossover(Crossover):
    """
    Blend numeric chromosomes: ``w*a + (1-w)*b`` and ``(1-w)*a + w*b`` with
    one uniform weight ``w`` per pair. Integer genes are rounded. Chromosomes
    of non-numeric genes are returned unchanged.
    """

    def _recombine(self, a, b, rng):
        if not (is_numeric_gene(a.gene) and is_numeric_gene(b.gene)):
            return a, b
        length = min(len(a), len(b))
        w = float(rng.random())

        genes_a, genes_b = list(a.genes), list(b.genes)
        for position in range(length):
            x, y = genes_a[position], genes_b[position]
            genes_a[position] = _blend(x, w * x.allele + (1 - w) * y.allele)
            genes_b[position] = _blend(y, (1 - w) * x.allele + w * y.allele)
        return a.repair(genes_a), b.repair(genes_b)


def _blend(gene, value: float):
    value = float(np.clip(value, gene.min, gene.max))
    if isinstance(gene, IntegerGene):
        return gene.with_allele(int(round(value)))
    return gene.with_allele(value)


# =============================================================================
# Permutation Crossovers
# =============================================================================

def _require_permutations(a: BaseChromosome, b: BaseChromosome, name: str) -> None:
    if not (isinstance(a, PermutationChromosome) and isinstance(b, PermutationChromosome)):
        raise TypeError(f"{name} requires PermutationChromosomes, got {type(a).__name__}")
    if a.valid_alleles != b.valid_alleles:
        raise TypeError(f"{name} requires permutations over the same alleles")


def _segment(length: int, rng: np.random.Generator) -> Tuple[int, int]:
    start, end = sorted(int(x) for x in rng.choice(length + 1, size=2, replace=False))
    return start, end


class PartiallyMatchedCrossover(Crossover):
    """
    Partially matched crossover (PMX).

    The children exchange a random segment; values outside the segment that
    collide with it are mapped through the segment's position-wise
    correspondence until they no longer collide.
    """

    def _recombine(self, a, b, rng):
        _require_permutations(a, b, 'PartiallyMatchedCrossover')
        length = len(a)
        if length < 2:
            return a, b
        start, end = _segment(length, rng)
        p1, p2 = list(a.indices()), list(b.indices())
        return (
            a.with_indices(_pmx_child(p1, p2, start, end)),
            b.with_indices(_pmx_child(p2, p1, start, end)),
        )


def _pmx_child(keep: List[int], donor: List[int], start: int, end: int) -> List[int]:
    child = list(keep)
    child[start:end] = donor[start:end]
    mapping = {donor[k]: keep[k] for k in range(start, end)}
    for position in list(range(0, start)) + list(range(end, len(keep))):
        value = child[position]
        while value in mapping:
            value = mapping[value]
        child[position] = value
    return child


class OrderCrossover(Crossover):
    """
    Order crossover (OX1).

    Each child keeps a random segment of one parent and fills the remaining
    positions, starting after the segment and wrapping around, with the other
    parent's values in their relative order.
    """

    def _recombine(self, a, b, rng):
        _require_permutations(a, b, 'OrderCrossover')
        length = len(a)
        if length < 2:
            return a, b
        start, end = _segment(length, rng)
        p1, p2 = list(a.indices()), list(b.indices())
        return (
            a.with_indices(_ox_child(p1, p2, start, end)),
            b.with_indices(_ox_child(p2, p1, start, end)),
        )


def _ox_child(keep: List[int], donor: List[int], start: int, end: int) -> List[int]:
    n = len(keep)
    child = [None] * n
    child[start:end] = keep[start:end]
    used = set(keep[start:end])
    order = [donor[(end + k) % n] for k in range(n)]
    fill = [value for value in order if value not in used]
    positions = [(end + k) % n for k in range(n - (end - start))]
    for position, value in zip(positions, fill):
        child[position] = value
    return child


class CycleCrossover(Crossover):
    """
    Cycle crossover (CX).

    Positions are partitioned into cycles of the parents' value mapping;
    children take alternate cycles from alternate parents, so every value
    keeps a position it held in one of the parents. Uses no random draws
    beyond the pairing.
    """

    def _recombine(self, a, b, rng):
        _require_permutations(a, b, 'CycleCrossover')
        p1, p2 = list(a.indices()), list(b.indices())
        c1, c2 = _cx_children(p1, p2)
        return a.with_indices(c1), b.with_indices(c2)


def _cx_children(p1: Sequence[int], p2: Sequence[int]) -> Tuple[List[int], List[int]]:
    n = len(p1)
    position_in_p1 = {value: i for i, value in enumerate(p1)}
    c1, c2 = [None] * n, [None] * n
    visited = [False] * n

    cycle = 0
    for start in range(n):
        if visited[start]:
            continue
        i = start
        while not visited[i]:
            visited[i] = True
            if cycle % 2 == 0:
                c1[i], c2[i] = p1[i], p2[i]
            else:
                c1[i], c2[i] = p2[i], p1[i]
            i = position_in_p1[p2[i]]
        cycle += 1
    return c1, c2
