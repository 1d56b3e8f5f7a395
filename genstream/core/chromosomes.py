"""
Chromosome representations.

A chromosome is an immutable, non-empty, ordered sequence of genes of one
kind. Operators only rely on the shared capability set:

- len(chromosome), chromosome[i], iteration, ``genes``
- is_valid(): representation-specific validity
- new_instance(rng): random valid chromosome of the same length and domain
- with_genes(genes): chromosome of the same kind built from other genes
- repair(genes): like with_genes, but fixes representation constraints
  (duplicate permutation indices) instead of rejecting them
- to_record(): nested tagged value for serialisation collaborators

Example:
    rng = np.random.default_rng(42)
    bits = BitChromosome.of(10, rng=rng)
    route = PermutationChromosome.of_integer(20, rng=rng)
"""

from typing import Any, Dict, Iterable, Iterator, List, Optional, Sequence, Tuple, Type, Union

import numpy as np

from .errors import EncodingError
from .genes import (
    BitGene,
    DoubleGene,
    EnumGene,
    Gene,
    IntegerGene,
    RandomSource,
    as_generator,
)


class BaseChromosome:
    """Shared sequence behaviour for the concrete chromosome kinds."""

    kind: str = ''
    gene_type: Type = object

    def __init__(self, genes: Iterable[Gene]):
        genes = tuple(genes)
        if not genes:
            raise EncodingError(f"{type(self).__name__} must contain at least one gene")
        for gene in genes:
            if not isinstance(gene, self.gene_type):
                raise EncodingError(
                    f"{type(self).__name__} only holds {self.gene_type.__name__}, "
                    f"got {type(gene).__name__}"
                )
        self._genes = genes
        self._check_domain()

    def _check_domain(self) -> None:
        """Raise EncodingError if the genes violate the representation."""

    @property
    def genes(self) -> Tuple[Gene, ...]:
        return self._genes

    @property
    def gene(self) -> Gene:
        """First gene of the chromosome."""
        return self._genes[0]

    def __len__(self) -> int:
        return len(self._genes)

    def __getitem__(self, index):
        return self._genes[index]

    def __iter__(self) -> Iterator[Gene]:
        return iter(self._genes)

    def __eq__(self, other: Any) -> bool:
        if type(other) is not type(self):
            return NotImplemented
        return self._genes == other._genes

    def __hash__(self) -> int:
        return hash((type(self).__name__, self._genes))

    def __repr__(self) -> str:
        return f"{type(self).__name__}({list(self._genes)!r})"

    def is_valid(self) -> bool:
        return all(gene.is_valid() for gene in self._genes)

    def alleles(self) -> List[Any]:
        """Plain allele values in order."""
        return [gene.allele for gene in self._genes]

    def with_genes(self, genes: Iterable[Gene]) -> 'BaseChromosome':
        return type(self)(genes)

    def repair(self, genes: Iterable[Gene]) -> 'BaseChromosome':
        return self.with_genes(genes)

    def new_instance(self, rng: RandomSource = None) -> 'BaseChromosome':
        gen = as_generator(rng)
        return self.with_genes(gene.new_instance(gen) for gene in self._genes)

    # -------------------------------------------------------------------------
    # Record conversion
    # -------------------------------------------------------------------------

    def _attributes(self) -> Dict[str, Any]:
        return {}

    def _gene_value(self, gene: Gene) -> Any:
        return gene.allele

    def to_record(self) -> Dict[str, Any]:
        """Decompose into ``{'kind', 'attributes', 'values'}``."""
        return {
            'kind': self.kind,
            'attributes': self._attributes(),
            'values': [self._gene_value(g) for g in self._genes],
        }

    @classmethod
    def _from_values(cls, attributes: Dict[str, Any], values: Sequence[Any]) -> 'BaseChromosome':
        raise NotImplementedError

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> 'BaseChromosome':
        if record.get('kind') != cls.kind:
            raise EncodingError(f"Expected a '{cls.kind}' record, got {record.get('kind')!r}")
        try:
            attributes = record.get('attributes') or {}
            values = list(record['values'])
        except (KeyError, TypeError) as e:
            raise EncodingError(f"Malformed chromosome record: {record!r}") from e
        return cls._from_values(attributes, values)


# =============================================================================
# Bit chromosome
# =============================================================================

class BitChromosome(BaseChromosome):
    """Chromosome of BitGenes."""

    kind = 'bit'
    gene_type = BitGene

    def __init__(self, genes: Iterable[BitGene], p: float = 0.5):
        if not 0.0 <= p <= 1.0:
            raise EncodingError(f"Bit probability {p} outside [0, 1]")
        self.p = p
        super().__init__(genes)

    @classmethod
    def of(cls, length: int, p: float = 0.5, rng: RandomSource = None) -> 'BitChromosome':
        """
        Create a random bit chromosome.

        Args:
            length: Number of bits
            p: Probability of a set bit
            rng: Seed or numpy Generator

        Returns:
            A new BitChromosome
        """
        if length < 1:
            raise EncodingError(f"Chromosome length must be positive, got {length}")
        bits = as_generator(rng).random(length) < p
        return cls((BitGene(bool(b)) for b in bits), p=p)

    @classmethod
    def from_bits(cls, bits: Union[str, Sequence[Any]]) -> 'BitChromosome':
        """Build from a '0101' string or a sequence of truthy values."""
        if isinstance(bits, str):
            if set(bits) - {'0', '1'}:
                raise EncodingError(f"Not a bit string: {bits!r}")
            return cls(BitGene(c == '1') for c in bits)
        return cls(BitGene(bool(b)) for b in bits)

    def with_genes(self, genes: Iterable[BitGene]) -> 'BitChromosome':
        return BitChromosome(genes, p=self.p)

    def new_instance(self, rng: RandomSource = None) -> 'BitChromosome':
        return BitChromosome.of(len(self), p=self.p, rng=rng)

    def bit_count(self) -> int:
        """Number of set bits."""
        return sum(1 for gene in self._genes if gene.allele)

    def to_bit_string(self) -> str:
        return ''.join('1' if gene.allele else '0' for gene in self._genes)

    def _attributes(self) -> Dict[str, Any]:
        return {'p': self.p}

    @classmethod
    def _from_values(cls, attributes, values):
        return cls((BitGene(v) for v in values), p=attributes.get('p', 0.5))

    def __repr__(self) -> str:
        return f"BitChromosome({self.to_bit_string()})"


# =============================================================================
# Bounded numeric chromosomes
# =============================================================================

class _BoundedChromosome(BaseChromosome):
    """Numeric chromosome whose genes all share one [min, max] domain."""

    def _check_domain(self) -> None:
        first = self._genes[0]
        for gene in self._genes[1:]:
            if (gene.min, gene.max) != (first.min, first.max):
                raise EncodingError(
                    f"{type(self).__name__} genes must share bounds "
                    f"[{first.min}, {first.max}], got [{gene.min}, {gene.max}]"
                )

    @property
    def min(self):
        return self._genes[0].min

    @property
    def max(self):
        return self._genes[0].max

    def _attributes(self) -> Dict[str, Any]:
        return {'min': self.min, 'max': self.max}

    @classmethod
    def _from_values(cls, attributes, values):
        try:
            low, high = attributes['min'], attributes['max']
        except KeyError as e:
            raise EncodingError(f"'{cls.kind}' record needs min and max attributes") from e
        return cls(cls.gene_type(v, low, high) for v in values)


class IntegerChromosome(_BoundedChromosome):
    """Chromosome of IntegerGenes with shared inclusive bounds."""

    kind = 'integer'
    gene_type = IntegerGene

    @classmethod
    def of(cls, min: int, max: int, length: int, rng: RandomSource = None) -> 'IntegerChromosome':
        if length < 1:
            raise EncodingError(f"Chromosome length must be positive, got {length}")
        if min > max:
            raise EncodingError(f"IntegerChromosome bounds inverted: [{min}, {max}]")
        values = as_generator(rng).integers(min, max, size=length, endpoint=True)
        return cls(IntegerGene(int(v), min, max) for v in values)

    def to_array(self) -> np.ndarray:
        return np.array([gene.allele for gene in self._genes], dtype=np.int64)


class DoubleChromosome(_BoundedChromosome):
    """Chromosome of DoubleGenes with shared inclusive bounds."""

    kind = 'double'
    gene_type = DoubleGene

    @classmethod
    def of(cls, min: float, max: float, length: int, rng: RandomSource = None) -> 'DoubleChromosome':
        if length < 1:
            raise EncodingError(f"Chromosome length must be positive, got {length}")
        if min > max:
            raise EncodingError(f"DoubleChromosome bounds inverted: [{min}, {max}]")
        values = as_generator(rng).uniform(min, max, size=length)
        return cls(DoubleGene(float(v), min, max) for v in values)

    def to_array(self) -> np.ndarray:
        return np.array([gene.allele for gene in self._genes], dtype=np.float64)


# =============================================================================
# Permutation chromosome
# =============================================================================

class PermutationChromosome(BaseChromosome):
    """
    Chromosome of EnumGenes forming a permutation of a fixed allele tuple.

    Every allele index 0..n-1 appears exactly once, on every construction
    path. Crossover and mutation results are rebuilt through ``repair``,
    which keeps the bijection.
    """

    kind = 'permutation'
    gene_type = EnumGene

    def _check_domain(self) -> None:
        alleles = self._genes[0].alleles
        for gene in self._genes[1:]:
            if gene.alleles is not alleles and gene.alleles != alleles:
                raise EncodingError("PermutationChromosome genes must share one allele tuple")
        if len(self._genes) != len(alleles):
            raise EncodingError(
                f"PermutationChromosome length {len(self._genes)} does not match "
                f"{len(alleles)} alleles"
            )
        indices = {gene.allele_index for gene in self._genes}
        if len(indices) != len(self._genes):
            raise EncodingError(
                f"Not a permutation, duplicate indices in {self.indices()!r}"
            )

    @classmethod
    def of(cls, alleles: Sequence[Any], rng: RandomSource = None) -> 'PermutationChromosome':
        """
        Create a random permutation of the given alleles.

        Args:
            alleles: Distinct allele values
            rng: Seed or numpy Generator

        Returns:
            A new PermutationChromosome
        """
        alleles = tuple(alleles)
        if not alleles:
            raise EncodingError("PermutationChromosome needs at least one allele")
        if len(set(alleles)) != len(alleles):
            raise EncodingError("Permutation alleles must be distinct")
        order = as_generator(rng).permutation(len(alleles))
        return cls(EnumGene(int(i), alleles) for i in order)

    @classmethod
    def of_integer(cls, n: int, rng: RandomSource = None) -> 'PermutationChromosome':
        """Random permutation of the integers 0..n-1."""
        if n < 1:
            raise EncodingError(f"Permutation length must be positive, got {n}")
        return cls.of(range(n), rng=rng)

    @property
    def valid_alleles(self) -> Tuple[Any, ...]:
        return self._genes[0].alleles

    def indices(self) -> Tuple[int, ...]:
        return tuple(gene.allele_index for gene in self._genes)

    def is_valid(self) -> bool:
        n = len(self.valid_alleles)
        return len(self._genes) == n and sorted(self.indices()) == list(range(n))

    def new_instance(self, rng: RandomSource = None) -> 'PermutationChromosome':
        alleles = self.valid_alleles
        order = as_generator(rng).permutation(len(alleles))
        return PermutationChromosome(EnumGene(int(i), alleles) for i in order)

    def with_indices(self, indices: Iterable[int]) -> 'PermutationChromosome':
        alleles = self.valid_alleles
        return PermutationChromosome(EnumGene(int(i), alleles) for i in indices)

    def repair(self, genes: Iterable[EnumGene]) -> 'PermutationChromosome':
        """
        Rebuild a permutation from genes that may contain duplicates.

        The first occurrence of each index is kept; later duplicates are
        replaced by the missing indices in ascending order.
        """
        indices = [gene.allele_index for gene in genes]
        n = len(self.valid_alleles)
        if len(indices) != n:
            raise EncodingError(f"Cannot repair {len(indices)} genes into a permutation of {n}")

        seen = set()
        duplicates = []
        for position, index in enumerate(indices):
            if index in seen:
                duplicates.append(position)
            else:
                seen.add(index)
        missing = iter(i for i in range(n) if i not in seen)
        for position in duplicates:
            indices[position] = next(missing)
        return self.with_indices(indices)

    def _attributes(self) -> Dict[str, Any]:
        return {'alleles': list(self.valid_alleles)}

    def _gene_value(self, gene: EnumGene) -> Any:
        return gene.allele_index

    @classmethod
    def _from_values(cls, attributes, values):
        if 'alleles' not in attributes:
            raise EncodingError("'permutation' record needs an alleles attribute")
        alleles = tuple(attributes['alleles'])
        return cls(EnumGene(v, alleles) for v in values)

    def __repr__(self) -> str:
        return f"PermutationChromosome({[g.allele for g in self._genes]!r})"


Chromosome = Union[BitChromosome, IntegerChromosome, DoubleChromosome, PermutationChromosome]

CHROMOSOME_KINDS: Dict[str, Type[BaseChromosome]] = {
    BitChromosome.kind: BitChromosome,
    IntegerChromosome.kind: IntegerChromosome,
    DoubleChromosome.kind: DoubleChromosome,
    PermutationChromosome.kind: PermutationChromosome,
}


def chromosome_from_record(record: Dict[str, Any]) -> BaseChromosome:
    """Build a chromosome from its nested tagged record."""
    if not isinstance(record, dict):
        raise EncodingError(f"Chromosome record must be a dict, got {type(record).__name__}")
    kind = record.get('kind')
    if kind not in CHROMOSOME_KINDS:
        raise EncodingError(f"Unknown chromosome kind: {kind!r}")
    return CHROMOSOME_KINDS[kind].from_record(record)
