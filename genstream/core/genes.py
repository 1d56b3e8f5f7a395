"""
Gene representations.

A gene is the smallest immutable unit of a genetic encoding. Every gene kind
offers the same capability set so operators never need to know which kind
they are handling:

- allele: the encoded value
- is_valid(): whether the allele lies inside the gene's domain
- new_instance(rng): a random valid gene of the same domain
- with_allele(value): a gene of the same domain carrying another value

Construction enforces the domain, so an out-of-range value is an
EncodingError rather than an invalid gene floating around.
"""

import math
from dataclasses import dataclass, field
from typing import Any, Optional, Tuple, Union

import numpy as np

from .errors import EncodingError

RandomSource = Union[None, int, np.random.Generator]


def as_generator(rng: RandomSource = None) -> np.random.Generator:
    """Turn None, a seed or an existing Generator into a Generator."""
    return np.random.default_rng(rng)


@dataclass(frozen=True)
class BitGene:
    """A single boolean gene."""
    allele: bool

    def __post_init__(self):
        if not isinstance(self.allele, (bool, np.bool_)):
            raise EncodingError(f"BitGene allele must be a bool, got {self.allele!r}")
        object.__setattr__(self, 'allele', bool(self.allele))

    def is_valid(self) -> bool:
        return True

    def new_instance(self, rng: RandomSource = None) -> 'BitGene':
        return BitGene(bool(as_generator(rng).random() < 0.5))

    def with_allele(self, allele: Any) -> 'BitGene':
        return BitGene(bool(allele))

    def flipped(self) -> 'BitGene':
        return BitGene(not self.allele)

    def __repr__(self) -> str:
        return '1' if self.allele else '0'


@dataclass(frozen=True)
class IntegerGene:
    """
    Integer gene with inclusive bounds.

    Attributes:
        allele: Encoded value, min <= allele <= max
        min: Lower bound (inclusive)
        max: Upper bound (inclusive)
    """
    allele: int
    min: int
    max: int

    def __post_init__(self):
        for name in ('allele', 'min', 'max'):
            value = getattr(self, name)
            if isinstance(value, (bool, np.bool_)) or not isinstance(value, (int, np.integer)):
                raise EncodingError(f"IntegerGene {name} must be an int, got {value!r}")
            object.__setattr__(self, name, int(value))
        if self.min > self.max:
            raise EncodingError(f"IntegerGene bounds inverted: [{self.min}, {self.max}]")
        if not self.is_valid():
            raise EncodingError(
                f"IntegerGene allele {self.allele} outside [{self.min}, {self.max}]"
            )

    def is_valid(self) -> bool:
        return self.min <= self.allele <= self.max

    def new_instance(self, rng: RandomSource = None) -> 'IntegerGene':
        value = int(as_generator(rng).integers(self.min, self.max, endpoint=True))
        return IntegerGene(value, self.min, self.max)

    def with_allele(self, allele: Any) -> 'IntegerGene':
        return IntegerGene(int(allele), self.min, self.max)

    def __repr__(self) -> str:
        return f"IntegerGene({self.allele} in [{self.min}, {self.max}])"


@dataclass(frozen=True)
class DoubleGene:
    """
    Real-valued gene with inclusive bounds.

    Attributes:
        allele: Encoded value, min <= allele <= max
        min: Lower bound (inclusive)
        max: Upper bound (inclusive)
    """
    allele: float
    min: float
    max: float

    def __post_init__(self):
        for name in ('allele', 'min', 'max'):
            value = getattr(self, name)
            if isinstance(value, (bool, np.bool_)) or not isinstance(value, (int, float, np.number)):
                raise EncodingError(f"DoubleGene {name} must be a number, got {value!r}")
            value = float(value)
            if not math.isfinite(value):
                raise EncodingError(f"DoubleGene {name} must be finite, got {value!r}")
            object.__setattr__(self, name, value)
        if self.min > self.max:
            raise EncodingError(f"DoubleGene bounds inverted: [{self.min}, {self.max}]")
        if not self.is_valid():
            raise EncodingError(
                f"DoubleGene allele {self.allele} outside [{self.min}, {self.max}]"
            )

    def is_valid(self) -> bool:
        return self.min <= self.allele <= self.max

    def new_instance(self, rng: RandomSource = None) -> 'DoubleGene':
        value = float(as_generator(rng).uniform(self.min, self.max))
        return DoubleGene(value, self.min, self.max)

    def with_allele(self, allele: Any) -> 'DoubleGene':
        return DoubleGene(float(allele), self.min, self.max)

    def __repr__(self) -> str:
        return f"DoubleGene({self.allele:.6g} in [{self.min:.6g}, {self.max:.6g}])"


@dataclass(frozen=True)
class EnumGene:
    """
    Gene holding an index into a fixed tuple of alleles.

    Permutation chromosomes are built from EnumGenes sharing one allele tuple.

    Attributes:
        allele_index: Position of the allele in ``alleles``
        alleles: Tuple of possible allele values
    """
    allele_index: int
    alleles: Tuple[Any, ...] = field(repr=False)

    def __post_init__(self):
        alleles = tuple(self.alleles)
        if not alleles:
            raise EncodingError("EnumGene needs at least one allele")
        object.__setattr__(self, 'alleles', alleles)

        index = self.allele_index
        if isinstance(index, (bool, np.bool_)) or not isinstance(index, (int, np.integer)):
            raise EncodingError(f"EnumGene index must be an int, got {index!r}")
        object.__setattr__(self, 'allele_index', int(index))
        if not self.is_valid():
            raise EncodingError(
                f"EnumGene index {self.allele_index} outside [0, {len(alleles) - 1}]"
            )

    @property
    def allele(self) -> Any:
        return self.alleles[self.allele_index]

    def is_valid(self) -> bool:
        return 0 <= self.allele_index < len(self.alleles)

    def new_instance(self, rng: RandomSource = None) -> 'EnumGene':
        index = int(as_generator(rng).integers(len(self.alleles)))
        return EnumGene(index, self.alleles)

    def with_allele(self, allele: Any) -> 'EnumGene':
        return EnumGene(self.alleles.index(allele), self.alleles)

    def with_index(self, index: int) -> 'EnumGene':
        return EnumGene(index, self.alleles)

    def __repr__(self) -> str:
        return f"EnumGene({self.allele!r})"


Gene = Union[BitGene, IntegerGene, DoubleGene, EnumGene]


def is_numeric_gene(gene: Optional[Gene]) -> bool:
    """True for genes with an ordered numeric domain."""
    return isinstance(gene, (IntegerGene, DoubleGene))
