"""
Genotype: the complete encoding of one candidate solution.

A Genotype is an immutable, non-empty sequence of valid chromosomes. Operators
never modify a genotype; they build a new one with ``with_chromosome``.
"""

from typing import Any, Dict, Iterable, Iterator, Tuple

from .chromosomes import BaseChromosome, chromosome_from_record
from .errors import EncodingError
from .genes import Gene, RandomSource, as_generator

GENOTYPE_KIND = 'genotype'


class Genotype:
    """
    Ordered, immutable sequence of chromosomes.

    Equality and hashing are structural, so two genotypes built independently
    from the same genes compare equal.
    """

    __slots__ = ('_chromosomes', '_hash')

    def __init__(self, chromosomes: Iterable[BaseChromosome]):
        chromosomes = tuple(chromosomes)
        if not chromosomes:
            raise EncodingError("Genotype must contain at least one chromosome")
        for index, chromosome in enumerate(chromosomes):
            if not isinstance(chromosome, BaseChromosome):
                raise EncodingError(
                    f"Genotype element {index} is not a chromosome: {type(chromosome).__name__}"
                )
            if not chromosome.is_valid():
                raise EncodingError(f"Genotype chromosome {index} is invalid: {chromosome!r}")
        self._chromosomes = chromosomes
        self._hash = None

    @classmethod
    def of(cls, *chromosomes: BaseChromosome) -> 'Genotype':
        return cls(chromosomes)

    @property
    def chromosomes(self) -> Tuple[BaseChromosome, ...]:
        return self._chromosomes

    @property
    def chromosome(self) -> BaseChromosome:
        """First chromosome."""
        return self._chromosomes[0]

    @property
    def gene(self) -> Gene:
        """First gene of the first chromosome."""
        return self._chromosomes[0][0]

    @property
    def gene_count(self) -> int:
        return sum(len(c) for c in self._chromosomes)

    def __len__(self) -> int:
        return len(self._chromosomes)

    def __getitem__(self, index):
        return self._chromosomes[index]

    def __iter__(self) -> Iterator[BaseChromosome]:
        return iter(self._chromosomes)

    def __eq__(self, other: Any) -> bool:
        if not isinstance(other, Genotype):
            return NotImplemented
        return self._chromosomes == other._chromosomes

    def __hash__(self) -> int:
        if self._hash is None:
            self._hash = hash(self._chromosomes)
        return self._hash

    def __repr__(self) -> str:
        inner = ', '.join(repr(c) for c in self._chromosomes)
        return f"Genotype([{inner}])"

    def is_valid(self) -> bool:
        return all(c.is_valid() for c in self._chromosomes)

    def new_instance(self, rng: RandomSource = None) -> 'Genotype':
        """Create a random genotype with the same shape and domains."""
        gen = as_generator(rng)
        return Genotype(c.new_instance(gen) for c in self._chromosomes)

    def with_chromosome(self, index: int, chromosome: BaseChromosome) -> 'Genotype':
        """Return a copy with the chromosome at ``index`` replaced."""
        chromosomes = list(self._chromosomes)
        chromosomes[index] = chromosome
        return Genotype(chromosomes)

    def to_record(self) -> Dict[str, Any]:
        """
        Decompose into a nested tagged record.

        Returns:
            ``{'kind': 'genotype', 'attributes': {}, 'values': [...]}`` where
            each value is a chromosome record
        """
        return {
            'kind': GENOTYPE_KIND,
            'attributes': {},
            'values': [c.to_record() for c in self._chromosomes],
        }

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> 'Genotype':
        """Build a genotype from the record produced by ``to_record``."""
        if not isinstance(record, dict) or record.get('kind') != GENOTYPE_KIND:
            raise EncodingError(f"Not a genotype record: {record!r}")
        values = record.get('values')
        if not isinstance(values, list):
            raise EncodingError("Genotype record needs a list of chromosome records")
        return cls(chromosome_from_record(v) for v in values)
