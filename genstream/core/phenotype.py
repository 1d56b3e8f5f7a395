"""
Phenotypes and populations.

A Phenotype binds a genotype to its generation of birth and, once evaluated,
its fitness. Fitness is assigned exactly once: ``with_fitness`` returns a new
phenotype and refuses to overwrite an existing value.

A Population is the immutable, ordered collection of phenotypes of one
generation. Every stage of the engine builds a new Population instead of
modifying the previous one.
"""

from collections.abc import Sequence as SequenceABC
from dataclasses import dataclass
from typing import Any, Callable, Iterable, Iterator, List, Optional, Tuple

from .genotype import Genotype
from .optimize import Optimize


@dataclass(frozen=True)
class Phenotype:
    """
    Genotype plus generation of birth and (optional) fitness.

    Attributes:
        genotype: The encoded candidate solution
        generation: Generation in which this phenotype was created
        fitness: Fitness value, None until evaluated
    """
    genotype: Genotype
    generation: int
    fitness: Optional[Any] = None

    def __post_init__(self):
        if not isinstance(self.genotype, Genotype):
            raise TypeError(f"Phenotype needs a Genotype, got {type(self.genotype).__name__}")
        if self.generation < 0:
            raise ValueError(f"Generation must be non-negative, got {self.generation}")

    @property
    def is_evaluated(self) -> bool:
        return self.fitness is not None

    def age(self, current_generation: int) -> int:
        """Number of generations since this phenotype was created."""
        return current_generation - self.generation

    def with_fitness(self, fitness: Any) -> 'Phenotype':
        """
        Attach a fitness value.

        Raises:
            ValueError: If this phenotype is already evaluated, or fitness is None
        """
        if self.is_evaluated:
            raise ValueError("Phenotype is already evaluated; fitness is never reassigned")
        if fitness is None:
            raise ValueError("Fitness function returned None")
        return Phenotype(self.genotype, self.generation, fitness)

    def evaluate(self, function: Callable[[Genotype], Any]) -> 'Phenotype':
        """Return this phenotype if evaluated, else a copy evaluated by function."""
        if self.is_evaluated:
            return self
        return self.with_fitness(function(self.genotype))

    def __repr__(self) -> str:
        fitness_str = f", fitness={self.fitness!r}" if self.is_evaluated else ''
        return f"Phenotype(gen={self.generation}{fitness_str}, {self.genotype!r})"


class Population(SequenceABC):
    """Immutable ordered collection of phenotypes for one generation."""

    __slots__ = ('_phenotypes',)

    def __init__(self, phenotypes: Iterable[Phenotype] = ()):
        phenotypes = tuple(phenotypes)
        for phenotype in phenotypes:
            if not isinstance(phenotype, Phenotype):
                raise TypeError(f"Population only holds Phenotypes, got {type(phenotype).__name__}")
        self._phenotypes = phenotypes

    def __len__(self) -> int:
        return len(self._phenotypes)

    def __getitem__(self, index):
        if isinstance(index, slice):
            return Population(self._phenotypes[index])
        return self._phenotypes[index]

    def __iter__(self) -> Iterator[Phenotype]:
        return iter(self._phenotypes)

    def __add__(self, other: Iterable[Phenotype]) -> 'Population':
        return Population(self._phenotypes + tuple(other))

    def __eq__(self, other: Any) -> bool:
        if isinstance(other, Population):
            return self._phenotypes == other._phenotypes
        return NotImplemented

    def __hash__(self) -> int:
        return hash(self._phenotypes)

    def __repr__(self) -> str:
        return f"Population(size={len(self)}, evaluated={sum(p.is_evaluated for p in self)})"

    @property
    def phenotypes(self) -> Tuple[Phenotype, ...]:
        return self._phenotypes

    @property
    def is_evaluated(self) -> bool:
        return all(p.is_evaluated for p in self._phenotypes)

    def unevaluated_indices(self) -> List[int]:
        return [i for i, p in enumerate(self._phenotypes) if not p.is_evaluated]

    def genotypes(self) -> List[Genotype]:
        return [p.genotype for p in self._phenotypes]

    def fitness_values(self) -> List[Any]:
        return [p.fitness for p in self._phenotypes]

    def with_replaced(self, index: int, phenotype: Phenotype) -> 'Population':
        phenotypes = list(self._phenotypes)
        phenotypes[index] = phenotype
        return Population(phenotypes)

    def best(self, optimize: Optimize = Optimize.MAXIMUM) -> Optional[Phenotype]:
        """Best evaluated phenotype; the first one wins ties."""
        best = None
        for phenotype in self._phenotypes:
            if not phenotype.is_evaluated:
                continue
            if best is None or optimize.is_better(phenotype.fitness, best.fitness):
                best = phenotype
        return best

    def worst(self, optimize: Optimize = Optimize.MAXIMUM) -> Optional[Phenotype]:
        """Worst evaluated phenotype; the first one wins ties."""
        worst = None
        for phenotype in self._phenotypes:
            if not phenotype.is_evaluated:
                continue
            if worst is None or optimize.is_better(worst.fitness, phenotype.fitness):
                worst = phenotype
        return worst
