"""Genetic encoding model: genes, chromosomes, genotypes and phenotypes."""

from .errors import (
    GenstreamError,
    EncodingError,
    ConfigurationError,
    EvaluationError,
    EvolutionInterrupted,
    EvolutionCancelled,
    GenerationTimeout,
)
from .optimize import Optimize
from .genes import BitGene, IntegerGene, DoubleGene, EnumGene, as_generator, is_numeric_gene
from .chromosomes import (
    BaseChromosome,
    BitChromosome,
    IntegerChromosome,
    DoubleChromosome,
    PermutationChromosome,
    chromosome_from_record,
)
from .genotype import Genotype
from .phenotype import Phenotype, Population

__all__ = [
    # Errors
    'GenstreamError',
    'EncodingError',
    'ConfigurationError',
    'EvaluationError',
    'EvolutionInterrupted',
    'EvolutionCancelled',
    'GenerationTimeout',
    # Encoding
    'Optimize',
    'BitGene',
    'IntegerGene',
    'DoubleGene',
    'EnumGene',
    'as_generator',
    'is_numeric_gene',
    'BaseChromosome',
    'BitChromosome',
    'IntegerChromosome',
    'DoubleChromosome',
    'PermutationChromosome',
    'chromosome_from_record',
    'Genotype',
    'Phenotype',
    'Population',
]
