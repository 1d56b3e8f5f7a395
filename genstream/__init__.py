"""
genstream - generational genetic algorithms as a stream of results.

Genes, chromosomes and genotypes encode candidate solutions; the engine
evolves a population of them with pluggable selectors and alterers, while
fitness is evaluated on a bounded worker pool.

Example usage:
    from genstream import (
        BitChromosome, Genotype, EvolutionConfig, EvolutionEngine,
        TournamentSelector, SinglePointCrossover, BitFlipMutator,
        by_generation_count, by_fitness_threshold,
    )

    template = Genotype.of(BitChromosome.of(10))
    config = EvolutionConfig(
        population_size=50,
        alterers=[SinglePointCrossover(0.2), BitFlipMutator(0.05)],
        seed=42,
    )

    with EvolutionEngine(template, lambda g: g.chromosome.bit_count(), config) as engine:
        stream = engine.stream().limit(by_generation_count(100), by_fitness_threshold(10))
        for result in stream:
            print(result.generation, result.best_fitness)

    print(stream.last_result.summary())
"""

from .core import *  # noqa: F401,F403
from .core import __all__ as _core_all
from .evolution import *  # noqa: F401,F403
from .evolution import __all__ as _evolution_all

__version__ = '0.1.0'

__all__ = list(_core_all) + list(_evolution_all)
