"""
Generational evolution: selection, alteration, evaluation and the engine.

Key components:
- Selectors: choose offspring and survivors from an evaluated population
- Alterers: mutation and crossover operators
- FitnessEvaluator: bounded-concurrency fitness evaluation
- EvolutionEngine: produces an EvolutionStream of per-generation results
- Limits: termination predicates for EvolutionStream.limit
"""

from .selectors import (
    Selector,
    TruncationSelector,
    EliteSelector,
    TournamentSelector,
    ProbabilitySelector,
    RouletteWheelSelector,
    StochasticUniversalSelector,
    LinearRankSelector,
)
from .alterers import (
    Alterer,
    AltererResult,
    CompositeAlterer,
    Mutator,
    BitFlipMutator,
    GaussianMutator,
    SwapMutator,
    Crossover,
    SinglePointCrossover,
    MultiPointCrossover,
    UniformCrossover,
    ArithmeticCrossover,
    PartiallyMatchedCrossover,
    OrderCrossover,
    CycleCrossover,
)
from .evaluator import FitnessEvaluator, UNBOUNDED, default_workers
from .limits import by_generation_count, by_fitness_threshold, by_steady_fitness, by_execution_time
from .engine import EvolutionConfig, EvolutionResult, EvolutionEngine, EvolutionStream, StopReason

__all__ = [
    # Selectors
    'Selector',
    'TruncationSelector',
    'EliteSelector',
    'TournamentSelector',
    'ProbabilitySelector',
    'RouletteWheelSelector',
    'StochasticUniversalSelector',
    'LinearRankSelector',
    # Alterers
    'Alterer',
    'AltererResult',
    'CompositeAlterer',
    'Mutator',
    'BitFlipMutator',
    'GaussianMutator',
    'SwapMutator',
    'Crossover',
    'SinglePointCrossover',
    'MultiPointCrossover',
    'UniformCrossover',
    'ArithmeticCrossover',
    'PartiallyMatchedCrossover',
    'OrderCrossover',
    'CycleCrossover',
    # Evaluation
    'FitnessEvaluator',
    'UNBOUNDED',
    'default_workers',
    # Limits
    'by_generation_count',
    'by_fitness_threshold',
    'by_steady_fitness',
    'by_execution_time',
    # Engine
    'EvolutionConfig',
    'EvolutionResult',
    'EvolutionEngine',
    'EvolutionStream',
    'StopReason',
]
