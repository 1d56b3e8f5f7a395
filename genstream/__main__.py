"""
Demo runner.

Usage:
    python -m genstream onemax [options]
    python -m genstream tsp [options]

Options:
    --population N      Population size (default: 50)
    --generations N     Maximum number of generations (default: 100)
    --workers N         Parallel fitness workers (default: cpu_count - 1)
    --seed N            Random seed for reproducibility
    --length N          Bits (onemax) or cities (tsp)
    --verbose           Log per-generation details
"""

import argparse
import logging
import sys
import time
from typing import Optional

import numpy as np

from .core.chromosomes import BitChromosome, PermutationChromosome
from .core.genotype import Genotype
from .core.optimize import Optimize
from .evolution.alterers import (
    BitFlipMutator,
    PartiallyMatchedCrossover,
    SinglePointCrossover,
    SwapMutator,
)
from .evolution.engine import EvolutionConfig, EvolutionEngine, EvolutionResult
from .evolution.limits import by_fitness_threshold, by_generation_count, by_steady_fitness
from .evolution.selectors import EliteSelector, TournamentSelector


def count_ones(genotype: Genotype) -> int:
    """One-max fitness: number of set bits."""
    return genotype.chromosome.bit_count()


class TourLength:
    """
    Closed tour length over a fixed set of cities.

    A class rather than a closure so the process executor can pickle it.
    """

    def __init__(self, cities: np.ndarray):
        self.cities = np.asarray(cities, dtype=np.float64)

    def __call__(self, genotype: Genotype) -> float:
        path = self.cities[list(genotype.chromosome.indices())]
        steps = path - np.roll(path, -1, axis=0)
        return float(np.sqrt((steps ** 2).sum(axis=1)).sum())


def regular_polygon(n: int, radius: float = 10.0) -> np.ndarray:
    """Cities on a circle, so the optimal tour length is known."""
    angles = 2 * np.pi * np.arange(n) / n
    return np.column_stack([radius * np.cos(angles), radius * np.sin(angles)])


def parse_args(argv=None):
    parser = argparse.ArgumentParser(
        prog='genstream',
        description='Run a genstream demo problem'
    )
    parser.add_argument(
        'problem', choices=['onemax', 'tsp'],
        help='Problem to solve'
    )
    parser.add_argument(
        '--population', type=int, default=50,
        help='Population size (default: 50)'
    )
    parser.add_argument(
        '--generations', type=int, default=100,
        help='Maximum number of generations (default: 100)'
    )
    parser.add_argument(
        '--workers', type=int, default=None,
        help='Number of parallel workers (default: cpu_count - 1)'
    )
    parser.add_argument(
        '--seed', type=int, default=None,
        help='Random seed for reproducibility'
    )
    parser.add_argument(
        '--length', type=int, default=None,
        help='Bits for onemax (default: 32) or cities for tsp (default: 20)'
    )
    parser.add_argument(
        '--verbose', action='store_true',
        help='Log per-generation details'
    )
    return parser.parse_args(argv)


def print_banner(problem: str):
    print("=" * 60)
    print(f"   GENSTREAM - {problem}")
    print("=" * 60)


def print_config(config: EvolutionConfig, generations: int):
    print("\nConfiguration:")
    for key, value in config.to_dict().items():
        print(f"   {key + ':':<22}{value}")
    print(f"   {'generations:':<22}{generations}")


def print_progress(result: EvolutionResult, total: int):
    pct = 100 * result.generation / total
    print(
        f"\r   Gen {result.generation:4d}/{total} ({pct:5.1f}%) | "
        f"Best fitness: {result.best_fitness:.4f}",
        end='', flush=True
    )


def build_onemax(args):
    length = args.length or 32
    template = Genotype.of(BitChromosome.of(length, 0.15))
    config = EvolutionConfig(
        population_size=args.population,
        offspring_selector=TournamentSelector(3),
        survivors_selector=TournamentSelector(3),
        alterers=[SinglePointCrossover(0.2), BitFlipMutator(0.05)],
        optimize=Optimize.MAXIMUM,
        max_workers=args.workers,
        seed=args.seed,
    )
    return template, count_ones, config, by_fitness_threshold(length)


def build_tsp(args):
    length = args.length or 20
    cities = regular_polygon(length)
    optimum = 2 * length * 10.0 * np.sin(np.pi / length)
    template = Genotype.of(PermutationChromosome.of_integer(length))
    config = EvolutionConfig(
        population_size=args.population,
        offspring_selector=TournamentSelector(3),
        survivors_selector=EliteSelector(2),
        alterers=[PartiallyMatchedCrossover(0.3), SwapMutator(0.05)],
        optimize=Optimize.MINIMUM,
        max_workers=args.workers,
        seed=args.seed,
    )
    return template, TourLength(cities), config, by_fitness_threshold(optimum + 1e-6)


def run(args) -> Optional[EvolutionResult]:
    builders = {'onemax': build_onemax, 'tsp': build_tsp}
    template, fitness, config, target = builders[args.problem](args)

    print_banner(args.problem)
    print_config(config, args.generations)
    print("\n   Starting evolution...")

    start = time.time()
    with EvolutionEngine(template, fitness, config) as engine:
        stream = engine.stream().limit(
            by_generation_count(args.generations),
            target,
            by_steady_fitness(max(10, args.generations // 2)),
        )
        for result in stream:
            print_progress(result, args.generations)
    elapsed = time.time() - start

    result = stream.last_result
    print(f"\n\n   Stopped: {stream.stop_reason.value} after {elapsed:.1f}s")
    print("\nResult:")
    for line in result.summary().split('\n'):
        print(f"   {line}")
    print(f"   Best genotype: {result.best_phenotype.genotype!r}")
    return result


def main(argv=None) -> int:
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format='%(asctime)s %(levelname)s %(name)s: %(message)s',
    )
    run(args)
    return 0


if __name__ == '__main__':
    sys.exit(main())
