#!/usr/bin/env python3
"""
Traveling salesman on random cities.

Evolves a tour in two legs: the second stream starts from the last population
of the first one, showing how a stopped run is continued.

Usage:
    python examples/traveling_salesman.py [--cities N] [--seed N]
"""

import argparse
import sys
from pathlib import Path

import numpy as np

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from genstream import (
    EliteSelector,
    EvolutionConfig,
    EvolutionEngine,
    Genotype,
    OrderCrossover,
    Optimize,
    PermutationChromosome,
    SwapMutator,
    TournamentSelector,
    by_generation_count,
    by_steady_fitness,
)
from genstream.__main__ import TourLength


def parse_args():
    parser = argparse.ArgumentParser(description='Evolve a TSP tour')
    parser.add_argument('--cities', type=int, default=30, help='Number of cities (default: 30)')
    parser.add_argument('--seed', type=int, default=7, help='Random seed (default: 7)')
    return parser.parse_args()


def main():
    args = parse_args()
    cities = np.random.default_rng(args.seed).uniform(0, 100, size=(args.cities, 2))

    config = EvolutionConfig(
        population_size=100,
        offspring_selector=TournamentSelector(3),
        survivors_selector=EliteSelector(2),
        alterers=[OrderCrossover(0.3), SwapMutator(0.02)],
        optimize=Optimize.MINIMUM,
        max_workers=1,
        seed=args.seed,
    )
    template = Genotype.of(PermutationChromosome.of_integer(args.cities))

    with EvolutionEngine(template, TourLength(cities), config) as engine:
        first = engine.stream().limit(by_generation_count(100))
        for result in first:
            if result.generation % 20 == 0:
                print(f"Gen {result.generation:4d}: {result.best_fitness:.2f}")
        last = first.last_result

        print(f"\nContinuing from generation {last.generation}...")
        second = engine.stream(last.population, generation=last.generation)
        second.limit(by_generation_count(last.generation + 400), by_steady_fitness(100))
        for result in second:
            if result.generation % 50 == 0:
                print(f"Gen {result.generation:4d}: {result.best_fitness:.2f}")

        print()
        print(second.last_result.summary())
        print(f"Tour: {list(second.last_result.best_phenotype.genotype.chromosome.indices())}")


if __name__ == '__main__':
    main()
