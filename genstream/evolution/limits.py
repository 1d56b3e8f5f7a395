"""
Termination predicates for EvolutionStream.limit.

A predicate receives each EvolutionResult and returns True to keep going.
The result that first returns False is still emitted, as the last one.
Some predicates keep state across calls, so create a fresh one per stream.
"""

from typing import Any, Callable

Predicate = Callable[[Any], bool]


def by_generation_count(generations: int) -> Predicate:
    """Stop after the given number of generations has been emitted."""
    if generations < 1:
        raise ValueError(f"Generation count must be positive, got {generations}")

    def predicate(result) -> bool:
        return result.generation < generations

    return predicate


def by_fitness_threshold(threshold: Any) -> Predicate:
    """Stop once the best fitness so far reaches ``threshold``."""

    def predicate(result) -> bool:
        return not result.optimize.reached(result.best_fitness, threshold)

    return predicate


def by_steady_fitness(generations: int) -> Predicate:
    """
    Stop when the best fitness has not improved for ``generations`` results.

    Args:
        generations: Length of the convergence window

    Returns:
        Stateful predicate
    """
    if generations < 1:
        raise ValueError(f"Steady generations must be positive, got {generations}")
    state = {'best': None, 'stable': 0}

    def predicate(result) -> bool:
        fitness = result.best_fitness
        if state['best'] is None or result.optimize.is_better(fitness, state['best']):
            state['best'] = fitness
            state['stable'] = 0
        else:
            state['stable'] += 1
        return state['stable'] < generations

    return predicate


def by_execution_time(seconds: float) -> Predicate:
    """Stop once the summed generation durations reach ``seconds``."""
    if seconds <= 0:
        raise ValueError(f"Execution time must be positive, got {seconds}")
    state = {'elapsed': 0.0}

    def predicate(result) -> bool:
        state['elapsed'] += result.duration
        return state['elapsed'] < seconds

    return predicate
