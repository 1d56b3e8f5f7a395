"""
Exception taxonomy for genstream.

Encoding, configuration and evaluation problems derive from GenstreamError.
Cancellation and timeouts are termination signals, not failures, so they
derive from EvolutionInterrupted instead.
"""

from typing import Any, List, Optional, Tuple


class GenstreamError(Exception):
    """Base class for all genstream failures."""


class EncodingError(GenstreamError, ValueError):
    """Invalid gene, chromosome or genotype construction."""


class ConfigurationError(GenstreamError, ValueError):
    """Invalid engine, selector or alterer parameters."""


class EvaluationError(GenstreamError):
    """
    The fitness function failed for one or more individuals.

    Attributes:
        failures: List of (index, phenotype, exception) tuples, in
            population order
        population: Population with every successful evaluation attached;
            failed individuals are left unevaluated
        generation: Generation being evaluated, if known
    """

    def __init__(
        self,
        failures: List[Tuple[int, Any, BaseException]],
        population: Any = None,
        generation: Optional[int] = None,
    ):
        self.failures = list(failures)
        self.population = population
        self.generation = generation

        index, phenotype, cause = self.failures[0]
        where = f" in generation {generation}" if generation is not None else ''
        message = (
            f"Fitness evaluation failed for {len(self.failures)} individual(s)"
            f"{where}; first failure at index {index}: {cause!r}"
        )
        super().__init__(message)

    @property
    def indices(self) -> List[int]:
        """Population indices of the failed individuals."""
        return [index for index, _, _ in self.failures]


class EvolutionInterrupted(Exception):
    """Base class for non-error termination signals."""


class EvolutionCancelled(EvolutionInterrupted):
    """Evolution was cancelled by the caller."""


class GenerationTimeout(EvolutionInterrupted):
    """A generation did not finish evaluating within the configured timeout."""

    def __init__(self, timeout: float, pending: int, generation: Optional[int] = None):
        self.timeout = timeout
        self.pending = pending
        self.generation = generation
        where = f"Generation {generation}" if generation is not None else 'Evaluation'
        super().__init__(
            f"{where} exceeded timeout of {timeout:.3f}s with {pending} evaluation(s) pending"
        )
