"""
Optimisation direction.

Optimize is the fitness comparator handed to selectors and the engine. Fitness
values only need to support ``<`` and ``==``.
"""

from enum import Enum
from typing import Any, List, Sequence


class Optimize(str, Enum):
    MAXIMUM = 'maximum'
    MINIMUM = 'minimum'

    def compare(self, a: Any, b: Any) -> int:
        """
        Compare two fitness values in this direction.

        Returns:
            1 if a is better, -1 if b is better, 0 if equal
        """
        if a == b:
            return 0
        better = b < a if self is Optimize.MAXIMUM else a < b
        return 1 if better else -1

    def is_better(self, a: Any, b: Any) -> bool:
        """True if fitness a is strictly better than fitness b."""
        return self.compare(a, b) > 0

    def best(self, a: Any, b: Any) -> Any:
        """Return the better fitness value, preferring a on ties."""
        return b if self.is_better(b, a) else a

    def reached(self, value: Any, threshold: Any) -> bool:
        """True if value is at least as good as threshold."""
        return self.compare(value, threshold) >= 0

    def sort_best_first(self, phenotypes: Sequence[Any]) -> List[Any]:
        """
        Sort evaluated phenotypes best first.

        The sort is stable, so equal fitness keeps the original order.
        """
        return sorted(
            phenotypes,
            key=lambda p: p.fitness,
            reverse=self is Optimize.MAXIMUM,
        )
