"""Berkeley averaging arithmetic.

The coordinator takes part in the average as an implicit peer whose delta is
always 0, so ``N`` collected deltas are divided by ``N + 1``. Everything here
is exact integer arithmetic; the result does not depend on polling order.
"""

from typing import Dict, Iterable, List, Mapping, TypeVar

K = TypeVar("K")


def round_half_away_from_zero(numerator: int, denominator: int) -> int:
    """Integer quotient rounded to nearest, ties away from zero."""
    if denominator <= 0:
        raise ValueError("denominator must be positive")
    quotient, remainder = divmod(abs(numerator), denominator)
    if 2 * remainder >= denominator:
        quotient += 1
    return quotient if numerator >= 0 else -quotient


def compute_average(deltas: Iterable[int]) -> int:
    """Average of the peer deltas plus the coordinator's own zero delta."""
    values: List[int] = [int(d) for d in deltas]
    return round_half_away_from_zero(sum(values), len(values) + 1)


def compute_adjustments(average: int, deltas: Mapping[K, int]) -> Dict[K, int]:
    """Correction each peer must add so that it lands on ``average``."""
    return {key: average - delta for key, delta in deltas.items()}
