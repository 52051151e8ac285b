"""
Inactivity decay for ratings.

A rating that receives no games in a period becomes less certain. Glicko-2
handles this by inflating the deviation once per elapsed period:

    phi' = sqrt(phi^2 + sigma^2)

Applying that n times collapses to a closed form, which is what we use so
that a long idle stretch costs O(1) and never compounds by wall-clock time:

    phi_n = min(sqrt(phi^2 + n * sigma^2), MAX_DEVIATION)

The value is never touched by decay.
"""

import math

from ratingupdate.rating.constants import DEFAULT_VOLATILITY, MAX_DEVIATION


def periods_elapsed(last_decay: int, period_end: int, period_seconds: int) -> int:
    """
    Whole rating periods between a rating's last decay point and period_end.

    Examples:
        periods_elapsed(3600, 7200, 3600)   # → 1
        periods_elapsed(3600, 18000, 3600)  # → 4
        periods_elapsed(7200, 7200, 3600)   # → 0
    """
    if period_end <= last_decay:
        return 0
    return (period_end - last_decay) // period_seconds


def inflate_deviation(
    deviation: float,
    periods: int,
    volatility: float | None = None,
    max_deviation: float | None = None,
) -> float:
    """
    Inflate a deviation for a number of idle periods.

    Args:
        deviation: Current deviation (internal scale)
        periods: Number of elapsed periods with no games; <= 0 leaves it unchanged
        volatility: Per-period volatility sigma. Default DEFAULT_VOLATILITY.
        max_deviation: Ceiling. Default MAX_DEVIATION.

    Returns:
        The inflated deviation, capped at the ceiling
    """
    if volatility is None:
        volatility = DEFAULT_VOLATILITY
    if max_deviation is None:
        max_deviation = MAX_DEVIATION

    if periods <= 0:
        return min(deviation, max_deviation)

    inflated = math.sqrt(deviation * deviation + periods * volatility * volatility)
    return min(inflated, max_deviation)
