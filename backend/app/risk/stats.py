from __future__ import annotations

import math
import statistics
from typing import Any, Sequence

# Consistency constant: MAD * 1.4826 estimates the standard deviation of a
# normal distribution.
MAD_TO_SIGMA = 1.4826

# Newest-first weights for the short-horizon forecast.
WMA_WEIGHTS = (0.5, 0.3, 0.2)


def median(values: Sequence[float]) -> float:
    if not values:
        return 0.0
    return float(statistics.median(values))


def mad(values: Sequence[float], center: float) -> float:
    """Median absolute deviation around `center`."""
    if not values:
        return 0.0
    return median([abs(v - center) for v in values])


def robust_sigma(values: Sequence[float]) -> float:
    return mad(values, median(values)) * MAD_TO_SIGMA


def population_stdev(values: Sequence[float]) -> float:
    if len(values) < 2:
        return 0.0
    return float(statistics.pstdev(values))


def sample_stdev(values: Sequence[float]) -> float:
    if len(values) <= 1:
        return 0.0
    return float(statistics.stdev(values))


def weighted_moving_average(values: Sequence[float]) -> float:
    """
    Weighted average of the last three values, newest first.
    With fewer than three values only the weights actually used are
    summed into the denominator.
    """
    if not values:
        return 0.0
    recent = list(values[-len(WMA_WEIGHTS):])[::-1]
    used = WMA_WEIGHTS[: len(recent)]
    total_weight = sum(used)
    if total_weight <= 0:
        return 0.0
    return sum(v * w for v, w in zip(recent, used)) / total_weight


def round_to(value: float, digits: int = 2) -> float:
    # half up, so 0.125 -> 0.13 and -2.5 -> -2
    factor = 10 ** digits
    return math.floor(value * factor + 0.5) / factor


def coerce_number(value: Any) -> float:
    """
    Boundary coercion for source rows: missing, non-numeric, non-finite or
    negative values become 0.0.
    """
    try:
        number = float(value or 0.0)
    except (TypeError, ValueError):
        return 0.0
    if not math.isfinite(number) or number < 0:
        return 0.0
    return number
