from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Sequence

from backend.app.risk.periods import period_month

MIN_HISTORY_POINTS = 6
MIN_MONTH_OBSERVATIONS = 2


@dataclass(frozen=True)
class MonthBucket:
    month_of_year: int      # 1..12
    total: float
    n: int

    @property
    def mean(self) -> float:
        return self.total / self.n if self.n else 0.0


def bucket_by_month(values: Sequence[float], periods: Sequence[str]) -> Dict[int, MonthBucket]:
    """
    Group a value series by calendar month of its period.
    Values whose period has no valid month are left out.
    """
    sums: Dict[int, List[float]] = {}
    for idx, value in enumerate(values):
        month = period_month(periods[idx]) if idx < len(periods) else 0
        if not month:
            continue
        sums.setdefault(month, []).append(value)

    return {
        month: MonthBucket(month_of_year=month, total=sum(vals), n=len(vals))
        for month, vals in sums.items()
    }


def seasonality_factor(
    values: Sequence[float],
    periods: Sequence[str],
    target_month: int,
) -> float:
    """
    Ratio of the target month's mean to the overall mean.

    Neutral (1.0) unless there is enough history overall and at least two
    observations of the target month.
    """
    if len(values) < MIN_HISTORY_POINTS:
        return 1.0

    buckets = bucket_by_month(values, periods)
    overall = sum(values) / len(values)
    point = buckets.get(target_month)
    if not overall or not point or point.n < MIN_MONTH_OBSERVATIONS:
        return 1.0

    month_avg = point.mean
    return month_avg / overall if month_avg > 0 else 1.0
