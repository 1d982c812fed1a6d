from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Sequence

from backend.app.risk.periods import period_to_index
from backend.app.risk.stats import median, round_to, sample_stdev

DEFAULT_WINDOW_SIZE = 6
DEFAULT_MIN_DELTA_PCT = 0.2
DEFAULT_MIN_BASELINE = 1.0

# confidence = DATA_WEIGHT * history coverage + STABILITY_WEIGHT * low variability
DATA_WEIGHT = 0.6
STABILITY_WEIGHT = 0.4


@dataclass(frozen=True)
class MeterReading:
    centro_trabajo: str
    medidor: str
    period: str
    consumo_m3: float


@dataclass(frozen=True)
class MeterRisk:
    centro_trabajo: str
    medidor: str
    period: str             # latest period, the one being evaluated
    baseline_m3: float      # median of the trailing window, latest excluded
    current_m3: float
    delta_pct: float        # fraction: (current - baseline) / baseline
    confidence: float       # 0..1
    data_points: int        # history values used for the baseline


def _delta(current: float, baseline: float, min_baseline: float) -> float:
    if baseline > min_baseline:
        return (current - baseline) / baseline
    # no usable baseline: any usage at all is treated as maximal deviation
    if current > 0:
        return 1.0
    return 0.0


def _confidence(history: Sequence[float], baseline: float, window_size: int) -> float:
    data_score = min(1.0, len(history) / window_size) if window_size > 0 else 0.0
    variability = sample_stdev(history) / baseline if baseline > 0 else 1.0
    stability_score = max(0.0, 1.0 - min(1.0, variability))
    return max(0.0, min(1.0, DATA_WEIGHT * data_score + STABILITY_WEIGHT * stability_score))


def assess_meter(
    rows: Sequence[MeterReading],
    *,
    window_size: int = DEFAULT_WINDOW_SIZE,
    min_baseline: float = DEFAULT_MIN_BASELINE,
) -> MeterRisk:
    """
    Compare a meter's latest reading with the median of the readings just
    before it. Assumes rows are sorted oldest -> newest.
    """
    latest = rows[-1]
    start = max(0, len(rows) - (window_size + 1))
    history = [r.consumo_m3 for r in rows[start:-1] if r.consumo_m3 >= 0]

    baseline = median(history) if history else 0.0
    current = latest.consumo_m3

    return MeterRisk(
        centro_trabajo=latest.centro_trabajo,
        medidor=latest.medidor,
        period=latest.period,
        baseline_m3=round_to(baseline),
        current_m3=round_to(current),
        delta_pct=round_to(_delta(current, baseline, min_baseline), 4),
        confidence=round_to(_confidence(history, baseline, window_size)),
        data_points=len(history),
    )


def compute_water_meter_risk(
    readings: Iterable[MeterReading],
    *,
    window_size: int = DEFAULT_WINDOW_SIZE,
    min_delta_pct: float = DEFAULT_MIN_DELTA_PCT,
    min_baseline: float = DEFAULT_MIN_BASELINE,
) -> List[MeterRisk]:
    """
    Per-meter baseline deviation, highest delta first.

    Every meter is returned regardless of `min_delta_pct`; thresholding is
    left to `filter_meter_risks` so callers can change it without
    recomputing.
    """
    groups: Dict[str, List[MeterReading]] = {}
    for r in readings:
        groups.setdefault(f"{r.centro_trabajo}__{r.medidor}", []).append(r)

    results: List[MeterRisk] = []
    for rows in groups.values():
        ordered = sorted(rows, key=lambda r: period_to_index(r.period))
        results.append(assess_meter(ordered, window_size=window_size, min_baseline=min_baseline))

    return sorted(results, key=lambda r: r.delta_pct, reverse=True)


def filter_meter_risks(
    risks: Iterable[MeterRisk],
    *,
    min_delta_pct: Optional[float] = None,
    centro: Optional[str] = None,
    medidor: Optional[str] = None,
) -> List[MeterRisk]:
    """`centro` / `medidor` of None or "all" match everything."""
    out: List[MeterRisk] = []
    for r in risks:
        if centro and centro != "all" and r.centro_trabajo != centro:
            continue
        if medidor and medidor != "all" and r.medidor != medidor:
            continue
        if min_delta_pct is not None and r.delta_pct < min_delta_pct:
            continue
        out.append(r)
    return out
