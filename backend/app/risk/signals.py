"""
Risk signal engine.

Turns period-bucketed consumption/cost records into one RiskSignal per
(metric, center) group: trend checks on the last three periods, a
period-over-period shock check, a robust outlier check, a seasonal weighted
forecast with an uncertainty band, and a 0..10 score mapped to a level.

Pure and deterministic: no I/O, no clock, no shared state.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Literal, Mapping, Optional, Sequence, Tuple

from backend.app.risk.config import ACTION_TEMPLATES, METRIC_KEYS, MetricConfig, resolve_metric_configs
from backend.app.risk.periods import period_month, period_to_index
from backend.app.risk.seasonality import seasonality_factor
from backend.app.risk.stats import (
    median,
    population_stdev,
    robust_sigma,
    round_to,
    weighted_moving_average,
)

logger = logging.getLogger(__name__)

RiskLevel = Literal["low", "medium", "high"]

# scoreRaw is capped here before normalizing to 0..10
MAX_SCORE_RAW = 14
HIGH_SCORE = 7
MEDIUM_SCORE = 4
DEFAULT_TOP_RISK_COUNT = 3

# Points added per finding. Unit-cost drift and robust outliers weigh the most.
WEIGHT_CONSECUTIVE_RISE = 3
WEIGHT_ACCUMULATED_RISE = 1
WEIGHT_UNIT_COST_DRIFT = 4
WEIGHT_MIX_SHIFT = 2
WEIGHT_SHOCK = 3
WEIGHT_OUTLIER = 4

TREND_WINDOW = 3


@dataclass(frozen=True)
class RiskRecord:
    period: str
    center: str
    metric: str
    value: float
    cost: float = 0.0
    bottles: float = 0.0
    bidons: float = 0.0


@dataclass(frozen=True)
class PeriodTotals:
    period: str
    value: float = 0.0
    cost: float = 0.0
    bottles: float = 0.0
    bidons: float = 0.0


@dataclass(frozen=True)
class ForecastRange:
    min: float
    max: float


@dataclass(frozen=True)
class RiskSignal:
    center: str
    metric: str
    label: str
    unit: str
    period: str
    level: RiskLevel
    reasons: List[str]
    actions: List[str]
    forecast_30d: float
    forecast_cost_30d: float
    forecast_range: ForecastRange
    forecast_cost_range: ForecastRange
    outlier: bool
    change_detected: bool
    mix_shift_pct: Optional[float]
    mix_current_pct: Optional[float]
    mix_avg_pct: Optional[float]
    latest_value: float
    score: int
    score_raw: int
    data_points: int


@dataclass(frozen=True)
class RiskSignalsResult:
    signals: List[RiskSignal] = field(default_factory=list)
    top_risks: List[RiskSignal] = field(default_factory=list)


@dataclass
class _Findings:
    reasons: List[str] = field(default_factory=list)
    score_raw: int = 0

    def add(self, reason: str, weight: int) -> None:
        self.reasons.append(reason)
        self.score_raw += weight


# -------------------------
# Grouping
# -------------------------

def group_records(records: Iterable[RiskRecord]) -> Dict[Tuple[str, str], List[PeriodTotals]]:
    """
    Partition records by (metric, center) and sum rows sharing a period.

    Groups keep the order in which they first appear; each group's periods
    are sorted oldest -> newest. Records without a center are dropped.
    """
    grouped: Dict[Tuple[str, str], Dict[str, PeriodTotals]] = {}
    for record in records:
        if not record.center:
            continue
        if record.metric not in METRIC_KEYS:
            logger.debug("Dropping risk record with unknown metric %r", record.metric)
            continue

        buckets = grouped.setdefault((record.metric, record.center), {})
        prev = buckets.get(record.period) or PeriodTotals(period=record.period)
        buckets[record.period] = PeriodTotals(
            period=record.period,
            value=prev.value + (record.value or 0.0),
            cost=prev.cost + (record.cost or 0.0),
            bottles=prev.bottles + (record.bottles or 0.0),
            bidons=prev.bidons + (record.bidons or 0.0),
        )

    return {
        key: sorted(buckets.values(), key=lambda row: period_to_index(row.period))
        for key, buckets in grouped.items()
    }


# -------------------------
# Checks
# -------------------------

def _pct_change(new: float, old: float) -> float:
    return (new - old) / old * 100 if old > 0 else 0.0


def _bottle_share(row: PeriodTotals) -> Optional[float]:
    total = row.bottles + row.bidons
    if total <= 0:
        return None
    return row.bottles / total * 100


def _check_trend(window: Sequence[PeriodTotals], config: MetricConfig, findings: _Findings) -> None:
    first, second, third = window
    v1, v2, v3 = first.value, second.value, third.value
    thresholds = config.thresholds

    if v1 > 0 and v2 > v1 and v3 > v2:
        findings.add("Consumption rises for 3 consecutive periods", WEIGHT_CONSECUTIVE_RISE)

    if v1 > 0:
        accumulated = _pct_change(v3, v1)
        if accumulated >= thresholds.increase_pct:
            findings.add(f"Accumulated increase of {accumulated:.1f}%", WEIGHT_ACCUMULATED_RISE)

    unit_cost_1 = first.cost / v1 if v1 > 0 else 0.0
    unit_cost_3 = third.cost / v3 if v3 > 0 else 0.0
    unit_cost_delta = _pct_change(unit_cost_3, unit_cost_1)
    value_flat = abs(_pct_change(v3, v1)) <= thresholds.flat_tolerance_pct
    if value_flat and unit_cost_delta > thresholds.increase_pct:
        findings.add("Cost per unit rises while consumption stays flat", WEIGHT_UNIT_COST_DRIFT)


def _check_mix(
    window: Sequence[PeriodTotals],
    config: MetricConfig,
    findings: _Findings,
) -> Tuple[Optional[float], Optional[float], Optional[float]]:
    """Returns (current share, window average share, shift) in percent."""
    shares = [s for s in (_bottle_share(row) for row in window) if s is not None]
    current = _bottle_share(window[-1])
    if current is None or not shares:
        return None, None, None

    average = sum(shares) / len(shares)
    shift = abs(current - average)
    if shift >= config.thresholds.mix_shift_pct:
        findings.add(f"Mix shift of {shift:.1f} pp (vs 3-period average)", WEIGHT_MIX_SHIFT)
        return current, average, round_to(shift, 1)
    return current, average, None


def _check_shock(values: Sequence[float], config: MetricConfig, findings: _Findings) -> bool:
    if len(values) < 2:
        return False
    latest, prev = values[-1], values[-2]
    if prev <= 0:
        return False
    change = _pct_change(latest, prev)
    if abs(change) >= config.thresholds.change_detection_pct:
        findings.add(f"Abrupt change of {change:+.1f}% vs previous period", WEIGHT_SHOCK)
        return True
    return False


def _check_outlier(values: Sequence[float], config: MetricConfig, findings: _Findings) -> bool:
    center = median(values)
    sigma = robust_sigma(values)
    if sigma <= 0:
        # MAD collapses when most points are equal; use the plain spread instead.
        sigma = population_stdev(values)
    if sigma <= 0:
        return False
    if abs(values[-1] - center) > sigma * config.thresholds.outlier_mad_multiplier:
        findings.add("Consumption outside historical range (robust outlier)", WEIGHT_OUTLIER)
        return True
    return False


def _forecast_range(point: float, series: Sequence[float]) -> ForecastRange:
    spread = max(robust_sigma(series), population_stdev(series))
    return ForecastRange(min=max(0.0, point - spread), max=point + spread)


def score_from_raw(score_raw: int) -> int:
    return int(round_to(min(score_raw, MAX_SCORE_RAW) / MAX_SCORE_RAW * 10, 0))


def level_for_score(score: int) -> RiskLevel:
    if score >= HIGH_SCORE:
        return "high"
    if score >= MEDIUM_SCORE:
        return "medium"
    return "low"


# -------------------------
# Engine
# -------------------------

def analyze_group(metric: str, center: str, rows: Sequence[PeriodTotals], config: MetricConfig) -> RiskSignal:
    values = [row.value for row in rows]
    costs = [row.cost for row in rows]
    periods = [row.period for row in rows]
    findings = _Findings()

    mix_current: Optional[float] = None
    mix_avg: Optional[float] = None
    mix_shift: Optional[float] = None

    if len(rows) >= TREND_WINDOW:
        window = rows[-TREND_WINDOW:]
        _check_trend(window, config, findings)
        if metric == "water_human":
            mix_current, mix_avg, mix_shift = _check_mix(window, config, findings)

    change_detected = _check_shock(values, config, findings)
    outlier = _check_outlier(values, config, findings)

    factor = seasonality_factor(values, periods, period_month(periods[-1]))
    forecast = weighted_moving_average(values) * factor
    forecast_cost = weighted_moving_average(costs)

    score = score_from_raw(findings.score_raw)

    return RiskSignal(
        center=center,
        metric=metric,
        label=config.label,
        unit=config.unit,
        period=periods[-1],
        level=level_for_score(score),
        reasons=findings.reasons,
        actions=list(ACTION_TEMPLATES[metric]) if findings.reasons else [],
        forecast_30d=forecast,
        forecast_cost_30d=forecast_cost,
        forecast_range=_forecast_range(forecast, values),
        forecast_cost_range=_forecast_range(forecast_cost, costs),
        outlier=outlier,
        change_detected=change_detected,
        mix_shift_pct=mix_shift,
        mix_current_pct=mix_current,
        mix_avg_pct=mix_avg,
        latest_value=values[-1],
        score=score,
        score_raw=findings.score_raw,
        data_points=len(rows),
    )


def select_top_risks(signals: Sequence[RiskSignal], count: int = DEFAULT_TOP_RISK_COUNT) -> List[RiskSignal]:
    # sorted() is stable, so equal scores keep input order
    flagged = [s for s in signals if s.level != "low"]
    return sorted(flagged, key=lambda s: s.score, reverse=True)[: max(0, count)]


def compute_risk_signals(
    records: Iterable[RiskRecord],
    *,
    metric_configs: Optional[Mapping[str, Mapping[str, Any]]] = None,
    top_risk_count: int = DEFAULT_TOP_RISK_COUNT,
) -> RiskSignalsResult:
    configs = resolve_metric_configs(metric_configs)
    grouped = group_records(records)
    if not grouped:
        return RiskSignalsResult()

    signals = [
        analyze_group(metric, center, rows, configs[metric])
        for (metric, center), rows in grouped.items()
    ]
    return RiskSignalsResult(signals=signals, top_risks=select_top_risks(signals, top_risk_count))
