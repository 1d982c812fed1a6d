from __future__ import annotations

import math
from dataclasses import dataclass, fields, replace
from typing import Any, Dict, List, Literal, Mapping, Optional, Tuple, get_args

MetricKey = Literal["water_human", "water_meter", "energy"]
METRIC_KEYS: Tuple[str, ...] = get_args(MetricKey)


@dataclass(frozen=True)
class MetricThresholds:
    increase_pct: float             # accumulated rise over 3 periods, and unit-cost drift
    flat_tolerance_pct: float       # |change| at or below this counts as flat consumption
    mix_shift_pct: float            # bottle share shift, percentage points
    change_detection_pct: float     # period-over-period shock
    outlier_mad_multiplier: float   # multiples of robust sigma


@dataclass(frozen=True)
class MetricConfig:
    key: MetricKey
    label: str
    unit: str
    thresholds: MetricThresholds


DEFAULT_METRIC_CONFIGS: Dict[str, MetricConfig] = {
    "water_human": MetricConfig(
        key="water_human",
        label="Human water",
        unit="L",
        thresholds=MetricThresholds(
            increase_pct=15,
            flat_tolerance_pct=5,
            mix_shift_pct=20,
            change_detection_pct=18,
            outlier_mad_multiplier=3,
        ),
    ),
    "water_meter": MetricConfig(
        key="water_meter",
        label="Metered water",
        unit="m³",
        thresholds=MetricThresholds(
            increase_pct=12,
            flat_tolerance_pct=4,
            mix_shift_pct=0,
            change_detection_pct=15,
            outlier_mad_multiplier=3,
        ),
    ),
    "energy": MetricConfig(
        key="energy",
        label="Energy",
        unit="kWh",
        thresholds=MetricThresholds(
            increase_pct=10,
            flat_tolerance_pct=4,
            mix_shift_pct=0,
            change_detection_pct=12,
            outlier_mad_multiplier=2.8,
        ),
    ),
}

ACTION_TEMPLATES: Dict[str, List[str]] = {
    "water_human": [
        "Preventive inspection of dispensers",
        "Review supply and contracts",
        "Internal awareness campaign at the center",
    ],
    "water_meter": [
        "Inspect the internal network for leaks",
        "Check meter reading and system pressure",
        "Prioritize meter maintenance",
    ],
    "energy": [
        "Review base loads and schedules",
        "Audit critical equipment",
        "Optimize shifts and climate control",
    ],
}

_THRESHOLD_FIELDS = {f.name for f in fields(MetricThresholds)}


def merge_metric_config(base: MetricConfig, override: Optional[Mapping[str, Any]] = None) -> MetricConfig:
    """
    Overlay a partial override on a built-in config.

    override may carry `label`, `unit` and a partial `thresholds` mapping,
    e.g. {"thresholds": {"increase_pct": 20}}.
    """
    if not override:
        return base

    if not isinstance(override, Mapping):
        raise ValueError(f"override for {base.key} must be a mapping")

    thresholds = base.thresholds
    raw_thresholds = override.get("thresholds") or {}
    if isinstance(raw_thresholds, MetricThresholds):
        thresholds = raw_thresholds
    elif not isinstance(raw_thresholds, Mapping):
        raise ValueError(f"thresholds for {base.key} must be a mapping")
    elif raw_thresholds:
        unknown = {str(k) for k in raw_thresholds} - _THRESHOLD_FIELDS
        if unknown:
            raise ValueError(f"unknown threshold(s): {', '.join(sorted(unknown))}")
        values: Dict[str, float] = {}
        for name, raw in raw_thresholds.items():
            try:
                values[name] = float(raw)
            except (TypeError, ValueError) as exc:
                raise ValueError(f"threshold {name} must be a number") from exc
            if not math.isfinite(values[name]):
                raise ValueError(f"threshold {name} must be a number")
        thresholds = replace(thresholds, **values)

    for name in _THRESHOLD_FIELDS:
        if getattr(thresholds, name) < 0:
            raise ValueError(f"threshold {name} must be non-negative")

    return replace(
        base,
        label=str(override.get("label") or base.label),
        unit=str(override.get("unit") or base.unit),
        thresholds=thresholds,
    )


def resolve_metric_configs(
    overrides: Optional[Mapping[str, Mapping[str, Any]]] = None,
) -> Dict[str, MetricConfig]:
    overrides = overrides or {}
    return {
        key: merge_metric_config(DEFAULT_METRIC_CONFIGS[key], overrides.get(key))
        for key in METRIC_KEYS
    }
