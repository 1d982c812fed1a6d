# backend/app/risk/__init__.py
from __future__ import annotations

from .config import DEFAULT_METRIC_CONFIGS, MetricConfig, MetricThresholds, resolve_metric_configs
from .meter_baseline import MeterReading, MeterRisk, compute_water_meter_risk, filter_meter_risks
from .signals import RiskRecord, RiskSignal, RiskSignalsResult, compute_risk_signals

__all__ = [
    "DEFAULT_METRIC_CONFIGS",
    "MeterReading",
    "MeterRisk",
    "MetricConfig",
    "MetricThresholds",
    "RiskRecord",
    "RiskSignal",
    "RiskSignalsResult",
    "compute_risk_signals",
    "compute_water_meter_risk",
    "filter_meter_risks",
    "resolve_metric_configs",
]
