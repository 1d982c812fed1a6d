from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator

from backend.app.risk.stats import coerce_number


class RiskRecordContract(BaseModel):
    period: str = Field(..., pattern=r"^\d{4}-\d{2}$")
    center: str
    metric: str
    value: float = 0.0
    cost: float = 0.0
    bottles: float = 0.0
    bidons: float = 0.0

    @field_validator("value", "cost", "bottles", "bidons", mode="before")
    @classmethod
    def _coerce(cls, v: Any) -> float:
        return coerce_number(v)


class MeterReadingContract(BaseModel):
    centro_trabajo: str
    medidor: str
    period: str = Field(..., pattern=r"^\d{4}-\d{2}$")
    consumo_m3: float = 0.0

    @field_validator("consumo_m3", mode="before")
    @classmethod
    def _coerce(cls, v: Any) -> float:
        return coerce_number(v)


class ForecastRangeContract(BaseModel):
    min: float
    max: float


class RiskSignalResult(BaseModel):
    center: str
    metric: str
    label: str
    unit: str
    period: str
    level: str
    reasons: List[str]
    actions: List[str]
    forecast_30d: float
    forecast_cost_30d: float
    forecast_range: ForecastRangeContract
    forecast_cost_range: ForecastRangeContract
    outlier: bool
    change_detected: bool
    mix_shift_pct: Optional[float] = None
    mix_current_pct: Optional[float] = None
    mix_avg_pct: Optional[float] = None
    latest_value: float
    score: int
    score_raw: int
    data_points: int


class RiskSignalsResponse(BaseModel):
    signals: List[RiskSignalResult]
    top_risks: List[RiskSignalResult]
    meta: Dict[str, Any] = Field(default_factory=dict)


class MeterRiskResult(BaseModel):
    centro_trabajo: str
    medidor: str
    period: str
    baseline_m3: float
    current_m3: float
    delta_pct: float
    confidence: float
    data_points: int


class RiskAlertContract(BaseModel):
    id: str
    organization_id: str
    center: str
    metric: str
    period: str
    level: str
    score: int
    status: str
    latest_value: float
    forecast_value: float
    forecast_cost: float
    range_min: float
    range_max: float
    range_cost_min: float
    range_cost_max: float
    reasons: List[str]
    actions: List[str]
    change_detected: bool
    outlier: bool
    mix_current_pct: Optional[float] = None
    mix_avg_pct: Optional[float] = None
    mix_shift_pct: Optional[float] = None
    baseline_value: Optional[float] = None
    prev_value: Optional[float] = None
    delta_pct: Optional[float] = None
    seasonality_factor: Optional[float] = None
    confidence: Optional[float] = None
    data_points: Optional[int] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None
