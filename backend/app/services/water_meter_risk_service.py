from __future__ import annotations

from typing import Any, Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from backend.app.models import WaterMeterReading
from backend.app.risk.adapters import meter_risk_to_contract, water_meter_row_to_reading
from backend.app.risk.meter_baseline import (
    DEFAULT_MIN_BASELINE,
    DEFAULT_WINDOW_SIZE,
    MeterReading,
    compute_water_meter_risk,
    filter_meter_risks,
)
from backend.app.services.risk_signals_service import require_organization


def load_meter_readings(db: Session, organization_id: str) -> List[MeterReading]:
    rows = db.execute(
        select(WaterMeterReading)
        .where(WaterMeterReading.organization_id == organization_id)
        .order_by(
            WaterMeterReading.centro_trabajo.asc(),
            WaterMeterReading.medidor.asc(),
            WaterMeterReading.period.asc(),
        )
    ).scalars().all()
    return [water_meter_row_to_reading(row) for row in rows]


def meter_risks_payload(
    readings: List[MeterReading],
    *,
    window_size: int = DEFAULT_WINDOW_SIZE,
    min_baseline: float = DEFAULT_MIN_BASELINE,
    min_delta_pct: Optional[float] = None,
    centro: Optional[str] = None,
    medidor: Optional[str] = None,
) -> Dict[str, Any]:
    computed = compute_water_meter_risk(readings, window_size=window_size, min_baseline=min_baseline)
    risks = filter_meter_risks(computed, min_delta_pct=min_delta_pct, centro=centro, medidor=medidor)
    return {
        "risks": [meter_risk_to_contract(r).model_dump() for r in risks],
        "meta": {
            "meters_evaluated": len(computed),
            "meters_returned": len(risks),
            "window_size": window_size,
            "min_delta_pct": min_delta_pct,
        },
    }


def get_water_meter_risks(
    db: Session,
    organization_id: str,
    *,
    window_size: int = DEFAULT_WINDOW_SIZE,
    min_baseline: float = DEFAULT_MIN_BASELINE,
    min_delta_pct: Optional[float] = None,
    centro: Optional[str] = None,
    medidor: Optional[str] = None,
) -> Dict[str, Any]:
    require_organization(db, organization_id)
    payload = meter_risks_payload(
        load_meter_readings(db, organization_id),
        window_size=window_size,
        min_baseline=min_baseline,
        min_delta_pct=min_delta_pct,
        centro=centro,
        medidor=medidor,
    )
    payload["meta"]["organization_id"] = organization_id
    return payload
