from __future__ import annotations

import logging
from typing import Any, Dict, List, Mapping, Optional

from fastapi import HTTPException
from sqlalchemy import select
from sqlalchemy.orm import Session

from backend.app.models import ElectricMeterReading, HumanWaterConsumption, Organization, WaterReading
from backend.app.risk.adapters import (
    electric_reading_to_record,
    human_water_to_record,
    signal_to_contract,
    water_reading_to_record,
)
from backend.app.risk.signals import DEFAULT_TOP_RISK_COUNT, RiskRecord, RiskSignalsResult, compute_risk_signals

logger = logging.getLogger(__name__)


def require_organization(db: Session, organization_id: str) -> Organization:
    org = db.get(Organization, organization_id)
    if not org:
        raise HTTPException(status_code=404, detail="organization not found")
    return org


def load_risk_records(db: Session, organization_id: str) -> List[RiskRecord]:
    """Every consumption source of one organization, as engine records."""
    human_rows = db.execute(
        select(HumanWaterConsumption)
        .where(HumanWaterConsumption.organization_id == organization_id)
        .order_by(HumanWaterConsumption.period.asc(), HumanWaterConsumption.id.asc())
    ).scalars().all()
    electric_rows = db.execute(
        select(ElectricMeterReading)
        .where(ElectricMeterReading.organization_id == organization_id)
        .order_by(ElectricMeterReading.period.asc(), ElectricMeterReading.id.asc())
    ).scalars().all()
    water_rows = db.execute(
        select(WaterReading)
        .where(WaterReading.organization_id == organization_id)
        .order_by(WaterReading.period.asc(), WaterReading.id.asc())
    ).scalars().all()

    records: List[RiskRecord] = []
    records.extend(human_water_to_record(row) for row in human_rows)
    records.extend(electric_reading_to_record(row) for row in electric_rows)
    records.extend(water_reading_to_record(row) for row in water_rows)
    return records


def serialize_result(result: RiskSignalsResult, **meta: Any) -> Dict[str, Any]:
    return {
        "signals": [signal_to_contract(s).model_dump() for s in result.signals],
        "top_risks": [signal_to_contract(s).model_dump() for s in result.top_risks],
        "meta": {
            "signal_count": len(result.signals),
            "top_risk_count": len(result.top_risks),
            **meta,
        },
    }


def compute_signals_payload(
    records: List[RiskRecord],
    *,
    top_risk_count: int = DEFAULT_TOP_RISK_COUNT,
    metric_configs: Optional[Mapping[str, Mapping[str, Any]]] = None,
) -> Dict[str, Any]:
    try:
        result = compute_risk_signals(records, metric_configs=metric_configs, top_risk_count=top_risk_count)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return serialize_result(result, record_count=len(records))


def get_risk_signals(
    db: Session,
    organization_id: str,
    *,
    top_risk_count: int = DEFAULT_TOP_RISK_COUNT,
    metric_configs: Optional[Mapping[str, Mapping[str, Any]]] = None,
) -> Dict[str, Any]:
    require_organization(db, organization_id)
    records = load_risk_records(db, organization_id)
    if not records:
        logger.info("No consumption records for organization_id=%s", organization_id)
    payload = compute_signals_payload(records, top_risk_count=top_risk_count, metric_configs=metric_configs)
    payload["meta"]["organization_id"] = organization_id
    return payload
