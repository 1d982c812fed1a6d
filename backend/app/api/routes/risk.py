from __future__ import annotations

from dataclasses import asdict
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from backend.app.api.config import default_top_risk_count
from backend.app.db import get_db
from backend.app.domain.contracts import MeterReadingContract, RiskRecordContract, RiskSignalsResponse
from backend.app.risk.adapters import contract_to_reading, contracts_to_records
from backend.app.risk.meter_baseline import DEFAULT_MIN_BASELINE, DEFAULT_WINDOW_SIZE
from backend.app.services import risk_alert_service, risk_signals_service, water_meter_risk_service

router = APIRouter(prefix="/api/risk", tags=["risk"])


class RiskSignalsIn(BaseModel):
    records: List[RiskRecordContract]
    metric_configs: Optional[Dict[str, Dict[str, Any]]] = None
    top_risk_count: Optional[int] = Field(default=None, ge=0)


class WaterMeterRiskIn(BaseModel):
    readings: List[MeterReadingContract]
    window_size: int = Field(default=DEFAULT_WINDOW_SIZE, ge=1)
    min_baseline: float = Field(default=DEFAULT_MIN_BASELINE, ge=0)
    min_delta_pct: Optional[float] = None
    centro: Optional[str] = None
    medidor: Optional[str] = None


class RiskAlertRunIn(BaseModel):
    organization_ids: Optional[List[str]] = None


class RiskAlertStatusIn(BaseModel):
    status: str = Field(..., min_length=2, max_length=20)


@router.post("/signals", response_model=RiskSignalsResponse)
def compute_signals(req: RiskSignalsIn):
    top = req.top_risk_count if req.top_risk_count is not None else default_top_risk_count()
    return risk_signals_service.compute_signals_payload(
        contracts_to_records(req.records),
        top_risk_count=top,
        metric_configs=req.metric_configs,
    )


@router.post("/water-meters")
def compute_water_meters(req: WaterMeterRiskIn):
    return water_meter_risk_service.meter_risks_payload(
        [contract_to_reading(r) for r in req.readings],
        window_size=req.window_size,
        min_baseline=req.min_baseline,
        min_delta_pct=req.min_delta_pct,
        centro=req.centro,
        medidor=req.medidor,
    )


@router.post("/alerts/run")
def run_alerts(req: RiskAlertRunIn, db: Session = Depends(get_db)):
    result = risk_alert_service.generate_risk_alerts(db, organization_ids=req.organization_ids)
    return asdict(result)


@router.get("/alerts/runs/last")
def last_alert_run(db: Session = Depends(get_db)):
    run = risk_alert_service.get_last_run(db)
    if run is None:
        return {"run": None}
    return {
        "run": {
            "id": run.id,
            "started_at": run.started_at.isoformat() if run.started_at else None,
            "finished_at": run.finished_at.isoformat() if run.finished_at else None,
            "organizations_processed": run.organizations_processed,
            "alerts_written": run.alerts_written,
            "alerts_skipped": run.alerts_skipped,
            "errors": run.errors_json or [],
        }
    }


@router.post("/alerts/{alert_id}/status")
def update_alert_status(alert_id: str, req: RiskAlertStatusIn, db: Session = Depends(get_db)):
    return risk_alert_service.update_risk_alert_status(db, alert_id, req.status)


@router.get("/{organization_id}/signals", response_model=RiskSignalsResponse)
def get_signals(
    organization_id: str,
    top: Optional[int] = Query(None, ge=0),
    db: Session = Depends(get_db),
):
    return risk_signals_service.get_risk_signals(
        db,
        organization_id,
        top_risk_count=top if top is not None else default_top_risk_count(),
    )


@router.get("/{organization_id}/water-meters")
def get_water_meters(
    organization_id: str,
    window_size: int = Query(DEFAULT_WINDOW_SIZE, ge=1),
    min_baseline: float = Query(DEFAULT_MIN_BASELINE, ge=0),
    min_delta_pct: Optional[float] = Query(None),
    centro: Optional[str] = Query(None),
    medidor: Optional[str] = Query(None),
    db: Session = Depends(get_db),
):
    return water_meter_risk_service.get_water_meter_risks(
        db,
        organization_id,
        window_size=window_size,
        min_baseline=min_baseline,
        min_delta_pct=min_delta_pct,
        centro=centro,
        medidor=medidor,
    )


@router.get("/{organization_id}/alerts")
def get_alerts(
    organization_id: str,
    status: Optional[str] = Query(None),
    db: Session = Depends(get_db),
):
    return {"alerts": risk_alert_service.list_risk_alerts(db, organization_id, status=status)}
