from __future__ import annotations

import logging
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence, Tuple

from fastapi import HTTPException
from sqlalchemy import select
from sqlalchemy.orm import Session

from backend.app.domain.contracts import RiskAlertContract
from backend.app.models import Organization, RiskAlert, RiskAlertRun
from backend.app.risk.signals import PeriodTotals, RiskSignal, compute_risk_signals, group_records
from backend.app.risk.stats import median, round_to
from backend.app.services import risk_signals_service

logger = logging.getLogger(__name__)

ALLOWED_STATUSES = {"open", "acknowledged", "resolved"}
# Alerts a person has already handled are never overwritten by the job.
LOCKED_STATUSES = {"acknowledged", "resolved"}

# Twelve months of history counts as full confidence.
CONFIDENCE_FULL_HISTORY = 12


@dataclass(frozen=True)
class RiskAlertError:
    organization_id: str
    message: str


@dataclass(frozen=True)
class RiskAlertRunResult:
    run_id: str
    organizations_processed: int
    alerts_written: int
    alerts_skipped: int
    errors: list[dict]
    started_at: str
    finished_at: str


def _now_utc() -> datetime:
    return datetime.now(timezone.utc)


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def build_alert_fields(signal: RiskSignal, series: Sequence[PeriodTotals]) -> Dict[str, Any]:
    """Column values for one alert row, including the history-derived context."""
    values = [row.value for row in series]
    data_points = len(values)
    prev_value = values[-2] if data_points >= 2 else None
    delta_pct = (
        (signal.latest_value - prev_value) / prev_value * 100
        if prev_value is not None and prev_value > 0
        else None
    )
    seasonality = (
        round_to(signal.forecast_30d / max(signal.latest_value or 1, 1), 4)
        if signal.forecast_30d > 0
        else None
    )
    confidence = min(1.0, data_points / CONFIDENCE_FULL_HISTORY) if data_points > 0 else 0.0

    return {
        "center": signal.center,
        "metric": signal.metric,
        "period": signal.period,
        "level": signal.level,
        "score": signal.score,
        "latest_value": signal.latest_value,
        "forecast_value": signal.forecast_30d,
        "forecast_cost": signal.forecast_cost_30d,
        "range_min": signal.forecast_range.min,
        "range_max": signal.forecast_range.max,
        "range_cost_min": signal.forecast_cost_range.min,
        "range_cost_max": signal.forecast_cost_range.max,
        "reasons": list(signal.reasons),
        "actions": list(signal.actions),
        "change_detected": signal.change_detected,
        "outlier": signal.outlier,
        "mix_current_pct": signal.mix_current_pct,
        "mix_avg_pct": signal.mix_avg_pct,
        "mix_shift_pct": signal.mix_shift_pct,
        "baseline_value": median(values),
        "prev_value": prev_value,
        "delta_pct": delta_pct,
        "seasonality_factor": seasonality,
        "confidence": confidence,
        "data_points": data_points,
    }


def _upsert_alerts(db: Session, organization_id: str, alerts: List[Dict[str, Any]]) -> Tuple[int, int]:
    existing_rows = db.execute(
        select(RiskAlert).where(RiskAlert.organization_id == organization_id)
    ).scalars().all()
    existing = {(row.center, row.metric, row.period): row for row in existing_rows}

    written = 0
    skipped = 0
    for fields in alerts:
        key = (fields["center"], fields["metric"], fields["period"])
        row = existing.get(key)
        if row is None:
            row = RiskAlert(organization_id=organization_id, status="open", **fields)
            db.add(row)
            existing[key] = row
            written += 1
            continue
        if row.status in LOCKED_STATUSES:
            skipped += 1
            continue
        for name, value in fields.items():
            setattr(row, name, value)
        row.updated_at = _now_utc()
        written += 1

    db.flush()
    return written, skipped


def generate_alerts_for_organization(db: Session, organization_id: str) -> Tuple[int, int]:
    records = risk_signals_service.load_risk_records(db, organization_id)
    grouped = group_records(records)
    result = compute_risk_signals(records)

    alerts = [
        build_alert_fields(signal, grouped[(signal.metric, signal.center)])
        for signal in result.signals
        if signal.level != "low"
    ]
    if not alerts:
        return 0, 0
    return _upsert_alerts(db, organization_id, alerts)


def generate_risk_alerts(
    db: Session,
    *,
    organization_ids: Optional[Sequence[str]] = None,
    now: Optional[datetime] = None,
) -> RiskAlertRunResult:
    """
    Recompute risk signals for every organization and persist non-low ones.

    Organizations are processed one at a time and committed individually; a
    failure is rolled back, recorded on the run and does not stop the rest.
    """
    started_at = now or _now_utc()
    run = RiskAlertRun(started_at=started_at)
    db.add(run)
    db.commit()

    stmt = select(Organization.id).order_by(Organization.created_at.asc(), Organization.id.asc())
    if organization_ids:
        stmt = stmt.where(Organization.id.in_(list(organization_ids)))
    org_ids = list(db.execute(stmt).scalars().all())

    errors: List[RiskAlertError] = []
    written_total = 0
    skipped_total = 0

    for organization_id in org_ids:
        try:
            written, skipped = generate_alerts_for_organization(db, organization_id)
            db.commit()
        except Exception as exc:
            db.rollback()
            logger.warning("Risk alert generation failed for organization_id=%s: %s", organization_id, exc)
            errors.append(RiskAlertError(organization_id=organization_id, message=str(exc)))
            continue
        written_total += written
        skipped_total += skipped

    finished_at = _now_utc()
    run.finished_at = finished_at
    run.organizations_processed = len(org_ids)
    run.alerts_written = written_total
    run.alerts_skipped = skipped_total
    run.errors_json = [asdict(err) for err in errors]
    db.commit()

    logger.info(
        "Risk alert run %s: %d organizations, %d alerts written, %d skipped, %d errors",
        run.id,
        len(org_ids),
        written_total,
        skipped_total,
        len(errors),
    )
    return RiskAlertRunResult(
        run_id=run.id,
        organizations_processed=len(org_ids),
        alerts_written=written_total,
        alerts_skipped=skipped_total,
        errors=[asdict(err) for err in errors],
        started_at=started_at.isoformat(),
        finished_at=finished_at.isoformat(),
    )


def _serialize_alert(row: RiskAlert) -> Dict[str, Any]:
    return RiskAlertContract(
        id=row.id,
        organization_id=row.organization_id,
        center=row.center,
        metric=row.metric,
        period=row.period,
        level=row.level,
        score=row.score,
        status=row.status,
        latest_value=row.latest_value,
        forecast_value=row.forecast_value,
        forecast_cost=row.forecast_cost,
        range_min=row.range_min,
        range_max=row.range_max,
        range_cost_min=row.range_cost_min,
        range_cost_max=row.range_cost_max,
        reasons=list(row.reasons or []),
        actions=list(row.actions or []),
        change_detected=row.change_detected,
        outlier=row.outlier,
        mix_current_pct=row.mix_current_pct,
        mix_avg_pct=row.mix_avg_pct,
        mix_shift_pct=row.mix_shift_pct,
        baseline_value=row.baseline_value,
        prev_value=row.prev_value,
        delta_pct=row.delta_pct,
        seasonality_factor=row.seasonality_factor,
        confidence=row.confidence,
        data_points=row.data_points,
        created_at=_iso(row.created_at),
        updated_at=_iso(row.updated_at),
    ).model_dump()


def list_risk_alerts(db: Session, organization_id: str, *, status: Optional[str] = None) -> List[Dict[str, Any]]:
    risk_signals_service.require_organization(db, organization_id)
    if status is not None and status not in ALLOWED_STATUSES:
        raise HTTPException(status_code=400, detail="invalid status")

    stmt = select(RiskAlert).where(RiskAlert.organization_id == organization_id)
    if status is not None:
        stmt = stmt.where(RiskAlert.status == status)
    rows = db.execute(stmt.order_by(RiskAlert.period.desc(), RiskAlert.score.desc(), RiskAlert.id.asc())).scalars().all()
    return [_serialize_alert(row) for row in rows]


def update_risk_alert_status(db: Session, alert_id: str, status: str) -> Dict[str, Any]:
    if status not in ALLOWED_STATUSES:
        raise HTTPException(status_code=400, detail="invalid status")
    row = db.get(RiskAlert, alert_id)
    if not row:
        raise HTTPException(status_code=404, detail="risk alert not found")

    row.status = status
    row.updated_at = _now_utc()
    db.commit()
    return _serialize_alert(row)


def get_last_run(db: Session) -> Optional[RiskAlertRun]:
    return (
        db.execute(
            select(RiskAlertRun)
            .where(RiskAlertRun.finished_at.is_not(None))
            .order_by(RiskAlertRun.finished_at.desc(), RiskAlertRun.id.desc())
        )
        .scalars()
        .first()
    )
