from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import (
    Boolean,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    JSON,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from backend.app.db import Base


# -------------------------
# Helpers
# -------------------------

def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def uuid_str() -> str:
    return str(uuid.uuid4())


# -------------------------
# Tenants
# -------------------------

class Organization(Base):
    __tablename__ = "organizations"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=uuid_str)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)

    risk_alerts = relationship(
        "RiskAlert",
        back_populates="organization",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )


# -------------------------
# Consumption sources
# -------------------------

class HumanWaterConsumption(Base):
    """
    Drinking water deliveries.
    formato: botella | bidon_20l
    """
    __tablename__ = "human_water_consumption"
    __table_args__ = (
        Index("ix_human_water_org_period", "organization_id", "period"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=uuid_str)
    organization_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("organizations.id", ondelete="CASCADE"),
        nullable=False,
    )
    period: Mapped[str] = mapped_column(String(7), nullable=False)  # YYYY-MM
    centro_trabajo: Mapped[str] = mapped_column(String(200), nullable=False)
    formato: Mapped[str] = mapped_column(String(20), nullable=False)
    cantidad: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    precio_unitario: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    total_costo: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    proveedor: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)


class ElectricMeterReading(Base):
    __tablename__ = "electric_meter_readings"
    __table_args__ = (
        Index("ix_electric_readings_org_period", "organization_id", "period"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=uuid_str)
    organization_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("organizations.id", ondelete="CASCADE"),
        nullable=False,
    )
    period: Mapped[str] = mapped_column(String(7), nullable=False)
    centro_trabajo: Mapped[str] = mapped_column(String(200), nullable=False)
    medidor: Mapped[str] = mapped_column(String(120), nullable=False)
    consumo_kwh: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    costo_total: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    tipo_uso: Mapped[Optional[str]] = mapped_column(String(80), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)


class WaterReading(Base):
    """Organization-wide water bill (one general meter)."""
    __tablename__ = "water_readings"
    __table_args__ = (
        Index("ix_water_readings_org_period", "organization_id", "period"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=uuid_str)
    organization_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("organizations.id", ondelete="CASCADE"),
        nullable=False,
    )
    period: Mapped[str] = mapped_column(String(7), nullable=False)
    consumo_m3: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    costo: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    observaciones: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)


class WaterMeterReading(Base):
    __tablename__ = "water_meter_readings"
    __table_args__ = (
        Index("ix_water_meter_readings_org_period", "organization_id", "period"),
        Index("ix_water_meter_readings_meter", "organization_id", "centro_trabajo", "medidor"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=uuid_str)
    organization_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("organizations.id", ondelete="CASCADE"),
        nullable=False,
    )
    period: Mapped[str] = mapped_column(String(7), nullable=False)
    centro_trabajo: Mapped[str] = mapped_column(String(200), nullable=False)
    medidor: Mapped[str] = mapped_column(String(120), nullable=False)
    consumo_m3: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    lectura_m3: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    costo_total: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)


# -------------------------
# Risk alerts
# -------------------------

class RiskAlert(Base):
    """
    Persisted snapshot of a non-low risk signal.
    status: open | acknowledged | resolved
    """
    __tablename__ = "risk_alerts"
    __table_args__ = (
        UniqueConstraint(
            "organization_id", "center", "metric", "period", name="uq_risk_alerts_org_center_metric_period"
        ),
        Index("ix_risk_alerts_org_status", "organization_id", "status"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=uuid_str)
    organization_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("organizations.id", ondelete="CASCADE"),
        nullable=False,
    )
    center: Mapped[str] = mapped_column(String(255), nullable=False)
    metric: Mapped[str] = mapped_column(String(32), nullable=False)
    period: Mapped[str] = mapped_column(String(7), nullable=False)

    level: Mapped[str] = mapped_column(String(16), nullable=False, default="low")
    score: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="open")

    latest_value: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    forecast_value: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    forecast_cost: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    range_min: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    range_max: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    range_cost_min: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    range_cost_max: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)

    reasons: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    actions: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    change_detected: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    outlier: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    mix_current_pct: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    mix_avg_pct: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    mix_shift_pct: Mapped[Optional[float]] = mapped_column(Float, nullable=True)

    baseline_value: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    prev_value: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    delta_pct: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    seasonality_factor: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    confidence: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    data_points: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        onupdate=utcnow,
    )

    organization = relationship("Organization", back_populates="risk_alerts")


class RiskAlertRun(Base):
    __tablename__ = "risk_alert_runs"
    __table_args__ = (
        Index("ix_risk_alert_runs_started_at", "started_at"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=uuid_str)
    started_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
    finished_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    organizations_processed: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    alerts_written: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    alerts_skipped: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    errors_json: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
