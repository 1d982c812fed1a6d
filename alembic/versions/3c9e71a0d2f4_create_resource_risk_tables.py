"""create resource risk tables

Revision ID: 3c9e71a0d2f4
Revises:
Create Date: 2026-03-02 00:00:00.000000
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "3c9e71a0d2f4"
down_revision = None
branch_labels = None
depends_on = None


def _org_fk() -> sa.ForeignKeyConstraint:
    return sa.ForeignKeyConstraint(["organization_id"], ["organizations.id"], ondelete="CASCADE")


def upgrade() -> None:
    op.create_table(
        "organizations",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )

    op.create_table(
        "human_water_consumption",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("organization_id", sa.String(length=36), nullable=False),
        sa.Column("period", sa.String(length=7), nullable=False),
        sa.Column("centro_trabajo", sa.String(length=200), nullable=False),
        sa.Column("formato", sa.String(length=20), nullable=False),
        sa.Column("cantidad", sa.Float(), nullable=False),
        sa.Column("precio_unitario", sa.Float(), nullable=True),
        sa.Column("total_costo", sa.Float(), nullable=True),
        sa.Column("proveedor", sa.String(length=200), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        _org_fk(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_human_water_org_period", "human_water_consumption", ["organization_id", "period"])

    op.create_table(
        "electric_meter_readings",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("organization_id", sa.String(length=36), nullable=False),
        sa.Column("period", sa.String(length=7), nullable=False),
        sa.Column("centro_trabajo", sa.String(length=200), nullable=False),
        sa.Column("medidor", sa.String(length=120), nullable=False),
        sa.Column("consumo_kwh", sa.Float(), nullable=False),
        sa.Column("costo_total", sa.Float(), nullable=True),
        sa.Column("tipo_uso", sa.String(length=80), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        _org_fk(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_electric_readings_org_period", "electric_meter_readings", ["organization_id", "period"])

    op.create_table(
        "water_readings",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("organization_id", sa.String(length=36), nullable=False),
        sa.Column("period", sa.String(length=7), nullable=False),
        sa.Column("consumo_m3", sa.Float(), nullable=False),
        sa.Column("costo", sa.Float(), nullable=True),
        sa.Column("observaciones", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        _org_fk(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_water_readings_org_period", "water_readings", ["organization_id", "period"])

    op.create_table(
        "water_meter_readings",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("organization_id", sa.String(length=36), nullable=False),
        sa.Column("period", sa.String(length=7), nullable=False),
        sa.Column("centro_trabajo", sa.String(length=200), nullable=False),
        sa.Column("medidor", sa.String(length=120), nullable=False),
        sa.Column("consumo_m3", sa.Float(), nullable=False),
        sa.Column("lectura_m3", sa.Float(), nullable=True),
        sa.Column("costo_total", sa.Float(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        _org_fk(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_water_meter_readings_org_period", "water_meter_readings", ["organization_id", "period"])
    op.create_index(
        "ix_water_meter_readings_meter",
        "water_meter_readings",
        ["organization_id", "centro_trabajo", "medidor"],
    )

    op.create_table(
        "risk_alerts",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("organization_id", sa.String(length=36), nullable=False),
        sa.Column("center", sa.String(length=255), nullable=False),
        sa.Column("metric", sa.String(length=32), nullable=False),
        sa.Column("period", sa.String(length=7), nullable=False),
        sa.Column("level", sa.String(length=16), nullable=False),
        sa.Column("score", sa.Integer(), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False),
        sa.Column("latest_value", sa.Float(), nullable=False),
        sa.Column("forecast_value", sa.Float(), nullable=False),
        sa.Column("forecast_cost", sa.Float(), nullable=False),
        sa.Column("range_min", sa.Float(), nullable=False),
        sa.Column("range_max", sa.Float(), nullable=False),
        sa.Column("range_cost_min", sa.Float(), nullable=False),
        sa.Column("range_cost_max", sa.Float(), nullable=False),
        sa.Column("reasons", sa.JSON(), nullable=False),
        sa.Column("actions", sa.JSON(), nullable=False),
        sa.Column("change_detected", sa.Boolean(), nullable=False),
        sa.Column("outlier", sa.Boolean(), nullable=False),
        sa.Column("mix_current_pct", sa.Float(), nullable=True),
        sa.Column("mix_avg_pct", sa.Float(), nullable=True),
        sa.Column("mix_shift_pct", sa.Float(), nullable=True),
        sa.Column("baseline_value", sa.Float(), nullable=True),
        sa.Column("prev_value", sa.Float(), nullable=True),
        sa.Column("delta_pct", sa.Float(), nullable=True),
        sa.Column("seasonality_factor", sa.Float(), nullable=True),
        sa.Column("confidence", sa.Float(), nullable=True),
        sa.Column("data_points", sa.Integer(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        _org_fk(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint(
            "organization_id", "center", "metric", "period", name="uq_risk_alerts_org_center_metric_period"
        ),
    )
    op.create_index("ix_risk_alerts_org_status", "risk_alerts", ["organization_id", "status"])

    op.create_table(
        "risk_alert_runs",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("finished_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("organizations_processed", sa.Integer(), nullable=False),
        sa.Column("alerts_written", sa.Integer(), nullable=False),
        sa.Column("alerts_skipped", sa.Integer(), nullable=False),
        sa.Column("errors_json", sa.JSON(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_risk_alert_runs_started_at", "risk_alert_runs", ["started_at"])


def downgrade() -> None:
    op.drop_index("ix_risk_alert_runs_started_at", table_name="risk_alert_runs")
    op.drop_table("risk_alert_runs")
    op.drop_index("ix_risk_alerts_org_status", table_name="risk_alerts")
    op.drop_table("risk_alerts")
    op.drop_index("ix_water_meter_readings_meter", table_name="water_meter_readings")
    op.drop_index("ix_water_meter_readings_org_period", table_name="water_meter_readings")
    op.drop_table("water_meter_readings")
    op.drop_index("ix_water_readings_org_period", table_name="water_readings")
    op.drop_table("water_readings")
    op.drop_index("ix_electric_readings_org_period", table_name="electric_meter_readings")
    op.drop_table("electric_meter_readings")
    op.drop_index("ix_human_water_org_period", table_name="human_water_consumption")
    op.drop_table("human_water_consumption")
    op.drop_table("organizations")
