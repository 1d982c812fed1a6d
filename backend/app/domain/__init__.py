"""Domain contracts and shared types."""

from backend.app.domain.contracts import (  # noqa: F401
    MeterReadingContract,
    MeterRiskResult,
    RiskAlertContract,
    RiskRecordContract,
    RiskSignalResult,
    RiskSignalsResponse,
)
