from __future__ import annotations

from dataclasses import asdict
from typing import Any, List, Mapping, Union

from backend.app.domain.contracts import (
    MeterReadingContract,
    MeterRiskResult,
    RiskRecordContract,
    RiskSignalResult,
)
from backend.app.risk.meter_baseline import MeterReading, MeterRisk
from backend.app.risk.signals import RiskRecord, RiskSignal
from backend.app.risk.stats import coerce_number

# Container sizes used to turn human-water unit counts into litres.
BOTTLE_LITERS = 0.5
BIDON_LITERS = 20.0

HUMAN_WATER_CENTER = "Human water · {centro}"
ENERGY_CENTER = "Energy · {centro}"
GENERAL_WATER_CENTER = "Metered water · General"

Row = Union[Mapping[str, Any], Any]


def _get(row: Row, key: str) -> Any:
    if isinstance(row, Mapping):
        return row.get(key)
    return getattr(row, key, None)


def human_water_to_record(row: Row) -> RiskRecord:
    formato = _get(row, "formato")
    cantidad = coerce_number(_get(row, "cantidad"))
    bottles = cantidad if formato == "botella" else 0.0
    bidons = cantidad if formato == "bidon_20l" else 0.0
    return RiskRecord(
        period=str(_get(row, "period") or ""),
        center=HUMAN_WATER_CENTER.format(centro=_get(row, "centro_trabajo") or ""),
        metric="water_human",
        value=bottles * BOTTLE_LITERS + bidons * BIDON_LITERS,
        cost=coerce_number(_get(row, "total_costo")),
        bottles=bottles,
        bidons=bidons,
    )


def electric_reading_to_record(row: Row) -> RiskRecord:
    return RiskRecord(
        period=str(_get(row, "period") or ""),
        center=ENERGY_CENTER.format(centro=_get(row, "centro_trabajo") or ""),
        metric="energy",
        value=coerce_number(_get(row, "consumo_kwh")),
        cost=coerce_number(_get(row, "costo_total")),
    )


def water_reading_to_record(row: Row) -> RiskRecord:
    return RiskRecord(
        period=str(_get(row, "period") or ""),
        center=GENERAL_WATER_CENTER,
        metric="water_meter",
        value=coerce_number(_get(row, "consumo_m3")),
        cost=coerce_number(_get(row, "costo")),
    )


def water_meter_row_to_reading(row: Row) -> MeterReading:
    return MeterReading(
        centro_trabajo=str(_get(row, "centro_trabajo") or ""),
        medidor=str(_get(row, "medidor") or ""),
        period=str(_get(row, "period") or ""),
        consumo_m3=coerce_number(_get(row, "consumo_m3")),
    )


def contract_to_record(contract: RiskRecordContract) -> RiskRecord:
    return RiskRecord(**contract.model_dump())


def contracts_to_records(contracts: List[RiskRecordContract]) -> List[RiskRecord]:
    return [contract_to_record(c) for c in contracts]


def contract_to_reading(contract: MeterReadingContract) -> MeterReading:
    return MeterReading(**contract.model_dump())


def signal_to_contract(signal: RiskSignal) -> RiskSignalResult:
    return RiskSignalResult(**asdict(signal))


def meter_risk_to_contract(risk: MeterRisk) -> MeterRiskResult:
    return MeterRiskResult(**asdict(risk))
