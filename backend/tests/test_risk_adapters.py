from types import SimpleNamespace

import pytest
from pydantic import ValidationError

from backend.app.domain.contracts import MeterReadingContract, RiskRecordContract, RiskSignalResult
from backend.app.risk.adapters import (
    contract_to_reading,
    contract_to_record,
    electric_reading_to_record,
    human_water_to_record,
    signal_to_contract,
    water_meter_row_to_reading,
    water_reading_to_record,
)
from backend.app.risk.signals import RiskRecord, compute_risk_signals


def test_human_water_bottles_and_bidons_become_liters():
    bottles = human_water_to_record(
        {"period": "2024-05", "centro_trabajo": "Norte", "formato": "botella", "cantidad": 40, "total_costo": 20}
    )
    assert bottles.metric == "water_human"
    assert bottles.center == "Human water · Norte"
    assert bottles.value == pytest.approx(20.0)
    assert bottles.bottles == 40
    assert bottles.bidons == 0
    assert bottles.cost == 20

    bidons = human_water_to_record(
        SimpleNamespace(period="2024-05", centro_trabajo="Norte", formato="bidon_20l", cantidad="3", total_costo=None)
    )
    assert bidons.value == pytest.approx(60.0)
    assert bidons.bidons == 3
    assert bidons.cost == 0.0


def test_unknown_format_counts_nothing():
    record = human_water_to_record({"period": "2024-05", "centro_trabajo": "Norte", "formato": "jarra", "cantidad": 9})
    assert record.value == 0
    assert record.bottles == 0
    assert record.bidons == 0


def test_energy_and_general_water_rows():
    energy = electric_reading_to_record(
        {"period": "2024-01", "centro_trabajo": "Sur", "consumo_kwh": "1200.5", "costo_total": -4}
    )
    assert energy.metric == "energy"
    assert energy.center == "Energy · Sur"
    assert energy.value == pytest.approx(1200.5)
    assert energy.cost == 0.0

    water = water_reading_to_record({"period": "2024-01", "consumo_m3": None, "costo": 15})
    assert water.metric == "water_meter"
    assert water.center == "Metered water · General"
    assert water.value == 0.0
    assert water.cost == 15


def test_water_meter_row_to_reading():
    reading = water_meter_row_to_reading(
        SimpleNamespace(centro_trabajo="Sur", medidor="M-7", period="2024-02", consumo_m3="abc")
    )
    assert reading.medidor == "M-7"
    assert reading.consumo_m3 == 0.0


def test_contracts_coerce_values_and_validate_period():
    contract = RiskRecordContract(period="2024-03", center="A", metric="energy", value="12", cost=None)
    record = contract_to_record(contract)
    assert record.value == 12.0
    assert record.cost == 0.0

    reading = contract_to_reading(
        MeterReadingContract(centro_trabajo="A", medidor="M1", period="2024-03", consumo_m3=-1)
    )
    assert reading.consumo_m3 == 0.0

    with pytest.raises(ValidationError):
        RiskRecordContract(period="March", center="A", metric="energy")


def test_signal_to_contract_carries_nested_ranges():
    records = [RiskRecord(period=f"2024-0{m}", center="A", metric="energy", value=v) for m, v in ((1, 100), (2, 150))]
    (signal,) = compute_risk_signals(records).signals

    contract = signal_to_contract(signal)

    assert isinstance(contract, RiskSignalResult)
    assert contract.forecast_range.min == signal.forecast_range.min
    assert contract.forecast_range.max == signal.forecast_range.max
    assert contract.reasons == signal.reasons
    assert contract.mix_shift_pct is None
