import pytest

from backend.app.risk.config import ACTION_TEMPLATES
from backend.app.risk.signals import (
    ForecastRange,
    RiskRecord,
    RiskSignal,
    compute_risk_signals,
    group_records,
    level_for_score,
    score_from_raw,
    select_top_risks,
)
from backend.app.risk.stats import MAD_TO_SIGMA


def _series(metric, values, *, center="A", costs=None, start_year=2024):
    records = []
    for idx, value in enumerate(values):
        year = start_year + idx // 12
        month = idx % 12 + 1
        records.append(
            RiskRecord(
                period=f"{year}-{month:02d}",
                center=center,
                metric=metric,
                value=value,
                cost=(costs[idx] if costs else 0.0),
            )
        )
    return records


def _only(result):
    assert len(result.signals) == 1
    return result.signals[0]


def _signal(center, level, score):
    return RiskSignal(
        center=center,
        metric="energy",
        label="Energy",
        unit="kWh",
        period="2024-01",
        level=level,
        reasons=["x"],
        actions=[],
        forecast_30d=0.0,
        forecast_cost_30d=0.0,
        forecast_range=ForecastRange(0.0, 0.0),
        forecast_cost_range=ForecastRange(0.0, 0.0),
        outlier=False,
        change_detected=False,
        mix_shift_pct=None,
        mix_current_pct=None,
        mix_avg_pct=None,
        latest_value=0.0,
        score=score,
        score_raw=0,
        data_points=1,
    )


def test_empty_input_returns_empty_result():
    result = compute_risk_signals([])
    assert result.signals == []
    assert result.top_risks == []


def test_one_signal_per_metric_center_pair_and_blank_centers_dropped():
    records = [
        RiskRecord(period="2024-01", center="A", metric="energy", value=10),
        RiskRecord(period="2024-01", center="A", metric="water_meter", value=10),
        RiskRecord(period="2024-02", center="A", metric="energy", value=12),
        RiskRecord(period="2024-01", center="B", metric="energy", value=5),
        RiskRecord(period="2024-01", center="", metric="energy", value=999),
    ]
    result = compute_risk_signals(records)
    pairs = [(s.metric, s.center) for s in result.signals]
    assert pairs == [("energy", "A"), ("water_meter", "A"), ("energy", "B")]


def test_unknown_metric_is_ignored():
    records = [RiskRecord(period="2024-01", center="A", metric="fuel", value=10)]
    assert compute_risk_signals(records).signals == []


def test_rows_in_same_period_are_summed_and_sorted():
    records = [
        RiskRecord(period="2024-03", center="A", metric="energy", value=30, cost=3),
        RiskRecord(period="2024-01", center="A", metric="energy", value=10, cost=1),
        RiskRecord(period="2024-03", center="A", metric="energy", value=5, cost=2),
        RiskRecord(period="2024-02", center="A", metric="energy", value=20),
    ]
    rows = group_records(records)[("energy", "A")]
    assert [r.period for r in rows] == ["2024-01", "2024-02", "2024-03"]
    assert rows[-1].value == 35
    assert rows[-1].cost == 5

    signal = _only(compute_risk_signals(records))
    assert signal.latest_value == 35
    assert signal.period == "2024-03"
    assert signal.data_points == 3


def test_malformed_period_sorts_first():
    records = [
        RiskRecord(period="2024-02", center="A", metric="energy", value=20),
        RiskRecord(period="bad", center="A", metric="energy", value=1),
    ]
    rows = group_records(records)[("energy", "A")]
    assert [r.period for r in rows] == ["bad", "2024-02"]


def test_deterministic_output():
    records = _series("energy", [100, 120, 90, 300, 80, 110], costs=[10, 12, 9, 30, 8, 11])
    assert compute_risk_signals(records) == compute_risk_signals(records)


def test_monotonic_rise_detected():
    signal = _only(compute_risk_signals(_series("energy", [100, 150, 225])))

    assert "Consumption rises for 3 consecutive periods" in signal.reasons
    assert "Accumulated increase of 125.0%" in signal.reasons
    assert "Abrupt change of +50.0% vs previous period" in signal.reasons
    assert signal.score_raw == 7
    assert signal.score == 5
    assert signal.level == "medium"
    assert signal.change_detected is True
    assert signal.outlier is False
    assert signal.actions == ACTION_TEMPLATES["energy"]


def test_forecast_and_band():
    signal = _only(compute_risk_signals(_series("energy", [100, 150, 225])))

    assert signal.forecast_30d == pytest.approx(225 * 0.5 + 150 * 0.3 + 100 * 0.2)
    spread = 50 * MAD_TO_SIGMA  # MAD of [100, 150, 225] is 50, above the stdev
    assert signal.forecast_range.min == pytest.approx(signal.forecast_30d - spread)
    assert signal.forecast_range.max == pytest.approx(signal.forecast_30d + spread)
    assert signal.forecast_cost_30d == 0
    assert signal.forecast_cost_range == ForecastRange(0.0, 0.0)


def test_forecast_range_never_negative():
    signal = _only(compute_risk_signals(_series("energy", [1, 1000, 2])))
    assert signal.forecast_range.min == 0.0


def test_seasonal_factor_applied_to_forecast():
    periods = ["2023-03", "2023-04", "2023-05", "2024-01", "2024-02", "2024-03"]
    values = [200, 100, 100, 100, 100, 200]
    records = [
        RiskRecord(period=p, center="A", metric="energy", value=v) for p, v in zip(periods, values)
    ]
    signal = _only(compute_risk_signals(records))
    base = 200 * 0.5 + 100 * 0.3 + 100 * 0.2
    assert signal.forecast_30d == pytest.approx(base * 1.5)


def test_spike_after_constant_history_is_outlier():
    signal = _only(compute_risk_signals(_series("water_meter", [100] * 10 + [500])))

    assert signal.outlier is True
    assert "Consumption outside historical range (robust outlier)" in signal.reasons
    assert signal.change_detected is True


def test_zero_mad_falls_back_to_stdev_for_small_deviations():
    # MAD of ten 100s and a 105 is 0; the population stdev (~1.44) sets the scale,
    # so a 5% move already exceeds 2.8 sigma
    signal = _only(compute_risk_signals(_series("energy", [100] * 10 + [105])))

    assert signal.outlier is True
    assert signal.reasons == ["Consumption outside historical range (robust outlier)"]
    assert signal.change_detected is False
    assert signal.score_raw == 4
    assert signal.level == "low"


def test_constant_series_has_no_findings_and_zero_width_band():
    signal = _only(compute_risk_signals(_series("energy", [100] * 6, costs=[50] * 6)))

    assert signal.reasons == []
    assert signal.actions == []
    assert signal.outlier is False
    assert signal.level == "low"
    assert signal.score == 0
    assert signal.forecast_30d == pytest.approx(100)
    assert signal.forecast_range.min == signal.forecast_range.max == pytest.approx(100)
    assert signal.forecast_cost_range.min == signal.forecast_cost_range.max == pytest.approx(50)


def test_unit_cost_rising_on_flat_consumption():
    records = [
        RiskRecord(period="2024-01", center="A", metric="energy", value=1000, cost=100000),
        RiskRecord(period="2024-02", center="A", metric="energy", value=1000, cost=100000),
        RiskRecord(period="2024-03", center="A", metric="energy", value=1000, cost=160000),
    ]
    signal = _only(compute_risk_signals(records))

    assert any("Cost per unit" in reason for reason in signal.reasons)
    assert signal.score_raw == 4
    # 4 / 14 * 10 rounds to 3, below the medium cut-off of 4
    assert signal.score == 3
    assert signal.level == "low"
    assert signal.actions == ACTION_TEMPLATES["energy"]


def test_short_history_skips_trend_but_runs_shock_check():
    signal = _only(compute_risk_signals(_series("energy", [100, 50])))

    assert signal.reasons == ["Abrupt change of -50.0% vs previous period"]
    assert signal.change_detected is True
    assert signal.score_raw == 3
    assert signal.forecast_30d == pytest.approx((50 * 0.5 + 100 * 0.3) / 0.8)


def test_single_period_group():
    signal = _only(compute_risk_signals(_series("water_meter", [42])))
    assert signal.reasons == []
    assert signal.latest_value == 42
    assert signal.forecast_30d == pytest.approx(42)


def test_mix_shift_for_human_water():
    records = [
        RiskRecord(period="2024-01", center="A", metric="water_human", value=100, bottles=100, bidons=0),
        RiskRecord(period="2024-02", center="A", metric="water_human", value=100, bottles=100, bidons=0),
        RiskRecord(period="2024-03", center="A", metric="water_human", value=100, bottles=10, bidons=90),
    ]
    signal = _only(compute_risk_signals(records))

    assert "Mix shift of 60.0 pp (vs 3-period average)" in signal.reasons
    assert signal.score_raw == 2
    assert signal.mix_current_pct == pytest.approx(10)
    assert signal.mix_avg_pct == pytest.approx(70)
    assert signal.mix_shift_pct == pytest.approx(60)
    assert signal.actions == ACTION_TEMPLATES["water_human"]


def test_mix_values_recorded_without_shift():
    records = [
        RiskRecord(period=f"2024-0{m}", center="A", metric="water_human", value=100, bottles=50, bidons=50)
        for m in (1, 2, 3)
    ]
    signal = _only(compute_risk_signals(records))
    assert signal.mix_current_pct == pytest.approx(50)
    assert signal.mix_avg_pct == pytest.approx(50)
    assert signal.mix_shift_pct is None
    assert signal.reasons == []


def test_mix_shift_never_applies_to_other_metrics():
    records = [
        RiskRecord(period="2024-01", center="A", metric="energy", value=100, bottles=100, bidons=0),
        RiskRecord(period="2024-02", center="A", metric="energy", value=100, bottles=100, bidons=0),
        RiskRecord(period="2024-03", center="A", metric="energy", value=100, bottles=10, bidons=90),
    ]
    signal = _only(compute_risk_signals(records))
    assert signal.mix_current_pct is None
    assert signal.mix_avg_pct is None
    assert signal.mix_shift_pct is None


def test_mix_undefined_when_latest_period_has_no_containers():
    records = [
        RiskRecord(period="2024-01", center="A", metric="water_human", value=100, bottles=100, bidons=0),
        RiskRecord(period="2024-02", center="A", metric="water_human", value=100, bottles=100, bidons=0),
        RiskRecord(period="2024-03", center="A", metric="water_human", value=100),
    ]
    signal = _only(compute_risk_signals(records))
    assert signal.mix_current_pct is None
    assert signal.reasons == []


def test_threshold_overrides():
    records = _series("energy", [100, 130])
    default = _only(compute_risk_signals(records))
    assert default.change_detected is True

    relaxed = _only(
        compute_risk_signals(records, metric_configs={"energy": {"thresholds": {"change_detection_pct": 50}}})
    )
    assert relaxed.change_detected is False
    assert relaxed.reasons == []


@pytest.mark.parametrize(
    "override",
    [
        {"thresholds": {"increase_pct": -1}},
        {"thresholds": {"nope": 1}},
        {"thresholds": {"increase_pct": None}},
        {"thresholds": {"increase_pct": "high"}},
        {"thresholds": {"increase_pct": float("inf")}},
        {"thresholds": 5},
        {"thresholds": [1, 2]},
        7,
    ],
)
def test_invalid_overrides_raise_value_error(override):
    with pytest.raises(ValueError):
        compute_risk_signals(_series("energy", [1]), metric_configs={"energy": override})


@pytest.mark.parametrize("raw,score", [(0, 0), (3, 2), (4, 3), (5, 4), (10, 7), (14, 10), (30, 10)])
def test_score_normalization(raw, score):
    assert score_from_raw(raw) == score


def test_level_thresholds():
    assert level_for_score(3) == "low"
    assert level_for_score(4) == "medium"
    assert level_for_score(6) == "medium"
    assert level_for_score(7) == "high"


def test_top_risks_ordering_and_ties():
    signals = [
        _signal("low", "low", 1),
        _signal("medium-1", "medium", 5),
        _signal("medium-2", "medium", 5),
        _signal("high-9", "high", 9),
        _signal("high-8", "high", 8),
    ]
    top = select_top_risks(signals, 3)
    assert [s.center for s in top] == ["high-9", "high-8", "medium-1"]
    assert [s.score for s in top] == [9, 8, 5]


def test_top_risk_count_limits_result():
    records = _series("energy", [100, 150, 225], center="A") + _series("water_meter", [100, 150, 225], center="B")
    result = compute_risk_signals(records, top_risk_count=1)
    assert len(result.top_risks) == 1
    assert compute_risk_signals(records, top_risk_count=0).top_risks == []
