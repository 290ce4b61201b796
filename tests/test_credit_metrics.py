import pytest

from dealroom_credit.analysis.credit_metrics import (
    CovenantThresholds,
    check_covenants,
    covenant_headroom_df,
    covenant_status,
    credit_df,
    debt_waterfall_df,
    quick_credit_summary,
)
from dealroom_credit.model.projection import ProjectionRow, run_projection


def _row(**kwargs):
    return ProjectionRow(year=1, label="Year 1", **kwargs)


def test_every_covenant_tested_independently():
    row = _row(adj_ebitda=100.0, ending_debt=600.0, total_interest=60.0, total_amort=30.0)
    breaches = check_covenants(row, CovenantThresholds())
    assert [b.covenant for b in breaches] == ["Max Leverage", "Min DSCR", "Min Interest Coverage"]
    assert [b.actual for b in breaches] == [6.0, 1.11, 1.67]
    assert all(b.year == 1 for b in breaches)


def test_compliant_row_has_no_breaches():
    row = _row(adj_ebitda=100.0, ending_debt=300.0, total_interest=30.0, total_amort=10.0)
    assert check_covenants(row, CovenantThresholds()) == []


def test_repaid_debt_fails_dscr_but_skips_interest_coverage():
    row = _row(adj_ebitda=100.0, ending_debt=0.0, total_interest=0.0, total_amort=0.0)
    breaches = check_covenants(row, CovenantThresholds())
    assert [(b.covenant, b.actual) for b in breaches] == [("Min DSCR", 0.0)]


@pytest.mark.parametrize("value, threshold, is_min, headroom, status", [
    (4.6,  5.0,  False, 8.0,  "tight"),
    (4.4,  5.0,  False, 12.0, "watch"),
    (3.0,  5.0,  False, 40.0, "healthy"),
    (5.5,  5.0,  False, -10.0, "breach"),
    (1.3,  1.25, True,  4.0,  "tight"),
    (2.5,  2.0,  True,  25.0, "healthy"),
    (1.5,  2.0,  True,  -25.0, "breach"),
])
def test_covenant_status(value, threshold, is_min, headroom, status):
    assert covenant_status(value, threshold, is_min) == (pytest.approx(headroom), status)


def test_headroom_table(scenario_a):
    df = covenant_headroom_df(run_projection(scenario_a), CovenantThresholds())
    assert len(df) == 15
    assert set(df["Metric"]) == {"Leverage", "DSCR", "Interest Coverage"}
    assert set(df["Status"]) <= {"breach", "tight", "watch", "healthy"}


def test_credit_df(scenario_a):
    df = credit_df(run_projection(scenario_a))
    assert list(df["Year"]) == [1, 2, 3, 4, 5]
    assert df["Cumulative Paydown"].is_monotonic_increasing


def test_debt_waterfall_only_enabled_tranches(sandbox_deal):
    df = debt_waterfall_df(run_projection(sandbox_deal))
    assert list(df.columns) == ["Senior Debt"]
    assert df.index[0] == "Entry"
    assert len(df) == 8
    assert df.iloc[0]["Senior Debt"] == 400.0


def test_quick_credit_summary():
    q = quick_credit_summary(facility_size=400.0, committed=500.0, target_size=400.0,
                             leverage_multiple=4.0)
    assert q == {
        "current_leverage":      4.0,
        "projected_leverage":    3.64,
        "covenant_headroom":     27.3,
        "pricing_pressure":      "Tightening",
        "debt_service_coverage": 1.67,
    }


@pytest.mark.parametrize("committed, pressure", [
    (480.0, "Tightening"),
    (380.0, "Stable"),
    (360.0, "Stable"),
    (300.0, "Widening"),
])
def test_pricing_pressure(committed, pressure):
    q = quick_credit_summary(facility_size=400.0, committed=committed, target_size=400.0)
    assert q["pricing_pressure"] == pressure
