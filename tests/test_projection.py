import json
import logging

import pytest

from conftest import scenario_a_deal
from dealroom_credit.analysis.credit_metrics import debt_waterfall_df
from dealroom_credit.model.assumptions import (
    AdjustmentItem,
    DebtTranche,
    ProjectionDefaults,
    validate_assumptions,
)
from dealroom_credit.model.projection import (
    debt_by_tranche_df,
    projection_df,
    run_projection,
    safe_ratio,
)


# ---------------------------------------------------------------------------
# Reference deal
# ---------------------------------------------------------------------------

def test_scenario_a_year_one(scenario_a):
    res = run_projection(scenario_a)
    y1 = res.rows[1]

    assert len(res.rows) == 6
    assert y1.revenue == pytest.approx(525.0)
    assert y1.gross_ebitda == pytest.approx(131.25)
    assert y1.total_interest == pytest.approx(38.0)
    assert y1.total_amort == pytest.approx(4.0)
    assert y1.da == pytest.approx(21.0)
    assert y1.taxes == pytest.approx(18.0625)
    assert y1.fcf == pytest.approx(55.4375)
    assert y1.cash_sweep == pytest.approx(27.71875)
    assert y1.ending_debt == pytest.approx(368.28125)
    assert y1.leverage_ratio == pytest.approx(2.81)
    assert y1.interest_coverage == pytest.approx(3.45)
    assert y1.dscr == pytest.approx(3.125, abs=0.01)


def test_ltm_row(scenario_a):
    ltm = run_projection(scenario_a).ltm
    assert ltm.year == 0
    assert ltm.label == "LTM"
    assert ltm.revenue == 500.0
    assert ltm.adj_ebitda == 125.0
    assert ltm.ending_debt == 400.0
    assert ltm.leverage_ratio == pytest.approx(3.2)
    assert ltm.dscr == 0.0
    assert ltm.interest_coverage == 0.0
    assert ltm.fcf == 0.0
    assert ltm.total_amort == 0.0


def test_summary(scenario_a):
    res = run_projection(scenario_a)
    s = res.summary
    final = res.rows[-1].ending_debt
    assert s.entry_leverage == pytest.approx(3.2)
    assert s.total_paydown == pytest.approx(400.0 - final)
    assert s.paydown_percent == pytest.approx((400.0 - final) / 400.0 * 100)
    assert s.exit_leverage == res.rows[-1].leverage_ratio
    assert res.metric("avg_dscr") == s.avg_dscr


def test_unknown_metric_raises(scenario_a):
    with pytest.raises(ValueError):
        run_projection(scenario_a).metric("irr")


def test_base_not_mutated(scenario_a):
    before = scenario_a.copy()
    run_projection(scenario_a)
    assert scenario_a == before


# ---------------------------------------------------------------------------
# Totality & balance invariants
# ---------------------------------------------------------------------------

def test_zero_ebitda_never_divides():
    a = scenario_a_deal(ltm_ebitda=0.0, ebitda_margins=[0.0] * 5)
    res = run_projection(a)
    for row in res.rows:
        assert row.leverage_ratio == 0.0
        assert row.dscr == 0.0
        assert row.interest_coverage == 0.0


def test_no_debt_deal():
    res = run_projection(scenario_a_deal(senior_amount=0.0))
    for row in res.forward_rows:
        assert row.ending_debt == 0.0
        assert row.dscr == 0.0
        assert row.interest_coverage == 0.0
    assert res.summary.paydown_percent == 0.0


def test_debt_never_negative_and_fully_repaid():
    a = scenario_a_deal(senior_amount=50.0, ebitda_margins=[40.0] * 5, cash_sweep_percent=100.0)
    res = run_projection(a)
    for row in res.forward_rows:
        assert row.ending_debt >= 0.0
        assert row.total_amort <= row.beginning_debt + 1e-9
    assert res.rows[-1].ending_debt == 0.0


def test_amortization_clamped_to_balance():
    a = scenario_a_deal(senior_amount=10.0, amort_rate=60.0, cash_sweep_percent=0.0)
    amort = [r.total_amort for r in run_projection(a).forward_rows]
    assert amort == pytest.approx([6.0, 4.0, 0.0, 0.0, 0.0])


def test_debt_monotone_without_sweep_when_fcf_negative():
    a = scenario_a_deal(ebitda_margins=[5.0] * 5, cash_sweep_percent=0.0)
    debts = [r.ending_debt for r in run_projection(a).rows]
    assert all(later <= earlier for earlier, later in zip(debts, debts[1:]))


def test_pure_paydown_is_monotone_on_a_flat_plan():
    a = scenario_a_deal(revenue_growth=[3.0] * 5, ebitda_margins=[30.0] * 5,
                        capex_percent=[3.0] * 5, cash_sweep_percent=0.0)
    res = run_projection(a)
    assert all(row.fcf > 0 for row in res.forward_rows)
    assert all(row.cash_sweep == 0.0 for row in res.forward_rows)

    debts = [r.ending_debt for r in res.rows]
    assert all(later <= earlier for earlier, later in zip(debts, debts[1:]))
    assert debts[-1] == pytest.approx(400.0 - 5 * 4.0)


def test_negative_fcf_is_not_swept():
    a = scenario_a_deal(ebitda_margins=[5.0] * 5)
    for row in run_projection(a).forward_rows:
        assert row.fcf < 0
        assert row.cash_sweep == 0.0
        assert row.ending_debt == pytest.approx(row.beginning_debt - row.total_amort)


# ---------------------------------------------------------------------------
# Multi-tranche waterfall
# ---------------------------------------------------------------------------

def _two_tranche_deal():
    a = scenario_a_deal(ebitda_margins=[25.0] * 5, capex_percent=[3.0] * 5,
                        cash_sweep_percent=100.0)
    a.debt_tranches = [
        DebtTranche("Senior", 100.0, 8.0, 0.0),
        DebtTranche("Junior", 100.0, 12.0, 0.0),
    ]
    return a


def test_sweep_pays_senior_first():
    res = run_projection(_two_tranche_deal())
    y1, y2 = res.rows[1], res.rows[2]

    assert y1.interest_by_tranche == pytest.approx({"Senior": 8.0, "Junior": 12.0})
    assert y1.sweep_by_tranche["Senior"] == pytest.approx(72.9375)
    assert y1.sweep_by_tranche["Junior"] == 0.0
    assert y1.debt_by_tranche["Senior"]["ending"] == pytest.approx(27.0625)

    assert y2.debt_by_tranche["Senior"]["ending"] == 0.0
    assert y2.sweep_by_tranche["Junior"] > 0.0


def test_disabled_tranche_is_ignored():
    a = _two_tranche_deal()
    a.debt_tranches[1].enabled = False
    res = run_projection(a)
    assert res.ltm.ending_debt == 100.0
    for row in res.forward_rows:
        assert row.interest_by_tranche["Junior"] == 0.0
        assert row.debt_by_tranche["Junior"]["ending"] == 0.0


def test_repeated_tranche_names_keep_every_tranche():
    a = scenario_a_deal()
    a.debt_tranches = [DebtTranche("TLB", 200.0, 9.5, 1.0), DebtTranche("TLB", 200.0, 9.5, 1.0)]
    assert any("TLB" in issue for issue in validate_assumptions(a))

    res = run_projection(a)
    y1 = res.rows[1]
    assert res.ltm.total_interest == pytest.approx(38.0)
    assert y1.total_interest == pytest.approx(38.0)
    assert y1.interest_by_tranche == pytest.approx({"TLB": 19.0, "TLB (2)": 19.0})
    assert y1.amort_by_tranche == pytest.approx({"TLB": 2.0, "TLB (2)": 2.0})
    assert set(y1.debt_by_tranche) == {"TLB", "TLB (2)"}

    single = run_projection(scenario_a_deal()).rows[1]
    assert y1.fcf == pytest.approx(single.fcf)
    assert y1.ending_debt == pytest.approx(single.ending_debt)
    assert list(debt_waterfall_df(res).columns) == ["TLB", "TLB (2)"]


def test_debt_by_tranche_df_shape():
    df = debt_by_tranche_df(run_projection(_two_tranche_deal()))
    assert len(df) == 10
    assert set(df["Tranche"]) == {"Senior", "Junior"}


# ---------------------------------------------------------------------------
# Inputs: add-backs, NWC, fallbacks
# ---------------------------------------------------------------------------

def test_adjustments_are_summed():
    a = scenario_a_deal()
    a.adjustment_items = [AdjustmentItem("Synergies", [5.0, 5.0]),
                          AdjustmentItem("One-offs", [2.0])]
    y1 = run_projection(a).rows[1]
    assert y1.adjustments == pytest.approx(7.0)
    assert y1.adj_ebitda == pytest.approx(y1.gross_ebitda + 7.0)


def test_nwc_percent_mode():
    a = scenario_a_deal()
    a.nwc_percent = 5.0
    y1 = run_projection(a).rows[1]
    assert y1.nwc_change == pytest.approx(525.0 * 0.05 - 500.0 * 0.05)


def test_nwc_manual_mode_with_fallback():
    a = scenario_a_deal()
    a.nwc_mode = "manual"
    a.nwc_values = [2.0, None]
    res = run_projection(a)
    assert res.rows[1].nwc_change == 2.0
    assert res.rows[2].nwc_change == 0.0
    assert (2, "nwc_values") in res.fallbacks


def test_missing_margins_fall_back_and_are_logged(caplog):
    a = scenario_a_deal(ebitda_margins=[30.0])
    with caplog.at_level(logging.WARNING):
        res = run_projection(a)
    assert res.rows[2].ebitda_margin == 25.0
    assert [(y, f) for y, f in res.fallbacks if f == "ebitda_margins"] == [
        (2, "ebitda_margins"), (3, "ebitda_margins"), (4, "ebitda_margins"), (5, "ebitda_margins")]
    assert "ebitda_margins" in caplog.text


def test_explicit_zero_is_not_a_gap():
    a = scenario_a_deal(ebitda_margins=[0.0] * 5)
    res = run_projection(a)
    assert res.rows[1].gross_ebitda == 0.0
    assert not res.fallbacks


def test_configurable_defaults():
    a = scenario_a_deal(ebitda_margins=[])
    res = run_projection(a, ProjectionDefaults(ebitda_margin=30.0))
    assert res.rows[1].gross_ebitda == pytest.approx(525.0 * 0.30)


def test_out_of_range_inputs_pass_through(caplog):
    a = scenario_a_deal(tax_rate=-10.0)
    assert any("tax_rate" in issue for issue in validate_assumptions(a))
    with caplog.at_level(logging.WARNING):
        res = run_projection(a)
    assert len(res.rows) == 6
    assert "tax_rate" in caplog.text


# ---------------------------------------------------------------------------
# Labels & output tables
# ---------------------------------------------------------------------------

def test_calendar_labels():
    a = scenario_a_deal()
    a.closing_date = "09/2025"
    rows = run_projection(a).rows
    assert rows[0].calendar_label == "LTM (09/2024)"
    assert rows[1].calendar_label == "09/2025"
    assert rows[5].calendar_label == "09/2029"


def test_bad_closing_date_is_ignored(scenario_a):
    scenario_a.closing_date = "2025-09"
    assert run_projection(scenario_a).rows[1].calendar_label is None


def test_projection_df(scenario_a):
    df = projection_df(run_projection(scenario_a))
    assert df.index.name == "Period"
    assert list(df.index) == ["LTM", "Year 1", "Year 2", "Year 3", "Year 4", "Year 5"]
    assert "Leverage (x)" in df.columns


def test_result_serialises_to_json(scenario_a):
    payload = json.loads(json.dumps(run_projection(scenario_a).to_dict()))
    assert len(payload["rows"]) == 6
    assert payload["summary"]["entry_leverage"] == pytest.approx(3.2)


@pytest.mark.parametrize("num, den, expected", [
    (10.0, 2.0, 5.0),
    (10.0, 0.0, 0.0),
    (10.0, -5.0, 0.0),
    (0.0, 3.0, 0.0),
])
def test_safe_ratio(num, den, expected):
    assert safe_ratio(num, den) == expected
