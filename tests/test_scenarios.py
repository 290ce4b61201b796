import pytest

from dealroom_credit.analysis.scenarios import (
    DEFAULT_VARIANTS,
    Scenario,
    apply_scenario,
    run_scenarios,
)
from dealroom_credit.model.assumptions import DebtTranche, ProjectionDefaults
from dealroom_credit.model.projection import run_projection


def test_override_merges_index_wise(scenario_a):
    a = apply_scenario(scenario_a, Scenario("Partial", revenue_growth=[1.0, 2.0]))
    assert a.revenue_growth == [1.0, 2.0, 7.0, 5.0, 4.0]
    assert a.ebitda_margins == scenario_a.ebitda_margins


def test_rate_adjust_hits_enabled_tranches_only(scenario_a):
    scenario_a.debt_tranches.append(DebtTranche("Second Lien", 0.0, 12.0, enabled=False))
    a = apply_scenario(scenario_a, Scenario("Rates", interest_rate_adjust=2.0))
    assert a.debt_tranches[0].interest_rate == pytest.approx(11.5)
    assert a.debt_tranches[1].interest_rate == pytest.approx(12.0)


def test_margin_shift_is_bounded_in_its_direction(scenario_a):
    scenario_a.ebitda_margins = [59.0, 6.0, 70.0, 2.0, 30.0]
    up   = apply_scenario(scenario_a, Scenario("Up", margin_shift=2.0))
    down = apply_scenario(scenario_a, Scenario("Down", margin_shift=-3.0))
    assert up.ebitda_margins == [60.0, 8.0, 60.0, 4.0, 32.0]
    assert down.ebitda_margins == [56.0, 5.0, 67.0, 5.0, 27.0]


def test_shift_reaches_missing_years(scenario_a):
    scenario_a.revenue_growth = [5.0]
    a = apply_scenario(scenario_a, Scenario("Up", growth_shift=2.0))
    assert a.revenue_growth == [7.0, 2.0, 2.0, 2.0, 2.0]


def test_debt_scale_and_sweep(scenario_a):
    a = apply_scenario(scenario_a, Scenario("Levered", debt_scale=1.25, cash_sweep_percent=75.0))
    assert a.initial_debt == pytest.approx(500.0)
    assert a.cash_sweep_percent == 75.0


def test_apply_does_not_mutate_base(scenario_a):
    before = scenario_a.copy()
    apply_scenario(scenario_a, Scenario("All", revenue_growth=[0.0], interest_rate_adjust=3.0,
                                        growth_shift=-1.0, margin_shift=-1.0, debt_scale=2.0))
    assert scenario_a == before


def test_default_comparison(scenario_a):
    comp = run_scenarios(scenario_a)
    assert list(comp.results) == [v.name for v in DEFAULT_VARIANTS] == ["Base", "Upside", "Downside"]

    exit_lev = comp.comparison_df["Exit Leverage (x)"]
    assert exit_lev["Upside"] < exit_lev["Base"] < exit_lev["Downside"]

    paydown = comp.comparison_df["Paydown %"]
    assert paydown["Upside"] > paydown["Base"] > paydown["Downside"]


def test_leverage_table_is_aligned(scenario_a):
    comp = run_scenarios(scenario_a, covenant_threshold=3.0)
    df = comp.leverage_df
    assert df.shape == (6, 6)
    assert list(df.index) == ["LTM", "Year 1", "Year 2", "Year 3", "Year 4", "Year 5"]
    # LTM is never flagged, even above the threshold
    assert not df.loc["LTM", "Base > Covenant"]
    for name in comp.results:
        flagged = [yr for yr, flag in zip(range(6), df[f"{name} > Covenant"]) if flag]
        assert flagged == comp.years_above_covenant(name)


def test_custom_variants(scenario_a):
    variants = [Scenario("Base"), Scenario("Stretched", debt_scale=1.5)]
    comp = run_scenarios(scenario_a, variants)
    assert list(comp.comparison_df.index) == ["Base", "Stretched"]
    assert comp.comparison_df.loc["Stretched", "Entry Leverage (x)"] == pytest.approx(4.8)
    assert set(comp.to_dict()["comparison"]) == {"Base", "Stretched"}


def test_configured_defaults_fill_gaps_and_run(scenario_a):
    scenario_a.ebitda_margins = []
    defaults = ProjectionDefaults(ebitda_margin=30.0)

    comp = run_scenarios(scenario_a, [Scenario("Base"), Scenario("Up", margin_shift=2.0)],
                         defaults=defaults)
    direct = run_projection(scenario_a, defaults)
    assert comp.results["Base"].summary.exit_leverage == direct.summary.exit_leverage
    assert [r.ebitda_margin for r in comp.results["Base"].forward_rows] == [30.0] * 5
    assert [r.ebitda_margin for r in comp.results["Up"].forward_rows] == [32.0] * 5


def test_empty_variant_list_is_rejected(scenario_a):
    with pytest.raises(ValueError, match="at least one"):
        run_scenarios(scenario_a, [])


def test_duplicate_variant_names_are_rejected(scenario_a):
    with pytest.raises(ValueError, match="Duplicate"):
        run_scenarios(scenario_a, [Scenario("Base"), Scenario("Base", debt_scale=2.0)])
