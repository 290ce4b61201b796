"""
app.py  -  Deal Room Credit Model
=================================
Streamlit dashboard for the debt-paydown / covenant model behind a
syndicated debt deal room.

Tabs
----
  0  Projection  (operating build, FCF, debt roll-forward)
  1  Debt  (tranche detail + paydown waterfall)
  2  Credit  (leverage, coverage, covenant headroom)
  3  Sensitivity  (tornado on exit leverage / paydown / DSCR)
  4  Stress Tests  (Revenue Shock, Margin Compression, Rate Spike, Perfect Storm)
  5  Scenarios  (Base / Upside / Downside)
  6  Lender Returns  (IRR / MOIC for one position)
"""

import logging
from pathlib import Path

import pandas as pd
import streamlit as st

# ---- Project modules ----
from dealroom_credit.config import load_model_config
from dealroom_credit.model.assumptions import validate_assumptions
from dealroom_credit.model.projection import debt_by_tranche_df, projection_df, run_projection
from dealroom_credit.analysis.credit_metrics import (CovenantThresholds,
                                                     covenant_headroom_df,
                                                     credit_df,
                                                     debt_waterfall_df,
                                                     quick_credit_summary)
from dealroom_credit.analysis.sensitivity import SENSITIVITY_VARIABLES, run_sensitivity, tornado_df
from dealroom_credit.analysis.stress import run_all_stress_tests, stress_summary_df
from dealroom_credit.analysis.scenarios import run_scenarios
from dealroom_credit.analysis.lender_returns import (LenderReturnsInput,
                                                     calculate_lender_returns,
                                                     cash_flow_df,
                                                     irr_by_hold_period)
from dealroom_credit.utils.formatting import (fmt_irr, fmt_millions, fmt_multiple, fmt_pct,
                                              format_projection_df, format_table,
                                              style_status_column)
from dealroom_credit.utils.charts import (debt_waterfall_chart,
                                          leverage_coverage_chart,
                                          lender_cash_flow_chart,
                                          revenue_ebitda_chart,
                                          scenario_leverage_chart,
                                          scenario_summary_chart,
                                          stress_leverage_chart,
                                          tornado_chart)

logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

DEFAULT_CONFIG = Path(__file__).parent / "configs" / "base_deal.yaml"

METRIC_LABELS = {
    "exit_leverage":   "Exit Leverage (x)",
    "paydown_percent": "Debt Paydown %",
    "avg_dscr":        "Average DSCR (x)",
}

# ---------------------------------------------------------------------------
# Page Config
# ---------------------------------------------------------------------------
st.set_page_config(
    page_title="Deal Room — Credit Model",
    page_icon="🏦",
    layout="wide",
    initial_sidebar_state="expanded",
)

st.markdown("""
<style>
    .main { background-color: #0E1117; }
    div[data-testid="stMetricValue"] { color: #C9A84C !important; font-weight: 700; }
    div[data-testid="stMetricLabel"] { color: #8A8D93 !important; }
    .section-header {
        color: #C9A84C; font-size: 1.1rem; font-weight: 700;
        border-bottom: 1px solid #2D3035; padding-bottom: 6px; margin: 16px 0 10px 0;
    }
    .stTabs [aria-selected="true"] { color: #C9A84C !important; border-bottom: 2px solid #C9A84C; }
</style>
""", unsafe_allow_html=True)


def _section(title: str) -> None:
    st.markdown(f'<div class="section-header">{title}</div>', unsafe_allow_html=True)


# ---------------------------------------------------------------------------
# Base deal
# ---------------------------------------------------------------------------
@st.cache_data(show_spinner=False)
def _load_config(path: str):
    return load_model_config(path)


config = _load_config(str(DEFAULT_CONFIG))
base_deal = config.assumptions
senior = base_deal.debt_tranches[0]

# ---------------------------------------------------------------------------
# Sidebar - Deal Assumptions
# ---------------------------------------------------------------------------
st.sidebar.title("⚙️ Deal Assumptions")
st.sidebar.caption(f"Base deal: {DEFAULT_CONFIG.name}")

st.sidebar.markdown("### 🏗️ Senior Debt")
senior_amount = st.sidebar.slider("Senior Debt ($M)", 0.0, 1_000.0, float(senior.amount), 25.0)
senior_rate   = st.sidebar.slider("Interest Rate (%)", 1.0, 20.0, float(senior.interest_rate), 0.25)
senior_amort  = st.sidebar.slider("Mandatory Amort. (% p.a.)", 0.0, 20.0, float(senior.amort_rate), 0.5)
cash_sweep    = st.sidebar.slider("Cash Sweep (%)", 0.0, 100.0, float(base_deal.cash_sweep_percent), 5.0)

st.sidebar.markdown("### 📏 Covenants")
max_leverage = st.sidebar.slider("Max Leverage (x)", 2.0, 8.0, config.covenants.max_leverage, 0.25)
min_dscr     = st.sidebar.slider("Min DSCR (x)", 0.5, 3.0, config.covenants.min_dscr, 0.05)
min_icr      = st.sidebar.slider("Min Interest Coverage (x)", 0.5, 5.0,
                                 config.covenants.min_interest_coverage, 0.25)

st.sidebar.markdown("### 📒 Syndication Book")
book_target    = st.sidebar.number_input("Target Allocation ($M)", 0.0, 5_000.0, float(senior.amount), 25.0)
book_committed = st.sidebar.number_input("Orders Committed ($M)", 0.0, 10_000.0, float(senior.amount), 25.0)

st.sidebar.markdown("### 🔢 Sensitivity")
target_metric = st.sidebar.selectbox("Target metric", list(METRIC_LABELS),
                                     format_func=METRIC_LABELS.get)
variation     = st.sidebar.slider("Variation (± % of base)", 5, 50, 20, 5)

# ---------------------------------------------------------------------------
# Build assumptions from sidebar
# ---------------------------------------------------------------------------
assumptions = base_deal.copy()
assumptions.debt_tranches[0].amount        = senior_amount
assumptions.debt_tranches[0].interest_rate = senior_rate
assumptions.debt_tranches[0].amort_rate    = senior_amort
assumptions.cash_sweep_percent             = cash_sweep

covenants = CovenantThresholds(max_leverage=max_leverage, min_dscr=min_dscr,
                               min_interest_coverage=min_icr)

for issue in validate_assumptions(assumptions):
    st.sidebar.warning(issue)

with st.spinner("Running model…"):
    result  = run_projection(assumptions, config.defaults)
    summary = result.summary

# ---------------------------------------------------------------------------
# Header & KPI strip
# ---------------------------------------------------------------------------
st.markdown("""
<h1 style='color:#C9A84C; font-size:2rem; margin-bottom:4px;'>🏦 Credit Model — Debt Paydown & Covenants</h1>
<p style='color:#8A8D93; font-size:0.9rem; margin-top:0;'>
LTM + forward projection &nbsp;|&nbsp; Cash sweep waterfall &nbsp;|&nbsp; Sensitivity, stress & scenarios
</p>
""", unsafe_allow_html=True)

c1, c2, c3, c4, c5 = st.columns(5)
c1.metric("Initial Debt",    fmt_millions(assumptions.initial_debt))
c2.metric("Entry Leverage",  fmt_multiple(summary.entry_leverage))
c3.metric("Exit Leverage",   fmt_multiple(summary.exit_leverage),
          delta=f"{summary.exit_leverage - summary.entry_leverage:.2f}x", delta_color="inverse")
c4.metric("Debt Paydown",    fmt_pct(summary.paydown_percent))
c5.metric("Average DSCR",    fmt_multiple(summary.avg_dscr))

st.markdown("---")

tabs = st.tabs([
    "📊 Projection",
    "🏦 Debt",
    "📉 Credit",
    "🔢 Sensitivity",
    "⚠️ Stress Tests",
    "🎯 Scenarios",
    "💵 Lender Returns",
])


# ============================================================
# TAB 0 - Projection
# ============================================================
with tabs[0]:
    _section("Operating Projection")
    st.plotly_chart(revenue_ebitda_chart(result), use_container_width=True, key="chart_rev")
    st.dataframe(format_projection_df(projection_df(result)), use_container_width=True)
    if result.fallbacks:
        st.caption("Defaults used for: " +
                   ", ".join(f"Year {yr} {name}" for yr, name in result.fallbacks))


# ============================================================
# TAB 1 - Debt
# ============================================================
with tabs[1]:
    _section("Debt Paydown by Tranche")
    st.plotly_chart(debt_waterfall_chart(debt_waterfall_df(result)),
                    use_container_width=True, key="chart_waterfall")
    st.dataframe(debt_by_tranche_df(result).round(2), use_container_width=True, hide_index=True)


# ============================================================
# TAB 2 - Credit
# ============================================================
with tabs[2]:
    _section("Credit Statistics")
    st.plotly_chart(leverage_coverage_chart(result, covenants.max_leverage),
                    use_container_width=True, key="chart_leverage")
    st.dataframe(format_table(credit_df(result)), use_container_width=True, hide_index=True)

    _section("Covenant Headroom")
    headroom = covenant_headroom_df(result, covenants)
    st.dataframe(style_status_column(headroom, "Status"), use_container_width=True, hide_index=True)

    _section("Deal Card Summary")
    quick = quick_credit_summary(
        facility_size = assumptions.initial_debt,
        committed     = book_committed,
        target_size   = book_target,
        entry_ebitda  = assumptions.ltm_ebitda,
        interest_rate = assumptions.weighted_interest_rate,
    )
    q1, q2, q3, q4 = st.columns(4)
    q1.metric("Current Leverage",   fmt_multiple(quick["current_leverage"]))
    q2.metric("Projected Leverage", fmt_multiple(quick["projected_leverage"]))
    q3.metric("Headroom vs 5.5x",   fmt_pct(quick["covenant_headroom"]))
    q4.metric("Pricing Pressure",   quick["pricing_pressure"])


# ============================================================
# TAB 3 - Sensitivity
# ============================================================
with tabs[3]:
    _section(f"Tornado — {METRIC_LABELS[target_metric]} (±{variation}%)")
    sens = run_sensitivity(assumptions, target_metric, variation, defaults=config.defaults)
    tornado = tornado_df(sens)
    st.plotly_chart(tornado_chart(tornado, METRIC_LABELS[target_metric]),
                    use_container_width=True, key="chart_tornado")
    st.dataframe(tornado.round(2), use_container_width=True, hide_index=True)
    st.caption("Drivers: " + ", ".join(SENSITIVITY_VARIABLES.values()))


# ============================================================
# TAB 4 - Stress Tests
# ============================================================
with tabs[4]:
    _section("Covenant Stress Tests")
    stress = run_all_stress_tests(assumptions, covenants, config.stress_scenarios, config.defaults)
    st.plotly_chart(stress_leverage_chart(stress, covenants.max_leverage, base=result),
                    use_container_width=True, key="chart_stress")
    st.dataframe(style_status_column(stress_summary_df(stress).reset_index(), "Risk Level"),
                 use_container_width=True, hide_index=True)

    for res in stress:
        with st.expander(f"{res.scenario.name} — {res.risk_level.upper()}"):
            st.write(res.scenario.description)
            if res.breaches:
                st.dataframe(pd.DataFrame([b.to_dict() for b in res.breaches]),
                             use_container_width=True, hide_index=True)
            else:
                st.success("No covenant breaches")


# ============================================================
# TAB 5 - Scenarios
# ============================================================
with tabs[5]:
    _section("Base / Upside / Downside")
    comparison = run_scenarios(assumptions, config.scenarios, covenants.max_leverage, config.defaults)
    st.plotly_chart(scenario_leverage_chart(comparison), use_container_width=True, key="chart_scen_lev")
    st.plotly_chart(scenario_summary_chart(comparison), use_container_width=True, key="chart_scen_sum")
    st.dataframe(format_table(comparison.comparison_df), use_container_width=True)


# ============================================================
# TAB 6 - Lender Returns
# ============================================================
with tabs[6]:
    _section("Lender Returns Calculator")
    l1, l2, l3, l4 = st.columns(4)
    principal = l1.number_input("Principal ($)", 1_000_000, 500_000_000, 25_000_000, 1_000_000)
    oid       = l2.number_input("OID (%)", 0.0, 10.0, 2.0, 0.25)
    fee       = l3.number_input("Upfront Fee (%)", 0.0, 5.0, 1.0, 0.25)
    spread    = l4.number_input("Spread (bps)", 0, 1_500, 500, 25)
    l5, l6, l7 = st.columns(3)
    base_rate = l5.number_input("Base Rate (%)", 0.0, 10.0, 5.25, 0.25)
    hold      = l6.number_input("Hold Period (yrs)", 1, 7, 3, 1)
    amort     = l7.number_input("Mandatory Amort. (%)", 0.0, 20.0, 5.0, 0.5)

    lender_in = LenderReturnsInput(
        principal_amount        = float(principal),
        oid                     = oid,
        upfront_fee             = fee,
        spread                  = float(spread),
        base_rate               = base_rate,
        hold_period             = int(hold),
        mandatory_amort_percent = amort,
    )
    lr = calculate_lender_returns(lender_in)

    m1, m2, m3 = st.columns(3)
    m1.metric("IRR",           fmt_irr(lr.irr))
    m2.metric("MOIC",          fmt_multiple(lr.moic))
    m3.metric("Average Yield", fmt_pct(lr.average_yield, 2))

    flows = cash_flow_df(lr)
    st.plotly_chart(lender_cash_flow_chart(flows), use_container_width=True, key="chart_lender")
    st.dataframe(flows.round(0), use_container_width=True)
    st.markdown("**Returns by exit year**")
    st.dataframe(irr_by_hold_period(lender_in, max_years=len(lender_in.prepayment_premiums)),
                 use_container_width=True)
