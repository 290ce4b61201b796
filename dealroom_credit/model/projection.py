"""
projection.py
-------------
Master orchestrator: runs the debt-paydown projection for a given set of
Assumptions and returns every period in a single ProjectionResult.

One recurrence serves every caller (sensitivity, stress, scenarios,
dashboard).  Per forward year:

  Revenue → Gross EBITDA → Adj. EBITDA → D&A → EBIT
  → Interest (per tranche, on beginning balance) → Taxes → Net Income
  → CapEx, ΔNWC, Mandatory Amortization → FCF before sweep
  → Cash sweep (senior first) → Ending debt
  → Leverage, DSCR, Interest Coverage

Period 0 is the LTM row: base figures, opening balances, flows zeroed.

Division by zero never raises: leverage / DSCR / coverage fall back to 0.
Ratios are rounded to 2 dp on the rows; dollar amounts are left raw.
"""

import logging
import re
from dataclasses import asdict, dataclass, field
from typing import Optional

import numpy as np
import pandas as pd

from dealroom_credit.model.assumptions import (
    DEFAULTS,
    Assumptions,
    ProjectionDefaults,
    validate_assumptions,
)
from dealroom_credit.model.debt_schedule import open_year, roll_forward, tranche_keys


logger = logging.getLogger(__name__)

_MONTH_YEAR = re.compile(r"^(\d{1,2})/(\d{4})$")


# ---------------------------------------------------------------------------
# Ratio helpers
# ---------------------------------------------------------------------------

def safe_ratio(numerator: float, denominator: float) -> float:
    """numerator / denominator, or 0.0 when the denominator is not positive."""
    return numerator / denominator if denominator > 0 else 0.0


# ---------------------------------------------------------------------------
# Result containers
# ---------------------------------------------------------------------------

@dataclass
class ProjectionRow:
    year: int
    label: str
    calendar_label: Optional[str] = None
    revenue: float = 0.0
    revenue_growth: float = 0.0
    gross_ebitda: float = 0.0
    ebitda_margin: float = 0.0
    adjustments: float = 0.0
    adj_ebitda: float = 0.0
    da: float = 0.0
    ebit: float = 0.0
    interest_by_tranche: dict = field(default_factory=dict)
    total_interest: float = 0.0
    taxes: float = 0.0
    net_income: float = 0.0
    capex: float = 0.0
    nwc_change: float = 0.0
    amort_by_tranche: dict = field(default_factory=dict)
    total_amort: float = 0.0
    fcf: float = 0.0
    cash_sweep: float = 0.0
    sweep_by_tranche: dict = field(default_factory=dict)
    debt_by_tranche: dict = field(default_factory=dict)
    beginning_debt: float = 0.0
    ending_debt: float = 0.0
    leverage_ratio: float = 0.0
    dscr: float = 0.0
    interest_coverage: float = 0.0

    # Unrounded ratios (covenant tests compare against these)
    @property
    def raw_leverage(self) -> float:
        return safe_ratio(self.ending_debt, self.adj_ebitda)

    @property
    def debt_service(self) -> float:
        return self.total_interest + self.total_amort

    @property
    def raw_dscr(self) -> float:
        if self.year == 0:
            return 0.0
        return safe_ratio(self.adj_ebitda, self.debt_service)

    @property
    def raw_interest_coverage(self) -> float:
        if self.year == 0:
            return 0.0
        return safe_ratio(self.adj_ebitda, self.total_interest)

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class ProjectionSummary:
    total_paydown: float
    paydown_percent: float
    exit_leverage: float
    avg_dscr: float
    entry_leverage: float

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class ProjectionResult:
    assumptions: Assumptions
    rows: list[ProjectionRow]
    fallbacks: list[tuple[int, str]] = field(default_factory=list)

    @property
    def ltm(self) -> ProjectionRow:
        return self.rows[0]

    @property
    def forward_rows(self) -> list[ProjectionRow]:
        return self.rows[1:]

    @property
    def summary(self) -> ProjectionSummary:
        return summarize(self)

    def metric(self, name: str) -> float:
        """Look up a summary metric by name (e.g. 'exit_leverage')."""
        summary = self.summary.to_dict()
        if name not in summary:
            raise ValueError(f"Unknown summary metric {name!r}; expected one of {sorted(summary)}")
        return summary[name]

    def to_dict(self) -> dict:
        return {
            "rows":      [r.to_dict() for r in self.rows],
            "summary":   self.summary.to_dict(),
            "fallbacks": [{"year": y, "field": f} for y, f in self.fallbacks],
        }


# ---------------------------------------------------------------------------
# Input resolution
# ---------------------------------------------------------------------------

def _resolve(values: list, i: int, default: float, name: str,
             year: int, fallbacks: list) -> float:
    if i < len(values) and values[i] is not None:
        return float(values[i])
    fallbacks.append((year, name))
    return default


def _calendar_labeler(closing_date: str):
    """Return a year → 'MM/YYYY' labeler, or None if no usable closing date."""
    if not closing_date:
        return None
    match = _MONTH_YEAR.match(closing_date.strip())
    if not match or not 1 <= int(match.group(1)) <= 12:
        logger.warning("Ignoring closing date %r (expected MM/YYYY)", closing_date)
        return None
    month, year = int(match.group(1)), int(match.group(2))

    def label(offset: int) -> str:
        if offset == 0:
            return f"LTM ({month:02d}/{year - 1})"
        return f"{month:02d}/{year + offset - 1}"
    return label


# ---------------------------------------------------------------------------
# Main model run
# ---------------------------------------------------------------------------

def run_projection(
    assumptions: Assumptions,
    defaults: ProjectionDefaults | None = None,
) -> ProjectionResult:
    """
    Project LTM + `assumptions.periods` forward years.

    Parameters
    ----------
    assumptions : Assumptions   (read only; never mutated)
    defaults    : ProjectionDefaults used for missing per-year entries

    Returns
    -------
    ProjectionResult with `periods + 1` rows and the list of
    (year, field) pairs that fell back to defaults.
    """
    a = assumptions
    d = defaults or DEFAULTS

    for issue in validate_assumptions(a):
        logger.warning("Assumption out of range: %s", issue)

    tranches  = a.debt_tranches
    labeler   = _calendar_labeler(a.closing_date)
    fallbacks: list[tuple[int, str]] = []

    balances = [t.opening_balance for t in tranches]
    initial_debt = sum(balances)

    # ---- LTM ROW ----
    ltm_da       = a.ltm_revenue * a.da_percent / 100
    ltm_year     = open_year(tranches, balances)
    keys         = tranche_keys(tranches)
    rows = [ProjectionRow(
        year            = 0,
        label           = "LTM",
        calendar_label  = labeler(0) if labeler else None,
        revenue         = a.ltm_revenue,
        gross_ebitda    = a.ltm_ebitda,
        ebitda_margin   = safe_ratio(a.ltm_ebitda, a.ltm_revenue) * 100,
        adj_ebitda      = a.ltm_ebitda,
        da              = ltm_da,
        ebit            = a.ltm_ebitda - ltm_da,
        interest_by_tranche = {r.name: r.interest for r in ltm_year},
        total_interest  = sum(r.interest for r in ltm_year),
        amort_by_tranche= {k: 0.0 for k in keys},
        sweep_by_tranche= {k: 0.0 for k in keys},
        debt_by_tranche = {k: {"beginning": b, "ending": b} for k, b in zip(keys, balances)},
        beginning_debt  = initial_debt,
        ending_debt     = initial_debt,
        leverage_ratio  = round(safe_ratio(initial_debt, a.ltm_ebitda), 2),
    )]

    prev_revenue = a.ltm_revenue
    prev_nwc     = a.ltm_revenue * a.nwc_percent / 100

    # ---- FORWARD YEARS ----
    for i in range(a.periods):
        yr = i + 1

        growth = _resolve(a.revenue_growth, i, d.revenue_growth, "revenue_growth", yr, fallbacks)
        margin = _resolve(a.ebitda_margins, i, d.ebitda_margin,  "ebitda_margins", yr, fallbacks)
        capex_pct = _resolve(a.capex_percent, i, d.capex_percent, "capex_percent", yr, fallbacks)

        adj = a.adjustment_for(i)
        if adj is None:
            if a.adjustment_items:
                fallbacks.append((yr, "adjustments"))
            adj = d.adjustment

        # --- Income statement ---
        revenue      = prev_revenue * (1 + growth / 100)
        gross_ebitda = revenue * margin / 100
        adj_ebitda   = gross_ebitda + adj
        da           = revenue * a.da_percent / 100
        ebit         = adj_ebitda - da

        opened = open_year(tranches, balances)
        total_interest = sum(r.interest for r in opened)

        pre_tax    = ebit - total_interest
        taxes      = max(0.0, pre_tax * a.tax_rate / 100)
        net_income = pre_tax - taxes

        # --- Cash flow ---
        capex = revenue * capex_pct / 100

        if a.nwc_mode == "manual":
            nwc_change = _resolve(a.nwc_values, i, d.nwc_value, "nwc_values", yr, fallbacks)
        else:
            nwc = revenue * a.nwc_percent / 100
            nwc_change = nwc - prev_nwc
            prev_nwc = nwc

        total_amort = sum(r.mandatory_amort for r in opened)

        fcf = net_income + da - capex - nwc_change - total_amort

        # --- Debt ---
        settled = roll_forward(tranches, opened, fcf, a.cash_sweep_percent)
        ending  = [s.ending for s in settled]
        beginning_debt = sum(balances)
        ending_debt    = sum(ending)
        cash_sweep     = sum(s.sweep for s in settled)

        rows.append(ProjectionRow(
            year            = yr,
            label           = f"Year {yr}",
            calendar_label  = labeler(yr) if labeler else None,
            revenue         = revenue,
            revenue_growth  = growth,
            gross_ebitda    = gross_ebitda,
            ebitda_margin   = margin,
            adjustments     = adj,
            adj_ebitda      = adj_ebitda,
            da              = da,
            ebit            = ebit,
            interest_by_tranche = {s.name: s.interest for s in settled},
            total_interest  = total_interest,
            taxes           = taxes,
            net_income      = net_income,
            capex           = capex,
            nwc_change      = nwc_change,
            amort_by_tranche= {s.name: s.mandatory_amort for s in settled},
            total_amort     = total_amort,
            fcf             = fcf,
            cash_sweep      = cash_sweep,
            sweep_by_tranche= {s.name: s.sweep for s in settled},
            debt_by_tranche = {s.name: {"beginning": s.beginning, "ending": s.ending} for s in settled},
            beginning_debt  = beginning_debt,
            ending_debt     = ending_debt,
            leverage_ratio  = round(safe_ratio(ending_debt, adj_ebitda), 2),
            dscr            = round(safe_ratio(adj_ebitda, total_interest + total_amort), 2),
            interest_coverage = round(safe_ratio(adj_ebitda, total_interest), 2),
        ))

        prev_revenue = revenue
        balances     = ending

    if fallbacks:
        by_field: dict[str, list[int]] = {}
        for yr, name in fallbacks:
            by_field.setdefault(name, []).append(yr)
        for name, years in by_field.items():
            logger.warning("No %s input for year(s) %s; using default %s",
                           name, years, _default_for(name, d))

    logger.debug("Projection complete: %d periods, exit debt %.2f", a.periods, rows[-1].ending_debt)
    return ProjectionResult(assumptions=a, rows=rows, fallbacks=fallbacks)


def _default_for(name: str, d: ProjectionDefaults) -> float:
    return {
        "revenue_growth": d.revenue_growth,
        "ebitda_margins": d.ebitda_margin,
        "capex_percent":  d.capex_percent,
        "adjustments":    d.adjustment,
        "nwc_values":     d.nwc_value,
    }[name]


# ---------------------------------------------------------------------------
# Summaries & tables
# ---------------------------------------------------------------------------

def summarize(result: ProjectionResult) -> ProjectionSummary:
    """Headline paydown / leverage / coverage figures for one run."""
    a = result.assumptions
    forward = result.forward_rows
    initial = result.ltm.ending_debt
    final   = forward[-1].ending_debt if forward else initial
    total_paydown = initial - final

    return ProjectionSummary(
        total_paydown   = total_paydown,
        paydown_percent = safe_ratio(total_paydown, initial) * 100,
        exit_leverage   = forward[-1].leverage_ratio if forward else result.ltm.leverage_ratio,
        avg_dscr        = round(float(np.mean([r.dscr for r in forward])), 2) if forward else 0.0,
        entry_leverage  = round(a.entry_leverage, 2),
    )


def projection_df(result: ProjectionResult) -> pd.DataFrame:
    """Display-ready table: one row per period."""
    records = []
    for r in result.rows:
        records.append({
            "Period":               r.calendar_label or r.label,
            "Revenue ($M)":         r.revenue,
            "Revenue Growth %":     r.revenue_growth,
            "Gross EBITDA ($M)":    r.gross_ebitda,
            "EBITDA Margin %":      r.ebitda_margin,
            "Adjustments ($M)":     r.adjustments,
            "Adj. EBITDA ($M)":     r.adj_ebitda,
            "D&A ($M)":             r.da,
            "EBIT ($M)":            r.ebit,
            "Interest ($M)":        r.total_interest,
            "Taxes ($M)":           r.taxes,
            "Net Income ($M)":      r.net_income,
            "NWC Change ($M)":      r.nwc_change,
            "CapEx ($M)":           r.capex,
            "Amortization ($M)":    r.total_amort,
            "Free Cash Flow ($M)":  r.fcf,
            "Cash Sweep ($M)":      r.cash_sweep,
            "Beginning Debt ($M)":  r.beginning_debt,
            "Ending Debt ($M)":     r.ending_debt,
            "Leverage (x)":         r.leverage_ratio,
            "DSCR (x)":             r.dscr,
            "Interest Coverage (x)":r.interest_coverage,
        })
    return pd.DataFrame(records).set_index("Period")


def debt_by_tranche_df(result: ProjectionResult) -> pd.DataFrame:
    """Per-tranche detail, long format (one record per period × tranche)."""
    records = []
    for r in result.forward_rows:
        for name, bal in r.debt_by_tranche.items():
            records.append({
                "Year":                 r.year,
                "Tranche":              name,
                "Beginning Balance":    bal["beginning"],
                "Interest":             r.interest_by_tranche.get(name, 0.0),
                "Mandatory Amort":      r.amort_by_tranche.get(name, 0.0),
                "Cash Sweep":           r.sweep_by_tranche.get(name, 0.0),
                "Ending Balance":       bal["ending"],
            })
    return pd.DataFrame(records)
