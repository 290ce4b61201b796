"""
credit_metrics.py
-----------------
Credit analysis on a projected capital structure.

Computed metrics (by year):
  - Gross Leverage (Total Debt / Adj. EBITDA)
  - Interest Coverage (Adj. EBITDA / Cash Interest)
  - Debt Service Coverage Ratio (Adj. EBITDA / (Interest + Mandatory Amort))
  - Cumulative Debt Paydown vs. Entry
  - Covenant tests and headroom against caller-supplied thresholds

Also generates a "debt waterfall" DataFrame suitable for a stacked bar chart
and the quick deal-level credit summary shown on deal listings.
"""

from dataclasses import asdict, dataclass

import pandas as pd

from dealroom_credit.model.debt_schedule import tranche_keys
from dealroom_credit.model.projection import ProjectionResult, ProjectionRow, safe_ratio


MAX_LEVERAGE  = "Max Leverage"
MIN_DSCR      = "Min DSCR"
MIN_COVERAGE  = "Min Interest Coverage"

# Headroom bands (% of threshold) for covenant status
TIGHT_HEADROOM = 10.0
WATCH_HEADROOM = 15.0

# Leverage covenant assumed for the listing-level quick summary
QUICK_SUMMARY_COVENANT = 5.5


@dataclass(frozen=True)
class CovenantThresholds:
    max_leverage: float = 5.0
    min_dscr: float = 1.25
    min_interest_coverage: float = 2.0

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class CovenantBreach:
    year: int
    covenant: str
    threshold: float
    actual: float

    def to_dict(self) -> dict:
        return asdict(self)


# ---------------------------------------------------------------------------
# Covenant tests
# ---------------------------------------------------------------------------

def check_covenants(row: ProjectionRow, covenants: CovenantThresholds) -> list[CovenantBreach]:
    """
    Test one projected year against every covenant independently.

    DSCR is tested every year, so a year with no debt service (DSCR 0)
    fails a positive minimum.  Interest coverage is only tested in years
    that carry interest.
    """
    breaches = []

    leverage = row.raw_leverage
    if leverage > covenants.max_leverage:
        breaches.append(CovenantBreach(row.year, MAX_LEVERAGE,
                                       covenants.max_leverage, round(leverage, 2)))

    dscr = row.raw_dscr
    if dscr < covenants.min_dscr:
        breaches.append(CovenantBreach(row.year, MIN_DSCR,
                                       covenants.min_dscr, round(dscr, 2)))

    if row.total_interest > 0:
        coverage = row.raw_interest_coverage
        if coverage < covenants.min_interest_coverage:
            breaches.append(CovenantBreach(row.year, MIN_COVERAGE,
                                           covenants.min_interest_coverage, round(coverage, 2)))

    return breaches


def covenant_status(value: float, threshold: float, is_minimum: bool) -> tuple[float, str]:
    """
    Headroom (% of threshold) and status for one metric.

    Status: breach / tight (<10% headroom) / watch (<15%) / healthy.
    """
    if is_minimum:
        headroom = safe_ratio(value - threshold, threshold) * 100
        breach = value < threshold
    else:
        headroom = safe_ratio(threshold - value, threshold) * 100
        breach = value > threshold

    if breach:
        status = "breach"
    elif abs(headroom) < TIGHT_HEADROOM:
        status = "tight"
    elif abs(headroom) < WATCH_HEADROOM:
        status = "watch"
    else:
        status = "healthy"
    return round(headroom, 1), status


def covenant_headroom_df(result: ProjectionResult, covenants: CovenantThresholds) -> pd.DataFrame:
    """Long-format covenant table: one record per forward year × metric."""
    metrics = [
        ("Leverage",          "leverage_ratio",    covenants.max_leverage,          False),
        ("DSCR",              "dscr",              covenants.min_dscr,              True),
        ("Interest Coverage", "interest_coverage", covenants.min_interest_coverage, True),
    ]
    rows = []
    for r in result.forward_rows:
        for label, attr, threshold, is_min in metrics:
            value = getattr(r, attr)
            headroom, status = covenant_status(value, threshold, is_min)
            rows.append({
                "Year":       r.year,
                "Metric":     label,
                "Value (x)":  value,
                "Threshold":  threshold,
                "Headroom %": headroom,
                "Status":     status,
            })
    return pd.DataFrame(rows)


# ---------------------------------------------------------------------------
# Credit dashboard tables
# ---------------------------------------------------------------------------

def credit_df(result: ProjectionResult) -> pd.DataFrame:
    """Year-by-year credit metrics for the forward periods."""
    initial = result.ltm.ending_debt
    rows = []
    for r in result.forward_rows:
        rows.append({
            "Year":                  r.year,
            "Revenue ($M)":          round(r.revenue, 1),
            "Adj. EBITDA ($M)":      round(r.adj_ebitda, 1),
            "EBITDA Margin":         safe_ratio(r.gross_ebitda, r.revenue),
            "Total Debt ($M)":       round(r.ending_debt, 1),
            "Gross Leverage (x)":    r.leverage_ratio,
            "Interest Coverage (x)": r.interest_coverage,
            "DSCR (x)":              r.dscr,
            "Free Cash Flow ($M)":   round(r.fcf, 1),
            "FCF / EBITDA":          safe_ratio(r.fcf, r.adj_ebitda),
            "Cumulative Paydown":    safe_ratio(initial - r.ending_debt, initial),
        })
    return pd.DataFrame(rows)


def debt_waterfall_df(result: ProjectionResult) -> pd.DataFrame:
    """Ending balance by enabled tranche, Entry + each forward year."""
    tranches = result.assumptions.debt_tranches
    names = [k for k, t in zip(tranche_keys(tranches), tranches) if t.enabled]
    rows = []
    for r in result.rows:
        row = {"Year": "Entry" if r.year == 0 else r.label}
        for name in names:
            row[name] = round(r.debt_by_tranche[name]["ending"], 1)
        rows.append(row)
    return pd.DataFrame(rows).set_index("Year")


# ---------------------------------------------------------------------------
# Deal listing quick summary
# ---------------------------------------------------------------------------

def quick_credit_summary(
    facility_size: float,
    committed: float,
    target_size: float,
    entry_ebitda: float | None = None,
    leverage_multiple: float | None = None,
    interest_rate: float | None = None,
) -> dict:
    """
    One-year indicative credit picture for a deal card.

    EBITDA defaults to facility / leverage multiple (4.0x if unknown);
    30% of post-interest cash flow is assumed to pay down debt and
    EBITDA grows 5%.  Pricing pressure reflects book coverage.
    """
    ebitda = entry_ebitda or facility_size / (leverage_multiple or 4.0)
    rate   = interest_rate or 10.0

    current_leverage  = safe_ratio(facility_size, ebitda)
    interest_expense  = facility_size * rate / 100
    paydown           = max(0.0, (ebitda - interest_expense) * 0.3)
    projected_leverage = safe_ratio(facility_size - paydown, ebitda * 1.05)
    headroom = (QUICK_SUMMARY_COVENANT - current_leverage) / QUICK_SUMMARY_COVENANT * 100

    book_coverage = safe_ratio(committed, target_size)
    if book_coverage >= 1.2:
        pricing_pressure = "Tightening"
    elif book_coverage >= 0.9:
        pricing_pressure = "Stable"
    else:
        pricing_pressure = "Widening"

    dscr = safe_ratio(ebitda, interest_expense + facility_size * 0.05)

    return {
        "current_leverage":      round(current_leverage, 2),
        "projected_leverage":    round(projected_leverage, 2),
        "covenant_headroom":     round(headroom, 1),
        "pricing_pressure":      pricing_pressure,
        "debt_service_coverage": round(dscr, 2),
    }
