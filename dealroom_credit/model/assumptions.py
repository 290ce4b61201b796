"""
assumptions.py
--------------
Central dataclasses for the debt-paydown model inputs.

Separates the operating projections (per-year growth, margin, capex,
EBITDA add-backs) from the capital structure (tranches + cash sweep)
so scenarios can be constructed by swapping just the relevant fields.

All percentages are whole-number percents (e.g., 9.5 = 9.5%).
Monetary values are in any consistent unit ($M in the reference deal).
"""

import copy
from dataclasses import dataclass, field
from typing import List, Optional


NWC_MODES = ("percent", "manual")


# ---------------------------------------------------------------------------
# Per-period fallback defaults
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ProjectionDefaults:
    """Values used when a per-year input list has no entry for a period."""
    revenue_growth: float = 0.0
    ebitda_margin:  float = 25.0
    capex_percent:  float = 3.0
    adjustment:     float = 0.0
    nwc_value:      float = 0.0


DEFAULTS = ProjectionDefaults()


# ---------------------------------------------------------------------------
# Capital structure
# ---------------------------------------------------------------------------

@dataclass
class DebtTranche:
    """One piece of the capital structure. List order = seniority."""
    name: str
    amount: float             # principal drawn at close
    interest_rate: float      # all-in cash coupon, % p.a.
    amort_rate: float = 0.0   # required annual amortization, % of original principal
    enabled: bool = True

    @property
    def opening_balance(self) -> float:
        return self.amount if self.enabled else 0.0

    @property
    def annual_amort(self) -> float:
        """Scheduled amortization per year, before clamping to the balance."""
        if not self.enabled:
            return 0.0
        return self.amount * self.amort_rate / 100


@dataclass
class AdjustmentItem:
    """A named EBITDA add-back with one value per forward year."""
    name: str
    values: List[float] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Master container
# ---------------------------------------------------------------------------

@dataclass
class Assumptions:
    """
    Master container for all model inputs.

    Structured in three logical blocks:
      1. LTM base figures
      2. Operating projections (lists index 0 = Year 1, ..., n-1 = Year N)
      3. Capital structure and cash flow policy
    """
    # -----------------------------------------------------------------------
    # 1. LTM
    # -----------------------------------------------------------------------
    ltm_revenue: float = 500.0
    ltm_ebitda: float = 125.0

    # -----------------------------------------------------------------------
    # 2. OPERATING PROJECTIONS
    # -----------------------------------------------------------------------
    revenue_growth: List[Optional[float]] = field(default_factory=lambda:
        [5.0, 6.0, 7.0, 5.0, 4.0])

    ebitda_margins: List[Optional[float]] = field(default_factory=lambda:
        [25.0, 26.0, 27.0, 27.0, 28.0])

    capex_percent: List[Optional[float]] = field(default_factory=lambda:
        [3.0, 3.0, 3.0, 2.5, 2.5])

    adjustment_items: List[AdjustmentItem] = field(default_factory=list)

    tax_rate: float = 25.0
    da_percent: float = 4.0

    # Working capital: "percent" of revenue, or "manual" per-year changes
    nwc_mode: str = "percent"
    nwc_percent: float = 0.0
    nwc_values: List[Optional[float]] = field(default_factory=list)

    # -----------------------------------------------------------------------
    # 3. CAPITAL STRUCTURE
    # -----------------------------------------------------------------------
    debt_tranches: List[DebtTranche] = field(default_factory=lambda: [
        DebtTranche(name="Senior Debt", amount=400.0, interest_rate=9.5, amort_rate=1.0),
    ])

    cash_sweep_percent: float = 50.0

    periods: int = 5

    # Calendar labelling only ("MM/YYYY"); no effect on the math
    signing_date: str = ""
    closing_date: str = ""

    # -----------------------------------------------------------------------
    # COMPUTED PROPERTIES
    # -----------------------------------------------------------------------
    @property
    def enabled_tranches(self) -> List[DebtTranche]:
        return [t for t in self.debt_tranches if t.enabled]

    @property
    def initial_debt(self) -> float:
        return sum(t.opening_balance for t in self.debt_tranches)

    @property
    def entry_leverage(self) -> float:
        """Initial debt / LTM EBITDA (0 when EBITDA is not positive)."""
        return self.initial_debt / self.ltm_ebitda if self.ltm_ebitda > 0 else 0.0

    @property
    def weighted_interest_rate(self) -> float:
        """Amount-weighted coupon across enabled tranches."""
        live = [t for t in self.enabled_tranches if t.amount > 0]
        total = sum(t.amount for t in live)
        if total <= 0:
            live = self.enabled_tranches
            return sum(t.interest_rate for t in live) / len(live) if live else 0.0
        return sum(t.amount * t.interest_rate for t in live) / total

    def adjustment_for(self, i: int) -> Optional[float]:
        """Sum of all add-back items for forward year i (None if no item covers it)."""
        present = [item.values[i] for item in self.adjustment_items
                   if i < len(item.values) and item.values[i] is not None]
        if not present:
            return None
        return float(sum(present))

    def copy(self) -> "Assumptions":
        return copy.deepcopy(self)


# ---------------------------------------------------------------------------
# Validation (range checks are reported, never enforced)
# ---------------------------------------------------------------------------

def _pct_issues(label: str, values, lo: float, hi: float) -> list[str]:
    issues = []
    for i, v in enumerate(values):
        if v is not None and not lo <= v <= hi:
            issues.append(f"{label}[{i}] = {v} outside [{lo:g}, {hi:g}]")
    return issues


def validate_assumptions(a: Assumptions) -> list[str]:
    """
    Return human-readable range issues for an Assumptions value.

    The projection engine runs regardless; callers that want to reject
    or clamp inputs do so on the returned list.
    """
    issues: list[str] = []
    if a.periods < 1:
        issues.append(f"periods = {a.periods} must be at least 1")
    if a.ltm_revenue < 0:
        issues.append(f"ltm_revenue = {a.ltm_revenue} is negative")
    issues += _pct_issues("ebitda_margins", a.ebitda_margins, -100.0, 100.0)
    issues += _pct_issues("capex_percent", a.capex_percent, 0.0, 100.0)
    issues += _pct_issues("revenue_growth", a.revenue_growth, -100.0, float("inf"))
    issues += _pct_issues("tax_rate", [a.tax_rate], 0.0, 100.0)
    issues += _pct_issues("da_percent", [a.da_percent], 0.0, 100.0)
    issues += _pct_issues("cash_sweep_percent", [a.cash_sweep_percent], 0.0, 100.0)
    issues += _pct_issues("nwc_percent", [a.nwc_percent], -100.0, 100.0)
    if a.nwc_mode not in NWC_MODES:
        issues.append(f"nwc_mode = {a.nwc_mode!r} not one of {NWC_MODES}")
    names = [t.name for t in a.debt_tranches]
    for name in sorted({n for n in names if names.count(n) > 1}):
        issues.append(f"tranche name {name!r} is used more than once")
    for t in a.debt_tranches:
        if t.amount < 0:
            issues.append(f"tranche {t.name!r} amount = {t.amount} is negative")
        if t.interest_rate < 0:
            issues.append(f"tranche {t.name!r} interest_rate = {t.interest_rate} is negative")
        if not 0 <= t.amort_rate <= 100:
            issues.append(f"tranche {t.name!r} amort_rate = {t.amort_rate} outside [0, 100]")
    return issues


# ---------------------------------------------------------------------------
# Convenience builders
# ---------------------------------------------------------------------------

def single_tranche_deal(
    ltm_revenue: float,
    ltm_ebitda: float,
    revenue_growth: list[float],
    ebitda_margins: list[float],
    capex_percent: list[float],
    senior_amount: float,
    interest_rate: float,
    amort_rate: float,
    adjustments: list[float] | None = None,
    tax_rate: float = 25.0,
    da_percent: float = 4.0,
    cash_sweep_percent: float = 50.0,
    periods: int = 5,
) -> Assumptions:
    """Build the one-tranche, no-NWC deal used by the quick analyses."""
    items = [AdjustmentItem("Adjustments", list(adjustments))] if adjustments else []
    return Assumptions(
        ltm_revenue        = ltm_revenue,
        ltm_ebitda         = ltm_ebitda,
        revenue_growth     = list(revenue_growth),
        ebitda_margins     = list(ebitda_margins),
        capex_percent      = list(capex_percent),
        adjustment_items   = items,
        tax_rate           = tax_rate,
        da_percent         = da_percent,
        debt_tranches      = [DebtTranche("Senior Debt", senior_amount, interest_rate, amort_rate)],
        cash_sweep_percent = cash_sweep_percent,
        periods            = periods,
    )


def default_deal() -> Assumptions:
    """Seven-year, four-tranche sandbox deal ($M) with only Senior Debt drawn."""
    return Assumptions(
        ltm_revenue      = 500.0,
        ltm_ebitda       = 125.0,
        revenue_growth   = [5.0, 6.0, 7.0, 5.0, 4.0, 4.0, 3.0],
        ebitda_margins   = [25.0, 26.0, 27.0, 27.0, 28.0, 28.0, 29.0],
        capex_percent    = [3.0, 3.0, 3.0, 2.5, 2.5, 2.5, 2.5],
        adjustment_items = [
            AdjustmentItem("Transaction Costs", [5.0, 3.0, 2.0, 1.0, 0.0, 0.0, 0.0]),
        ],
        tax_rate         = 25.0,
        da_percent       = 4.0,
        nwc_mode         = "percent",
        nwc_percent      = 5.0,
        nwc_values       = [0.0] * 7,
        debt_tranches    = [
            DebtTranche("Senior Debt",  400.0,  9.5, 1.0, enabled=True),
            DebtTranche("Second Lien",    0.0, 12.0, 0.0, enabled=False),
            DebtTranche("Subordinated",   0.0, 14.0, 0.0, enabled=False),
            DebtTranche("Incremental",    0.0, 10.0, 0.0, enabled=False),
        ],
        cash_sweep_percent = 50.0,
        periods          = 7,
    )
