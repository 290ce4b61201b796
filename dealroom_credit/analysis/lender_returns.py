"""
lender_returns.py
-----------------
Returns to a lender holding one term-loan position.

Cash flow mechanics per year of the hold:
  - Interest on beginning principal at base rate + spread
  - Mandatory amortization (% of ORIGINAL principal, clamped)
  - At exit: remaining principal prepaid, plus a premium from the call
    schedule (price 102 = 2% premium; 100 = par)

Initial investment is principal net of OID and upfront fee, so both
show up in the yield.  IRR solved with scipy.optimize.brentq.
"""

import logging
from dataclasses import asdict, dataclass, field

import numpy as np
import pandas as pd
from scipy.optimize import brentq


logger = logging.getLogger(__name__)


@dataclass
class LenderReturnsInput:
    principal_amount: float = 25_000_000.0
    oid: float = 2.0                    # original issue discount, % of par
    upfront_fee: float = 1.0            # % of par
    spread: float = 500.0               # bps over base rate
    base_rate: float = 5.25             # %
    hold_period: int = 3                # years
    prepayment_premiums: list[float] = field(default_factory=lambda: [102.0, 101.0, 100.0, 100.0, 100.0])
    mandatory_amort_percent: float = 5.0

    @property
    def all_in_rate(self) -> float:
        return self.base_rate + self.spread / 100

    def call_price(self, year: int) -> float:
        """Call schedule price for `year` (1-indexed); par when unscheduled."""
        if year - 1 < len(self.prepayment_premiums) and self.prepayment_premiums[year - 1]:
            return self.prepayment_premiums[year - 1]
        return 100.0


@dataclass
class LenderCashFlow:
    year: int
    beginning_principal: float
    interest: float
    amortization: float
    prepayment: float
    prepayment_premium: float
    total_cash: float
    ending_principal: float
    cumulative_cash: float


@dataclass
class LenderReturnsResult:
    irr: float                  # % (NaN when no rate solves the cash flows)
    moic: float
    initial_investment: float
    total_cash_received: float
    total_interest: float
    total_principal: float
    total_fees: float
    average_yield: float        # % p.a., simple
    cash_flows: list[LenderCashFlow]

    def to_dict(self) -> dict:
        return asdict(self)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _irr(cash_flows: list[float]) -> float:
    """IRR as a decimal (index 0 = t=0 outflow)."""
    def npv(r):
        return sum(cf / (1 + r) ** t for t, cf in enumerate(cash_flows))
    try:
        return brentq(npv, -0.999, 100.0, xtol=1e-8, maxiter=500)
    except ValueError:
        logger.warning("IRR has no root in [-99.9%%, 10000%%] for cash flows %s", cash_flows)
        return np.nan


# ---------------------------------------------------------------------------
# Calculator
# ---------------------------------------------------------------------------

def calculate_lender_returns(inp: LenderReturnsInput) -> LenderReturnsResult:
    oid_amount = inp.principal_amount * inp.oid / 100
    fee_amount = inp.principal_amount * inp.upfront_fee / 100
    investment = inp.principal_amount - oid_amount - fee_amount

    rate      = inp.all_in_rate
    scheduled = inp.principal_amount * inp.mandatory_amort_percent / 100

    flows: list[LenderCashFlow] = []
    principal  = inp.principal_amount
    cumulative = 0.0

    for year in range(1, inp.hold_period + 1):
        beginning = principal
        interest  = beginning * rate / 100
        amort     = min(scheduled, beginning)

        exit_year  = year == inp.hold_period
        prepayment = beginning - amort if exit_year else 0.0
        premium    = prepayment * (inp.call_price(year) - 100) / 100 if exit_year else 0.0

        ending = beginning - amort - prepayment
        total  = interest + amort + prepayment + premium
        cumulative += total

        flows.append(LenderCashFlow(
            year                = year,
            beginning_principal = beginning,
            interest            = interest,
            amortization        = amort,
            prepayment          = prepayment,
            prepayment_premium  = premium,
            total_cash          = total,
            ending_principal    = ending,
            cumulative_cash     = cumulative,
        ))
        principal = ending

    total_cash = sum(cf.total_cash for cf in flows)
    moic  = total_cash / investment if investment > 0 else np.nan
    irr   = _irr([-investment] + [cf.total_cash for cf in flows])
    avg_yield = ((total_cash - investment) / investment / inp.hold_period * 100
                 if investment > 0 and inp.hold_period > 0 else np.nan)

    return LenderReturnsResult(
        irr                 = round(irr * 100, 2) if not np.isnan(irr) else np.nan,
        moic                = round(moic, 2) if not np.isnan(moic) else np.nan,
        initial_investment  = investment,
        total_cash_received = total_cash,
        total_interest      = sum(cf.interest for cf in flows),
        total_principal     = sum(cf.amortization + cf.prepayment for cf in flows),
        total_fees          = oid_amount + fee_amount + sum(cf.prepayment_premium for cf in flows),
        average_yield       = round(avg_yield, 2) if not np.isnan(avg_yield) else np.nan,
        cash_flows          = flows,
    )


def irr_by_hold_period(inp: LenderReturnsInput, max_years: int = 5) -> pd.DataFrame:
    """IRR / MOIC if the loan is taken out at the end of each year 1..max_years."""
    rows = []
    for hold in range(1, max_years + 1):
        res = calculate_lender_returns(
            LenderReturnsInput(**{**asdict(inp), "hold_period": hold}))
        rows.append({
            "Hold (yrs)":  hold,
            "IRR %":       res.irr,
            "MOIC (x)":    res.moic,
            "Call Price":  inp.call_price(hold),
        })
    return pd.DataFrame(rows).set_index("Hold (yrs)")


def cash_flow_df(result: LenderReturnsResult) -> pd.DataFrame:
    return pd.DataFrame([
        {
            "Year":                cf.year,
            "Beginning Principal": cf.beginning_principal,
            "Interest":            cf.interest,
            "Amortization":        cf.amortization,
            "Prepayment":          cf.prepayment,
            "Premium":             cf.prepayment_premium,
            "Total Cash":          cf.total_cash,
            "Ending Principal":    cf.ending_principal,
            "Cumulative Cash":     cf.cumulative_cash,
        }
        for cf in result.cash_flows
    ]).set_index("Year")
