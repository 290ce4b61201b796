"""
debt_schedule.py
----------------
One-year debt mechanics for every tranche of the capital structure.

Key mechanics:
  - Cash interest on the beginning balance of each enabled tranche
  - Required amortization per tranche (fixed % of ORIGINAL principal,
    clamped to the beginning balance)
  - Cash sweep: a share of positive free cash flow applied to debt in
    seniority order (list order), never beyond a tranche's
    post-amortization balance
  - Ending balances floored at zero

The projection engine opens each forward year with `open_year` (interest
and amortization), computes free cash flow from those figures, then
settles the sweep with `roll_forward`.  Per-tranche detail is keyed by
`tranche_keys`, which stays unique when names repeat.
"""

from dataclasses import dataclass

from dealroom_credit.model.assumptions import DebtTranche


@dataclass
class TrancheYear:
    """Per-tranche detail for one projected year."""
    name: str
    beginning: float
    interest: float
    mandatory_amort: float
    sweep: float = 0.0
    ending: float = 0.0


def tranche_interest(tranche: DebtTranche, beginning: float) -> float:
    if not tranche.enabled:
        return 0.0
    return beginning * tranche.interest_rate / 100


def mandatory_amortization(tranche: DebtTranche, beginning: float) -> float:
    """Scheduled amortization off original principal, never above what is owed."""
    if not tranche.enabled:
        return 0.0
    return min(tranche.annual_amort, max(0.0, beginning))


def available_for_sweep(fcf_before_sweep: float, cash_sweep_percent: float) -> float:
    """Only positive free cash flow is swept."""
    return max(0.0, fcf_before_sweep) * cash_sweep_percent / 100


def allocate_sweep(
    tranches: list[DebtTranche],
    beginning: list[float],
    amort: list[float],
    sweep_cash: float,
) -> list[float]:
    """
    Apply sweep cash senior-to-junior.

    Returns the sweep applied to each tranche (same order as `tranches`).
    Whatever cannot be absorbed once every tranche is repaid is left unused.
    """
    remaining = sweep_cash
    applied = []
    for t, beg, req in zip(tranches, beginning, amort):
        capacity = max(0.0, beg - req) if t.enabled else 0.0
        paid = min(remaining, capacity) if remaining > 0 else 0.0
        applied.append(paid)
        remaining -= paid
    return applied


def tranche_keys(tranches: list[DebtTranche]) -> list[str]:
    """Unique per-tranche labels; repeated names get a ' (2)', ' (3)' ... suffix."""
    keys: list[str] = []
    for t in tranches:
        key, n = t.name, 1
        while key in keys:
            n += 1
            key = f"{t.name} ({n})"
        keys.append(key)
    return keys


def open_year(tranches: list[DebtTranche], beginning: list[float]) -> list[TrancheYear]:
    """Interest and required amortization for every tranche, before any sweep."""
    records = []
    for key, t, beg in zip(tranche_keys(tranches), tranches, beginning):
        req = mandatory_amortization(t, beg)
        records.append(TrancheYear(
            name            = key,
            beginning       = beg,
            interest        = tranche_interest(t, beg),
            mandatory_amort = req,
            ending          = max(0.0, beg - req),
        ))
    return records


def roll_forward(
    tranches: list[DebtTranche],
    opened: list[TrancheYear],
    fcf_before_sweep: float,
    cash_sweep_percent: float,
) -> list[TrancheYear]:
    """
    Settle the sweep on the records from `open_year`.

    `fcf_before_sweep` is already net of mandatory amortization.  Records
    are updated in place and returned.
    """
    sweep = allocate_sweep(tranches,
                           [r.beginning for r in opened],
                           [r.mandatory_amort for r in opened],
                           available_for_sweep(fcf_before_sweep, cash_sweep_percent))
    for record, swp in zip(opened, sweep):
        record.sweep  = swp
        record.ending = max(0.0, record.beginning - record.mandatory_amort - swp)
    return opened
