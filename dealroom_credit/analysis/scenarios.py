"""
scenarios.py
------------
Named scenario overrides and the Base / Upside / Downside comparison.

A Scenario is a bundle of overrides applied to a deep copy of the base
Assumptions; the base itself is never touched.  `run_scenarios` runs the
projection once per variant and lines the results up on a shared
period axis.
"""

import copy
import logging
from dataclasses import asdict, dataclass, field

import pandas as pd

from dealroom_credit.model.assumptions import DEFAULTS, Assumptions, ProjectionDefaults
from dealroom_credit.model.projection import ProjectionResult, run_projection


logger = logging.getLogger(__name__)

MARGIN_FLOOR = 5.0
MARGIN_CAP   = 60.0


@dataclass
class Scenario:
    """
    Override bundle.

    revenue_growth / ebitda_margins replace the base values index by index
    (base values carry on beyond the override's length).  Shifts are
    additive percentage points; debt_scale multiplies tranche amounts.
    """
    name: str
    description: str = ""
    revenue_growth: list[float] | None = None
    ebitda_margins: list[float] | None = None
    interest_rate_adjust: float = 0.0
    growth_shift: float = 0.0
    margin_shift: float = 0.0
    debt_scale: float = 1.0
    cash_sweep_percent: float | None = None

    def to_dict(self) -> dict:
        return asdict(self)


DEFAULT_VARIANTS = [
    Scenario("Base",     "Management case as submitted"),
    Scenario("Upside",   "Growth +2pp, margins +2pp",  growth_shift=2.0,  margin_shift=2.0),
    Scenario("Downside", "Growth -3pp, margins -3pp",  growth_shift=-3.0, margin_shift=-3.0),
]


# ---------------------------------------------------------------------------
# Applying overrides
# ---------------------------------------------------------------------------

def _overlay(base: list, override: list | None) -> list:
    if override is None:
        return list(base)
    merged = list(override)
    merged += base[len(override):]
    return merged


def _filled(values: list, periods: int, default: float) -> list[float]:
    """Per-period values with gaps resolved, so a shift reaches every year."""
    return [values[i] if i < len(values) and values[i] is not None else default
            for i in range(periods)]


def apply_scenario(
    base: Assumptions,
    scenario: Scenario,
    defaults: ProjectionDefaults | None = None,
) -> Assumptions:
    """
    Return a new Assumptions with `scenario` applied.

    Gaps in a shifted path are filled from `defaults` first, the same
    values the projection engine would fall back to.  An upward margin
    shift is capped at 60%, a downward one floored at 5%.
    """
    d = defaults or DEFAULTS
    a = copy.deepcopy(base)

    a.revenue_growth = _overlay(a.revenue_growth, scenario.revenue_growth)
    a.ebitda_margins = _overlay(a.ebitda_margins, scenario.ebitda_margins)

    if scenario.growth_shift:
        a.revenue_growth = [g + scenario.growth_shift
                            for g in _filled(a.revenue_growth, a.periods, d.revenue_growth)]
    if scenario.margin_shift:
        margins = _filled(a.ebitda_margins, a.periods, d.ebitda_margin)
        if scenario.margin_shift > 0:
            a.ebitda_margins = [min(MARGIN_CAP, m + scenario.margin_shift) for m in margins]
        else:
            a.ebitda_margins = [max(MARGIN_FLOOR, m + scenario.margin_shift) for m in margins]

    for t in a.debt_tranches:
        if t.enabled:
            t.interest_rate += scenario.interest_rate_adjust
        t.amount *= scenario.debt_scale

    if scenario.cash_sweep_percent is not None:
        a.cash_sweep_percent = scenario.cash_sweep_percent
    return a


# ---------------------------------------------------------------------------
# Comparison
# ---------------------------------------------------------------------------

@dataclass
class ScenarioComparison:
    results: dict[str, ProjectionResult]
    covenant_threshold: float
    leverage_df: pd.DataFrame = field(repr=False)
    comparison_df: pd.DataFrame = field(repr=False)

    def years_above_covenant(self, name: str) -> list[int]:
        return [r.year for r in self.results[name].forward_rows
                if r.leverage_ratio > self.covenant_threshold]

    def to_dict(self) -> dict:
        return {
            "covenant_threshold": self.covenant_threshold,
            "results":    {name: res.to_dict() for name, res in self.results.items()},
            "comparison": {name: res.summary.to_dict() for name, res in self.results.items()},
        }


def run_scenarios(
    base: Assumptions,
    variants: list[Scenario] | None = None,
    covenant_threshold: float = 5.0,
    defaults: ProjectionDefaults | None = None,
) -> ScenarioComparison:
    """
    Run every variant through the projection engine.

    Returns
    -------
    ScenarioComparison with
      results       : {variant name: ProjectionResult}
      leverage_df   : leverage per period (rows) × variant (cols), plus a
                      boolean "<name> > Covenant" column per variant
      comparison_df : exit leverage / paydown / DSCR summary per variant

    Raises ValueError for an empty variant list or a repeated variant name.
    """
    variants = DEFAULT_VARIANTS if variants is None else variants
    if not variants:
        raise ValueError("run_scenarios needs at least one variant")
    names = [s.name for s in variants]
    repeated = sorted({n for n in names if names.count(n) > 1})
    if repeated:
        raise ValueError(f"Duplicate scenario names: {repeated}")

    results = {}
    for scenario in variants:
        results[scenario.name] = run_projection(apply_scenario(base, scenario, defaults), defaults)
        logger.debug("Scenario %s: exit leverage %.2fx", scenario.name,
                     results[scenario.name].summary.exit_leverage)

    # Shared period axis (every variant keeps the base period count)
    first = next(iter(results.values()))
    periods = [r.calendar_label or r.label for r in first.rows]

    leverage = {}
    for name, res in results.items():
        ratios = [r.leverage_ratio for r in res.rows]
        leverage[name] = ratios
        leverage[f"{name} > Covenant"] = [
            r.year > 0 and r.leverage_ratio > covenant_threshold for r in res.rows
        ]
    leverage_df = pd.DataFrame(leverage, index=pd.Index(periods, name="Period"))

    rows = []
    for name, res in results.items():
        s = res.summary
        rows.append({
            "Scenario":             name,
            "Entry Leverage (x)":   s.entry_leverage,
            "Exit Leverage (x)":    s.exit_leverage,
            "Total Paydown ($M)":   round(s.total_paydown, 1),
            "Paydown %":            round(s.paydown_percent, 1),
            "Avg DSCR (x)":         s.avg_dscr,
            "Years Above Covenant": sum(1 for r in res.forward_rows
                                        if r.leverage_ratio > covenant_threshold),
        })
    comparison_df = pd.DataFrame(rows).set_index("Scenario")

    return ScenarioComparison(
        results            = results,
        covenant_threshold = covenant_threshold,
        leverage_df        = leverage_df,
        comparison_df      = comparison_df,
    )
