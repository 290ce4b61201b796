"""
sensitivity.py
--------------
One-at-a-time ("tornado") sensitivity of a headline credit metric.

Each driver is moved down and up by `variation_percent` of its base value,
holding everything else at base:

  Revenue Growth   every year shifted by ±delta (pp)
  EBITDA Margin    every year shifted by ±delta, kept within [5%, 60%]
  Interest Rate    every enabled tranche shifted by ±delta, floored at 1%
  Cash Sweep %     shifted by ±delta, kept within [0%, 100%]

Target metrics: exit_leverage, paydown_percent, avg_dscr.
"""

import copy
import logging
from dataclasses import asdict, dataclass

import numpy as np
import pandas as pd

from dealroom_credit.model.assumptions import DEFAULTS, Assumptions, ProjectionDefaults
from dealroom_credit.model.projection import run_projection


logger = logging.getLogger(__name__)

TARGET_METRICS = {
    "exit_leverage":   2,
    "paydown_percent": 1,
    "avg_dscr":        2,
}

SENSITIVITY_VARIABLES = {
    "revenue_growth": "Revenue Growth",
    "ebitda_margin":  "EBITDA Margin",
    "interest_rate":  "Interest Rate",
    "cash_sweep":     "Cash Sweep %",
}


@dataclass
class SensitivityCase:
    value: float
    result: float
    impact: float


@dataclass
class SensitivityResult:
    variable: str
    variable_label: str
    base_value: float
    base_result: float
    low: SensitivityCase
    high: SensitivityCase

    @property
    def impact_range(self) -> float:
        return abs(self.low.impact) + abs(self.high.impact)

    def to_dict(self) -> dict:
        d = asdict(self)
        d["impact_range"] = self.impact_range
        return d


# ---------------------------------------------------------------------------
# Per-variable base values and perturbations
# ---------------------------------------------------------------------------

def _per_period(values: list, periods: int, default: float) -> list[float]:
    return [float(values[i]) if i < len(values) and values[i] is not None else default
            for i in range(periods)]


def _base_value(a: Assumptions, variable: str, d: ProjectionDefaults) -> float:
    if variable == "revenue_growth":
        return float(np.mean(_per_period(a.revenue_growth, a.periods, d.revenue_growth)))
    if variable == "ebitda_margin":
        return float(np.mean(_per_period(a.ebitda_margins, a.periods, d.ebitda_margin)))
    if variable == "interest_rate":
        return a.weighted_interest_rate
    if variable == "cash_sweep":
        return a.cash_sweep_percent
    raise ValueError(f"Unknown sensitivity variable {variable!r}")


def _shifted(base: Assumptions, variable: str, shift: float, d: ProjectionDefaults) -> Assumptions:
    """Deep copy of `base` with one driver moved by `shift` percentage points."""
    a = copy.deepcopy(base)
    if variable == "revenue_growth":
        a.revenue_growth = [g + shift for g in
                            _per_period(a.revenue_growth, a.periods, d.revenue_growth)]
    elif variable == "ebitda_margin":
        a.ebitda_margins = [min(60.0, max(5.0, m + shift)) for m in
                            _per_period(a.ebitda_margins, a.periods, d.ebitda_margin)]
    elif variable == "interest_rate":
        for t in a.enabled_tranches:
            t.interest_rate = max(1.0, t.interest_rate + shift)
    elif variable == "cash_sweep":
        a.cash_sweep_percent = min(100.0, max(0.0, a.cash_sweep_percent + shift))
    else:
        raise ValueError(f"Unknown sensitivity variable {variable!r}")
    return a


def _metric(a: Assumptions, target_metric: str, d: ProjectionDefaults) -> float:
    value = run_projection(a, d).metric(target_metric)
    return round(value, TARGET_METRICS[target_metric])


# ---------------------------------------------------------------------------
# Main entry point
# ---------------------------------------------------------------------------

def run_sensitivity(
    base: Assumptions,
    target_metric: str = "exit_leverage",
    variation_percent: float = 20.0,
    variables: list[str] | None = None,
    defaults: ProjectionDefaults | None = None,
) -> list[SensitivityResult]:
    """
    Returns one SensitivityResult per driver, in SENSITIVITY_VARIABLES order.
    `defaults` fills missing per-year inputs for the base and every case.

    Raises ValueError for an unknown metric or variable.
    """
    if target_metric not in TARGET_METRICS:
        raise ValueError(f"Unknown sensitivity metric {target_metric!r}; "
                         f"expected one of {sorted(TARGET_METRICS)}")
    variables = list(SENSITIVITY_VARIABLES) if variables is None else variables
    for v in variables:
        if v not in SENSITIVITY_VARIABLES:
            raise ValueError(f"Unknown sensitivity variable {v!r}")

    d = defaults or DEFAULTS
    base_result = _metric(base, target_metric, d)

    results = []
    for v in variables:
        base_value = _base_value(base, v, d)
        delta = base_value * variation_percent / 100

        low_result  = _metric(_shifted(base, v, -delta, d), target_metric, d)
        high_result = _metric(_shifted(base, v, +delta, d), target_metric, d)

        results.append(SensitivityResult(
            variable       = v,
            variable_label = SENSITIVITY_VARIABLES[v],
            base_value     = base_value,
            base_result    = base_result,
            low            = SensitivityCase(base_value - delta, low_result,  low_result - base_result),
            high           = SensitivityCase(base_value + delta, high_result, high_result - base_result),
        ))

    logger.debug("Sensitivity on %s (±%.0f%%): %s", target_metric, variation_percent,
                 {r.variable: round(r.impact_range, 3) for r in results})
    return results


def tornado_df(results: list[SensitivityResult]) -> pd.DataFrame:
    """Tornado table, widest bar first."""
    rows = []
    for r in results:
        rows.append({
            "Variable":     r.variable_label,
            "Base Value":   r.base_value,
            "Low Value":    r.low.value,
            "High Value":   r.high.value,
            "Low Result":   r.low.result,
            "High Result":  r.high.result,
            "Low Impact":   r.low.impact,
            "High Impact":  r.high.impact,
            "Impact Range": r.impact_range,
        })
    df = pd.DataFrame(rows)
    if df.empty:
        return df
    return df.sort_values("Impact Range", ascending=False).reset_index(drop=True)
