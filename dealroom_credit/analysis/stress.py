"""
stress.py
---------
Covenant stress testing against a fixed catalog of adverse scenarios.

Each scenario replaces the operating path (growth, margins) and adds a
flat rate shock to every enabled tranche, then the stressed deal is run
through the projection engine and every forward year is tested against
the covenant package.

Risk classification (first match wins):
  no breaches and worst leverage < 80% of max  → low
  no breaches and worst leverage < 95% of max  → medium
  two breaches or fewer                        → high
  otherwise                                    → critical
"""

import logging
from dataclasses import asdict, dataclass, field

import pandas as pd

from dealroom_credit.analysis.credit_metrics import (
    CovenantBreach,
    CovenantThresholds,
    check_covenants,
)
from dealroom_credit.analysis.scenarios import Scenario, apply_scenario
from dealroom_credit.model.assumptions import Assumptions, ProjectionDefaults
from dealroom_credit.model.projection import ProjectionResult, run_projection


logger = logging.getLogger(__name__)


STRESS_SCENARIOS = [
    Scenario(
        name                 = "Revenue Shock",
        description          = "Sharp revenue decline in Year 1, gradual recovery",
        revenue_growth       = [-10.0, -5.0, 2.0, 4.0, 5.0],
        ebitda_margins       = [22.0, 22.0, 23.0, 24.0, 25.0],
        interest_rate_adjust = 0.0,
    ),
    Scenario(
        name                 = "Margin Compression",
        description          = "Sustained margin pressure from competition",
        revenue_growth       = [3.0, 3.0, 4.0, 4.0, 5.0],
        ebitda_margins       = [20.0, 18.0, 17.0, 17.0, 18.0],
        interest_rate_adjust = 0.0,
    ),
    Scenario(
        name                 = "Rate Spike",
        description          = "Interest rates increase 200bps",
        revenue_growth       = [5.0, 5.0, 5.0, 5.0, 5.0],
        ebitda_margins       = [25.0, 25.0, 25.0, 25.0, 25.0],
        interest_rate_adjust = 2.0,
    ),
    Scenario(
        name                 = "Perfect Storm",
        description          = "Revenue decline + margin pressure + rate spike",
        revenue_growth       = [-8.0, -3.0, 0.0, 2.0, 3.0],
        ebitda_margins       = [18.0, 16.0, 16.0, 17.0, 18.0],
        interest_rate_adjust = 1.5,
    ),
]


@dataclass
class MetricPoint:
    year: int
    value: float


@dataclass
class StressTestResult:
    scenario: Scenario
    projection: ProjectionResult = field(repr=False)
    breaches: list[CovenantBreach]
    worst_leverage: MetricPoint
    worst_dscr: MetricPoint | None
    survives: bool
    risk_level: str

    @property
    def exit_leverage(self) -> float:
        return self.projection.summary.exit_leverage

    @property
    def avg_dscr(self) -> float:
        return self.projection.summary.avg_dscr

    @property
    def paydown_percent(self) -> float:
        return round(self.projection.summary.paydown_percent, 1)

    def to_dict(self) -> dict:
        return {
            "scenario":       self.scenario.to_dict(),
            "projections":    [
                {"year": r.year, "label": r.label, "leverage_ratio": r.leverage_ratio,
                 "dscr": r.dscr, "interest_coverage": r.interest_coverage}
                for r in self.projection.rows
            ],
            "summary": {
                "exit_leverage":   self.exit_leverage,
                "avg_dscr":        self.avg_dscr,
                "paydown_percent": self.paydown_percent,
            },
            "breaches":       [b.to_dict() for b in self.breaches],
            "worst_leverage": asdict(self.worst_leverage),
            "worst_dscr":     asdict(self.worst_dscr) if self.worst_dscr else None,
            "survives":       self.survives,
            "risk_level":     self.risk_level,
        }


def classify_risk(breach_count: int, worst_leverage: float, max_leverage: float) -> str:
    if breach_count == 0 and worst_leverage < max_leverage * 0.8:
        return "low"
    if breach_count == 0 and worst_leverage < max_leverage * 0.95:
        return "medium"
    if breach_count <= 2:
        return "high"
    return "critical"


def run_stress_test(
    base: Assumptions,
    scenario: Scenario,
    covenants: CovenantThresholds | None = None,
    defaults: ProjectionDefaults | None = None,
) -> StressTestResult:
    """Stress one scenario; `base` is left untouched."""
    covenants = covenants or CovenantThresholds()
    result = run_projection(apply_scenario(base, scenario, defaults), defaults)

    breaches: list[CovenantBreach] = []
    worst_lev  = MetricPoint(year=0, value=0.0)
    worst_dscr = None

    for row in result.forward_rows:
        breaches += check_covenants(row, covenants)

        if row.raw_leverage > worst_lev.value:
            worst_lev = MetricPoint(row.year, row.raw_leverage)
        if worst_dscr is None or row.raw_dscr < worst_dscr.value:
            worst_dscr = MetricPoint(row.year, row.raw_dscr)

    risk = classify_risk(len(breaches), worst_lev.value, covenants.max_leverage)
    logger.info("Stress %-20s breaches=%d worst leverage=%.2fx risk=%s",
                scenario.name, len(breaches), worst_lev.value, risk)

    return StressTestResult(
        scenario       = scenario,
        projection     = result,
        breaches       = breaches,
        worst_leverage = MetricPoint(worst_lev.year, round(worst_lev.value, 2)),
        worst_dscr     = MetricPoint(worst_dscr.year, round(worst_dscr.value, 2)) if worst_dscr else None,
        survives       = not breaches,
        risk_level     = risk,
    )


def run_all_stress_tests(
    base: Assumptions,
    covenants: CovenantThresholds | None = None,
    scenarios: list[Scenario] | None = None,
    defaults: ProjectionDefaults | None = None,
) -> list[StressTestResult]:
    scenarios = STRESS_SCENARIOS if scenarios is None else scenarios
    return [run_stress_test(base, s, covenants, defaults) for s in scenarios]


def stress_summary_df(results: list[StressTestResult]) -> pd.DataFrame:
    rows = []
    for r in results:
        rows.append({
            "Scenario":            r.scenario.name,
            "Exit Leverage (x)":   r.exit_leverage,
            "Worst Leverage (x)":  r.worst_leverage.value,
            "Worst Leverage Year": r.worst_leverage.year,
            "Worst DSCR (x)":      r.worst_dscr.value if r.worst_dscr else None,
            "Avg DSCR (x)":        r.avg_dscr,
            "Paydown %":           r.paydown_percent,
            "Breaches":            len(r.breaches),
            "Survives":            r.survives,
            "Risk Level":          r.risk_level,
        })
    return pd.DataFrame(rows).set_index("Scenario")
