"""
config.py
---------
Deal configuration loader (YAML / JSON → typed model inputs).

Document layout:

    assumptions:        # required; LTM figures, projections, capital structure
    covenants:          # optional CovenantThresholds
    defaults:           # optional ProjectionDefaults for missing per-year inputs
    stress_scenarios:   # optional; replaces the built-in stress catalog
    scenarios:          # optional; replaces Base / Upside / Downside

Keys may be camelCase (as the web client sends them) or snake_case.
Structural problems raise ModelConfigError; out-of-range numbers are left
to validate_assumptions().
"""

import json
import logging
import re
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any

import yaml

from dealroom_credit.analysis.credit_metrics import CovenantThresholds
from dealroom_credit.analysis.scenarios import DEFAULT_VARIANTS, Scenario
from dealroom_credit.analysis.stress import STRESS_SCENARIOS
from dealroom_credit.model.assumptions import (
    NWC_MODES,
    AdjustmentItem,
    Assumptions,
    DebtTranche,
    ProjectionDefaults,
)


logger = logging.getLogger(__name__)

_CAMEL = re.compile(r"(?<=[a-z0-9])([A-Z])")


class ModelConfigError(ValueError):
    """Structural error in a deal configuration."""


@dataclass
class ModelConfig:
    assumptions: Assumptions
    covenants: CovenantThresholds = field(default_factory=CovenantThresholds)
    defaults: ProjectionDefaults = field(default_factory=ProjectionDefaults)
    stress_scenarios: list[Scenario] = field(default_factory=lambda: list(STRESS_SCENARIOS))
    scenarios: list[Scenario] = field(default_factory=lambda: list(DEFAULT_VARIANTS))
    source_path: str | None = None


# ---------------------------------------------------------------------------
# Key & value helpers
# ---------------------------------------------------------------------------

def snake_case(key: str) -> str:
    return _CAMEL.sub(r"_\1", key).lower()


def _normalise(data: dict, where: str) -> dict:
    if not isinstance(data, dict):
        raise ModelConfigError(f"Expected a mapping for '{where}', got {type(data).__name__}")
    return {snake_case(str(k)): v for k, v in data.items()}


def _num(value: Any, where: str) -> float:
    if isinstance(value, bool):
        raise ModelConfigError(f"{where} must be a number, got {value!r}")
    try:
        return float(value)
    except (TypeError, ValueError) as exc:
        raise ModelConfigError(f"{where} must be a number, got {value!r}") from exc


def _num_list(value: Any, where: str) -> list[float | None]:
    if not isinstance(value, (list, tuple)):
        raise ModelConfigError(f"{where} must be a list, got {type(value).__name__}")
    return [None if v is None else _num(v, f"{where}[{i}]") for i, v in enumerate(value)]


def _warn_unknown(data: dict, known: set, where: str) -> None:
    extra = sorted(set(data) - known)
    if extra:
        logger.warning("Ignoring unknown key(s) in %s: %s", where, extra)


# ---------------------------------------------------------------------------
# Section parsers
# ---------------------------------------------------------------------------

def _tranche_from_dict(raw: Any, i: int) -> DebtTranche:
    where = f"debt_tranches[{i}]"
    d = _normalise(raw, where)
    _warn_unknown(d, {"name", "amount", "interest_rate", "amort_rate", "enabled"}, where)
    return DebtTranche(
        name          = str(d.get("name", f"Tranche {i + 1}")),
        amount        = _num(d.get("amount", 0.0), f"{where}.amount"),
        interest_rate = _num(d.get("interest_rate", 0.0), f"{where}.interest_rate"),
        amort_rate    = _num(d.get("amort_rate", 0.0), f"{where}.amort_rate"),
        enabled       = bool(d.get("enabled", True)),
    )


def assumptions_from_dict(raw: dict) -> Assumptions:
    """
    Build Assumptions from a (camelCase or snake_case) mapping.

    Accepts either `debt_tranches` or the single-tranche
    `debt_structure {senior_amount, interest_rate, amort_rate}`, and either
    `adjustment_items` or a single `adjustments` list.
    """
    d = _normalise(raw, "assumptions")
    known = {f.name for f in fields(Assumptions)} | {"debt_structure", "adjustments"}
    _warn_unknown(d, known, "assumptions")

    for required in ("ltm_revenue", "ltm_ebitda"):
        if required not in d:
            raise ModelConfigError(f"assumptions.{required} is required")

    kwargs: dict[str, Any] = {
        "ltm_revenue": _num(d["ltm_revenue"], "assumptions.ltm_revenue"),
        "ltm_ebitda":  _num(d["ltm_ebitda"], "assumptions.ltm_ebitda"),
    }

    for key in ("revenue_growth", "ebitda_margins", "capex_percent", "nwc_values"):
        if key in d:
            kwargs[key] = _num_list(d[key], f"assumptions.{key}")

    for key in ("tax_rate", "da_percent", "nwc_percent", "cash_sweep_percent"):
        if key in d:
            kwargs[key] = _num(d[key], f"assumptions.{key}")

    if "periods" in d:
        periods = _num(d["periods"], "assumptions.periods")
        if periods != int(periods) or periods < 1:
            raise ModelConfigError(f"assumptions.periods must be a positive integer, got {d['periods']!r}")
        kwargs["periods"] = int(periods)

    if "nwc_mode" in d:
        if d["nwc_mode"] not in NWC_MODES:
            raise ModelConfigError(f"assumptions.nwc_mode must be one of {NWC_MODES}, got {d['nwc_mode']!r}")
        kwargs["nwc_mode"] = d["nwc_mode"]

    for key in ("signing_date", "closing_date"):
        if d.get(key):
            kwargs[key] = str(d[key])

    # ---- EBITDA add-backs ----
    if "adjustment_items" in d:
        items = []
        for i, item in enumerate(d["adjustment_items"] or []):
            it = _normalise(item, f"adjustment_items[{i}]")
            items.append(AdjustmentItem(
                name   = str(it.get("name", f"Adjustment {i + 1}")),
                values = _num_list(it.get("values", []), f"adjustment_items[{i}].values"),
            ))
        kwargs["adjustment_items"] = items
    elif d.get("adjustments") is not None:
        kwargs["adjustment_items"] = [
            AdjustmentItem("Adjustments", _num_list(d["adjustments"], "assumptions.adjustments"))
        ]

    # ---- Capital structure ----
    if "debt_tranches" in d:
        tranches = d["debt_tranches"]
        if not isinstance(tranches, list):
            raise ModelConfigError("assumptions.debt_tranches must be a list")
        kwargs["debt_tranches"] = [_tranche_from_dict(t, i) for i, t in enumerate(tranches)]
    elif "debt_structure" in d:
        ds = _normalise(d["debt_structure"], "debt_structure")
        kwargs["debt_tranches"] = [DebtTranche(
            name          = "Senior Debt",
            amount        = _num(ds.get("senior_amount", 0.0), "debt_structure.senior_amount"),
            interest_rate = _num(ds.get("interest_rate", 0.0), "debt_structure.interest_rate"),
            amort_rate    = _num(ds.get("amort_rate", 0.0), "debt_structure.amort_rate"),
        )]

    return Assumptions(**kwargs)


def covenants_from_dict(raw: dict) -> CovenantThresholds:
    d = _normalise(raw, "covenants")
    known = {f.name for f in fields(CovenantThresholds)}
    _warn_unknown(d, known, "covenants")
    return CovenantThresholds(**{k: _num(v, f"covenants.{k}") for k, v in d.items() if k in known})


def defaults_from_dict(raw: dict) -> ProjectionDefaults:
    d = _normalise(raw, "defaults")
    known = {f.name for f in fields(ProjectionDefaults)}
    _warn_unknown(d, known, "defaults")
    return ProjectionDefaults(**{k: _num(v, f"defaults.{k}") for k, v in d.items() if k in known})


def scenario_from_dict(raw: dict) -> Scenario:
    d = _normalise(raw, "scenario")
    if "name" not in d:
        raise ModelConfigError("Every scenario needs a name")
    where = f"scenario {d['name']!r}"
    _warn_unknown(d, {f.name for f in fields(Scenario)}, where)

    kwargs: dict[str, Any] = {"name": str(d["name"]), "description": str(d.get("description", ""))}
    for key in ("revenue_growth", "ebitda_margins"):
        if d.get(key) is not None:
            kwargs[key] = _num_list(d[key], f"{where}.{key}")
    for key in ("interest_rate_adjust", "growth_shift", "margin_shift", "debt_scale", "cash_sweep_percent"):
        if d.get(key) is not None:
            kwargs[key] = _num(d[key], f"{where}.{key}")
    return Scenario(**kwargs)


def _scenario_list(raw: Any, where: str) -> list[Scenario]:
    if not isinstance(raw, list):
        raise ModelConfigError(f"'{where}' must be a list of scenarios")
    scenarios = [scenario_from_dict(s) for s in raw]
    names = [s.name for s in scenarios]
    repeated = sorted({n for n in names if names.count(n) > 1})
    if repeated:
        raise ModelConfigError(f"'{where}' repeats scenario name(s) {repeated}")
    return scenarios


# ---------------------------------------------------------------------------
# Public loader
# ---------------------------------------------------------------------------

def model_config_from_dict(data: dict, source_path: str | None = None) -> ModelConfig:
    data = _normalise(data, "<root>")
    if "assumptions" not in data:
        raise ModelConfigError("Configuration has no 'assumptions' section")

    cfg = ModelConfig(assumptions=assumptions_from_dict(data["assumptions"]), source_path=source_path)
    if data.get("covenants") is not None:
        cfg.covenants = covenants_from_dict(data["covenants"])
    if data.get("defaults") is not None:
        cfg.defaults = defaults_from_dict(data["defaults"])
    if data.get("stress_scenarios") is not None:
        cfg.stress_scenarios = _scenario_list(data["stress_scenarios"], "stress_scenarios")
    if data.get("scenarios") is not None:
        cfg.scenarios = _scenario_list(data["scenarios"], "scenarios")
        if not cfg.scenarios:
            raise ModelConfigError("'scenarios' must name at least one scenario")
    return cfg


def load_model_config(path: str | Path) -> ModelConfig:
    """Load a deal configuration from a .yaml / .yml / .json file."""
    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(f"Deal config not found: {p}")

    suffix = p.suffix.lower()
    with p.open("r", encoding="utf-8") as f:
        if suffix in (".yml", ".yaml"):
            data = yaml.safe_load(f)
        elif suffix == ".json":
            data = json.load(f)
        else:
            raise ModelConfigError(f"Unsupported deal config extension '{suffix}' for {p}")

    if data is None:
        raise ModelConfigError(f"Empty configuration in file: {p}")
    if not isinstance(data, dict):
        raise ModelConfigError(f"Expected a mapping at top level of {p}, got {type(data).__name__}")

    cfg = model_config_from_dict(data, source_path=str(p))
    logger.info("Loaded deal config %s (%d periods, %d tranches)",
                p, cfg.assumptions.periods, len(cfg.assumptions.debt_tranches))
    return cfg
