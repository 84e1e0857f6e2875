"""
scenarios.py
------------
Stress scenarios: named shock presets, the pure shock applier, and a
runner that re-projects the model for each scenario.

Each scenario is a pure function of (base params, shock deltas). Shocked
records are new objects; the base record is never mutated and scenarios
share no state, so they can be evaluated in any order.
"""

import logging
import math
from dataclasses import dataclass, replace
from typing import Optional

import numpy as np
import pandas as pd

from model.params import CovenantThresholds, ModelParams, default_params
from model.projection import build_projection
from model.debt_schedule import balloon_analysis
from analysis.credit_metrics import cash_flow_volatility, debt_service_capacity, resilience_score

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ShockDeltas:
    """Additive shocks applied to a base parameter set."""
    growth: float = 0.0
    cogs: float = 0.0
    opex: float = 0.0
    capex: float = 0.0
    rate: float = 0.0
    wacc: float = 0.0
    term_g: float = 0.0


@dataclass(frozen=True)
class ScenarioPreset:
    key: str
    name: str
    description: str
    deltas: ShockDeltas


PRESETS = {
    "base": ScenarioPreset(
        "base", "Base Case",
        "Normal operating conditions with expected growth rates and stable margins",
        ShockDeltas(),
    ),
    "mild": ScenarioPreset(
        "mild", "Mild Recession",
        "5-10% revenue decline, moderate margin compression, reduced capex",
        ShockDeltas(growth=-0.03, cogs=0.01, opex=0.005, capex=-0.003,
                    rate=0.01, wacc=0.01, term_g=-0.002),
    ),
    "severe": ScenarioPreset(
        "severe", "Severe Recession",
        "15-25% revenue decline, significant margin erosion, covenant pressure",
        ShockDeltas(growth=-0.08, cogs=0.03, opex=0.015, capex=-0.01,
                    rate=0.02, wacc=0.02, term_g=-0.01),
    ),
    "costShock": ScenarioPreset(
        "costShock", "Cost Inflation",
        "Input costs rise 15-20% with limited pricing power, compressing margins",
        ShockDeltas(growth=-0.02, cogs=0.05, opex=0.01, wacc=0.005, term_g=-0.003),
    ),
    "rateHike": ScenarioPreset(
        "rateHike", "Rate Shock",
        "Interest rates increase 200-300bps, elevating debt service burden",
        ShockDeltas(growth=-0.01, rate=0.03, wacc=0.015, term_g=-0.002),
    ),
}

CUSTOM_KEY = "custom"
CUSTOM_DESCRIPTION = "User-defined stress scenario"
SCENARIO_ORDER = ["base", "mild", "severe", "costShock", "rateHike"]


# ---------------------------------------------------------------------------
# Shock applier
# ---------------------------------------------------------------------------

def _clamp(value: float, lo: float, hi: float) -> float:
    if not math.isfinite(value):
        value = 0.0
    return min(hi, max(lo, value))


def apply_shocks(params: ModelParams, deltas: ShockDeltas) -> ModelParams:
    """
    Return a shocked copy of params.

    growth is unbounded; cost ratios and the interest rate are clamped to
    [0, 1]; WACC to [0.01, 1]; terminal growth to [-0.2, 0.2].
    """
    tranches = [replace(t, rate=_clamp(t.rate + deltas.rate, 0.0, 1.0))
                for t in params.debt_tranches]
    return params.with_overrides(
        growth=params.growth + deltas.growth,
        cogs_pct=_clamp(params.cogs_pct + deltas.cogs, 0.0, 1.0),
        opex_pct=_clamp(params.opex_pct + deltas.opex, 0.0, 1.0),
        capex_pct=_clamp(params.capex_pct + deltas.capex, 0.0, 1.0),
        interest_rate=_clamp(params.interest_rate + deltas.rate, 0.0, 1.0),
        wacc=_clamp(params.wacc + deltas.wacc, 0.01, 1.0),
        terminal_growth=_clamp(params.terminal_growth + deltas.term_g, -0.2, 0.2),
        debt_tranches=tranches,
    )


# ---------------------------------------------------------------------------
# Insights
# ---------------------------------------------------------------------------

def _covered(value: float) -> float:
    """Undefined coverage (no debt) compares as unlimited headroom."""
    return np.inf if value is None or np.isnan(value) else value


def scenario_insight(key: str, stats: dict, breaches: dict,
                     thresholds: CovenantThresholds) -> dict:
    """Summary / recommendation / risk level for one scenario outcome."""
    min_dscr = _covered(stats["min_dscr"])
    max_lev = stats["max_leverage"]
    max_lev = -np.inf if np.isnan(max_lev) else max_lev
    total = breaches["total"]
    floor = thresholds.min_dscr

    if key == "base":
        if min_dscr >= floor + 0.5 and max_lev <= thresholds.max_leverage - 1.0:
            return {"summary": "Strong performance with ample covenant cushion",
                    "recommendation": "Proceed; the structure carries a significant buffer",
                    "risk_level": "LOW"}
        return {"summary": "Adequate performance but limited stress buffer",
                "recommendation": "Monitor closely and consider lower leverage for resilience",
                "risk_level": "MEDIUM"}
    if key == "mild":
        if min_dscr >= floor and total == 0:
            return {"summary": "Covenants hold through a moderate downturn",
                    "recommendation": "Structure withstands typical business-cycle swings",
                    "risk_level": "LOW"}
        return {"summary": "Mild stress puts covenants under pressure",
                "recommendation": "Increase the equity cushion or reduce debt",
                "risk_level": "MEDIUM"}
    if key == "severe":
        if min_dscr >= floor - 0.2 and total <= 1:
            return {"summary": "Survives severe stress with limited covenant breaches",
                    "recommendation": "Prepare waiver or restructuring contingencies",
                    "risk_level": "HIGH"}
        return {"summary": "Severe stress exposes fundamental viability concerns",
                "recommendation": "Restructure or raise additional equity before proceeding",
                "risk_level": "CRITICAL"}
    if key == "rateHike":
        if min_dscr >= floor + 0.3:
            return {"summary": "Capacity to absorb significant rate increases",
                    "recommendation": "Fixed-rate exposure limits refinancing risk",
                    "risk_level": "LOW"}
        return {"summary": "Debt service is sensitive to interest rate movements",
                "recommendation": "Consider rate hedges or fixed-rate financing",
                "risk_level": "MEDIUM"}
    if key == "costShock":
        if min_dscr >= floor:
            return {"summary": "Margin compression absorbed without covenant issues",
                    "recommendation": "Current pricing power assumptions hold",
                    "risk_level": "LOW"}
        return {"summary": "Cost inflation threatens debt service capacity",
                "recommendation": "Add cost pass-through mechanisms or efficiency programs",
                "risk_level": "MEDIUM"}
    return {"summary": "Scenario requires detailed review",
            "recommendation": "Analyze the specific drivers and mitigants",
            "risk_level": "UNKNOWN"}


# ---------------------------------------------------------------------------
# Runner
# ---------------------------------------------------------------------------

def run_scenario(base: ModelParams, key: str,
                 custom: Optional[ShockDeltas] = None) -> dict:
    """
    Shock the base params with a preset (or custom deltas) and re-project.

    Returns a ScenarioResult dict.
    """
    if key == CUSTOM_KEY:
        name, description, deltas = "Custom", CUSTOM_DESCRIPTION, custom or ShockDeltas()
    elif key in PRESETS:
        preset = PRESETS[key]
        name, description, deltas = preset.name, preset.description, preset.deltas
    else:
        raise KeyError(f"Unknown scenario '{key}'")

    shocked = apply_shocks(base, deltas)
    result = build_projection(shocked)
    df = result["projection_df"]
    stats, breaches = result["credit_stats"], result["breaches"]
    volatility = cash_flow_volatility(df["fcf"])
    balloon = balloon_analysis(shocked.balloon_amount, result["cash_at_maturity"])

    logger.info("Scenario %s: min DSCR %.2f, %d breaches", key, stats["min_dscr"], breaches["total"])

    return {
        "key":                   key,
        "name":                  name,
        "description":           description,
        "deltas":                deltas,
        "params":                shocked,
        "projection_df":         df,
        "credit_stats":          stats,
        "breaches":              breaches,
        "enterprise_value":      result["valuation"]["enterprise_value"],
        "equity_value":          result["valuation"]["equity_value"],
        "irr":                   result["irr"],
        "moic":                  result["moic"],
        "volatility":            volatility,
        "debt_service_capacity": debt_service_capacity(df),
        "balloon":               balloon,
        "resilience":            resilience_score(stats["min_dscr"], stats["max_leverage"],
                                                  breaches["total"], volatility, stats["min_icr"]),
        "insight":               scenario_insight(key, stats, breaches, shocked.covenants),
    }


def run_scenarios(base: Optional[ModelParams] = None,
                  keys: Optional[list[str]] = None,
                  custom: Optional[ShockDeltas] = None) -> dict:
    """
    Run several scenarios against the same base.

    Returns
    -------
    {
      "results"      : {key: ScenarioResult},
      "comparison_df": pd.DataFrame  (key metrics across scenarios),
    }
    """
    base = base or default_params()
    keys = keys or (SCENARIO_ORDER + ([CUSTOM_KEY] if custom is not None else []))
    results = {key: run_scenario(base, key, custom) for key in keys}

    rows = []
    for key in keys:
        r = results[key]
        stats = r["credit_stats"]
        rows.append({
            "Scenario":          r["name"],
            "Min DSCR":          stats["min_dscr"],
            "Avg DSCR":          stats["avg_dscr"],
            "Min ICR":           stats["min_icr"],
            "Max Net Leverage":  stats["max_leverage"],
            "Breaches":          r["breaches"]["total"],
            "Enterprise Value":  r["enterprise_value"],
            "Equity Value":      r["equity_value"],
            "IRR":               r["irr"],
            "MOIC":              r["moic"],
            "Resilience Score":  r["resilience"]["score"],
            "Refinancing Risk":  r["balloon"]["risk"] or "None",
            "Risk Level":        r["insight"]["risk_level"],
        })

    return {
        "results":       results,
        "comparison_df": pd.DataFrame(rows).set_index("Scenario"),
    }
