"""
debt_capacity.py
----------------
Lender-side debt sizing on year-1 EBITDA.

  Max debt        : DSCR exactly at the covenant
  Safe debt       : covenant x 1.20 cushion
  Aggressive debt : DSCR floor of 1.15x

  principal = EBITDA / (payment factor x target DSCR)

The current stack is then compared against the three capacities to give
an APPROVE / APPROVE WITH CONDITIONS / REDUCE DEBT call, and against
three alternative capital structures (safe debt, 3.0x leverage, +2y tenor)
with the same total capital.
"""

import logging
from typing import Optional

import numpy as np
import pandas as pd

from model.params import ModelParams, ModelValidationError, default_params
from model.debt_schedule import payment_factor
from model.projection import build_projection

logger = logging.getLogger(__name__)

SAFETY_BUFFER = 1.20
AGGRESSIVE_DSCR = 1.15
TARGET_LEVERAGE = 3.0
TENOR_EXTENSION = 2


def _current_terms(params: ModelParams) -> tuple[float, int]:
    """(rate, tenor) of the stack on the projection's day-count basis."""
    tranches = params.tranches
    if tranches:
        return params.effective_blended_rate, max(t.tenor_years for t in tranches)
    return params.effective_rate, params.debt_tenor_years


def calculate_debt_capacity(params: Optional[ModelParams] = None,
                            projection_df: Optional[pd.DataFrame] = None) -> dict:
    """
    Size the debt a borrower can carry and compare it with the current stack.

    Parameters
    ----------
    params        : deal inputs (default: default_params())
    projection_df : projection to read year-1 EBITDA from (built if omitted)

    Returns
    -------
    dict with ebitda, target_dscr, target_dscr_with_buffer, payment_factor,
    max_debt, safe_debt, aggressive_debt, current_debt, excess_debt,
    utilization_pct, recommendation, risk_level
    """
    params = (params or default_params()).validate()
    if projection_df is None:
        projection_df = build_projection(params)["projection_df"]
    if projection_df.empty:
        raise ModelValidationError("No projection data available for debt capacity")

    ebitda = float(projection_df["ebitda"].iloc[0])
    rate, tenor = _current_terms(params)
    factor = payment_factor(rate, tenor)
    target = params.covenants.min_dscr
    target_buffered = target * SAFETY_BUFFER

    def size(dscr: float) -> float:
        return max(0.0, ebitda / (factor * dscr))

    max_debt = size(target)
    safe_debt = size(target_buffered)
    aggressive_debt = size(AGGRESSIVE_DSCR)
    current = params.total_debt

    if current > max_debt:
        recommendation, risk = "REDUCE DEBT", "HIGH"
    elif current > safe_debt:
        recommendation, risk = "APPROVE WITH CONDITIONS", "MEDIUM"
    else:
        recommendation, risk = "APPROVE", "LOW"

    utilization = current / max_debt * 100 if max_debt > 0 else (np.inf if current > 0 else 0.0)
    logger.debug("Debt capacity: max %.0f, safe %.0f, current %.0f -> %s",
                 max_debt, safe_debt, current, recommendation)

    return {
        "ebitda":                  ebitda,
        "rate":                    rate,
        "tenor_years":             tenor,
        "target_dscr":             target,
        "target_dscr_with_buffer": target_buffered,
        "payment_factor":          factor,
        "max_debt":                max_debt,
        "safe_debt":               safe_debt,
        "aggressive_debt":         aggressive_debt,
        "current_debt":            current,
        "excess_debt":             max(0.0, current - max_debt),
        "utilization_pct":         utilization,
        "recommendation":          recommendation,
        "risk_level":              risk,
    }


def alternative_structures(params: ModelParams, capacity: dict) -> pd.DataFrame:
    """
    Current structure vs three alternatives at the same total capital.

    Leverage here is gross debt / year-1 EBITDA. A structure is compliant
    when its DSCR meets the covenant and its leverage does not exceed the
    leverage covenant.
    """
    ebitda = capacity["ebitda"]
    rate, tenor = capacity["rate"], capacity["tenor_years"]
    covenants = params.covenants
    current_debt = params.total_debt
    current_equity = params.equity_contribution
    total_capital = current_debt + current_equity

    def row(name: str, debt: float, tenor_years: int, changes: str) -> dict:
        ds = debt * payment_factor(rate, tenor_years)
        dscr = ebitda / ds if ds > 0 else np.inf
        leverage = debt / ebitda if ebitda > 0 else (np.inf if debt > 0 else 0.0)
        equity = total_capital - debt
        return {
            "Structure":          name,
            "Debt":               debt,
            "Equity":             equity,
            "Tenor":              tenor_years,
            "Debt %":             debt / total_capital * 100 if total_capital > 0 else 0.0,
            "Annual DS":          ds,
            "DSCR":               dscr,
            "Leverage":           leverage,
            "Covenant Compliant": bool(dscr >= covenants.min_dscr
                                       and leverage <= covenants.max_leverage),
            "Changes":            changes,
        }

    safe = capacity["safe_debt"]
    mix = ebitda * TARGET_LEVERAGE if ebitda > 0 else current_debt * 0.85
    rows = [
        row("Current Structure", current_debt, tenor, "As proposed"),
        row("Reduce Debt to Safe Level", safe, tenor,
            f"Debt {(safe - current_debt) / 1e6:+,.1f}M, equity {(current_debt - safe) / 1e6:+,.1f}M"),
        row("Optimize Debt/Equity Mix", mix, tenor,
            f"Target {TARGET_LEVERAGE:.1f}x leverage: debt {(mix - current_debt) / 1e6:+,.1f}M"),
        row("Extend Loan Tenor", current_debt, tenor + TENOR_EXTENSION,
            f"Tenor {tenor} to {tenor + TENOR_EXTENSION} years"),
    ]
    return pd.DataFrame(rows).set_index("Structure")
