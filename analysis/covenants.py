"""
covenants.py
------------
Covenant headroom: how far each projected year sits from its covenant.

  headroom = value - threshold      (DSCR, ICR: minimum covenants)
  headroom = threshold - value      (Net Leverage: maximum covenant)

Positive headroom means compliant; negative means breached. Unlimited
coverage (no debt service / no interest) gives +inf headroom; undefined
leverage (net cash, no EBITDA) gives nan and is skipped when taking the
minimum.
"""

import logging

import numpy as np
import pandas as pd

from model.params import CovenantThresholds, ModelValidationError

logger = logging.getLogger(__name__)

COVENANTS = {
    # key: (column, label, threshold attribute, minimum covenant?)
    "dscr":     ("dscr", "DSCR", "min_dscr", True),
    "icr":      ("icr", "ICR", "target_icr", True),
    "leverage": ("leverage", "Net Leverage", "max_leverage", False),
}


def _covenant_table(projection_df: pd.DataFrame, column: str, threshold: float,
                    is_minimum: bool) -> pd.DataFrame:
    values = projection_df[column].astype(float)
    if is_minimum:
        headroom = values - threshold
        breached = values < threshold
    else:
        headroom = threshold - values
        breached = values > threshold
    return pd.DataFrame({
        "year":      projection_df["year"].astype(int).values,
        "value":     values.values,
        "threshold": threshold,
        "headroom":  headroom.values,
        "breached":  breached.values,
    })


def analyze_covenant_headroom(projection_df: pd.DataFrame,
                              thresholds: CovenantThresholds,
                              covenant: str = "all") -> dict:
    """
    Parameters
    ----------
    projection_df : projection with dscr / icr / leverage columns
    thresholds    : covenant levels
    covenant      : "all", "dscr", "icr" or "leverage"

    Returns
    -------
    {
      "<covenant>": {
          "label", "threshold", "table" (DataFrame), "min_headroom",
          "breach_years", "status"
      },
      ...
      "headroom_df": one headroom column per covenant, indexed by year
    }
    """
    if covenant != "all" and covenant not in COVENANTS:
        raise ModelValidationError(
            f"Unknown covenant '{covenant}' (expected all, {', '.join(COVENANTS)})"
        )
    if projection_df.empty:
        raise ModelValidationError("No projection data available for covenant analysis")

    keys = list(COVENANTS) if covenant == "all" else [covenant]
    result = {}
    headroom_cols = {}

    for key in keys:
        column, label, attr, is_minimum = COVENANTS[key]
        threshold = getattr(thresholds, attr)
        table = _covenant_table(projection_df, column, threshold, is_minimum)

        defined = table["headroom"].dropna()
        min_headroom = float(defined.min()) if len(defined) else np.nan
        breach_years = table.loc[table["breached"], "year"].tolist()

        if breach_years:
            status = "Breached in year(s): " + ", ".join(str(y) for y in breach_years)
        else:
            status = "Compliant all years"

        result[key] = {
            "label":        label,
            "threshold":    threshold,
            "table":        table,
            "min_headroom": min_headroom,
            "breach_years": breach_years,
            "status":       status,
        }
        headroom_cols[f"{label} Headroom"] = table.set_index("year")["headroom"]
        logger.debug("%s covenant %.2f: min headroom %.2f, %d breach year(s)",
                     label, threshold, min_headroom, len(breach_years))

    headroom_df = pd.DataFrame(headroom_cols)
    headroom_df.index.name = "Year"
    result["headroom_df"] = headroom_df
    return result
