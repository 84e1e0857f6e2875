"""
sensitivity.py
--------------
Two-way sensitivity tables for valuation and debt capacity.

Table 1: WACC (rows) vs Terminal Growth (cols) → Equity Value
Table 2: Interest Rate (rows) vs Tenor (cols) → Minimum DSCR
Table 3: Revenue Growth (rows) vs COGS % (cols) → Minimum DSCR

Cells that cannot be computed (WACC <= g, invalid debt terms) hold NaN
in the DSCR tables and None in the valuation table.

Cells hold raw floats; utils.formatting.style_sensitivity_table colors them.
"""

import logging
from dataclasses import replace
from typing import Optional

import numpy as np
import pandas as pd

from model.params import ModelParams, ModelValidationError, default_params
from model.projection import build_projection
from model.valuation import sensitivity_matrix, sensitivity_range

logger = logging.getLogger(__name__)


def _min_dscr_point(base: ModelParams, **overrides) -> float:
    """Run the projection with overrides and return min DSCR (NaN if invalid)."""
    try:
        return build_projection(base.with_overrides(**overrides))["credit_stats"]["min_dscr"]
    except ModelValidationError as exc:
        logger.debug("Sensitivity point %s skipped: %s", overrides, exc)
        return np.nan


def wacc_vs_terminal_growth(
    base: Optional[ModelParams] = None,
    wacc_values: Optional[list[float]] = None,
    growth_values: Optional[list[float]] = None,
) -> pd.DataFrame:
    """
    Equity value grid. Rows = WACC, columns = terminal growth.

    Projected FCFF does not depend on WACC, so the projection is built once
    and only the DCF is repeated per cell.
    """
    base = base or default_params()
    wacc_values = wacc_values or sensitivity_range(base.wacc, steps=5, step=0.01)
    growth_values = growth_values or sensitivity_range(base.terminal_growth, steps=5, step=0.005)

    result = build_projection(base)
    fcfs = result["projection_df"]["fcf"].tolist()
    p = result["params"]
    return sensitivity_matrix(fcfs, p.net_debt, wacc_values, growth_values,
                              associates_value=p.associates_value,
                              minority_interest=p.minority_interest,
                              mid_year=p.mid_year_convention)


def rate_vs_tenor(
    base: Optional[ModelParams] = None,
    rates: list[float] = [0.08, 0.09, 0.10, 0.11, 0.12, 0.13, 0.14],
    tenors: list[int] = [3, 4, 5, 6, 7, 8, 10],
) -> pd.DataFrame:
    """
    Min DSCR sensitivity: rows = interest rate, cols = tenor (years).
    The same rate and tenor are applied to every tranche.
    """
    base = base or default_params()
    data = {}
    for tenor in tenors:
        col = {}
        for rate in rates:
            tranches = [replace(t, rate=rate, tenor_years=tenor) for t in base.debt_tranches]
            col[f"{rate:.1%}"] = _min_dscr_point(base, interest_rate=rate,
                                                 debt_tenor_years=tenor,
                                                 debt_tranches=tranches)
        data[f"{tenor}y"] = col

    df = pd.DataFrame(data)
    df.index.name = "Interest Rate"
    return df


def growth_vs_cogs(
    base: Optional[ModelParams] = None,
    growth_values: list[float] = [-0.05, -0.02, 0.00, 0.02, 0.05, 0.10],
    cogs_values: list[float] = [0.48, 0.50, 0.52, 0.55, 0.58, 0.60],
) -> pd.DataFrame:
    """Min DSCR sensitivity: rows = revenue growth, cols = COGS % of revenue."""
    base = base or default_params()
    data = {}
    for cogs in cogs_values:
        col = {}
        for g in growth_values:
            col[f"{g:+.0%}"] = _min_dscr_point(base, growth=g, cogs_pct=cogs)
        data[f"COGS {cogs:.0%}"] = col

    df = pd.DataFrame(data)
    df.index.name = "Revenue Growth"
    return df

