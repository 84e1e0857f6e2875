"""
formatting.py
-------------
Number formatting helpers for Streamlit tables and charts.

Model values are in currency units; display values are in millions.
"""

import math

import numpy as np
import pandas as pd

MISSING = "-"


def _missing(val) -> bool:
    return val is None or (isinstance(val, (int, float, np.floating)) and np.isnan(val))


def fmt_millions(val, decimals: int = 1) -> str:
    if _missing(val):
        return MISSING
    return f"${val / 1e6:,.{decimals}f}M"


def fmt_pct(val, decimals: int = 1) -> str:
    if _missing(val):
        return MISSING
    return f"{val:.{decimals}%}"


def fmt_multiple(val, decimals: int = 2) -> str:
    if _missing(val):
        return MISSING
    if math.isinf(val):
        return "n/a (no debt)" if val > 0 else MISSING
    return f"{val:.{decimals}f}x"


def fmt_irr(val) -> str:
    if _missing(val):
        return "N/A"
    return f"{val:.1%}"


def fmt_moic(val) -> str:
    if _missing(val):
        return "N/A"
    return f"{val:.2f}x"


# ---------------------------------------------------------------------------
# Projection table
# ---------------------------------------------------------------------------

# (column, display label, kind)
PROJECTION_ROWS = [
    ("revenue",       "Revenue",         "money"),
    ("cogs",          "COGS",            "money"),
    ("opex",          "Operating Costs", "money"),
    ("ebitda",        "EBITDA",          "money"),
    ("depreciation",  "D&A",             "money"),
    ("ebit",          "EBIT",            "money"),
    ("interest",      "Interest",        "money"),
    ("tax",           "Tax",             "money"),
    ("net_income",    "Net Income",      "money"),
    ("capex",         "CapEx",           "money"),
    ("delta_wc",      "Change in NWC",   "money"),
    ("fcf",           "Free Cash Flow",  "money"),
    ("debt_service",  "Debt Service",    "money"),
    ("fcf_to_equity", "FCF to Equity",   "money"),
    ("ending_debt",   "Ending Debt",     "money"),
    ("cash_balance",  "Cash Balance",    "money"),
    ("dscr",          "DSCR",            "multiple"),
    ("icr",           "ICR",             "multiple"),
    ("leverage",      "Net Debt / EBITDA", "multiple"),
]


def format_projection_df(projection_df: pd.DataFrame) -> pd.DataFrame:
    """Transpose a projection for display: line items as rows, years as columns."""
    formatters = {"money": fmt_millions, "multiple": fmt_multiple}
    data = {}
    for _, r in projection_df.iterrows():
        data[str(int(r["year"]))] = {
            label: formatters[kind](r[col])
            for col, label, kind in PROJECTION_ROWS if col in projection_df.columns
        }
    return pd.DataFrame(data)


def format_money_df(df: pd.DataFrame, skip_cols: set = None) -> pd.DataFrame:
    """Format every numeric cell as $M except the columns in skip_cols."""
    skip_cols = skip_cols or set()
    out = df.copy().astype(object)
    for col in df.columns:
        if col in skip_cols:
            continue
        out[col] = [fmt_millions(v) if isinstance(v, (int, float, np.floating)) else v
                    for v in df[col]]
    return out


# ---------------------------------------------------------------------------
# Sensitivity tables
# ---------------------------------------------------------------------------

def style_sensitivity_table(df: pd.DataFrame, is_dscr: bool = True, covenant: float = 1.20):
    """
    Apply threshold coloring to a sensitivity DataFrame.
    Works on raw numeric DataFrames (None / NaN cells shown grey).
    Returns a pandas Styler object.
    """
    def dscr_color(val):
        if _missing(val) or not isinstance(val, (int, float, np.floating)):
            return "background-color: #444; color: #aaa"
        if val < 1.0:
            return "background-color: #c0392b; color: white"
        if val < covenant:
            return "background-color: #e74c3c; color: white"
        if val < covenant + 0.25:
            return "background-color: #f1c40f; color: black"
        if val < covenant + 0.75:
            return "background-color: #2ecc71; color: black"
        return "background-color: #16a085; color: white"

    def equity_color(val):
        if _missing(val) or not isinstance(val, (int, float, np.floating)):
            return "background-color: #444; color: #aaa"
        if val < 0:
            return "background-color: #c0392b; color: white"
        return "background-color: #2ecc71; color: black"

    color_fn = dscr_color if is_dscr else equity_color
    fmt_fn   = (lambda v: fmt_multiple(v, 2)) if is_dscr else fmt_millions

    display_df = df.map(lambda v: fmt_fn(v) if isinstance(v, (int, float, np.floating)) or v is None else v)
    return display_df.style.apply(
        lambda col: [color_fn(df.loc[idx, col.name]) for idx in df.index],
        axis=0
    )
