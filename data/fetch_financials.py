"""
fetch_financials.py
-------------------
Pulls annual historical financials for a listed borrower via yfinance
and converts them to HistoricalYear records for assumption derivation.
Falls back to a bundled sample borrower if the live fetch fails.
All figures in currency units (not millions).
"""

import logging
from typing import Optional

import numpy as np
import pandas as pd
import yfinance as yf

from model.historical import HistoricalYear

logger = logging.getLogger(__name__)

MAX_HISTORY_YEARS = 4

# ---------------------------------------------------------------------------
# Bundled fallback: a mid-market manufacturer, three fiscal years
# ---------------------------------------------------------------------------
SAMPLE_COMPANY = "Sample Manufacturing Co."
SAMPLE_HISTORY = [
    {"year": 2022, "revenue": 245e6, "cogs": 130e6, "opex": 50e6, "ebitda": 65e6,
     "net_income": 26e6, "working_capital": 29e6, "capex": 9.5e6, "ppe": 92e6,
     "depreciation": 10e6, "interest": 13e6, "tax": 8.5e6, "total_debt": 125e6, "cash": 12e6},
    {"year": 2023, "revenue": 268e6, "cogs": 141e6, "opex": 54e6, "ebitda": 73e6,
     "net_income": 30e6, "working_capital": 32e6, "capex": 10.5e6, "ppe": 96e6,
     "depreciation": 11e6, "interest": 14e6, "tax": 10e6, "total_debt": 122e6, "cash": 15e6},
    {"year": 2024, "revenue": 290e6, "cogs": 151e6, "opex": 58e6, "ebitda": 81e6,
     "net_income": 35e6, "working_capital": 35e6, "capex": 11.5e6, "ppe": 100e6,
     "depreciation": 12e6, "interest": 14.5e6, "tax": 11.5e6, "total_debt": 120e6, "cash": 18e6},
]


def sample_history() -> list[HistoricalYear]:
    return [HistoricalYear.from_mapping(r) for r in SAMPLE_HISTORY]


def _value(df: pd.DataFrame, row: str, col) -> Optional[float]:
    """Statement value as float, None when the line item is missing."""
    if df is None or df.empty or row not in df.index or col not in df.columns:
        return None
    v = df.loc[row, col]
    if pd.isna(v):
        return None
    return float(v)


def _first(df: pd.DataFrame, rows: list[str], col) -> Optional[float]:
    for row in rows:
        v = _value(df, row, col)
        if v is not None:
            return v
    return None


def _parse_statements(fin: pd.DataFrame, bs: pd.DataFrame, cf: pd.DataFrame) -> list[HistoricalYear]:
    """One HistoricalYear per income-statement column (most recent first in yfinance)."""
    years = []
    for col in list(fin.columns[:MAX_HISTORY_YEARS]):
        revenue = _value(fin, "Total Revenue", col)
        if revenue is None or revenue <= 0:
            continue
        capex = _value(cf, "Capital Expenditure", col)
        interest = _value(fin, "Interest Expense", col)
        years.append(HistoricalYear(
            year=int(col.year),
            revenue=revenue,
            ebitda=_first(fin, ["EBITDA", "Normalized EBITDA"], col),
            net_income=_value(fin, "Net Income", col),
            working_capital=_value(bs, "Working Capital", col),
            capex=abs(capex) if capex is not None else None,
            ppe=_value(bs, "Net PPE", col),
            depreciation=_first(fin, ["Reconciled Depreciation",
                                      "Depreciation And Amortization In Income Statement"], col),
            cogs=_value(fin, "Cost Of Revenue", col),
            opex=_value(fin, "Operating Expense", col),
            interest=abs(interest) if interest is not None else None,
            tax=_value(fin, "Tax Provision", col),
            total_debt=_value(bs, "Total Debt", col),
            cash=_first(bs, ["Cash And Cash Equivalents",
                             "Cash Cash Equivalents And Short Term Investments"], col),
        ))
    return sorted(years, key=lambda h: h.year)


def fetch_historical_years(ticker: str, use_live: bool = True) -> tuple[str, list[HistoricalYear]]:
    """
    Fetch annual statements for `ticker`.

    Returns (company name, list of HistoricalYear oldest first). If
    use_live=False, or the fetch fails or returns fewer than two usable
    years, returns the bundled sample instead.
    """
    if not use_live:
        return SAMPLE_COMPANY, sample_history()

    try:
        ticker_obj = yf.Ticker(ticker)
        years = _parse_statements(ticker_obj.financials, ticker_obj.balance_sheet,
                                  ticker_obj.cashflow)
        if len(years) < 2:
            logger.warning("Only %d usable year(s) for %s; using sample history",
                           len(years), ticker)
            return SAMPLE_COMPANY, sample_history()
        info = ticker_obj.info or {}
        return info.get("longName", ticker), years

    except Exception as exc:  # network / upstream schema failures
        logger.warning("Live fetch for %s failed (%s); using sample history", ticker, exc)
        return SAMPLE_COMPANY, sample_history()


def historical_df(years: list[HistoricalYear]) -> pd.DataFrame:
    """Display table of the historical records."""
    rows = []
    for h in years:
        ebitda = h.reported_ebitda
        rows.append({
            "Year":          h.year,
            "Revenue":       h.revenue,
            "EBITDA":        ebitda if ebitda is not None else np.nan,
            "EBITDA Margin": ebitda / h.revenue if ebitda is not None and h.revenue else np.nan,
            "Net Income":    h.net_income if h.net_income is not None else np.nan,
            "CapEx":         h.capex if h.capex is not None else np.nan,
            "Total Debt":    h.total_debt if h.total_debt is not None else np.nan,
            "Cash":          h.cash if h.cash is not None else np.nan,
        })
    return pd.DataFrame(rows)
