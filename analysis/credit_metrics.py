"""
credit_metrics.py
-----------------
Credit analysis on a projected capital structure.

Computed metrics (by year):
  - DSCR  = EBITDA / Total Debt Service
  - ICR   = EBIT / Interest Expense
  - Net Leverage = (Gross Debt - Cash) / EBITDA
  - Covenant breach flags against CovenantThresholds
  - Implied Credit Rating Proxy (simplistic leverage mapping)

Zero debt service or zero interest means "no constraint": the ratio is
reported as +inf and excluded from min/avg aggregation, so an unlevered
year can never breach a coverage covenant.

Also produces the aggregate creditStats, breach counts, cash-flow
volatility and the 0-100 resilience score.
"""

import math
from typing import Iterable

import numpy as np
import pandas as pd

from model.params import CovenantThresholds


# Simplified leverage → implied credit rating mapping
LEVERAGE_RATING_MAP = [
    (1.0,  "A/A2"),
    (2.0,  "BBB+/Baa1"),
    (3.0,  "BBB/Baa2"),
    (3.5,  "BBB-/Baa3"),
    (4.5,  "BB+/Ba1"),
    (5.5,  "BB/Ba2"),
    (6.5,  "BB-/Ba3"),
    (7.5,  "B+/B1"),
    (9.0,  "B/B2"),
    (99.0, "B-/B3 or below"),
]

# ---------------------------------------------------------------------------
# Resilience score bands: (threshold, points), first match wins
# ---------------------------------------------------------------------------
DSCR_BANDS       = [(2.0, 35), (1.5, 28), (1.2, 20), (1.0, 12)]     # value >= threshold
DSCR_FLOOR       = 5
LEVERAGE_BANDS   = [(3.0, 25), (4.0, 20), (5.0, 15)]                # value <= threshold
LEVERAGE_FLOOR   = 10
BREACH_BANDS     = [(0, 20), (1, 15), (2, 10)]                      # count <= threshold
BREACH_FLOOR     = 5
VOLATILITY_BANDS = [(0.10, 10), (0.20, 8), (0.35, 5)]               # value <= threshold
VOLATILITY_FLOOR = 2
ICR_BANDS        = [(3.0, 10), (2.0, 8), (1.5, 5)]                  # value >= threshold
ICR_FLOOR        = 2

RESILIENCE_RATINGS = [(80, "Strong"), (60, "Adequate"), (40, "Weak"), (0, "Vulnerable")]


def _implied_rating(leverage: float) -> str:
    if leverage is None or np.isnan(leverage):
        return "N/A"
    for threshold, rating in LEVERAGE_RATING_MAP:
        if leverage <= threshold:
            return rating
    return "CCC"


# ---------------------------------------------------------------------------
# Per-year ratios
# ---------------------------------------------------------------------------

def dscr(ebitda: float, debt_service: float) -> float:
    return ebitda / debt_service if debt_service > 0 else np.inf


def icr(ebit: float, interest: float) -> float:
    return ebit / interest if interest > 0 else np.inf


def net_leverage(gross_debt: float, cash: float, ebitda: float) -> float:
    """Net Debt / EBITDA; +inf when EBITDA <= 0 against positive net debt."""
    net_debt = gross_debt - cash
    if ebitda > 0:
        return net_debt / ebitda
    return np.inf if net_debt > 0 else np.nan


def compute_credit_metrics(projection_df: pd.DataFrame,
                           thresholds: CovenantThresholds) -> pd.DataFrame:
    """
    Add DSCR / ICR / leverage and breach flags to a projection.

    Expects columns ebitda, debt_service, ebit, interest, ending_debt,
    cash_balance. Returns a new DataFrame; the input is not modified.
    """
    df = projection_df.copy()
    df["dscr"] = [dscr(e, ds) for e, ds in zip(df["ebitda"], df["debt_service"])]
    df["icr"] = [icr(e, i) for e, i in zip(df["ebit"], df["interest"])]
    df["leverage"] = [net_leverage(d, c, e) for d, c, e in
                      zip(df["ending_debt"], df["cash_balance"], df["ebitda"])]
    df["dscr_breach"] = df["dscr"] < thresholds.min_dscr
    df["icr_breach"] = df["icr"] < thresholds.target_icr
    df["leverage_breach"] = df["leverage"] > thresholds.max_leverage
    return df


# ---------------------------------------------------------------------------
# Aggregates
# ---------------------------------------------------------------------------

def _finite(values: Iterable[float]) -> list[float]:
    return [float(v) for v in values if v is not None and math.isfinite(v)]


def credit_stats(projection_df: pd.DataFrame) -> dict:
    """min/avg DSCR, min ICR, max leverage over finite values (nan if none)."""
    dscrs = _finite(projection_df["dscr"])
    icrs = _finite(projection_df["icr"])
    levs = _finite(projection_df["leverage"])
    return {
        "min_dscr":     min(dscrs) if dscrs else np.nan,
        "avg_dscr":     float(np.mean(dscrs)) if dscrs else np.nan,
        "min_icr":      min(icrs) if icrs else np.nan,
        "max_leverage": max(levs) if levs else np.nan,
    }


def count_breaches(projection_df: pd.DataFrame) -> dict:
    """Breach counts by covenant; one year may count against several."""
    dscr_n = int(projection_df["dscr_breach"].sum())
    icr_n = int(projection_df["icr_breach"].sum())
    lev_n = int(projection_df["leverage_breach"].sum())
    return {
        "dscr_breaches":     dscr_n,
        "icr_breaches":      icr_n,
        "leverage_breaches": lev_n,
        "total":             dscr_n + icr_n + lev_n,
    }


def cash_flow_volatility(values: Iterable[float]) -> float:
    """Coefficient of variation: population std / |mean| (0 if undefined)."""
    series = _finite(values)
    if len(series) < 2:
        return 0.0
    mean = float(np.mean(series))
    if mean == 0:
        return 0.0
    return float(np.std(series)) / abs(mean)


def debt_service_capacity(projection_df: pd.DataFrame) -> float:
    """Cumulative EBITDA / cumulative debt service over the horizon."""
    total_ds = float(projection_df["debt_service"].sum())
    if total_ds <= 0:
        return np.inf
    return float(projection_df["ebitda"].sum()) / total_ds


# ---------------------------------------------------------------------------
# Resilience score
# ---------------------------------------------------------------------------

def _band_at_least(value: float, bands: list, floor: int) -> int:
    for threshold, points in bands:
        if value >= threshold:
            return points
    return floor


def _band_at_most(value: float, bands: list, floor: int) -> int:
    for threshold, points in bands:
        if value <= threshold:
            return points
    return floor


def resilience_score(min_dscr: float, max_leverage: float, total_breaches: int,
                     volatility: float, min_icr: float) -> dict:
    """
    Composite 0-100 score: DSCR 35 / leverage 25 / breaches 20 /
    volatility 10 / ICR 10.

    An undefined DSCR or ICR (no debt service / no interest in any year)
    scores the top band; an undefined leverage (net cash) does too.
    """
    components = {
        "dscr":       (DSCR_BANDS[0][1] if np.isnan(min_dscr)
                       else _band_at_least(min_dscr, DSCR_BANDS, DSCR_FLOOR)),
        "leverage":   (LEVERAGE_BANDS[0][1] if np.isnan(max_leverage)
                       else _band_at_most(max_leverage, LEVERAGE_BANDS, LEVERAGE_FLOOR)),
        "breaches":   _band_at_most(total_breaches, BREACH_BANDS, BREACH_FLOOR),
        "volatility": _band_at_most(volatility, VOLATILITY_BANDS, VOLATILITY_FLOOR),
        "icr":        (ICR_BANDS[0][1] if np.isnan(min_icr)
                       else _band_at_least(min_icr, ICR_BANDS, ICR_FLOOR)),
    }
    score = int(min(100, max(0, sum(components.values()))))
    rating = next(label for floor, label in RESILIENCE_RATINGS if score >= floor)
    return {"score": score, "rating": rating, "components": components}


def score_projection(projection_df: pd.DataFrame) -> dict:
    """Resilience score straight from a projection with credit metrics."""
    stats = credit_stats(projection_df)
    breaches = count_breaches(projection_df)
    vol = cash_flow_volatility(projection_df["fcf"])
    return resilience_score(stats["min_dscr"], stats["max_leverage"],
                            breaches["total"], vol, stats["min_icr"])


# ---------------------------------------------------------------------------
# Dashboard table
# ---------------------------------------------------------------------------

def build_credit_dashboard(projection_df: pd.DataFrame,
                           thresholds: CovenantThresholds) -> dict:
    """
    Build display-ready credit metrics from a projection.

    Returns
    -------
    {
      "credit_df"  : year-by-year metrics DataFrame,
      "stats"      : credit_stats() dict,
      "breaches"   : count_breaches() dict,
      "resilience" : resilience_score() dict,
    }
    """
    df = projection_df
    if "dscr" not in df.columns:
        df = compute_credit_metrics(df, thresholds)

    rows = []
    for _, r in df.iterrows():
        rows.append({
            "Year":               int(r["year"]),
            "Revenue":            r["revenue"],
            "EBITDA":             r["ebitda"],
            "EBITDA Margin":      r["ebitda"] / r["revenue"] if r["revenue"] > 0 else 0,
            "Debt Service":       r["debt_service"],
            "Ending Debt":        r["ending_debt"],
            "Net Debt":           r["ending_debt"] - r["cash_balance"],
            "DSCR (x)":           r["dscr"],
            "ICR (x)":            r["icr"],
            "Net Leverage (x)":   r["leverage"],
            "Free Cash Flow":     r["fcf"],
            "DSCR Breach":        "YES" if r["dscr_breach"] else "NO",
            "ICR Breach":         "YES" if r["icr_breach"] else "NO",
            "Leverage Breach":    "YES" if r["leverage_breach"] else "NO",
            "Implied Rating":     _implied_rating(r["leverage"]),
        })

    return {
        "credit_df":  pd.DataFrame(rows),
        "stats":      credit_stats(df),
        "breaches":   count_breaches(df),
        "resilience": score_projection(df),
    }
