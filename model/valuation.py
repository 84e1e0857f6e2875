"""
valuation.py
------------
DCF valuation: cost of capital, terminal value, discounting and the
Enterprise Value -> Equity Value bridge.

Conventions:
  - End-of-period discounting, factor 1 / (1 + WACC)^n; with mid_year=True
    projected flows are discounted at n - 0.5 (terminal value stays at n)
  - WACC must be positive
  - Gordon growth terminal value rejected whenever WACC <= g
  - Equity Value = EV - Net Debt + Associates - Minority Interest,
    where Net Debt is already Debt - Cash (cash is never added twice)
  - Any non-finite intermediate value is fatal for the calculation

All monetary values in currency units.
"""

import logging
import math
from typing import Optional, Sequence

import numpy as np
import pandas as pd

from model.params import ModelValidationError

logger = logging.getLogger(__name__)


class ValuationError(ModelValidationError):
    """Raised when a valuation input or result is invalid or non-finite."""


def _require_finite(label: str, value: float) -> float:
    if value is None or not math.isfinite(value):
        raise ValuationError(f"{label} is not finite ({value}). Check inputs.")
    return value


# ---------------------------------------------------------------------------
# Cost of capital
# ---------------------------------------------------------------------------

def cost_of_equity(risk_free_rate: float, beta: float, market_risk_premium: float) -> float:
    """CAPM: Ke = Rf + beta x MRP."""
    if risk_free_rate < 0:
        raise ValuationError(f"Risk-free rate cannot be negative, got {risk_free_rate}")
    if market_risk_premium < 0:
        raise ValuationError(f"Market risk premium cannot be negative, got {market_risk_premium}")
    return _require_finite("Cost of equity", risk_free_rate + beta * market_risk_premium)


def after_tax_cost_of_debt(interest_rate: float, tax_rate: float) -> float:
    if not 0.0 <= tax_rate <= 1.0:
        raise ValuationError(f"Tax rate must be in [0, 1], got {tax_rate}")
    return interest_rate * (1 - tax_rate)


def calculate_wacc(equity_value: float, debt_value: float,
                   cost_of_equity: float, after_tax_cost_of_debt: float) -> float:
    """Market-value weighted average cost of capital (0 if there is no capital)."""
    total = equity_value + debt_value
    if total == 0:
        logger.warning("Total capital is zero; WACC reported as 0")
        return 0.0
    wacc = (equity_value / total) * cost_of_equity + (debt_value / total) * after_tax_cost_of_debt
    return _require_finite("WACC", wacc)


def unlever_beta(levered_beta: float, tax_rate: float, debt_to_equity: float) -> float:
    """Hamada: beta_u = beta_l / (1 + (1 - T) x D/E)."""
    if debt_to_equity <= 0:
        return levered_beta
    return levered_beta / (1 + (1 - tax_rate) * debt_to_equity)


def relever_beta(unlevered_beta: float, tax_rate: float, target_debt_to_equity: float) -> float:
    """Hamada: beta_l = beta_u x (1 + (1 - T) x D/E)."""
    if target_debt_to_equity <= 0:
        return unlevered_beta
    return unlevered_beta * (1 + (1 - tax_rate) * target_debt_to_equity)


# ---------------------------------------------------------------------------
# Terminal value & discounting
# ---------------------------------------------------------------------------

def terminal_value_perpetual(final_fcf: float, wacc: float, growth: float) -> float:
    """Gordon growth: FCF_n x (1 + g) / (WACC - g)."""
    if wacc <= growth:
        raise ValuationError(
            f"WACC ({wacc:.2%}) must exceed terminal growth ({growth:.2%}); "
            "Gordon growth value is undefined otherwise"
        )
    return _require_finite("Terminal value", final_fcf * (1 + growth) / (wacc - growth))


def terminal_value_multiple(final_ebitda: float, multiple: float) -> float:
    if multiple <= 0:
        raise ValuationError(f"Exit multiple must be positive, got {multiple}")
    return _require_finite("Terminal value", final_ebitda * multiple)


def discount_factor(rate: float, period: float) -> float:
    return 1.0 / (1.0 + rate) ** period


def _period(year: int, mid_year: bool) -> float:
    return year - 0.5 if mid_year else float(year)


def present_value(future_value: float, rate: float, periods: float) -> float:
    if rate <= -1:
        raise ValuationError(f"Discount rate must exceed -100%, got {rate}")
    return _require_finite("Present value", future_value * discount_factor(rate, periods))


def present_value_mid_year(future_value: float, rate: float, year: int) -> float:
    """Flow received evenly through the year, discounted from its midpoint."""
    return present_value(future_value, rate, _period(year, True))


def npv(cash_flows: Sequence[float], rate: float, mid_year: bool = False) -> float:
    """NPV of flows for years 1..N (end-of-period unless mid_year)."""
    if len(cash_flows) == 0:
        raise ValuationError("Cash flows cannot be empty")
    return sum(present_value(cf, rate, _period(t, mid_year))
               for t, cf in enumerate(cash_flows, start=1))


# ---------------------------------------------------------------------------
# DCF
# ---------------------------------------------------------------------------

def calculate_dcf(
    projected_fcfs: Sequence[float],
    wacc: float,
    terminal_growth_rate: float,
    net_debt: float,
    final_year_ebitda: Optional[float] = None,
    use_multiple: bool = False,
    exit_multiple: float = 8.0,
    associates_value: float = 0.0,
    minority_interest: float = 0.0,
    mid_year: bool = False,
) -> dict:
    """
    Discount projected FCFF and bridge Enterprise Value to Equity Value.

    Parameters
    ----------
    projected_fcfs       : FCFF for years 1..N
    wacc                 : discount rate
    terminal_growth_rate : perpetual growth (Gordon); ignored when use_multiple
    net_debt             : Debt - Cash at the valuation date
    final_year_ebitda    : required when use_multiple
    exit_multiple        : EV / EBITDA applied to final_year_ebitda
    mid_year             : discount projected flows at year - 0.5

    Returns
    -------
    dict with enterprise_value, equity_value, terminal_value,
    pv_of_projected_fcfs, pv_of_terminal_value, breakdown_by_year (DataFrame)
    """
    if len(projected_fcfs) == 0:
        raise ValuationError("At least one projected FCF is required")
    if wacc is None or not math.isfinite(wacc) or wacc <= 0:
        raise ValuationError(f"WACC must be positive, got {wacc}")
    for i, fcf in enumerate(projected_fcfs, start=1):
        _require_finite(f"Projected FCF (year {i})", fcf)

    n = len(projected_fcfs)
    breakdown = []
    for year, fcf in enumerate(projected_fcfs, start=1):
        period = _period(year, mid_year)
        factor = discount_factor(wacc, period)
        breakdown.append({
            "Year":            year,
            "Period":          period,
            "FCF":             fcf,
            "Discount Factor": factor,
            "Present Value":   fcf * factor,
        })
    pv_fcfs = _require_finite("PV of projected FCFs", sum(r["Present Value"] for r in breakdown))

    if use_multiple:
        if final_year_ebitda is None:
            raise ValuationError("final_year_ebitda is required for the exit-multiple method")
        tv = terminal_value_multiple(final_year_ebitda, exit_multiple)
    else:
        tv = terminal_value_perpetual(projected_fcfs[-1], wacc, terminal_growth_rate)

    pv_tv = _require_finite("PV of terminal value", tv * discount_factor(wacc, n))
    ev = _require_finite("Enterprise value", pv_fcfs + pv_tv)
    equity = _require_finite("Equity value", ev - net_debt + associates_value - minority_interest)

    if equity < 0:
        logger.warning("Equity value is negative (%.0f); net debt exceeds enterprise value", equity)

    return {
        "enterprise_value":     ev,
        "equity_value":         equity,
        "terminal_value":       tv,
        "pv_of_projected_fcfs": pv_fcfs,
        "pv_of_terminal_value": pv_tv,
        "net_debt":             net_debt,
        "tv_share_of_ev":       pv_tv / ev if ev else np.nan,
        "breakdown_by_year":    pd.DataFrame(breakdown),
    }


def implied_multiples(enterprise_value: float, equity_value: float, revenue: float,
                      ebitda: float, ebit: float, net_income: float,
                      shares_outstanding: Optional[float] = None) -> dict:
    """EV and equity multiples implied by a valuation (nan where undefined)."""
    return {
        "ev_to_revenue":   enterprise_value / revenue if revenue > 0 else np.nan,
        "ev_to_ebitda":    enterprise_value / ebitda if ebitda > 0 else np.nan,
        "ev_to_ebit":      enterprise_value / ebit if ebit > 0 else np.nan,
        "pe_ratio":        equity_value / net_income if net_income > 0 else np.nan,
        "price_per_share": (equity_value / shares_outstanding
                            if shares_outstanding and shares_outstanding > 0 else np.nan),
    }


# ---------------------------------------------------------------------------
# Sanity checks
# ---------------------------------------------------------------------------

LONG_TERM_GDP_GROWTH = 0.025
TV_SHARE_CRITICAL = 0.85
TV_SHARE_WARNING = 0.75
EV_EBITDA_RANGE = (3.0, 15.0)
WACC_RANGE = (0.06, 0.25)


def _check(check_id: str, severity: str, title: str, message: str, value: float) -> dict:
    return {"id": check_id, "severity": severity, "title": title,
            "message": message, "value": value}


def valuation_sanity_checks(dcf: dict, terminal_growth: float, wacc: float,
                            ev_to_ebitda: Optional[float] = None,
                            long_term_gdp_growth: float = LONG_TERM_GDP_GROWTH) -> list[dict]:
    """
    Flag valuations that need a second look.

    Parameters
    ----------
    dcf             : calculate_dcf() result
    terminal_growth : perpetual growth used for the terminal value
    wacc            : discount rate used
    ev_to_ebitda    : implied EV / EBITDA multiple, if known

    Returns
    -------
    list of {"id", "severity" ("critical" | "warning"), "title", "message", "value"};
    empty when nothing is flagged
    """
    checks = []
    equity = dcf["equity_value"]
    pv_fcfs = dcf["pv_of_projected_fcfs"]
    pv_tv = dcf["pv_of_terminal_value"]

    if equity <= 0:
        checks.append(_check("NEGATIVE_EQUITY", "critical", "Negative Equity Value",
                             f"Equity value is {equity / 1e6:,.1f}M; debt exceeds enterprise value",
                             equity))
    if pv_fcfs < 0:
        checks.append(_check("NEGATIVE_FCF", "critical", "Negative Projected Cash Flows",
                             f"PV of projected FCF is {pv_fcfs / 1e6:,.1f}M; the business burns "
                             "cash over the explicit forecast", pv_fcfs))

    total = abs(pv_fcfs) + pv_tv
    tv_share = pv_tv / total if total > 0 else 0.0
    if tv_share > TV_SHARE_CRITICAL:
        checks.append(_check("TV_DOMINATES", "critical", "Terminal Value Dominates Valuation",
                             f"Terminal value is {tv_share:.0%} of total value", tv_share))
    elif tv_share > TV_SHARE_WARNING:
        checks.append(_check("TV_HIGH", "warning", "High Terminal Value Weight",
                             f"Terminal value is {tv_share:.0%} of total value; 50-75% is typical",
                             tv_share))

    if terminal_growth > long_term_gdp_growth:
        checks.append(_check("HIGH_TERMINAL_GROWTH", "warning", "Terminal Growth Exceeds GDP",
                             f"Terminal growth of {terminal_growth:.1%} exceeds long-term GDP "
                             f"growth of {long_term_gdp_growth:.1%}", terminal_growth))

    if ev_to_ebitda is not None and math.isfinite(ev_to_ebitda):
        low, high = EV_EBITDA_RANGE
        if ev_to_ebitda < low:
            checks.append(_check("LOW_EBITDA_MULTIPLE", "warning", "Low Implied EV/EBITDA",
                                 f"Implied EV/EBITDA of {ev_to_ebitda:.1f}x is below typical ranges",
                                 ev_to_ebitda))
        elif ev_to_ebitda > high:
            checks.append(_check("HIGH_EBITDA_MULTIPLE", "warning", "High Implied EV/EBITDA",
                                 f"Implied EV/EBITDA of {ev_to_ebitda:.1f}x is above typical ranges",
                                 ev_to_ebitda))

    low, high = WACC_RANGE
    if wacc < low:
        checks.append(_check("LOW_WACC", "warning", "Low Discount Rate",
                             f"WACC of {wacc:.2%} appears low", wacc))
    elif wacc > high:
        checks.append(_check("HIGH_WACC", "warning", "High Discount Rate",
                             f"WACC of {wacc:.2%} will heavily discount future cash flows", wacc))

    for c in checks:
        logger.debug("Valuation check %s: %s", c["id"], c["message"])
    return checks


# ---------------------------------------------------------------------------
# Sensitivity
# ---------------------------------------------------------------------------

def sensitivity_range(base: float, steps: int = 5, step: float = 0.01) -> list[float]:
    """Symmetric grid of `steps` values centred on base."""
    half = steps // 2
    return [round(base + (i - half) * step, 10) for i in range(steps)]


def sensitivity_matrix(
    projected_fcfs: Sequence[float],
    net_debt: float,
    wacc_range: Sequence[float],
    growth_range: Sequence[float],
    associates_value: float = 0.0,
    minority_interest: float = 0.0,
    mid_year: bool = False,
) -> pd.DataFrame:
    """
    Equity value for each (WACC, terminal growth) pair.

    Rows = WACC, columns = terminal growth. Cells where WACC <= g, or
    where the valuation fails, hold None instead of a number.
    """
    data = {}
    for g in growth_range:
        col = {}
        for w in wacc_range:
            if w <= g:
                col[w] = None
                continue
            try:
                col[w] = calculate_dcf(projected_fcfs, w, g, net_debt,
                                       associates_value=associates_value,
                                       minority_interest=minority_interest,
                                       mid_year=mid_year)["equity_value"]
            except ModelValidationError as exc:
                logger.debug("Sensitivity cell wacc=%.4f g=%.4f skipped: %s", w, g, exc)
                col[w] = None
        data[g] = col

    df = pd.DataFrame(data, dtype=object)
    df.index.name = "WACC"
    df.columns.name = "Terminal Growth"
    return df
