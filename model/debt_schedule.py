"""
debt_schedule.py
----------------
Amortization and debt-service math for every tranche in the financing stack.

Key mechanics:
  - Level-payment amortization: payment factor r(1+r)^n / ((1+r)^n - 1),
    degenerating to 1/n at a zero rate
  - Interest-only period: principal forced to zero for years 1..k, the
    amortizing portion then spread over the remaining tenor - k years
  - Bullet: interest only, full principal at maturity
  - Balloon: balloon_pct of principal accrues interest and is repaid in
    the final period
  - Multiple tranches are scheduled independently and summed by year

Returns per-period dicts plus summary / per-tranche DataFrames.
"""

import logging
import math
from typing import Optional

import numpy as np
import pandas as pd

from model.params import DebtTranche, ModelValidationError, validate_debt_terms

logger = logging.getLogger(__name__)


# Balloon coverage → refinancing risk (upper bound, label)
REFINANCING_RISK_BANDS = [
    (0.8, "Critical"),
    (1.0, "High"),
    (1.5, "Medium"),
]


# ---------------------------------------------------------------------------
# Level-payment helpers
# ---------------------------------------------------------------------------

def payment_factor(rate: float, tenor: int) -> float:
    """Annual payment per unit of principal for a level-payment loan."""
    if tenor <= 0:
        raise ModelValidationError(f"Tenor must be positive, got {tenor}")
    if rate == 0:
        return 1.0 / tenor
    growth = (1 + rate) ** tenor
    return rate * growth / (growth - 1)


def annual_debt_service(principal: float, rate: float, tenor: int) -> float:
    """Level annual debt service; 0 when there is nothing to repay."""
    if principal <= 0 or tenor <= 0:
        return 0.0
    return principal * payment_factor(rate, tenor)


def total_interest(principal: float, rate: float, tenor: int) -> float:
    """Lifetime interest on a level-payment loan (DS x n - P)."""
    if principal <= 0 or tenor <= 0:
        return 0.0
    return annual_debt_service(principal, rate, tenor) * tenor - principal


def max_sustainable_debt(ebitda: float, target_dscr: float, rate: float, tenor: int) -> float:
    """Largest principal whose level debt service keeps DSCR at target_dscr."""
    if ebitda <= 0 or target_dscr <= 0 or tenor <= 0:
        return 0.0
    max_ds = ebitda / target_dscr
    if rate == 0:
        return max_ds * tenor
    return max_ds / payment_factor(rate, tenor)


# ---------------------------------------------------------------------------
# Single-loan schedule
# ---------------------------------------------------------------------------

def _schedule_records(principal: float, rate: float, tenor: int,
                      amortization_type: str, interest_only_years: int,
                      balloon_pct: float) -> list[dict]:
    """Period-by-period schedule for one loan (periods 1..tenor)."""
    bullet = (amortization_type == "bullet"
              or (amortization_type == "interest_only" and interest_only_years == 0))

    balance = principal
    if bullet:
        io_years, balloon = tenor, principal
    else:
        io_years, balloon = interest_only_years, principal * balloon_pct

    amortizing_balance = principal - balloon
    amort_years = tenor - io_years
    level_payment = (amortizing_balance * payment_factor(rate, amort_years)
                     if amort_years > 0 else 0.0)

    records = []
    for period in range(1, tenor + 1):
        interest = balance * rate
        if period == tenor:
            # Final period closes the loan exactly
            principal_paid = balance
        elif period <= io_years:
            principal_paid = 0.0
        else:
            principal_paid = level_payment - amortizing_balance * rate
            amortizing_balance -= principal_paid

        closing = balance - principal_paid
        records.append({
            "period":          period,
            "opening_balance": balance,
            "interest":        interest,
            "principal":       principal_paid,
            "total":           interest + principal_paid,
            "closing_balance": closing,
        })
        balance = closing
    return records


def build_amortization_schedule(principal: float, annual_rate: float, tenor_years: int,
                                amortization_type: str = "amortizing",
                                interest_only_years: int = 0,
                                balloon_pct: float = 0.0) -> pd.DataFrame:
    """
    Full amortization table for one loan.

    Returns
    -------
    pd.DataFrame with columns
      Period, Opening Balance, Interest, Principal, Debt Service, Closing Balance
    """
    validate_debt_terms(principal, annual_rate, tenor_years,
                        interest_only_years, balloon_pct, amortization_type)
    records = _schedule_records(principal, annual_rate, tenor_years,
                                amortization_type, interest_only_years, balloon_pct)
    return pd.DataFrame([{
        "Period":          r["period"],
        "Opening Balance": r["opening_balance"],
        "Interest":        r["interest"],
        "Principal":       r["principal"],
        "Debt Service":    r["total"],
        "Closing Balance": r["closing_balance"],
    } for r in records])


def compute_debt_service(principal: float, annual_rate: float, tenor_years: int,
                         amortization_type: str, interest_only_years: int,
                         period_index: int, balloon_pct: float = 0.0) -> dict:
    """
    Principal / interest / total debt service for one period (1-based).

    Periods after maturity return zeros.
    """
    validate_debt_terms(principal, annual_rate, tenor_years,
                        interest_only_years, balloon_pct, amortization_type)
    if period_index < 1:
        raise ModelValidationError(f"Period index is 1-based, got {period_index}")
    if period_index > tenor_years:
        return {"principal": 0.0, "interest": 0.0, "total": 0.0}

    rec = _schedule_records(principal, annual_rate, tenor_years, amortization_type,
                            interest_only_years, balloon_pct)[period_index - 1]
    return {"principal": rec["principal"], "interest": rec["interest"], "total": rec["total"]}


# ---------------------------------------------------------------------------
# Multi-tranche schedule
# ---------------------------------------------------------------------------

def blended_rate(tranches: list[DebtTranche]) -> float:
    """Principal-weighted average rate."""
    total = sum(t.principal for t in tranches)
    if total <= 0:
        return 0.0
    return sum(t.principal * t.rate for t in tranches) / total


def _tranche_labels(tranches: list[DebtTranche]) -> list[str]:
    seen = {}
    labels = []
    for t in tranches:
        seen[t.name] = seen.get(t.name, 0) + 1
        labels.append(t.name if seen[t.name] == 1 else f"{t.name} ({seen[t.name]})")
    return labels


def build_debt_schedule(tranches: list[DebtTranche], years: int) -> dict:
    """
    Parameters
    ----------
    tranches : list of DebtTranche (each validated here)
    years    : projection horizon; tranches maturing earlier pay zero afterwards

    Returns
    -------
    {
      "schedule"     : dict[year] -> totals + per-tranche detail
      "summary_df"   : pd.DataFrame  (year-by-year totals)
      "tranche_dfs"  : dict[label] -> pd.DataFrame  (per-tranche detail;
                       repeated names are suffixed " (2)", " (3)", ...)
    }
    """
    for t in tranches:
        t.validate()

    labels = _tranche_labels(tranches)
    tranche_periods = [
        _schedule_records(t.principal, t.rate, t.tenor_years, t.amortization_type,
                          t.interest_only_years, t.balloon_pct)
        for t in tranches
    ]

    schedule = {}
    tranche_records = [[] for _ in tranches]

    for yr in range(1, years + 1):
        opening = interest = principal = 0.0
        balances, interest_by, principal_by = {}, {}, {}

        for i, t in enumerate(tranches):
            label = labels[i]
            periods = tranche_periods[i]
            if yr <= len(periods):
                rec = periods[yr - 1]
            else:
                rec = {"opening_balance": 0.0, "interest": 0.0, "principal": 0.0,
                       "total": 0.0, "closing_balance": 0.0}

            opening   += rec["opening_balance"]
            interest  += rec["interest"]
            principal += rec["principal"]
            balances[label]     = rec["closing_balance"]
            interest_by[label]  = rec["interest"]
            principal_by[label] = rec["principal"]

            tranche_records[i].append({
                "Year":            yr,
                "Opening Balance": rec["opening_balance"],
                "Interest":        rec["interest"],
                "Principal":       rec["principal"],
                "Debt Service":    rec["total"],
                "Closing Balance": rec["closing_balance"],
                "Rate":            f"{t.rate:.2%}",
            })

        schedule[yr] = {
            "year":                   yr,
            "opening_debt":           opening,
            "interest":               interest,
            "principal":              principal,
            "debt_service":           interest + principal,
            "ending_debt":            max(0.0, opening - principal),
            "balances_by_tranche":    balances,
            "interest_by_tranche":    interest_by,
            "principal_by_tranche":   principal_by,
        }

    summary_df = pd.DataFrame([{
        "Year":            yr,
        "Opening Debt":    d["opening_debt"],
        "Interest":        d["interest"],
        "Principal":       d["principal"],
        "Debt Service":    d["debt_service"],
        "Ending Debt":     d["ending_debt"],
    } for yr, d in schedule.items()])

    logger.debug("Debt schedule built: %d tranches, %d years, blended rate %.4f",
                 len(tranches), years, blended_rate(tranches))

    return {
        "schedule":    schedule,
        "summary_df":  summary_df,
        "tranche_dfs": {label: pd.DataFrame(recs) for label, recs in zip(labels, tranche_records)},
    }


def get_debt_service_by_year(schedule: dict) -> list[float]:
    """Extract total debt service list from schedule dict."""
    return [schedule[yr]["debt_service"] for yr in sorted(schedule.keys())]


def get_ending_debt_by_year(schedule: dict) -> list[float]:
    """Extract ending total debt by year."""
    return [schedule[yr]["ending_debt"] for yr in sorted(schedule.keys())]


# ---------------------------------------------------------------------------
# Balloon / refinancing risk
# ---------------------------------------------------------------------------

def balloon_coverage(projected_cash: float, balloon_amount: float) -> float:
    """Projected cash at maturity / balloon; infinite when there is no balloon."""
    if balloon_amount <= 0:
        return np.inf
    return projected_cash / balloon_amount


def refinancing_risk(coverage: float, balloon_amount: Optional[float] = None) -> Optional[str]:
    """Band balloon coverage into Critical / High / Medium / Low (None if no balloon)."""
    if balloon_amount is not None and balloon_amount <= 0:
        return None
    if math.isinf(coverage) and coverage > 0:
        return None
    for upper, label in REFINANCING_RISK_BANDS:
        if coverage < upper:
            return label
    return "Low"


def balloon_analysis(balloon_amount: float, cash_at_maturity: float) -> dict:
    """Balloon size, coverage and risk band in one record."""
    coverage = balloon_coverage(cash_at_maturity, balloon_amount)
    return {
        "balloon_amount":   balloon_amount,
        "cash_at_maturity": cash_at_maturity,
        "coverage":         coverage,
        "risk":             refinancing_risk(coverage, balloon_amount),
        "shortfall":        max(0.0, balloon_amount - cash_at_maturity),
    }
