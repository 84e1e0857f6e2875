"""
restructuring.py
----------------
Restructuring advisor for a stressed credit.

Step 1  Diagnose: per-year Pass / Tight / BREACH against each covenant and
        heuristic root causes.
Step 2  Generate options, each sized against the MINIMUM EBITDA year:
          A  principal reduction   (haircut capped at 35%)
          B  tenor extension       (1-year steps up to max_tenor_years)
          C  rate reduction        (50bp steps down to min_acceptable_rate)
          D  equity injection      (capped at 25% of principal)
          E  combination           (+2y tenor, rate x 0.875, 8% equity)
Step 3  Recalculate DSCR for every year under each option's terms and
        report before / after impacts.
Step 4  Recommend E (or the last option generated) with conditions
        precedent and monitoring requirements.

Options that would not strictly lower principal (A, D, E), debt service
(C, E) or extend tenor (B) are never returned. E never shortens the
current tenor.
"""

import logging
import math
from dataclasses import dataclass
from typing import Optional

import numpy as np
import pandas as pd

from model.params import CovenantThresholds, ModelParams, ModelValidationError, validate_debt_terms
from model.debt_schedule import annual_debt_service, payment_factor, total_interest

logger = logging.getLogger(__name__)

PRINCIPAL_HAIRCUT_CAP = 0.35
EQUITY_INJECTION_CAP = 0.25
RATE_STEP = 0.005
TIGHT_BAND = 0.05

COMBINATION_TENOR_EXTENSION = 2
COMBINATION_MAX_TENOR = 8
COMBINATION_RATE_MULTIPLIER = 0.875
COMBINATION_RATE_FLOOR = 0.09
COMBINATION_EQUITY_PCT = 0.08


@dataclass
class RestructuringTerms:
    """Current deal terms the options are measured against."""
    principal: float
    rate: float
    tenor_years: int

    @classmethod
    def from_params(cls, params: ModelParams) -> "RestructuringTerms":
        tranches = params.tranches
        tenor = max((t.tenor_years for t in tranches), default=params.debt_tenor_years)
        return cls(principal=params.total_debt, rate=params.effective_blended_rate,
                   tenor_years=tenor)

    @property
    def annual_debt_service(self) -> float:
        return annual_debt_service(self.principal, self.rate, self.tenor_years)

    @property
    def total_interest(self) -> float:
        return total_interest(self.principal, self.rate, self.tenor_years)


@dataclass(frozen=True)
class RestructuringOption:
    id: str
    name: str
    structure: str
    principal: float
    rate: float
    tenor_years: int
    annual_debt_service: float
    min_dscr: float
    breach_years: int
    total_interest: float
    lender_npv: float             # % of current principal
    acceptance: str
    impacts: tuple                # ({metric, before, after, change}, ...)
    pros: str
    cons: str

    @property
    def impacts_df(self) -> pd.DataFrame:
        return pd.DataFrame(list(self.impacts), columns=["metric", "before", "after", "change"])


# ---------------------------------------------------------------------------
# Diagnosis
# ---------------------------------------------------------------------------

def _status_at_least(value: float, threshold: float) -> str:
    if value >= threshold:
        return "Pass"
    return "Tight" if value >= threshold * (1 - TIGHT_BAND) else "BREACH"


def _status_at_most(value: float, threshold: float) -> str:
    if np.isnan(value) or value <= threshold:
        return "Pass"
    return "Tight" if value <= threshold * (1 + TIGHT_BAND) else "BREACH"


def _root_causes(projection_df: pd.DataFrame, breached: list[bool]) -> list[str]:
    causes = []
    revenue = projection_df["revenue"].tolist()
    if len(revenue) >= 2:
        growth = [(cur - prev) / prev * 100 for prev, cur in zip(revenue, revenue[1:]) if prev]
        avg_growth = float(np.mean(growth)) if growth else 0.0
        if avg_growth < 0:
            causes.append("Revenue declining while debt service remains fixed")
        elif avg_growth < 2:
            causes.append("Weak revenue growth insufficient to support debt service")

    first = projection_df.iloc[0]
    if first["ebitda"] > 0 and first["interest"] > 0:
        if first["interest"] / first["ebitda"] > 0.4:
            causes.append("High interest rate consuming excessive EBITDA")

    if sum(breached) > len(breached) / 2:
        causes.append("Structural weakness: fundamental mismatch between cash "
                      "generation and debt obligations")

    return causes or ["Deal structure requires optimization for improved covenant compliance"]


def diagnose(projection_df: pd.DataFrame, thresholds: CovenantThresholds) -> dict:
    """
    Returns
    -------
    {
      "timeline_df"  : per-year ratios and Pass / Tight / BREACH status,
      "breach_years" : list of projection years with any covenant breach,
      "root_causes"  : list of str,
      "has_breaches" : bool,
    }
    """
    rows, breached = [], []
    for _, r in projection_df.iterrows():
        dscr, icr, lev = r["dscr"], r["icr"], r["leverage"]
        is_breach = bool(dscr < thresholds.min_dscr or icr < thresholds.target_icr
                         or lev > thresholds.max_leverage)
        breached.append(is_breach)
        rows.append({
            "year":            int(r["year"]),
            "dscr":            dscr,
            "dscr_status":     _status_at_least(dscr, thresholds.min_dscr),
            "icr":             icr,
            "icr_status":      _status_at_least(icr, thresholds.target_icr),
            "leverage":        lev,
            "leverage_status": _status_at_most(lev, thresholds.max_leverage),
            "breached":        is_breach,
        })

    timeline_df = pd.DataFrame(rows)
    breach_years = [row["year"] for row in rows if row["breached"]]
    return {
        "timeline_df":  timeline_df,
        "breach_years": breach_years,
        "root_causes":  _root_causes(projection_df, breached),
        "has_breaches": bool(breach_years),
    }


# ---------------------------------------------------------------------------
# Recalculation under new terms
# ---------------------------------------------------------------------------

def _nth(values: list[float], i: int) -> float:
    return values[i] if len(values) > i else np.nan


def recalculate_metrics(ebitdas: list[float], principal: float, rate: float,
                        tenor: int, min_dscr: float) -> dict:
    """DSCR for each year's EBITDA against the level debt service of new terms."""
    ds = annual_debt_service(principal, rate, tenor)
    dscrs = [e / ds if ds > 0 else np.inf for e in ebitdas]
    return {
        "debt_service": ds,
        "dscrs":        dscrs,
        "min_dscr":     min(dscrs) if dscrs else np.nan,
        "breach_years": sum(1 for d in dscrs if d < min_dscr),
        "year3_dscr":   _nth(dscrs, 2),
        "year5_dscr":   _nth(dscrs, 4),
    }


def _pct_change(before: float, after: float) -> float:
    return (after - before) / before * 100 if before else np.nan


class _Baseline:
    """Current-terms figures shared by every option."""

    def __init__(self, projection_df: pd.DataFrame, terms: RestructuringTerms,
                 thresholds: CovenantThresholds):
        self.terms = terms
        self.min_dscr_covenant = thresholds.min_dscr
        self.ebitdas = [float(e) for e in projection_df["ebitda"]]
        self.min_ebitda = min(self.ebitdas)
        dscrs = projection_df["dscr"].tolist()
        self.year3_dscr = _nth(dscrs, 2)
        self.year5_dscr = _nth(dscrs, 4)
        self.min_dscr = float(min(dscrs))
        self.breach_years = int((projection_df["dscr"] < thresholds.min_dscr).sum())
        self.debt_service = terms.annual_debt_service
        self.total_interest = terms.total_interest

    def recalc(self, principal: float, rate: float, tenor: int) -> dict:
        return recalculate_metrics(self.ebitdas, principal, rate, tenor, self.min_dscr_covenant)

    def resolution(self, after: int) -> str:
        if after == 0:
            return "Resolved"
        return "Partial" if after < self.breach_years else "Not Resolved"

    def standard_impacts(self, res: dict, resolution: str) -> list[dict]:
        return [
            {"metric": "Annual Debt Service", "before": self.debt_service,
             "after": res["debt_service"], "change": _pct_change(self.debt_service, res["debt_service"])},
            {"metric": "Year 3 DSCR", "before": self.year3_dscr,
             "after": res["year3_dscr"], "change": res["year3_dscr"] - self.year3_dscr},
            {"metric": "Year 5 DSCR", "before": self.year5_dscr,
             "after": res["year5_dscr"], "change": res["year5_dscr"] - self.year5_dscr},
            {"metric": "Breach Years", "before": self.breach_years,
             "after": res["breach_years"], "change": resolution},
        ]


def _target_principal(base: _Baseline, target_min_dscr: float) -> float:
    """Principal whose level debt service hits the target at minimum EBITDA."""
    if base.min_ebitda <= 0:
        return 0.0
    max_ds = base.min_ebitda / target_min_dscr
    return max_ds / payment_factor(base.terms.rate, base.terms.tenor_years)


def _millions(value: float) -> str:
    return f"{value / 1e6:,.1f}M"


# ---------------------------------------------------------------------------
# Options
# ---------------------------------------------------------------------------

def _principal_reduction(base: _Baseline, target_min_dscr: float) -> Optional[RestructuringOption]:
    t = base.terms
    needed = max(0.0, t.principal - _target_principal(base, target_min_dscr))
    reduction = min(needed, t.principal * PRINCIPAL_HAIRCUT_CAP)
    new_principal = t.principal - reduction
    if not new_principal < t.principal:
        return None

    res = base.recalc(new_principal, t.rate, t.tenor_years)
    haircut = reduction / t.principal * 100
    return RestructuringOption(
        id="A",
        name="Option A: Principal Reduction",
        structure=f"Reduce principal from {_millions(t.principal)} to "
                  f"{_millions(new_principal)} ({haircut:.0f}% haircut)",
        principal=new_principal,
        rate=t.rate,
        tenor_years=t.tenor_years,
        annual_debt_service=res["debt_service"],
        min_dscr=res["min_dscr"],
        breach_years=res["breach_years"],
        total_interest=total_interest(new_principal, t.rate, t.tenor_years),
        lender_npv=-haircut,
        acceptance="LOW (15-25%)" if haircut > 25 else "MEDIUM (40-55%)",
        impacts=tuple(base.standard_impacts(res, base.resolution(res["breach_years"]))),
        pros="Immediately resolves all breaches",
        cons=f"Lender writes off {_millions(reduction)}, unlikely to be accepted",
    )


def _tenor_extension(base: _Baseline, target_min_dscr: float,
                     max_tenor_years: int) -> Optional[RestructuringOption]:
    t = base.terms
    new_tenor = None
    for tenor in range(t.tenor_years + 1, max_tenor_years + 1):
        res = base.recalc(t.principal, t.rate, tenor)
        if res["min_dscr"] >= target_min_dscr and res["breach_years"] == 0:
            new_tenor = tenor
            break
    if new_tenor is None:
        new_tenor = min(t.tenor_years + 3, max_tenor_years)
    if new_tenor <= t.tenor_years:
        return None

    res = base.recalc(t.principal, t.rate, new_tenor)
    new_ti = total_interest(t.principal, t.rate, new_tenor)
    impacts = base.standard_impacts(res, base.resolution(res["breach_years"]))
    impacts.insert(3, {"metric": "Total Interest Paid", "before": base.total_interest,
                       "after": new_ti, "change": _pct_change(base.total_interest, new_ti)})
    return RestructuringOption(
        id="B",
        name="Option B: Tenor Extension",
        structure=f"Extend from {t.tenor_years} years to {new_tenor} years",
        principal=t.principal,
        rate=t.rate,
        tenor_years=new_tenor,
        annual_debt_service=res["debt_service"],
        min_dscr=res["min_dscr"],
        breach_years=res["breach_years"],
        total_interest=new_ti,
        lender_npv=(new_ti - base.total_interest) / t.principal * 100,
        acceptance="MEDIUM-HIGH (60-75%)",
        impacts=tuple(impacts),
        pros="No principal loss for lender, resolves breaches",
        cons=f"Borrower pays {_millions(new_ti - base.total_interest)} additional interest over life",
    )


def _rate_reduction(base: _Baseline, target_min_dscr: float,
                    min_acceptable_rate: float) -> Optional[RestructuringOption]:
    t = base.terms
    new_rate = None
    step = 1
    while round(t.rate - step * RATE_STEP, 6) >= min_acceptable_rate:
        candidate = round(t.rate - step * RATE_STEP, 6)
        res = base.recalc(t.principal, candidate, t.tenor_years)
        if res["min_dscr"] >= target_min_dscr and res["breach_years"] == 0:
            new_rate = candidate
            break
        step += 1
    if new_rate is None:
        new_rate = max(t.rate * 0.75, min_acceptable_rate)
    if new_rate <= 0 or new_rate >= t.rate:
        return None

    res = base.recalc(t.principal, new_rate, t.tenor_years)
    if not res["debt_service"] < base.debt_service:
        logger.warning("Rate reduction to %.4f did not lower debt service; option dropped", new_rate)
        return None

    bps = (t.rate - new_rate) * 10000
    cons = f"{bps:.0f}bps yield sacrifice"
    if res["breach_years"] > 0:
        cons = "Does not fully resolve breaches, " + cons
    return RestructuringOption(
        id="C",
        name="Option C: Rate Reduction",
        structure=f"Reduce rate from {t.rate:.1%} to {new_rate:.1%}",
        principal=t.principal,
        rate=new_rate,
        tenor_years=t.tenor_years,
        annual_debt_service=res["debt_service"],
        min_dscr=res["min_dscr"],
        breach_years=res["breach_years"],
        total_interest=total_interest(t.principal, new_rate, t.tenor_years),
        lender_npv=-((t.rate - new_rate) * 100),
        acceptance="MEDIUM (40-55%)" if res["breach_years"] == 0 else "MEDIUM-LOW (30-40%)",
        impacts=tuple(base.standard_impacts(res, base.resolution(res["breach_years"]))),
        pros="Preserves principal, improves coverage",
        cons=cons,
    )


def _equity_injection(base: _Baseline, target_min_dscr: float) -> Optional[RestructuringOption]:
    t = base.terms
    needed = max(0.0, t.principal - _target_principal(base, target_min_dscr))
    equity = min(needed, t.principal * EQUITY_INJECTION_CAP)
    new_principal = t.principal - equity
    if not new_principal < t.principal:
        return None

    res = base.recalc(new_principal, t.rate, t.tenor_years)
    after = res["breach_years"]
    resolution = "Resolved" if after == 0 else ("Mostly Resolved" if after <= 1 else "Partial")
    impacts = [{"metric": "Principal", "before": t.principal, "after": new_principal,
                "change": -(equity / t.principal * 100)}]
    impacts += base.standard_impacts(res, resolution)
    return RestructuringOption(
        id="D",
        name="Option D: Equity Injection",
        structure=f"Sponsor injects {_millions(equity)} to pay down principal",
        principal=new_principal,
        rate=t.rate,
        tenor_years=t.tenor_years,
        annual_debt_service=res["debt_service"],
        min_dscr=res["min_dscr"],
        breach_years=after,
        total_interest=total_interest(new_principal, t.rate, t.tenor_years),
        lender_npv=-(equity / t.principal * 5),
        acceptance="HIGH (75-85%) if sponsor willing",
        impacts=tuple(impacts),
        pros="Preserves lender economics, demonstrates sponsor commitment",
        cons="Requires sponsor capital availability" + (", some years still tight" if after else ""),
    )


def _combination(base: _Baseline) -> Optional[RestructuringOption]:
    t = base.terms
    new_tenor = max(t.tenor_years,
                    min(t.tenor_years + COMBINATION_TENOR_EXTENSION, COMBINATION_MAX_TENOR))
    new_rate = min(t.rate, max(t.rate * COMBINATION_RATE_MULTIPLIER, COMBINATION_RATE_FLOOR))
    equity = t.principal * COMBINATION_EQUITY_PCT
    new_principal = t.principal - equity
    if not new_principal < t.principal:
        return None

    res = base.recalc(new_principal, new_rate, new_tenor)
    if not res["debt_service"] < base.debt_service:
        logger.warning("Combination terms did not lower debt service; option dropped")
        return None
    new_ti = total_interest(new_principal, new_rate, new_tenor)
    std = base.standard_impacts(res, base.resolution(res["breach_years"]))
    impacts = [
        {"metric": "Principal", "before": t.principal, "after": new_principal,
         "change": -(equity / t.principal * 100)},
        {"metric": "Rate", "before": t.rate, "after": new_rate,
         "change": -((t.rate - new_rate) / t.rate * 100)},
        {"metric": "Tenor", "before": t.tenor_years, "after": new_tenor,
         "change": new_tenor - t.tenor_years},
        *std[:3],
        {"metric": "Min DSCR (all years)", "before": base.min_dscr, "after": res["min_dscr"],
         "change": res["min_dscr"] - base.min_dscr},
        std[3],
        {"metric": "Total Interest", "before": base.total_interest, "after": new_ti,
         "change": _pct_change(base.total_interest, new_ti)},
    ]
    return RestructuringOption(
        id="E",
        name="Option E: Combination",
        structure=((f"Extend tenor: {t.tenor_years} years to {new_tenor} years\n"
                    if new_tenor > t.tenor_years else f"Keep tenor: {t.tenor_years} years\n")
                   + f"Reduce rate: {t.rate:.1%} to {new_rate:.1%}\n"
                   f"Equity injection: {_millions(equity)} prepayment"),
        principal=new_principal,
        rate=new_rate,
        tenor_years=new_tenor,
        annual_debt_service=res["debt_service"],
        min_dscr=res["min_dscr"],
        breach_years=res["breach_years"],
        total_interest=new_ti,
        lender_npv=(new_ti - base.total_interest) / t.principal * 100,
        acceptance="HIGH (70-80%)",
        impacts=tuple(impacts),
        pros="Resolves all breaches with cushion, balanced concessions, NPV-neutral for lender",
        cons="Requires coordination of multiple modifications",
    )


# ---------------------------------------------------------------------------
# Recommendation
# ---------------------------------------------------------------------------

def _recommend(options: list[RestructuringOption], diagnosis: dict,
               terms: RestructuringTerms, thresholds: CovenantThresholds) -> Optional[dict]:
    if not options:
        return None
    rec = next((o for o in options if o.id == "E"), options[-1])
    declining = any("declining" in c for c in diagnosis["root_causes"])
    npv_sign = "+" if rec.lender_npv >= 0 else ""

    conditions = []
    equity = terms.principal - rec.principal
    if equity > 0 and rec.id in ("D", "E"):
        conditions.append(f"Sponsor equity injection of {_millions(equity)} within 30 days of signing")
    conditions += [
        "Updated 5-year financial projections reflecting restructured terms",
        "Quarterly covenant reporting (upgraded from semi-annual)",
        "50% excess cash flow sweep applied to principal prepayment",
    ]

    return {
        "option": rec,
        "rationale": [
            f"Covenant compliance: {'achieves full compliance' if rec.breach_years == 0 else 'significantly improves compliance'}"
            f" with min {rec.min_dscr:.2f}x DSCR across all years",
            f"Lender economics: NPV {'positive' if rec.lender_npv >= 0 else 'impact manageable'}"
            f" ({npv_sign}{rec.lender_npv:.0f}%), preserving relationship value",
            f"Borrower viability: debt service aligned with {'challenged' if declining else 'current'}"
            " revenue trajectory",
            "Execution risk: balanced concessions maximize lender approval likelihood",
        ],
        "conditions_precedent": conditions,
        "enhanced_monitoring": [
            "Monthly management calls for first 6 months post-restructuring",
            f"DSCR early warning trigger at {rec.min_dscr * 1.07:.2f}x",
            f"DSCR default trigger remains at {thresholds.min_dscr:.2f}x",
            "Quarterly site visits for first year",
        ],
        "alternative": ("If the sponsor cannot inject equity, pursue Option B (Tenor Extension) "
                        "with enhanced cash sweep provisions"),
    }


# ---------------------------------------------------------------------------
# Main entry points
# ---------------------------------------------------------------------------

def restructure_deal(
    projection_df: pd.DataFrame,
    terms: RestructuringTerms,
    thresholds: CovenantThresholds,
    target_min_dscr: float = 1.30,
    include_equity_option: bool = True,
    max_tenor_years: int = 10,
    min_acceptable_rate: float = 0.08,
) -> dict:
    """
    Diagnose a projection and generate restructuring options.

    Parameters
    ----------
    projection_df         : projection with credit metrics (build_projection output)
    terms                 : current principal / rate / tenor
    thresholds            : covenant levels used for breach counting
    target_min_dscr       : DSCR each option is sized to at minimum EBITDA
    include_equity_option : generate Option D
    max_tenor_years       : upper bound for Option B's search
    min_acceptable_rate   : floor for Option C's search

    Returns
    -------
    {
      "diagnosis"      : diagnose() dict,
      "options"        : list[RestructuringOption],
      "recommendation" : dict (None when no option could be generated),
      "options_df"     : comparison table, current terms first,
    }
    """
    if projection_df.empty:
        raise ModelValidationError("No projection data available for restructuring analysis")
    if not math.isfinite(target_min_dscr) or target_min_dscr <= 0:
        raise ModelValidationError(f"Target DSCR must be positive, got {target_min_dscr}")
    validate_debt_terms(terms.principal, terms.rate, terms.tenor_years)

    diagnosis = diagnose(projection_df, thresholds)
    base = _Baseline(projection_df, terms, thresholds)
    logger.debug("Restructuring: min EBITDA %.0f, current DS %.0f, %d breach years",
                 base.min_ebitda, base.debt_service, base.breach_years)

    candidates = [
        ("A", _principal_reduction(base, target_min_dscr)),
        ("B", _tenor_extension(base, target_min_dscr, max_tenor_years)),
        ("C", _rate_reduction(base, target_min_dscr, min_acceptable_rate)),
    ]
    if include_equity_option:
        candidates.append(("D", _equity_injection(base, target_min_dscr)))
    candidates.append(("E", _combination(base)))

    options = []
    for option_id, option in candidates:
        if option is None:
            logger.info("Restructuring option %s excluded: no improvement on current terms", option_id)
        else:
            options.append(option)

    rows = [{
        "Option":           "Current",
        "Principal":        terms.principal,
        "Rate":             terms.rate,
        "Tenor":            terms.tenor_years,
        "Annual DS":        base.debt_service,
        "Min DSCR":         base.min_dscr,
        "Breach Years":     base.breach_years,
        "Total Interest":   base.total_interest,
        "Lender NPV (%)":   0.0,
        "Acceptance":       "-",
    }]
    for o in options:
        rows.append({
            "Option":           o.id,
            "Principal":        o.principal,
            "Rate":             o.rate,
            "Tenor":            o.tenor_years,
            "Annual DS":        o.annual_debt_service,
            "Min DSCR":         o.min_dscr,
            "Breach Years":     o.breach_years,
            "Total Interest":   o.total_interest,
            "Lender NPV (%)":   o.lender_npv,
            "Acceptance":       o.acceptance.split(" ")[0],
        })

    return {
        "diagnosis":      diagnosis,
        "options":        options,
        "recommendation": _recommend(options, diagnosis, terms, thresholds),
        "options_df":     pd.DataFrame(rows).set_index("Option"),
    }


def calculate_optimal_debt(projection_df: pd.DataFrame, terms: RestructuringTerms,
                           target_dscr: float) -> dict:
    """Largest principal that keeps year-1 DSCR at target_dscr under current rate / tenor."""
    if target_dscr is None or not math.isfinite(target_dscr) or target_dscr <= 0:
        raise ModelValidationError(f"Target DSCR must be a positive number, got {target_dscr}")
    if projection_df.empty:
        raise ModelValidationError("No projection data available")
    ebitda = float(projection_df["ebitda"].iloc[0])
    if ebitda <= 0:
        raise ModelValidationError("Cannot calculate optimal debt: EBITDA is zero or negative")

    factor = payment_factor(terms.rate, terms.tenor_years)
    max_ds = ebitda / target_dscr
    optimal = max_ds / factor
    current_ds = terms.principal * factor
    return {
        "ebitda":           ebitda,
        "target_dscr":      target_dscr,
        "max_debt_service": max_ds,
        "optimal_debt":     optimal,
        "current_debt":     terms.principal,
        "current_dscr":     ebitda / current_ds if current_ds > 0 else np.inf,
        "headroom":         optimal - terms.principal,
    }
