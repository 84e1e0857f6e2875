"""
projection.py
-------------
Master orchestrator: runs the full credit model for one ModelParams and
returns every output in a single result dict.

Per year (1..N):
  - P&L: revenue, COGS, opex, EBITDA, D&A (on PP&E), EBIT, interest, tax
  - Debt: scheduled principal / interest from the tranche stack
  - Cash flow: FCFF = EBIT(1 - t) + D&A - CapEx - dWC, FCFE = FCFF - DS
  - Credit: DSCR, ICR, Net Debt / EBITDA and covenant breaches

Then:
  - DCF valuation of FCFF (Gordon growth or exit multiple)
  - Sponsor returns: IRR and MOIC on the equity contribution
  - creditStats, breach counts, cash at maturity

The projection is a pure function of its parameters: it is always
rebuilt from scratch, never updated incrementally.
"""

import logging

import numpy as np
import pandas as pd
from scipy.optimize import brentq

from model.params import ModelParams
from model.debt_schedule import build_debt_schedule
from model.valuation import calculate_dcf, valuation_sanity_checks
from analysis.credit_metrics import compute_credit_metrics, credit_stats, count_breaches

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# IRR / MOIC helpers
# ---------------------------------------------------------------------------

def _irr(cash_flows: list[float]) -> float:
    """Compute IRR given a list of cash flows (index 0 = t=0 outflow)."""
    def npv(r):
        return sum(cf / (1 + r) ** t for t, cf in enumerate(cash_flows))
    try:
        return brentq(npv, -0.999, 100.0, xtol=1e-8, maxiter=500)
    except (ValueError, RuntimeError):
        return np.nan


def _moic(invested: float, proceeds: float) -> float:
    if invested <= 0:
        return np.nan
    return proceeds / invested


# ---------------------------------------------------------------------------
# Main projection
# ---------------------------------------------------------------------------

def build_projection(params: ModelParams) -> dict:
    """
    Run the full projection.

    Returns
    -------
    dict with keys:
      params, projection_df, debt_schedule, valuation, sanity_checks, credit_stats,
      breaches, irr, moic, cash_at_maturity, summary
    """
    params = params.validate()
    n = params.years
    tranches = params.tranches
    debt_sched = build_debt_schedule(tranches, n)
    schedule = debt_sched["schedule"]

    revenue = params.base_revenue
    ppe = params.base_revenue * params.capex_pct
    prev_wc = params.base_revenue * params.wc_pct_of_rev
    cash = params.opening_cash

    rows = []
    for yr in range(1, n + 1):
        if yr > 1:
            revenue *= 1 + params.growth

        # ---- P&L ----
        cogs   = revenue * params.cogs_pct
        opex   = revenue * params.opex_pct
        ebitda = revenue - cogs - opex
        capex  = revenue * params.capex_pct
        da     = ppe * params.da_pct_of_ppe
        ppe    = ppe + capex - da
        ebit   = ebitda - da

        # ---- Debt ----
        debt = schedule[yr]
        interest = debt["interest"]
        principal = debt["principal"]
        debt_service = debt["debt_service"]

        ebt = ebit - interest
        tax = max(0.0, ebt) * params.tax_rate
        net_income = ebt - tax

        # ---- Cash flow ----
        wc = revenue * params.wc_pct_of_rev
        delta_wc = wc - prev_wc
        prev_wc = wc
        nopat = ebit * (1 - params.tax_rate)
        fcf = nopat + da - capex - delta_wc
        fcf_to_equity = fcf - debt_service
        cash += fcf_to_equity

        rows.append({
            "year":            params.start_year + yr - 1,
            "period":          yr,
            "revenue":         revenue,
            "cogs":            cogs,
            "opex":            opex,
            "ebitda":          ebitda,
            "depreciation":    da,
            "ebit":            ebit,
            "interest":        interest,
            "principal":       principal,
            "debt_service":    debt_service,
            "opening_debt":    debt["opening_debt"],
            "ending_debt":     debt["ending_debt"],
            "ebt":             ebt,
            "tax":             tax,
            "net_income":      net_income,
            "capex":           capex,
            "working_capital": wc,
            "delta_wc":        delta_wc,
            "fcf":             fcf,
            "fcf_to_equity":   fcf_to_equity,
            "cash_balance":    cash,
        })

    projection_df = compute_credit_metrics(pd.DataFrame(rows), params.covenants)

    # ---- VALUATION ----
    valuation = calculate_dcf(
        projected_fcfs=projection_df["fcf"].tolist(),
        wacc=params.wacc,
        terminal_growth_rate=params.terminal_growth,
        net_debt=params.net_debt,
        final_year_ebitda=float(projection_df["ebitda"].iloc[-1]),
        use_multiple=params.use_exit_multiple,
        exit_multiple=params.exit_multiple,
        associates_value=params.associates_value,
        minority_interest=params.minority_interest,
        mid_year=params.mid_year_convention,
    )
    breakdown = valuation["breakdown_by_year"]
    projection_df["discount_factor"] = breakdown["Discount Factor"].values
    projection_df["pv_fcf"] = breakdown["Present Value"].values
    year1_ebitda = float(projection_df["ebitda"].iloc[0])
    checks = valuation_sanity_checks(
        valuation, params.terminal_growth, params.wacc,
        ev_to_ebitda=valuation["enterprise_value"] / year1_ebitda if year1_ebitda > 0 else None,
    )

    # ---- RETURNS ----
    equity_value = valuation["equity_value"]
    fcfe = projection_df["fcf_to_equity"].tolist()
    if params.equity_contribution > 0:
        cash_flows = [-params.equity_contribution] + fcfe[:-1] + [fcfe[-1] + equity_value]
        irr = _irr(cash_flows)
    else:
        irr = np.nan
    moic = _moic(params.equity_contribution,
                 equity_value + sum(max(0.0, f) for f in fcfe))

    # ---- CREDIT ----
    stats = credit_stats(projection_df)
    breaches = count_breaches(projection_df)
    tenor = max((t.tenor_years for t in tranches), default=n)
    cash_at_maturity = float(projection_df["cash_balance"].iloc[min(tenor, n) - 1])

    logger.debug("Projection built: %d years, min DSCR %.2f, %d breaches, EV %.0f",
                 n, stats["min_dscr"], breaches["total"], valuation["enterprise_value"])

    summary = {
        "Enterprise Value":  valuation["enterprise_value"],
        "Equity Value":      equity_value,
        "Min DSCR":          stats["min_dscr"],
        "Avg DSCR":          stats["avg_dscr"],
        "Min ICR":           stats["min_icr"],
        "Max Net Leverage":  stats["max_leverage"],
        "Covenant Breaches": breaches["total"],
        "IRR":               f"{irr:.1%}" if not np.isnan(irr) else "N/A",
        "MOIC":              f"{moic:.2f}x" if not np.isnan(moic) else "N/A",
        "Projection":        f"{n} years",
    }

    return {
        "params":           params,
        "projection_df":    projection_df,
        "debt_schedule":    debt_sched,
        "valuation":        valuation,
        "sanity_checks":    checks,
        "credit_stats":     stats,
        "breaches":         breaches,
        "irr":              irr,
        "moic":             moic,
        "cash_at_maturity": cash_at_maturity,
        "summary":          summary,
    }
