"""
monte_carlo.py
--------------
Monte Carlo simulation on the key credit drivers:
  1. Revenue growth   (normally distributed around base case)
  2. COGS % of revenue (negatively correlated with growth:
     weaker demand → less pricing power → margin compression)
  3. Interest rate    (independent shock, floored above zero)

Each path re-runs the full projection → distribution of minimum DSCR,
equity value and covenant breaches.

Returns:
  - Raw DataFrame of simulation results
  - Percentile summary DataFrame
  - Probability of covenant stress events
"""

import logging
from dataclasses import replace
from typing import Optional

import numpy as np
import pandas as pd

from model.params import ModelParams, ModelValidationError, default_params
from model.projection import build_projection

logger = logging.getLogger(__name__)

MIN_SIMULATED_RATE = 0.005


def run_monte_carlo(
    n_sims: int = 2_000,
    seed: int = 42,
    growth_std: float = 0.03,        # +/- ~3% annual growth
    cogs_std: float = 0.015,         # +/- ~1.5pts of revenue
    rate_std: float = 0.01,          # +/- ~100bp
    growth_cogs_corr: float = -0.5,
    base_params: Optional[ModelParams] = None,
) -> dict:
    """
    Run Monte Carlo simulation.

    Parameters
    ----------
    n_sims           : number of simulation paths
    seed             : random seed for reproducibility
    growth_std       : std dev of simulated revenue growth
    cogs_std         : std dev of COGS % shock
    rate_std         : std dev of interest rate shock
    growth_cogs_corr : correlation between growth and COGS % shocks
    base_params      : base case to perturb (default: default_params())

    Returns
    -------
    {
      "raw_df"        : pd.DataFrame  (one row per valid path)
      "percentile_df" : pd.DataFrame  (percentile summary)
      "probability_df": pd.DataFrame  (probability of stress events)
      "n_valid_sims"  : int
    }
    """
    if n_sims <= 0:
        raise ModelValidationError(f"n_sims must be positive, got {n_sims}")

    rng = np.random.default_rng(seed)
    base = base_params or default_params()
    covenants = base.covenants

    corr_matrix = np.array([[1.0, growth_cogs_corr, 0.0],
                            [growth_cogs_corr, 1.0, 0.0],
                            [0.0, 0.0, 1.0]])
    L = np.linalg.cholesky(corr_matrix)

    # shape (n_sims, 3) → [growth_shock, cogs_shock, rate_shock]
    z = rng.standard_normal((n_sims, 3))
    correlated = z @ L.T

    sim_growth = base.growth + correlated[:, 0] * growth_std
    sim_cogs = np.clip(base.cogs_pct + correlated[:, 1] * cogs_std, 0.0, 1.0)
    rate_shocks = correlated[:, 2] * rate_std

    records = []
    for i in range(n_sims):
        shock = float(rate_shocks[i])
        rate = max(MIN_SIMULATED_RATE, base.interest_rate + shock)
        tranches = [replace(t, rate=max(MIN_SIMULATED_RATE, t.rate + shock))
                    for t in base.debt_tranches]
        params = base.with_overrides(growth=float(sim_growth[i]),
                                     cogs_pct=float(sim_cogs[i]),
                                     interest_rate=rate,
                                     debt_tranches=tranches)
        try:
            result = build_projection(params)
        except ModelValidationError as exc:
            logger.debug("Simulation path %d skipped: %s", i, exc)
            continue

        stats = result["credit_stats"]
        breaches = result["breaches"]
        records.append({
            "Min DSCR":          stats["min_dscr"],
            "Max Net Leverage":  stats["max_leverage"],
            "Equity Value":      result["valuation"]["equity_value"],
            "IRR":               result["irr"],
            "DSCR Breaches":     breaches["dscr_breaches"],
            "Total Breaches":    breaches["total"],
            "Revenue Growth":    float(sim_growth[i]),
            "COGS %":            float(sim_cogs[i]),
            "Interest Rate":     rate,
        })

    raw_df = pd.DataFrame(records)
    if raw_df.empty:
        raise RuntimeError(
            f"All {n_sims} simulation paths failed; the base parameters are likely "
            "invalid (e.g. WACC <= terminal growth or debt terms out of range)."
        )
    logger.info("Monte Carlo: %d of %d paths valid", len(raw_df), n_sims)

    # ---- Percentile Summary ----
    percentiles = [5, 10, 25, 50, 75, 90, 95]
    perc_rows = []
    for p in percentiles:
        perc_rows.append({
            "Percentile":       f"{p}th",
            "Min DSCR":         float(np.nanpercentile(raw_df["Min DSCR"], p)),
            "Equity Value":     float(np.percentile(raw_df["Equity Value"], p)),
            "Max Net Leverage": float(np.nanpercentile(raw_df["Max Net Leverage"], p)),
        })
    percentile_df = pd.DataFrame(perc_rows)

    # ---- Probability Table ----
    min_dscr = raw_df["Min DSCR"]
    prob_rows = [
        {"Event": f"DSCR below covenant ({covenants.min_dscr:.2f}x)",
         "Probability": float((raw_df["DSCR Breaches"] > 0).mean())},
        {"Event": "DSCR below 1.00x",
         "Probability": float((min_dscr < 1.0).mean())},
        {"Event": "Any covenant breach",
         "Probability": float((raw_df["Total Breaches"] > 0).mean())},
        {"Event": "Negative equity value",
         "Probability": float((raw_df["Equity Value"] < 0).mean())},
    ]
    probability_df = pd.DataFrame(prob_rows)

    return {
        "raw_df":         raw_df,
        "percentile_df":  percentile_df,
        "probability_df": probability_df,
        "n_valid_sims":   len(raw_df),
    }
