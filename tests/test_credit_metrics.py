"""
Unit Tests for Credit Metrics
=============================
Ratios, breach flags, aggregates and the resilience score.
"""

import numpy as np
import pandas as pd
import pytest

from model.params import CovenantThresholds
from analysis.credit_metrics import (
    build_credit_dashboard,
    cash_flow_volatility,
    compute_credit_metrics,
    count_breaches,
    credit_stats,
    debt_service_capacity,
    dscr,
    icr,
    net_leverage,
    resilience_score,
)


def _frame(ebitda, debt_service, ebit=None, interest=None, ending_debt=None, cash=None):
    n = len(ebitda)
    return pd.DataFrame({
        "year":         list(range(2025, 2025 + n)),
        "revenue":      [e * 4 for e in ebitda],
        "ebitda":       ebitda,
        "debt_service": debt_service,
        "ebit":         ebit or ebitda,
        "interest":     interest or [ds / 2 for ds in debt_service],
        "ending_debt":  ending_debt or [100e6] * n,
        "cash_balance": cash or [0.0] * n,
        "fcf":          [e / 2 for e in ebitda],
    })


class TestRatios:

    def test_dscr_example(self):
        assert dscr(50e6, 40e6) == pytest.approx(1.25)

    def test_zero_debt_service_is_unlimited(self):
        assert np.isinf(dscr(50e6, 0.0))
        assert np.isinf(icr(10e6, 0.0))

    def test_net_leverage(self):
        assert net_leverage(100e6, 20e6, 40e6) == pytest.approx(2.0)

    def test_net_leverage_without_ebitda(self):
        assert np.isinf(net_leverage(100e6, 0.0, -5e6))
        assert np.isnan(net_leverage(0.0, 10e6, 0.0))

    def test_dscr_monotonic_in_debt_service(self):
        values = [dscr(50e6, ds) for ds in (45e6, 40e6, 30e6, 20e6)]
        assert values == sorted(values)
        assert len(set(values)) == len(values)


class TestBreaches:

    def test_boundary_is_compliant(self):
        """DSCR exactly at the covenant is not a breach."""
        df = compute_credit_metrics(_frame([50e6], [40e6]), CovenantThresholds(min_dscr=1.25))
        assert df["dscr"].iloc[0] == pytest.approx(1.25)
        assert not df["dscr_breach"].iloc[0]

    def test_below_threshold_breaches(self):
        df = compute_credit_metrics(_frame([50e6, 40e6], [40e6, 40e6]),
                                    CovenantThresholds(min_dscr=1.25))
        assert list(df["dscr_breach"]) == [False, True]

    def test_input_not_modified(self):
        frame = _frame([50e6], [40e6])
        compute_credit_metrics(frame, CovenantThresholds())
        assert "dscr" not in frame.columns

    def test_counts_each_covenant(self):
        frame = _frame([30e6, 60e6], [40e6, 40e6], interest=[20e6, 20e6],
                       ending_debt=[200e6, 100e6])
        df = compute_credit_metrics(frame, CovenantThresholds())
        counts = count_breaches(df)
        assert counts["dscr_breaches"] == 1
        assert counts["icr_breaches"] == 1
        assert counts["leverage_breaches"] == 1
        assert counts["total"] == 3


class TestAggregates:

    def test_stats_ignore_unlimited_coverage(self):
        df = compute_credit_metrics(_frame([50e6, 60e6], [0.0, 40e6]), CovenantThresholds())
        stats = credit_stats(df)
        assert stats["min_dscr"] == pytest.approx(1.5)
        assert stats["avg_dscr"] == pytest.approx(1.5)

    def test_stats_without_debt_are_nan(self):
        df = compute_credit_metrics(_frame([50e6], [0.0], interest=[0.0], ending_debt=[0.0],
                                           cash=[5e6]),
                                    CovenantThresholds())
        stats = credit_stats(df)
        assert np.isnan(stats["min_dscr"])
        assert np.isnan(stats["min_icr"])
        assert stats["max_leverage"] < 0

    def test_volatility(self):
        assert cash_flow_volatility([10, 10, 10]) == 0.0
        assert cash_flow_volatility([5]) == 0.0
        assert cash_flow_volatility([8, 12]) == pytest.approx(0.2)

    def test_debt_service_capacity(self):
        df = _frame([50e6, 70e6], [40e6, 40e6])
        assert debt_service_capacity(df) == pytest.approx(1.5)
        assert np.isinf(debt_service_capacity(_frame([50e6], [0.0])))


class TestResilienceScore:

    def test_top_score(self):
        result = resilience_score(2.5, 2.0, 0, 0.05, 4.0)
        assert result["score"] == 100
        assert result["rating"] == "Strong"

    def test_bottom_bands(self):
        result = resilience_score(0.9, 6.0, 3, 0.5, 1.0)
        assert result["components"] == {"dscr": 5, "leverage": 10, "breaches": 5,
                                        "volatility": 2, "icr": 2}
        assert result["score"] == 24
        assert result["rating"] == "Vulnerable"

    @pytest.mark.parametrize("min_dscr, points", [(2.0, 35), (1.5, 28), (1.2, 20), (1.0, 12), (0.99, 5)])
    def test_dscr_bands(self, min_dscr, points):
        assert resilience_score(min_dscr, 2.0, 0, 0.0, 4.0)["components"]["dscr"] == points

    @pytest.mark.parametrize("leverage, points", [(3.0, 25), (4.0, 20), (5.0, 15), (5.01, 10)])
    def test_leverage_bands(self, leverage, points):
        assert resilience_score(2.0, leverage, 0, 0.0, 4.0)["components"]["leverage"] == points

    def test_undefined_ratios_score_top_band(self):
        result = resilience_score(np.nan, np.nan, 0, 0.0, np.nan)
        assert result["score"] == 100

    def test_rating_thresholds(self):
        # 20 + 15 + 15 + 8 + 2 = 60
        assert resilience_score(1.2, 5.0, 1, 0.2, 1.0)["rating"] == "Adequate"
        # 12 + 10 + 10 + 5 + 5 = 42
        assert resilience_score(1.0, 6.0, 2, 0.3, 1.5)["rating"] == "Weak"


class TestDashboard:

    def test_credit_dashboard(self, stressed_result, stressed_params):
        dash = build_credit_dashboard(stressed_result["projection_df"], stressed_params.covenants)
        credit_df = dash["credit_df"]
        assert len(credit_df) == stressed_params.years
        assert set(credit_df["DSCR Breach"]) <= {"YES", "NO"}
        assert (credit_df["DSCR Breach"] == "YES").sum() == dash["breaches"]["dscr_breaches"]
        assert 0 <= dash["resilience"]["score"] <= 100
