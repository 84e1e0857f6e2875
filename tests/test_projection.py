"""
Integration Tests for the Projection Engine
===========================================
Parameter validation, P&L identities and the end-to-end credit chain.
"""

import numpy as np
import pytest

from model.params import DebtTranche, ModelParams, ModelValidationError
from model.projection import build_projection


class TestParams:

    def test_with_overrides_leaves_original(self, base_params):
        shocked = base_params.with_overrides(growth=0.0)
        assert base_params.growth == 0.10
        assert shocked.growth == 0.0

    def test_wacc_must_exceed_terminal_growth(self):
        with pytest.raises(ModelValidationError, match="WACC"):
            ModelParams(wacc=0.03, terminal_growth=0.03).validate()

    def test_low_wacc_is_floored(self):
        params = ModelParams(wacc=0.005, terminal_growth=0.0).validate()
        assert params.wacc == pytest.approx(0.01)

    def test_interest_only_period_must_be_shorter_than_tenor(self):
        with pytest.raises(ModelValidationError):
            ModelParams(debt_tenor_years=3, interest_only_years=3).validate()

    def test_unknown_version_rejected(self):
        with pytest.raises(ModelValidationError, match="version"):
            ModelParams(version=99).validate()

    def test_bad_tranche_rejected(self):
        params = ModelParams(debt_tranches=[DebtTranche("Mezz", 20e6, 0.14, 6, seniority="junior")])
        with pytest.raises(ModelValidationError, match="seniority"):
            params.validate()

    def test_tranche_totals(self):
        params = ModelParams(debt_tranches=[DebtTranche("A", 60e6, 0.10, 5),
                                            DebtTranche("B", 40e6, 0.08, 5, "bullet")])
        assert params.total_debt == pytest.approx(100e6)
        assert params.blended_rate == pytest.approx(0.092)
        assert params.balloon_amount == pytest.approx(40e6)

    def test_actual_360_rate(self):
        params = ModelParams(day_count="Actual/360", interest_rate=0.09)
        assert params.tranches[0].rate == pytest.approx(0.09 * 365 / 360)

    def test_actual_360_applies_to_tranches(self):
        params = ModelParams(day_count="Actual/360",
                             debt_tranches=[DebtTranche("TL", 100e6, 0.09, 5)])
        assert params.tranches[0].rate == pytest.approx(0.09 * 365 / 360)
        assert params.debt_tranches[0].rate == pytest.approx(0.09)
        assert params.effective_blended_rate == pytest.approx(0.09 * 365 / 360)


class TestProjection:

    def test_pnl_identities(self, base_result):
        df = base_result["projection_df"]
        assert np.allclose(df["ebitda"], df["revenue"] - df["cogs"] - df["opex"])
        assert np.allclose(df["ebit"], df["ebitda"] - df["depreciation"])
        assert np.allclose(df["debt_service"], df["interest"] + df["principal"])
        assert np.allclose(df["dscr"], df["ebitda"] / df["debt_service"])

    def test_revenue_growth(self, base_result):
        revenue = base_result["projection_df"]["revenue"].tolist()
        assert revenue[0] == pytest.approx(300e6)
        assert revenue[1] == pytest.approx(330e6)

    def test_interest_only_first_year(self, base_result):
        first = base_result["projection_df"].iloc[0]
        assert first["interest"] == pytest.approx(120e6 * 0.12)
        assert first["principal"] == 0.0
        assert first["dscr"] == pytest.approx(84e6 / 14.4e6)

    def test_debt_repaid_at_maturity(self, base_result):
        assert base_result["projection_df"]["ending_debt"].iloc[-1] == pytest.approx(0.0, abs=1e-3)

    def test_cash_accumulates_fcf_to_equity(self, base_params, base_result):
        df = base_result["projection_df"]
        expected = base_params.opening_cash + df["fcf_to_equity"].cumsum()
        assert np.allclose(df["cash_balance"], expected)

    def test_equity_bridge(self, base_params, base_result):
        val = base_result["valuation"]
        assert val["equity_value"] == pytest.approx(val["enterprise_value"] - base_params.net_debt)

    def test_stressed_breaches(self, stressed_result):
        """Shrinking EBITDA against level debt service breaches DSCR in the last two years."""
        df = stressed_result["projection_df"]
        assert df.loc[df["dscr_breach"], "year"].tolist() == [2028, 2029]
        assert stressed_result["breaches"]["dscr_breaches"] == 2
        assert stressed_result["credit_stats"]["min_dscr"] < 1.20

    def test_no_debt(self, no_debt_params):
        result = build_projection(no_debt_params)
        df = result["projection_df"]
        assert np.isinf(df["dscr"]).all()
        assert np.isnan(result["credit_stats"]["min_dscr"])
        assert result["breaches"]["total"] == 0

    def test_inputs_not_mutated(self, base_params):
        before = base_params.with_overrides()
        build_projection(base_params)
        assert base_params == before

    def test_summary(self, base_result):
        summary = base_result["summary"]
        assert summary["Covenant Breaches"] == base_result["breaches"]["total"]
        assert summary["Projection"] == "5 years"

    def test_sanity_checks_attached(self, base_result):
        ids = [c["id"] for c in base_result["sanity_checks"]]
        # 3% terminal growth sits above the 2.5% long-run GDP assumption
        assert "HIGH_TERMINAL_GROWTH" in ids

    def test_mid_year_raises_value(self, base_params, base_result):
        mid = build_projection(base_params.with_overrides(mid_year_convention=True))
        assert mid["valuation"]["pv_of_projected_fcfs"] > \
            base_result["valuation"]["pv_of_projected_fcfs"]
        assert mid["valuation"]["pv_of_terminal_value"] == pytest.approx(
            base_result["valuation"]["pv_of_terminal_value"])
