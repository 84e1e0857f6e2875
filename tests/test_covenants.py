"""
Unit Tests for Covenant Headroom
================================
"""

import numpy as np
import pytest

from model.params import CovenantThresholds, ModelValidationError
from analysis.covenants import analyze_covenant_headroom


class TestHeadroom:

    def test_dscr_headroom_sign(self, stressed_params, stressed_result):
        df = stressed_result["projection_df"]
        info = analyze_covenant_headroom(df, stressed_params.covenants, "dscr")["dscr"]
        table = info["table"]
        assert np.allclose(table["headroom"], df["dscr"] - 1.20)
        assert ((table["headroom"] < 0) == table["breached"]).all()
        assert info["breach_years"] == [2028, 2029]
        assert info["min_headroom"] < 0
        assert info["status"].startswith("Breached")

    def test_leverage_headroom_is_threshold_minus_value(self, base_params, base_result):
        df = base_result["projection_df"]
        info = analyze_covenant_headroom(df, base_params.covenants, "leverage")["leverage"]
        assert np.allclose(info["table"]["headroom"], 3.50 - df["leverage"], equal_nan=True)
        assert info["breach_years"] == []
        assert info["status"] == "Compliant all years"

    def test_all_covenants(self, base_params, base_result):
        result = analyze_covenant_headroom(base_result["projection_df"], base_params.covenants)
        assert {"dscr", "icr", "leverage", "headroom_df"} <= set(result)
        assert list(result["headroom_df"].columns) == [
            "DSCR Headroom", "ICR Headroom", "Net Leverage Headroom"]
        assert result["headroom_df"].index.name == "Year"

    def test_boundary_value_not_breached(self, stressed_result):
        df = stressed_result["projection_df"]
        exact = CovenantThresholds(min_dscr=float(df["dscr"].min()))
        info = analyze_covenant_headroom(df, exact, "dscr")["dscr"]
        assert info["breach_years"] == []
        assert info["min_headroom"] == pytest.approx(0.0)

    def test_no_debt_headroom_unlimited(self, no_debt_params):
        from model.projection import build_projection
        df = build_projection(no_debt_params)["projection_df"]
        info = analyze_covenant_headroom(df, no_debt_params.covenants, "dscr")["dscr"]
        assert np.isinf(info["min_headroom"])
        assert info["breach_years"] == []

    def test_unknown_covenant(self, base_params, base_result):
        with pytest.raises(ModelValidationError, match="Unknown covenant"):
            analyze_covenant_headroom(base_result["projection_df"], base_params.covenants, "fccr")

    def test_empty_projection(self, base_params, base_result):
        with pytest.raises(ModelValidationError):
            analyze_covenant_headroom(base_result["projection_df"].iloc[0:0], base_params.covenants)
