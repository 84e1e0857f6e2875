"""
Tests for Debt Capacity Sizing
==============================
Base case: year-1 EBITDA 84M, 12% / 5y level payment (factor ~0.2774),
1.20x DSCR covenant.
"""

import numpy as np
import pytest

from model.debt_schedule import payment_factor
from analysis.debt_capacity import (
    AGGRESSIVE_DSCR,
    SAFETY_BUFFER,
    alternative_structures,
    calculate_debt_capacity,
)


@pytest.fixture
def base_capacity(base_params):
    return calculate_debt_capacity(base_params)


class TestDebtCapacity:

    def test_sizes_debt_on_year1_ebitda(self, base_capacity, base_result):
        ebitda = base_result["projection_df"]["ebitda"].iloc[0]
        factor = payment_factor(0.12, 5)
        assert base_capacity["ebitda"] == pytest.approx(ebitda)
        assert base_capacity["payment_factor"] == pytest.approx(factor)
        assert base_capacity["max_debt"] == pytest.approx(ebitda / (factor * 1.20))
        assert base_capacity["safe_debt"] == pytest.approx(ebitda / (factor * 1.20 * SAFETY_BUFFER))
        assert base_capacity["aggressive_debt"] == pytest.approx(ebitda / (factor * AGGRESSIVE_DSCR))

    def test_capacities_are_ordered(self, base_capacity):
        assert base_capacity["safe_debt"] < base_capacity["max_debt"] < base_capacity["aggressive_debt"]

    def test_base_case_is_approved(self, base_capacity):
        assert base_capacity["recommendation"] == "APPROVE"
        assert base_capacity["risk_level"] == "LOW"
        assert base_capacity["excess_debt"] == 0.0
        assert base_capacity["utilization_pct"] == pytest.approx(
            120e6 / base_capacity["max_debt"] * 100)

    def test_between_safe_and_max_needs_conditions(self, stressed_params):
        cap = calculate_debt_capacity(stressed_params)
        assert cap["safe_debt"] < cap["current_debt"] <= cap["max_debt"]
        assert cap["recommendation"] == "APPROVE WITH CONDITIONS"
        assert cap["risk_level"] == "MEDIUM"

    def test_over_capacity_reduces_debt(self, base_params):
        cap = calculate_debt_capacity(base_params.with_overrides(opening_debt=300e6))
        assert cap["recommendation"] == "REDUCE DEBT"
        assert cap["risk_level"] == "HIGH"
        assert cap["excess_debt"] == pytest.approx(300e6 - cap["max_debt"])

    def test_negative_ebitda_has_no_capacity(self, base_params):
        cap = calculate_debt_capacity(base_params.with_overrides(cogs_pct=0.85))
        assert cap["ebitda"] < 0
        assert cap["max_debt"] == 0.0
        assert cap["recommendation"] == "REDUCE DEBT"
        assert np.isinf(cap["utilization_pct"])

    def test_no_debt(self, no_debt_params):
        cap = calculate_debt_capacity(no_debt_params)
        assert cap["current_debt"] == 0.0
        assert cap["utilization_pct"] == 0.0
        assert cap["recommendation"] == "APPROVE"

    def test_reuses_given_projection(self, base_params, base_result):
        cap = calculate_debt_capacity(base_params, base_result["projection_df"])
        assert cap["ebitda"] == pytest.approx(base_result["projection_df"]["ebitda"].iloc[0])


class TestAlternativeStructures:

    def test_rows_and_total_capital(self, base_params, base_capacity):
        df = alternative_structures(base_params, base_capacity)
        assert list(df.index) == ["Current Structure", "Reduce Debt to Safe Level",
                                  "Optimize Debt/Equity Mix", "Extend Loan Tenor"]
        total = base_params.total_debt + base_params.equity_contribution
        assert ((df["Debt"] + df["Equity"]) == pytest.approx(total)).all()

    def test_safe_level_hits_buffered_dscr(self, base_params, base_capacity):
        df = alternative_structures(base_params, base_capacity)
        assert df.loc["Reduce Debt to Safe Level", "DSCR"] == pytest.approx(1.20 * SAFETY_BUFFER)

    def test_target_leverage_mix(self, base_params, base_capacity):
        row = alternative_structures(base_params, base_capacity).loc["Optimize Debt/Equity Mix"]
        assert row["Leverage"] == pytest.approx(3.0)
        assert row["Debt"] == pytest.approx(3.0 * base_capacity["ebitda"])
        assert bool(row["Covenant Compliant"])

    def test_longer_tenor_lowers_debt_service(self, base_params, base_capacity):
        df = alternative_structures(base_params, base_capacity)
        assert df.loc["Extend Loan Tenor", "Tenor"] == 7
        assert df.loc["Extend Loan Tenor", "Annual DS"] < df.loc["Current Structure", "Annual DS"]
        assert df.loc["Extend Loan Tenor", "Debt"] == df.loc["Current Structure", "Debt"]
