"""
Unit Tests for the Debt Schedule
================================
Level-payment math, interest-only / bullet / balloon structures,
multi-tranche aggregation and refinancing-risk bands.
"""

import numpy as np
import pytest

from model.params import DebtTranche, ModelValidationError, validate_debt_terms
from model.debt_schedule import (
    annual_debt_service,
    balloon_analysis,
    build_amortization_schedule,
    build_debt_schedule,
    compute_debt_service,
    get_debt_service_by_year,
    get_ending_debt_by_year,
    max_sustainable_debt,
    payment_factor,
    refinancing_risk,
    total_interest,
)


class TestLevelPayment:

    def test_payment_factor_example(self):
        """10% over 5 years → 0.1 x 1.1^5 / (1.1^5 - 1)."""
        assert payment_factor(0.10, 5) == pytest.approx(0.2637974808, rel=1e-9)

    def test_payment_factor_zero_rate(self):
        assert payment_factor(0.0, 4) == pytest.approx(0.25)

    def test_payment_factor_rejects_zero_tenor(self):
        with pytest.raises(ModelValidationError):
            payment_factor(0.10, 0)

    def test_example_loan_first_period(self):
        """100M at 10% over 5 years: DS ≈ 26.38M, interest 10M, principal ≈ 16.38M."""
        ds = compute_debt_service(100e6, 0.10, 5, "amortizing", 0, 1)
        assert ds["total"] == pytest.approx(26_379_748.08, abs=1.0)
        assert ds["interest"] == pytest.approx(10_000_000.0)
        assert ds["principal"] == pytest.approx(16_379_748.08, abs=1.0)

    def test_principal_sums_to_loan(self):
        df = build_amortization_schedule(100e6, 0.10, 5)
        assert df["Principal"].sum() == pytest.approx(100e6)
        assert df["Closing Balance"].iloc[-1] == pytest.approx(0.0, abs=1e-6)

    def test_total_debt_service_equals_principal_plus_interest(self):
        p, r, n = 75e6, 0.085, 7
        assert annual_debt_service(p, r, n) * n == pytest.approx(p + total_interest(p, r, n))

    def test_level_payment_is_constant(self):
        df = build_amortization_schedule(50e6, 0.07, 6)
        assert np.allclose(df["Debt Service"], df["Debt Service"].iloc[0])

    def test_period_after_maturity_is_zero(self):
        ds = compute_debt_service(10e6, 0.05, 3, "amortizing", 0, 4)
        assert ds == {"principal": 0.0, "interest": 0.0, "total": 0.0}

    def test_period_index_is_one_based(self):
        with pytest.raises(ModelValidationError):
            compute_debt_service(10e6, 0.05, 3, "amortizing", 0, 0)

    def test_max_sustainable_debt_round_trip(self):
        principal = max_sustainable_debt(40e6, 1.25, 0.09, 6)
        assert annual_debt_service(principal, 0.09, 6) == pytest.approx(40e6 / 1.25)


class TestStructures:

    def test_bullet_repays_everything_at_maturity(self):
        for period in range(1, 5):
            ds = compute_debt_service(100e6, 0.08, 5, "bullet", 0, period)
            assert ds["principal"] == 0.0
            assert ds["interest"] == pytest.approx(8e6)
        final = compute_debt_service(100e6, 0.08, 5, "bullet", 0, 5)
        assert final["principal"] == pytest.approx(100e6)

    def test_interest_only_type_without_period_is_bullet(self):
        io = build_amortization_schedule(20e6, 0.06, 4, "interest_only", 0)
        bullet = build_amortization_schedule(20e6, 0.06, 4, "bullet", 0)
        assert np.allclose(io["Principal"], bullet["Principal"])

    def test_interest_only_period_then_amortizes(self):
        df = build_amortization_schedule(60e6, 0.10, 5, "amortizing", interest_only_years=2)
        assert list(df["Principal"].iloc[:2]) == [0.0, 0.0]
        expected_ds = 60e6 * payment_factor(0.10, 3)
        assert np.allclose(df["Debt Service"].iloc[2:], expected_ds)
        assert df["Principal"].sum() == pytest.approx(60e6)

    def test_balloon_paid_in_final_period(self):
        df = build_amortization_schedule(100e6, 0.08, 5, balloon_pct=0.30)
        assert df["Principal"].sum() == pytest.approx(100e6)
        assert df["Principal"].iloc[-1] > 30e6
        assert df["Closing Balance"].iloc[-2] > 30e6

    def test_balloon_amount_property(self):
        assert DebtTranche("T", 80e6, 0.1, 5, balloon_pct=0.25).balloon_amount == pytest.approx(20e6)
        assert DebtTranche("T", 80e6, 0.1, 5, "bullet").balloon_amount == pytest.approx(80e6)
        assert DebtTranche("T", 80e6, 0.1, 5).balloon_amount == 0.0


class TestValidation:

    @pytest.mark.parametrize("principal, rate, tenor, io", [
        (0.0, 0.10, 5, 0),
        (-1e6, 0.10, 5, 0),
        (10e6, 0.0, 5, 0),
        (10e6, -0.02, 5, 0),
        (10e6, 0.10, 0, 0),
        (10e6, 0.10, 5, 5),
        (10e6, 0.10, 5, 7),
    ])
    def test_rejects_invalid_terms(self, principal, rate, tenor, io):
        with pytest.raises(ModelValidationError):
            validate_debt_terms(principal, rate, tenor, io)

    def test_rejects_unknown_amortization_type(self):
        with pytest.raises(ModelValidationError, match="amortization"):
            build_amortization_schedule(10e6, 0.05, 3, "sinking_fund")

    def test_rejects_bad_balloon(self):
        with pytest.raises(ModelValidationError):
            validate_debt_terms(10e6, 0.05, 3, balloon_pct=1.0)


class TestMultiTranche:

    def test_tranches_sum_by_year(self):
        tranches = [
            DebtTranche("Term Loan", 60e6, 0.10, 5),
            DebtTranche("Notes", 40e6, 0.08, 5, "bullet"),
        ]
        sched = build_debt_schedule(tranches, 5)
        year1 = sched["schedule"][1]
        assert year1["interest"] == pytest.approx(6e6 + 3.2e6)
        assert year1["principal_by_tranche"]["Notes"] == 0.0
        assert year1["opening_debt"] == pytest.approx(100e6)
        assert get_ending_debt_by_year(sched["schedule"])[-1] == pytest.approx(0.0, abs=1e-6)
        assert set(sched["tranche_dfs"]) == {"Term Loan", "Notes"}

    def test_repeated_names_are_kept_apart(self):
        tranches = [
            DebtTranche("Term Loan", 60e6, 0.10, 5),
            DebtTranche("Term Loan", 40e6, 0.08, 5),
        ]
        sched = build_debt_schedule(tranches, 5)
        year1 = sched["schedule"][1]
        assert year1["opening_debt"] == pytest.approx(100e6)
        assert year1["interest"] == pytest.approx(9.2e6)
        assert year1["debt_service"] == pytest.approx(
            annual_debt_service(60e6, 0.10, 5) + annual_debt_service(40e6, 0.08, 5))
        assert list(sched["tranche_dfs"]) == ["Term Loan", "Term Loan (2)"]
        assert sched["tranche_dfs"]["Term Loan (2)"]["Interest"].iloc[0] == pytest.approx(3.2e6)

    def test_horizon_beyond_maturity_pays_nothing(self):
        sched = build_debt_schedule([DebtTranche("Short", 10e6, 0.05, 2)], 4)
        assert get_debt_service_by_year(sched["schedule"])[2:] == [0.0, 0.0]
        assert len(sched["summary_df"]) == 4


class TestRefinancingRisk:

    @pytest.mark.parametrize("coverage, expected", [
        (0.5, "Critical"),
        (0.79, "Critical"),
        (0.8, "High"),
        (0.99, "High"),
        (1.0, "Medium"),
        (1.49, "Medium"),
        (1.5, "Low"),
        (3.0, "Low"),
    ])
    def test_bands(self, coverage, expected):
        assert refinancing_risk(coverage, 10e6) == expected

    def test_no_balloon_has_no_risk(self):
        result = balloon_analysis(0.0, 5e6)
        assert np.isinf(result["coverage"])
        assert result["risk"] is None
        assert result["shortfall"] == 0.0

    def test_shortfall(self):
        result = balloon_analysis(30e6, 21e6)
        assert result["coverage"] == pytest.approx(0.7)
        assert result["risk"] == "Critical"
        assert result["shortfall"] == pytest.approx(9e6)
