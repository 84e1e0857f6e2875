"""
Unit Tests for the Restructuring Advisor
========================================
The stressed fixture has min EBITDA ≈ 36.65M (year 5) against level debt
service ≈ 33.29M on 120M at 12% over 5 years.
"""

import pandas as pd
import pytest

from model.params import CovenantThresholds, ModelParams, ModelValidationError
from model.debt_schedule import annual_debt_service
from model.projection import build_projection
from analysis.restructuring import (
    RestructuringTerms,
    calculate_optimal_debt,
    diagnose,
    recalculate_metrics,
    restructure_deal,
)


@pytest.fixture
def stressed_deal(stressed_params, stressed_result):
    terms = RestructuringTerms.from_params(stressed_params)
    return terms, restructure_deal(stressed_result["projection_df"], terms,
                                   stressed_params.covenants)


class TestDiagnosis:

    def test_breach_years_and_causes(self, stressed_params, stressed_result):
        diag = diagnose(stressed_result["projection_df"], stressed_params.covenants)
        assert diag["has_breaches"]
        assert diag["breach_years"] == [2028, 2029]
        assert diag["root_causes"] == ["Revenue declining while debt service remains fixed"]

    def test_statuses(self, stressed_params, stressed_result):
        timeline = diagnose(stressed_result["projection_df"], stressed_params.covenants)["timeline_df"]
        assert set(timeline["dscr_status"]) <= {"Pass", "Tight", "BREACH"}
        assert timeline["dscr_status"].iloc[-1] == "BREACH"
        assert timeline["dscr_status"].iloc[2] == "Pass"
        # 1.16x against 1.20x is a breach but within the 5% band
        assert timeline["dscr_status"].iloc[3] == "Tight"
        assert timeline["breached"].iloc[3]

    def test_healthy_deal_has_default_cause(self, base_params, base_result):
        diag = diagnose(base_result["projection_df"], base_params.covenants)
        assert not diag["has_breaches"]
        assert diag["root_causes"] == [
            "Deal structure requires optimization for improved covenant compliance"]


class TestOptions:

    def test_all_options_generated(self, stressed_deal):
        _, rs = stressed_deal
        assert [o.id for o in rs["options"]] == ["A", "B", "C", "D", "E"]
        assert list(rs["options_df"].index) == ["Current", "A", "B", "C", "D", "E"]

    def test_principal_options_reduce_principal(self, stressed_deal):
        terms, rs = stressed_deal
        for option in rs["options"]:
            if option.id in ("A", "D", "E"):
                assert option.principal < terms.principal

    def test_rate_option_reduces_debt_service(self, stressed_deal):
        terms, rs = stressed_deal
        option_c = next(o for o in rs["options"] if o.id == "C")
        assert option_c.rate < terms.rate
        assert option_c.annual_debt_service < terms.annual_debt_service

    def test_principal_reduction_hits_target(self, stressed_deal):
        _, rs = stressed_deal
        option_a = next(o for o in rs["options"] if o.id == "A")
        assert option_a.min_dscr == pytest.approx(1.30, rel=1e-6)
        assert option_a.breach_years == 0

    def test_tenor_extension_search(self, stressed_deal):
        _, rs = stressed_deal
        option_b = next(o for o in rs["options"] if o.id == "B")
        assert option_b.tenor_years == 7
        assert option_b.min_dscr >= 1.30

    def test_rate_search_falls_back_to_floor(self, stressed_deal):
        """No rate above the 8% floor reaches 1.30x, so C uses max(0.75 x rate, floor)."""
        _, rs = stressed_deal
        option_c = next(o for o in rs["options"] if o.id == "C")
        assert option_c.rate == pytest.approx(0.09)
        assert option_c.breach_years == 1

    def test_combination_terms(self, stressed_deal):
        terms, rs = stressed_deal
        option_e = next(o for o in rs["options"] if o.id == "E")
        assert option_e.tenor_years == 7
        assert option_e.rate == pytest.approx(0.105)
        assert option_e.principal == pytest.approx(terms.principal * 0.92)
        assert option_e.breach_years == 0
        assert isinstance(option_e.impacts_df, pd.DataFrame)

    def test_recommendation_is_combination(self, stressed_deal):
        _, rs = stressed_deal
        rec = rs["recommendation"]
        assert rec["option"].id == "E"
        assert any("equity injection" in c for c in rec["conditions_precedent"])
        assert "challenged" in rec["rationale"][2]

    def test_healthy_deal_excludes_principal_cuts(self, base_params, base_result):
        terms = RestructuringTerms.from_params(base_params)
        rs = restructure_deal(base_result["projection_df"], terms, base_params.covenants)
        assert [o.id for o in rs["options"]] == ["B", "C", "E"]

    def test_combination_never_shortens_long_tenor(self, stressed_params):
        params = stressed_params.with_overrides(debt_tenor_years=12)
        terms = RestructuringTerms.from_params(params)
        rs = restructure_deal(build_projection(params)["projection_df"], terms, params.covenants)
        option_e = next(o for o in rs["options"] if o.id == "E")
        assert option_e.tenor_years == 12
        assert option_e.annual_debt_service < terms.annual_debt_service
        assert option_e.structure.startswith("Keep tenor: 12 years")
        assert rs["recommendation"]["option"].id == "E"

    def test_equity_option_can_be_disabled(self, stressed_params, stressed_result):
        terms = RestructuringTerms.from_params(stressed_params)
        rs = restructure_deal(stressed_result["projection_df"], terms, stressed_params.covenants,
                              include_equity_option=False)
        assert "D" not in [o.id for o in rs["options"]]

    def test_options_are_frozen(self, stressed_deal):
        _, rs = stressed_deal
        with pytest.raises(AttributeError):
            rs["options"][0].principal = 1.0


class TestValidation:

    def test_empty_projection(self, stressed_params, stressed_result):
        empty = stressed_result["projection_df"].iloc[0:0]
        with pytest.raises(ModelValidationError):
            restructure_deal(empty, RestructuringTerms.from_params(stressed_params),
                             CovenantThresholds())

    def test_invalid_terms(self, stressed_result):
        with pytest.raises(ModelValidationError):
            restructure_deal(stressed_result["projection_df"],
                             RestructuringTerms(0.0, 0.1, 5), CovenantThresholds())


class TestHelpers:

    def test_recalculate_metrics(self):
        res = recalculate_metrics([30e6, 40e6, 50e6], 100e6, 0.10, 5, 1.20)
        ds = annual_debt_service(100e6, 0.10, 5)
        assert res["debt_service"] == pytest.approx(ds)
        assert res["min_dscr"] == pytest.approx(30e6 / ds)
        assert res["breach_years"] == 1
        assert res["year3_dscr"] == pytest.approx(50e6 / ds)

    def test_optimal_debt(self, base_params, base_result):
        terms = RestructuringTerms.from_params(base_params)
        result = calculate_optimal_debt(base_result["projection_df"], terms, 1.25)
        assert result["max_debt_service"] == pytest.approx(84e6 / 1.25)
        assert annual_debt_service(result["optimal_debt"], 0.12, 5) == \
            pytest.approx(result["max_debt_service"])
        assert result["headroom"] == pytest.approx(result["optimal_debt"] - 120e6)

    def test_optimal_debt_rejects_bad_target(self, base_params, base_result):
        terms = RestructuringTerms.from_params(base_params)
        with pytest.raises(ModelValidationError):
            calculate_optimal_debt(base_result["projection_df"], terms, 0.0)

    def test_optimal_debt_rejects_negative_ebitda(self, base_params):
        loss_making = build_projection(base_params.with_overrides(cogs_pct=0.85))
        terms = RestructuringTerms.from_params(base_params)
        with pytest.raises(ModelValidationError, match="EBITDA"):
            calculate_optimal_debt(loss_making["projection_df"], terms, 1.25)

    def test_terms_match_projected_debt_service_under_actual_360(self):
        params = ModelParams(start_year=2025, day_count="Actual/360", interest_only_years=0)
        terms = RestructuringTerms.from_params(params)
        projected = build_projection(params)["projection_df"]["debt_service"].iloc[0]
        assert terms.rate == pytest.approx(params.effective_rate)
        assert terms.annual_debt_service == pytest.approx(projected)
