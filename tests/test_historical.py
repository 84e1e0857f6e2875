"""
Unit Tests for Historical Assumption Derivation and the Data Loader
===================================================================
"""

import pandas as pd
import pytest

import data.fetch_financials as fetch_financials
from data.fetch_financials import (SAMPLE_COMPANY, fetch_historical_years,
                                   historical_df, sample_history)
from model.historical import (DEFAULT_CAPEX_PCT, HistoricalYear, derive_assumptions)
from model.params import default_params


class TestDeriveAssumptions:

    def test_single_year_returns_none(self):
        assert derive_assumptions([{"year": 2024, "revenue": 100e6}]) is None

    def test_zero_revenue_years_ignored(self):
        records = [{"year": 2023, "revenue": 0.0}, {"year": 2024, "revenue": 100e6}]
        assert derive_assumptions(records) is None

    def test_derived_values(self, sample_history_records):
        derived = derive_assumptions(sample_history_records)
        assert derived.base_revenue == pytest.approx(121e6)
        assert derived.growth == pytest.approx(0.10)
        assert derived.avg_ebitda_margin == pytest.approx(0.20)
        assert derived.cogs_pct == pytest.approx(0.60)
        assert derived.opex_pct == pytest.approx(0.20)
        assert derived.avg_net_margin == pytest.approx(0.08)
        assert derived.wc_pct_of_rev == pytest.approx(0.12)
        assert derived.capex_pct == pytest.approx(0.04)
        assert derived.data_quality["years"] == 3

    def test_capex_estimated_from_ppe(self):
        records = [
            HistoricalYear(year=2022, revenue=100e6, ppe=50e6),
            HistoricalYear(year=2023, revenue=100e6, ppe=55e6),
        ]
        # (55 - 50) + 10% x 55 depreciation = 10.5M
        assert derive_assumptions(records).capex_pct == pytest.approx(0.105)

    def test_capex_default_without_data(self):
        records = [{"year": 2022, "revenue": 100e6}, {"year": 2023, "revenue": 105e6}]
        assert derive_assumptions(records).capex_pct == pytest.approx(DEFAULT_CAPEX_PCT)

    def test_cogs_clamped(self):
        records = [{"year": 2022, "revenue": 100e6, "ebitda": -30e6},
                   {"year": 2023, "revenue": 100e6, "ebitda": -30e6}]
        assert derive_assumptions(records).cogs_pct == pytest.approx(0.95)

    def test_ebitda_from_components(self):
        year = HistoricalYear(year=2024, revenue=100e6, cogs=55e6, opex=20e6)
        assert year.reported_ebitda == pytest.approx(25e6)

    def test_apply_to_seeds_params(self, sample_history_records):
        params = derive_assumptions(sample_history_records).apply_to(default_params())
        assert params.base_revenue == pytest.approx(121e6)
        assert params.cogs_pct == pytest.approx(0.60)
        assert params.opening_debt == default_params().opening_debt


class TestFetchFinancials:

    def test_offline_returns_sample(self):
        company, years = fetch_historical_years("ANY", use_live=False)
        assert company == SAMPLE_COMPANY
        assert [h.year for h in years] == [2022, 2023, 2024]

    def test_failed_fetch_falls_back(self, monkeypatch):
        def boom(ticker):
            raise ConnectionError("offline")
        monkeypatch.setattr(fetch_financials.yf, "Ticker", boom)
        company, years = fetch_historical_years("ANY")
        assert company == SAMPLE_COMPANY
        assert len(years) == 3

    def test_parse_statements(self):
        cols = [pd.Timestamp("2024-12-31"), pd.Timestamp("2023-12-31")]
        fin = pd.DataFrame({cols[0]: [200e6, 50e6, 20e6], cols[1]: [180e6, 45e6, 18e6]},
                           index=["Total Revenue", "EBITDA", "Net Income"])
        bs = pd.DataFrame({cols[0]: [60e6], cols[1]: [55e6]}, index=["Net PPE"])
        cf = pd.DataFrame({cols[0]: [-8e6], cols[1]: [-7e6]}, index=["Capital Expenditure"])
        years = fetch_financials._parse_statements(fin, bs, cf)
        assert [h.year for h in years] == [2023, 2024]
        assert years[1].capex == pytest.approx(8e6)
        assert years[0].working_capital is None

    def test_sample_history_derives(self):
        derived = derive_assumptions(sample_history())
        assert derived is not None
        assert derived.base_revenue == pytest.approx(290e6)

    def test_historical_df(self):
        df = historical_df(sample_history())
        assert list(df["Year"]) == [2022, 2023, 2024]
        assert df["EBITDA Margin"].iloc[-1] == pytest.approx(81 / 290)
