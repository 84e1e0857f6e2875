"""
Pytest Configuration and Fixtures
==================================
Shared parameter sets and projections for the credit model tests.
"""

import pytest

from model.params import ModelParams, default_params
from model.projection import build_projection


@pytest.fixture
def base_params():
    """Canonical base case (healthy borrower, no covenant breaches)."""
    return default_params()


@pytest.fixture
def stressed_params():
    """Shrinking borrower with thin margins: DSCR breaches in later years."""
    return ModelParams(
        start_year=2025,
        growth=-0.05,
        cogs_pct=0.60,
        opex_pct=0.25,
        opening_debt=120e6,
        interest_rate=0.12,
        debt_tenor_years=5,
        interest_only_years=0,
    )


@pytest.fixture
def no_debt_params():
    return ModelParams(start_year=2025, opening_debt=0.0)


@pytest.fixture
def base_result(base_params):
    return build_projection(base_params)


@pytest.fixture
def stressed_result(stressed_params):
    return build_projection(stressed_params)


@pytest.fixture
def sample_history_records():
    """Three fiscal years as plain dicts, oldest last to check sorting."""
    return [
        {"year": 2024, "revenue": 121e6, "ebitda": 24.2e6, "net_income": 9.68e6,
         "working_capital": 14.52e6, "capex": 4.84e6},
        {"year": 2023, "revenue": 110e6, "ebitda": 22e6, "net_income": 8.8e6,
         "working_capital": 13.2e6, "capex": 4.4e6},
        {"year": 2022, "revenue": 100e6, "ebitda": 20e6, "net_income": 8e6,
         "working_capital": 12e6, "capex": 4e6},
    ]
