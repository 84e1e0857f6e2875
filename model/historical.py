"""
historical.py
-------------
Derives projection assumptions from two or more years of historical
financial statements.

  - Revenue growth: mean of year-over-year changes
  - EBITDA margin / net margin / working capital %: mean across years
  - CapEx %: reported capex / revenue; else (dPP&E + depreciation) / revenue
    with depreciation estimated at 10% of PP&E; else 4%
  - COGS %: backed out of EBITDA margin with opex fixed at 20% of revenue
  - Base revenue: most recent year (current run-rate), not the average

Fewer than two usable years returns None rather than a guess.
"""

import logging
from dataclasses import dataclass, field, fields
from typing import Iterable, Mapping, Optional, Union

import numpy as np

from model.params import ModelParams

logger = logging.getLogger(__name__)

ASSUMED_OPEX_PCT = 0.20
DEFAULT_CAPEX_PCT = 0.04
ESTIMATED_DEPRECIATION_PCT_OF_PPE = 0.10
MAX_COGS_PCT = 0.95


@dataclass
class HistoricalYear:
    """One fiscal year of reported figures. Unreported items are None."""
    year: int
    revenue: float
    ebitda: Optional[float] = None
    net_income: Optional[float] = None
    working_capital: Optional[float] = None
    capex: Optional[float] = None
    ppe: Optional[float] = None
    depreciation: Optional[float] = None
    cogs: Optional[float] = None
    opex: Optional[float] = None
    interest: Optional[float] = None
    tax: Optional[float] = None
    total_debt: Optional[float] = None
    cash: Optional[float] = None

    @classmethod
    def from_mapping(cls, record: Mapping) -> "HistoricalYear":
        """Build from a dict, ignoring keys that are not statement fields."""
        known = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in record.items() if k in known})

    @property
    def reported_ebitda(self) -> Optional[float]:
        """EBITDA as reported, else revenue - COGS - opex when both are given."""
        if self.ebitda is not None:
            return self.ebitda
        if self.cogs is not None and self.opex is not None:
            return self.revenue - self.cogs - self.opex
        return None


@dataclass
class DerivedAssumptions:
    base_revenue: float
    avg_revenue: float
    growth: float
    cogs_pct: float
    opex_pct: float
    wc_pct_of_rev: float
    capex_pct: float
    avg_net_margin: float
    avg_ebitda_margin: float
    data_quality: dict = field(default_factory=dict)

    def apply_to(self, params: ModelParams) -> ModelParams:
        """Seed a new parameter record with the derived operating assumptions."""
        return params.with_overrides(
            base_revenue=self.base_revenue,
            growth=self.growth,
            cogs_pct=self.cogs_pct,
            opex_pct=self.opex_pct,
            wc_pct_of_rev=self.wc_pct_of_rev,
            capex_pct=self.capex_pct,
        )


def _ratio(value: Optional[float], revenue: float) -> float:
    return value / revenue if value else 0.0


def derive_assumptions(
    historical: Iterable[Union[HistoricalYear, Mapping]],
) -> Optional[DerivedAssumptions]:
    """
    Parameters
    ----------
    historical : HistoricalYear records (or dicts with the same keys), any order

    Returns
    -------
    DerivedAssumptions, or None when fewer than two years have revenue > 0
    """
    records = [h if isinstance(h, HistoricalYear) else HistoricalYear.from_mapping(h)
               for h in historical]
    valid = sorted(
        (h for h in records if h.revenue is not None and h.revenue > 0),
        key=lambda h: h.year,
    )
    if len(valid) < 2:
        logger.info("Insufficient historical data: %d usable year(s), need 2", len(valid))
        return None

    growth_rates = [(cur.revenue - prev.revenue) / prev.revenue
                    for prev, cur in zip(valid, valid[1:])]
    avg_growth = float(np.mean(growth_rates))

    avg_ebitda_margin = float(np.mean([_ratio(h.reported_ebitda, h.revenue) for h in valid]))
    avg_net_margin = float(np.mean([_ratio(h.net_income, h.revenue) for h in valid]))
    avg_wc_pct = float(np.mean([_ratio(h.working_capital, h.revenue) for h in valid]))

    capex_rates = []
    for i, h in enumerate(valid):
        if h.capex:
            capex_rates.append(h.capex / h.revenue)
        elif h.ppe and i > 0 and valid[i - 1].ppe:
            depreciation = h.depreciation or h.ppe * ESTIMATED_DEPRECIATION_PCT_OF_PPE
            estimated = h.ppe - valid[i - 1].ppe + depreciation
            capex_rates.append(max(0.0, estimated / h.revenue))
    avg_capex_pct = float(np.mean(capex_rates)) if capex_rates else DEFAULT_CAPEX_PCT

    cogs_pct = min(MAX_COGS_PCT, max(0.0, 1 - avg_ebitda_margin - ASSUMED_OPEX_PCT))

    derived = DerivedAssumptions(
        base_revenue=valid[-1].revenue,
        avg_revenue=float(np.mean([h.revenue for h in valid])),
        growth=avg_growth,
        cogs_pct=cogs_pct,
        opex_pct=ASSUMED_OPEX_PCT,
        wc_pct_of_rev=avg_wc_pct,
        capex_pct=avg_capex_pct,
        avg_net_margin=avg_net_margin,
        avg_ebitda_margin=avg_ebitda_margin,
        data_quality={
            "years":            len(valid),
            "has_capex":        any(h.capex for h in valid),
            "has_ppe":          any(h.ppe for h in valid),
            "has_depreciation": any(h.depreciation for h in valid),
        },
    )
    logger.debug("Derived assumptions from %d years: growth %.4f, EBITDA margin %.4f",
                 len(valid), avg_growth, avg_ebitda_margin)
    return derived
