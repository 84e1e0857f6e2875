"""
params.py
---------
Central dataclasses for all credit-model inputs.

One explicit, versioned parameter record (ModelParams) replaces ad hoc
dictionaries: every field is declared and defaulted here, and validate()
is the single boundary check before any arithmetic runs.  Scenarios and
stress tests derive new records with with_overrides(); nothing mutates a
record in place.

All monetary values in currency units (e.g. 300e6). Rates as decimals
(e.g., 0.12 = 12%).
"""

import logging
import math
from dataclasses import dataclass, field, replace
from datetime import date
from typing import List, Optional

logger = logging.getLogger(__name__)

PARAMS_VERSION = 1

AMORTIZATION_TYPES = ("amortizing", "bullet", "interest_only")
DAY_COUNT_CONVENTIONS = ("30/360", "Actual/365", "Actual/360")
SENIORITY_CLASSES = ("senior", "subordinated", "mezzanine")

# WACC below this breaks terminal-value math; floored with a warning
MIN_WACC = 0.01
MAX_PROJECTION_YEARS = 50


class ModelValidationError(ValueError):
    """Raised when model inputs fail validation. The message names the field."""


def validate_debt_terms(principal: float, rate: float, tenor_years: int,
                        interest_only_years: int = 0, balloon_pct: float = 0.0,
                        amortization_type: str = "amortizing") -> None:
    """Reject debt terms that cannot produce a meaningful schedule."""
    if not math.isfinite(principal) or principal <= 0:
        raise ModelValidationError(f"Principal must be positive, got {principal}")
    if not math.isfinite(rate) or rate <= 0:
        raise ModelValidationError(f"Interest rate must be positive, got {rate}")
    if tenor_years <= 0:
        raise ModelValidationError(f"Tenor must be positive, got {tenor_years}")
    if interest_only_years < 0 or interest_only_years >= tenor_years:
        raise ModelValidationError(
            f"Interest-only period ({interest_only_years}y) must be shorter "
            f"than tenor ({tenor_years}y)"
        )
    if not 0.0 <= balloon_pct < 1.0:
        raise ModelValidationError(f"Balloon percentage must be in [0, 1), got {balloon_pct}")
    if amortization_type not in AMORTIZATION_TYPES:
        raise ModelValidationError(
            f"Unknown amortization type '{amortization_type}' "
            f"(expected one of {', '.join(AMORTIZATION_TYPES)})"
        )


@dataclass
class DebtTranche:
    """Represents one slice of the financing stack."""
    name: str
    principal: float              # amount drawn at close
    rate: float                   # all-in annual rate
    tenor_years: int              # contractual maturity (years)
    amortization_type: str = "amortizing"
    interest_only_years: int = 0
    balloon_pct: float = 0.0      # share of principal repaid at maturity
    maturity_year: Optional[int] = None
    seniority: str = "senior"

    def validate(self) -> None:
        validate_debt_terms(self.principal, self.rate, self.tenor_years,
                            self.interest_only_years, self.balloon_pct,
                            self.amortization_type)
        if self.seniority not in SENIORITY_CLASSES:
            raise ModelValidationError(f"Unknown seniority '{self.seniority}' for {self.name}")

    @property
    def balloon_amount(self) -> float:
        """Principal left for a single final-period payment."""
        if self.amortization_type == "bullet":
            return self.principal
        if self.amortization_type == "interest_only" and self.interest_only_years == 0:
            return self.principal
        return self.principal * self.balloon_pct


@dataclass
class CovenantThresholds:
    """Covenant levels tested against every projection year."""
    min_dscr: float = 1.20        # breach when DSCR < min_dscr
    target_icr: float = 2.00      # breach when ICR < target_icr
    max_leverage: float = 3.50    # breach when Net Debt / EBITDA > max_leverage

    def validate(self) -> None:
        for name in ("min_dscr", "target_icr", "max_leverage"):
            value = getattr(self, name)
            if not math.isfinite(value) or value <= 0:
                raise ModelValidationError(f"Covenant {name} must be positive, got {value}")


@dataclass
class ModelParams:
    """
    Master container for all credit-model inputs.

    Structured in four logical blocks:
      1. Operating projections
      2. Debt structure
      3. Valuation
      4. Sponsor returns and covenants
    """
    version: int = PARAMS_VERSION
    start_year: int = field(default_factory=lambda: date.today().year)
    years: int = 5

    # -----------------------------------------------------------------------
    # 1. OPERATING PROJECTIONS
    # -----------------------------------------------------------------------
    base_revenue: float = 300e6      # Year 1 revenue
    growth: float = 0.10             # annual revenue growth from Year 2
    cogs_pct: float = 0.52
    opex_pct: float = 0.20
    capex_pct: float = 0.04
    da_pct_of_ppe: float = 0.12      # depreciation as % of opening PP&E
    wc_pct_of_rev: float = 0.12
    tax_rate: float = 0.25

    # -----------------------------------------------------------------------
    # 2. DEBT STRUCTURE
    # -----------------------------------------------------------------------
    # Single facility; ignored when debt_tranches is non-empty
    opening_debt: float = 120e6
    interest_rate: float = 0.12
    debt_tenor_years: int = 5
    interest_only_years: int = 1
    amortization_type: str = "amortizing"
    balloon_pct: float = 0.0
    day_count: str = "30/360"
    debt_tranches: List[DebtTranche] = field(default_factory=list)
    opening_cash: float = 0.0

    # -----------------------------------------------------------------------
    # 3. VALUATION
    # -----------------------------------------------------------------------
    wacc: float = 0.16
    terminal_growth: float = 0.03
    use_exit_multiple: bool = False
    mid_year_convention: bool = False
    exit_multiple: float = 8.0       # EV / final-year EBITDA
    associates_value: float = 0.0
    minority_interest: float = 0.0

    # -----------------------------------------------------------------------
    # 4. SPONSOR RETURNS & COVENANTS
    # -----------------------------------------------------------------------
    equity_contribution: float = 50e6
    entry_multiple: float = 8.0
    covenants: CovenantThresholds = field(default_factory=CovenantThresholds)

    # -----------------------------------------------------------------------
    # VALIDATION
    # -----------------------------------------------------------------------
    def validate(self) -> "ModelParams":
        """
        Check every field and return a validated record.

        WACC below 1% is floored (with a warning) on the returned copy
        rather than rejected. All other violations raise ModelValidationError.
        """
        if self.version != PARAMS_VERSION:
            raise ModelValidationError(
                f"Unsupported parameter version {self.version} (expected {PARAMS_VERSION})"
            )
        if not 1 <= self.years <= MAX_PROJECTION_YEARS:
            raise ModelValidationError(
                f"Projection years must be between 1 and {MAX_PROJECTION_YEARS}, got {self.years}"
            )
        if not 0.0 <= self.tax_rate <= 1.0:
            raise ModelValidationError(f"Tax rate must be in [0, 1], got {self.tax_rate}")
        if self.base_revenue <= 0:
            raise ModelValidationError(f"Base revenue must be positive, got {self.base_revenue}")
        for name in ("growth", "cogs_pct", "opex_pct", "capex_pct", "da_pct_of_ppe",
                     "wc_pct_of_rev", "wacc", "terminal_growth", "opening_cash",
                     "associates_value", "minority_interest", "equity_contribution"):
            if not math.isfinite(getattr(self, name)):
                raise ModelValidationError(f"{name} must be finite")
        if self.day_count not in DAY_COUNT_CONVENTIONS:
            raise ModelValidationError(f"Unknown day-count convention '{self.day_count}'")
        if self.use_exit_multiple and self.exit_multiple <= 0:
            raise ModelValidationError(f"Exit multiple must be positive, got {self.exit_multiple}")
        self.covenants.validate()

        if self.debt_tranches:
            for t in self.debt_tranches:
                t.validate()
        elif self.opening_debt > 0:
            validate_debt_terms(self.opening_debt, self.interest_rate, self.debt_tenor_years,
                                self.interest_only_years, self.balloon_pct,
                                self.amortization_type)
        elif self.opening_debt < 0:
            raise ModelValidationError(f"Opening debt cannot be negative, got {self.opening_debt}")

        wacc = self.wacc
        if wacc < MIN_WACC:
            logger.warning("WACC %.4f below floor; using %.2f", wacc, MIN_WACC)
            wacc = MIN_WACC
        if wacc <= self.terminal_growth:
            raise ModelValidationError(
                f"WACC ({wacc:.2%}) must exceed terminal growth "
                f"({self.terminal_growth:.2%}) for the Gordon growth model"
            )
        return self if wacc == self.wacc else replace(self, wacc=wacc)

    def with_overrides(self, **overrides) -> "ModelParams":
        """New record with the given fields replaced; self is untouched."""
        return replace(self, **overrides)

    # -----------------------------------------------------------------------
    # COMPUTED PROPERTIES
    # -----------------------------------------------------------------------
    @property
    def tranches(self) -> List[DebtTranche]:
        """Financing stack: explicit tranches, or the single facility as one tranche."""
        if self.debt_tranches:
            factor = self.day_count_factor
            if factor == 1.0:
                return list(self.debt_tranches)
            return [replace(t, rate=t.rate * factor) for t in self.debt_tranches]
        if self.opening_debt <= 0:
            return []
        return [DebtTranche(
            name="Senior Facility",
            principal=self.opening_debt,
            rate=self.effective_rate,
            tenor_years=self.debt_tenor_years,
            amortization_type=self.amortization_type,
            interest_only_years=self.interest_only_years,
            balloon_pct=self.balloon_pct,
            maturity_year=self.start_year + self.debt_tenor_years - 1,
        )]

    @property
    def total_debt(self) -> float:
        if self.debt_tranches:
            return sum(t.principal for t in self.debt_tranches)
        return max(0.0, self.opening_debt)

    @property
    def blended_rate(self) -> float:
        """Principal-weighted average rate across the financing stack."""
        if not self.debt_tranches:
            return self.interest_rate if self.opening_debt > 0 else 0.0
        total = self.total_debt
        if total == 0:
            return 0.0
        return sum(t.principal * t.rate for t in self.debt_tranches) / total

    @property
    def day_count_factor(self) -> float:
        """Actual/360 accrues 365/360 of the quoted rate over a year."""
        return 365 / 360 if self.day_count == "Actual/360" else 1.0

    @property
    def effective_rate(self) -> float:
        """Single-facility rate adjusted for the day-count convention."""
        return self.interest_rate * self.day_count_factor

    @property
    def effective_blended_rate(self) -> float:
        """Blended rate on the same day-count basis the projection accrues at."""
        return self.blended_rate * self.day_count_factor

    @property
    def net_debt(self) -> float:
        return self.total_debt - self.opening_cash

    @property
    def balloon_amount(self) -> float:
        return sum(t.balloon_amount for t in self.tranches)


# ---------------------------------------------------------------------------
# Convenience: canonical base case
# ---------------------------------------------------------------------------

def default_params() -> ModelParams:
    return ModelParams()
