"""Discounted-earnings valuation over a fixed five-year horizon.

Two exit models are available and never blended:

- ``ExitModel.TERMINAL_MULTIPLE`` (default): year-5 EPS times the chosen
  multiple gives the exit price, discounted back five years at the desired
  return to obtain the entry price.
- ``ExitModel.PERPETUITY``: each projected EPS is discounted individually and
  a Gordon-growth terminal value is added on top.

Growth, discount and terminal-growth rates are percentages (``10`` means 10%).
"""
from __future__ import annotations

import logging
import math
from datetime import date
from typing import Optional, Tuple

import numpy as np

from stock_valuation.domain.errors import DegenerateValuationError, InsufficientDataError
from stock_valuation.domain.models.financials import (
    PROJECTION_YEARS,
    ExitModel,
    FinancialRecord,
    ProjectionPoint,
    ValuationAssumptions,
    ValuationResult,
    ValuationVerdict,
)

logger = logging.getLogger(__name__)

# Relative gap between intrinsic value and price inside which no verdict is issued.
DEAD_BAND = 0.10
BAND_EDGE_TOLERANCE = 1e-9


class DcfEngine:
    """Pure function of (record, assumptions); callers own invalidation."""

    def __init__(self, years: int = PROJECTION_YEARS) -> None:
        self._years = years

    def project(
        self,
        record: FinancialRecord,
        assumptions: ValuationAssumptions,
        *,
        exit_model: ExitModel = ExitModel.TERMINAL_MULTIPLE,
        current_year: Optional[int] = None,
    ) -> Optional[ValuationResult]:
        """Project or return ``None`` when EPS is missing or zero."""
        try:
            return self.project_strict(record, assumptions, exit_model=exit_model, current_year=current_year)
        except InsufficientDataError as exc:
            logger.debug("Valuation skipped for %s: %s", record.symbol, exc.message)
            return None

    def project_strict(
        self,
        record: FinancialRecord,
        assumptions: ValuationAssumptions,
        *,
        exit_model: ExitModel = ExitModel.TERMINAL_MULTIPLE,
        current_year: Optional[int] = None,
    ) -> ValuationResult:
        eps0 = current_eps(record, assumptions)
        growth = _fraction(assumptions.eps_growth_rate)
        discount = _fraction(assumptions.discount_rate)
        multiple = float(assumptions.terminal_multiple)
        year0 = current_year if current_year is not None else date.today().year
        if 1.0 + discount <= 0:
            raise DegenerateValuationError(
                "Discount rate must be greater than -100%.", {"discount_rate": assumptions.discount_rate}
            )

        with np.errstate(over="ignore", invalid="ignore"):
            eps_path = self._eps_path(eps0, growth)
            price_path = eps_path * multiple
        future_eps = float(eps_path[-1])

        try:
            if ExitModel(exit_model) is ExitModel.PERPETUITY:
                terminal_growth = _fraction(assumptions.terminal_growth_rate)
                intrinsic, future_price = self._perpetuity_value(eps_path, discount, terminal_growth)
            else:
                future_price = float(price_path[-1])
                intrinsic = future_price / (1.0 + discount) ** self._years
        except (OverflowError, ZeroDivisionError) as exc:
            raise DegenerateValuationError(f"Valuation overflowed: {exc}") from exc

        price = record.profile.price
        result = ValuationResult(
            intrinsic_value=_checked("intrinsic value", intrinsic),
            entry_price=_checked("entry price", intrinsic),
            future_eps=_checked("future EPS", future_eps),
            future_price=_checked("future price", future_price),
            expected_return=expected_return(future_price, price, self._years),
            projections=tuple(
                ProjectionPoint(
                    year=year0 + i,
                    eps=_checked("projected EPS", float(eps_path[i - 1])),
                    price=_checked("projected price", float(price_path[i - 1])),
                )
                for i in range(1, self._years + 1)
            ),
            verdict=classify(intrinsic, price),
            exit_model=ExitModel(exit_model),
        )
        return result

    def _eps_path(self, eps0: float, growth: float) -> np.ndarray:
        exponents = np.arange(1, self._years + 1, dtype=float)
        return eps0 * np.power(1.0 + growth, exponents)

    def _perpetuity_value(
        self, eps_path: np.ndarray, discount: float, terminal_growth: float
    ) -> Tuple[float, float]:
        if discount <= terminal_growth:
            raise DegenerateValuationError(
                "Discount rate must exceed the terminal growth rate for a perpetuity exit.",
                {"discount_rate": discount * 100.0, "terminal_growth_rate": terminal_growth * 100.0},
            )
        factors = np.power(1.0 + discount, np.arange(1, self._years + 1, dtype=float))
        pv_earnings = float(np.sum(eps_path / factors))
        terminal_value = float(eps_path[-1]) * (1.0 + terminal_growth) / (discount - terminal_growth)
        pv_terminal = terminal_value / float(factors[-1])
        return pv_earnings + pv_terminal, terminal_value


def project(
    record: FinancialRecord,
    assumptions: ValuationAssumptions,
    *,
    exit_model: ExitModel = ExitModel.TERMINAL_MULTIPLE,
    current_year: Optional[int] = None,
) -> Optional[ValuationResult]:
    """Module-level convenience around ``DcfEngine().project``."""
    return DcfEngine().project(record, assumptions, exit_model=exit_model, current_year=current_year)


def current_eps(record: FinancialRecord, assumptions: ValuationAssumptions) -> float:
    """EPS the projection starts from: the user override, else the record's EPS."""
    eps = assumptions.current_eps if assumptions.current_eps is not None else record.eps
    if eps is None or not math.isfinite(eps) or eps == 0:
        raise InsufficientDataError(
            "Current EPS is zero or unavailable; cannot project earnings.",
            {"symbol": record.symbol, "eps": eps},
        )
    return float(eps)


def expected_return(future_price: float, current_price: float, years: int = PROJECTION_YEARS) -> Optional[float]:
    """Annualized return (percent) from buying at ``current_price`` and exiting at ``future_price``."""
    if current_price <= 0 or future_price <= 0:
        return None
    value = ((future_price / current_price) ** (1.0 / years) - 1.0) * 100.0
    return value if math.isfinite(value) else None


def classify(intrinsic_value: float, current_price: float) -> Optional[ValuationVerdict]:
    """Compare intrinsic value with the market price using an exclusive ±10% dead band.

    A gap equal to the band edge up to float rounding (0.77 vs 0.70) stays fair value.
    """
    if current_price <= 0 or not math.isfinite(intrinsic_value):
        return None
    gap = (intrinsic_value - current_price) / current_price
    if gap > DEAD_BAND and not _on_band_edge(gap):
        return ValuationVerdict.UNDERVALUED
    if gap < -DEAD_BAND and not _on_band_edge(gap):
        return ValuationVerdict.OVERVALUED
    return ValuationVerdict.FAIR_VALUE


def parse_assumption(raw: object) -> float:
    """Parse a user-typed assumption; anything unparseable becomes 0."""
    if raw is None or isinstance(raw, bool):
        return 0.0
    try:
        value = float(str(raw).strip())
    except (TypeError, ValueError):
        return 0.0
    return value if math.isfinite(value) else 0.0


def _fraction(percent: float) -> float:
    return float(percent) / 100.0


def _checked(label: str, value: float) -> float:
    if not math.isfinite(value):
        raise DegenerateValuationError(f"Valuation produced a non-finite {label}.", {"field": label})
    return float(value)


def _on_band_edge(gap: float) -> bool:
    return math.isclose(abs(gap), DEAD_BAND, rel_tol=BAND_EDGE_TOLERANCE, abs_tol=0.0)
