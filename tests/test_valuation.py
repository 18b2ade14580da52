from __future__ import annotations

import math

import pytest

from stock_valuation.domain.errors import DegenerateValuationError, InsufficientDataError
from stock_valuation.domain.models.financials import (
    CompanyProfile,
    ExitModel,
    FinancialRecord,
    KeyMetrics,
    Quote,
    Ratios,
    ValuationAssumptions,
    ValuationVerdict,
)
from stock_valuation.domain.services.valuation import (
    DcfEngine,
    classify,
    expected_return,
    parse_assumption,
    project,
)


def make_record(price: float = 200.0, eps: float | None = 10.0, pe: float | None = 20.0) -> FinancialRecord:
    return FinancialRecord(
        profile=CompanyProfile(symbol="TEST", price=price),
        quote=Quote(pe=pe, eps=eps),
    )


def test_round_trip_without_growth_or_discount():
    assumptions = ValuationAssumptions(eps_growth_rate=0, discount_rate=0, terminal_multiple=20, current_eps=10)
    result = project(make_record(), assumptions, current_year=2024)
    assert result is not None
    assert result.entry_price == pytest.approx(200.0)
    assert result.intrinsic_value == pytest.approx(200.0)
    assert result.future_price == pytest.approx(200.0)
    assert result.expected_return == pytest.approx(0.0)
    assert result.verdict is ValuationVerdict.FAIR_VALUE
    assert [p.year for p in result.projections] == [2025, 2026, 2027, 2028, 2029]
    assert all(p.eps == pytest.approx(10.0) for p in result.projections)


def test_terminal_multiple_matches_closed_form():
    assumptions = ValuationAssumptions(eps_growth_rate=10, discount_rate=15, terminal_multiple=20, current_eps=5)
    result = project(make_record(price=100.0), assumptions, current_year=2024)
    future_eps = 5 * 1.1 ** 5
    assert result.future_eps == pytest.approx(future_eps)
    assert result.future_price == pytest.approx(future_eps * 20)
    assert result.entry_price == pytest.approx(future_eps * 20 / 1.15 ** 5)
    assert result.expected_return == pytest.approx(((future_eps * 20 / 100.0) ** 0.2 - 1) * 100)
    assert result.projections[-1].price == pytest.approx(result.future_price)


def test_year_five_price_strictly_increases_with_growth():
    record = make_record()
    prices = [
        project(record, ValuationAssumptions(eps_growth_rate=g, current_eps=10), current_year=2024).projections[-1].price
        for g in (-5, 0, 0.5, 5, 10, 20)
    ]
    assert all(lower < higher for lower, higher in zip(prices, prices[1:]))


def test_zero_or_missing_eps_gives_no_result():
    assert project(make_record(eps=None), ValuationAssumptions()) is None
    assert project(make_record(), ValuationAssumptions(current_eps=0)) is None
    with pytest.raises(InsufficientDataError):
        DcfEngine().project_strict(make_record(eps=0.0), ValuationAssumptions())


def test_eps_override_wins_over_record():
    result = project(make_record(eps=1.0), ValuationAssumptions(eps_growth_rate=0, discount_rate=0, current_eps=2.0))
    assert result.future_eps == pytest.approx(2.0)


def test_eps_falls_back_to_ttm_metric():
    record = FinancialRecord(profile=CompanyProfile(symbol="T", price=50.0), metrics=KeyMetrics(eps_ttm=4.0))
    result = project(record, ValuationAssumptions(eps_growth_rate=0, discount_rate=0, terminal_multiple=10))
    assert result.future_price == pytest.approx(40.0)


def test_perpetuity_exit():
    assumptions = ValuationAssumptions(eps_growth_rate=0, discount_rate=10, current_eps=1, terminal_growth_rate=0)
    result = project(make_record(price=10.0), assumptions, exit_model=ExitModel.PERPETUITY)
    # Zero growth everywhere collapses to EPS / r.
    assert result.intrinsic_value == pytest.approx(10.0)
    assert result.future_price == pytest.approx(10.0)
    assert result.exit_model is ExitModel.PERPETUITY


@pytest.mark.parametrize("terminal_growth", [3.0, 4.0])
def test_perpetuity_requires_discount_above_terminal_growth(terminal_growth):
    assumptions = ValuationAssumptions(discount_rate=3.0, terminal_growth_rate=terminal_growth, current_eps=1)
    with pytest.raises(DegenerateValuationError):
        project(make_record(), assumptions, exit_model=ExitModel.PERPETUITY)


def test_discount_of_minus_hundred_percent_is_degenerate():
    with pytest.raises(DegenerateValuationError):
        project(make_record(), ValuationAssumptions(discount_rate=-100, current_eps=1))


def test_overflowing_growth_is_degenerate():
    with pytest.raises(DegenerateValuationError):
        project(make_record(), ValuationAssumptions(eps_growth_rate=1e300, current_eps=1))


def test_classification_band_edges_are_exclusive():
    assert classify(110.0, 100.0) is ValuationVerdict.FAIR_VALUE
    assert classify(110.01, 100.0) is ValuationVerdict.UNDERVALUED
    assert classify(90.0, 100.0) is ValuationVerdict.FAIR_VALUE
    assert classify(89.99, 100.0) is ValuationVerdict.OVERVALUED
    assert classify(100.0, 0.0) is None


@pytest.mark.parametrize("intrinsic, price", [(0.77, 0.7), (0.33, 0.3), (1.1, 1.0), (2.2, 2.0), (0.63, 0.7)])
def test_exact_ten_percent_gap_is_fair_value_despite_float_rounding(intrinsic, price):
    assert classify(intrinsic, price) is ValuationVerdict.FAIR_VALUE


def test_engine_verdict_at_exact_band_edge_is_fair_value():
    assumptions = ValuationAssumptions(eps_growth_rate=0, discount_rate=0, terminal_multiple=10, current_eps=0.077)
    result = project(make_record(price=0.7), assumptions)
    assert result.entry_price == pytest.approx(0.77)
    assert result.verdict is ValuationVerdict.FAIR_VALUE


def test_expected_return_needs_positive_prices():
    assert expected_return(200.0, 100.0, 5) == pytest.approx((2 ** 0.2 - 1) * 100)
    assert expected_return(200.0, 0.0) is None
    assert expected_return(-5.0, 100.0) is None


def test_no_verdict_without_price():
    result = project(make_record(price=0.0), ValuationAssumptions(current_eps=1))
    assert result.verdict is None
    assert result.expected_return is None


@pytest.mark.parametrize(
    "raw, expected",
    [("12.5", 12.5), (" 7 ", 7.0), ("", 0.0), ("abc", 0.0), (None, 0.0), ("nan", 0.0), (3, 3.0)],
)
def test_parse_assumption(raw, expected):
    assert parse_assumption(raw) == expected


def test_assumptions_seed_from_record():
    record = FinancialRecord(
        profile=CompanyProfile(symbol="T", price=10.0),
        ratios=Ratios(pe=18.5),
        quote=Quote(eps=3.14159),
    )
    assumptions = ValuationAssumptions.from_record(record, eps_growth_rate=8.0)
    assert assumptions.current_eps == 3.14
    assert assumptions.terminal_multiple == 18.5
    assert assumptions.eps_growth_rate == 8.0
    assert assumptions.discount_rate == 15.0

    bare = ValuationAssumptions.from_record(FinancialRecord(profile=CompanyProfile(symbol="T")))
    assert bare.terminal_multiple == 20.0
    assert bare.current_eps == 0.0
    assert math.isclose(bare.replace(discount_rate=9).discount_rate, 9)
