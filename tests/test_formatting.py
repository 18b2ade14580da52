import pytest

from stock_valuation.utils.formatting import (
    MISSING,
    format_number,
    format_percentage,
    format_ratio_as_percentage,
)


@pytest.mark.parametrize(
    "value, expected",
    [
        (3.0e12, "3000.00B"),
        (2.5e9, "2.50B"),
        (1.0e9, "1000.00M"),
        (12_345_678, "12.35M"),
        (1_500, "1.50K"),
        (1_000, "1000.00"),
        (12.345, "12.35"),
        (-5_000_000, "-5000000.00"),
    ],
)
def test_format_number(value, expected):
    assert format_number(value) == expected


@pytest.mark.parametrize("value", [None, float("nan"), float("inf"), "abc", True])
def test_format_number_missing(value):
    assert format_number(value) == MISSING


def test_percentages():
    assert format_percentage(15.0) == "15.00%"
    assert format_percentage(None) == MISSING
    assert format_ratio_as_percentage(0.153) == "15.30%"
    assert format_ratio_as_percentage(None) == MISSING
