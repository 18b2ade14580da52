"""Fixed-rule financial health checklist."""
from __future__ import annotations

from typing import List

import pandas as pd

from stock_valuation.domain.models.financials import ChecklistItem, FinancialRecord

MAX_PE = 25.0
MAX_DEBT_TO_EQUITY = 1.0
MIN_ROE_PERCENT = 15.0
EPS_WINDOW = 5
MIN_EPS_INCREASES = 3
MIN_COMPARABLE_PAIRS = 2

# Missing inputs take a failing value so absent data never passes a check.
MISSING_PE = 99.0
MISSING_DEBT_TO_EQUITY = 99.0
MISSING_ROE = 0.0


def evaluate(record: FinancialRecord) -> List[ChecklistItem]:
    """Return the four checks in fixed order; never raises."""
    pe = record.pe if record.pe is not None else MISSING_PE
    debt_to_equity = record.debt_to_equity if record.debt_to_equity is not None else MISSING_DEBT_TO_EQUITY
    roe = record.return_on_equity if record.return_on_equity is not None else MISSING_ROE

    return [
        ChecklistItem(label=f"P/E ratio below {MAX_PE:g}", passed=pe < MAX_PE),
        ChecklistItem(label=f"Debt/Equity below {MAX_DEBT_TO_EQUITY:g}", passed=debt_to_equity < MAX_DEBT_TO_EQUITY),
        ChecklistItem(label=f"Return on equity above {MIN_ROE_PERCENT:g}%", passed=roe * 100.0 > MIN_ROE_PERCENT),
        ChecklistItem(
            label=f"Consistent EPS growth ({MIN_EPS_INCREASES} of {EPS_WINDOW} years)",
            passed=_consistent_eps_growth(record),
        ),
    ]


def passed_count(items: List[ChecklistItem]) -> int:
    return sum(1 for item in items if item.passed)


def _consistent_eps_growth(record: FinancialRecord) -> bool:
    # Each point is compared with the one before it in the order provided upstream.
    window = [point.eps for point in record.historical_earnings[:EPS_WINDOW]]
    if len(window) < 2:
        return False
    deltas = pd.Series(window, dtype=float).diff()
    comparable = deltas.dropna()
    if len(comparable) < MIN_COMPARABLE_PAIRS:
        return False
    return int((comparable > 0).sum()) >= MIN_EPS_INCREASES
