"""Workflow state definitions shared by LangGraph nodes."""
from __future__ import annotations

from typing import Any, Dict, List, Optional, TypedDict

from stock_valuation.domain.errors import describe_error
from stock_valuation.domain.models.financials import (
    ChecklistItem,
    FinancialRecord,
    PeerComparison,
    SnapshotBundle,
    ValuationAssumptions,
    ValuationResult,
)


class LookupState(TypedDict, total=False):
    ticker: str
    report_date: str
    exit_model: str
    assumption_overrides: Dict[str, float]
    include_peers: bool
    analyze: bool

    snapshots: Optional[SnapshotBundle]
    record: Optional[FinancialRecord]
    checklist: Optional[List[ChecklistItem]]
    comparison: Optional[PeerComparison]
    assumptions: Optional[ValuationAssumptions]
    valuation: Optional[ValuationResult]
    valuation_error: Optional[str]
    narrative: Optional[str]
    markdown_report: Optional[str]
    stage_order: List[str]

    # Set when the lookup itself failed; later stages skip.
    fatal_error: Optional[Dict[str, Any]]

    logs: List[str]
    errors: List[str]

    extras: Dict[str, Any]


def record_fatal(state: LookupState, exc: BaseException) -> LookupState:
    """Mark the lookup as failed; downstream stages see ``fatal_error`` and skip."""
    state.setdefault("errors", []).append(str(exc))
    state["fatal_error"] = describe_error(exc)
    state.setdefault("extras", {})["fatal_exception"] = exc
    return state
