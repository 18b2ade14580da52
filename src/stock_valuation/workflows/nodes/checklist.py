"""LangGraph node evaluating the financial health checklist."""
from __future__ import annotations

from stock_valuation.domain.services import checklist as checklist_service
from stock_valuation.workflows.context import WorkflowContext
from stock_valuation.workflows.state import LookupState


def run(state: LookupState, context: WorkflowContext) -> LookupState:
    record = state.get("record")
    if state.get("fatal_error") or record is None:
        return state
    items = checklist_service.evaluate(record)
    state["checklist"] = items
    state.setdefault("logs", []).append(
        f"Checklist -> {checklist_service.passed_count(items)}/{len(items)} checks passed"
    )
    return state
