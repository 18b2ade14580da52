"""LangGraph node merging raw snapshots into the canonical record."""
from __future__ import annotations

from stock_valuation.domain.errors import ValuationAppError
from stock_valuation.domain.services.reconciliation import reconcile_bundle
from stock_valuation.workflows.context import WorkflowContext
from stock_valuation.workflows.state import LookupState, record_fatal


def run(state: LookupState, context: WorkflowContext) -> LookupState:
    logs = state.setdefault("logs", [])
    if state.get("fatal_error"):
        return state
    bundle = state.get("snapshots")
    if bundle is None:
        state.setdefault("errors", []).append("Reconcile skipped because no snapshots were fetched.")
        return state

    try:
        record = reconcile_bundle(bundle)
    except ValuationAppError as exc:
        return record_fatal(state, exc)

    state["record"] = record
    logs.append(
        f"Reconcile -> {record.symbol}: {len(record.historical_earnings)} EPS points, {len(record.peers)} peers"
    )
    return state
