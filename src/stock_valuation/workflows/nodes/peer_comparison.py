"""LangGraph node building the peer comparison table."""
from __future__ import annotations

from stock_valuation.domain.services import peers
from stock_valuation.workflows.context import WorkflowContext
from stock_valuation.workflows.state import LookupState


def run(state: LookupState, context: WorkflowContext) -> LookupState:
    logs = state.setdefault("logs", [])
    record = state.get("record")
    if state.get("fatal_error") or record is None:
        return state

    comparison = peers.compare_record(record)
    state["comparison"] = comparison
    if comparison.sector_average.available:
        logs.append(f"PeerComparison -> sector average over {comparison.peer_count} peers")
    else:
        logs.append("PeerComparison -> sector average unavailable")
    return state
