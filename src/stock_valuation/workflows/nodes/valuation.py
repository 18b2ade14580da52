"""LangGraph node for the five-year discounted-earnings valuation."""
from __future__ import annotations

from stock_valuation.domain.errors import DegenerateValuationError
from stock_valuation.domain.models.financials import ExitModel, ValuationAssumptions
from stock_valuation.workflows.context import WorkflowContext
from stock_valuation.workflows.state import LookupState


def run(state: LookupState, context: WorkflowContext) -> LookupState:
    logs = state.setdefault("logs", [])
    errors = state.setdefault("errors", [])
    record = state.get("record")
    if state.get("fatal_error") or record is None:
        return state

    overrides = state.get("assumption_overrides") or {}
    assumptions = ValuationAssumptions.from_record(record, **overrides)
    exit_model = ExitModel(state.get("exit_model") or ExitModel.TERMINAL_MULTIPLE)
    state["assumptions"] = assumptions
    state["valuation"] = None
    state["valuation_error"] = None

    logs.append(
        f"Valuation -> {exit_model.value} exit, growth {assumptions.eps_growth_rate}%, "
        f"discount {assumptions.discount_rate}%"
    )
    try:
        result = context.dcf_engine.project(record, assumptions, exit_model=exit_model)
    except DegenerateValuationError as exc:
        # Local failure: the record stays usable.
        state["valuation_error"] = exc.message
        errors.append(f"Valuation failed: {exc.message}")
        return state

    if result is None:
        state["valuation_error"] = "Current EPS is zero or unavailable; no projection."
        logs.append("Valuation -> skipped (no usable EPS)")
        return state

    state["valuation"] = result
    return state
