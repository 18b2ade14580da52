"""LangGraph node responsible for final Markdown assembly."""
from __future__ import annotations

from datetime import datetime, timezone

from jinja2 import TemplateError

from stock_valuation.domain.services.checklist import passed_count
from stock_valuation.workflows.context import WorkflowContext
from stock_valuation.workflows.state import LookupState


def run(state: LookupState, context: WorkflowContext) -> LookupState:
    logs = state.setdefault("logs", [])
    errors = state.setdefault("errors", [])
    record = state.get("record")
    if state.get("fatal_error") or record is None:
        return state

    logs.append("WritingAgent -> render Markdown output")
    items = state.get("checklist") or []
    render_context = {
        "ticker": state.get("ticker"),
        "report_date": state.get("report_date") or datetime.now(timezone.utc).date().isoformat(),
        "report_timestamp": datetime.now(timezone.utc).isoformat(timespec="seconds"),
        "record": record,
        "profile": record.profile,
        "checklist": items,
        "checklist_passed": passed_count(items),
        "comparison": state.get("comparison"),
        "assumptions": state.get("assumptions"),
        "valuation": state.get("valuation"),
        "valuation_error": state.get("valuation_error"),
        "narrative": state.get("narrative"),
        "historical_earnings": list(record.historical_earnings),
    }

    try:
        state["markdown_report"] = context.renderer.render(render_context)
    except TemplateError as exc:
        errors.append(f"Markdown render failed: {exc}")
    return state
