"""Workflow blueprint describing lookup stages and their handlers."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, List, TYPE_CHECKING

from stock_valuation.workflows.nodes import (
    checklist,
    fetch_snapshots,
    narrative,
    peer_comparison,
    reconcile,
    valuation,
    writing,
)

if TYPE_CHECKING:
    from stock_valuation.workflows.context import WorkflowContext
    from stock_valuation.workflows.state import LookupState


@dataclass
class StageSpec:
    """Single LangGraph stage definition."""

    key: str
    description: str
    handler: Callable[["LookupState", "WorkflowContext"], "LookupState"]
    depends_on: List[str] = field(default_factory=list)


def build_default_stages() -> List[StageSpec]:
    """Return the ordered stages for the lookup workflow."""
    return [
        StageSpec(
            key="fetch_snapshots",
            description="Query FMP for profile, TTM metrics/ratios, quote, income history and growth (peers optional).",
            handler=fetch_snapshots.run,
        ),
        StageSpec(
            key="reconcile",
            description="Merge the snapshots into one FinancialRecord via declared fallback chains.",
            handler=reconcile.run,
            depends_on=["fetch_snapshots"],
        ),
        StageSpec(
            key="checklist",
            description="Evaluate the four-rule financial health checklist.",
            handler=checklist.run,
            depends_on=["reconcile"],
        ),
        StageSpec(
            key="peer_comparison",
            description="Build the peer table and sector averages (pandas).",
            handler=peer_comparison.run,
            depends_on=["reconcile"],
        ),
        StageSpec(
            key="valuation",
            description="Project five years of EPS and discount the exit value to an entry price.",
            handler=valuation.run,
            depends_on=["reconcile"],
        ),
        StageSpec(
            key="narrative",
            description="Optionally ask Gemini for a plain-language summary of financial health.",
            handler=narrative.run,
            depends_on=["reconcile"],
        ),
        StageSpec(
            key="writing",
            description="Render the Markdown valuation report from all upstream outputs.",
            handler=writing.run,
            depends_on=["checklist", "peer_comparison", "valuation", "narrative"],
        ),
    ]
