"""Convenience re-exports for workflow nodes."""
from __future__ import annotations

from . import (
    checklist,
    fetch_snapshots,
    llm_clean,
    narrative,
    peer_comparison,
    reconcile,
    valuation,
    writing,
)

__all__ = [
    "checklist",
    "fetch_snapshots",
    "llm_clean",
    "narrative",
    "peer_comparison",
    "reconcile",
    "valuation",
    "writing",
]
