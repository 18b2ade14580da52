"""Interactive dashboard session: one current record, last request wins."""
from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import List, Optional

from stock_valuation.domain.errors import DegenerateValuationError, ValuationAppError
from stock_valuation.domain.models.financials import (
    ChecklistItem,
    ExitModel,
    FinancialRecord,
    PeerComparison,
    ValuationAssumptions,
    ValuationResult,
)
from stock_valuation.domain.services import checklist, peers
from stock_valuation.domain.services.reconciliation import normalize_ticker
from stock_valuation.domain.services.valuation import DcfEngine

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LookupTicket:
    """Handle issued for one lookup; only the newest ticket may publish results."""

    ticker: str
    generation: int


@dataclass(frozen=True)
class SessionSnapshot:
    """Read-only copy of what the dashboard currently displays."""

    ticker: Optional[str]
    loading: bool
    record: Optional[FinancialRecord]
    assumptions: Optional[ValuationAssumptions]
    valuation: Optional[ValuationResult]
    valuation_error: Optional[str]
    checklist: List[ChecklistItem]
    comparison: Optional[PeerComparison]
    narrative: Optional[str]
    error: Optional[str]


class DashboardSession:
    """Holds the single current lookup and recomputes the valuation on demand.

    A new lookup clears whatever was displayed and supersedes any lookup still
    in flight; a response arriving for a superseded ticket is dropped.
    """

    def __init__(self, engine: Optional[DcfEngine] = None, *, exit_model: ExitModel = ExitModel.TERMINAL_MULTIPLE) -> None:
        self._engine = engine or DcfEngine()
        self._exit_model = ExitModel(exit_model)
        self._lock = threading.Lock()
        self._generation = 0
        self._clear(ticker=None, loading=False)

    # -----------------
    # Lookup lifecycle
    # -----------------
    def begin_lookup(self, raw_ticker: str) -> LookupTicket:
        ticker = normalize_ticker(raw_ticker)
        with self._lock:
            self._generation += 1
            self._clear(ticker=ticker, loading=True)
            ticket = LookupTicket(ticker=ticker, generation=self._generation)
        logger.debug("Lookup %s started (generation %d)", ticker, ticket.generation)
        return ticket

    def is_current(self, ticket: LookupTicket) -> bool:
        with self._lock:
            return ticket.generation == self._generation

    def complete_lookup(
        self,
        ticket: LookupTicket,
        record: FinancialRecord,
        *,
        assumptions: Optional[ValuationAssumptions] = None,
        exit_model: Optional[ExitModel] = None,
    ) -> bool:
        """Publish ``record`` if ``ticket`` is still current; returns whether it was applied."""
        with self._lock:
            if ticket.generation != self._generation:
                logger.debug("Discarding stale lookup for %s", ticket.ticker)
                return False
            if exit_model is not None:
                self._exit_model = ExitModel(exit_model)
            self._record = record
            self._assumptions = assumptions or ValuationAssumptions.from_record(record)
            self._checklist = checklist.evaluate(record)
            self._comparison = peers.compare_record(record)
            self._loading = False
            self._error = None
            self._recompute()
        return True

    def fail_lookup(self, ticket: LookupTicket, error: BaseException) -> bool:
        """Record a fatal lookup error; the previous record stays cleared."""
        with self._lock:
            if ticket.generation != self._generation:
                return False
            self._loading = False
            self._error = error.message if isinstance(error, ValuationAppError) else str(error)
        return True

    def update_assumptions(self, assumptions: ValuationAssumptions) -> Optional[ValuationResult]:
        with self._lock:
            self._assumptions = assumptions
            self._recompute()
            return self._valuation

    def set_exit_model(self, exit_model: ExitModel) -> Optional[ValuationResult]:
        with self._lock:
            self._exit_model = ExitModel(exit_model)
            self._recompute()
            return self._valuation

    def attach_narrative(self, ticket: LookupTicket, text: str) -> bool:
        with self._lock:
            if ticket.generation != self._generation or self._record is None:
                return False
            self._narrative = text
        return True

    def reset(self) -> None:
        """Clear the display and invalidate any lookup still in flight."""
        with self._lock:
            self._generation += 1
            self._clear(ticker=None, loading=False)

    def snapshot(self) -> SessionSnapshot:
        with self._lock:
            return SessionSnapshot(
                ticker=self._ticker,
                loading=self._loading,
                record=self._record,
                assumptions=self._assumptions,
                valuation=self._valuation,
                valuation_error=self._valuation_error,
                checklist=list(self._checklist),
                comparison=self._comparison,
                narrative=self._narrative,
                error=self._error,
            )

    # -----------------
    # Internal helpers
    # -----------------
    def _clear(self, *, ticker: Optional[str], loading: bool) -> None:
        self._ticker = ticker
        self._loading = loading
        self._record: Optional[FinancialRecord] = None
        self._assumptions: Optional[ValuationAssumptions] = None
        self._valuation: Optional[ValuationResult] = None
        self._valuation_error: Optional[str] = None
        self._checklist: List[ChecklistItem] = []
        self._comparison: Optional[PeerComparison] = None
        self._narrative: Optional[str] = None
        self._error: Optional[str] = None

    def _recompute(self) -> None:
        # Caller holds the lock.
        self._valuation = None
        self._valuation_error = None
        if self._record is None or self._assumptions is None:
            return
        try:
            self._valuation = self._engine.project(
                self._record, self._assumptions, exit_model=self._exit_model
            )
        except DegenerateValuationError as exc:
            self._valuation_error = exc.message
