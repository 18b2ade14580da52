"""LangGraph workflow assembly for the single-ticker lookup pipeline."""
from __future__ import annotations

import json
import logging
from dataclasses import asdict, is_dataclass
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from langgraph.graph import END, StateGraph

from config import Config
from stock_valuation.domain.models.financials import ExitModel
from stock_valuation.domain.services.valuation import DcfEngine
from stock_valuation.infrastructure.data_providers.fmp_client import FMPClient
from stock_valuation.infrastructure.llm.gemini_client import GeminiClient
from stock_valuation.reports.renderer import ReportRenderer
from stock_valuation.workflows import context as context_module
from stock_valuation.workflows.blueprint import StageSpec, build_default_stages
from stock_valuation.workflows.session import DashboardSession
from stock_valuation.workflows.state import LookupState

logger = logging.getLogger(__name__)


class ValuationWorkflow:
    """Compose LangGraph nodes into a runnable lookup workflow."""

    def __init__(
        self,
        config: Config,
        *,
        market_data: Optional[FMPClient] = None,
        gemini: Optional[GeminiClient] = None,
    ) -> None:
        self._config = config
        self._context = self._build_context(market_data, gemini)
        self._session = DashboardSession(self._context.dcf_engine)
        self._stages: List[StageSpec] = build_default_stages()
        self._graph = self._build_graph()

    @property
    def context(self) -> context_module.WorkflowContext:
        return self._context

    @property
    def session(self) -> DashboardSession:
        """The current lookup as the dashboard displays it."""
        return self._session

    def _build_context(
        self, market_data: Optional[FMPClient], gemini: Optional[GeminiClient]
    ) -> context_module.WorkflowContext:
        if market_data is None:
            try:
                market_data = FMPClient(
                    self._config.fmp_api_key,
                    base_url=self._config.fmp_base_url,
                    timeout=self._config.http_timeout,
                    max_retries=self._config.max_retries,
                    proxy_url=self._config.proxy_url,
                )
            except ValueError:
                logger.warning("FMP_API_KEY not set; lookups will fail until it is configured.")
                market_data = None

        if gemini is None:
            try:
                gemini = GeminiClient(
                    api_key=self._config.poe_api_key or "",
                    model=self._config.gemini_model,
                    proxy_url=self._config.proxy_url,
                    default_thinking_budget=self._config.poe_thinking_budget,
                )
            except ValueError:
                gemini = None

        return context_module.WorkflowContext(
            config=self._config,
            market_data=market_data,
            gemini=gemini,
            dcf_engine=DcfEngine(),
            renderer=ReportRenderer(),
        )

    def _build_graph(self):
        builder = StateGraph(dict)

        if not self._stages:
            raise RuntimeError("Workflow blueprint is empty; cannot build LangGraph.")

        for stage in self._stages:
            builder.add_node(stage.key, self._wrap(stage.handler))

        # Serialize execution in declared stage order to avoid concurrent state writes.
        builder.set_entry_point(self._stages[0].key)
        for current, nxt in zip(self._stages, self._stages[1:]):
            builder.add_edge(current.key, nxt.key)
        builder.add_edge(self._stages[-1].key, END)

        return builder.compile(checkpointer=None)

    def _wrap(self, func: Callable[[LookupState, context_module.WorkflowContext], LookupState]):
        def wrapper(state: Dict[str, Any]) -> Dict[str, Any]:
            return func(state, self._context)

        return wrapper

    def run(
        self,
        ticker: str,
        *,
        assumption_overrides: Optional[Dict[str, float]] = None,
        exit_model: ExitModel = ExitModel.TERMINAL_MULTIPLE,
        include_peers: Optional[bool] = None,
        analyze: bool = False,
    ) -> LookupState:
        """Execute the workflow for a single ticker.

        Raises the recorded error when the lookup itself failed (unknown
        ticker, failed upstream query); valuation and narrative problems are
        left in ``state["errors"]``. The outcome is also published to
        :attr:`session`, where a newer lookup supersedes this one.
        """
        ticket = self._session.begin_lookup(ticker)
        initial_state: LookupState = {
            "ticker": ticket.ticker,
            "report_date": datetime.now(timezone.utc).date().isoformat(),
            "exit_model": ExitModel(exit_model).value,
            "include_peers": self._config.include_peers if include_peers is None else include_peers,
            "analyze": analyze,
            "logs": [],
            "errors": [],
            "extras": {},
            "stage_order": [stage.key for stage in self._stages],
        }
        if assumption_overrides:
            initial_state["assumption_overrides"] = assumption_overrides
        try:
            result: LookupState = self._graph.invoke(initial_state)
        except Exception as exc:
            self._session.fail_lookup(ticket, exc)
            raise

        fatal = (result.get("extras") or {}).get("fatal_exception")
        if fatal is not None:
            self._session.fail_lookup(ticket, fatal)
            raise fatal
        self._session.complete_lookup(
            ticket,
            result["record"],
            assumptions=result.get("assumptions"),
            exit_model=ExitModel(exit_model),
        )
        if result.get("narrative"):
            self._session.attach_narrative(ticket, result["narrative"])
        return result  # type: ignore[return-value]

    def persist_state(self, state: LookupState, path: Path) -> None:
        """Serialize the workflow state to disk for debugging or auditing."""
        path.parent.mkdir(parents=True, exist_ok=True)
        payload = {key: value for key, value in state.items() if key not in {"extras", "snapshots"}}
        text = json.dumps(payload, default=_json_serializer, indent=2, ensure_ascii=False)
        path.write_text(text, encoding="utf-8")

    def persist_markdown(self, markdown: str, path: Path) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(markdown, encoding="utf-8")

    def describe_stages(self) -> List[str]:
        """Return human-readable workflow stage descriptions."""
        return [f"{stage.key}: {stage.description}" for stage in self._stages]

    def close(self) -> None:
        self._context.close()


def _json_serializer(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if hasattr(value, "to_dict"):
        return value.to_dict()
    if is_dataclass(value):
        return asdict(value)
    if hasattr(value, "tolist"):
        return value.tolist()
    return str(value)
