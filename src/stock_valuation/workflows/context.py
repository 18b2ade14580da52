"""Workflow dependency container."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from config import Config
from stock_valuation.domain.services.valuation import DcfEngine
from stock_valuation.infrastructure.data_providers.fmp_client import FMPClient
from stock_valuation.infrastructure.llm.gemini_client import GeminiClient
from stock_valuation.reports.renderer import ReportRenderer


@dataclass
class WorkflowContext:
    """Holds heavy-weight dependencies shared by LangGraph nodes."""

    config: Config
    market_data: Optional[FMPClient]
    gemini: Optional[GeminiClient]
    dcf_engine: DcfEngine
    renderer: ReportRenderer

    def close(self) -> None:
        """Release any dependencies that need explicit cleanup."""
        if self.market_data is not None:
            self.market_data.close()
        if self.gemini is not None:
            self.gemini.close()
