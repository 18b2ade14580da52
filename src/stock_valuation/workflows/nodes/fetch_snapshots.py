"""LangGraph node that pulls the raw FMP snapshots for one ticker."""
from __future__ import annotations

from stock_valuation.domain.errors import UpstreamFailure, ValuationAppError
from stock_valuation.workflows.context import WorkflowContext
from stock_valuation.workflows.state import LookupState, record_fatal


def run(state: LookupState, context: WorkflowContext) -> LookupState:
    logs = state.setdefault("logs", [])
    ticker = state["ticker"]

    if context.market_data is None:
        logs.append("FetchSnapshots -> aborted (FMP client not configured)")
        return record_fatal(
            state, UpstreamFailure("FMP_API_KEY is not configured; cannot fetch stock data.", {"ticker": ticker})
        )

    include_peers = state.get("include_peers", context.config.include_peers)
    logs.append(f"FetchSnapshots -> query FMP for {ticker} (peers {'on' if include_peers else 'off'})")
    try:
        bundle = context.market_data.fetch_snapshots(
            ticker,
            include_peers=include_peers,
            peer_limit=context.config.peer_limit,
        )
    except ValuationAppError as exc:
        logs.append(f"FetchSnapshots -> failed: {exc.message}")
        return record_fatal(state, exc)

    state["snapshots"] = bundle
    return state
