"""Thin wrapper around the Financial Modeling Prep stable REST API."""
from __future__ import annotations

import concurrent.futures
import logging
import time
from typing import Any, Dict, List, Optional

import httpx

from stock_valuation.domain.errors import NotFoundError, UpstreamFailure, ValuationAppError
from stock_valuation.domain.models.financials import SnapshotBundle

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://financialmodelingprep.com/stable"
HISTORY_PERIODS = 5

# Status codes worth another attempt; everything else fails fast.
_RETRYABLE_STATUS = {429, 500, 502, 503, 504}


class FMPClient:
    """Encapsulate FMP client initialization and the snapshot queries."""

    def __init__(
        self,
        api_key: Optional[str],
        *,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = 15.0,
        max_retries: int = 3,
        throttle_seconds: float = 0.5,
        proxy_url: Optional[str] = None,
        max_workers: int = 5,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        if not api_key:
            raise ValueError("FMP_API_KEY is required to contact Financial Modeling Prep.")

        client_kwargs: Dict[str, Any] = {
            "base_url": base_url.rstrip("/"),
            "timeout": httpx.Timeout(timeout, connect=10.0),
            "headers": {"Accept": "application/json"},
        }
        if transport is not None:
            client_kwargs["transport"] = transport
        elif proxy_url:
            client_kwargs["proxy"] = proxy_url

        self._api_key = api_key
        self._http_client = httpx.Client(**client_kwargs)
        self._max_retries = max(max_retries, 1)
        self._throttle_seconds = throttle_seconds
        self._max_workers = max_workers

    # ------------------
    # Public API helpers
    # ------------------
    def fetch_snapshots(self, ticker: str, *, include_peers: bool = False, peer_limit: int = 5) -> SnapshotBundle:
        """Gather every snapshot the reconciliation step needs for ``ticker``.

        The profile goes first so an unknown ticker fails fast with
        ``NotFoundError``. The remaining queries are independent and run in
        parallel; if any of them fails the whole lookup fails.
        """
        profile = self.fetch_profile(ticker)
        if not profile:
            raise NotFoundError(f'No data found for ticker "{ticker}".', {"ticker": ticker})

        queries = {
            "metrics": self.fetch_key_metrics_ttm,
            "ratios": self.fetch_ratios_ttm,
            "quote": self.fetch_quote,
            "income": self.fetch_income_statements,
            "growth": self.fetch_income_growth,
        }
        results = self._gather(ticker, queries)

        peers: List[Dict[str, Any]] = []
        if include_peers:
            peers = self.fetch_peers_best_effort(ticker, limit=peer_limit)

        return SnapshotBundle(ticker=ticker, profile=profile, peers=peers, **results)

    def fetch_profile(self, ticker: str) -> List[Dict[str, Any]]:
        try:
            return self._get("profile", symbol=ticker)
        except UpstreamFailure as exc:
            raise UpstreamFailure("Could not fetch profile data. Check ticker.", exc.details) from exc

    def fetch_key_metrics_ttm(self, ticker: str) -> List[Dict[str, Any]]:
        return self._get("key-metrics-ttm", symbol=ticker)

    def fetch_ratios_ttm(self, ticker: str) -> List[Dict[str, Any]]:
        return self._get("ratios-ttm", symbol=ticker)

    def fetch_quote(self, ticker: str) -> List[Dict[str, Any]]:
        return self._get("quote", symbol=ticker)

    def fetch_income_statements(self, ticker: str, limit: int = HISTORY_PERIODS) -> List[Dict[str, Any]]:
        return self._get("income-statement", symbol=ticker, limit=limit)

    def fetch_income_growth(self, ticker: str) -> List[Dict[str, Any]]:
        return self._get("income-statement-growth", symbol=ticker)

    def fetch_peers(self, ticker: str, *, limit: int = 5) -> List[Dict[str, Any]]:
        """Peer rows with market cap from ``stock-peers`` and P/E from each peer's TTM ratios."""
        rows = [row for row in self._get("stock-peers", symbol=ticker) if row.get("symbol")][:limit]
        if not rows:
            return []
        queries = {row["symbol"]: self.fetch_ratios_ttm for row in rows}
        ratios = self._gather_by_symbol(queries)
        enriched = []
        for row in rows:
            ratio_rows = ratios.get(row["symbol"]) or [{}]
            enriched.append({**ratio_rows[0], **row})
        return enriched

    def fetch_peers_best_effort(self, ticker: str, *, limit: int = 5) -> List[Dict[str, Any]]:
        """Peers are optional: failures are logged and yield an empty table."""
        try:
            return self.fetch_peers(ticker, limit=limit)
        except ValuationAppError as exc:
            logger.warning("Peer lookup for %s unavailable: %s", ticker, exc.message)
            return []

    def close(self) -> None:
        """Release the underlying HTTP session."""
        self._http_client.close()

    # -----------------
    # Internal helpers
    # -----------------
    def _gather(self, ticker: str, queries: Dict[str, Any]) -> Dict[str, List[Dict[str, Any]]]:
        with concurrent.futures.ThreadPoolExecutor(max_workers=self._max_workers) as executor:
            futures = {executor.submit(func, ticker): name for name, func in queries.items()}
            results: Dict[str, List[Dict[str, Any]]] = {}
            try:
                for fut in concurrent.futures.as_completed(futures):
                    results[futures[fut]] = fut.result()
            except ValuationAppError:
                for pending in futures:
                    pending.cancel()
                raise
        return results

    def _gather_by_symbol(self, queries: Dict[str, Any]) -> Dict[str, List[Dict[str, Any]]]:
        with concurrent.futures.ThreadPoolExecutor(max_workers=self._max_workers) as executor:
            futures = {executor.submit(func, symbol): symbol for symbol, func in queries.items()}
            return {futures[fut]: fut.result() for fut in concurrent.futures.as_completed(futures)}

    def _get(self, endpoint: str, **params: Any) -> List[Dict[str, Any]]:
        params["apikey"] = self._api_key
        response = self._call_with_retry(endpoint, params)
        try:
            payload = response.json()
        except ValueError as exc:
            raise UpstreamFailure(f"FMP returned invalid JSON for {endpoint}.", {"endpoint": endpoint}) from exc
        return _as_rows(endpoint, payload)

    def _call_with_retry(self, endpoint: str, params: Dict[str, Any]) -> httpx.Response:
        last_error: Optional[str] = None
        for attempt in range(1, self._max_retries + 1):
            try:
                response = self._http_client.get(f"/{endpoint}", params=params)
            except httpx.TransportError as exc:
                last_error = f"{exc.__class__.__name__}: {exc}"
            else:
                if response.is_success:
                    return response
                last_error = f"HTTP {response.status_code}"
                if response.status_code not in _RETRYABLE_STATUS:
                    break
            if attempt < self._max_retries:
                logger.debug("FMP %s attempt %d failed (%s); retrying", endpoint, attempt, last_error)
                time.sleep(self._throttle_seconds * attempt)
        logger.error("FMP request for %s failed: %s", endpoint, last_error)
        raise UpstreamFailure(
            "Failed to fetch some stock data.",
            {"endpoint": endpoint, "symbol": params.get("symbol"), "reason": last_error},
        )


def _as_rows(endpoint: str, payload: Any) -> List[Dict[str, Any]]:
    """FMP answers with a list of rows; a dict carrying an error message is a failure."""
    if isinstance(payload, list):
        return [row for row in payload if isinstance(row, dict)]
    if isinstance(payload, dict):
        message = payload.get("Error Message") or payload.get("error")
        if message:
            raise UpstreamFailure(f"FMP rejected the {endpoint} request: {message}", {"endpoint": endpoint})
        return [payload] if payload else []
    if payload is None:
        return []
    raise UpstreamFailure(f"Unexpected payload type from {endpoint}.", {"endpoint": endpoint})
