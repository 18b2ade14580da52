from __future__ import annotations

import httpx
import pytest

from stock_valuation.domain.errors import NotFoundError, UpstreamFailure
from stock_valuation.infrastructure.data_providers.fmp_client import FMPClient

PAYLOADS = {
    "profile": [{"symbol": "AAPL", "companyName": "Apple Inc.", "price": 190.0, "mktCap": 3.0e12}],
    "key-metrics-ttm": [{"epsTTM": 6.1}],
    "ratios-ttm": [{"priceToEarningsRatioTTM": 31.0}],
    "quote": [{"symbol": "AAPL", "pe": 31.2, "eps": 6.08}],
    "income-statement": [{"date": "2024-09-28", "eps": 6.11}, {"date": "2023-09-30", "eps": 6.16}],
    "income-statement-growth": [{"growthEPS": -0.008}],
    "stock-peers": [{"symbol": "MSFT", "mktCap": 3.1e12}, {"symbol": "GOOGL", "mktCap": 2.0e12}],
}


def make_client(handler, **kwargs) -> FMPClient:
    kwargs.setdefault("max_retries", 2)
    return FMPClient(
        "test-key",
        base_url="https://fmp.test/stable",
        throttle_seconds=0,
        transport=httpx.MockTransport(handler),
        **kwargs,
    )


def endpoint_of(request: httpx.Request) -> str:
    return request.url.path.rsplit("/", 1)[-1]


def default_handler(request: httpx.Request) -> httpx.Response:
    return httpx.Response(200, json=PAYLOADS.get(endpoint_of(request), []))


def test_fetch_snapshots_collects_every_query():
    seen = []

    def handler(request):
        seen.append((endpoint_of(request), dict(request.url.params)))
        return default_handler(request)

    client = make_client(handler)
    bundle = client.fetch_snapshots("AAPL")
    client.close()

    assert bundle.ticker == "AAPL"
    assert bundle.profile[0]["companyName"] == "Apple Inc."
    assert bundle.ratios == PAYLOADS["ratios-ttm"]
    assert bundle.growth == PAYLOADS["income-statement-growth"]
    assert bundle.peers == []
    endpoints = {name for name, _ in seen}
    assert "stock-peers" not in endpoints
    assert all(params["apikey"] == "test-key" and params["symbol"] == "AAPL" for _, params in seen)
    income_params = next(params for name, params in seen if name == "income-statement")
    assert income_params["limit"] == "5"


def test_empty_profile_is_not_found():
    def handler(request):
        if endpoint_of(request) == "profile":
            return httpx.Response(200, json=[])
        return default_handler(request)

    with pytest.raises(NotFoundError):
        make_client(handler).fetch_snapshots("NOPE")


def test_server_errors_are_retried_then_fail_the_lookup():
    attempts = {"count": 0}

    def handler(request):
        if endpoint_of(request) == "ratios-ttm":
            attempts["count"] += 1
            return httpx.Response(503)
        return default_handler(request)

    with pytest.raises(UpstreamFailure) as excinfo:
        make_client(handler, max_retries=3).fetch_snapshots("AAPL")
    assert attempts["count"] == 3
    assert excinfo.value.details["endpoint"] == "ratios-ttm"


def test_client_errors_fail_fast():
    attempts = {"count": 0}

    def handler(request):
        attempts["count"] += 1
        return httpx.Response(401, json={"Error Message": "Invalid API KEY."})

    with pytest.raises(UpstreamFailure) as excinfo:
        make_client(handler, max_retries=3).fetch_profile("AAPL")
    assert attempts["count"] == 1
    assert excinfo.value.message == "Could not fetch profile data. Check ticker."


def test_error_payload_with_ok_status_is_a_failure():
    def handler(request):
        return httpx.Response(200, json={"Error Message": "Limit Reach"})

    with pytest.raises(UpstreamFailure):
        make_client(handler).fetch_quote("AAPL")


def test_transport_errors_become_upstream_failures():
    def handler(request):
        raise httpx.ConnectError("boom", request=request)

    with pytest.raises(UpstreamFailure):
        make_client(handler).fetch_key_metrics_ttm("AAPL")


def test_invalid_json_is_an_upstream_failure():
    def handler(request):
        return httpx.Response(200, content=b"<html>oops</html>")

    with pytest.raises(UpstreamFailure):
        make_client(handler).fetch_quote("AAPL")


def test_peers_are_enriched_with_their_ratios():
    def handler(request):
        if endpoint_of(request) == "ratios-ttm":
            symbol = request.url.params["symbol"]
            return httpx.Response(200, json=[{"priceToEarningsRatioTTM": 35.0 if symbol == "MSFT" else 22.0}])
        return default_handler(request)

    bundle = make_client(handler).fetch_snapshots("AAPL", include_peers=True, peer_limit=5)
    assert [row["symbol"] for row in bundle.peers] == ["MSFT", "GOOGL"]
    assert bundle.peers[0]["priceToEarningsRatioTTM"] == 35.0
    assert bundle.peers[1]["mktCap"] == 2.0e12


def test_peer_failure_degrades_to_empty_list():
    def handler(request):
        if endpoint_of(request) == "stock-peers":
            return httpx.Response(500)
        return default_handler(request)

    bundle = make_client(handler).fetch_snapshots("AAPL", include_peers=True)
    assert bundle.peers == []
    assert bundle.metrics == PAYLOADS["key-metrics-ttm"]


def test_missing_api_key_is_rejected():
    with pytest.raises(ValueError):
        FMPClient(None)
