from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal

import httpx
import pytest

from src.price_engine.errors import UpstreamError
from src.price_engine.services.market_data import CoinGeckoClient


def _client(handler, sleeps: list | None = None, **kwargs) -> CoinGeckoClient:
    recorded = sleeps if sleeps is not None else []
    return CoinGeckoClient(
        base_url="https://api.test/v3",
        request_delay=2.0,
        sleep=recorded.append,
        transport=httpx.MockTransport(handler),
        **kwargs,
    )


def test_fetch_window_parses_and_sorts_prices() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(
            200,
            json={
                "prices": [
                    [1709254800000, 62000.5],
                    [1709251200000, 61000],
                    [1709258400000, None],
                    [1709262000000, -1],
                    "garbage",
                ],
                "market_caps": [[1709251200000, 1.2e12]],
                "total_volumes": [],
            },
        )

    sleeps: list[float] = []
    with _client(handler, sleeps) as client:
        chart = client.fetch_window("bitcoin", "USD", 30)

    assert seen[0].url.path == "/v3/coins/bitcoin/market_chart"
    assert seen[0].url.params["vs_currency"] == "usd"
    assert seen[0].url.params["days"] == "30"
    assert sleeps == [2.0]
    assert chart.currency_code == "usd"
    assert [point.price for point in chart.prices] == [Decimal("61000"), Decimal("62000.5")]
    assert chart.prices[0].timestamp == datetime(2024, 3, 1, tzinfo=timezone.utc)
    assert len(chart.market_caps) == 1


def test_every_chart_request_is_throttled() -> None:
    sleeps: list[float] = []
    client = _client(lambda request: httpx.Response(200, json={"prices": []}), sleeps)

    client.fetch_window("bitcoin", "usd", 1)
    client.fetch_range("bitcoin", "usd", 1700000000, 1700086400)
    client.fetch_window("ethereum", "eur", 1)
    client.close()

    assert sleeps == [2.0, 2.0, 2.0]


def test_fetch_range_sends_unix_seconds() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"prices": [[1700000000000, 1]]})

    client = _client(handler)
    chart = client.fetch_range("bitcoin", "try", 1700000000, 1700086400)

    assert seen[0].url.path == "/v3/coins/bitcoin/market_chart/range"
    assert seen[0].url.params["from"] == "1700000000"
    assert seen[0].url.params["to"] == "1700086400"
    assert len(chart.prices) == 1


def test_api_key_is_sent_as_header() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"prices": []})

    _client(handler, api_key="demo-key").fetch_window("bitcoin", "usd", 1)

    assert seen[0].headers["x-cg-demo-api-key"] == "demo-key"


def test_error_status_raises_upstream_error() -> None:
    client = _client(lambda request: httpx.Response(429, json={"error": "rate limited"}))

    with pytest.raises(UpstreamError) as exc_info:
        client.fetch_window("bitcoin", "usd", 30)

    assert exc_info.value.status_code == 429
    assert exc_info.value.coin_id == "bitcoin"
    assert exc_info.value.currency_code == "usd"


def test_network_failure_raises_upstream_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(UpstreamError):
        _client(handler).fetch_window("bitcoin", "usd", 30)


def test_missing_price_series_raises_upstream_error() -> None:
    client = _client(lambda request: httpx.Response(200, json={"error": "coin not found"}))

    with pytest.raises(UpstreamError):
        client.fetch_window("nope", "usd", 30)


def test_fetch_detail_is_not_throttled() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/v3/coins/bitcoin"
        return httpx.Response(
            200,
            json={
                "id": "bitcoin",
                "symbol": "btc",
                "name": "Bitcoin",
                "description": {"en": "Digital gold."},
                "image": {"large": "https://img.test/btc.png"},
                "links": {"homepage": ["", "https://bitcoin.org"]},
            },
        )

    sleeps: list[float] = []
    detail = _client(handler, sleeps).fetch_detail("bitcoin")

    assert sleeps == []
    assert detail.name == "Bitcoin"
    assert detail.description == "Digital gold."
    assert detail.image_url == "https://img.test/btc.png"
    assert detail.homepage_url == "https://bitcoin.org"


def test_fetch_detail_tolerates_missing_sections() -> None:
    detail = _client(lambda request: httpx.Response(200, json={"id": "x"})).fetch_detail("x")

    assert detail.description is None
    assert detail.image_url is None
    assert detail.homepage_url is None
