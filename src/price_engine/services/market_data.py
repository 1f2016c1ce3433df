from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Any, Callable, Protocol
import logging
import time

import httpx

from src.price_engine.errors import UpstreamError
from src.utils.helper import from_unix_ms, to_price
from src.utils.rate_limiter import RequestThrottle

logger = logging.getLogger("cryptodash.price_engine.market_data")

DEFAULT_BASE_URL = "https://api.coingecko.com/api/v3"
DEFAULT_TIMEOUT_SEC = 30.0
# Free tier: 30 requests/minute -> one request every 2 seconds.
DEFAULT_REQUEST_DELAY_SEC = 2.0


@dataclass(frozen=True)
class PricePoint:
    """Single (timestamp, price) observation from the market chart."""
    timestamp: datetime
    price: Decimal


@dataclass(frozen=True)
class MarketChart:
    """Price history for one coin/currency pair.

    market_caps and total_volumes are kept as raw (timestamp, value) pairs;
    ingestion only consumes prices.
    """
    coin_id: str
    currency_code: str
    prices: list[PricePoint]
    market_caps: list[tuple[datetime, float]] = field(default_factory=list)
    total_volumes: list[tuple[datetime, float]] = field(default_factory=list)


@dataclass(frozen=True)
class CoinDetail:
    """Descriptive metadata for a single coin."""
    id: str
    symbol: str
    name: str
    description: str | None
    image_url: str | None
    homepage_url: str | None


class MarketDataClient(Protocol):
    """Source of historical prices (CoinGecko, fakes in tests)."""

    def fetch_window(self, coin_id: str, currency_code: str, days: int) -> MarketChart:
        raise NotImplementedError

    def fetch_range(
        self,
        coin_id: str,
        currency_code: str,
        from_unix: int,
        to_unix: int,
    ) -> MarketChart:
        raise NotImplementedError

    def fetch_detail(self, coin_id: str) -> CoinDetail:
        raise NotImplementedError


class CoinGeckoClient(MarketDataClient):
    """CoinGecko-backed market data client (httpx).

    Each chart request is throttled by a fixed delay and covers exactly one
    coin/currency pair, since the upstream API is per-coin.
    """

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = DEFAULT_TIMEOUT_SEC,
        request_delay: float = DEFAULT_REQUEST_DELAY_SEC,
        sleep: Callable[[float], None] = time.sleep,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        headers = {"accept": "application/json"}
        if api_key:
            headers["x-cg-demo-api-key"] = api_key
        self._http = httpx.Client(
            base_url=base_url.rstrip("/"),
            headers=headers,
            timeout=httpx.Timeout(timeout),
            transport=transport,
        )
        self._throttle = RequestThrottle(request_delay, sleep=sleep)

    def __enter__(self) -> CoinGeckoClient:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def close(self) -> None:
        self._http.close()

    def fetch_window(self, coin_id: str, currency_code: str, days: int) -> MarketChart:
        """Trailing `days` of history. CoinGecko picks the resolution:
        ~5 minute points for 1 day, hourly up to 90 days, daily beyond."""
        self._throttle.wait()
        payload = self._get_json(
            f"/coins/{coin_id}/market_chart",
            params={"vs_currency": currency_code.lower(), "days": days},
            coin_id=coin_id,
            currency_code=currency_code,
        )
        chart = _parse_market_chart(payload, coin_id, currency_code)
        logger.info(
            "Fetched %d price points for %s/%s (%d days)",
            len(chart.prices),
            coin_id,
            currency_code.upper(),
            days,
        )
        return chart

    def fetch_range(
        self,
        coin_id: str,
        currency_code: str,
        from_unix: int,
        to_unix: int,
    ) -> MarketChart:
        """History between two unix timestamps (seconds, not milliseconds)."""
        self._throttle.wait()
        payload = self._get_json(
            f"/coins/{coin_id}/market_chart/range",
            params={
                "vs_currency": currency_code.lower(),
                "from": int(from_unix),
                "to": int(to_unix),
            },
            coin_id=coin_id,
            currency_code=currency_code,
        )
        chart = _parse_market_chart(payload, coin_id, currency_code)
        logger.info(
            "Fetched %d price points for %s/%s (range %d-%d)",
            len(chart.prices),
            coin_id,
            currency_code.upper(),
            from_unix,
            to_unix,
        )
        return chart

    def fetch_detail(self, coin_id: str) -> CoinDetail:
        payload = self._get_json(
            f"/coins/{coin_id}",
            params={
                "localization": "false",
                "tickers": "false",
                "market_data": "false",
                "community_data": "false",
                "developer_data": "false",
                "sparkline": "false",
            },
            coin_id=coin_id,
        )
        if not isinstance(payload, dict):
            raise UpstreamError(f"Unexpected detail payload for {coin_id}", coin_id=coin_id)

        description = (payload.get("description") or {}).get("en") or None
        image_url = (payload.get("image") or {}).get("large") or None
        homepages = (payload.get("links") or {}).get("homepage") or []
        homepage_url = next((url for url in homepages if url), None)

        logger.info("Fetched metadata for %s", coin_id)
        return CoinDetail(
            id=payload.get("id") or coin_id,
            symbol=payload.get("symbol") or "",
            name=payload.get("name") or coin_id,
            description=description,
            image_url=image_url,
            homepage_url=homepage_url,
        )

    def _get_json(
        self,
        path: str,
        params: dict[str, Any],
        coin_id: str,
        currency_code: str | None = None,
    ) -> Any:
        try:
            response = self._http.get(path, params=params)
            response.raise_for_status()
            return response.json()
        except httpx.HTTPStatusError as exc:
            status = exc.response.status_code
            logger.error("CoinGecko %s returned %d", path, status)
            raise UpstreamError(
                f"CoinGecko returned {status} for {path}",
                coin_id=coin_id,
                currency_code=currency_code,
                status_code=status,
            ) from exc
        except httpx.RequestError as exc:
            logger.error("CoinGecko request to %s failed: %s", path, exc)
            raise UpstreamError(
                f"Request to {path} failed: {exc}",
                coin_id=coin_id,
                currency_code=currency_code,
            ) from exc
        except ValueError as exc:
            raise UpstreamError(
                f"Invalid JSON from {path}",
                coin_id=coin_id,
                currency_code=currency_code,
            ) from exc


def _parse_market_chart(payload: Any, coin_id: str, currency_code: str) -> MarketChart:
    if not isinstance(payload, dict) or not isinstance(payload.get("prices"), list):
        raise UpstreamError(
            f"Market chart for {coin_id}/{currency_code} has no price series",
            coin_id=coin_id,
            currency_code=currency_code,
        )

    prices: list[PricePoint] = []
    for entry in payload["prices"]:
        if not isinstance(entry, (list, tuple)) or len(entry) < 2 or entry[0] is None:
            continue
        price = to_price(entry[1])
        if price is None:
            continue
        try:
            timestamp = from_unix_ms(entry[0])
        except (TypeError, ValueError, OverflowError):
            continue
        prices.append(PricePoint(timestamp=timestamp, price=price))
    prices.sort(key=lambda point: point.timestamp)

    return MarketChart(
        coin_id=coin_id,
        currency_code=currency_code.lower(),
        prices=prices,
        market_caps=_parse_series(payload.get("market_caps")),
        total_volumes=_parse_series(payload.get("total_volumes")),
    )


def _parse_series(raw: Any) -> list[tuple[datetime, float]]:
    if not isinstance(raw, list):
        return []
    series = []
    for entry in raw:
        if not isinstance(entry, (list, tuple)) or len(entry) < 2 or entry[1] is None:
            continue
        try:
            series.append((from_unix_ms(entry[0]), float(entry[1])))
        except (TypeError, ValueError, OverflowError):
            continue
    return series
