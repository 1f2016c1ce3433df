from __future__ import annotations


class PriceEngineError(Exception):
    """Base class for price engine failures."""


class UpstreamError(PriceEngineError):
    """The market-data API failed or was unreachable for one request."""

    def __init__(
        self,
        message: str,
        coin_id: str | None = None,
        currency_code: str | None = None,
        status_code: int | None = None,
    ) -> None:
        super().__init__(message)
        self.coin_id = coin_id
        self.currency_code = currency_code
        self.status_code = status_code


class StoreError(PriceEngineError):
    """A read or write against the price tables failed."""


class QueryValidationError(PriceEngineError):
    """Malformed price query parameters."""


class ConfigError(PriceEngineError):
    """Required configuration is missing or invalid."""


class CoinNotFoundError(PriceEngineError):
    """The requested coin is not tracked."""
