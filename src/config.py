from __future__ import annotations

import logging
import os
from dataclasses import dataclass

from dotenv import load_dotenv

from src.price_engine.errors import ConfigError

# Load environment variables
load_dotenv()

DEFAULT_COINGECKO_BASE_URL = "https://api.coingecko.com/api/v3"


@dataclass(frozen=True)
class Settings:
    """Runtime settings read from the environment (.env supported)."""
    coingecko_api_key: str | None
    coingecko_base_url: str
    cron_secret: str | None
    request_delay_sec: float
    request_timeout_sec: float
    hourly_window_days: int
    daily_window_days: int
    write_batch_size: int
    frontend_base_url: str | None
    log_level: str


def get_settings() -> Settings:
    # Read on every call so a rotated secret or test override is picked up.
    return Settings(
        coingecko_api_key=_optional("COINGECKO_API_KEY"),
        coingecko_base_url=os.getenv("COINGECKO_BASE_URL", DEFAULT_COINGECKO_BASE_URL),
        cron_secret=_optional("CRON_SECRET"),
        request_delay_sec=_number("COINGECKO_REQUEST_DELAY_SEC", "2.0", float),
        request_timeout_sec=_number("COINGECKO_TIMEOUT_SEC", "30", float),
        hourly_window_days=_number("HOURLY_WINDOW_DAYS", "30", int),
        daily_window_days=_number("DAILY_WINDOW_DAYS", "365", int),
        write_batch_size=_number("PRICE_WRITE_BATCH_SIZE", "500", int),
        frontend_base_url=_optional("FRONTEND_BASE_URL"),
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
    )


def configure_logging(level: str | None = None) -> None:
    logging.basicConfig(
        level=level or get_settings().log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _optional(name: str) -> str | None:
    value = os.getenv(name)
    if value is None or not value.strip():
        return None
    return value.strip()


def _number(name: str, default: str, cast):
    raw = os.getenv(name, default)
    try:
        value = cast(raw)
    except ValueError:
        raise ConfigError(f"{name} must be a number, got {raw!r}")
    if value <= 0:
        raise ConfigError(f"{name} must be positive, got {raw!r}")
    return value
