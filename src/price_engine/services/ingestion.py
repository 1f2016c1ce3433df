from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Iterable, Sequence
import logging

from src.price_engine.errors import UpstreamError
from src.utils.helper import as_utc, end_of_day, round_price, start_of_day

from .catalog import CoinRef, CurrencyRef, TRACKED_COINS, TRACKED_CURRENCIES
from .market_data import MarketChart, MarketDataClient, PricePoint
from .price_store import DailyPrice, HourlyPrice, PriceStore
from .reference_store import ReferenceRepository

logger = logging.getLogger("cryptodash.price_engine.ingestion")

DEFAULT_HOURLY_DAYS = 30
DEFAULT_DAILY_DAYS = 365


class IngestionState(str, Enum):
    IDLE = "idle"
    CLEANING = "cleaning"
    INITIALIZING_REFERENCE = "initializing_reference"
    FETCHING_HOURLY = "fetching_hourly"
    FETCHING_DAILY = "fetching_daily"
    DONE = "done"
    FAILED = "failed"


class WriteMode(str, Enum):
    # Skip rows whose key already exists (fast path after a clean).
    INSERT_NEW_ONLY = "insert_new_only"
    # Overwrite the stored price when the key already exists.
    UPSERT_OVERWRITE = "upsert_overwrite"


@dataclass(frozen=True)
class FailedPair:
    coin_id: str
    currency_code: str
    reason: str


@dataclass
class IngestionSummary:
    state: IngestionState = IngestionState.IDLE
    write_mode: WriteMode = WriteMode.UPSERT_OVERWRITE
    cleaned: bool = False
    pairs_attempted: int = 0
    hourly_written: int = 0
    daily_written: int = 0
    failed_pairs: list[FailedPair] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "state": self.state.value,
            "write_mode": self.write_mode.value,
            "cleaned": self.cleaned,
            "pairs_attempted": self.pairs_attempted,
            "hourly_written": self.hourly_written,
            "daily_written": self.daily_written,
            "failed_pairs": [
                {
                    "coin_id": pair.coin_id,
                    "currency_code": pair.currency_code,
                    "reason": pair.reason,
                }
                for pair in self.failed_pairs
            ],
        }


class IngestionPipeline:
    """Fetches tracked coin/currency pairs from the market data client and
    writes them to the hourly and daily price tables.

    A failed fetch for one pair is logged and skipped. Failures while cleaning,
    initializing reference data or writing abort the run and are re-raised.
    """

    def __init__(
        self,
        client: MarketDataClient,
        price_store: PriceStore,
        reference_store: ReferenceRepository,
        coins: Sequence[CoinRef] = TRACKED_COINS,
        currencies: Sequence[CurrencyRef] = TRACKED_CURRENCIES,
        hourly_days: int = DEFAULT_HOURLY_DAYS,
        daily_days: int = DEFAULT_DAILY_DAYS,
    ) -> None:
        if hourly_days <= 0 or daily_days <= 0:
            raise ValueError("window lengths must be positive")
        self._client = client
        self._price_store = price_store
        self._reference_store = reference_store
        self._coins = tuple(coins)
        self._currencies = tuple(currencies)
        self._hourly_days = hourly_days
        self._daily_days = daily_days
        self.state = IngestionState.IDLE

    def run(
        self,
        clean_first: bool = False,
        write_mode: WriteMode | None = None,
    ) -> IngestionSummary:
        if write_mode is None:
            write_mode = WriteMode.INSERT_NEW_ONLY if clean_first else WriteMode.UPSERT_OVERWRITE
        summary = IngestionSummary(write_mode=write_mode)

        logger.info(
            "=== Starting price ingestion (clean_first=%s, mode=%s) ===",
            clean_first,
            write_mode.value,
        )
        try:
            if clean_first:
                self._enter(IngestionState.CLEANING, summary)
                deleted = self._price_store.delete_all()
                summary.cleaned = True
                logger.info(
                    "Cleaned %d daily and %d hourly price rows",
                    deleted.daily_count,
                    deleted.hourly_count,
                )

            self._enter(IngestionState.INITIALIZING_REFERENCE, summary)
            self._reference_store.upsert_coins(self._coins)
            self._reference_store.upsert_currencies(self._currencies)

            self._enter(IngestionState.FETCHING_HOURLY, summary)
            hourly_rows = self._collect(self._hourly_days, to_hourly_rows, summary)
            logger.info("Storing %d hourly prices", len(hourly_rows))
            summary.hourly_written = self._write_hourly(hourly_rows, write_mode)

            self._enter(IngestionState.FETCHING_DAILY, summary)
            daily_rows = self._collect(self._daily_days, to_daily_rows, summary)
            logger.info("Storing %d daily prices", len(daily_rows))
            summary.daily_written = self._write_daily(daily_rows, write_mode)
        except Exception:
            self._enter(IngestionState.FAILED, summary)
            logger.exception("=== Price ingestion failed ===")
            raise

        self._enter(IngestionState.DONE, summary)
        logger.info(
            "=== Price ingestion completed: %d hourly, %d daily rows, %d/%d pairs failed ===",
            summary.hourly_written,
            summary.daily_written,
            len(summary.failed_pairs),
            summary.pairs_attempted,
        )
        return summary

    def backfill_daily(
        self,
        start_day: date,
        end_day: date,
        write_mode: WriteMode = WriteMode.UPSERT_OVERWRITE,
    ) -> IngestionSummary:
        """Fill the daily table for an explicit calendar range (inclusive)."""
        if start_day > end_day:
            start_day, end_day = end_day, start_day
        from_unix = int(start_of_day(start_day).timestamp())
        to_unix = int(end_of_day(end_day).timestamp())
        summary = IngestionSummary(write_mode=write_mode)

        logger.info(
            "Backfilling daily prices %s..%s", start_day.isoformat(), end_day.isoformat()
        )
        try:
            self._enter(IngestionState.INITIALIZING_REFERENCE, summary)
            self._reference_store.upsert_coins(self._coins)
            self._reference_store.upsert_currencies(self._currencies)

            self._enter(IngestionState.FETCHING_DAILY, summary)
            rows: list[DailyPrice] = []
            for coin_id, currency_code in self._pairs():
                summary.pairs_attempted += 1
                try:
                    chart = self._client.fetch_range(coin_id, currency_code, from_unix, to_unix)
                except UpstreamError as exc:
                    self._record_failure(summary, coin_id, currency_code, exc)
                    continue
                rows.extend(
                    row
                    for row in to_daily_rows(chart)
                    if start_day <= row.date <= end_day
                )
            summary.daily_written = self._write_daily(rows, write_mode)
        except Exception:
            self._enter(IngestionState.FAILED, summary)
            logger.exception("Daily backfill failed")
            raise

        self._enter(IngestionState.DONE, summary)
        return summary

    def _pairs(self) -> Iterable[tuple[str, str]]:
        for coin in self._coins:
            for currency in self._currencies:
                yield coin.id, currency.code.lower()

    def _collect(self, days: int, transform, summary: IngestionSummary) -> list:
        rows: list = []
        for coin_id, currency_code in self._pairs():
            summary.pairs_attempted += 1
            try:
                chart = self._client.fetch_window(coin_id, currency_code, days)
            except UpstreamError as exc:
                self._record_failure(summary, coin_id, currency_code, exc)
                continue
            rows.extend(transform(chart))
            logger.info("Fetched %s/%s", coin_id, currency_code.upper())
        return rows

    def _record_failure(
        self,
        summary: IngestionSummary,
        coin_id: str,
        currency_code: str,
        exc: UpstreamError,
    ) -> None:
        logger.warning(
            "Skipping %s/%s due to error: %s", coin_id, currency_code.upper(), exc
        )
        summary.failed_pairs.append(
            FailedPair(coin_id=coin_id, currency_code=currency_code, reason=str(exc))
        )

    def _write_hourly(self, rows: list[HourlyPrice], write_mode: WriteMode) -> int:
        if write_mode is WriteMode.INSERT_NEW_ONLY:
            return self._price_store.insert_new_only_hourly(rows)
        return self._price_store.upsert_overwrite_hourly(rows)

    def _write_daily(self, rows: list[DailyPrice], write_mode: WriteMode) -> int:
        if write_mode is WriteMode.INSERT_NEW_ONLY:
            return self._price_store.insert_new_only_daily(rows)
        return self._price_store.upsert_overwrite_daily(rows)

    def _enter(self, state: IngestionState, summary: IngestionSummary) -> None:
        logger.debug("Ingestion state %s -> %s", self.state.value, state.value)
        self.state = state
        summary.state = state


def to_hourly_rows(chart: MarketChart) -> list[HourlyPrice]:
    """Flatten a chart into hourly rows, one per (coin, currency, timestamp)."""
    currency_code = chart.currency_code.lower()
    by_timestamp: dict[datetime, Decimal] = {}
    for point in chart.prices:
        # Later duplicates win; one statement cannot touch a key twice.
        by_timestamp[as_utc(point.timestamp)] = point.price
    return [
        HourlyPrice(
            coin_id=chart.coin_id,
            currency_code=currency_code,
            timestamp=timestamp,
            price=price,
        )
        for timestamp, price in sorted(by_timestamp.items())
    ]


def to_daily_rows(chart: MarketChart) -> list[DailyPrice]:
    currency_code = chart.currency_code.lower()
    return [
        DailyPrice(
            coin_id=chart.coin_id,
            currency_code=currency_code,
            date=day,
            price=price,
        )
        for day, price in reduce_to_daily(chart.prices).items()
    ]


def reduce_to_daily(points: Iterable[PricePoint]) -> dict[date, Decimal]:
    """One value per UTC calendar day: the unweighted mean of that day's points.

    Daily-resolution input (one point per day) passes through unchanged.
    """
    totals: dict[date, tuple[Decimal, int]] = {}
    for point in points:
        day = as_utc(point.timestamp).date()
        total, count = totals.get(day, (Decimal("0"), 0))
        totals[day] = (total + point.price, count + 1)
    return {
        day: round_price(total / count)
        for day, (total, count) in sorted(totals.items())
    }
