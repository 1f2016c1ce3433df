from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
import logging

from src.price_engine.errors import QueryValidationError
from src.utils.helper import end_of_day, start_of_day

from .aggregation import (
    AggregatedPrice,
    Granularity,
    PriceObservation,
    aggregate_prices,
)
from .price_store import PriceFilter, PriceStore

logger = logging.getLogger("cryptodash.price_engine.price_query")

# Ranges up to this many calendar days (inclusive) are served from hourly data.
HOURLY_MAX_SPAN_DAYS = 2


@dataclass(frozen=True)
class PriceQuery:
    date_from: date
    date_to: date
    granularity: Granularity
    coin_ids: list[str] = field(default_factory=list)
    currency_codes: list[str] = field(default_factory=list)
    breakdown: list[str] = field(default_factory=list)


def select_granularity(date_from: date, date_to: date) -> Granularity:
    span_days = (date_to - date_from).days + 1
    if span_days <= HOURLY_MAX_SPAN_DAYS:
        return Granularity.HOURLY
    return Granularity.DAILY


class PriceQueryService:
    """Reads stored prices for a query and aggregates them into response rows."""

    def __init__(self, price_store: PriceStore) -> None:
        self._price_store = price_store

    def get_prices(self, query: PriceQuery) -> list[AggregatedPrice]:
        if query.date_from > query.date_to:
            raise QueryValidationError("dateFrom must be before or equal to dateTo")

        observations = self._load_observations(query)
        rows = aggregate_prices(observations, query.breakdown, query.granularity)

        # Chronological output for charts; grouping itself is unordered.
        rows.sort(key=lambda row: (row.date or "", row.coin or "", row.currency or ""))
        logger.info(
            "Aggregated %d %s observations into %d rows",
            len(observations),
            query.granularity.value,
            len(rows),
        )
        return rows

    def _load_observations(self, query: PriceQuery) -> list[PriceObservation]:
        coin_ids = query.coin_ids or None
        currency_codes = [code.lower() for code in query.currency_codes] or None

        if query.granularity is Granularity.DAILY:
            daily = self._price_store.find_daily(
                PriceFilter(
                    coin_ids=coin_ids,
                    currency_codes=currency_codes,
                    start=query.date_from,
                    end=query.date_to,
                )
            )
            return [
                PriceObservation(row.coin_id, row.currency_code, row.date, row.price)
                for row in daily
            ]

        hourly = self._price_store.find_hourly(
            PriceFilter(
                coin_ids=coin_ids,
                currency_codes=currency_codes,
                start=start_of_day(query.date_from),
                end=end_of_day(query.date_to),
            )
        )
        return [
            PriceObservation(row.coin_id, row.currency_code, row.timestamp, row.price)
            for row in hourly
        ]
