from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Iterable, Sequence

from src.utils.helper import as_utc


class Granularity(str, Enum):
    DAILY = "daily"
    HOURLY = "hourly"


class BreakdownDimension(str, Enum):
    COIN = "coin"
    CURRENCY = "currency"
    DATE = "date"


@dataclass(frozen=True)
class PriceObservation:
    """Normalized row from either price table."""
    coin_id: str
    currency_code: str
    time: datetime | date
    price: Decimal


@dataclass(frozen=True)
class AggregatedPrice:
    """Average price for one group. Dimensions not in the breakdown stay None."""
    price: Decimal
    coin: str | None = None
    currency: str | None = None
    date: str | None = None

    def to_dict(self) -> dict:
        # Absent dimensions are omitted, not serialized as null.
        row: dict = {}
        if self.coin is not None:
            row["coin"] = self.coin
        if self.currency is not None:
            row["currency"] = self.currency
        if self.date is not None:
            row["date"] = self.date
        row["price"] = float(self.price)
        return row


def format_group_date(moment: datetime | date, granularity: Granularity | str) -> str:
    """YYYY-MM-DD for daily, YYYY-MM-DD HH:00:00 (UTC, hour-truncated) for hourly."""
    granularity = Granularity(granularity)
    if not isinstance(moment, datetime):
        if granularity is Granularity.DAILY:
            return moment.isoformat()
        return f"{moment.isoformat()} 00:00:00"

    moment = as_utc(moment)
    if granularity is Granularity.DAILY:
        return moment.strftime("%Y-%m-%d")
    return moment.strftime("%Y-%m-%d %H:00:00")


def aggregate_prices(
    observations: Iterable[PriceObservation],
    breakdown: Sequence[str] | None,
    granularity: Granularity | str,
) -> list[AggregatedPrice]:
    """Group observations by the requested dimensions and average each group.

    An empty breakdown groups by date only, so charts always get a date axis.
    Unknown dimension names are ignored; a breakdown made only of unknown
    names collapses everything into one group. The order of the result follows
    first appearance of each group and carries no other meaning.
    """
    granularity = Granularity(granularity)
    dimensions = _resolve_dimensions(breakdown)

    groups: dict[tuple[str, ...], _Group] = {}
    for observation in observations:
        key, metadata = _group_key(observation, dimensions, granularity)
        group = groups.get(key)
        if group is None:
            group = groups[key] = _Group(metadata)
        group.add(observation.price)

    return [group.result() for group in groups.values()]


def _resolve_dimensions(breakdown: Sequence[str] | None) -> set[BreakdownDimension]:
    if not breakdown:
        return {BreakdownDimension.DATE}
    requested = set()
    for name in breakdown:
        if isinstance(name, BreakdownDimension):
            requested.add(name)
            continue
        try:
            requested.add(BreakdownDimension(str(name).strip().lower()))
        except ValueError:
            continue
    return requested


def _group_key(
    observation: PriceObservation,
    dimensions: set[BreakdownDimension],
    granularity: Granularity,
) -> tuple[tuple[str, ...], dict[str, str]]:
    # Fixed key order: coin, currency, date.
    parts: list[str] = []
    metadata: dict[str, str] = {}
    if BreakdownDimension.COIN in dimensions:
        parts.append(observation.coin_id)
        metadata["coin"] = observation.coin_id
    if BreakdownDimension.CURRENCY in dimensions:
        currency = observation.currency_code.upper()
        parts.append(currency)
        metadata["currency"] = currency
    if BreakdownDimension.DATE in dimensions:
        group_date = format_group_date(observation.time, granularity)
        parts.append(group_date)
        metadata["date"] = group_date
    return tuple(parts), metadata


class _Group:
    __slots__ = ("metadata", "total", "count")

    def __init__(self, metadata: dict[str, str]) -> None:
        self.metadata = metadata
        self.total = Decimal("0")
        self.count = 0

    def add(self, price: Decimal) -> None:
        self.total += price if isinstance(price, Decimal) else Decimal(str(price))
        self.count += 1

    def result(self) -> AggregatedPrice:
        return AggregatedPrice(price=self.total / self.count, **self.metadata)
