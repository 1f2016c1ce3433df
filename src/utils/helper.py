from datetime import date, datetime, time, timezone
from decimal import Decimal, InvalidOperation, ROUND_HALF_EVEN
from typing import Iterator, Sequence, TypeVar

T = TypeVar("T")

PRICE_QUANTUM = Decimal("0.00000001")


def round_price(x):
    # Banker's rounding at the stored scale (Numeric(24, 8)).
    if x is None:
        return None
    return Decimal(str(x)).quantize(PRICE_QUANTUM, rounding=ROUND_HALF_EVEN)


def to_price(value) -> Decimal | None:
    """Convert an upstream price to Decimal; None for missing, NaN or non-positive values."""
    if value is None or isinstance(value, bool):
        return None
    try:
        price = Decimal(str(value))
    except (InvalidOperation, ValueError):
        return None
    if not price.is_finite() or price <= 0:
        return None
    return price


def as_utc(moment: datetime) -> datetime:
    # Naive datetimes coming back from the DB are UTC by convention.
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)


def from_unix_ms(ms) -> datetime:
    return datetime.fromtimestamp(float(ms) / 1000.0, tz=timezone.utc)


def start_of_day(day: date) -> datetime:
    return datetime.combine(day, time.min, tzinfo=timezone.utc)


def end_of_day(day: date) -> datetime:
    return datetime.combine(day, time.max, tzinfo=timezone.utc)


def chunked(items: Sequence[T], size: int) -> Iterator[Sequence[T]]:
    if size <= 0:
        raise ValueError("chunk size must be positive")
    for start in range(0, len(items), size):
        yield items[start:start + size]
