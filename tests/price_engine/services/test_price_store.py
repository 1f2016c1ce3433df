from __future__ import annotations

from datetime import date, datetime, timedelta, timezone
from decimal import Decimal

import pytest
from sqlalchemy.exc import OperationalError

from src.price_engine.errors import StoreError
from src.price_engine.services.price_store import (
    DailyPrice,
    HourlyPrice,
    PriceFilter,
    SqlPriceStore,
)

BASE = datetime(2024, 3, 1, tzinfo=timezone.utc)


def _hourly(coin: str, currency: str, hours: int, price: str) -> HourlyPrice:
    return HourlyPrice(coin, currency, BASE + timedelta(hours=hours), Decimal(price))


def _daily(coin: str, currency: str, day: int, price: str) -> DailyPrice:
    return DailyPrice(coin, currency, date(2024, 3, day), Decimal(price))


def test_hourly_round_trip(session_factory) -> None:
    store = SqlPriceStore(session_factory=session_factory)
    rows = [
        _hourly("bitcoin", "usd", 0, "61000.12345678"),
        _hourly("ethereum", "usd", 0, "3400.5"),
        _hourly("bitcoin", "eur", 1, "56000"),
    ]

    store.upsert_overwrite_hourly(rows)
    found = store.find_hourly(PriceFilter(start=date(2024, 2, 1), end=date(2024, 4, 1)))

    assert {(row.coin_id, row.currency_code, row.timestamp, row.price) for row in found} == {
        (row.coin_id, row.currency_code, row.timestamp, row.price) for row in rows
    }
    assert len(found) == 3
    assert all(row.timestamp.tzinfo is not None for row in found)


def test_hourly_results_are_ordered_by_timestamp_then_coin(session_factory) -> None:
    store = SqlPriceStore(session_factory=session_factory)
    store.insert_new_only_hourly(
        [
            _hourly("ethereum", "usd", 2, "3"),
            _hourly("ethereum", "usd", 1, "2"),
            _hourly("bitcoin", "usd", 1, "1"),
        ]
    )

    found = store.find_hourly(PriceFilter())

    assert [(row.coin_id, row.timestamp.hour) for row in found] == [
        ("bitcoin", 1),
        ("ethereum", 1),
        ("ethereum", 2),
    ]


def test_insert_new_only_skips_existing_keys(session_factory) -> None:
    store = SqlPriceStore(session_factory=session_factory)
    store.insert_new_only_daily([_daily("bitcoin", "usd", 1, "100")])

    store.insert_new_only_daily([_daily("bitcoin", "usd", 1, "999"), _daily("bitcoin", "usd", 2, "101")])

    found = store.find_daily(PriceFilter())
    assert [(row.date.day, row.price) for row in found] == [(1, Decimal("100")), (2, Decimal("101"))]


def test_upsert_overwrite_replaces_existing_price(session_factory) -> None:
    store = SqlPriceStore(session_factory=session_factory)
    store.upsert_overwrite_daily([_daily("bitcoin", "usd", 1, "100")])

    store.upsert_overwrite_daily([_daily("bitcoin", "usd", 1, "105.5")])

    found = store.find_daily(PriceFilter())
    assert len(found) == 1
    assert found[0].price == Decimal("105.5")


def test_writes_are_chunked_and_complete(session_factory) -> None:
    store = SqlPriceStore(session_factory=session_factory, batch_size=2)
    rows = [_hourly("bitcoin", "usd", hour, str(100 + hour)) for hour in range(5)]

    store.upsert_overwrite_hourly(rows)
    store.upsert_overwrite_hourly(rows)

    assert store.count_rows() == {"hourly_prices": 5, "daily_prices": 0}


def test_empty_write_is_a_noop(session_factory) -> None:
    store = SqlPriceStore(session_factory=session_factory)

    assert store.upsert_overwrite_hourly([]) == 0
    assert store.insert_new_only_daily([]) == 0


def test_filters_by_coin_currency_and_dates(session_factory) -> None:
    store = SqlPriceStore(session_factory=session_factory)
    store.upsert_overwrite_daily(
        [
            _daily("bitcoin", "usd", 1, "1"),
            _daily("bitcoin", "eur", 1, "2"),
            _daily("ethereum", "usd", 1, "3"),
            _daily("bitcoin", "usd", 5, "4"),
        ]
    )

    found = store.find_daily(
        PriceFilter(
            coin_ids=["bitcoin"],
            currency_codes=["usd"],
            start=date(2024, 3, 1),
            end=date(2024, 3, 3),
        )
    )

    assert [(row.coin_id, row.currency_code, row.price) for row in found] == [
        ("bitcoin", "usd", Decimal("1")),
    ]


def test_hourly_date_bounds_cover_whole_days(session_factory) -> None:
    store = SqlPriceStore(session_factory=session_factory)
    store.upsert_overwrite_hourly(
        [
            _hourly("bitcoin", "usd", 0, "1"),
            _hourly("bitcoin", "usd", 23, "2"),
            _hourly("bitcoin", "usd", 24, "3"),
        ]
    )

    found = store.find_hourly(PriceFilter(start=date(2024, 3, 1), end=date(2024, 3, 1)))

    assert [row.price for row in found] == [Decimal("1"), Decimal("2")]


def test_delete_all_reports_counts(session_factory) -> None:
    store = SqlPriceStore(session_factory=session_factory)
    store.upsert_overwrite_hourly([_hourly("bitcoin", "usd", hour, "1") for hour in range(3)])
    store.upsert_overwrite_daily([_daily("bitcoin", "usd", 1, "1")])

    deleted = store.delete_all()

    assert (deleted.hourly_count, deleted.daily_count) == (3, 1)
    assert store.count_rows() == {"hourly_prices": 0, "daily_prices": 0}


def test_failing_chunk_raises_store_error() -> None:
    class _FailingSession:
        def __init__(self) -> None:
            self.rolled_back = False
            self.closed = False

        def get_bind(self):
            class _Bind:
                class dialect:
                    name = "postgresql"

            return _Bind()

        def execute(self, stmt):
            raise OperationalError("INSERT", {}, Exception("connection lost"))

        def commit(self) -> None:
            raise AssertionError("must not commit a failed chunk")

        def rollback(self) -> None:
            self.rolled_back = True

        def close(self) -> None:
            self.closed = True

    session = _FailingSession()
    store = SqlPriceStore(session_factory=lambda: session)

    with pytest.raises(StoreError):
        store.upsert_overwrite_daily([_daily("bitcoin", "usd", 1, "1")])

    assert session.rolled_back is True
    assert session.closed is True


def test_batch_size_must_be_positive() -> None:
    with pytest.raises(ValueError):
        SqlPriceStore(batch_size=0)


def test_failing_later_chunk_keeps_committed_chunks(session_factory) -> None:
    executes = {"count": 0}

    def flaky_factory():
        session = session_factory()
        real_execute = session.execute

        def execute(stmt, *args, **kwargs):
            executes["count"] += 1
            if executes["count"] == 2:
                raise OperationalError("INSERT", {}, Exception("connection lost"))
            return real_execute(stmt, *args, **kwargs)

        session.execute = execute
        return session

    rows = [_daily("bitcoin", "usd", day, str(day)) for day in range(1, 6)]

    with pytest.raises(StoreError):
        SqlPriceStore(session_factory=flaky_factory, batch_size=2).upsert_overwrite_daily(rows)

    found = SqlPriceStore(session_factory=session_factory).find_daily(PriceFilter())
    assert [row.date.day for row in found] == [1, 2]
    assert executes["count"] == 2
