from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import Callable, Protocol, Sequence
import logging

from sqlalchemy import delete, func, select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from src.api.database.database import SessionLocal
from src.models.price import PriceDaily as PriceDailyModel
from src.models.price import PriceHourly as PriceHourlyModel
from src.price_engine.errors import StoreError
from src.utils.helper import as_utc, chunked, end_of_day, start_of_day

logger = logging.getLogger("cryptodash.price_engine.price_store")

DEFAULT_BATCH_SIZE = 500


@dataclass(frozen=True)
class HourlyPrice:
    """Fine-grained price row keyed by (coin_id, currency_code, timestamp)."""
    coin_id: str
    currency_code: str
    timestamp: datetime
    price: Decimal


@dataclass(frozen=True)
class DailyPrice:
    """Coarse price row keyed by (coin_id, currency_code, date)."""
    coin_id: str
    currency_code: str
    date: date
    price: Decimal


@dataclass(frozen=True)
class PriceFilter:
    """Optional filters; bounds are inclusive. Dates for daily, datetimes for hourly."""
    coin_ids: Sequence[str] | None = None
    currency_codes: Sequence[str] | None = None
    start: date | datetime | None = None
    end: date | datetime | None = None


@dataclass(frozen=True)
class DeleteSummary:
    hourly_count: int
    daily_count: int


class PriceStore(Protocol):
    """Persistence boundary for hourly and daily price rows."""

    def insert_new_only_hourly(self, rows: Sequence[HourlyPrice]) -> int:
        raise NotImplementedError

    def upsert_overwrite_hourly(self, rows: Sequence[HourlyPrice]) -> int:
        raise NotImplementedError

    def insert_new_only_daily(self, rows: Sequence[DailyPrice]) -> int:
        raise NotImplementedError

    def upsert_overwrite_daily(self, rows: Sequence[DailyPrice]) -> int:
        raise NotImplementedError

    def find_hourly(self, price_filter: PriceFilter) -> list[HourlyPrice]:
        raise NotImplementedError

    def find_daily(self, price_filter: PriceFilter) -> list[DailyPrice]:
        raise NotImplementedError

    def delete_all(self) -> DeleteSummary:
        raise NotImplementedError


class SqlPriceStore(PriceStore):
    """SQLAlchemy repository for the price_hourly and price_daily tables.

    Writes go out in chunks of `batch_size` rows, one statement and one commit
    per chunk. A failing chunk is rolled back and raised as StoreError; chunks
    committed before it stay, which is safe because every write is keyed.
    """

    def __init__(
        self,
        session_factory: Callable[[], Session] = SessionLocal,
        batch_size: int = DEFAULT_BATCH_SIZE,
    ) -> None:
        if batch_size <= 0:
            raise ValueError("batch_size must be positive")
        self._session_factory = session_factory
        self._batch_size = batch_size

    # Writes ---------------------------------------------------------------

    def insert_new_only_hourly(self, rows: Sequence[HourlyPrice]) -> int:
        return self._write(
            PriceHourlyModel,
            [_hourly_payload(row) for row in rows],
            key=("coin_id", "currency_code", "timestamp"),
            overwrite=False,
        )

    def upsert_overwrite_hourly(self, rows: Sequence[HourlyPrice]) -> int:
        return self._write(
            PriceHourlyModel,
            [_hourly_payload(row) for row in rows],
            key=("coin_id", "currency_code", "timestamp"),
            overwrite=True,
        )

    def insert_new_only_daily(self, rows: Sequence[DailyPrice]) -> int:
        return self._write(
            PriceDailyModel,
            [_daily_payload(row) for row in rows],
            key=("coin_id", "currency_code", "date"),
            overwrite=False,
        )

    def upsert_overwrite_daily(self, rows: Sequence[DailyPrice]) -> int:
        return self._write(
            PriceDailyModel,
            [_daily_payload(row) for row in rows],
            key=("coin_id", "currency_code", "date"),
            overwrite=True,
        )

    def _write(self, model, payload: list[dict], key: tuple[str, ...], overwrite: bool) -> int:
        if not payload:
            return 0

        total_chunks = (len(payload) + self._batch_size - 1) // self._batch_size
        written = 0
        session = self._session_factory()
        try:
            for index, chunk in enumerate(chunked(payload, self._batch_size), start=1):
                stmt = _insert_for(session)(model).values(list(chunk))
                if overwrite:
                    stmt = stmt.on_conflict_do_update(
                        index_elements=list(key),
                        set_={"price": stmt.excluded.price},
                    )
                else:
                    stmt = stmt.on_conflict_do_nothing(index_elements=list(key))
                try:
                    result = session.execute(stmt)
                    session.commit()
                except SQLAlchemyError as exc:
                    session.rollback()
                    logger.exception(
                        "Failed writing %s chunk %d/%d", model.__tablename__, index, total_chunks
                    )
                    raise StoreError(
                        f"Failed writing {model.__tablename__} chunk {index}/{total_chunks}: {exc}"
                    ) from exc
                # rowcount is -1 on drivers that cannot report it.
                written += max(result.rowcount or 0, 0)
                logger.debug(
                    "Stored %s chunk %d/%d", model.__tablename__, index, total_chunks
                )
        finally:
            session.close()

        logger.info("Stored %d %s rows", written, model.__tablename__)
        return written

    # Reads ----------------------------------------------------------------

    def find_hourly(self, price_filter: PriceFilter) -> list[HourlyPrice]:
        stmt = select(PriceHourlyModel)
        stmt = _apply_dimension_filters(stmt, PriceHourlyModel, price_filter)
        if price_filter.start is not None:
            stmt = stmt.where(PriceHourlyModel.timestamp >= _as_datetime(price_filter.start))
        if price_filter.end is not None:
            stmt = stmt.where(PriceHourlyModel.timestamp <= _as_datetime(price_filter.end, upper=True))
        stmt = stmt.order_by(PriceHourlyModel.timestamp, PriceHourlyModel.coin_id)

        rows = self._fetch(stmt, "price_hourly")
        return [
            HourlyPrice(
                coin_id=row.coin_id,
                currency_code=row.currency_code,
                timestamp=as_utc(row.timestamp),
                price=Decimal(str(row.price)),
            )
            for row in rows
        ]

    def find_daily(self, price_filter: PriceFilter) -> list[DailyPrice]:
        stmt = select(PriceDailyModel)
        stmt = _apply_dimension_filters(stmt, PriceDailyModel, price_filter)
        if price_filter.start is not None:
            stmt = stmt.where(PriceDailyModel.date >= _as_date(price_filter.start))
        if price_filter.end is not None:
            stmt = stmt.where(PriceDailyModel.date <= _as_date(price_filter.end))
        stmt = stmt.order_by(PriceDailyModel.date, PriceDailyModel.coin_id)

        rows = self._fetch(stmt, "price_daily")
        return [
            DailyPrice(
                coin_id=row.coin_id,
                currency_code=row.currency_code,
                date=row.date,
                price=Decimal(str(row.price)),
            )
            for row in rows
        ]

    def _fetch(self, stmt, table: str):
        session = self._session_factory()
        try:
            return session.execute(stmt).scalars().all()
        except SQLAlchemyError as exc:
            logger.exception("Failed reading %s", table)
            raise StoreError(f"Failed reading {table}: {exc}") from exc
        finally:
            session.close()

    # Maintenance ----------------------------------------------------------

    def delete_all(self) -> DeleteSummary:
        session = self._session_factory()
        try:
            # Both deletes share one transaction.
            daily = session.execute(delete(PriceDailyModel)).rowcount or 0
            hourly = session.execute(delete(PriceHourlyModel)).rowcount or 0
            session.commit()
        except SQLAlchemyError as exc:
            session.rollback()
            logger.exception("Failed deleting price rows")
            raise StoreError(f"Failed deleting price rows: {exc}") from exc
        finally:
            session.close()

        logger.info("Deleted %d daily and %d hourly price rows", daily, hourly)
        return DeleteSummary(hourly_count=hourly, daily_count=daily)

    def count_rows(self) -> dict[str, int]:
        session = self._session_factory()
        try:
            return {
                "hourly_prices": session.execute(
                    select(func.count()).select_from(PriceHourlyModel)
                ).scalar_one(),
                "daily_prices": session.execute(
                    select(func.count()).select_from(PriceDailyModel)
                ).scalar_one(),
            }
        except SQLAlchemyError as exc:
            raise StoreError(f"Failed counting price rows: {exc}") from exc
        finally:
            session.close()


def _insert_for(session: Session):
    # Postgres in production, SQLite in tests; both support ON CONFLICT.
    if session.get_bind().dialect.name == "sqlite":
        return sqlite.insert
    return postgresql.insert


def _apply_dimension_filters(stmt, model, price_filter: PriceFilter):
    if price_filter.coin_ids:
        stmt = stmt.where(model.coin_id.in_(list(price_filter.coin_ids)))
    if price_filter.currency_codes:
        stmt = stmt.where(model.currency_code.in_(list(price_filter.currency_codes)))
    return stmt


def _hourly_payload(row: HourlyPrice) -> dict:
    return {
        "coin_id": row.coin_id,
        "currency_code": row.currency_code.lower(),
        "timestamp": as_utc(row.timestamp),
        "price": row.price,
    }


def _daily_payload(row: DailyPrice) -> dict:
    return {
        "coin_id": row.coin_id,
        "currency_code": row.currency_code.lower(),
        "date": row.date,
        "price": row.price,
    }


def _as_datetime(value: date | datetime, upper: bool = False) -> datetime:
    if isinstance(value, datetime):
        return as_utc(value)
    # A bare date covers the whole UTC day.
    return end_of_day(value) if upper else start_of_day(value)


def _as_date(value: date | datetime) -> date:
    if isinstance(value, datetime):
        return as_utc(value).date()
    return value
