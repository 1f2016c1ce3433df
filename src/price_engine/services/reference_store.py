from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Protocol, Sequence
import logging

from sqlalchemy import func, select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from src.api.database.database import SessionLocal
from src.models.coin import Coin as CoinModel
from src.models.coin import CoinMetadata as CoinMetadataModel
from src.models.currency import Currency as CurrencyModel
from src.price_engine.errors import StoreError

from .catalog import CoinRef, CurrencyRef

logger = logging.getLogger("cryptodash.price_engine.reference_store")


@dataclass(frozen=True)
class CoinMetadataRecord:
    coin_id: str
    description: str | None
    image_url: str | None
    homepage_url: str | None


class ReferenceRepository(Protocol):
    """Persistence boundary for coins, currencies and coin metadata."""

    def upsert_coins(self, coins: Sequence[CoinRef]) -> int:
        raise NotImplementedError

    def upsert_currencies(self, currencies: Sequence[CurrencyRef]) -> int:
        raise NotImplementedError

    def list_coins(self) -> list[CoinRef]:
        raise NotImplementedError

    def list_currencies(self) -> list[CurrencyRef]:
        raise NotImplementedError

    def get_coin(self, coin_id: str) -> CoinRef | None:
        raise NotImplementedError

    def get_metadata(self, coin_id: str) -> CoinMetadataRecord | None:
        raise NotImplementedError

    def upsert_metadata(self, record: CoinMetadataRecord) -> CoinMetadataRecord:
        raise NotImplementedError


class SqlReferenceRepository(ReferenceRepository):
    """SQLAlchemy repository for reference tables. Inserts never overwrite."""

    def __init__(self, session_factory: Callable[[], Session] = SessionLocal) -> None:
        self._session_factory = session_factory

    def upsert_coins(self, coins: Sequence[CoinRef]) -> int:
        payload = [
            {"id": coin.id, "symbol": coin.symbol, "name": coin.name}
            for coin in coins
        ]
        inserted = self._insert_ignore(CoinModel, payload, key="id")
        logger.info("Initialized coins: %d new of %d tracked", inserted, len(payload))
        return inserted

    def upsert_currencies(self, currencies: Sequence[CurrencyRef]) -> int:
        payload = [
            {"code": currency.code.lower(), "name": currency.name}
            for currency in currencies
        ]
        inserted = self._insert_ignore(CurrencyModel, payload, key="code")
        logger.info(
            "Initialized currencies: %d new of %d tracked", inserted, len(payload)
        )
        return inserted

    def list_coins(self) -> list[CoinRef]:
        session = self._session_factory()
        try:
            rows = session.execute(select(CoinModel).order_by(CoinModel.name)).scalars().all()
            return [CoinRef(id=row.id, symbol=row.symbol, name=row.name) for row in rows]
        except SQLAlchemyError as exc:
            raise StoreError(f"Failed listing coins: {exc}") from exc
        finally:
            session.close()

    def list_currencies(self) -> list[CurrencyRef]:
        session = self._session_factory()
        try:
            rows = session.execute(
                select(CurrencyModel).order_by(CurrencyModel.code)
            ).scalars().all()
            return [CurrencyRef(code=row.code, name=row.name) for row in rows]
        except SQLAlchemyError as exc:
            raise StoreError(f"Failed listing currencies: {exc}") from exc
        finally:
            session.close()

    def get_coin(self, coin_id: str) -> CoinRef | None:
        session = self._session_factory()
        try:
            row = session.get(CoinModel, coin_id)
            if row is None:
                return None
            return CoinRef(id=row.id, symbol=row.symbol, name=row.name)
        except SQLAlchemyError as exc:
            raise StoreError(f"Failed loading coin {coin_id}: {exc}") from exc
        finally:
            session.close()

    def get_metadata(self, coin_id: str) -> CoinMetadataRecord | None:
        session = self._session_factory()
        try:
            row = session.get(CoinMetadataModel, coin_id)
            if row is None:
                return None
            return _to_record(row)
        except SQLAlchemyError as exc:
            raise StoreError(f"Failed loading metadata for {coin_id}: {exc}") from exc
        finally:
            session.close()

    def upsert_metadata(self, record: CoinMetadataRecord) -> CoinMetadataRecord:
        session = self._session_factory()
        try:
            row = session.get(CoinMetadataModel, record.coin_id)
            if row is None:
                row = CoinMetadataModel(coin_id=record.coin_id)
                session.add(row)
            row.description = record.description
            row.image_url = record.image_url
            row.homepage_url = record.homepage_url
            row.updated_at = datetime.now(timezone.utc)
            session.commit()
            return record
        except SQLAlchemyError as exc:
            session.rollback()
            raise StoreError(f"Failed storing metadata for {record.coin_id}: {exc}") from exc
        finally:
            session.close()

    def count_rows(self) -> dict[str, int]:
        session = self._session_factory()
        try:
            return {
                "coins": session.execute(
                    select(func.count()).select_from(CoinModel)
                ).scalar_one(),
                "currencies": session.execute(
                    select(func.count()).select_from(CurrencyModel)
                ).scalar_one(),
            }
        except SQLAlchemyError as exc:
            raise StoreError(f"Failed counting reference rows: {exc}") from exc
        finally:
            session.close()

    def _insert_ignore(self, model, payload: list[dict], key: str) -> int:
        if not payload:
            return 0
        session = self._session_factory()
        try:
            insert = sqlite.insert if session.get_bind().dialect.name == "sqlite" else postgresql.insert
            stmt = insert(model).values(payload).on_conflict_do_nothing(index_elements=[key])
            result = session.execute(stmt)
            session.commit()
            return max(result.rowcount or 0, 0)
        except SQLAlchemyError as exc:
            session.rollback()
            raise StoreError(f"Failed initializing {model.__tablename__}: {exc}") from exc
        finally:
            session.close()


def _to_record(row: CoinMetadataModel) -> CoinMetadataRecord:
    return CoinMetadataRecord(
        coin_id=row.coin_id,
        description=row.description,
        image_url=row.image_url,
        homepage_url=row.homepage_url,
    )
