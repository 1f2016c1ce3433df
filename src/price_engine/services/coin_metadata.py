from __future__ import annotations

from dataclasses import dataclass
import logging

from src.price_engine.errors import CoinNotFoundError, UpstreamError

from .market_data import MarketDataClient
from .reference_store import CoinMetadataRecord, ReferenceRepository

logger = logging.getLogger("cryptodash.price_engine.coin_metadata")


@dataclass(frozen=True)
class CoinMetadataView:
    coin_id: str
    name: str
    symbol: str
    description: str | None
    image_url: str | None
    homepage_url: str | None

    def to_dict(self) -> dict:
        return {
            "coinId": self.coin_id,
            "name": self.name,
            "symbol": self.symbol,
            "description": self.description,
            "imageUrl": self.image_url,
            "homepageUrl": self.homepage_url,
        }


class CoinMetadataService:
    """Serves coin metadata, fetching it from the market data API on first use."""

    def __init__(self, client: MarketDataClient, reference_store: ReferenceRepository) -> None:
        self._client = client
        self._reference_store = reference_store

    def get_metadata(self, coin_id: str) -> CoinMetadataView:
        coin = self._reference_store.get_coin(coin_id)
        if coin is None:
            raise CoinNotFoundError(f"Coin '{coin_id}' not found")

        record = self._reference_store.get_metadata(coin_id)
        if record is None:
            logger.info("Metadata not found for %s, fetching from CoinGecko", coin_id)
            try:
                detail = self._client.fetch_detail(coin_id)
            except UpstreamError as exc:
                # Tooltips degrade to empty metadata rather than an error.
                logger.warning("Failed to fetch metadata for %s: %s", coin_id, exc)
                record = CoinMetadataRecord(coin_id, None, None, None)
            else:
                record = self._reference_store.upsert_metadata(
                    CoinMetadataRecord(
                        coin_id=coin_id,
                        description=detail.description,
                        image_url=detail.image_url,
                        homepage_url=detail.homepage_url,
                    )
                )
                logger.info("Stored metadata for %s", coin_id)

        return CoinMetadataView(
            coin_id=coin.id,
            name=coin.name,
            symbol=coin.symbol,
            description=record.description,
            image_url=record.image_url,
            homepage_url=record.homepage_url,
        )
