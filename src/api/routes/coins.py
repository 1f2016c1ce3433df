import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException

from src.models.price_schemas import CoinMetadataResponse, CoinResponse, CurrencyResponse
from src.price_engine.services.coin_metadata import CoinMetadataService
from src.price_engine.errors import CoinNotFoundError, StoreError
from src.price_engine.services.reference_store import SqlReferenceRepository
from src.price_engine.tasks.fetch_prices import build_client

logger = logging.getLogger("cryptodash.api.coins")

router = APIRouter(tags=["coins"])


def get_reference_repository() -> SqlReferenceRepository:
    return SqlReferenceRepository()


def get_coin_metadata_service():
    client = build_client()
    try:
        yield CoinMetadataService(client=client, reference_store=SqlReferenceRepository())
    finally:
        client.close()


@router.get("/coins", response_model=List[CoinResponse])
def list_coins(repo: SqlReferenceRepository = Depends(get_reference_repository)):
    try:
        return [
            {"id": coin.id, "symbol": coin.symbol, "name": coin.name}
            for coin in repo.list_coins()
        ]
    except StoreError:
        logger.exception("Failed to list coins")
        raise HTTPException(status_code=500, detail="Failed to fetch coins")


@router.get("/coins/{coin_id}/metadata", response_model=CoinMetadataResponse)
def get_coin_metadata(
    coin_id: str,
    service: CoinMetadataService = Depends(get_coin_metadata_service),
):
    """
    Description, image and homepage for a coin. Fetched from CoinGecko and
    stored on first request.
    """
    try:
        return service.get_metadata(coin_id).to_dict()
    except CoinNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except StoreError:
        logger.exception("Failed to fetch metadata for coin %s", coin_id)
        raise HTTPException(status_code=500, detail="Failed to fetch coin metadata")


@router.get("/currencies", response_model=List[CurrencyResponse])
def list_currencies(repo: SqlReferenceRepository = Depends(get_reference_repository)):
    try:
        return [
            {"code": currency.code, "name": currency.name}
            for currency in repo.list_currencies()
        ]
    except StoreError:
        logger.exception("Failed to list currencies")
        raise HTTPException(status_code=500, detail="Failed to fetch currencies")
