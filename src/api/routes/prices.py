from datetime import date, datetime
import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from src.models.price_schemas import PriceQueryResponse
from src.price_engine.services.aggregation import Granularity
from src.price_engine.errors import QueryValidationError
from src.price_engine.services.price_query import (
    PriceQuery,
    PriceQueryService,
    select_granularity,
)
from src.price_engine.services.price_store import SqlPriceStore

logger = logging.getLogger("cryptodash.api.prices")

router = APIRouter(tags=["prices"])


def get_price_query_service() -> PriceQueryService:
    return PriceQueryService(price_store=SqlPriceStore())


def split_csv(raw: Optional[str], lower: bool = False) -> List[str]:
    if not raw:
        return []
    values = [part.strip() for part in raw.split(",")]
    return [value.lower() if lower else value for value in values if value]


def parse_day(raw: str, name: str) -> date:
    # A full ISO date, or a full ISO datetime whose date part is used.
    value = raw.strip()
    try:
        return date.fromisoformat(value)
    except ValueError:
        pass
    try:
        return datetime.fromisoformat(value).date()
    except ValueError:
        raise QueryValidationError(f"Invalid {name}. Use ISO format (YYYY-MM-DD)")


def build_price_query(
    date_from: Optional[str],
    date_to: Optional[str],
    coin_ids: Optional[str] = None,
    currency_codes: Optional[str] = None,
    breakdown: Optional[str] = None,
    granularity: Optional[str] = None,
) -> PriceQuery:
    """Validate raw query-string values into a PriceQuery."""
    if not date_from or not date_to:
        raise QueryValidationError("dateFrom and dateTo are required")

    start = parse_day(date_from, "dateFrom")
    end = parse_day(date_to, "dateTo")
    if start > end:
        raise QueryValidationError("dateFrom must be before or equal to dateTo")

    if granularity:
        try:
            resolved = Granularity(granularity.strip().lower())
        except ValueError:
            raise QueryValidationError("granularity must be 'daily' or 'hourly'")
    else:
        resolved = select_granularity(start, end)

    return PriceQuery(
        date_from=start,
        date_to=end,
        granularity=resolved,
        coin_ids=split_csv(coin_ids),
        currency_codes=split_csv(currency_codes, lower=True),
        breakdown=split_csv(breakdown, lower=True),
    )


@router.get(
    "/prices",
    response_model=PriceQueryResponse,
    response_model_exclude_none=True,
)
def get_prices(
    coin_ids: Optional[str] = Query(default=None, alias="coinIds"),
    currency_codes: Optional[str] = Query(default=None, alias="currencyCodes"),
    date_from: Optional[str] = Query(default=None, alias="dateFrom"),
    date_to: Optional[str] = Query(default=None, alias="dateTo"),
    breakdown: Optional[str] = Query(default=None, description="coin,currency,date"),
    granularity: Optional[str] = Query(default=None, description="daily or hourly"),
    service: PriceQueryService = Depends(get_price_query_service),
):
    """
    Average prices for the selected coins/currencies between dateFrom and dateTo,
    grouped by the breakdown dimensions.

    Granularity defaults to hourly for spans of up to 2 days, daily otherwise.
    """
    try:
        query = build_price_query(
            date_from,
            date_to,
            coin_ids=coin_ids,
            currency_codes=currency_codes,
            breakdown=breakdown,
            granularity=granularity,
        )
    except QueryValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))

    logger.info(
        "Fetching prices coins=%s currencies=%s %s..%s granularity=%s breakdown=%s",
        query.coin_ids,
        query.currency_codes,
        query.date_from,
        query.date_to,
        query.granularity.value,
        query.breakdown,
    )

    try:
        rows = service.get_prices(query)
    except QueryValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception:
        logger.exception("Failed to fetch prices")
        raise HTTPException(status_code=500, detail="Failed to fetch prices")

    return {
        "data": [row.to_dict() for row in rows],
        "meta": {
            "count": len(rows),
            "granularity": query.granularity.value,
            "dateFrom": query.date_from.isoformat(),
            "dateTo": query.date_to.isoformat(),
            "breakdown": query.breakdown,
            "filters": {
                "coinIds": query.coin_ids,
                "currencyCodes": query.currency_codes,
            },
        },
    }
