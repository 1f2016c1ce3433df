from src.price_engine.errors import (
    CoinNotFoundError,
    ConfigError,
    PriceEngineError,
    QueryValidationError,
    StoreError,
    UpstreamError,
)

from .aggregation import (
    AggregatedPrice,
    BreakdownDimension,
    Granularity,
    PriceObservation,
    aggregate_prices,
    format_group_date,
)
from .catalog import CoinRef, CurrencyRef, TRACKED_COINS, TRACKED_CURRENCIES
from .coin_metadata import CoinMetadataService, CoinMetadataView
from .ingestion import (
    FailedPair,
    IngestionPipeline,
    IngestionState,
    IngestionSummary,
    WriteMode,
    reduce_to_daily,
)
from .market_data import CoinDetail, CoinGeckoClient, MarketChart, MarketDataClient, PricePoint
from .price_query import PriceQuery, PriceQueryService, select_granularity
from .price_store import (
    DailyPrice,
    DeleteSummary,
    HourlyPrice,
    PriceFilter,
    PriceStore,
    SqlPriceStore,
)
from .reference_store import CoinMetadataRecord, ReferenceRepository, SqlReferenceRepository

__all__ = [
    "AggregatedPrice",
    "BreakdownDimension",
    "Granularity",
    "PriceObservation",
    "aggregate_prices",
    "format_group_date",
    "CoinRef",
    "CurrencyRef",
    "TRACKED_COINS",
    "TRACKED_CURRENCIES",
    "CoinMetadataService",
    "CoinMetadataView",
    "CoinNotFoundError",
    "ConfigError",
    "PriceEngineError",
    "QueryValidationError",
    "StoreError",
    "UpstreamError",
    "FailedPair",
    "IngestionPipeline",
    "IngestionState",
    "IngestionSummary",
    "WriteMode",
    "reduce_to_daily",
    "CoinDetail",
    "CoinGeckoClient",
    "MarketChart",
    "MarketDataClient",
    "PricePoint",
    "PriceQuery",
    "PriceQueryService",
    "select_granularity",
    "DailyPrice",
    "DeleteSummary",
    "HourlyPrice",
    "PriceFilter",
    "PriceStore",
    "SqlPriceStore",
    "CoinMetadataRecord",
    "ReferenceRepository",
    "SqlReferenceRepository",
]
