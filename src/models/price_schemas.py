from typing import List, Optional, Literal

from pydantic import BaseModel, Field

GranularityName = Literal["daily", "hourly"]


class AggregatedPriceResponse(BaseModel):
    coin: Optional[str] = None
    currency: Optional[str] = None
    date: Optional[str] = None
    price: float


class PriceFilters(BaseModel):
    coinIds: List[str] = Field(default_factory=list)
    currencyCodes: List[str] = Field(default_factory=list)


class PriceQueryMeta(BaseModel):
    count: int
    granularity: GranularityName
    dateFrom: str
    dateTo: str
    breakdown: List[str]
    filters: PriceFilters


class PriceQueryResponse(BaseModel):
    data: List[AggregatedPriceResponse]
    meta: PriceQueryMeta


class CoinResponse(BaseModel):
    id: str
    symbol: str
    name: str


class CurrencyResponse(BaseModel):
    code: str
    name: str


class CoinMetadataResponse(BaseModel):
    coinId: str
    name: str
    symbol: str
    description: Optional[str] = None
    imageUrl: Optional[str] = None
    homepageUrl: Optional[str] = None


class CronTriggerData(BaseModel):
    message: str
    timestamp: str
    status: str


class CronTriggerResponse(BaseModel):
    success: bool = True
    data: CronTriggerData
