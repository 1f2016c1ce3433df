from __future__ import annotations

from datetime import date, timedelta
import logging

from celery import shared_task

from src.config import get_settings
from src.price_engine.services.ingestion import IngestionPipeline, WriteMode
from src.price_engine.services.market_data import CoinGeckoClient
from src.price_engine.services.price_store import SqlPriceStore
from src.price_engine.services.reference_store import SqlReferenceRepository

logger = logging.getLogger("cryptodash.price_engine.tasks")


@shared_task(name="price_engine.fetch_prices")
def fetch_prices(clean_first: bool = False, write_mode: str | None = None) -> dict:
    """
    Fetch the hourly and daily windows for every tracked coin/currency pair.

    write_mode is a WriteMode value; when omitted the pipeline picks
    insert_new_only after a clean and upsert_overwrite otherwise.
    """
    return run_ingestion(clean_first=clean_first, write_mode=write_mode)


@shared_task(name="price_engine.backfill_prices")
def backfill_prices(start_day: str | None = None, end_day: str | None = None) -> dict:
    """
    Backfill daily prices between start_day and end_day (inclusive).
    Dates are ISO strings (YYYY-MM-DD).
    """
    if not start_day or not end_day:
        raise ValueError("start_day and end_day are required for backfill_prices")
    return run_backfill(
        start_day=date.fromisoformat(start_day),
        end_day=date.fromisoformat(end_day),
    )


def run_ingestion(clean_first: bool = False, write_mode: str | None = None) -> dict:
    # Shared by the Celery task and the HTTP trigger's background task.
    mode = WriteMode(write_mode) if write_mode else None
    client = build_client()
    try:
        pipeline = build_pipeline(client)
        summary = pipeline.run(clean_first=clean_first, write_mode=mode)
        return summary.to_dict()
    finally:
        client.close()


def run_backfill(start_day: date, end_day: date) -> dict:
    if end_day - start_day > timedelta(days=366):
        logger.warning(
            "Backfill range %s..%s exceeds a year; CoinGecko may coarsen the data",
            start_day,
            end_day,
        )
    client = build_client()
    try:
        pipeline = build_pipeline(client)
        return pipeline.backfill_daily(start_day=start_day, end_day=end_day).to_dict()
    finally:
        client.close()


def build_client() -> CoinGeckoClient:
    settings = get_settings()
    return CoinGeckoClient(
        api_key=settings.coingecko_api_key,
        base_url=settings.coingecko_base_url,
        timeout=settings.request_timeout_sec,
        request_delay=settings.request_delay_sec,
    )


def build_pipeline(client) -> IngestionPipeline:
    settings = get_settings()
    return IngestionPipeline(
        client=client,
        price_store=SqlPriceStore(batch_size=settings.write_batch_size),
        reference_store=SqlReferenceRepository(),
        hourly_days=settings.hourly_window_days,
        daily_days=settings.daily_window_days,
    )
