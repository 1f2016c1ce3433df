from datetime import datetime, timezone
import logging

from fastapi import APIRouter, BackgroundTasks, Depends, status

from src.api.auth.cron_auth import verify_cron_secret
from src.models.price_schemas import CronTriggerResponse
from src.price_engine.tasks.fetch_prices import run_ingestion

logger = logging.getLogger("cryptodash.api.cron")

router = APIRouter(prefix="/cron", tags=["cron"])


def run_ingestion_in_background(clean_first: bool = False) -> None:
    # Failures only surface in logs; the trigger has already answered 202.
    try:
        summary = run_ingestion(clean_first=clean_first)
    except Exception:
        logger.exception("Cron job failed during async execution")
        return
    logger.info(
        "Cron job completed: %d hourly, %d daily rows, %d failed pairs",
        summary["hourly_written"],
        summary["daily_written"],
        len(summary["failed_pairs"]),
    )


@router.post(
    "/fetch-data",
    status_code=status.HTTP_202_ACCEPTED,
    response_model=CronTriggerResponse,
    dependencies=[Depends(verify_cron_secret)],
)
def trigger_fetch_data(background_tasks: BackgroundTasks):
    """
    Start a price ingestion run without cleaning existing data and return at once.
    Intended for an external scheduler holding the shared bearer secret.
    """
    logger.info("Cron job triggered - starting data fetch")
    # clean_first=False: readers keep seeing data while the run upserts.
    background_tasks.add_task(run_ingestion_in_background, clean_first=False)
    return {
        "success": True,
        "data": {
            "message": "Data fetch started successfully",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "status": "processing",
        },
    }


@router.get("/fetch-data", dependencies=[Depends(verify_cron_secret)])
def describe_fetch_data():
    """Credential/health check for the scheduler."""
    return {
        "success": True,
        "data": {
            "status": "ready",
            "endpoint": "/cron/fetch-data",
            "method": "POST",
            "description": "Scheduled data fetch endpoint for CoinGecko API",
        },
    }
