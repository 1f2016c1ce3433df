from datetime import datetime, timezone
import logging

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from src.api.database.database import get_db
from src.price_engine.errors import StoreError
from src.price_engine.services.price_store import SqlPriceStore
from src.price_engine.services.reference_store import SqlReferenceRepository

logger = logging.getLogger("cryptodash.api.health")

router = APIRouter(tags=["health"])


@router.get("/health")
def health(db: Session = Depends(get_db)):
    try:
        db.execute(text("SELECT 1"))
        stats = {
            **SqlReferenceRepository().count_rows(),
            **SqlPriceStore().count_rows(),
        }
    except (SQLAlchemyError, StoreError) as e:
        logger.exception("Health check failed")
        return JSONResponse(
            status_code=503,
            content={
                "success": False,
                "message": "Health check failed",
                "errors": {"database": "disconnected", "error": str(e)},
            },
        )

    return {
        "success": True,
        "data": {
            "status": "healthy",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "service": "Cryptocurrency Price Dashboard API",
            "database": {"status": "connected", "stats": stats},
        },
    }
