import hmac
import logging
from typing import Optional

from fastapi import Header, HTTPException, status

from src.config import get_settings

logger = logging.getLogger("cryptodash.api.cron_auth")


def extract_bearer_token(authorization: Optional[str]) -> Optional[str]:
    """Return the token from a "Bearer <token>" header, or None."""
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


def verify_cron_secret(authorization: Optional[str] = Header(default=None)) -> None:
    """FastAPI dependency guarding the cron trigger with the shared CRON_SECRET."""
    expected = get_settings().cron_secret
    if expected is None:
        logger.error("CRON_SECRET environment variable not configured")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Cron job not configured",
        )

    provided = extract_bearer_token(authorization)
    if provided is None or not hmac.compare_digest(provided.encode(), expected.encode()):
        logger.warning(
            "Unauthorized cron job attempt (%s)",
            "missing bearer token" if provided is None else "secret mismatch",
        )
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized",
            headers={"WWW-Authenticate": "Bearer"},
        )
