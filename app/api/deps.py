from fastapi import Header, HTTPException, status
from typing import Optional
import logging

from app.core.config import settings
from app.core.security import bearer_matches

logger = logging.getLogger(__name__)


def _require_bearer(authorization: Optional[str], secret: Optional[str], name: str):
    if not secret:
        logger.error(f"[AUTH] {name} is not configured; rejecting request")
    if not bearer_matches(authorization, secret):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized",
            headers={"WWW-Authenticate": "Bearer"},
        )


def require_cron_secret(authorization: Optional[str] = Header(None)):
    """Scheduler trigger: `Authorization: Bearer <CRON_SECRET>`."""
    _require_bearer(authorization, settings.CRON_SECRET, "CRON_SECRET")


def require_admin_key(authorization: Optional[str] = Header(None)):
    _require_bearer(authorization, settings.ADMIN_API_KEY, "ADMIN_API_KEY")
