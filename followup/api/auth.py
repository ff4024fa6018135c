# followup/api/auth.py
import hmac
from typing import Optional

from fastapi import Header, HTTPException

from followup.core.config import settings
from followup.core.logging import get_logger

logger = get_logger(__name__)


def require_cron_secret(authorization: Optional[str] = Header(None)):
    """Accept only ``Authorization: Bearer <CRON_SECRET>``.

    With no secret configured every request is refused.
    """
    expected = settings.CRON_SECRET
    if not expected:
        logger.warning("CRON_SECRET is not configured, refusing request")
        raise HTTPException(status_code=401, detail="Unauthorized")

    scheme, _, token = (authorization or "").partition(" ")
    if scheme.lower() != "bearer" or not hmac.compare_digest(token.strip(), expected):
        raise HTTPException(status_code=401, detail="Unauthorized")
