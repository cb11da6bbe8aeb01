"""Per-client rate limits and the admin key guarding credential management."""

import logging
from typing import Optional

from fastapi import HTTPException, Security
from fastapi.security import APIKeyHeader
from slowapi import Limiter
from slowapi.util import get_remote_address

from sportsim.config import get_settings

logger = logging.getLogger(__name__)
settings = get_settings()

# Oracle quota is shared by every caller, so throttle per client IP
limiter = Limiter(key_func=get_remote_address)

admin_key_header = APIKeyHeader(name=settings.API_KEY_HEADER, auto_error=False)


def _admin_open() -> bool:
    """Without API_KEY, admin routes are open outside production only."""
    if settings.ENVIRONMENT.lower() == "production":
        logger.error("[SECURITY] API_KEY unset in production, credential routes disabled")
        raise HTTPException(status_code=503, detail="Credential management is disabled: API_KEY is not configured.")
    return True


async def verify_api_key(
    supplied: Optional[str] = Security(admin_key_header),
) -> bool:
    """Guard for routes that change the stored oracle credential."""
    if not settings.API_KEY:
        return _admin_open()

    if not supplied:
        raise HTTPException(
            status_code=401,
            detail=f"Admin key required in the {settings.API_KEY_HEADER} header.",
        )
    if supplied != settings.API_KEY:
        logger.warning("[SECURITY] Rejected admin key on credential route")
        raise HTTPException(status_code=403, detail="Admin key rejected.")
    return True
