"""
Admin guard for operational endpoints (knowledge reload).
"""

import hmac
from typing import Optional

from fastapi import Header, HTTPException, status
from loguru import logger

from faqbot.config import settings


async def require_admin(x_admin_token: Optional[str] = Header(default=None)) -> None:
    """Open when ADMIN_TOKEN is unset; otherwise the X-Admin-Token header must match."""
    if not settings.ADMIN_TOKEN:
        return
    if not x_admin_token or not hmac.compare_digest(x_admin_token, settings.ADMIN_TOKEN):
        logger.warning("Rejected admin request with missing or invalid token")
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admin privileges required")
