"""Operator authentication dependency for orchestrator endpoints."""
from __future__ import annotations

import hmac
import logging

from fastapi import HTTPException, Request, status

from fleet.config import settings

logger = logging.getLogger(__name__)


async def verify_operator_secret(request: Request) -> None:
    """Validate the pre-shared operator bearer token.

    If operator_secret is empty, validation is skipped.
    """
    if not settings.operator_secret:
        return

    auth = request.headers.get("authorization", "")
    if not auth.startswith("Bearer "):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Missing operator authorization",
        )

    token = auth.split(" ", 1)[1]
    if not hmac.compare_digest(token, settings.operator_secret):
        logger.warning(f"Rejected operator request to {request.url.path}")
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Invalid operator authorization",
        )
