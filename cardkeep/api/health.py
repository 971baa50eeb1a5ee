"""
Liveness and readiness probes.

Neither probe requires an API key.
"""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Response, status
from pydantic import BaseModel
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from cardkeep.db.database import STORAGE_ERRORS, get_session

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


class ProbeResponse(BaseModel):
    """Probe result. storage is only reported by the readiness probe."""

    status: str
    storage: str | None = None


@router.get("/health", response_model=ProbeResponse)
async def health() -> ProbeResponse:
    """Liveness probe. Never touches storage."""
    return ProbeResponse(status="ok")


@router.get(
    "/ready",
    response_model=ProbeResponse,
    responses={503: {"model": ProbeResponse}},
)
async def ready(
    response: Response,
    session: Annotated[AsyncSession, Depends(get_session)],
) -> ProbeResponse:
    """Readiness probe. 503 while the database cannot be reached."""
    try:
        await session.execute(text("SELECT 1"))
    except STORAGE_ERRORS as e:
        logger.warning("Readiness check failed: %s", e)
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
        return ProbeResponse(status="unavailable", storage="unreachable")
    return ProbeResponse(status="ready", storage="reachable")
