"""Liveness and health endpoints."""

from __future__ import annotations

import logging
from typing import Annotated, Literal

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from backend.api.deps import get_session, get_settings
from backend.config import Settings

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])

VERSION = "1.0.0"


class HealthResponse(BaseModel):
    status: Literal["ok", "degraded"]
    version: str
    database: Literal["ok", "error"]
    storage: str


async def _database_reachable(session: AsyncSession) -> bool:
    try:
        await session.execute(text("SELECT 1"))
    except SQLAlchemyError:
        logger.warning("Health check database query failed", exc_info=True)
        return False
    return True


@router.get("/")
async def root() -> dict[str, str]:
    """Liveness probe used by the mobile app's connectivity check."""
    return {"message": "Hello World"}


@router.get("/api/health", response_model=HealthResponse)
async def health_check(
    session: Annotated[AsyncSession, Depends(get_session)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> HealthResponse:
    """Database reachability plus the configured storage backend, for monitoring."""
    database_ok = await _database_reachable(session)
    return HealthResponse(
        status="ok" if database_ok else "degraded",
        version=VERSION,
        database="ok" if database_ok else "error",
        storage=settings.storage_backend,
    )
