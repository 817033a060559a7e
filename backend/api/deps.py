"""Shared API dependencies: DB session, auth, object storage."""

from __future__ import annotations

from collections.abc import AsyncGenerator
from typing import Annotated

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from backend.config import Settings
from backend.exceptions import UnauthorizedError
from backend.models.user import User
from backend.services.auth_service import decode_access_token
from backend.services.storage_service import ObjectStorage

security = HTTPBearer(auto_error=False)


def get_settings(request: Request) -> Settings:
    """Get application settings from app state."""
    settings: Settings = request.app.state.settings
    return settings


def get_storage(request: Request) -> ObjectStorage:
    """Get the object storage gateway from app state."""
    storage: ObjectStorage = request.app.state.storage
    return storage


async def get_session(request: Request) -> AsyncGenerator[AsyncSession]:
    """Get a database session."""
    session_factory = request.app.state.session_factory
    async with session_factory() as session:
        yield session


async def get_current_user(
    request: Request,
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)] = None,
    session: AsyncSession = Depends(get_session),
) -> User | None:
    """Get current authenticated user, or None if not authenticated."""
    if credentials is None:
        return None

    settings: Settings = request.app.state.settings
    payload = decode_access_token(credentials.credentials, settings.secret_key)
    if payload is None:
        return None
    user_id = payload.get("sub")
    if not isinstance(user_id, str) or not user_id.isdigit():
        return None
    return await session.get(User, int(user_id))


async def require_auth(
    request: Request,
    user: Annotated[User | None, Depends(get_current_user)],
) -> User:
    """Require authentication. Raises 401 if not authenticated."""
    if user is None:
        has_header = request.headers.get("Authorization", "").lower().startswith("bearer ")
        message = (
            "Unauthorized - invalid or expired token" if has_header else "Access token is required"
        )
        raise UnauthorizedError(message, headers={"WWW-Authenticate": "Bearer"})
    return user
