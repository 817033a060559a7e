"""Authentication API endpoints."""

from __future__ import annotations

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from backend.api.deps import get_session, get_settings, require_auth
from backend.config import Settings
from backend.exceptions import MissingFieldError, RateLimitedError, UnauthorizedError
from backend.models.user import User
from backend.schemas.auth import (
    AuthUser,
    LoginRequest,
    SignupRequest,
    TokenResponse,
    UpdateUserRequest,
    UserResponse,
)
from backend.services.auth_service import (
    authenticate_user,
    create_user,
    issue_token,
    normalize_email,
    update_user,
)
from backend.services.rate_limit_service import InMemoryRateLimiter

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["auth"])

_TOO_MANY_LOGINS = "Too many failed login attempts"


def _get_client_ip(request: Request) -> str:
    forwarded_for = request.headers.get("X-Forwarded-For")
    if forwarded_for:
        return forwarded_for.split(",", maxsplit=1)[0].strip()
    if request.client and request.client.host:
        return request.client.host
    return "unknown"


def _check_rate_limit(
    limiter: InMemoryRateLimiter,
    key: str,
    max_failures: int,
    window_seconds: int,
) -> None:
    """Raise 429 if the key is rate-limited."""
    limited, retry_after = limiter.is_limited(key, max_failures, window_seconds)
    if limited:
        raise RateLimitedError(_TOO_MANY_LOGINS, headers={"Retry-After": str(retry_after)})


def _token_response(user: User, settings: Settings) -> TokenResponse:
    return TokenResponse(
        access_token=issue_token(user, settings),
        user=AuthUser(id=user.id, email=user.email),
    )


def _user_response(user: User) -> UserResponse:
    return UserResponse(id=user.id, email=user.email, avatar_url=user.avatar_url)


@router.post("/signup", response_model=TokenResponse, status_code=201)
async def signup(
    body: SignupRequest,
    session: Annotated[AsyncSession, Depends(get_session)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> TokenResponse:
    """Create an account and return its access token."""
    user = await create_user(session, body.email, body.password)
    return _token_response(user, settings)


@router.post("/login", response_model=TokenResponse)
async def login(
    body: LoginRequest,
    request: Request,
    session: Annotated[AsyncSession, Depends(get_session)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> TokenResponse:
    """Login with email and password."""
    limiter: InMemoryRateLimiter = request.app.state.rate_limiter
    client_key = f"login:{_get_client_ip(request)}:{normalize_email(body.email)}"
    _check_rate_limit(
        limiter,
        client_key,
        settings.auth_login_max_failures,
        settings.auth_rate_limit_window_seconds,
    )

    user = await authenticate_user(session, body.email, body.password)
    if user is None:
        limiter.add_failure(client_key, settings.auth_rate_limit_window_seconds)
        logger.info("Failed login for %s", normalize_email(body.email))
        raise UnauthorizedError("Invalid credentials")

    limiter.clear(client_key)
    return _token_response(user, settings)


@router.get("/me", response_model=UserResponse)
async def me(
    user: Annotated[User, Depends(require_auth)],
) -> UserResponse:
    """Get current user info."""
    return _user_response(user)


@router.patch("/me", response_model=UserResponse)
async def update_me(
    body: UpdateUserRequest,
    session: Annotated[AsyncSession, Depends(get_session)],
    user: Annotated[User, Depends(require_auth)],
) -> UserResponse:
    """Change the current user's password and/or avatar URL."""
    if bool(body.current_password) != bool(body.new_password):
        raise MissingFieldError(
            "Both currentPassword and newPassword are required to change password"
        )

    if "avatar_url" in body.model_fields_set:
        updated = await update_user(
            session,
            user.id,
            current_password=body.current_password or None,
            new_password=body.new_password or None,
            avatar_url=body.avatar_url,
        )
    else:
        updated = await update_user(
            session,
            user.id,
            current_password=body.current_password or None,
            new_password=body.new_password or None,
        )
    return _user_response(updated)
