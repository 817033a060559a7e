"""Authentication service: JWT access tokens and password hashing."""

from __future__ import annotations

import logging
from datetime import timedelta
from typing import TYPE_CHECKING, Any

import bcrypt
from jose import JWTError, jwt
from sqlalchemy import select

from backend.exceptions import ConflictError, NotFoundError, UnauthorizedError
from backend.models.user import User
from backend.services.datetime_service import format_iso, now_utc

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from backend.config import Settings

logger = logging.getLogger(__name__)

ALGORITHM = "HS256"
_DUMMY_PASSWORD_HASH = bcrypt.hashpw(b"pantry-dummy-password", bcrypt.gensalt()).decode("utf-8")


def normalize_email(email: str) -> str:
    """Emails are stored trimmed and lower-cased."""
    return email.strip().lower()


def hash_password(password: str) -> str:
    """Hash a password using bcrypt."""
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds=10)).decode("utf-8")


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a password against its hash."""
    return bcrypt.checkpw(plain_password.encode("utf-8"), hashed_password.encode("utf-8"))


def create_access_token(
    user_id: int, email: str, secret_key: str, expires_days: int = 73000
) -> str:
    """Create a JWT access token carrying the user's id and email."""
    expire = now_utc() + timedelta(days=expires_days)
    to_encode = {"sub": str(user_id), "email": email, "exp": expire, "type": "access"}
    return str(jwt.encode(to_encode, secret_key, algorithm=ALGORITHM))


def decode_access_token(token: str, secret_key: str) -> dict[str, Any] | None:
    """Decode and validate a JWT access token."""
    try:
        payload: dict[str, Any] = jwt.decode(token, secret_key, algorithms=[ALGORITHM])
        if payload.get("type") != "access":
            return None
        return payload
    except JWTError:
        logger.debug("Failed to decode access token", exc_info=True)
        return None


def issue_token(user: User, settings: Settings) -> str:
    return create_access_token(
        user.id, user.email, settings.secret_key, settings.access_token_expire_days
    )


async def get_user_by_email(session: AsyncSession, email: str) -> User | None:
    stmt = select(User).where(User.email == normalize_email(email))
    result = await session.execute(stmt)
    return result.scalar_one_or_none()


async def authenticate_user(session: AsyncSession, email: str, password: str) -> User | None:
    """Authenticate a user by email and password."""
    user = await get_user_by_email(session, email)
    if user is None:
        # Run a dummy hash check to reduce email timing side channels.
        verify_password(password, _DUMMY_PASSWORD_HASH)
        return None
    if not verify_password(password, user.password_hash):
        return None
    return user


async def create_user(session: AsyncSession, email: str, password: str) -> User:
    """Create a new account. Raises ConflictError if the email is taken."""
    if await get_user_by_email(session, email) is not None:
        raise ConflictError("User already exists")

    now = format_iso(now_utc())
    user = User(
        email=normalize_email(email),
        password_hash=hash_password(password),
        created_at=now,
        updated_at=now,
    )
    session.add(user)
    await session.commit()
    await session.refresh(user)
    logger.info("Created user %d", user.id)
    return user


_UNSET: Any = object()


async def update_user(
    session: AsyncSession,
    user_id: int,
    *,
    current_password: str | None = None,
    new_password: str | None = None,
    avatar_url: str | None = _UNSET,
) -> User:
    """Change a user's password and/or avatar URL.

    A password change requires the current password. ``avatar_url`` is left
    untouched unless passed explicitly (``None`` clears it).
    """
    user = await session.get(User, user_id)
    if user is None:
        raise NotFoundError("User not found")

    if current_password is not None and new_password is not None:
        if not verify_password(current_password, user.password_hash):
            raise UnauthorizedError("Current password is incorrect")
        user.password_hash = hash_password(new_password)

    if avatar_url is not _UNSET:
        user.avatar_url = avatar_url

    user.updated_at = format_iso(now_utc())
    await session.commit()
    await session.refresh(user)
    return user
