"""Authentication schemas."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, EmailStr, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base model exchanging camelCase JSON with mobile clients."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class SignupRequest(CamelModel):
    """Account creation request."""

    email: EmailStr
    password: str = Field(min_length=6, max_length=200)


class LoginRequest(CamelModel):
    """Login request."""

    email: str = Field(min_length=1, max_length=320)
    password: str = Field(min_length=1, max_length=200)


class UpdateUserRequest(CamelModel):
    """Password change and/or avatar update.

    ``current_password`` and ``new_password`` must be given together.
    """

    current_password: str | None = Field(default=None, max_length=200)
    new_password: str | None = Field(default=None, min_length=6, max_length=200)
    avatar_url: str | None = Field(default=None, max_length=2048)


class AuthUser(CamelModel):
    id: int
    email: str


class TokenResponse(CamelModel):
    """Bearer token with the user it identifies."""

    access_token: str
    user: AuthUser


class UserResponse(CamelModel):
    """User info response."""

    id: int
    email: str
    avatar_url: str | None = None
