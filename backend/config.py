"""Application configuration loaded from environment variables."""

from __future__ import annotations

from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Pantry Sync application settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Core
    secret_key: str = "change-me-in-production"
    debug: bool = False
    expose_docs: bool = False

    # Database
    database_url: str = "sqlite+aiosqlite:///data/db/pantry.db"

    # Server
    host: str = "0.0.0.0"
    port: int = Field(default=3000, ge=1, le=65535)

    # CORS
    cors_origins: list[str] = Field(default_factory=list)
    trusted_hosts: list[str] = Field(default_factory=list)

    # Auth
    # Mobile clients keep their token for the lifetime of the install (~200 years).
    access_token_expire_days: int = Field(default=73000, ge=1)
    auth_login_max_failures: int = Field(default=5, ge=1)
    auth_rate_limit_window_seconds: int = Field(default=300, ge=1)

    # Images
    max_image_upload_bytes: int = Field(default=25 * 1024 * 1024, ge=1)

    # Object storage (S3-compatible, e.g. Backblaze B2)
    storage_backend: Literal["s3", "memory"] = "s3"
    s3_endpoint: str = ""
    s3_bucket: str = ""
    s3_region: str = "us-west-000"
    s3_access_key_id: str = ""
    s3_secret_access_key: str = ""
    s3_public_base_url: str = ""

    def validate_runtime_security(self) -> None:
        """Validate security-critical production settings."""
        if self.debug:
            return

        violations: list[str] = []
        if self.secret_key == "change-me-in-production" or len(self.secret_key) < 32:
            violations.append(
                "SECRET_KEY must be overridden with a high-entropy value (>=32 chars)"
            )
        if not self.trusted_hosts:
            violations.append("TRUSTED_HOSTS must be configured in production")
        if self.storage_backend == "s3" and not (self.s3_endpoint and self.s3_bucket):
            violations.append("S3_ENDPOINT and S3_BUCKET must be configured for S3 storage")

        if violations:
            joined = "; ".join(violations)
            raise ValueError(f"Insecure production configuration: {joined}")
