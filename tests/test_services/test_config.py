"""Tests for application configuration."""

from __future__ import annotations

from unittest.mock import patch

import pytest

from backend.config import Settings


def _production(**overrides: object) -> Settings:
    values: dict[str, object] = {
        "_env_file": None,
        "secret_key": "x" * 32,
        "trusted_hosts": ["api.example.com"],
        "s3_endpoint": "https://s3.us-west-000.backblazeb2.com",
        "s3_bucket": "pantry-images",
    }
    values.update(overrides)
    return Settings(**values)  # type: ignore[arg-type]


class TestSettings:
    def test_default_settings(self) -> None:
        s = Settings(_env_file=None)
        assert s.secret_key == "change-me-in-production"
        assert s.debug is False
        assert s.port == 3000
        assert s.access_token_expire_days == 73000
        assert s.max_image_upload_bytes == 25 * 1024 * 1024
        assert s.storage_backend == "s3"

    def test_settings_from_environment(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("PORT", "8080")
        monkeypatch.setenv("S3_BUCKET", "from-env")
        monkeypatch.setenv("TRUSTED_HOSTS", '["a.example.com"]')
        s = Settings(_env_file=None)
        assert s.port == 8080
        assert s.s3_bucket == "from-env"
        assert s.trusted_hosts == ["a.example.com"]

    def test_settings_from_fixture(self, test_settings: Settings) -> None:
        assert test_settings.secret_key == "test-secret-key-with-at-least-32-characters"
        assert test_settings.debug is True
        assert test_settings.storage_backend == "memory"


class TestRuntimeSecurity:
    def test_debug_skips_checks(self) -> None:
        Settings(_env_file=None, debug=True).validate_runtime_security()

    def test_valid_production_config(self) -> None:
        _production().validate_runtime_security()

    def test_default_secret_rejected(self) -> None:
        with pytest.raises(ValueError, match="SECRET_KEY"):
            _production(secret_key="change-me-in-production").validate_runtime_security()

    def test_short_secret_rejected(self) -> None:
        with pytest.raises(ValueError, match="SECRET_KEY"):
            _production(secret_key="short").validate_runtime_security()

    def test_trusted_hosts_required(self) -> None:
        with pytest.raises(ValueError, match="TRUSTED_HOSTS"):
            _production(trusted_hosts=[]).validate_runtime_security()

    def test_s3_settings_required(self) -> None:
        with pytest.raises(ValueError, match="S3_ENDPOINT and S3_BUCKET"):
            _production(s3_bucket="").validate_runtime_security()

    def test_memory_storage_needs_no_s3_settings(self) -> None:
        _production(
            storage_backend="memory", s3_endpoint="", s3_bucket=""
        ).validate_runtime_security()


class TestCliEntry:
    def test_cli_entry_uses_app_settings(self) -> None:
        """cli_entry() should use the global app's settings, not create a new Settings()."""
        from backend.main import app, cli_entry

        original_settings = getattr(app.state, "settings", None)
        app.state.settings = Settings(_env_file=None, host="127.0.0.1", port=9999, debug=True)

        try:
            with patch("uvicorn.run") as mock_run:
                cli_entry()

            mock_run.assert_called_once_with(
                "backend.main:app",
                host="127.0.0.1",
                port=9999,
                reload=True,
            )
        finally:
            if original_settings is None:
                del app.state.settings
            else:
                app.state.settings = original_settings


class TestStartupHardening:
    @pytest.mark.asyncio
    async def test_insecure_production_config_blocks_startup(self) -> None:
        from backend.main import create_app, lifespan

        app = create_app(Settings(_env_file=None, secret_key="short", trusted_hosts=["x"]))
        with pytest.raises(ValueError, match="Insecure production configuration"):
            async with lifespan(app):
                pass
