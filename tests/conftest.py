"""Shared test fixtures for Pantry Sync."""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from backend.config import Settings
from backend.database import create_engine
from backend.main import create_app, init_app_state
from backend.models.base import Base
from backend.models.user import User
from backend.services.auth_service import hash_password
from backend.services.datetime_service import format_iso, now_utc
from backend.services.storage_service import InMemoryObjectStorage, ObjectStorage

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator
    from pathlib import Path

TEST_SECRET_KEY = "test-secret-key-with-at-least-32-characters"
TEST_PASSWORD = "correcthorse"


@asynccontextmanager
async def create_test_client(
    settings: Settings, storage: ObjectStorage | None = None
) -> AsyncGenerator[AsyncClient]:
    """Create an HTTP test client with a fully initialized app.

    Runs the startup half of the lifespan manually because ASGITransport does
    not trigger it. ``storage`` replaces the configured object storage gateway.
    """
    app = create_app(settings)
    settings.validate_runtime_security()
    await init_app_state(app, settings)
    if storage is not None:
        app.state.storage = storage

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac

    await app.state.engine.dispose()


async def signup(client: AsyncClient, email: str, password: str = TEST_PASSWORD) -> str:
    """Create an account through the API and return its access token."""
    resp = await client.post("/api/auth/signup", json={"email": email, "password": password})
    assert resp.status_code == 201, resp.text
    token: str = resp.json()["accessToken"]
    return token


def auth_headers(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def test_settings(tmp_path: Path) -> Settings:
    """Create test settings with a temporary database and in-memory storage."""
    db_path = tmp_path / "test.db"
    return Settings(
        _env_file=None,
        secret_key=TEST_SECRET_KEY,
        debug=True,
        database_url=f"sqlite+aiosqlite:///{db_path}",
        storage_backend="memory",
    )


@pytest.fixture
def storage() -> InMemoryObjectStorage:
    return InMemoryObjectStorage()


@pytest.fixture
async def client(
    test_settings: Settings, storage: InMemoryObjectStorage
) -> AsyncGenerator[AsyncClient]:
    """Create test HTTP client."""
    async with create_test_client(test_settings, storage) as ac:
        yield ac


@pytest.fixture
async def token(client: AsyncClient) -> str:
    """Access token of a freshly signed-up user."""
    return await signup(client, "alice@example.com")


@pytest.fixture
async def db_engine(test_settings: Settings) -> AsyncGenerator[AsyncEngine]:
    """Create a test database engine with the schema in place."""
    engine, _ = create_engine(test_settings)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
async def db_session(
    db_engine: AsyncEngine,
) -> AsyncGenerator[AsyncSession]:
    """Create a test database session."""
    session_factory = async_sessionmaker(
        db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )
    async with session_factory() as session:
        yield session


async def create_user(
    session: AsyncSession,
    email: str = "owner@example.com",
    password: str = TEST_PASSWORD,
) -> User:
    """Insert a user directly, bypassing the API."""
    now = format_iso(now_utc())
    user = User(
        email=email,
        password_hash=hash_password(password),
        created_at=now,
        updated_at=now,
    )
    session.add(user)
    await session.commit()
    await session.refresh(user)
    return user
