"""Shared test fixtures."""

from __future__ import annotations

import os
from collections.abc import AsyncGenerator

# Settings are cached on first use, so the test environment goes in first
os.environ["LEARNHUB_JWT_SECRET"] = "test-secret-for-learnhub-0123456789abcdef0123456789abcdef"
os.environ["LEARNHUB_REDIS_URL"] = ""
os.environ["LEARNHUB_LOG_FORMAT"] = "console"
os.environ["LEARNHUB_ENVIRONMENT"] = "test"

import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.pool import StaticPool

from learnhub.config import get_settings
from learnhub.database import Database
from learnhub.main import create_app

get_settings.cache_clear()

TEST_PASSWORD = "Passw0rd!"


@pytest_asyncio.fixture
async def database() -> AsyncGenerator[Database, None]:
    """Fresh in-memory database with the full schema."""
    db = Database(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    await db.create_all()
    yield db
    await db.dispose()


@pytest_asyncio.fixture
async def db_session(database: Database) -> AsyncGenerator[AsyncSession, None]:
    """Get a direct database session for test setup and assertions."""
    async with database.session() as session:
        yield session


@pytest_asyncio.fixture
async def client(database: Database) -> AsyncGenerator[AsyncClient, None]:
    """Create an async HTTP test client bound to the test database."""
    app = create_app(get_settings(), database)
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


async def register_user(
    client: AsyncClient,
    email: str = "anna@example.com",
    password: str = TEST_PASSWORD,
    name: str = "Anna",
) -> dict:
    """Register a user over HTTP and return the response body."""
    response = await client.post(
        "/api/auth/register",
        json={"email": email, "password": password, "name": name},
    )
    assert response.status_code == 201, response.text
    return response.json()


@pytest_asyncio.fixture
async def registered_user(client: AsyncClient) -> dict:
    """Register a user. Returns the register response body (tokens + user)."""
    return await register_user(client)


@pytest_asyncio.fixture
async def authed_client(client: AsyncClient, registered_user: dict) -> AsyncClient:
    """Client carrying the registered user's access token."""
    client.headers["Authorization"] = f"Bearer {registered_user['accessToken']}"
    return client
