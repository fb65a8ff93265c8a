"""Middleware tests: request ID, rate limiting, CORS, error envelope."""

from __future__ import annotations

from collections.abc import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from redis.exceptions import ConnectionError as RedisConnectionError

from learnhub.config import get_settings
from learnhub.errors import InternalError
from learnhub.main import create_app
from tests.conftest import TEST_PASSWORD


class _FakePipeline:
    def __init__(self, redis: _FakeRedis) -> None:
        self.redis = redis
        self.ops: list[str] = []

    def incr(self, key: str) -> None:
        self.ops.append(key)

    def expire(self, key: str, seconds: int) -> None:
        self.redis.ttls[key] = seconds

    async def execute(self) -> list[int]:
        if self.redis.fail:
            msg = "connection refused"
            raise RedisConnectionError(msg)
        results = []
        for key in self.ops:
            self.redis.counters[key] = self.redis.counters.get(key, 0) + 1
            results.append(self.redis.counters[key])
        return [*results, True]


class _FakeRedis:
    """In-memory counters with the subset of the client API the limiter uses."""

    def __init__(self) -> None:
        self.counters: dict[str, int] = {}
        self.ttls: dict[str, int] = {}
        self.fail = False

    def pipeline(self) -> _FakePipeline:
        return _FakePipeline(self)

    async def get(self, key: str) -> int | None:
        if self.fail:
            msg = "connection refused"
            raise RedisConnectionError(msg)
        return self.counters.get(key)


@pytest.fixture
def fake_redis(monkeypatch) -> _FakeRedis:
    redis = _FakeRedis()
    monkeypatch.setattr("learnhub.middleware.rate_limit.get_redis", lambda: redis)
    return redis


@pytest_asyncio.fixture
async def failing_client(database) -> AsyncGenerator[AsyncClient, None]:
    """Client whose app has routes that blow up, with server errors returned as responses."""
    app = create_app(get_settings(), database)

    @app.get("/boom")
    async def boom() -> None:
        msg = "kaboom"
        raise RuntimeError(msg)

    @app.get("/internal")
    async def internal() -> None:
        msg = "connection pool exhausted"
        raise InternalError(msg)

    transport = ASGITransport(app=app, raise_app_exceptions=False)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


# ---------------------------------------------------------------------------
# Request ID
# ---------------------------------------------------------------------------


async def test_request_id_generated(client: AsyncClient) -> None:
    """Request ID is auto-generated when not provided."""
    response = await client.get("/health")
    assert len(response.headers["x-request-id"]) == 36  # UUID format


async def test_request_id_preserved(client: AsyncClient) -> None:
    """Custom request ID is echoed back in response."""
    response = await client.get("/health", headers={"X-Request-Id": "test-abc-123"})
    assert response.headers["x-request-id"] == "test-abc-123"


# ---------------------------------------------------------------------------
# Rate limiting
# ---------------------------------------------------------------------------


async def test_no_rate_limit_headers_without_redis(client: AsyncClient) -> None:
    response = await client.get("/api/user-progress")
    assert response.status_code == 200
    assert "x-ratelimit-limit" not in response.headers


async def test_rate_limit_headers(client: AsyncClient, fake_redis: _FakeRedis) -> None:
    """Rate limit headers are present on non-exempt endpoints."""
    response = await client.get("/api/user-progress")
    assert response.headers["x-ratelimit-limit"] == "100"
    assert response.headers["x-ratelimit-remaining"] == "99"


async def test_rate_limit_blocks_excess(client: AsyncClient, fake_redis: _FakeRedis) -> None:
    """101st request returns 429 with Retry-After header."""
    for _ in range(100):
        await client.get("/api/user-progress")
    response = await client.get("/api/user-progress")
    assert response.status_code == 429
    assert response.headers["retry-after"] == "900"
    assert response.json() == {"success": False, "error": "Too many requests. Please try again later."}


async def test_health_exempt_from_rate_limit(client: AsyncClient, fake_redis: _FakeRedis) -> None:
    """Health endpoint is exempt from rate limiting."""
    for _ in range(150):
        response = await client.get("/health")
        assert response.status_code == 200
    assert fake_redis.counters == {}


async def test_register_limit(client: AsyncClient, fake_redis: _FakeRedis) -> None:
    """Three registrations per hour per IP."""
    for i in range(3):
        response = await client.post(
            "/api/auth/register",
            json={"email": f"user{i}@example.com", "password": TEST_PASSWORD, "name": "Anna"},
        )
        assert response.status_code == 201
    response = await client.post(
        "/api/auth/register",
        json={"email": "user9@example.com", "password": TEST_PASSWORD, "name": "Anna"},
    )
    assert response.status_code == 429
    assert "registrations" in response.json()["error"]


async def test_login_limit_counts_failures_only(client: AsyncClient, fake_redis: _FakeRedis) -> None:
    """Successful logins never consume the login budget."""
    await client.post(
        "/api/auth/register",
        json={"email": "anna@example.com", "password": TEST_PASSWORD, "name": "Anna"},
    )
    good = {"email": "anna@example.com", "password": TEST_PASSWORD}
    bad = {"email": "anna@example.com", "password": "Wr0ngPassword"}

    for _ in range(10):
        assert (await client.post("/api/auth/login", json=good)).status_code == 200

    for _ in range(5):
        assert (await client.post("/api/auth/login", json=bad)).status_code == 401

    response = await client.post("/api/auth/login", json=good)
    assert response.status_code == 429
    assert response.json()["error"] == "Too many login attempts. Please try again later."


async def test_rate_limit_fails_open_when_redis_errors(client: AsyncClient, fake_redis: _FakeRedis) -> None:
    fake_redis.fail = True
    response = await client.get("/api/user-progress")
    assert response.status_code == 200


# ---------------------------------------------------------------------------
# CORS
# ---------------------------------------------------------------------------


async def test_cors_preflight(client: AsyncClient) -> None:
    """CORS preflight returns access-control-allow-origin for configured origin."""
    response = await client.options(
        "/api/auth/login",
        headers={
            "Origin": "http://localhost:3000",
            "Access-Control-Request-Method": "POST",
        },
    )
    assert response.headers["access-control-allow-origin"] == "http://localhost:3000"


# ---------------------------------------------------------------------------
# Error envelope
# ---------------------------------------------------------------------------


async def test_404_returns_envelope(client: AsyncClient) -> None:
    """Unknown paths return 404 with the error envelope."""
    response = await client.get("/nonexistent-path")
    assert response.status_code == 404
    assert response.json() == {"success": False, "error": "Not Found"}


async def test_405_returns_envelope(client: AsyncClient) -> None:
    response = await client.get("/api/auth/login")
    assert response.status_code == 405
    assert response.json()["success"] is False


async def test_500_returns_envelope_with_stack_outside_production(failing_client: AsyncClient) -> None:
    """Unhandled exceptions become a generic 500; the stack is included in non-production."""
    response = await failing_client.get("/boom")
    assert response.status_code == 500
    body = response.json()
    assert body["success"] is False
    assert body["error"] == "Internal server error"
    assert "RuntimeError: kaboom" in body["stack"]


async def test_500_keeps_request_id_and_cors_headers(failing_client: AsyncClient) -> None:
    response = await failing_client.get(
        "/boom", headers={"X-Request-Id": "trace-500", "Origin": "http://localhost:3000"}
    )
    assert response.status_code == 500
    assert response.headers["x-request-id"] == "trace-500"
    assert response.headers["access-control-allow-origin"] == "http://localhost:3000"
    assert "X-Request-Id" in response.headers["access-control-expose-headers"]


async def test_500_mints_request_id_and_skips_cors_for_unknown_origin(failing_client: AsyncClient) -> None:
    response = await failing_client.get("/boom", headers={"Origin": "https://evil.example"})
    assert response.status_code == 500
    assert len(response.headers["x-request-id"]) == 36
    assert "access-control-allow-origin" not in response.headers


async def test_internal_error_hides_message(failing_client: AsyncClient) -> None:
    response = await failing_client.get("/internal")
    assert response.status_code == 500
    assert response.json() == {"success": False, "error": "Internal server error"}


async def test_500_hides_stack_in_production(database, monkeypatch) -> None:
    monkeypatch.setenv("LEARNHUB_ENVIRONMENT", "production")
    get_settings.cache_clear()
    try:
        app = create_app(get_settings(), database)

        @app.get("/boom")
        async def boom() -> None:
            msg = "kaboom"
            raise RuntimeError(msg)

        transport = ASGITransport(app=app, raise_app_exceptions=False)
        async with AsyncClient(transport=transport, base_url="http://test") as ac:
            response = await ac.get("/boom")
    finally:
        monkeypatch.undo()
        get_settings.cache_clear()

    assert response.status_code == 500
    assert response.json() == {"success": False, "error": "Internal server error"}
