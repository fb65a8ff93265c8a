"""Redis connection used by the rate limiter.

Redis is optional: with ``LEARNHUB_REDIS_URL`` empty the pool is never
created, :func:`get_redis` raises ``RuntimeError`` and rate limiting is off.
"""

import redis.asyncio as redis

_pool: redis.Redis | None = None


async def init_redis(url: str, *, max_connections: int = 20) -> redis.Redis:
    """Create the shared client. Counters are small ints, so responses are decoded."""
    global _pool  # noqa: PLW0603
    _pool = redis.from_url(  # type: ignore[no-untyped-call]
        url,
        encoding="utf-8",
        decode_responses=True,
        max_connections=max_connections,
        socket_connect_timeout=2,
        socket_timeout=2,
    )
    return _pool


async def close_redis() -> None:
    global _pool  # noqa: PLW0603
    if _pool is not None:
        await _pool.aclose()
        _pool = None


def is_redis_enabled() -> bool:
    return _pool is not None


def get_redis() -> redis.Redis:
    """Return the shared client. Raises ``RuntimeError`` when Redis is not configured."""
    if _pool is None:
        msg = "Redis is not configured (LEARNHUB_REDIS_URL is empty)"
        raise RuntimeError(msg)
    return _pool
