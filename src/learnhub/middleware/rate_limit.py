"""Redis-backed fixed window rate limiting middleware."""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Any

import structlog
from redis.exceptions import RedisError
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from learnhub.config import Settings
from learnhub.errors import RateLimitError
from learnhub.middleware.error_handler import error_envelope
from learnhub.redis_client import get_redis

logger = structlog.get_logger()

# Paths exempt from rate limiting
_EXEMPT_PATHS = frozenset({"/health", "/ready", "/version"})


@dataclass(frozen=True)
class RateLimitRule:
    """``limit`` requests per ``window_seconds`` per client IP.

    With ``failures_only`` the counter only grows on 4xx/5xx responses, so
    successful logins never lock anyone out.
    """

    name: str
    limit: int
    window_seconds: int
    message: str
    paths: frozenset[str] = frozenset()
    failures_only: bool = False


def rules_from_settings(settings: Settings) -> list[RateLimitRule]:
    """Specific rules first; the last rule (no paths) applies to everything else."""
    return [
        RateLimitRule(
            name="login",
            limit=settings.rate_limit_login_requests,
            window_seconds=settings.rate_limit_login_window_seconds,
            message="Too many login attempts. Please try again later.",
            paths=frozenset({"/api/auth/login"}),
            failures_only=True,
        ),
        RateLimitRule(
            name="register",
            limit=settings.rate_limit_register_requests,
            window_seconds=settings.rate_limit_register_window_seconds,
            message="Too many registrations from this IP address. Please try again later.",
            paths=frozenset({"/api/auth/register"}),
        ),
        RateLimitRule(
            name="general",
            limit=settings.rate_limit_requests,
            window_seconds=settings.rate_limit_window_seconds,
            message="Too many requests. Please try again later.",
        ),
    ]


def match_rule(rules: list[RateLimitRule], path: str) -> RateLimitRule | None:
    for rule in rules:
        if not rule.paths or path in rule.paths:
            return rule
    return None


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Rate limit requests per IP using Redis counters."""

    def __init__(self, app: Any, rules: list[RateLimitRule]) -> None:  # noqa: ANN401
        super().__init__(app)
        self.rules = rules

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        """Check the matching rule, return 429 if exceeded."""
        path = request.url.path
        rule = match_rule(self.rules, path)
        if path in _EXEMPT_PATHS or rule is None:
            return await call_next(request)

        try:
            redis = get_redis()
        except RuntimeError:
            # Redis not configured, so no rate limiting
            return await call_next(request)

        client_ip = request.client.host if request.client else "unknown"
        window = int(time.time()) // rule.window_seconds
        rate_key = f"ratelimit:{rule.name}:{client_ip}:{window}"

        try:
            if rule.failures_only:
                raw = await redis.get(rate_key)
                current_count = int(raw or 0)
            else:
                pipe = redis.pipeline()
                pipe.incr(rate_key)
                pipe.expire(rate_key, rule.window_seconds + 1)
                results: list[Any] = await pipe.execute()
                current_count = int(results[0])
        except RedisError:
            logger.warning("rate_limit_unavailable", exc_info=True)
            return await call_next(request)

        over_limit = current_count >= rule.limit if rule.failures_only else current_count > rule.limit
        if over_limit:
            logger.warning("rate_limited", rule=rule.name, client_ip=client_ip)
            exc = RateLimitError(rule.message)
            return error_envelope(
                exc.status_code,
                exc.message,
                headers={
                    "Retry-After": str(rule.window_seconds),
                    "X-RateLimit-Remaining": "0",
                    "X-RateLimit-Limit": str(rule.limit),
                },
            )

        response = await call_next(request)

        if rule.failures_only and response.status_code >= 400:
            try:
                pipe = redis.pipeline()
                pipe.incr(rate_key)
                pipe.expire(rate_key, rule.window_seconds + 1)
                results = await pipe.execute()
                current_count = int(results[0])
            except RedisError:
                logger.warning("rate_limit_unavailable", exc_info=True)

        remaining = max(0, rule.limit - current_count)
        response.headers["X-RateLimit-Remaining"] = str(remaining)
        response.headers["X-RateLimit-Limit"] = str(rule.limit)
        return response
