"""Domain error taxonomy.

Every error carries the HTTP status it maps to; the global handlers in
``learnhub.middleware.error_handler`` render them into the JSON envelope.
"""

from __future__ import annotations

from typing import Any


class AppError(Exception):
    """Base class for errors that are safe to report to the client."""

    status_code: int = 500

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        errors: list[dict[str, Any]] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        self.errors = errors


class ValidationError(AppError):
    """Malformed or out-of-policy input."""

    status_code = 400


class ConflictError(AppError):
    """Duplicate unique key."""

    status_code = 409


class AuthenticationError(AppError):
    """Missing, invalid or expired credentials."""

    status_code = 401


class InvalidTokenError(AuthenticationError):
    """Access token failed signature or claim checks."""


class ExpiredTokenError(AuthenticationError):
    """Access token is past its expiry."""


class NotFoundError(AppError):
    """Referenced entity does not exist."""

    status_code = 404


class RateLimitError(AppError):
    """Client exceeded a rate limit rule."""

    status_code = 429


class InternalError(AppError):
    """Unexpected store or signing failure. The message is never shown to clients."""

    status_code = 500


def field_error(field: str, message: str) -> dict[str, str]:
    """Build a field-level validation entry. Input values are never included."""
    return {"field": field, "message": message}
