"""
HS256 access token management.

Access tokens are stateless: they carry the user id and email and are checked
by signature and expiry only. Revoking a refresh token does not shorten the
life of access tokens already issued.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any

import jwt

from learnhub.config import get_settings
from learnhub.errors import ExpiredTokenError, InvalidTokenError


@dataclass(frozen=True)
class AccessTokenClaims:
    """Identity carried by a verified access token."""

    user_id: int
    email: str


def create_access_token(user_id: int, email: str, *, now: datetime | None = None) -> str:
    """
    Create a short-lived access token.

    Args:
        user_id: The user's database ID.
        email: The user's (lowercased) email.
        now: Issue time, defaults to the current UTC time.

    Returns:
        Encoded JWT string.
    """
    settings = get_settings()
    if now is None:
        now = datetime.now(timezone.utc)
    payload: dict[str, Any] = {
        "sub": str(user_id),
        "userId": user_id,
        "email": email,
        "iat": now,
        "exp": now + timedelta(minutes=settings.jwt_access_token_expire_minutes),
        "iss": settings.jwt_issuer,
        "type": "access",
    }
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def verify_access_token(token: str) -> AccessTokenClaims:
    """
    Verify and decode an access token.

    Raises:
        ExpiredTokenError: If the token is past its expiry.
        InvalidTokenError: On a bad signature, malformed token or wrong claims.
    """
    settings = get_settings()
    try:
        payload: dict[str, Any] = jwt.decode(
            token,
            settings.jwt_secret,
            algorithms=[settings.jwt_algorithm],
            issuer=settings.jwt_issuer,
            options={"require": ["exp", "sub"]},
        )
    except jwt.ExpiredSignatureError:
        msg = "Token has expired, please log in again"
        raise ExpiredTokenError(msg) from None
    except jwt.InvalidTokenError:
        msg = "Invalid authentication token"
        raise InvalidTokenError(msg) from None

    if payload.get("type") != "access":
        msg = "Invalid authentication token"
        raise InvalidTokenError(msg)

    try:
        return AccessTokenClaims(user_id=int(payload["sub"]), email=str(payload.get("email", "")))
    except (TypeError, ValueError):
        msg = "Invalid authentication token"
        raise InvalidTokenError(msg) from None
