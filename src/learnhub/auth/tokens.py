"""
Refresh token ledger.

Refresh tokens are opaque 40-byte random strings rendered as hex. They are
persisted verbatim, may be revoked individually or per user, and are purged
by :func:`delete_expired_tokens` once expired or revoked.
"""

from __future__ import annotations

import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING

import structlog
from sqlalchemy import delete, or_, select, update

from learnhub.config import get_settings
from learnhub.db.models import RefreshToken

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

logger = structlog.get_logger()

TOKEN_BYTES = 40


@dataclass(frozen=True)
class RefreshTokenVerification:
    """Outcome of :func:`verify_refresh_token`. The failure reason is never exposed."""

    valid: bool
    user_id: int | None = None


def generate_refresh_token() -> str:
    """Return a fresh opaque token (320 bits of entropy, hex encoded)."""
    return secrets.token_hex(TOKEN_BYTES)


def _now() -> datetime:
    return datetime.now(timezone.utc)


async def create_refresh_token(db: AsyncSession, user_id: int, *, now: datetime | None = None) -> str:
    """Persist a new refresh token for the user and return the raw string.

    The caller owns the transaction.
    """
    settings = get_settings()
    if now is None:
        now = _now()
    raw_token = generate_refresh_token()
    db.add(
        RefreshToken(
            user_id=user_id,
            token=raw_token,
            expires_at=now + timedelta(days=settings.jwt_refresh_token_expire_days),
            revoked=False,
            created_at=now,
        )
    )
    await db.flush()
    return raw_token


async def find_refresh_token(db: AsyncSession, token: str) -> RefreshToken | None:
    """Look up a non-revoked token row. Expired rows are still returned."""
    result = await db.execute(
        select(RefreshToken).where(
            RefreshToken.token == token,
            RefreshToken.revoked.is_(False),
        )
    )
    return result.scalar_one_or_none()


async def verify_refresh_token(
    db: AsyncSession, token: str, *, now: datetime | None = None
) -> RefreshTokenVerification:
    """Valid only if the token exists, is not revoked and has not expired.

    A token is still valid at the exact instant of its expiry, matching
    :func:`delete_expired_tokens`, which only purges rows with ``expires_at < now``.
    """
    if not token:
        return RefreshTokenVerification(valid=False)
    if now is None:
        now = _now()
    result = await db.execute(
        select(RefreshToken.user_id).where(
            RefreshToken.token == token,
            RefreshToken.revoked.is_(False),
            RefreshToken.expires_at >= now,
        )
    )
    user_id = result.scalar_one_or_none()
    if user_id is None:
        return RefreshTokenVerification(valid=False)
    return RefreshTokenVerification(valid=True, user_id=user_id)


async def revoke_refresh_token(db: AsyncSession, token: str) -> int:
    """Revoke a single token. Unknown or already revoked tokens are a no-op.

    Returns the number of rows changed (0 or 1).
    """
    result = await db.execute(
        update(RefreshToken)
        .where(RefreshToken.token == token)
        .where(RefreshToken.revoked.is_(False))
        .values(revoked=True)
    )
    return result.rowcount or 0


async def revoke_all_user_tokens(db: AsyncSession, user_id: int) -> int:
    """Revoke every non-revoked token owned by the user. Returns count revoked."""
    result = await db.execute(
        update(RefreshToken)
        .where(RefreshToken.user_id == user_id)
        .where(RefreshToken.revoked.is_(False))
        .values(revoked=True)
    )
    return result.rowcount or 0


async def delete_expired_tokens(db: AsyncSession, *, now: datetime | None = None) -> int:
    """Purge rows that are expired or revoked. Returns count deleted."""
    if now is None:
        now = _now()
    result = await db.execute(
        delete(RefreshToken).where(
            or_(RefreshToken.expires_at < now, RefreshToken.revoked.is_(True))
        )
    )
    return result.rowcount or 0


async def get_user_active_tokens(
    db: AsyncSession, user_id: int, *, now: datetime | None = None
) -> list[RefreshToken]:
    """Active (unexpired, unrevoked) tokens of a user, newest first."""
    if now is None:
        now = _now()
    result = await db.execute(
        select(RefreshToken)
        .where(
            RefreshToken.user_id == user_id,
            RefreshToken.revoked.is_(False),
            RefreshToken.expires_at >= now,
        )
        .order_by(RefreshToken.created_at.desc(), RefreshToken.id.desc())
    )
    return list(result.scalars())


def token_preview(token: str) -> str:
    """Loggable prefix of a token."""
    return f"{token[:10]}..."
