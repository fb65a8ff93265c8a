"""
Credential store and login.

Owns the users table: creation (with the initial stats row), lookups,
password checks and profile updates.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import TYPE_CHECKING

import structlog
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from learnhub.auth.password import (
    burn_verification,
    hash_password_async,
    normalize_name,
    verify_password_async,
)
from learnhub.database import transaction
from learnhub.db.models import User, UserStats
from learnhub.errors import AuthenticationError, ConflictError, NotFoundError, ValidationError, field_error

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

logger = structlog.get_logger()

INVALID_CREDENTIALS = "Invalid email or password"


def normalize_email(email: str) -> str:
    return (email or "").strip().lower()


# ---------------------------------------------------------------------------
# User queries
# ---------------------------------------------------------------------------


async def get_user_by_id(db: AsyncSession, user_id: int) -> User | None:
    """Fetch a user by ID."""
    result = await db.execute(select(User).where(User.id == user_id))
    return result.scalar_one_or_none()


async def get_user_by_email(db: AsyncSession, email: str) -> User | None:
    """Fetch a user by email (case-insensitive; emails are stored lowercased)."""
    result = await db.execute(select(User).where(User.email == normalize_email(email)))
    return result.scalar_one_or_none()


async def validate_password(password: str, password_hash: str) -> bool:
    """Compare a plaintext password to a stored hash."""
    return await verify_password_async(password, password_hash)


# ---------------------------------------------------------------------------
# Registration
# ---------------------------------------------------------------------------


async def create_user(db: AsyncSession, email: str, password: str, name: str) -> User:
    """
    Create a user together with a zeroed stats row, in one transaction.

    Password strength is the request layer's concern; this only rejects
    empty input.

    Raises:
        ValidationError: If email, password or name is empty.
        ConflictError: If the lowercased email already exists.
    """
    email = normalize_email(email)
    name = (name or "").strip()
    errors = []
    if not email:
        errors.append(field_error("email", "Email is required"))
    if not password:
        errors.append(field_error("password", "Password is required"))
    if not name:
        errors.append(field_error("name", "Name is required"))
    if errors:
        msg = "Input validation failed"
        raise ValidationError(msg, errors=errors)

    if await get_user_by_email(db, email) is not None:
        msg = "This email is already registered"
        raise ConflictError(msg)

    password_hash = await hash_password_async(password)
    now = datetime.now(timezone.utc)

    try:
        async with transaction(db):
            user = User(
                email=email,
                password_hash=password_hash,
                name=name,
                created_at=now,
                updated_at=now,
            )
            db.add(user)
            await db.flush()
            db.add(UserStats(user_id=user.id, badges=[]))
            await db.flush()
    except IntegrityError as e:
        # Lost a race against a concurrent registration of the same email
        msg = "This email is already registered"
        raise ConflictError(msg) from e

    logger.info("user_created", user_id=user.id, email=email)
    return user


# ---------------------------------------------------------------------------
# Login
# ---------------------------------------------------------------------------


async def authenticate_user(db: AsyncSession, email: str, password: str) -> User:
    """
    Authenticate with email + password.

    Unknown email and wrong password raise the same error after the same
    amount of hashing work.

    Raises:
        AuthenticationError: If credentials are invalid.
    """
    user = await get_user_by_email(db, email)
    if user is None:
        await burn_verification(password)
        logger.warning("login_failed", reason="unknown_email")
        raise AuthenticationError(INVALID_CREDENTIALS)

    if not await validate_password(password, user.password_hash):
        logger.warning("login_failed", reason="bad_password", user_id=user.id)
        raise AuthenticationError(INVALID_CREDENTIALS)

    return user


# ---------------------------------------------------------------------------
# Profile
# ---------------------------------------------------------------------------


async def update_user(db: AsyncSession, user_id: int, *, name: str | None) -> User:
    """
    Overwrite the user's name and updated-at timestamp.

    Raises:
        NotFoundError: If the user does not exist.
        ValidationError: If the name is empty or out of policy.
    """
    user = await get_user_by_id(db, user_id)
    if user is None:
        msg = "User not found"
        raise NotFoundError(msg)

    try:
        clean_name = normalize_name(name or "")
    except ValueError as e:
        msg = "Input validation failed"
        raise ValidationError(msg, errors=[field_error("name", str(e))]) from e

    async with transaction(db):
        user.name = clean_name
        user.updated_at = datetime.now(timezone.utc)

    logger.info("user_updated", user_id=user_id)
    return user
