"""
Password hashing and policy using argon2id.

Hashing and verification are deliberately slow; the ``*_async`` variants run
them in the Starlette thread pool so request handling is not blocked.
"""

from __future__ import annotations

import re

import argon2
from starlette.concurrency import run_in_threadpool

_hasher = argon2.PasswordHasher(
    time_cost=2,
    memory_cost=65536,  # 64 MB
    parallelism=1,
    hash_len=32,
    salt_len=16,
    type=argon2.Type.ID,  # argon2id
)

PASSWORD_MIN_LENGTH = 8
PASSWORD_MAX_LENGTH = 128
COMMON_PASSWORDS = frozenset({"password", "12345678", "qwerty123", "password123", "admin123"})

NAME_MIN_LENGTH = 2
NAME_MAX_LENGTH = 100
_NAME_PATTERN = re.compile(r"^[a-zA-ZáčďéěíňóřšťúůýžÁČĎÉĚÍŇÓŘŠŤÚŮÝŽ\s]+$")

# Verified against when the email is unknown so both login failure paths cost the same
_DUMMY_HASH = _hasher.hash("learnhub-timing-equalizer")


class PasswordStrengthError(ValueError):
    """Raised when a password does not meet strength requirements."""


def hash_password(password: str) -> str:
    """Hash a password using argon2id. Returns the full hash string."""
    return _hasher.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    """
    Verify a password against its argon2id hash.

    Returns True if the password matches. Never raises on mismatch.
    """
    try:
        return _hasher.verify(password_hash, password)
    except argon2.exceptions.VerifyMismatchError:
        return False
    except argon2.exceptions.InvalidHashError:
        return False


async def hash_password_async(password: str) -> str:
    return await run_in_threadpool(hash_password, password)


async def verify_password_async(password: str, password_hash: str) -> bool:
    return await run_in_threadpool(verify_password, password, password_hash)


async def burn_verification(password: str) -> None:
    """Spend one verification on a dummy hash (unknown-user login path)."""
    await run_in_threadpool(verify_password, password, _DUMMY_HASH)


def validate_password_strength(password: str) -> None:
    """
    Validate password meets minimum strength requirements.

    Raises PasswordStrengthError if the password is too weak.

    Requirements:
    - Minimum 8 characters
    - Maximum 128 characters (prevent DoS via huge passwords)
    - At least one uppercase letter
    - At least one lowercase letter
    - At least one digit
    - Not one of the well-known common passwords
    """
    if not password or not password.strip():
        msg = "Password cannot be empty"
        raise PasswordStrengthError(msg)
    if len(password) < PASSWORD_MIN_LENGTH:
        msg = f"Password must be at least {PASSWORD_MIN_LENGTH} characters"
        raise PasswordStrengthError(msg)
    if len(password) > PASSWORD_MAX_LENGTH:
        msg = f"Password must not exceed {PASSWORD_MAX_LENGTH} characters"
        raise PasswordStrengthError(msg)
    if not any(c.isupper() for c in password):
        msg = "Password must contain at least one uppercase letter"
        raise PasswordStrengthError(msg)
    if not any(c.islower() for c in password):
        msg = "Password must contain at least one lowercase letter"
        raise PasswordStrengthError(msg)
    if not any(c.isdigit() for c in password):
        msg = "Password must contain at least one digit"
        raise PasswordStrengthError(msg)
    if password.lower() in COMMON_PASSWORDS:
        msg = "Password is too common"
        raise PasswordStrengthError(msg)


def normalize_name(name: str) -> str:
    """Trim and validate a display name. Raises ValueError if out of policy."""
    name = (name or "").strip()
    if not name:
        msg = "Name is required"
        raise ValueError(msg)
    if not NAME_MIN_LENGTH <= len(name) <= NAME_MAX_LENGTH:
        msg = f"Name must be {NAME_MIN_LENGTH}-{NAME_MAX_LENGTH} characters"
        raise ValueError(msg)
    if not _NAME_PATTERN.match(name):
        msg = "Name may contain only letters and spaces"
        raise ValueError(msg)
    return name
