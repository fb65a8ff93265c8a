"""Request/response schemas for authentication endpoints.

Wire names are camelCase (``accessToken``, ``refreshToken``); Python
attributes stay snake_case.
"""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator
from pydantic.alias_generators import to_camel

from learnhub.auth.password import normalize_name, validate_password_strength

EMAIL_MAX_LENGTH = 255


class CamelModel(BaseModel):
    """Base model that reads and writes camelCase keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


def _normalize_email(v: str) -> str:
    v = v.lower().strip()
    if len(v) > EMAIL_MAX_LENGTH:
        msg = "Email is too long"
        raise ValueError(msg)
    return v


# ---------------------------------------------------------------------------
# Requests
# ---------------------------------------------------------------------------


class RegisterRequest(CamelModel):
    """Email registration request."""

    email: EmailStr
    password: str
    name: str

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        """Normalize email to lowercase."""
        return _normalize_email(v)

    @field_validator("password")
    @classmethod
    def check_password(cls, v: str) -> str:
        validate_password_strength(v)
        return v

    @field_validator("name")
    @classmethod
    def check_name(cls, v: str) -> str:
        return normalize_name(v)


class LoginRequest(CamelModel):
    """Login with email + password."""

    email: EmailStr
    password: str = Field(..., min_length=1, max_length=128)

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        """Normalize email to lowercase."""
        return _normalize_email(v)


class RefreshRequest(CamelModel):
    """Exchange a refresh token for a new access token. Missing token is a 400."""

    refresh_token: str | None = None


class LogoutRequest(CamelModel):
    """Logout (revoke refresh token). The token is optional; logout always succeeds."""

    refresh_token: str | None = None

    @field_validator("refresh_token", mode="before")
    @classmethod
    def ignore_non_string_token(cls, v: object) -> str | None:
        """A token of the wrong type cannot match any ledger row, so it is dropped."""
        return v if isinstance(v, str) else None


class UpdateProfileRequest(CamelModel):
    """Update the display name."""

    name: str

    @field_validator("name")
    @classmethod
    def check_name(cls, v: str) -> str:
        return normalize_name(v)


# ---------------------------------------------------------------------------
# Responses
# ---------------------------------------------------------------------------


class UserResponse(CamelModel):
    """Safe user projection. Never carries the password hash."""

    id: int
    email: str
    name: str


class UserDetailResponse(UserResponse):
    created_at: datetime | None = None


class AuthResponse(CamelModel):
    """Returned by register and login."""

    success: bool = True
    message: str
    access_token: str
    refresh_token: str
    user: UserResponse


class RefreshResponse(CamelModel):
    success: bool = True
    access_token: str
    user: UserResponse


class MeResponse(CamelModel):
    success: bool = True
    user: UserDetailResponse


class ProfileResponse(CamelModel):
    success: bool = True
    message: str
    user: UserDetailResponse


class MessageResponse(CamelModel):
    success: bool = True
    message: str


class LogoutAllResponse(CamelModel):
    success: bool = True
    message: str
    revoked_count: int


class SessionEntry(CamelModel):
    """An active refresh token, described without its secret value."""

    id: int
    created_at: datetime
    expires_at: datetime


class SessionsResponse(CamelModel):
    success: bool = True
    sessions: list[SessionEntry]
