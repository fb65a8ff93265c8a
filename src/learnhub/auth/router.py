"""Authentication router: all /api/auth/* endpoints."""

from __future__ import annotations

import structlog
from fastapi import APIRouter, Body, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from learnhub.auth.dependencies import get_current_claims
from learnhub.auth.jwt import AccessTokenClaims, create_access_token
from learnhub.auth.schemas import (
    AuthResponse,
    LoginRequest,
    LogoutAllResponse,
    LogoutRequest,
    MeResponse,
    MessageResponse,
    ProfileResponse,
    RefreshRequest,
    RefreshResponse,
    RegisterRequest,
    SessionEntry,
    SessionsResponse,
    UpdateProfileRequest,
    UserDetailResponse,
    UserResponse,
)
from learnhub.auth.service import authenticate_user, create_user, get_user_by_id, update_user
from learnhub.auth.tokens import (
    create_refresh_token,
    get_user_active_tokens,
    revoke_all_user_tokens,
    revoke_refresh_token,
    token_preview,
    verify_refresh_token,
)
from learnhub.database import get_session, transaction
from learnhub.db.models import User
from learnhub.errors import AuthenticationError, NotFoundError, ValidationError

logger = structlog.get_logger()

router = APIRouter(prefix="/api/auth", tags=["Authentication"])


def _user_response(user: User) -> UserResponse:
    return UserResponse(id=user.id, email=user.email, name=user.name)


def _user_detail(user: User) -> UserDetailResponse:
    return UserDetailResponse(id=user.id, email=user.email, name=user.name, created_at=user.created_at)


async def _issue_tokens(db: AsyncSession, user: User, message: str) -> AuthResponse:
    """Mint an access token and persist a new refresh token."""
    access_token = create_access_token(user.id, user.email)
    async with transaction(db):
        refresh_token = await create_refresh_token(db, user.id)

    return AuthResponse(
        message=message,
        access_token=access_token,
        refresh_token=refresh_token,
        user=_user_response(user),
    )


# ---------------------------------------------------------------------------
# Registration / login
# ---------------------------------------------------------------------------


@router.post("/register", response_model=AuthResponse, status_code=201)
async def register(
    body: RegisterRequest,
    db: AsyncSession = Depends(get_session),
) -> AuthResponse:
    """Register with email + password + name and start a session."""
    logger.info("registration_attempt", email=body.email)
    user = await create_user(db, email=body.email, password=body.password, name=body.name)
    response = await _issue_tokens(db, user, "User created successfully")
    logger.info("user_registered", user_id=user.id)
    return response


@router.post("/login", response_model=AuthResponse)
async def login(
    body: LoginRequest,
    db: AsyncSession = Depends(get_session),
) -> AuthResponse:
    """Login with email + password."""
    user = await authenticate_user(db, body.email, body.password)
    response = await _issue_tokens(db, user, "Logged in successfully")
    logger.info("user_logged_in", user_id=user.id)
    return response


# ---------------------------------------------------------------------------
# Token management
# ---------------------------------------------------------------------------


@router.post("/refresh", response_model=RefreshResponse)
async def refresh(
    body: RefreshRequest,
    db: AsyncSession = Depends(get_session),
) -> RefreshResponse:
    """Exchange a refresh token for a new access token. The refresh token is not rotated."""
    if not body.refresh_token:
        msg = "Refresh token is required"
        raise ValidationError(msg)

    verification = await verify_refresh_token(db, body.refresh_token)
    if not verification.valid or verification.user_id is None:
        logger.warning("refresh_token_rejected", token=token_preview(body.refresh_token))
        msg = "Invalid or expired refresh token"
        raise AuthenticationError(msg)

    user = await get_user_by_id(db, verification.user_id)
    if user is None:
        msg = "User not found"
        raise NotFoundError(msg)

    logger.info("access_token_refreshed", user_id=user.id)
    return RefreshResponse(
        access_token=create_access_token(user.id, user.email),
        user=_user_response(user),
    )


@router.post("/logout", response_model=MessageResponse)
async def logout(
    body: LogoutRequest | None = Body(default=None),
    db: AsyncSession = Depends(get_session),
) -> MessageResponse:
    """Revoke the supplied refresh token. Always succeeds."""
    token = body.refresh_token if body is not None else None
    if token:
        async with transaction(db):
            await revoke_refresh_token(db, token)
        logger.info("user_logged_out", token=token_preview(token))
    return MessageResponse(message="Logged out successfully")


@router.post("/logout-all", response_model=LogoutAllResponse)
async def logout_all(
    claims: AccessTokenClaims = Depends(get_current_claims),
    db: AsyncSession = Depends(get_session),
) -> LogoutAllResponse:
    """Revoke every active refresh token of the caller."""
    async with transaction(db):
        count = await revoke_all_user_tokens(db, claims.user_id)
    logger.info("user_logged_out_everywhere", user_id=claims.user_id, tokens_revoked=count)
    return LogoutAllResponse(
        message=f"Logged out from all devices ({count} tokens revoked)",
        revoked_count=count,
    )


@router.get("/sessions", response_model=SessionsResponse)
async def sessions(
    claims: AccessTokenClaims = Depends(get_current_claims),
    db: AsyncSession = Depends(get_session),
) -> SessionsResponse:
    """List the caller's active refresh tokens (never the token values)."""
    tokens = await get_user_active_tokens(db, claims.user_id)
    return SessionsResponse(
        sessions=[
            SessionEntry(id=t.id, created_at=t.created_at, expires_at=t.expires_at)
            for t in tokens
        ]
    )


# ---------------------------------------------------------------------------
# Profile
# ---------------------------------------------------------------------------


@router.get("/me", response_model=MeResponse)
async def me(
    claims: AccessTokenClaims = Depends(get_current_claims),
    db: AsyncSession = Depends(get_session),
) -> MeResponse:
    """Return the authenticated user."""
    user = await get_user_by_id(db, claims.user_id)
    if user is None:
        msg = "User not found"
        raise NotFoundError(msg)
    return MeResponse(user=_user_detail(user))


@router.put("/update-profile", response_model=ProfileResponse)
async def update_profile(
    body: UpdateProfileRequest,
    claims: AccessTokenClaims = Depends(get_current_claims),
    db: AsyncSession = Depends(get_session),
) -> ProfileResponse:
    """Change the display name."""
    user = await update_user(db, claims.user_id, name=body.name)
    return ProfileResponse(message="Profile updated", user=_user_detail(user))
