"""FastAPI authentication dependencies."""

from __future__ import annotations

from fastapi import Request, Security
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from learnhub.auth.jwt import AccessTokenClaims, verify_access_token
from learnhub.errors import AuthenticationError

_bearer = HTTPBearer(auto_error=False)


async def get_current_claims(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Security(_bearer),
) -> AccessTokenClaims:
    """
    Require a valid bearer access token and return its claims.

    The claims are also attached to ``request.state.user`` for downstream use.
    Raises 401 when the token is missing, invalid or expired.
    """
    if credentials is None or not credentials.credentials:
        msg = "Access denied. Please log in."
        raise AuthenticationError(msg)

    claims = verify_access_token(credentials.credentials)
    request.state.user = claims
    return claims


async def get_optional_claims(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Security(_bearer),
) -> AccessTokenClaims | None:
    """Same verification as :func:`get_current_claims`, but failure means anonymous."""
    request.state.user = None
    if credentials is None or not credentials.credentials:
        return None
    try:
        claims = verify_access_token(credentials.credentials)
    except AuthenticationError:
        return None
    request.state.user = claims
    return claims
