"""
Bearer authentication for the FloWorx API.

Verifies Google OAuth access tokens against Google's tokeninfo and userinfo
endpoints and caches the resulting identity for a few minutes.
"""

from __future__ import annotations

from dataclasses import dataclass

import httpx
from cachetools import TTLCache
from fastapi import Request

from floworx.api.errors import AuthenticationError, FloworxError, ServiceUnavailableError
from floworx.config import TOKEN_CACHE_MAX_SIZE, TOKEN_CACHE_TTL_SECONDS, Settings
from floworx.observability.logging import get_logger
from floworx.observability.telemetry import counter

logger = get_logger(__name__)

GOOGLE_TOKEN_INFO_URL = "https://oauth2.googleapis.com/tokeninfo"
GOOGLE_USERINFO_URL = "https://www.googleapis.com/oauth2/v2/userinfo"


@dataclass
class AuthenticatedUser:
    """A dashboard user, identified by their Google account."""

    id: str
    email: str
    name: str | None = None

    def __str__(self) -> str:
        return f"User({self.id})"


# Shorter than Google's one hour token lifetime so revocations take effect
_token_cache: TTLCache[str, AuthenticatedUser] = TTLCache(
    maxsize=TOKEN_CACHE_MAX_SIZE, ttl=TOKEN_CACHE_TTL_SECONDS
)


def _check_audience(token_info: dict, settings: Settings) -> None:
    expected = settings.google_oauth_client_id

    if not expected:
        if settings.is_production:
            logger.error("GOOGLE_OAUTH_CLIENT_ID not configured in production")
            raise FloworxError("Server misconfiguration", code="INTERNAL_ERROR")
        logger.debug("GOOGLE_OAUTH_CLIENT_ID not set, skipping audience check")
        return

    if token_info.get("aud", "") != expected:
        logger.warning("Token audience mismatch")
        raise AuthenticationError("Token not issued for this application")


async def verify_google_token(token: str, settings: Settings) -> AuthenticatedUser:
    """
    Resolve a Google access token to a user

    Raises:
        AuthenticationError: Invalid, expired or foreign token
        ServiceUnavailableError: Google could not be reached
    """
    if token in _token_cache:
        return _token_cache[token]

    async with httpx.AsyncClient(timeout=10.0) as client:
        try:
            token_response = await client.get(GOOGLE_TOKEN_INFO_URL, params={"access_token": token})
            if token_response.status_code != 200:
                counter("auth.invalid_token")
                raise AuthenticationError("Invalid or expired token")

            _check_audience(token_response.json(), settings)

            userinfo_response = await client.get(
                GOOGLE_USERINFO_URL, headers={"Authorization": f"Bearer {token}"}
            )
        except httpx.RequestError as e:
            logger.error("Token verification request failed: %s", type(e).__name__)
            raise ServiceUnavailableError("Authentication service unavailable") from e

    if userinfo_response.status_code != 200:
        raise AuthenticationError("Failed to retrieve user information")

    userinfo = userinfo_response.json()
    user = AuthenticatedUser(id=userinfo["id"], email=userinfo.get("email", ""), name=userinfo.get("name"))

    _token_cache[token] = user
    logger.info("Authenticated %s (cache size: %d)", user, len(_token_cache))
    return user


def _extract_bearer_token(authorization: str | None) -> str:
    if not authorization:
        raise AuthenticationError("Missing authorization header")

    parts = authorization.split()
    if len(parts) != 2 or parts[0].lower() != "bearer":
        raise AuthenticationError("Invalid authorization header format. Expected: Bearer <token>")

    return parts[1]


async def get_current_user(request: Request) -> AuthenticatedUser:
    """
    FastAPI dependency for the authenticated user.

    Usage:
        @router.get("/endpoint")
        def endpoint(user: AuthenticatedUser = Depends(get_current_user)):
            ...
    """
    token = _extract_bearer_token(request.headers.get("Authorization"))
    return await verify_google_token(token, request.app.state.settings)


def clear_token_cache() -> None:
    """Clear the token cache (tests)."""
    _token_cache.clear()
