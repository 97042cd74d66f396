"""Session helpers for the dashboard: CSRF token issue and the current user."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, Response

from floworx.api.dependencies import get_settings
from floworx.api.middleware.csrf import issue_token
from floworx.api.middleware.user_auth import AuthenticatedUser, get_current_user
from floworx.config import Settings

router = APIRouter(prefix="/api/auth", tags=["auth"])


@router.get("/csrf")
async def get_csrf_token(
    response: Response,
    user: AuthenticatedUser = Depends(get_current_user),
    settings: Settings = Depends(get_settings),
) -> dict[str, str]:
    """
    Issue a double-submit CSRF token.

    The same value is set in the cookie and returned in the body; the client
    echoes it in the CSRF header on every state-changing request.
    """
    token = issue_token()
    response.set_cookie(
        settings.csrf_cookie_name,
        token,
        secure=settings.is_production,
        samesite="strict",
        httponly=False,
    )
    return {"csrf": token}


@router.get("/me")
async def get_me(user: AuthenticatedUser = Depends(get_current_user)) -> dict[str, Any]:
    return {"id": user.id, "email": user.email, "name": user.name}
