"""
CSRF protection middleware for the FloWorx API.

Double-submit token: ``GET /api/auth/csrf`` sets a random token in the
``fx_csrf`` cookie and returns it in the body. Every state-changing request
must echo the same value in the ``X-CSRF-Token`` header.

Rejections are returned as a 403 envelope directly; exceptions raised inside
BaseHTTPMiddleware never reach the app's exception handlers.
"""

from __future__ import annotations

import secrets
from collections.abc import Awaitable, Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from floworx.api.errors import error_response
from floworx.config import CSRF_COOKIE_NAME, CSRF_HEADER_NAME
from floworx.observability.logging import get_logger
from floworx.observability.telemetry import counter

logger = get_logger(__name__)

STATE_CHANGING_METHODS = {"POST", "PUT", "PATCH", "DELETE"}

CSRF_EXEMPT_PATHS = {
    "/api/health",
    "/api/health/db",
}


def issue_token() -> str:
    return secrets.token_urlsafe(32)


class CSRFMiddleware(BaseHTTPMiddleware):
    def __init__(
        self,
        app: ASGIApp,
        cookie_name: str = CSRF_COOKIE_NAME,
        header_name: str = CSRF_HEADER_NAME,
    ):
        super().__init__(app)
        self.cookie_name = cookie_name
        self.header_name = header_name

    async def dispatch(self, request: Request, call_next: Callable[[Request], Awaitable[Response]]) -> Response:
        if request.method not in STATE_CHANGING_METHODS or request.url.path in CSRF_EXEMPT_PATHS:
            return await call_next(request)

        cookie = request.cookies.get(self.cookie_name)
        header = request.headers.get(self.header_name)

        if cookie and header and secrets.compare_digest(cookie.encode(), header.encode()):
            return await call_next(request)

        logger.warning(
            "CSRF check failed: method=%s path=%s cookie=%s header=%s",
            request.method,
            request.url.path,
            bool(cookie),
            bool(header),
        )
        counter("api.csrf_rejected")
        return error_response(403, "CSRF_INVALID", "Missing or invalid CSRF token")
