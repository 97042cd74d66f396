"""
API error types and the JSON error envelope.

Every error leaves the API as::

    {"error": {"code": "...", "message": "...", "details": [...]}}

``details`` is only present when there is something itemized to report
(validation field errors). Unexpected exceptions become a generic 500; the
real error is only logged.
"""

from __future__ import annotations

from typing import Any

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from floworx.observability.logging import get_logger
from floworx.observability.telemetry import counter
from floworx.utils.error_sanitizer import generic_message, sanitize_error_message

logger = get_logger(__name__)


class FloworxError(Exception):
    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    code: str = "INTERNAL_ERROR"

    def __init__(self, message: str, code: str | None = None, details: list[dict[str, Any]] | None = None):
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code
        self.details = details


class ValidationFailedError(FloworxError):
    status_code = status.HTTP_400_BAD_REQUEST
    code = "VALIDATION_FAILED"


class AuthenticationError(FloworxError):
    status_code = status.HTTP_401_UNAUTHORIZED
    code = "UNAUTHORIZED"


class AuthorizationError(FloworxError):
    status_code = status.HTTP_403_FORBIDDEN
    code = "FORBIDDEN"


class NotFoundError(FloworxError):
    status_code = status.HTTP_404_NOT_FOUND
    code = "NOT_FOUND"


class ExternalServiceError(FloworxError):
    status_code = status.HTTP_502_BAD_GATEWAY
    code = "MAILBOX_PROVIDER_ERROR"


class ServiceUnavailableError(FloworxError):
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    code = "SERVICE_UNAVAILABLE"


_HTTP_CODES = {
    400: "VALIDATION_FAILED",
    401: "UNAUTHORIZED",
    403: "FORBIDDEN",
    404: "NOT_FOUND",
    405: "METHOD_NOT_ALLOWED",
    503: "SERVICE_UNAVAILABLE",
}


def error_body(code: str, message: str, details: list[dict[str, Any]] | None = None) -> dict[str, Any]:
    error: dict[str, Any] = {"code": code, "message": message}
    if details:
        error["details"] = details
    return {"error": error}


def error_response(
    status_code: int,
    code: str,
    message: str,
    details: list[dict[str, Any]] | None = None,
    headers: dict[str, str] | None = None,
) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=error_body(code, message, details), headers=headers)


async def floworx_error_handler(request: Request, exc: FloworxError) -> JSONResponse:
    counter(f"api.error.{exc.code.lower()}")
    if exc.status_code >= 500:
        logger.error("%s on %s %s: %s", exc.code, request.method, request.url.path, exc.message)
    headers = {"WWW-Authenticate": "Bearer"} if exc.status_code == 401 else None
    return error_response(exc.status_code, exc.code, exc.message, exc.details, headers)


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    code = _HTTP_CODES.get(exc.status_code, "HTTP_ERROR")
    message = sanitize_error_message(str(exc.detail or ""), exc.status_code)
    return error_response(exc.status_code, code, message, headers=getattr(exc, "headers", None))


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Malformed bodies/params become a 400 with one entry per offending field."""
    counter("api.validation_errors")
    logger.warning("Request validation failed on %s: %d errors", request.url.path, len(exc.errors()))

    details = [
        {
            # drop the leading "body"/"query" location marker
            "field": ".".join(str(part) for part in err.get("loc", ())[1:]) or "body",
            "message": err.get("msg", "Invalid value"),
        }
        for err in exc.errors()
    ]
    return error_response(400, "VALIDATION_FAILED", "Request validation failed", details)


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    counter("api.error.internal")
    return error_response(500, "INTERNAL_ERROR", generic_message(500))


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(FloworxError, floworx_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
