"""
Error message sanitization.

Keeps stack traces, SQL errors, file paths and tokens out of client-visible
error messages. The full error is logged server-side.
"""

from __future__ import annotations

import re

from floworx.observability.logging import get_logger

logger = get_logger(__name__)

SENSITIVE_PATTERNS = [
    # File paths
    r"/[^\s]+\.py",
    r"[A-Za-z]:\\[^\s]+",
    # Stack traces
    r"Traceback \(most recent call last\)",
    r"File \".*\"",
    # Database errors
    r"sqlite3?\.",
    r"constraint failed",
    r"no such (table|column)",
    # Credentials
    r"Bearer [A-Za-z0-9._-]+",
    r"ya29\.[A-Za-z0-9._-]+",
    r"[A-Za-z0-9_-]{32,}",
    # Internal module names
    r"floworx\.[a-z_.]+",
    r"googleapiclient",
]

GENERIC_MESSAGES = {
    400: "Invalid request. Please check your input and try again.",
    401: "Authentication required.",
    403: "Access denied.",
    404: "Resource not found.",
    422: "Invalid data format.",
    500: "An internal error occurred. Please try again later.",
    502: "The mail provider request failed. Please try again later.",
    503: "Service temporarily unavailable.",
}


def generic_message(status_code: int) -> str:
    return GENERIC_MESSAGES.get(status_code, "An error occurred.")


def sanitize_error_message(message: str, status_code: int = 500) -> str:
    """
    Return ``message`` if it is safe to show a client, else a generic one.

    Only short 4xx messages pass through; 5xx always get the generic text.
    """
    if not message or status_code >= 500:
        return generic_message(status_code)

    for pattern in SENSITIVE_PATTERNS:
        if re.search(pattern, message, re.IGNORECASE):
            logger.warning("Sanitized sensitive error pattern: %s", pattern)
            return generic_message(status_code)

    if len(message) > 200 or "\n" in message:
        return generic_message(status_code)

    return message
