"""
Input validation utilities.

Syntax checks shared by config validation and the HTTP routes. Each
``validate_*`` returns the normalized value or raises ``ValidationError``.
"""

from __future__ import annotations

import re
from urllib.parse import urlparse

from floworx.config import CLIENT_ID_MAX_LENGTH

# Pragmatic email syntax: local part, one @, dotted domain with a 2+ letter TLD
EMAIL_PATTERN = re.compile(r"^[A-Za-z0-9.!#$%&'*+/=?^_`{|}~-]+@[A-Za-z0-9](?:[A-Za-z0-9-]*[A-Za-z0-9])?(?:\.[A-Za-z0-9](?:[A-Za-z0-9-]*[A-Za-z0-9])?)*\.[A-Za-z]{2,}$")
MAX_EMAIL_LENGTH = 254

# Lowercase labels separated by single dots, at least one dot
SUPPLIER_DOMAIN_PATTERN = re.compile(
    r"^[a-z0-9]([a-z0-9-]*[a-z0-9])?(\.[a-z0-9]([a-z0-9-]*[a-z0-9])?)+$"
)
MAX_DOMAIN_LENGTH = 253  # DNS limit

CLIENT_ID_PATTERN = re.compile(r"^[A-Za-z0-9._:@-]+$")

HEX_COLOR_PATTERN = re.compile(r"^#[0-9A-Fa-f]{6}$")
MAX_WEBSITE_LENGTH = 2048


class ValidationError(ValueError):
    """Raised when input validation fails."""


def is_valid_email(email: object) -> bool:
    if not isinstance(email, str):
        return False
    email = email.strip()
    return 0 < len(email) <= MAX_EMAIL_LENGTH and bool(EMAIL_PATTERN.match(email))


def normalize_supplier_domain(domain: object) -> str | None:
    """
    Normalize one supplier entry to a bare lowercase domain.

    Strips whitespace and a leading ``@`` (people paste "@acme.com").

    Returns:
        The normalized domain, or None for an empty entry

    Raises:
        ValidationError: If the entry is not a domain
    """
    if domain is None:
        return None
    if not isinstance(domain, str):
        raise ValidationError("Supplier domain must be a string")

    domain = domain.strip().lower().lstrip("@")
    if not domain:
        return None

    if len(domain) > MAX_DOMAIN_LENGTH:
        raise ValidationError(f"Supplier domain exceeds maximum length of {MAX_DOMAIN_LENGTH}")

    if not SUPPLIER_DOMAIN_PATTERN.match(domain):
        raise ValidationError(f"Invalid supplier domain: {domain}")

    return domain


def validate_client_id(client_id: str | None) -> str:
    """
    Validate a tenant identifier from the URL or query string.

    Raises:
        ValidationError: If the id is empty, too long or has unexpected characters
    """
    client_id = (client_id or "").strip()

    if not client_id:
        raise ValidationError("Client id is required")

    if len(client_id) > CLIENT_ID_MAX_LENGTH:
        raise ValidationError(f"Client id exceeds maximum length of {CLIENT_ID_MAX_LENGTH}")

    if not CLIENT_ID_PATTERN.match(client_id):
        raise ValidationError(
            "Invalid client id. Use letters, numbers, dots, dashes, underscores, colons or @."
        )

    return client_id


def validate_label_color(color: str | None) -> str | None:
    """Validate a ``#RRGGBB`` label color; returned lower-cased like the Gmail palette."""
    if color is None:
        return None
    if not HEX_COLOR_PATTERN.match(color):
        raise ValidationError("Color must be a #RRGGBB hex value")
    return color.lower()


def website_host(website: str) -> str | None:
    """Host part of a website, with or without a scheme; None if it has none."""
    website = website.strip()
    if not website:
        return None
    try:
        host = urlparse(website if "://" in website else f"//{website}").hostname
    except ValueError:
        return None
    return host or None


def validate_website(website: str) -> str:
    """
    Validate a client website such as ``acmehvac.com`` or ``https://www.acmehvac.com``.

    Raises:
        ValidationError: If the value is too long or has no parseable host
    """
    website = website.strip()
    if len(website) > MAX_WEBSITE_LENGTH:
        raise ValidationError(f"Website exceeds maximum length of {MAX_WEBSITE_LENGTH}")
    if website and website_host(website) is None:
        raise ValidationError(f"Invalid website: {website}")
    return website
