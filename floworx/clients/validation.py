"""
Module: validation
Purpose: Validate and normalize a candidate client configuration.

``validate_config`` is a pure function: raw JSON in, ``Valid(config)`` or
``Invalid(errors)`` out. Every failing field is reported, not only the first.

Order of checks:
    1. required fields (client.name, client.timezone, provider, first manager)
    2. provider enum and IANA timezone
    3. manager emails / first manager name
    4. supplier and labelMap normalization
    5. AI lock (silent overwrite with server values)
    6. signature guardrail, against the parsed manager list
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from floworx.clients.models import (
    DEFAULT_SIGNATURE,
    PROVIDERS,
    ClientConfig,
    ClientProfile,
    FieldError,
    Invalid,
    LockedAI,
    Manager,
    Valid,
    ValidationResult,
    default_label_map,
)
from floworx.clients.signature import check_signature
from floworx.config import SIGNATURE_MAX_LENGTH, Settings
from floworx.utils.validators import (
    ValidationError,
    is_valid_email,
    normalize_supplier_domain,
    validate_website,
)


def _section(raw: Mapping[str, Any], key: str) -> Mapping[str, Any]:
    value = raw.get(key)
    return value if isinstance(value, Mapping) else {}


def _is_blank(value: Any) -> bool:
    return not isinstance(value, str) or not value.strip()


# the longest IANA zone name is 32 characters
TIMEZONE_MAX_LENGTH = 64


def is_valid_timezone(name: str) -> bool:
    if len(name) > TIMEZONE_MAX_LENGTH:
        return False
    try:
        ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError, OSError):
        return False
    return True


# ---------------------------------------------------------------------------
# Normalizers (also used directly by tests)
# ---------------------------------------------------------------------------


def normalize_suppliers(raw: Any, errors: list[FieldError]) -> list[str]:
    """Lower-case, strip ``@``, de-duplicate in first-seen order."""
    if raw is None:
        return []
    if not isinstance(raw, list):
        errors.append(FieldError("people.suppliers", "Suppliers must be a list of domains"))
        return []

    seen: list[str] = []
    for index, entry in enumerate(raw):
        try:
            domain = normalize_supplier_domain(entry)
        except ValidationError as e:
            errors.append(FieldError(f"people.suppliers[{index}]", str(e)))
            continue
        if domain and domain not in seen:
            seen.append(domain)
    return seen


def normalize_label_map(raw: Any, errors: list[FieldError]) -> dict[str, list[str]]:
    """
    Defaults overlaid with the client's categories.

    Values are stringified, blank entries dropped and duplicates removed per
    category. A bare string counts as a one-item list.
    """
    label_map = default_label_map()
    if raw is None:
        return label_map
    if not isinstance(raw, Mapping):
        errors.append(FieldError("labelMap", "labelMap must be an object of category -> labels"))
        return label_map

    for key, value in raw.items():
        category = str(key).strip().upper()
        if not category:
            errors.append(FieldError("labelMap", "labelMap category names must not be empty"))
            continue

        if value is None:
            values: list[Any] = []
        elif isinstance(value, list):
            values = value
        elif isinstance(value, (str, int, float)) and not isinstance(value, bool):
            values = [value]
        else:
            errors.append(FieldError(f"labelMap.{category}", "Labels must be a string or a list of strings"))
            continue

        labels: list[str] = []
        for item in values:
            if item is None or isinstance(item, (dict, list)):
                continue
            text = str(item).strip()
            if text and text not in labels:
                labels.append(text)
        label_map[category] = labels

    return label_map


# ---------------------------------------------------------------------------
# Sections
# ---------------------------------------------------------------------------


def _client_profile(raw: Mapping[str, Any], errors: list[FieldError]) -> ClientProfile:
    client = _section(raw, "client")

    name = client.get("name")
    if _is_blank(name):
        errors.append(FieldError("client.name", "Client name is required"))

    timezone = client.get("timezone")
    if _is_blank(timezone):
        errors.append(FieldError("client.timezone", "Client timezone is required"))
    elif not is_valid_timezone(timezone.strip()):
        errors.append(FieldError("client.timezone", f"Unknown timezone: {timezone.strip()[:TIMEZONE_MAX_LENGTH]}"))

    text: dict[str, str] = {}
    for key in ("website", "address"):
        value = client.get(key)
        if value is None:
            text[key] = ""
        elif isinstance(value, str):
            text[key] = value.strip()
            if key == "website":
                try:
                    text[key] = validate_website(value)
                except ValidationError as e:
                    errors.append(FieldError("client.website", str(e)))
        else:
            errors.append(FieldError(f"client.{key}", f"{key.capitalize()} must be a string"))
            text[key] = ""

    phones = client.get("phones") or []
    if not isinstance(phones, list):
        errors.append(FieldError("client.phones", "Phones must be a list"))
        phones = []

    hours = client.get("hours") or {}
    if not isinstance(hours, Mapping):
        errors.append(FieldError("client.hours", "Hours must be an object"))
        hours = {}

    return ClientProfile(
        name=name.strip() if isinstance(name, str) else "",
        timezone=timezone.strip() if isinstance(timezone, str) else "",
        website=text["website"],
        phones=[str(p).strip() for p in phones if str(p).strip()],
        address=text["address"],
        hours=dict(hours),
    )


def _provider(raw: Mapping[str, Any], errors: list[FieldError]) -> str:
    provider = _section(_section(raw, "channels"), "email").get("provider")
    if provider is None or (isinstance(provider, str) and not provider.strip()):
        errors.append(FieldError("channels.email.provider", "Email provider is required"))
        return ""
    if provider not in PROVIDERS:
        errors.append(FieldError("channels.email.provider", 'Email provider must be "gmail" or "o365"'))
        return ""
    return provider


def _managers(raw: Mapping[str, Any], errors: list[FieldError]) -> list[Manager]:
    entries = _section(raw, "people").get("managers")
    if not isinstance(entries, list) or not entries:
        errors.append(FieldError("people.managers[0]", "At least one manager is required"))
        return []

    managers: list[Manager] = []
    for index, entry in enumerate(entries):
        if not isinstance(entry, Mapping):
            errors.append(FieldError(f"people.managers[{index}]", "Manager must be an object with name and email"))
            continue

        name = entry.get("name")
        email = entry.get("email")

        if index == 0 and _is_blank(name):
            errors.append(FieldError("people.managers[0].name", "First manager name is required"))
        elif name is not None and not isinstance(name, str):
            errors.append(FieldError(f"people.managers[{index}].name", "Manager name must be a string"))

        if not is_valid_email(email):
            errors.append(FieldError(f"people.managers[{index}].email", "A valid email address is required"))

        managers.append(
            Manager(
                name=name.strip() if isinstance(name, str) else "",
                email=email.strip() if isinstance(email, str) else "",
            )
        )

    return managers


def _signature(raw: Mapping[str, Any], errors: list[FieldError]) -> tuple[str, bool]:
    signature = raw.get("signature", DEFAULT_SIGNATURE)
    if signature is None or (isinstance(signature, str) and not signature.strip()):
        signature = DEFAULT_SIGNATURE
    elif not isinstance(signature, str):
        errors.append(FieldError("signature", 'Signature must be "default" or a custom string'))
        signature = DEFAULT_SIGNATURE
    elif len(signature) > SIGNATURE_MAX_LENGTH:
        errors.append(FieldError("signature", f"Signature must be at most {SIGNATURE_MAX_LENGTH} characters"))

    locked = raw.get("signatureLocked", True)
    if not isinstance(locked, bool):
        errors.append(FieldError("signatureLocked", "signatureLocked must be true or false"))
        locked = True

    return signature, locked


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def validate_config(raw: Any, settings: Settings) -> ValidationResult:
    """Validate and normalize a full candidate config document."""
    if not isinstance(raw, Mapping):
        return Invalid((FieldError("config", "Configuration must be a JSON object"),))

    errors: list[FieldError] = []

    client = _client_profile(raw, errors)
    provider = _provider(raw, errors)
    managers = _managers(raw, errors)
    suppliers = normalize_suppliers(_section(raw, "people").get("suppliers"), errors)
    label_map = normalize_label_map(raw.get("labelMap"), errors)
    signature, signature_locked = _signature(raw, errors)

    config = ClientConfig(
        client=client,
        provider=provider,
        managers=managers,
        # whatever the client sent under "ai" is ignored
        ai=LockedAI.from_settings(settings.ai),
        suppliers=suppliers,
        label_map=label_map,
        signature=signature,
        signature_locked=signature_locked,
    )

    signature_error = check_signature(config)
    if signature_error is not None:
        errors.append(signature_error)

    if errors:
        return Invalid(tuple(errors))
    return Valid(config)
