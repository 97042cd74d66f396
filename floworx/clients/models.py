"""
Module: models
Purpose: Typed records for the per-client configuration document.
Dependencies: floworx.config (AISettings), floworx.mailbox.taxonomy (category names)

The stored/wire form is a camelCase JSON document; these dataclasses are the
in-process form that validation produces and the store serializes.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Union

from floworx.config import AISettings
from floworx.mailbox.taxonomy import CANONICAL_CATEGORIES

PROVIDERS: tuple[str, ...] = ("gmail", "o365")
DEFAULT_SIGNATURE = "default"


# ---------------------------------------------------------------------------
# Document parts
# ---------------------------------------------------------------------------


@dataclass
class Manager:
    name: str
    email: str

    def to_dict(self) -> dict[str, str]:
        return {"name": self.name, "email": self.email}


@dataclass
class ClientProfile:
    """Business identity shown in generated replies and workflow metadata."""

    name: str
    timezone: str
    website: str = ""
    phones: list[str] = field(default_factory=list)
    address: str = ""
    hours: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "timezone": self.timezone,
            "website": self.website,
            "phones": list(self.phones),
            "address": self.address,
            "hours": dict(self.hours),
        }


@dataclass(frozen=True)
class LockedAI:
    """AI parameters owned by the server. Client input never reaches these."""

    model: str
    temperature: float
    max_tokens: int
    locked: bool = True

    @classmethod
    def from_settings(cls, ai: AISettings) -> LockedAI:
        return cls(model=ai.model, temperature=ai.temperature, max_tokens=ai.max_tokens)

    def to_dict(self) -> dict[str, Any]:
        return {
            "model": self.model,
            "temperature": self.temperature,
            "maxTokens": self.max_tokens,
            "locked": self.locked,
        }


def default_label_map() -> dict[str, list[str]]:
    return {category.key: [category.name] for category in CANONICAL_CATEGORIES}


# ---------------------------------------------------------------------------
# Full document
# ---------------------------------------------------------------------------


@dataclass
class ClientConfig:
    """A normalized client configuration, ready to persist."""

    client: ClientProfile
    provider: str
    managers: list[Manager]
    ai: LockedAI
    suppliers: list[str] = field(default_factory=list)
    label_map: dict[str, list[str]] = field(default_factory=default_label_map)
    signature: str = DEFAULT_SIGNATURE
    signature_locked: bool = True

    @property
    def has_custom_signature(self) -> bool:
        return self.signature != DEFAULT_SIGNATURE

    def to_document(self) -> dict[str, Any]:
        return {
            "client": self.client.to_dict(),
            "channels": {"email": {"provider": self.provider}},
            "people": {
                "managers": [m.to_dict() for m in self.managers],
                "suppliers": list(self.suppliers),
            },
            "labelMap": {k: list(v) for k, v in self.label_map.items()},
            "signature": self.signature,
            "signatureLocked": self.signature_locked,
            "ai": self.ai.to_dict(),
        }


def default_config(ai: AISettings) -> ClientConfig:
    """The document a client gets before anything has been saved."""
    return ClientConfig(
        client=ClientProfile(name="", timezone="UTC"),
        provider="gmail",
        managers=[],
        ai=LockedAI.from_settings(ai),
    )


# ---------------------------------------------------------------------------
# Validation outcome
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class FieldError:
    field: str
    message: str

    def to_dict(self) -> dict[str, str]:
        return {"field": self.field, "message": self.message}


@dataclass(frozen=True)
class Valid:
    config: ClientConfig


@dataclass(frozen=True)
class Invalid:
    errors: tuple[FieldError, ...]


ValidationResult = Union[Valid, Invalid]


# ---------------------------------------------------------------------------
# Stored record
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class StoredConfig:
    """A config document as read back from the store."""

    client_id: str
    version: int
    config: dict[str, Any]
    updated_at: str | None = None
    owner_user_id: str | None = None

    @property
    def provider(self) -> str:
        return self.config.get("channels", {}).get("email", {}).get("provider", "gmail")

    def to_response(self) -> dict[str, Any]:
        return {
            "clientId": self.client_id,
            "version": self.version,
            "config": self.config,
            "updatedAt": self.updated_at,
        }
