"""
Mailbox API endpoints.

Discovery of the connected mailbox's labels, label provisioning and the
stored category -> label mapping. ``clientId`` defaults to the signed-in
user's id; any other client must be owned by the caller.
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, ConfigDict, Field, field_validator

from floworx.api.dependencies import (
    access_denied,
    checked_client_id,
    get_config_store,
    get_label_provider,
    get_mapping_repository,
    mailbox_error,
    require_supported_provider,
)
from floworx.api.errors import NotFoundError
from floworx.api.middleware.user_auth import AuthenticatedUser, get_current_user
from floworx.clients.models import StoredConfig
from floworx.clients.store import ClientAccessDenied, ClientConfigStore
from floworx.config import (
    PROVISION_MAX_ITEMS,
    PROVISION_MAX_PATH_DEPTH,
    PROVISION_MAX_SEGMENT_LENGTH,
)
from floworx.mailbox.discovery import discover
from floworx.mailbox.provider import LabelProvider, MailboxNotConnectedError, MailboxProviderError
from floworx.mailbox.provisioning import MailboxProvisioner, ProvisionItem
from floworx.mailbox.repository import MailboxMappingRepository, MappingEntry
from floworx.mailbox.suggest import suggest_mapping
from floworx.mailbox.taxonomy import CATEGORY_KEYS, LABEL_SEPARATOR
from floworx.observability.logging import get_logger
from floworx.utils.validators import validate_label_color

router = APIRouter(prefix="/api/mailbox", tags=["mailbox"])
logger = get_logger(__name__)


# ============================================================================
# Request Models
# ============================================================================


class ProvisionItemRequest(BaseModel):
    """One label to create, given as path segments (``["Service", "Emergency"]``)."""

    path: list[str] = Field(min_length=1, max_length=PROVISION_MAX_PATH_DEPTH)
    color: str | None = None

    @field_validator("path")
    @classmethod
    def validate_path(cls, v: list[str]) -> list[str]:
        segments = [segment.strip() for segment in v]
        for segment in segments:
            if not segment:
                raise ValueError("Path segments cannot be empty")
            if len(segment) > PROVISION_MAX_SEGMENT_LENGTH:
                raise ValueError(f"Path segments are limited to {PROVISION_MAX_SEGMENT_LENGTH} characters")
            if LABEL_SEPARATOR in segment:
                raise ValueError(f"Path segments cannot contain '{LABEL_SEPARATOR}'")
        return segments

    @field_validator("color")
    @classmethod
    def validate_color(cls, v: str | None) -> str | None:
        return validate_label_color(v)


class ProvisionRequest(BaseModel):
    """Without ``items`` the canonical taxonomy is provisioned."""

    model_config = ConfigDict(populate_by_name=True)

    provider: str = "gmail"
    client_id: str | None = Field(default=None, alias="clientId")
    items: list[ProvisionItemRequest] | None = None

    @field_validator("items")
    @classmethod
    def validate_items(cls, v: list[ProvisionItemRequest] | None) -> list[ProvisionItemRequest] | None:
        if v is not None and not 1 <= len(v) <= PROVISION_MAX_ITEMS:
            raise ValueError(f"Provide between 1 and {PROVISION_MAX_ITEMS} items")
        return v


class MappingEntryRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    category: str
    gmail_label_id: str = Field(alias="gmailLabelId", min_length=1)
    gmail_label_name: str = Field(alias="gmailLabelName", min_length=1)

    @field_validator("category")
    @classmethod
    def validate_category(cls, v: str) -> str:
        key = v.strip().upper()
        if key not in CATEGORY_KEYS:
            raise ValueError(f"Unknown category: {v}")
        return key


class SaveMappingRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    provider: str = "gmail"
    client_id: str | None = Field(default=None, alias="clientId")
    mapping: list[MappingEntryRequest]

    @field_validator("mapping")
    @classmethod
    def validate_unique_categories(cls, v: list[MappingEntryRequest]) -> list[MappingEntryRequest]:
        categories = [entry.category for entry in v]
        if len(categories) != len(set(categories)):
            raise ValueError("Each category can only be mapped once")
        return v


# ============================================================================
# Helpers
# ============================================================================


def _owned_config(store: ClientConfigStore, client_id: str | None, user: AuthenticatedUser) -> StoredConfig:
    client_id = checked_client_id(client_id or user.id)
    try:
        return store.get(client_id, user.id)
    except ClientAccessDenied as e:
        raise access_denied(e) from None


def _claimed_config(store: ClientConfigStore, client_id: str | None, user: AuthenticatedUser) -> StoredConfig:
    """Like ``_owned_config``, but an unclaimed client becomes the caller's (default config row)."""
    client_id = checked_client_id(client_id or user.id)
    try:
        return store.ensure_default(client_id, user.id)
    except ClientAccessDenied as e:
        raise access_denied(e) from None


# ============================================================================
# Endpoints
# ============================================================================


@router.get("/discover")
def discover_mailbox(
    provider: str = Query("gmail"),
    client_id: str | None = Query(None, alias="clientId"),
    user: AuthenticatedUser = Depends(get_current_user),
    store: ClientConfigStore = Depends(get_config_store),
    mappings: MailboxMappingRepository = Depends(get_mapping_repository),
    label_provider: LabelProvider = Depends(get_label_provider),
) -> dict[str, Any]:
    """Existing label tree plus a suggested category -> label mapping."""
    require_supported_provider(provider)
    stored = _owned_config(store, client_id, user)

    try:
        result = discover(label_provider, provider)
    except (MailboxProviderError, MailboxNotConnectedError) as e:
        logger.warning("Discovery for %s failed: %s", stored.client_id, e)
        raise mailbox_error(e) from e

    current = mappings.get(stored.client_id)
    return {
        **result.to_dict(),
        "clientId": stored.client_id,
        "suggestion": suggest_mapping(result.labels, stored.config.get("labelMap")),
        "currentMapping": current.to_dict() if current else None,
    }


@router.post("/provision")
def provision_mailbox(
    request: ProvisionRequest,
    user: AuthenticatedUser = Depends(get_current_user),
    store: ClientConfigStore = Depends(get_config_store),
    mappings: MailboxMappingRepository = Depends(get_mapping_repository),
    label_provider: LabelProvider = Depends(get_label_provider),
) -> dict[str, Any]:
    """
    Create labels in the connected mailbox.

    Explicit ``items`` are created as given and reported as created/skipped/
    failed with a summary. Without items, the canonical taxonomy is
    provisioned and the mapping persisted.
    """
    require_supported_provider(request.provider)
    stored = _claimed_config(store, request.client_id, user)
    client_id = stored.client_id
    # labels go to the mailbox the client is configured for
    provider_name = require_supported_provider(stored.provider)
    provisioner = MailboxProvisioner(label_provider, mappings, provider_name=provider_name)

    try:
        if request.items is None:
            return provisioner.provision_taxonomy(client_id, stored.config.get("labelMap")).to_dict()

        items = [ProvisionItem(path=tuple(item.path), color=item.color) for item in request.items]
        result = provisioner.provision_items(client_id, items)
    except (MailboxProviderError, MailboxNotConnectedError) as e:
        logger.warning("Provisioning for %s failed: %s", client_id, e)
        raise mailbox_error(e) from e

    return {"ok": True, "clientId": client_id, "provider": provider_name, **result}


@router.put("/mapping")
def save_mapping(
    request: SaveMappingRequest,
    user: AuthenticatedUser = Depends(get_current_user),
    store: ClientConfigStore = Depends(get_config_store),
    mappings: MailboxMappingRepository = Depends(get_mapping_repository),
) -> dict[str, Any]:
    """Replace the stored mapping; every save bumps the version."""
    require_supported_provider(request.provider)
    stored = _claimed_config(store, request.client_id, user)

    entries = [
        MappingEntry(entry.category, entry.gmail_label_id, entry.gmail_label_name) for entry in request.mapping
    ]
    saved = mappings.save(stored.client_id, request.provider, entries)

    return {"ok": True, "provider": saved.provider, "version": saved.version, "updatedAt": saved.updated_at}


@router.get("/mapping")
def get_mapping(
    provider: str = Query("gmail"),
    client_id: str | None = Query(None, alias="clientId"),
    user: AuthenticatedUser = Depends(get_current_user),
    store: ClientConfigStore = Depends(get_config_store),
    mappings: MailboxMappingRepository = Depends(get_mapping_repository),
) -> dict[str, Any]:
    stored = _owned_config(store, client_id, user)

    mapping = mappings.get(stored.client_id)
    if mapping is None or mapping.provider != provider:
        raise NotFoundError(f"No {provider} mapping saved for this client", code="MAPPING_NOT_FOUND")

    return mapping.to_dict()
