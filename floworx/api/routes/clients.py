"""
Client configuration API.

GET/PUT the versioned config document, provision the client's mailbox against
the canonical taxonomy, and render the client's personalized workflow.
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Body, Depends, Query

from floworx.api.dependencies import (
    access_denied,
    checked_client_id,
    get_config_store,
    get_label_provider,
    get_mapping_repository,
    get_template_selector,
    mailbox_error,
    require_supported_provider,
)
from floworx.api.errors import ValidationFailedError
from floworx.api.middleware.user_auth import AuthenticatedUser, get_current_user
from floworx.clients.store import ClientAccessDenied, ClientConfigStore, ConfigValidationError
from floworx.mailbox.provider import LabelProvider, MailboxNotConnectedError, MailboxProviderError
from floworx.mailbox.provisioning import MailboxProvisioner
from floworx.mailbox.repository import MailboxMappingRepository
from floworx.observability.logging import get_logger
from floworx.workflows.industries import BusinessDescriptors
from floworx.workflows.personalize import personalize_workflow
from floworx.workflows.selector import TemplateSelector

router = APIRouter(prefix="/api/clients", tags=["clients"])
logger = get_logger(__name__)


@router.get("/{client_id}/config")
def get_client_config(
    client_id: str,
    user: AuthenticatedUser = Depends(get_current_user),
    store: ClientConfigStore = Depends(get_config_store),
) -> dict[str, Any]:
    """Stored config, or the default document for a client that never saved one."""
    client_id = checked_client_id(client_id)
    try:
        return store.get(client_id, user.id).to_response()
    except ClientAccessDenied as e:
        raise access_denied(e) from None


@router.put("/{client_id}/config")
def put_client_config(
    client_id: str,
    payload: Any = Body(...),
    user: AuthenticatedUser = Depends(get_current_user),
    store: ClientConfigStore = Depends(get_config_store),
) -> dict[str, Any]:
    """Full replace. 400 with every failing field if the document is invalid."""
    client_id = checked_client_id(client_id)
    try:
        version = store.put(client_id, payload, user.id)
    except ConfigValidationError as e:
        raise ValidationFailedError(
            "Configuration validation failed",
            details=[error.to_dict() for error in e.errors],
        ) from None
    except ClientAccessDenied as e:
        raise access_denied(e) from None

    return {"ok": True, "version": version}


@router.post("/{client_id}/provision")
def provision_client_mailbox(
    client_id: str,
    user: AuthenticatedUser = Depends(get_current_user),
    store: ClientConfigStore = Depends(get_config_store),
    mappings: MailboxMappingRepository = Depends(get_mapping_repository),
    provider: LabelProvider = Depends(get_label_provider),
) -> dict[str, Any]:
    """
    Create the canonical labels the client's mailbox is missing.

    A client without a stored config gets the default document first. Label
    create failures are reported in ``errors`` with a 200.
    """
    client_id = checked_client_id(client_id)
    try:
        stored = store.ensure_default(client_id, user.id)
    except ClientAccessDenied as e:
        raise access_denied(e) from None

    provider_name = stored.provider
    require_supported_provider(provider_name)

    provisioner = MailboxProvisioner(provider, mappings, provider_name=provider_name)
    try:
        result = provisioner.provision_taxonomy(client_id, stored.config.get("labelMap"))
    except (MailboxProviderError, MailboxNotConnectedError) as e:
        logger.warning("Provisioning for %s failed: %s", client_id, e)
        raise mailbox_error(e) from e

    return result.to_dict()


@router.get("/{client_id}/workflow")
def get_client_workflow(
    client_id: str,
    industry: str | None = Query(None, max_length=100),
    services: list[str] | None = Query(None),
    user: AuthenticatedUser = Depends(get_current_user),
    store: ClientConfigStore = Depends(get_config_store),
    mappings: MailboxMappingRepository = Depends(get_mapping_repository),
    selector: TemplateSelector = Depends(get_template_selector),
) -> dict[str, Any]:
    """Pick the workflow template for the client's business and fill it in."""
    client_id = checked_client_id(client_id)
    try:
        stored = store.get(client_id, user.id)
    except ClientAccessDenied as e:
        raise access_denied(e) from None

    descriptors = BusinessDescriptors(
        business_name=stored.config.get("client", {}).get("name", ""),
        industry=industry or "",
        services=tuple(services or ()),
    )
    selected = selector.select(descriptors)
    workflow = personalize_workflow(selected, stored, mappings.get(client_id))

    return {
        "clientId": client_id,
        "industry": selected.industry,
        "templateSource": selected.source,
        "workflow": workflow,
    }
