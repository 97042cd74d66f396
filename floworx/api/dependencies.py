"""FastAPI dependencies shared by the route modules.

Tests swap the mailbox provider out with ``app.dependency_overrides``.
"""

from __future__ import annotations

from fastapi import Depends, Request

from floworx.api.errors import (
    AuthorizationError,
    ExternalServiceError,
    ValidationFailedError,
)
from floworx.api.middleware.user_auth import AuthenticatedUser, get_current_user
from floworx.clients.store import ClientAccessDenied, ClientConfigStore
from floworx.config import Settings
from floworx.gmail.authenticated_client import GmailLabelClient
from floworx.mailbox.provider import LabelProvider, MailboxNotConnectedError, MailboxProviderError
from floworx.mailbox.repository import MailboxMappingRepository
from floworx.utils.validators import ValidationError, validate_client_id
from floworx.workflows.selector import TemplateSelector


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_template_selector(request: Request) -> TemplateSelector:
    return request.app.state.template_selector


def get_config_store(settings: Settings = Depends(get_settings)) -> ClientConfigStore:
    return ClientConfigStore(settings)


def get_mapping_repository() -> MailboxMappingRepository:
    return MailboxMappingRepository()


def get_label_provider(user: AuthenticatedUser = Depends(get_current_user)) -> LabelProvider:
    """Gmail labels of the signed-in user's connected mailbox."""
    return GmailLabelClient(user.id)


def checked_client_id(client_id: str) -> str:
    try:
        return validate_client_id(client_id)
    except ValidationError as e:
        raise ValidationFailedError(str(e), code="INVALID_CLIENT_ID") from None


def require_supported_provider(provider: str) -> str:
    if provider != "gmail":
        raise ValidationFailedError(
            f"Mailbox provider '{provider}' is not supported yet", code="UNSUPPORTED_PROVIDER"
        )
    return provider


def access_denied(exc: ClientAccessDenied) -> AuthorizationError:
    return AuthorizationError(f"You do not have access to client {exc.client_id}")


def mailbox_error(exc: MailboxProviderError | MailboxNotConnectedError) -> ValidationFailedError | ExternalServiceError:
    if isinstance(exc, MailboxNotConnectedError):
        return ValidationFailedError(
            "Connect a Gmail account before provisioning labels", code="MAILBOX_NOT_CONNECTED"
        )
    return ExternalServiceError("The mail provider request failed", code="MAILBOX_PROVIDER_ERROR")
