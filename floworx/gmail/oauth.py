"""Gmail credentials for label discovery and provisioning

Loads the user's stored OAuth token, refreshes it when it is about to expire
and builds an authenticated Gmail API service.

SECURITY:
- Tokens stored encrypted via UserCredentialsRepository
- Refresh happens 5 minutes before expiry
"""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from typing import Any

from google.auth.exceptions import RefreshError
from google.auth.transport.requests import Request
from google.oauth2.credentials import Credentials
from googleapiclient.discovery import build

from floworx.mailbox.provider import MailboxNotConnectedError, MailboxProviderError
from floworx.observability.logging import get_logger
from floworx.observability.telemetry import counter, log_event
from floworx.storage.user_credentials_repository import UserCredentialsRepository

logger = get_logger(__name__)

# Label management needs gmail.labels; gmail.modify also covers it
GMAIL_SCOPES = [
    "https://www.googleapis.com/auth/gmail.labels",
    "https://www.googleapis.com/auth/gmail.modify",
]


def _token_dict(credentials: Credentials) -> dict[str, Any]:
    return {
        "token": credentials.token,
        "refresh_token": credentials.refresh_token,
        "token_uri": credentials.token_uri,
        "client_id": credentials.client_id,
        "client_secret": credentials.client_secret,
        "scopes": credentials.scopes,
    }


class GmailOAuthService:
    """Turns a user's stored token into an authenticated Gmail service."""

    def __init__(self, credentials_repo: UserCredentialsRepository | None = None):
        self.credentials_repo = credentials_repo or UserCredentialsRepository()

    def get_credentials(self, user_id: str, auto_refresh: bool = True) -> Credentials:
        """
        Stored credentials for the user, refreshed if close to expiry

        Raises:
            MailboxNotConnectedError: If the user never connected Gmail
            MailboxProviderError: If Google refuses the refresh
        """
        stored = self.credentials_repo.get_by_user_id(user_id)
        if not stored:
            logger.warning("No Gmail credentials for user: %s", user_id)
            raise MailboxNotConnectedError(f"No Gmail account connected for user {user_id}")

        token = stored["token_dict"]
        credentials = Credentials(
            token=token.get("token"),
            refresh_token=token.get("refresh_token"),
            token_uri=token.get("token_uri"),
            client_id=token.get("client_id"),
            client_secret=token.get("client_secret"),
            scopes=stored["scopes"],
        )

        if auto_refresh and self.credentials_repo.is_token_expired(user_id):
            logger.info("Token expired or expiring soon, refreshing for user: %s", user_id)
            credentials = self.refresh_credentials(user_id, credentials)

        return credentials

    def refresh_credentials(self, user_id: str, credentials: Credentials) -> Credentials:
        """
        Refresh and re-store an expired token

        Side Effects:
            - Calls Google's token endpoint
            - Rewrites the encrypted token and last_refresh_at
        """
        if not credentials.refresh_token:
            raise MailboxNotConnectedError(f"Gmail connection for user {user_id} has no refresh token")

        try:
            credentials.refresh(Request())
        except RefreshError as e:
            logger.error("Failed to refresh Gmail token for user %s: %s", user_id, e)
            log_event("oauth.refresh_failed", user_id=user_id)
            raise MailboxProviderError("Gmail token refresh failed", status=401) from e

        expiry = credentials.expiry or datetime.now(UTC) + timedelta(hours=1)
        if expiry.tzinfo is None:
            expiry = expiry.replace(tzinfo=UTC)

        self.credentials_repo.store_credentials(
            user_id=user_id,
            token_dict=_token_dict(credentials),
            scopes=list(credentials.scopes or GMAIL_SCOPES),
            token_expiry=expiry,
        )
        self.credentials_repo.update_refresh_timestamp(user_id)

        counter("oauth.token_refreshed.count")
        log_event("oauth.token_refreshed", user_id=user_id)
        return credentials

    def build_gmail_service(self, user_id: str) -> Any:
        """Authenticated ``gmail v1`` service (googleapiclient Resource)."""
        credentials = self.get_credentials(user_id)
        service = build("gmail", "v1", credentials=credentials, cache_discovery=False)
        logger.info("Built Gmail API service for user: %s", user_id)
        return service
