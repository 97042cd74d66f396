"""Authenticated Gmail label client

The production ``LabelProvider``: lists and creates labels through the Gmail
API on behalf of one user. Gmail ``HttpError`` is translated into
``MailboxProviderError`` so provisioning can record per-label failures.
"""

from __future__ import annotations

from typing import Any

from googleapiclient.errors import HttpError

from floworx.gmail.oauth import GmailOAuthService
from floworx.mailbox.provider import MailboxProviderError
from floworx.observability.logging import get_logger
from floworx.observability.telemetry import counter, log_event

logger = get_logger(__name__)

# Gmail requires both colors to come from its palette
LABEL_TEXT_COLOR = "#ffffff"


def _provider_error(action: str, error: HttpError) -> MailboxProviderError:
    status = error.resp.status if error.resp is not None else None
    code = "LABEL_EXISTS" if status == 409 else "MAILBOX_PROVIDER_ERROR"
    reason = error.reason if isinstance(getattr(error, "reason", None), str) else "request failed"
    return MailboxProviderError(f"Gmail {action} failed: {reason}", status=status, code=code)


class GmailLabelClient:
    """
    Gmail label operations for one user

    Satisfies ``floworx.mailbox.provider.LabelProvider``.
    """

    def __init__(self, user_id: str, oauth_service: GmailOAuthService | None = None):
        self.user_id = user_id
        self.oauth_service = oauth_service or GmailOAuthService()
        self._service = None

    @property
    def service(self) -> Any:
        if self._service is None:
            self._service = self.oauth_service.build_gmail_service(self.user_id)
        return self._service

    def list_labels(self) -> list[dict[str, Any]]:
        try:
            response = self.service.users().labels().list(userId="me").execute()
        except HttpError as e:
            logger.error("Gmail API error listing labels: %s", e)
            log_event("gmail.labels_list.error", status=e.resp.status, user_id=self.user_id)
            raise _provider_error("label listing", e) from e

        labels = response.get("labels", [])
        counter("gmail.labels_list.count")
        return labels

    def create_label(self, name: str, color: str | None = None) -> dict[str, Any]:
        body: dict[str, Any] = {
            "name": name,
            "messageListVisibility": "show",
            "labelListVisibility": "labelShow",
        }
        if color:
            body["color"] = {"backgroundColor": color, "textColor": LABEL_TEXT_COLOR}

        try:
            created = self.service.users().labels().create(userId="me", body=body).execute()
        except HttpError as e:
            logger.error("Gmail API error creating label %s: %s", name, e)
            log_event("gmail.label_create.error", status=e.resp.status, user_id=self.user_id)
            raise _provider_error("label create", e) from e

        log_event("mailbox.label_created", user_id=self.user_id, label_id=created.get("id"))
        return created
