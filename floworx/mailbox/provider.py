"""
Mail provider seam.

Discovery and provisioning talk to a ``LabelProvider``. The Gmail client in
``floworx.gmail.authenticated_client`` is the production implementation;
tests inject an in-memory one.
"""

from __future__ import annotations

from typing import Any, Protocol


class MailboxProviderError(Exception):
    """A call to the mail provider failed."""

    def __init__(self, message: str, status: int | None = None, code: str = "MAILBOX_PROVIDER_ERROR"):
        super().__init__(message)
        self.status = status
        self.code = code


class MailboxNotConnectedError(Exception):
    """The user has not connected a mailbox, so there is nothing to call."""


class LabelProvider(Protocol):
    def list_labels(self) -> list[dict[str, Any]]:
        """All labels in the mailbox as raw Gmail label resources."""
        ...

    def create_label(self, name: str, color: str | None = None) -> dict[str, Any]:
        """
        Create one label and return the created resource.

        Raises:
            MailboxProviderError: If the provider rejects the create
        """
        ...
