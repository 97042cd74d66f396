"""
Mailbox discovery: turn raw Gmail label resources into a flat label list and a
nested tree for the dashboard.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from floworx.mailbox.provider import LabelProvider
from floworx.mailbox.taxonomy import LABEL_SEPARATOR, label_key, split_path
from floworx.observability.logging import get_logger
from floworx.observability.telemetry import counter

logger = get_logger(__name__)


@dataclass
class MailboxLabel:
    id: str
    name: str
    path: tuple[str, ...]
    parent_id: str | None = None
    color: str | None = None
    messages_total: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "path": list(self.path),
            "parentId": self.parent_id,
            "color": self.color,
            "messagesTotal": self.messages_total,
        }


@dataclass
class DiscoveryResult:
    provider: str
    labels: list[MailboxLabel]
    system_label_count: int
    discovered_at: str = field(default_factory=lambda: datetime.now(UTC).isoformat())

    def to_dict(self) -> dict[str, Any]:
        return {
            "provider": self.provider,
            "totalLabels": len(self.labels) + self.system_label_count,
            "systemLabels": self.system_label_count,
            "userLabels": len(self.labels),
            "labels": [label.to_dict() for label in self.labels],
            "taxonomy": build_taxonomy(self.labels),
            "discoveredAt": self.discovered_at,
        }


def _label_color(raw: dict[str, Any]) -> str | None:
    color = raw.get("color") or {}
    return color.get("backgroundColor") or color.get("textColor")


def parse_labels(raw_labels: list[dict[str, Any]]) -> list[MailboxLabel]:
    """
    Keep user labels and resolve each one's parent by its path prefix.

    System labels (INBOX, SENT, ...) are dropped.
    """
    labels = [
        MailboxLabel(
            id=raw["id"],
            name=raw["name"],
            path=split_path(raw["name"]),
            color=_label_color(raw),
            messages_total=raw.get("messagesTotal", 0) or 0,
        )
        for raw in raw_labels
        if raw.get("type", "user") == "user" and raw.get("name")
    ]

    by_key = {label_key(label.path): label.id for label in labels}
    for label in labels:
        if len(label.path) > 1:
            label.parent_id = by_key.get(label_key(label.path[:-1]))

    return labels


def build_taxonomy(labels: list[MailboxLabel]) -> dict[str, Any]:
    """Nest labels by path segment: ``{segment: {name, fullPath, id, children}}``."""
    tree: dict[str, Any] = {}

    for label in sorted(labels, key=lambda lb: len(lb.path)):
        level = tree
        for index, segment in enumerate(label.path):
            node = level.setdefault(
                segment,
                {
                    "name": segment,
                    "fullPath": LABEL_SEPARATOR.join(label.path[: index + 1]),
                    "id": None,
                    "children": {},
                },
            )
            if index == len(label.path) - 1:
                node["id"] = label.id
            level = node["children"]

    return tree


def discover(provider: LabelProvider, provider_name: str = "gmail") -> DiscoveryResult:
    """
    Read the mailbox's labels.

    Raises:
        MailboxProviderError: If listing labels fails
    """
    raw = provider.list_labels()
    labels = parse_labels(raw)
    system_count = sum(1 for item in raw if item.get("type") == "system")

    logger.info("Discovered %d user labels (%d system)", len(labels), system_count)
    counter("mailbox.discover.count")
    return DiscoveryResult(provider=provider_name, labels=labels, system_label_count=system_count)
