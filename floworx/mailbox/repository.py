"""Versioned category -> mail label mapping, one row per client"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

from floworx.infrastructure.database import db_transaction, retry_on_db_lock
from floworx.observability.logging import get_logger
from floworx.observability.telemetry import log_event
from floworx.storage import BaseRepository

logger = get_logger(__name__)


@dataclass(frozen=True)
class MappingEntry:
    category: str
    gmail_label_id: str
    gmail_label_name: str

    def to_dict(self) -> dict[str, str]:
        return {
            "category": self.category,
            "gmailLabelId": self.gmail_label_id,
            "gmailLabelName": self.gmail_label_name,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> MappingEntry:
        return cls(
            category=str(data["category"]),
            gmail_label_id=str(data["gmailLabelId"]),
            gmail_label_name=str(data["gmailLabelName"]),
        )


@dataclass(frozen=True)
class MailboxMapping:
    client_id: str
    provider: str
    version: int
    mapping: tuple[MappingEntry, ...]
    created_at: str
    updated_at: str

    def label_ids(self) -> dict[str, str]:
        return {entry.category: entry.gmail_label_id for entry in self.mapping}

    def to_dict(self) -> dict[str, Any]:
        return {
            "clientId": self.client_id,
            "provider": self.provider,
            "version": self.version,
            "mapping": [entry.to_dict() for entry in self.mapping],
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }


def merge_mappings(
    stored: tuple[MappingEntry, ...] | list[MappingEntry], updates: list[MappingEntry]
) -> tuple[MappingEntry, ...]:
    """Stored entries with ``updates`` replacing same-category ones; new categories appended."""
    replaced = {entry.category: entry for entry in updates}
    merged = [replaced.pop(entry.category, entry) for entry in stored]
    merged.extend(entry for entry in updates if entry.category in replaced)
    return tuple(merged)


class MailboxMappingRepository(BaseRepository):
    def __init__(self) -> None:
        super().__init__("mailbox_mappings")

    def get(self, client_id: str) -> MailboxMapping | None:
        row = self.query_one("SELECT * FROM mailbox_mappings WHERE client_id = ?", (client_id,))
        if row is None:
            return None

        return MailboxMapping(
            client_id=row["client_id"],
            provider=row["provider"],
            version=row["version"],
            mapping=tuple(MappingEntry.from_dict(e) for e in self.load_json(row["mapping_json"], [])),
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )

    @retry_on_db_lock()
    def save(self, client_id: str, provider: str, mapping: tuple[MappingEntry, ...] | list[MappingEntry]) -> MailboxMapping:
        """
        Insert the mapping at version 1, or replace it and bump the version.

        Side Effects:
            - Upserts the client's row in mailbox_mappings
        """
        now = datetime.now(UTC).isoformat()
        payload = self.dump_json([entry.to_dict() for entry in mapping])

        with db_transaction() as conn:
            row = conn.execute(
                """
                INSERT INTO mailbox_mappings (client_id, provider, version, mapping_json, created_at, updated_at)
                VALUES (?, ?, 1, ?, ?, ?)
                ON CONFLICT(client_id) DO UPDATE SET
                    provider = excluded.provider,
                    mapping_json = excluded.mapping_json,
                    version = mailbox_mappings.version + 1,
                    updated_at = excluded.updated_at
                RETURNING version, created_at, updated_at
                """,
                (client_id, provider, payload, now, now),
            ).fetchall()[0]

        log_event("mailbox.mapping_saved", client_id=client_id, provider=provider, version=row["version"])
        return MailboxMapping(
            client_id=client_id,
            provider=provider,
            version=row["version"],
            mapping=tuple(mapping),
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )
