"""
Mailbox provisioning: discover -> diff -> provision -> persist.

One run creates whatever canonical labels the mailbox lacks (parents before
children), keeps going when a single create fails, and records the resulting
category -> label mapping. Re-running against a complete mailbox makes no
create calls and leaves the stored mapping and its version untouched.

Runs for the same client are serialized with an in-process lock.
"""

from __future__ import annotations

import threading
import weakref
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

from floworx.mailbox.discovery import MailboxLabel, parse_labels
from floworx.mailbox.provider import LabelProvider, MailboxProviderError
from floworx.mailbox.repository import (
    MailboxMapping,
    MailboxMappingRepository,
    MappingEntry,
    merge_mappings,
)
from floworx.mailbox.taxonomy import DesiredLabel, desired_labels, label_key, missing_labels
from floworx.observability.logging import get_logger
from floworx.observability.telemetry import counter, log_event, time_block

logger = get_logger(__name__)

# entries vanish once no run holds the lock
_client_locks: weakref.WeakValueDictionary[str, threading.Lock] = weakref.WeakValueDictionary()
_client_locks_guard = threading.Lock()


def client_lock(client_id: str) -> threading.Lock:
    with _client_locks_guard:
        return _client_locks.setdefault(client_id, threading.Lock())


@dataclass
class ProvisionResult:
    client_id: str
    provider: str
    created: list[dict[str, Any]] = field(default_factory=list)
    skipped: list[dict[str, Any]] = field(default_factory=list)
    errors: list[dict[str, Any]] = field(default_factory=list)
    mapping: tuple[MappingEntry, ...] = ()
    version: int | None = None
    mapping_changed: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "ok": True,
            "clientId": self.client_id,
            "provider": self.provider,
            "created": self.created,
            "skipped": self.skipped,
            "errors": self.errors,
            "mapping": [entry.to_dict() for entry in self.mapping],
            "version": self.version,
        }


@dataclass(frozen=True)
class ProvisionItem:
    """An explicitly requested label: path segments plus optional ``#rrggbb`` color."""

    path: tuple[str, ...]
    color: str | None = None

    @property
    def name(self) -> str:
        return "/".join(self.path)


class MailboxProvisioner:
    def __init__(self, provider: LabelProvider, mappings: MailboxMappingRepository, provider_name: str = "gmail"):
        self.provider = provider
        self.mappings = mappings
        self.provider_name = provider_name

    # ------------------------------------------------------------------
    # Canonical taxonomy
    # ------------------------------------------------------------------

    def provision_taxonomy(
        self, client_id: str, label_map: Mapping[str, Sequence[str]] | None = None
    ) -> ProvisionResult:
        """
        Make the mailbox match the canonical taxonomy and persist the mapping.

        Raises:
            MailboxProviderError: If the label listing fails. Individual create
                failures are reported in ``errors`` instead.
        """
        with client_lock(client_id), time_block("mailbox.provision"):
            result = ProvisionResult(client_id=client_id, provider=self.provider_name)

            existing = {label_key(label.path): label for label in parse_labels(self.provider.list_labels())}
            wanted = desired_labels(label_map)
            missing = missing_labels(wanted, (label.name for label in existing.values()))
            missing_keys = {label_key(label.path) for label in missing}

            for label in wanted:
                key = label_key(label.path)
                if key not in missing_keys:
                    result.skipped.append(
                        {
                            "category": label.category,
                            "name": existing[key].name,
                            "id": existing[key].id,
                            "reason": "already_exists",
                        }
                    )

            failed: set[str] = set()
            for label in missing:
                if label_key(label.path) in existing:
                    # two categories mapped to the same name; created earlier this run
                    continue
                created = self._create(label, failed, result)
                if created is not None:
                    existing[label_key(label.path)] = created

            resolved = [
                MappingEntry(label.category, existing[label_key(label.path)].id, existing[label_key(label.path)].name)
                for label in wanted
                if label.root and label_key(label.path) in existing
            ]
            self._persist(client_id, resolved, result)

            if result.errors:
                counter("mailbox.provision.partial_failure")
                log_event(
                    "mailbox.provision.partial_failure",
                    client_id=client_id,
                    created=len(result.created),
                    failed=len(result.errors),
                )

            logger.info(
                "Provisioned mailbox for %s: %d created, %d skipped, %d failed",
                client_id,
                len(result.created),
                len(result.skipped),
                len(result.errors),
            )
            return result

    def _create(self, label: DesiredLabel, failed: set[str], result: ProvisionResult) -> MailboxLabel | None:
        parent = label.parent_name
        if parent is not None and label_key(parent) in failed:
            failed.add(label_key(label.path))
            result.errors.append(
                {
                    "category": label.category,
                    "name": label.name,
                    "code": "PARENT_FAILED",
                    "message": f"Parent label '{parent}' could not be created",
                }
            )
            return None

        try:
            raw = self.provider.create_label(label.name, label.color)
        except MailboxProviderError as e:
            failed.add(label_key(label.path))
            logger.warning("Failed to create label %s: %s", label.name, e)
            result.errors.append(
                {"category": label.category, "name": label.name, "code": e.code, "message": str(e)}
            )
            return None

        counter("mailbox.label_created")
        created = MailboxLabel(id=raw["id"], name=raw.get("name", label.name), path=label.path, color=label.color)
        result.created.append({"category": label.category, "name": created.name, "id": created.id})
        return created

    def _persist(self, client_id: str, resolved: list[MappingEntry], result: ProvisionResult) -> None:
        stored: MailboxMapping | None = self.mappings.get(client_id)
        merged = merge_mappings(stored.mapping if stored else (), resolved)

        if stored is not None and stored.mapping == merged and stored.provider == self.provider_name:
            result.mapping = stored.mapping
            result.version = stored.version
            return

        if stored is None and not merged:
            return

        saved = self.mappings.save(client_id, self.provider_name, merged)
        result.mapping = saved.mapping
        result.version = saved.version
        result.mapping_changed = True

    # ------------------------------------------------------------------
    # Explicit items
    # ------------------------------------------------------------------

    def provision_items(self, client_id: str, items: Sequence[ProvisionItem]) -> dict[str, Any]:
        """
        Create explicitly requested labels, shallowest first.

        Returns ``created``/``skipped``/``failed`` lists and a summary. Does not
        touch the stored mapping.
        """
        with client_lock(client_id):
            existing = {label_key(label.path): label for label in parse_labels(self.provider.list_labels())}

            created: list[dict[str, Any]] = []
            skipped: list[dict[str, Any]] = []
            failed: list[dict[str, Any]] = []
            failed_keys: set[str] = set()

            for item in sorted(items, key=lambda it: len(it.path)):
                key = label_key(item.path)

                if key in existing:
                    skipped.append(
                        {"path": list(item.path), "name": existing[key].name, "id": existing[key].id, "reason": "already_exists"}
                    )
                    continue

                if len(item.path) > 1 and label_key(item.path[:-1]) in failed_keys:
                    failed_keys.add(key)
                    failed.append(
                        {"path": list(item.path), "name": item.name, "code": "PARENT_FAILED", "error": "Parent label could not be created"}
                    )
                    continue

                try:
                    raw = self.provider.create_label(item.name, item.color)
                except MailboxProviderError as e:
                    failed_keys.add(key)
                    failed.append({"path": list(item.path), "name": item.name, "code": e.code, "error": str(e)})
                    continue

                counter("mailbox.label_created")
                existing[key] = MailboxLabel(id=raw["id"], name=item.name, path=item.path, color=item.color)
                created.append({"path": list(item.path), "name": item.name, "id": raw["id"], "color": item.color})

            return {
                "created": created,
                "skipped": skipped,
                "failed": failed,
                "summary": {
                    "total": len(items),
                    "created": len(created),
                    "skipped": len(skipped),
                    "failed": len(failed),
                },
            }
