"""
Client configuration store.

One row per client in ``client_configs``. Reads never write; an unsaved client
gets the default document at ``CONFIG_INITIAL_VERSION``. Every successful put
is a full replace whose version bump happens inside the upsert statement, so
concurrent writers both advance the version (last writer wins).
"""

from __future__ import annotations

import sqlite3
from datetime import UTC, datetime
from typing import Any

from floworx.clients.models import FieldError, Invalid, StoredConfig, default_config
from floworx.clients.validation import validate_config
from floworx.config import CONFIG_INITIAL_VERSION, Settings
from floworx.infrastructure.database import db_transaction, retry_on_db_lock
from floworx.observability.logging import get_logger
from floworx.observability.telemetry import counter, log_event
from floworx.storage import BaseRepository

logger = get_logger(__name__)


class ConfigValidationError(Exception):
    """The candidate document failed validation; nothing was stored."""

    def __init__(self, errors: tuple[FieldError, ...] | list[FieldError]):
        super().__init__("Configuration validation failed")
        self.errors = tuple(errors)


class ClientAccessDenied(Exception):
    """The config belongs to a different user."""

    def __init__(self, client_id: str):
        super().__init__(f"Access to client {client_id} denied")
        self.client_id = client_id


def _now() -> str:
    return datetime.now(UTC).isoformat()


class ClientConfigStore(BaseRepository):
    def __init__(self, settings: Settings):
        super().__init__("client_configs")
        self.settings = settings

    def _check_owner(self, row: sqlite3.Row | None, client_id: str, user_id: str | None) -> None:
        if row is None or user_id is None:
            return
        owner = row["owner_user_id"]
        if owner is not None and owner != user_id:
            logger.warning("User %s denied access to client %s", user_id, client_id)
            counter("config.access_denied")
            raise ClientAccessDenied(client_id)

    def default_document(self) -> dict[str, Any]:
        return default_config(self.settings.ai).to_document()

    def get(self, client_id: str, user_id: str | None = None) -> StoredConfig:
        """
        Stored config, or the default document if the client has none

        Raises:
            ClientAccessDenied: If another user owns the config
        """
        row = self.query_one("SELECT * FROM client_configs WHERE client_id = ?", (client_id,))
        self._check_owner(row, client_id, user_id)

        if row is None:
            return StoredConfig(
                client_id=client_id,
                version=CONFIG_INITIAL_VERSION,
                config=self.default_document(),
            )

        return StoredConfig(
            client_id=client_id,
            version=row["version"],
            config=self.load_json(row["config_json"], {}),
            updated_at=row["updated_at"],
            owner_user_id=row["owner_user_id"],
        )

    @retry_on_db_lock()
    def put(self, client_id: str, candidate: Any, user_id: str | None = None) -> int:
        """
        Validate, normalize and store a full config document

        Returns:
            The new version (previous + 1)

        Raises:
            ConfigValidationError: If validation fails (nothing is stored)
            ClientAccessDenied: If another user owns the config
        """
        result = validate_config(candidate, self.settings)
        if isinstance(result, Invalid):
            counter("config.validation_failed")
            log_event("config.validation_failed", client_id=client_id, error_count=len(result.errors))
            raise ConfigValidationError(result.errors)

        document = self.dump_json(result.config.to_document())
        now = _now()

        with db_transaction() as conn:
            row = conn.execute(
                "SELECT owner_user_id FROM client_configs WHERE client_id = ?", (client_id,)
            ).fetchone()
            self._check_owner(row, client_id, user_id)

            version = conn.execute(
                """
                INSERT INTO client_configs
                    (client_id, version, config_json, owner_user_id, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?)
                ON CONFLICT(client_id) DO UPDATE SET
                    version = client_configs.version + 1,
                    config_json = excluded.config_json,
                    owner_user_id = COALESCE(client_configs.owner_user_id, excluded.owner_user_id),
                    updated_at = excluded.updated_at
                RETURNING version
                """,
                (client_id, CONFIG_INITIAL_VERSION + 1, document, user_id, now, now),
            ).fetchall()[0]["version"]

        counter("config.saved")
        log_event("config.saved", client_id=client_id, version=version)
        return version

    @retry_on_db_lock()
    def ensure_default(self, client_id: str, user_id: str | None = None) -> StoredConfig:
        """
        Create the default document row if the client has none yet

        Existing rows are left alone.
        """
        now = _now()
        with db_transaction() as conn:
            inserted = conn.execute(
                """
                INSERT INTO client_configs
                    (client_id, version, config_json, owner_user_id, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?)
                ON CONFLICT(client_id) DO NOTHING
                """,
                (client_id, CONFIG_INITIAL_VERSION, self.dump_json(self.default_document()), user_id, now, now),
            ).rowcount

        if inserted:
            log_event("config.default_created", client_id=client_id)

        return self.get(client_id, user_id)
