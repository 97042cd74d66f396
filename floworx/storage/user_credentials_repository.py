"""Encrypted storage for the Gmail OAuth tokens a user connected

Mailbox discovery and provisioning build a Gmail client from these tokens.

SECURITY:
- Tokens encrypted with Fernet (symmetric encryption)
- Encryption key comes from FLOWORX_ENCRYPTION_KEY
- Rows keyed by the authenticated user id
"""

from __future__ import annotations

import json
import os
from datetime import UTC, datetime, timedelta
from typing import Any

from cryptography.fernet import Fernet, InvalidToken

from floworx.observability.logging import get_logger
from floworx.storage import BaseRepository

logger = get_logger(__name__)


class CredentialEncryptionError(Exception):
    """Raised when credential encryption/decryption fails"""


def _load_cipher() -> Fernet:
    key = os.getenv("FLOWORX_ENCRYPTION_KEY")
    if not key:
        raise ValueError(
            "FLOWORX_ENCRYPTION_KEY must be set. Generate one with "
            "Fernet.generate_key() from the cryptography package."
        )

    try:
        return Fernet(key.encode())
    except ValueError as e:
        raise ValueError(f"Invalid encryption key format: {e}") from e


class UserCredentialsRepository(BaseRepository):
    """Gmail OAuth tokens, encrypted at rest, one row per user."""

    def __init__(self, cipher: Fernet | None = None):
        super().__init__("user_credentials")
        self._cipher = cipher or _load_cipher()

    def _seal(self, token_dict: dict[str, Any]) -> str:
        return self._cipher.encrypt(json.dumps(token_dict).encode()).decode()

    def _open(self, sealed: str) -> dict[str, Any]:
        try:
            return json.loads(self._cipher.decrypt(sealed.encode()).decode())
        except InvalidToken as e:
            logger.error("Stored Gmail token could not be decrypted (key rotated?)")
            raise CredentialEncryptionError("Decryption failed") from e

    def store_credentials(
        self,
        user_id: str,
        token_dict: dict[str, Any],
        scopes: list[str],
        token_expiry: datetime | None = None,
    ) -> None:
        """
        Insert or replace the user's Gmail token

        Side Effects:
            - Upserts a row in user_credentials
        """
        self.execute(
            """
            INSERT INTO user_credentials (user_id, encrypted_token_json, scopes, token_expiry)
            VALUES (?, ?, ?, ?)
            ON CONFLICT(user_id) DO UPDATE SET
                encrypted_token_json = excluded.encrypted_token_json,
                scopes = excluded.scopes,
                token_expiry = excluded.token_expiry,
                updated_at = CURRENT_TIMESTAMP
            """,
            (
                user_id,
                self._seal(token_dict),
                json.dumps(scopes),
                token_expiry.isoformat() if token_expiry else None,
            ),
        )
        logger.info("Stored Gmail credentials for user %s", user_id)

    def get_by_user_id(self, user_id: str) -> dict[str, Any] | None:
        """
        Decrypted credentials for a user, or None if the mailbox was never connected

        Keys: user_id, token_dict, scopes, token_expiry, updated_at
        """
        row = self.query_one("SELECT * FROM user_credentials WHERE user_id = ?", (user_id,))
        if not row:
            return None

        return {
            "user_id": row["user_id"],
            "token_dict": self._open(row["encrypted_token_json"]),
            "scopes": json.loads(row["scopes"]),
            "token_expiry": (
                datetime.fromisoformat(row["token_expiry"]) if row["token_expiry"] else None
            ),
            "updated_at": row["updated_at"],
        }

    def is_token_expired(self, user_id: str, buffer_seconds: int = 300) -> bool:
        """True when the token is missing an expiry or expires within the buffer."""
        row = self.query_one("SELECT token_expiry FROM user_credentials WHERE user_id = ?", (user_id,))
        if not row or not row["token_expiry"]:
            return True

        expiry = datetime.fromisoformat(row["token_expiry"])
        if expiry.tzinfo is None:
            expiry = expiry.replace(tzinfo=UTC)

        return expiry <= datetime.now(UTC) + timedelta(seconds=buffer_seconds)

    def update_refresh_timestamp(self, user_id: str) -> None:
        self.execute(
            "UPDATE user_credentials SET last_refresh_at = CURRENT_TIMESTAMP WHERE user_id = ?",
            (user_id,),
        )
