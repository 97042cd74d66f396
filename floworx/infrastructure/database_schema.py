"""
Database schema for FloWorx.

Three tables:
- client_configs: one versioned JSON configuration document per client
- mailbox_mappings: one versioned category -> mail label mapping per client
- user_credentials: Fernet-encrypted Gmail OAuth tokens per user
"""

from __future__ import annotations

import sqlite3
from pathlib import Path

from floworx.observability.logging import get_logger

logger = get_logger(__name__)

REQUIRED_TABLES: dict[str, list[str]] = {
    "client_configs": ["client_id", "version", "config_json", "owner_user_id", "updated_at"],
    "mailbox_mappings": ["client_id", "provider", "version", "mapping_json", "updated_at"],
    "user_credentials": ["user_id", "encrypted_token_json", "scopes"],
}


def init_database(db_path: Path) -> None:
    """
    Initialize database with schema (idempotent)

    Side Effects:
    - Creates the parent directory and the database file if needed
    - Creates tables and indexes that don't exist yet
    """
    db_path.parent.mkdir(parents=True, exist_ok=True)

    conn = sqlite3.connect(db_path)
    try:
        conn.executescript("""
            CREATE TABLE IF NOT EXISTS client_configs (
                client_id TEXT PRIMARY KEY,
                version INTEGER NOT NULL,
                config_json TEXT NOT NULL,
                owner_user_id TEXT,
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL
            );

            CREATE INDEX IF NOT EXISTS idx_client_configs_owner
            ON client_configs(owner_user_id);

            -- Expression index so dashboards can filter by provider
            CREATE INDEX IF NOT EXISTS idx_client_configs_provider
            ON client_configs(json_extract(config_json, '$.channels.email.provider'));

            CREATE TABLE IF NOT EXISTS mailbox_mappings (
                client_id TEXT PRIMARY KEY,
                provider TEXT NOT NULL,
                version INTEGER NOT NULL DEFAULT 1,
                mapping_json TEXT NOT NULL DEFAULT '[]',
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL
            );

            CREATE TABLE IF NOT EXISTS user_credentials (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                user_id TEXT NOT NULL UNIQUE,
                encrypted_token_json TEXT NOT NULL,
                scopes TEXT NOT NULL,
                token_expiry TEXT,
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                last_refresh_at TIMESTAMP
            );

            CREATE INDEX IF NOT EXISTS idx_user_credentials_expiry
            ON user_credentials(token_expiry);
        """)
        conn.commit()
    finally:
        conn.close()

    logger.info("Database initialized: %s", db_path)


def validate_schema(conn: sqlite3.Connection) -> bool:
    """
    Validate database has expected schema

    Raises:
        ValueError: If tables or columns are missing
    """
    cursor = conn.cursor()

    cursor.execute("SELECT name FROM sqlite_master WHERE type='table'")
    existing_tables = {row[0] for row in cursor.fetchall()}

    missing_tables = set(REQUIRED_TABLES) - existing_tables
    if missing_tables:
        raise ValueError(f"Database missing tables: {sorted(missing_tables)}")

    for table, required_cols in REQUIRED_TABLES.items():
        # Table names come from REQUIRED_TABLES, PRAGMA can't take parameters
        cursor.execute(f"PRAGMA table_info({table})")
        existing_cols = {row[1] for row in cursor.fetchall()}

        missing_cols = set(required_cols) - existing_cols
        if missing_cols:
            raise ValueError(f"Table '{table}' missing columns: {sorted(missing_cols)}")

    return True
