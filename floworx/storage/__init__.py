"""Storage - repository base class over the shared connection pool"""

from __future__ import annotations

import json
import sqlite3
from typing import Any

from floworx.infrastructure.database import db_transaction, get_db_connection


class BaseRepository:
    """Base class for database repositories with common query helpers."""

    def __init__(self, table_name: str) -> None:
        if not isinstance(table_name, str) or not table_name.replace("_", "").isalnum():
            raise ValueError(f"Invalid table name: {table_name}")
        self.table_name = table_name

    def query_one(self, query: str, params: tuple[Any, ...] | None = None) -> sqlite3.Row | None:
        with get_db_connection() as conn:
            return conn.execute(query, params or ()).fetchone()

    def execute(self, query: str, params: tuple[Any, ...] | None = None) -> int | None:
        """
        Execute a write query (INSERT, UPDATE, DELETE) in its own transaction

        Returns:
            Last inserted row ID
        """
        with db_transaction() as conn:
            cursor = conn.execute(query, params or ())
            return cursor.lastrowid

    @staticmethod
    def dump_json(value: Any) -> str:
        return json.dumps(value, separators=(",", ":"), sort_keys=True)

    @staticmethod
    def load_json(raw: str | None, default: Any = None) -> Any:
        if not raw:
            return default
        return json.loads(raw)


__all__ = ["BaseRepository"]
