"""Tests for the SQLite pool, schema and lock retry"""

from __future__ import annotations

import sqlite3

import pytest

from floworx.infrastructure.database import (
    db_transaction,
    get_db_connection,
    get_pool_stats,
    retry_on_db_lock,
    validate_schema,
)


def test_schema_valid(temp_db):
    assert temp_db.exists()
    assert validate_schema() is True


def test_validate_schema_reports_missing_table():
    with db_transaction() as conn:
        conn.execute("DROP TABLE mailbox_mappings")

    with pytest.raises(ValueError, match="mailbox_mappings"):
        validate_schema()


def test_transaction_rolls_back_on_error():
    with pytest.raises(RuntimeError), db_transaction() as conn:
        conn.execute(
            "INSERT INTO mailbox_mappings (client_id, provider, created_at, updated_at) VALUES ('acme', 'gmail', 'x', 'x')"
        )
        raise RuntimeError("boom")

    with get_db_connection() as conn:
        assert conn.execute("SELECT COUNT(*) FROM mailbox_mappings").fetchone()[0] == 0


def test_pool_stats():
    stats = get_pool_stats()

    assert stats["in_use"] == 0
    assert stats["usage_percent"] == 0
    assert stats["closed"] is False

    with get_db_connection():
        assert get_pool_stats()["in_use"] == 1


def test_retry_on_lock_then_succeeds():
    calls = []

    @retry_on_db_lock(max_retries=3, base_delay=0.0, max_delay=0.0)
    def flaky():
        calls.append(1)
        if len(calls) < 3:
            raise sqlite3.OperationalError("database is locked")
        return "ok"

    assert flaky() == "ok"
    assert len(calls) == 3


def test_retry_gives_up():
    @retry_on_db_lock(max_retries=2, base_delay=0.0, max_delay=0.0)
    def always_locked():
        raise sqlite3.OperationalError("database is locked")

    with pytest.raises(sqlite3.OperationalError):
        always_locked()


def test_other_operational_errors_not_retried():
    calls = []

    @retry_on_db_lock(max_retries=3, base_delay=0.0, max_delay=0.0)
    def broken():
        calls.append(1)
        raise sqlite3.OperationalError("no such table: nope")

    with pytest.raises(sqlite3.OperationalError):
        broken()
    assert len(calls) == 1
