"""Unit tests for the cache store."""

from __future__ import annotations

import sqlite3

import pytest

from email_cache_agent.cache import CacheStore
from email_cache_agent.exceptions import CacheBusyError


def test_initialize_creates_tables_and_indices(store: CacheStore) -> None:
    tables = {r["name"] for r in store.fetchall("SELECT name FROM sqlite_master WHERE type = 'table'")}
    assert {"messages", "channels", "email_vectors"} <= tables

    indices = {r["name"] for r in store.fetchall("SELECT name FROM sqlite_master WHERE type = 'index'")}
    assert {"idx_messages_sender", "idx_messages_timestamp", "idx_messages_deadline"} <= indices


def test_initialize_is_idempotent(tmp_path) -> None:
    db_path = tmp_path / "nested" / "cache.db"
    s = CacheStore(db_path)
    s.initialize()
    s.execute("INSERT INTO messages (id, subject) VALUES ('m1', 'kept')")
    s.close()

    reopened = CacheStore(db_path)
    reopened.initialize()
    row = reopened.fetchone("SELECT subject FROM messages WHERE id = 'm1'")
    reopened.close()

    assert row["subject"] == "kept"


def test_use_before_initialize_fails(tmp_path) -> None:
    s = CacheStore(tmp_path / "cache.db")
    with pytest.raises(RuntimeError):
        s.fetchall("SELECT 1")


def test_transaction_rolls_back_on_error(store: CacheStore) -> None:
    with pytest.raises(ValueError):
        with store.transaction() as conn:
            conn.execute("INSERT INTO messages (id) VALUES ('m1')")
            raise ValueError("boom")

    assert store.fetchone("SELECT COUNT(*) FROM messages")[0] == 0


def test_locked_errors_are_retried_then_surfaced(tmp_path) -> None:
    s = CacheStore(tmp_path / "cache.db", max_retries=2, retry_delay=0.0)
    s.initialize()
    attempts = []

    def always_locked(conn: sqlite3.Connection) -> None:
        attempts.append(1)
        raise sqlite3.OperationalError("database is locked")

    with pytest.raises(CacheBusyError):
        s.run(always_locked)
    s.close()

    assert len(attempts) == 3


def test_locked_error_recovers_on_retry(tmp_path) -> None:
    s = CacheStore(tmp_path / "cache.db", max_retries=2, retry_delay=0.0)
    s.initialize()
    attempts = []

    def locked_once(conn: sqlite3.Connection) -> int:
        attempts.append(1)
        if len(attempts) == 1:
            raise sqlite3.OperationalError("database is locked")
        return conn.execute("INSERT INTO messages (id) VALUES ('m1')").rowcount

    assert s.run(locked_once) == 1
    s.close()


def test_other_operational_errors_are_not_retried(store: CacheStore) -> None:
    with pytest.raises(sqlite3.OperationalError):
        store.fetchall("SELECT * FROM no_such_table")
