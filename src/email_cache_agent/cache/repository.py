"""Repositories over the local mail cache.

Each repository is a thin, typed view over one table of a shared
``CacheStore``. Message deletion also removes the matching ``email_vectors``
rows in the same transaction, since the two tables are only joined by id.
"""

from __future__ import annotations

import json
import sqlite3
from collections.abc import Iterable

import structlog

from email_cache_agent.cache.predicate import CompiledPredicate
from email_cache_agent.cache.store import CacheStore
from email_cache_agent.models import (
    Channel,
    EmailVector,
    ExtractionResult,
    Message,
    MessageSummary,
)

logger = structlog.get_logger()

_SUMMARY_COLUMNS = "id, sender, recipient, subject, snippet, importance, deadline, timestamp"


def _row_to_summary(row: sqlite3.Row) -> MessageSummary:
    return MessageSummary(
        id=row["id"],
        sender=row["sender"] or "",
        recipient=row["recipient"] or "",
        subject=row["subject"] or "",
        snippet=row["snippet"] or "",
        importance=int(row["importance"] or 0),
        deadline=row["deadline"] or None,
        timestamp=int(row["timestamp"] or 0),
    )


def _row_to_message(row: sqlite3.Row) -> Message:
    return Message(
        id=row["id"],
        sender=row["sender"] or "",
        recipient=row["recipient"] or "",
        subject=row["subject"] or "",
        snippet=row["snippet"] or "",
        timestamp=int(row["timestamp"] or 0),
        body=row["body"],
        summary=row["summary"],
        importance=int(row["importance"] or 0),
        deadline=row["deadline"] or None,
        is_read=bool(row["is_read"]),
    )


class MessageRepository:
    """Repository for cached messages."""

    def __init__(self, store: CacheStore) -> None:
        self._store = store

    def insert_if_absent(self, message: Message) -> bool:
        """Insert metadata for a new message; never touches an existing row.

        Returns:
            True if a row was inserted.
        """

        inserted = self._store.execute(
            """
            INSERT OR IGNORE INTO messages (id, sender, recipient, subject, snippet, timestamp, is_read)
            VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            (
                message.id,
                message.sender,
                message.recipient,
                message.subject,
                message.snippet,
                message.timestamp,
                1 if message.is_read else 0,
            ),
        )
        return inserted > 0

    def upsert_metadata(self, message: Message) -> None:
        """Insert or overwrite metadata and read state for a message.

        Enrichment columns (body, summary, importance, deadline) are kept.
        """

        self._store.execute(
            """
            INSERT INTO messages (id, sender, recipient, subject, snippet, timestamp, is_read)
            VALUES (?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT(id) DO UPDATE SET
                sender=excluded.sender,
                recipient=excluded.recipient,
                subject=excluded.subject,
                snippet=excluded.snippet,
                timestamp=excluded.timestamp,
                is_read=excluded.is_read
            """,
            (
                message.id,
                message.sender,
                message.recipient,
                message.subject,
                message.snippet,
                message.timestamp,
                1 if message.is_read else 0,
            ),
        )

    def get(self, message_id: str) -> Message | None:
        row = self._store.fetchone("SELECT * FROM messages WHERE id = ?", (message_id,))
        return _row_to_message(row) if row else None

    def get_body(self, message_id: str) -> str | None:
        row = self._store.fetchone("SELECT body FROM messages WHERE id = ?", (message_id,))
        return row["body"] if row else None

    def set_body(self, message_id: str, body: str) -> None:
        self._store.execute("UPDATE messages SET body = ? WHERE id = ?", (body, message_id))

    def get_summary(self, message_id: str) -> str | None:
        row = self._store.fetchone("SELECT summary FROM messages WHERE id = ?", (message_id,))
        return row["summary"] if row else None

    def set_summary(self, message_id: str, summary: str) -> None:
        self._store.execute("UPDATE messages SET summary = ? WHERE id = ?", (summary, message_id))

    def apply_extraction(self, message_id: str, result: ExtractionResult) -> None:
        """Write whichever of importance/deadline the model produced."""

        if result.importance is not None:
            self._store.execute(
                "UPDATE messages SET importance = ? WHERE id = ?",
                (result.importance, message_id),
            )
        if result.deadline is not None:
            self._store.execute(
                "UPDATE messages SET deadline = ? WHERE id = ?",
                (result.deadline, message_id),
            )

    def mark_read(self, message_id: str) -> None:
        self._store.execute("UPDATE messages SET is_read = 1 WHERE id = ?", (message_id,))

    def delete(self, message_id: str) -> bool:
        """Delete a message and its vector. Returns True if the message existed."""

        def _delete(conn: sqlite3.Connection) -> int:
            conn.execute("DELETE FROM email_vectors WHERE id = ?", (message_id,))
            return conn.execute("DELETE FROM messages WHERE id = ?", (message_id,)).rowcount

        return self._store.run(_delete) > 0

    def delete_matching_before(self, predicate: CompiledPredicate, cutoff_ms: int) -> int:
        """Delete messages matching ``predicate`` with a timestamp before ``cutoff_ms``."""

        where = f"({predicate.sql}) AND timestamp < ?"
        params = (*predicate.params, cutoff_ms)

        def _delete(conn: sqlite3.Connection) -> int:
            conn.execute(
                f"DELETE FROM email_vectors WHERE id IN (SELECT id FROM messages WHERE {where})",
                params,
            )
            return conn.execute(f"DELETE FROM messages WHERE {where}", params).rowcount

        return self._store.run(_delete)

    def list_matching(self, predicate: CompiledPredicate) -> list[MessageSummary]:
        """Return messages matching ``predicate``, newest first."""

        rows = self._store.fetchall(
            f"SELECT {_SUMMARY_COLUMNS} FROM messages WHERE {predicate.sql} ORDER BY timestamp DESC",
            predicate.params,
        )
        return [_row_to_summary(r) for r in rows]

    def get_many(self, ids: Iterable[str]) -> list[MessageSummary]:
        """Fetch messages by id in one query, preserving the order of ``ids``."""

        wanted = list(dict.fromkeys(ids))
        if not wanted:
            return []

        placeholders = ",".join("?" for _ in wanted)
        rows = self._store.fetchall(
            f"SELECT {_SUMMARY_COLUMNS} FROM messages WHERE id IN ({placeholders})",
            wanted,
        )
        by_id = {r["id"]: _row_to_summary(r) for r in rows}
        return [by_id[i] for i in wanted if i in by_id]

    def count(self) -> int:
        row = self._store.fetchone("SELECT COUNT(*) FROM messages")
        return int(row[0]) if row else 0


class ChannelRepository:
    """Repository for channel definitions."""

    def __init__(self, store: CacheStore) -> None:
        self._store = store

    def replace_all(self, channels: Iterable[Channel]) -> int:
        """Clear all channels and insert ``channels`` in order."""

        items = list(channels)

        def _replace(conn: sqlite3.Connection) -> int:
            conn.execute("DELETE FROM channels")
            conn.executemany(
                "INSERT INTO channels (name, predicate, ttl_days) VALUES (?, ?, ?)",
                [(c.name, c.predicate, c.ttl_days) for c in items],
            )
            return len(items)

        count = self._store.run(_replace)
        logger.info("channels_replaced", count=count)
        return count

    def list(self) -> list[Channel]:
        rows = self._store.fetchall("SELECT name, predicate, ttl_days FROM channels ORDER BY id")
        return [Channel(name=r["name"], predicate=r["predicate"], ttl_days=r["ttl_days"]) for r in rows]

    def get(self, name: str) -> Channel | None:
        row = self._store.fetchone(
            "SELECT name, predicate, ttl_days FROM channels WHERE name = ?",
            (name,),
        )
        if row is None:
            return None
        return Channel(name=row["name"], predicate=row["predicate"], ttl_days=row["ttl_days"])

    def with_ttl(self) -> list[Channel]:
        """Return channels that have a positive retention TTL."""

        return [c for c in self.list() if c.ttl_days > 0]


class VectorRepository:
    """Repository for message embeddings.

    Vectors are stored as JSON arrays of floats.
    """

    def __init__(self, store: CacheStore) -> None:
        self._store = store

    def save(self, vector: EmailVector) -> None:
        """Store a vector, overwriting any previous vector for the same id."""

        self._store.execute(
            "INSERT OR REPLACE INTO email_vectors (id, content, vector) VALUES (?, ?, ?)",
            (vector.id, vector.content, json.dumps(vector.vector)),
        )

    def save_unless_body_cached(self, vector: EmailVector) -> bool:
        """Store a metadata vector only while the message has no cached body.

        The check and the write share one statement, so a body vector stored
        concurrently is never replaced.

        Returns:
            True if the vector was stored.
        """

        stored = self._store.execute(
            """
            INSERT OR REPLACE INTO email_vectors (id, content, vector)
            SELECT ?, ?, ?
            WHERE NOT EXISTS (
                SELECT 1 FROM messages WHERE id = ? AND body IS NOT NULL AND body != ''
            )
            """,
            (vector.id, vector.content, json.dumps(vector.vector), vector.id),
        )
        return stored > 0

    def get(self, message_id: str) -> EmailVector | None:
        row = self._store.fetchone(
            "SELECT id, content, vector FROM email_vectors WHERE id = ?",
            (message_id,),
        )
        if row is None:
            return None
        values = _decode_vector(row["vector"])
        if values is None:
            return None
        return EmailVector(id=row["id"], content=row["content"], vector=values)

    def all_vectors(self) -> list[tuple[str, list[float]]]:
        """Return every decodable (id, vector) pair. Undecodable rows are skipped."""

        rows = self._store.fetchall("SELECT id, vector FROM email_vectors")
        out: list[tuple[str, list[float]]] = []
        for row in rows:
            values = _decode_vector(row["vector"])
            if values is None:
                logger.warning("email_vector_decode_failed", message_id=row["id"])
                continue
            out.append((row["id"], values))
        return out

    def count(self) -> int:
        row = self._store.fetchone("SELECT COUNT(*) FROM email_vectors")
        return int(row[0]) if row else 0


def _decode_vector(raw: str | bytes | None) -> list[float] | None:
    if raw is None:
        return None
    try:
        data = json.loads(raw)
    except (TypeError, ValueError):
        return None
    if not isinstance(data, list):
        return None
    try:
        return [float(x) for x in data]
    except (TypeError, ValueError):
        return None
