"""SQLite-backed local mail cache.

The store owns exactly one connection. Every read and write goes through an
internal lock so the cache has a single live writer, and SQLite's own busy
timeout absorbs contention from other processes. Lock errors that outlive the
timeout are retried with backoff and then surfaced as ``CacheBusyError``.
"""

from __future__ import annotations

import sqlite3
import threading
from collections.abc import Callable, Iterator, Sequence
from contextlib import contextmanager
from pathlib import Path
from typing import Any, TypeVar

import structlog

from email_cache_agent.exceptions import CacheBusyError
from email_cache_agent.utils import retry_on_failure

logger = structlog.get_logger()

T = TypeVar("T")

_SCHEMA_VERSION = 1

MESSAGE_COLUMNS: tuple[str, ...] = (
    "id",
    "sender",
    "recipient",
    "subject",
    "snippet",
    "timestamp",
    "body",
    "summary",
    "is_read",
    "importance",
    "deadline",
)


def _is_locked(exc: BaseException) -> bool:
    msg = str(exc).lower()
    return "locked" in msg or "busy" in msg


class CacheStore:
    """Owner of the local cache connection and schema."""

    def __init__(
        self,
        db_path: Path | str,
        *,
        busy_timeout_ms: int = 5000,
        max_retries: int = 3,
        retry_delay: float = 0.2,
    ) -> None:
        """Create a store.

        Args:
            db_path: Path to the SQLite database file, or ``":memory:"``.
            busy_timeout_ms: SQLite busy timeout applied to the connection.
            max_retries: Extra attempts after a lock error outlives the timeout.
            retry_delay: Initial delay between lock retries in seconds.
        """

        self._db_path = db_path if str(db_path) == ":memory:" else Path(db_path)
        self._busy_timeout_ms = busy_timeout_ms
        self._max_retries = max_retries
        self._retry_delay = retry_delay
        self._lock = threading.RLock()
        self._conn: sqlite3.Connection | None = None

    @property
    def db_path(self) -> Path | str:
        return self._db_path

    def initialize(self) -> None:
        """Open the connection and create the schema if needed."""

        with self._lock:
            if self._conn is not None:
                return

            if isinstance(self._db_path, Path):
                self._db_path.parent.mkdir(parents=True, exist_ok=True)

            conn = sqlite3.connect(
                str(self._db_path),
                timeout=self._busy_timeout_ms / 1000.0,
                check_same_thread=False,
            )
            conn.row_factory = sqlite3.Row
            conn.execute("PRAGMA journal_mode=WAL;")
            conn.execute(f"PRAGMA busy_timeout={int(self._busy_timeout_ms)};")
            self._conn = conn

            self._create_schema(conn)
            logger.info("cache_store_initialized", db_path=str(self._db_path))

    def close(self) -> None:
        """Close the underlying connection."""

        with self._lock:
            if self._conn is not None:
                self._conn.close()
                self._conn = None

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        """Hold the writer lock and commit on success, roll back on error."""

        with self._lock:
            conn = self._require_conn()
            try:
                yield conn
                conn.commit()
            except sqlite3.OperationalError as exc:
                conn.rollback()
                if _is_locked(exc):
                    raise CacheBusyError(str(exc)) from exc
                raise
            except BaseException:
                conn.rollback()
                raise

    def run(self, fn: Callable[[sqlite3.Connection], T]) -> T:
        """Run ``fn`` inside a transaction, retrying while the database is locked."""

        @retry_on_failure(
            max_retries=self._max_retries,
            delay=self._retry_delay,
            exceptions=(CacheBusyError,),
        )
        def attempt() -> T:
            with self.transaction() as conn:
                return fn(conn)

        return attempt()

    def execute(self, sql: str, params: Sequence[Any] | dict[str, Any] = ()) -> int:
        """Execute a single write statement and return the affected row count."""

        return self.run(lambda conn: conn.execute(sql, params).rowcount)

    def fetchall(self, sql: str, params: Sequence[Any] | dict[str, Any] = ()) -> list[sqlite3.Row]:
        return self.run(lambda conn: conn.execute(sql, params).fetchall())

    def fetchone(self, sql: str, params: Sequence[Any] | dict[str, Any] = ()) -> sqlite3.Row | None:
        return self.run(lambda conn: conn.execute(sql, params).fetchone())

    def _require_conn(self) -> sqlite3.Connection:
        if self._conn is None:
            raise RuntimeError("Cache store is not initialized. Call CacheStore.initialize() first.")
        return self._conn

    def _create_schema(self, conn: sqlite3.Connection) -> None:
        conn.executescript(
            """
            CREATE TABLE IF NOT EXISTS _schema_meta (
                key TEXT PRIMARY KEY,
                value TEXT NOT NULL
            );

            CREATE TABLE IF NOT EXISTS messages (
                id TEXT PRIMARY KEY,
                sender TEXT,
                recipient TEXT,
                subject TEXT,
                snippet TEXT,
                timestamp INTEGER,
                body TEXT,
                summary TEXT,
                is_read INTEGER NOT NULL DEFAULT 0,
                importance INTEGER NOT NULL DEFAULT 0,
                deadline TEXT
            );

            CREATE INDEX IF NOT EXISTS idx_messages_sender ON messages(sender);
            CREATE INDEX IF NOT EXISTS idx_messages_timestamp ON messages(timestamp);
            CREATE INDEX IF NOT EXISTS idx_messages_deadline ON messages(deadline);

            CREATE TABLE IF NOT EXISTS channels (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                name TEXT NOT NULL UNIQUE,
                predicate TEXT NOT NULL,
                ttl_days INTEGER NOT NULL DEFAULT 0
            );

            CREATE TABLE IF NOT EXISTS email_vectors (
                id TEXT PRIMARY KEY,
                content TEXT NOT NULL,
                vector TEXT NOT NULL
            );
            """
        )

        row = conn.execute("SELECT value FROM _schema_meta WHERE key = 'schema_version'").fetchone()
        if row is None:
            conn.execute(
                "INSERT INTO _schema_meta(key, value) VALUES('schema_version', ?)",
                (str(_SCHEMA_VERSION),),
            )
            logger.info("cache_schema_created", version=_SCHEMA_VERSION)
        elif int(row[0]) != _SCHEMA_VERSION:
            raise RuntimeError(
                f"Unsupported schema version {row[0]}; expected {_SCHEMA_VERSION}"
            )
        conn.commit()
