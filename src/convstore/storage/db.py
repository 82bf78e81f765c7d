"""SQLite database handle: the single connection, schema setup and maintenance."""

from __future__ import annotations

import os
import sqlite3
from contextlib import contextmanager
from typing import Any, Iterator

import structlog

from convstore.errors import InitializationError, StoreError, TransactionError
from convstore.models import now_utc, to_epoch
from convstore.storage.schema import SCHEMA, SCHEMA_VERSION, STAT_TABLES

log = structlog.get_logger()

MEMORY_PATH = ":memory:"


class Database:
    """Owns exactly one SQLite connection.

    SQLite serializes writers, so the store never opens a second connection;
    callers must not issue overlapping requests against the same handle.
    The connection runs in autocommit mode and multi-statement writes go
    through :meth:`transaction`.
    """

    def __init__(self, db_path: str):
        self._db_path = db_path
        self._conn: sqlite3.Connection | None = None
        self._open()

    def _open(self) -> None:
        if self._db_path != MEMORY_PATH:
            directory = os.path.dirname(os.path.abspath(self._db_path))
            try:
                os.makedirs(directory, exist_ok=True)
            except OSError as e:
                raise InitializationError(
                    "open_database", f"failed to create database directory: {e}",
                    path=self._db_path,
                ) from e

        try:
            conn = sqlite3.connect(self._db_path, isolation_level=None)
        except sqlite3.Error as e:
            raise InitializationError(
                "open_database", f"failed to open database: {e}", path=self._db_path,
            ) from e

        conn.row_factory = sqlite3.Row
        step = "enable foreign keys"
        try:
            conn.execute("PRAGMA foreign_keys=ON")
            step = "enable WAL mode"
            conn.execute("PRAGMA journal_mode=WAL")
            conn.execute("PRAGMA busy_timeout=5000")
            step = "create schema"
            conn.executescript(SCHEMA)
            conn.execute(
                "INSERT OR IGNORE INTO schema_version (version, applied_at) VALUES (?, ?)",
                (SCHEMA_VERSION, to_epoch(now_utc())),
            )
        except sqlite3.Error as e:
            conn.close()
            raise InitializationError(
                "open_database", f"failed to {step}: {e}", path=self._db_path,
            ) from e

        self._conn = conn
        log.debug("db_opened", path=self._db_path)

    @property
    def path(self) -> str:
        return self._db_path

    @property
    def conn(self) -> sqlite3.Connection:
        if self._conn is None:
            raise StoreError("database", "connection is closed", path=self._db_path)
        return self._conn

    @property
    def closed(self) -> bool:
        return self._conn is None

    def close(self) -> None:
        """Release the connection. Safe to call more than once."""
        if self._conn is not None:
            self._conn.close()
            self._conn = None
            log.debug("db_closed", path=self._db_path)

    def __enter__(self) -> Database:
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    # --- Transactions ---

    @contextmanager
    def transaction(self, operation: str, **context: Any) -> Iterator[sqlite3.Connection]:
        """Run a block of statements atomically.

        Everything executed on the yielded connection is committed together,
        or rolled back if anything raises. A StoreError raised inside the block
        propagates unchanged; any other failure surfaces as TransactionError
        carrying ``operation`` and ``context``, chained to the original cause.
        """
        conn = self.conn
        conn.execute("BEGIN")
        try:
            yield conn
            conn.execute("COMMIT")
        except StoreError:
            self._rollback()
            raise
        except Exception as e:
            self._rollback()
            raise TransactionError(operation, str(e), **context) from e
        except BaseException:
            self._rollback()
            raise

    def _rollback(self) -> None:
        conn = self._conn
        if conn is not None and conn.in_transaction:
            conn.execute("ROLLBACK")

    # --- Maintenance ---

    def compact(self) -> None:
        """Reclaim free pages. Must not run concurrently with other work on the file."""
        try:
            self.conn.execute("VACUUM")
        except sqlite3.Error as e:
            raise StoreError("compact", str(e), path=self._db_path) from e
        log.info("db_compacted", path=self._db_path)

    def stats(self) -> dict[str, int]:
        """Row counts per top-level table. Diagnostics only."""
        counts: dict[str, int] = {}
        for table in STAT_TABLES:
            row = self.conn.execute(f"SELECT COUNT(*) AS cnt FROM {table}").fetchone()
            counts[table] = row["cnt"]
        return counts

    def schema_version(self) -> int | None:
        row = self.conn.execute("SELECT MAX(version) AS v FROM schema_version").fetchone()
        return row["v"] if row else None


def open_database(db_path: str) -> Database:
    """Open or create the SQLite store at the given path."""
    return Database(db_path)
