"""Session persistence: atomic save/load, listing, retention and search."""

from __future__ import annotations

import sqlite3
from datetime import timedelta

import structlog

from convstore.config import SessionConfig
from convstore.errors import CorruptDataError, NotFoundError, StoreError
from convstore.id_gen import generate_session_id
from convstore.models import Message, SearchResult, Session, from_epoch, now_utc, to_epoch
from convstore.storage.db import Database
from convstore.storage.identity import IdentityResolver
from convstore.storage.search import compile_pattern, scan_messages
from convstore.utils import derive_first_prompt

log = structlog.get_logger()

_SESSION_COLUMNS = """
    s.id, s.created_at, s.last_updated, s.first_prompt,
    s.provider, s.model, s.working_dir,
    r.host, r.org, r.project, b.name AS branch
"""

_LIST_SQL = f"""
    SELECT {_SESSION_COLUMNS}, COUNT(m.id) AS message_count
    FROM sessions s
    JOIN branches b ON s.branch_id = b.id
    JOIN repositories r ON b.repository_id = r.id
    LEFT JOIN messages m ON s.id = m.session_id
    {{where}}
    GROUP BY s.id
    ORDER BY s.last_updated DESC, s.id DESC
"""


class SessionStore:
    """Stores sessions and their complete ordered transcripts."""

    def __init__(self, db: Database, config: SessionConfig | None = None):
        self._db = db
        self._config = config or SessionConfig()
        self._identity = IdentityResolver(db)

    @property
    def config(self) -> SessionConfig:
        return self._config

    # --- Save / load ---

    def save_session(self, session: Session, host: str, org: str, project: str,
                     branch: str) -> Session:
        """Persist session metadata and its full message list in one transaction.

        The stored transcript is replaced, not merged: existing messages are
        deleted and the given list is inserted with ``sequence`` set to each
        message's position. On failure nothing is written: store errors
        (identity resolution) propagate as-is, anything else as
        TransactionError.
        """
        now = now_utc()
        if not session.id:
            session.id = generate_session_id(now)
        if session.created_at is None:
            session.created_at = now
        if not session.first_prompt:
            session.first_prompt = derive_first_prompt(session.messages)
        previous_update = session.last_updated
        session.last_updated = now
        stamp = to_epoch(now)

        try:
            with self._db.transaction(
                "save_session", session_id=session.id, host=host, org=org,
                project=project, branch=branch,
            ) as conn:
                branch_id = self._identity.resolve(host, org, project, branch)
                conn.execute(
                    """INSERT INTO sessions
                        (id, branch_id, created_at, last_updated, first_prompt,
                         provider, model, working_dir)
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                    ON CONFLICT (id) DO UPDATE SET
                        branch_id = excluded.branch_id,
                        created_at = excluded.created_at,
                        last_updated = excluded.last_updated,
                        first_prompt = excluded.first_prompt,
                        provider = excluded.provider,
                        model = excluded.model,
                        working_dir = excluded.working_dir""",
                    (session.id, branch_id, to_epoch(session.created_at), stamp,
                     session.first_prompt, session.provider, session.model,
                     session.working_dir),
                )
                conn.execute("DELETE FROM messages WHERE session_id = ?", (session.id,))
                rows = [
                    (session.id, i, msg.role, msg.to_json(), stamp)
                    for i, msg in enumerate(session.messages)
                ]
                conn.executemany(
                    "INSERT INTO messages (session_id, sequence, role, content, created_at) "
                    "VALUES (?, ?, ?, ?, ?)",
                    rows,
                )
        except StoreError:
            session.last_updated = previous_update
            raise

        session.host, session.org, session.project, session.branch = host, org, project, branch
        session.message_count = len(session.messages)
        log.debug("session_saved", id=session.id, messages=session.message_count)
        return session

    def load_session(self, session_id: str) -> Session:
        """Load a session with all messages, oldest first.

        Raises NotFoundError if the id is unknown and CorruptDataError if any
        stored message cannot be decoded.
        """
        conn = self._db.conn
        row = conn.execute(
            f"""SELECT {_SESSION_COLUMNS}
            FROM sessions s
            JOIN branches b ON s.branch_id = b.id
            JOIN repositories r ON b.repository_id = r.id
            WHERE s.id = ?""",
            (session_id,),
        ).fetchone()
        if row is None:
            raise NotFoundError("load_session", "session not found", session_id=session_id)

        session = _row_to_session(row)
        rows = conn.execute(
            "SELECT sequence, content FROM messages WHERE session_id = ? ORDER BY sequence ASC",
            (session_id,),
        ).fetchall()
        for msg_row in rows:
            try:
                session.messages.append(Message.from_json(msg_row["content"]))
            except CorruptDataError as e:
                raise CorruptDataError(
                    "load_session", e.reason,
                    session_id=session_id, sequence=msg_row["sequence"],
                ) from e
        session.message_count = len(session.messages)
        log.debug("session_loaded", id=session_id, messages=session.message_count)
        return session

    # --- Listing ---

    def list_sessions(self, host: str, org: str, project: str, branch: str,
                      limit: int | None = None) -> list[Session]:
        """Sessions on one branch, most recently updated first. Bodies are not loaded."""
        sql = _LIST_SQL.format(
            where="WHERE r.host = ? AND r.org = ? AND r.project = ? AND b.name = ?")
        return self._list(sql, [host, org, project, branch], limit)

    def list_all_sessions(self, limit: int | None = None) -> list[Session]:
        """Sessions across every repository, most recently updated first."""
        return self._list(_LIST_SQL.format(where=""), [], limit)

    def _list(self, sql: str, params: list, limit: int | None) -> list[Session]:
        if limit is None:
            limit = self._config.list_limit
        if limit > 0:
            sql += " LIMIT ?"
            params.append(limit)
        rows = self._db.conn.execute(sql, params).fetchall()
        sessions = []
        for row in rows:
            session = _row_to_session(row)
            session.message_count = row["message_count"]
            sessions.append(session)
        return sessions

    def resolve_id(self, partial: str) -> str | None:
        """Resolve a session ID prefix to the full ID, or None if absent or ambiguous."""
        conn = self._db.conn
        row = conn.execute("SELECT id FROM sessions WHERE id = ?", (partial,)).fetchone()
        if row:
            return row["id"]

        rows = conn.execute(
            "SELECT id FROM sessions WHERE substr(id, 1, ?) = ? LIMIT 2",
            (len(partial), partial),
        ).fetchall()
        if len(rows) == 1:
            return rows[0]["id"]
        return None

    # --- Deletes and retention ---

    def delete_session(self, session_id: str) -> None:
        cur = self._db.conn.execute("DELETE FROM sessions WHERE id = ?", (session_id,))
        if cur.rowcount == 0:
            raise NotFoundError("delete_session", "session not found", session_id=session_id)
        log.info("session_deleted", id=session_id)

    def cleanup_old_sessions(self, max_age_days: int | None = None,
                             max_sessions: int | None = None) -> int:
        """Apply age and count retention. Returns the number of sessions deleted.

        The count pass is global: it keeps the ``max_sessions`` most recently
        updated sessions across all branches, so a busy branch can push out
        the sessions of a quiet one. Either pass is skipped when its limit is
        not positive.
        """
        if max_age_days is None:
            max_age_days = self._config.max_age_days
        if max_sessions is None:
            max_sessions = self._config.max_sessions

        aged = capped = 0
        with self._db.transaction(
            "cleanup_old_sessions", max_age_days=max_age_days, max_sessions=max_sessions,
        ) as conn:
            if max_age_days > 0:
                cutoff = to_epoch(now_utc() - timedelta(days=max_age_days))
                cur = conn.execute("DELETE FROM sessions WHERE last_updated < ?", (cutoff,))
                aged = cur.rowcount
            if max_sessions > 0:
                cur = conn.execute(
                    """DELETE FROM sessions
                    WHERE id NOT IN (
                        SELECT id FROM sessions
                        ORDER BY last_updated DESC, id DESC
                        LIMIT ?
                    )""",
                    (max_sessions,),
                )
                capped = cur.rowcount

        if aged or capped:
            log.info("sessions_cleaned_up", expired=aged, over_limit=capped,
                     max_age_days=max_age_days, max_sessions=max_sessions)
        return aged + capped

    # --- Search ---

    def search_messages(self, pattern: str, limit: int | None = None) -> list[SearchResult]:
        """Regex scan over raw message content, newest messages first.

        Raises InvalidPatternError if ``pattern`` does not compile.
        """
        regex = compile_pattern(pattern)
        if limit is None:
            limit = self._config.list_limit
        results = scan_messages(self._db.conn, regex, limit)
        log.debug("messages_searched", pattern=pattern, results=len(results))
        return results


def _row_to_session(row: sqlite3.Row) -> Session:
    return Session(
        id=row["id"],
        created_at=from_epoch(row["created_at"]),
        last_updated=from_epoch(row["last_updated"]),
        first_prompt=row["first_prompt"],
        provider=row["provider"],
        model=row["model"],
        working_dir=row["working_dir"],
        host=row["host"],
        org=row["org"],
        project=row["project"],
        branch=row["branch"],
    )
