"""Prompt and command history, scoped to a branch."""

from __future__ import annotations

from datetime import timedelta

import structlog

from convstore.config import HistoryConfig
from convstore.models import HistoryEntry, from_epoch, now_utc, to_epoch
from convstore.storage.db import Database
from convstore.storage.identity import IdentityResolver

log = structlog.get_logger()


class HistoryKind:
    PROMPT = "prompt"
    COMMAND = "command"


# kind -> (table, text column); fixed names, safe to interpolate
_TABLES = {
    HistoryKind.PROMPT: ("prompt_history", "prompt"),
    HistoryKind.COMMAND: ("command_history", "command"),
}


class HistoryStore:
    """Appends and loads prompt/command history for a (repository, branch).

    History is independent of sessions: it persists across sessions on the
    same branch and is capped at ``max_entries`` rows per branch and kind.
    """

    def __init__(self, db: Database, config: HistoryConfig | None = None):
        self._db = db
        self._config = config or HistoryConfig()
        self._identity = IdentityResolver(db)

    @property
    def config(self) -> HistoryConfig:
        return self._config

    # --- Prompts ---

    def append_prompt(self, host: str, org: str, project: str, branch: str,
                      prompt: str) -> None:
        self._append(HistoryKind.PROMPT, host, org, project, branch, prompt)

    def load_prompt_history(self, host: str, org: str, project: str, branch: str,
                            limit: int | None = None) -> list[HistoryEntry]:
        return self._load(HistoryKind.PROMPT, host, org, project, branch, limit)

    def clear_prompt_history(self, host: str, org: str, project: str, branch: str) -> int:
        return self._clear(HistoryKind.PROMPT, host, org, project, branch)

    # --- Commands ---

    def append_command(self, host: str, org: str, project: str, branch: str,
                       command: str) -> None:
        self._append(HistoryKind.COMMAND, host, org, project, branch, command)

    def load_command_history(self, host: str, org: str, project: str, branch: str,
                             limit: int | None = None) -> list[HistoryEntry]:
        return self._load(HistoryKind.COMMAND, host, org, project, branch, limit)

    def clear_command_history(self, host: str, org: str, project: str, branch: str) -> int:
        return self._clear(HistoryKind.COMMAND, host, org, project, branch)

    # --- Retention ---

    def cleanup_old_history(self, max_age_days: int | None = None) -> int:
        """Delete prompt and command entries older than the cutoff, on every branch."""
        if max_age_days is None:
            max_age_days = self._config.max_age_days
        if max_age_days <= 0:
            return 0

        cutoff = to_epoch(now_utc() - timedelta(days=max_age_days))
        deleted = 0
        with self._db.transaction("cleanup_old_history", max_age_days=max_age_days) as conn:
            for table, _ in _TABLES.values():
                cur = conn.execute(f"DELETE FROM {table} WHERE timestamp < ?", (cutoff,))
                deleted += cur.rowcount
        if deleted:
            log.info("history_cleaned_up", deleted=deleted, max_age_days=max_age_days)
        return deleted

    # --- Helpers ---

    def _append(self, kind: str, host: str, org: str, project: str, branch: str,
                text: str) -> None:
        table, column = _TABLES[kind]
        max_entries = self._config.max_entries
        with self._db.transaction(
            f"append_{kind}", host=host, org=org, project=project, branch=branch,
        ) as conn:
            branch_id = self._identity.resolve(host, org, project, branch)
            conn.execute(
                f"INSERT INTO {table} (branch_id, {column}, timestamp) VALUES (?, ?, ?)",
                (branch_id, text, to_epoch(now_utc())),
            )
            if max_entries > 0:
                conn.execute(
                    f"""DELETE FROM {table}
                    WHERE branch_id = ?
                    AND id NOT IN (
                        SELECT id FROM {table}
                        WHERE branch_id = ?
                        ORDER BY timestamp DESC, id DESC
                        LIMIT ?
                    )""",
                    (branch_id, branch_id, max_entries),
                )

    def _load(self, kind: str, host: str, org: str, project: str, branch: str,
              limit: int | None) -> list[HistoryEntry]:
        branch_id = self._identity.find_branch_id(host, org, project, branch)
        if branch_id is None:
            return []
        if limit is None:
            limit = self._config.list_limit

        table, column = _TABLES[kind]
        params: list = [branch_id]
        if limit > 0:
            # Newest `limit` entries, returned oldest first
            sql = f"""SELECT * FROM (
                    SELECT id, {column} AS content, timestamp FROM {table}
                    WHERE branch_id = ?
                    ORDER BY timestamp DESC, id DESC
                    LIMIT ?
                ) ORDER BY timestamp ASC, id ASC"""
            params.append(limit)
        else:
            sql = (f"SELECT id, {column} AS content, timestamp FROM {table} "
                   "WHERE branch_id = ? ORDER BY timestamp ASC, id ASC")
        rows = self._db.conn.execute(sql, params).fetchall()
        return [
            HistoryEntry(content=row["content"], timestamp=from_epoch(row["timestamp"]))
            for row in rows
        ]

    def _clear(self, kind: str, host: str, org: str, project: str, branch: str) -> int:
        branch_id = self._identity.find_branch_id(host, org, project, branch)
        if branch_id is None:
            return 0
        table, _ = _TABLES[kind]
        cur = self._db.conn.execute(f"DELETE FROM {table} WHERE branch_id = ?", (branch_id,))
        return cur.rowcount
