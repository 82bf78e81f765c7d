"""Repository and branch identity resolution."""

from __future__ import annotations

import sqlite3

import structlog

from convstore.errors import NotFoundError, StoreError
from convstore.models import Branch, Repository
from convstore.storage.db import Database

log = structlog.get_logger()


class IdentityResolver:
    """Maps (host, org, project) and branch names to stable integer ids.

    Resolution is check-then-insert. That is race-free only because the
    store has a single connection; with more connections it would need an
    insert-or-ignore followed by a re-select.
    """

    def __init__(self, db: Database):
        self._db = db

    def resolve_repository(self, host: str, org: str, project: str) -> int:
        """Return the repository id for the key, creating the row on first use."""
        conn = self._db.conn
        try:
            row = conn.execute(
                "SELECT id FROM repositories WHERE host = ? AND org = ? AND project = ?",
                (host, org, project),
            ).fetchone()
            if row is not None:
                return row["id"]
            cur = conn.execute(
                "INSERT INTO repositories (host, org, project) VALUES (?, ?, ?)",
                (host, org, project),
            )
        except sqlite3.Error as e:
            raise StoreError("resolve_repository", str(e),
                             host=host, org=org, project=project) from e
        log.debug("repository_created", id=cur.lastrowid, host=host, org=org, project=project)
        return cur.lastrowid

    def resolve_branch(self, repository_id: int, name: str) -> int:
        """Return the branch id under a repository, creating the row on first use."""
        conn = self._db.conn
        try:
            row = conn.execute(
                "SELECT id FROM branches WHERE repository_id = ? AND name = ?",
                (repository_id, name),
            ).fetchone()
            if row is not None:
                return row["id"]
            cur = conn.execute(
                "INSERT INTO branches (repository_id, name) VALUES (?, ?)",
                (repository_id, name),
            )
        except sqlite3.Error as e:
            raise StoreError("resolve_branch", str(e),
                             repository_id=repository_id, name=name) from e
        log.debug("branch_created", id=cur.lastrowid, repository_id=repository_id, name=name)
        return cur.lastrowid

    def resolve(self, host: str, org: str, project: str, branch: str) -> int:
        """Resolve the full (host, org, project, branch) tuple to a branch id."""
        return self.resolve_branch(self.resolve_repository(host, org, project), branch)

    # --- Lookups (absence is not an error) ---

    def get_repository(self, host: str, org: str, project: str) -> Repository | None:
        row = self._db.conn.execute(
            "SELECT id, host, org, project FROM repositories "
            "WHERE host = ? AND org = ? AND project = ?",
            (host, org, project),
        ).fetchone()
        return _row_to_repository(row) if row else None

    def get_repository_by_id(self, repository_id: int) -> Repository | None:
        row = self._db.conn.execute(
            "SELECT id, host, org, project FROM repositories WHERE id = ?",
            (repository_id,),
        ).fetchone()
        return _row_to_repository(row) if row else None

    def get_branch(self, repository_id: int, name: str) -> Branch | None:
        row = self._db.conn.execute(
            "SELECT id, repository_id, name FROM branches WHERE repository_id = ? AND name = ?",
            (repository_id, name),
        ).fetchone()
        return _row_to_branch(row) if row else None

    def find_branch_id(self, host: str, org: str, project: str, branch: str) -> int | None:
        """Look up a branch id without creating anything."""
        repo = self.get_repository(host, org, project)
        if repo is None:
            return None
        found = self.get_branch(repo.id, branch)
        return found.id if found else None

    def list_repositories(self) -> list[Repository]:
        rows = self._db.conn.execute(
            "SELECT id, host, org, project FROM repositories ORDER BY host, org, project"
        ).fetchall()
        return [_row_to_repository(row) for row in rows]

    def list_branches(self, repository_id: int) -> list[Branch]:
        rows = self._db.conn.execute(
            "SELECT id, repository_id, name FROM branches WHERE repository_id = ? ORDER BY name",
            (repository_id,),
        ).fetchall()
        return [_row_to_branch(row) for row in rows]

    # --- Deletes (cascade to everything underneath) ---

    def delete_repository(self, repository_id: int) -> None:
        cur = self._db.conn.execute("DELETE FROM repositories WHERE id = ?", (repository_id,))
        if cur.rowcount == 0:
            raise NotFoundError("delete_repository", "repository not found", id=repository_id)
        log.info("repository_deleted", id=repository_id)

    def delete_branch(self, branch_id: int) -> None:
        cur = self._db.conn.execute("DELETE FROM branches WHERE id = ?", (branch_id,))
        if cur.rowcount == 0:
            raise NotFoundError("delete_branch", "branch not found", id=branch_id)
        log.info("branch_deleted", id=branch_id)


def _row_to_repository(row: sqlite3.Row) -> Repository:
    return Repository(id=row["id"], host=row["host"], org=row["org"], project=row["project"])


def _row_to_branch(row: sqlite3.Row) -> Branch:
    return Branch(id=row["id"], repository_id=row["repository_id"], name=row["name"])
