"""Regex search over serialized message content.

There is no full-text index: every candidate message is fetched and the
expression is tested in Python against the raw JSON content. Matches can
therefore hit structural field names (``"parts"``, ``"type"``) as well as
the conversation text.
"""

from __future__ import annotations

import re
import sqlite3

from convstore.errors import InvalidPatternError
from convstore.models import SearchResult

SNIPPET_RADIUS = 100

# Rows fetched per batch for each requested result
OVERFETCH_FACTOR = 10
DEFAULT_BATCH = 500

_SCAN_SQL = """
    SELECT m.session_id, m.sequence, m.role, m.content,
           s.first_prompt, s.working_dir,
           r.host, r.org, r.project, b.name AS branch
    FROM messages m
    JOIN sessions s ON m.session_id = s.id
    JOIN branches b ON s.branch_id = b.id
    JOIN repositories r ON b.repository_id = r.id
    ORDER BY m.created_at DESC, m.id DESC
"""


def compile_pattern(pattern: str) -> re.Pattern[str]:
    try:
        return re.compile(pattern)
    except re.error as e:
        raise InvalidPatternError(pattern, f"invalid regex pattern: {e}") from e


def extract_snippet(content: str, match: re.Match[str], radius: int = SNIPPET_RADIUS) -> str:
    """Return the match plus up to ``radius`` characters on either side."""
    start = max(0, match.start() - radius)
    end = min(len(content), match.end() + radius)
    return content[start:end]


def scan_messages(conn: sqlite3.Connection, regex: re.Pattern[str],
                  limit: int = 0) -> list[SearchResult]:
    """Scan messages newest first, collecting up to ``limit`` matches (``<= 0`` for all)."""
    batch = limit * OVERFETCH_FACTOR if limit > 0 else DEFAULT_BATCH
    results: list[SearchResult] = []
    cur = conn.execute(_SCAN_SQL)
    try:
        while True:
            rows = cur.fetchmany(batch)
            if not rows:
                break
            for row in rows:
                content = row["content"]
                match = regex.search(content)
                if match is None:
                    continue
                results.append(SearchResult(
                    session_id=row["session_id"],
                    sequence=row["sequence"],
                    role=row["role"],
                    snippet=extract_snippet(content, match),
                    first_prompt=row["first_prompt"],
                    working_dir=row["working_dir"],
                    host=row["host"],
                    org=row["org"],
                    project=row["project"],
                    branch=row["branch"],
                ))
                if limit > 0 and len(results) >= limit:
                    return results
    finally:
        cur.close()
    return results
