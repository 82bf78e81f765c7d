"""Session ID generation.

Format: ``YYYY-MM-DD-HHMMSS-<8 hex chars>``. The timestamp prefix keeps ids
roughly sortable by creation time; the random suffix makes collisions between
sessions started in the same second negligible.
"""

from __future__ import annotations

import re
import secrets
from datetime import datetime

from convstore.models import now_utc

SESSION_ID_RE = re.compile(r"^\d{4}-\d{2}-\d{2}-\d{6}-[0-9a-f]{8}$")


def generate_session_id(created: datetime | None = None) -> str:
    """Generate a new session ID for the given creation time (default: now)."""
    ts = (created or now_utc()).strftime("%Y-%m-%d-%H%M%S")
    return f"{ts}-{secrets.token_hex(4)}"


def is_session_id(s: str) -> bool:
    """Check whether a string has the generated session ID shape."""
    return bool(SESSION_ID_RE.match(s))
