"""Utility functions shared by the stores and the CLI."""

from __future__ import annotations

import re
from datetime import datetime, timezone

from convstore.models import Message, PartType, Role, Session

FIRST_PROMPT_MAX = 100

_WHITESPACE_RE = re.compile(r"\s+")


def derive_first_prompt(messages: list[Message], max_len: int = FIRST_PROMPT_MAX) -> str:
    """Return the first human text part, cut to ``max_len`` chars plus '...'."""
    for msg in messages:
        if msg.role != Role.HUMAN:
            continue
        for part in msg.parts:
            if part.get("type") == PartType.TEXT and part.get("text"):
                text = part["text"]
                if len(text) > max_len:
                    return text[:max_len] + "..."
                return text
    return ""


def last_human_message(messages: list[Message]) -> str:
    """Text of the most recent human message, or '' if there is none."""
    for msg in reversed(messages):
        if msg.role == Role.HUMAN:
            text = msg.text_content().strip()
            if text:
                return text
    return ""


def clean_snippet(text: str) -> str:
    """Collapse whitespace runs so a snippet fits on one line."""
    return _WHITESPACE_RE.sub(" ", text).strip()


def format_time_ago(dt: datetime | None) -> str:
    """Format a datetime as a relative time string."""
    if dt is None:
        return "unknown"
    now = datetime.now(timezone.utc)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    delta = now - dt
    seconds = int(delta.total_seconds())
    if seconds < 60:
        return "just now"
    minutes = seconds // 60
    if minutes < 60:
        return f"{minutes}m ago"
    hours = minutes // 60
    if hours < 24:
        return f"{hours}h ago"
    days = hours // 24
    if days < 30:
        return f"{days}d ago"
    months = days // 30
    if months < 12:
        return f"{months}mo ago"
    years = days // 365
    return f"{years}y ago"


def truncate(s: str, max_len: int = 60) -> str:
    """Truncate a string with ellipsis."""
    if len(s) <= max_len:
        return s
    return s[:max_len - 3] + "..."


def session_title(session: Session) -> str:
    """Best available one-line title for a session."""
    title = clean_snippet(session.first_prompt)
    if not title:
        title = clean_snippet(last_human_message(session.messages))
    return title or "(no prompt)"


def format_session_row(session: Session, long_format: bool = False) -> str:
    """Format a session as a single-line row for list display."""
    age = format_time_ago(session.last_updated)
    title = truncate(session_title(session), 50)
    if long_format:
        model = session.model or "-"
        return (f"{session.id:<27} {session.message_count:>4} msgs  {model:<20} "
                f"{session.project_slug}@{session.branch}  {title}  ({age})")
    return f"{session.id:<27} {session.message_count:>4} msgs  {title}  ({age})"
