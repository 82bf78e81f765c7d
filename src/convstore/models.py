"""Core data models for repositories, sessions, messages and history."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from convstore.errors import CorruptDataError


# --- Role constants ---

class Role:
    SYSTEM = "system"
    HUMAN = "human"
    AI = "ai"
    TOOL = "tool"
    GENERIC = "generic"

    _VALID = {SYSTEM, HUMAN, AI, TOOL, GENERIC}

    @classmethod
    def is_valid(cls, r: str) -> bool:
        return r in cls._VALID


# --- Message part types ---

class PartType:
    TEXT = "text"
    TOOL_CALL = "tool_call"
    TOOL_RESULT = "tool_result"
    IMAGE_URL = "image_url"


# --- Helper: epoch timestamp handling ---

def now_utc() -> datetime:
    """Current time in UTC."""
    return datetime.now(timezone.utc)


def to_epoch(dt: datetime | None) -> int:
    """Convert a datetime to integer epoch seconds. Naive values are taken as UTC."""
    if dt is None:
        return 0
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return int(dt.timestamp())


def from_epoch(seconds: int | None) -> datetime:
    """Convert epoch seconds to an aware UTC datetime."""
    return datetime.fromtimestamp(int(seconds or 0), tz=timezone.utc)


# --- Dataclasses ---

@dataclass
class Repository:
    id: int = 0
    host: str = ""
    org: str = ""
    project: str = ""

    @property
    def slug(self) -> str:
        return f"{self.host}/{self.org}/{self.project}"


@dataclass
class Branch:
    id: int = 0
    repository_id: int = 0
    name: str = ""


@dataclass
class Message:
    """One conversation turn: a role plus structured parts.

    Each part is a dict with a ``type`` discriminant (``text``, ``tool_call``,
    ``tool_result``, ...). The whole message is serialized so that loading
    restores the part types the conversational layer depends on.
    """

    role: str = Role.HUMAN
    parts: list[dict[str, Any]] = field(default_factory=list)

    @classmethod
    def text(cls, role: str, text: str) -> Message:
        return cls(role=role, parts=[{"type": PartType.TEXT, "text": text}])

    def text_content(self) -> str:
        """Concatenate the text parts of this message."""
        return "\n".join(
            p.get("text", "") for p in self.parts if p.get("type") == PartType.TEXT
        )

    def to_dict(self) -> dict[str, Any]:
        return {"role": self.role, "parts": self.parts}

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), ensure_ascii=False, separators=(",", ":"))

    @classmethod
    def from_json(cls, raw: str) -> Message:
        """Deserialize a stored message. Raises CorruptDataError on bad content."""
        try:
            data = json.loads(raw)
        except (json.JSONDecodeError, TypeError) as e:
            raise CorruptDataError("decode_message", str(e)) from e
        if not isinstance(data, dict) or not isinstance(data.get("role"), str):
            raise CorruptDataError("decode_message", "missing role")
        parts = data.get("parts", [])
        if not isinstance(parts, list) or not all(isinstance(p, dict) for p in parts):
            raise CorruptDataError("decode_message", "parts must be a list of objects")
        return cls(role=data["role"], parts=parts)


@dataclass
class Session:
    """A persisted conversation.

    ``messages`` is only populated by ``load_session``; list views fill
    ``message_count`` instead. The repository coordinates are filled in from
    the branch the session is stored under.
    """

    id: str = ""
    created_at: datetime | None = None
    last_updated: datetime | None = None
    first_prompt: str = ""
    provider: str = ""
    model: str = ""
    working_dir: str = ""
    messages: list[Message] = field(default_factory=list)
    message_count: int = 0

    host: str = ""
    org: str = ""
    project: str = ""
    branch: str = ""

    @property
    def project_slug(self) -> str:
        return f"{self.host}/{self.org}/{self.project}"

    def to_dict(self, include_messages: bool = False) -> dict[str, Any]:
        d: dict[str, Any] = {
            "id": self.id,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "last_updated": self.last_updated.isoformat() if self.last_updated else None,
            "first_prompt": self.first_prompt,
            "provider": self.provider,
            "model": self.model,
            "working_dir": self.working_dir,
            "host": self.host,
            "org": self.org,
            "project": self.project,
            "branch": self.branch,
            "message_count": self.message_count,
        }
        if include_messages:
            d["messages"] = [m.to_dict() for m in self.messages]
        return d


@dataclass
class HistoryEntry:
    content: str = ""
    timestamp: datetime = field(default_factory=now_utc)


@dataclass
class SearchResult:
    session_id: str = ""
    sequence: int = 0
    role: str = ""
    snippet: str = ""
    first_prompt: str = ""
    working_dir: str = ""
    host: str = ""
    org: str = ""
    project: str = ""
    branch: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "session_id": self.session_id,
            "sequence": self.sequence,
            "role": self.role,
            "snippet": self.snippet,
            "first_prompt": self.first_prompt,
            "working_dir": self.working_dir,
            "host": self.host,
            "org": self.org,
            "project": self.project,
            "branch": self.branch,
        }
