"""Markdown export of a stored session.

Two modes:
- conversation: human and AI text turns only
- full: adds the system prompt, tool calls and tool results
"""

from __future__ import annotations

import json
import os
import tempfile
from datetime import datetime
from typing import Any

from convstore.models import Message, PartType, Role, Session, now_utc


class ExportType:
    FULL = "full"
    CONVERSATION = "conversation"

    _VALID = {FULL, CONVERSATION}

    @classmethod
    def is_valid(cls, t: str) -> bool:
        return t in cls._VALID


_ROLE_HEADINGS = {
    Role.HUMAN: "User",
    Role.AI: "Assistant",
    Role.SYSTEM: "System",
    Role.TOOL: "Tool",
    Role.GENERIC: "Message",
}

MAX_TOOL_OUTPUT = 2000


def format_metadata(session: Session, export_type: str, exported_at: datetime) -> str:
    lines = [
        f"**Session:** {session.id} | **Project:** {session.project_slug} | "
        f"**Branch:** {session.branch}",
        f"**Provider:** {session.provider or '-'} | **Model:** {session.model or '-'}",
        f"**Created:** {_fmt(session.created_at)} | **Last updated:** {_fmt(session.last_updated)}",
        f"**Exported:** {_fmt(exported_at)} ({export_type}) | "
        f"**Working dir:** {session.working_dir or '-'}",
    ]
    return "\n".join(lines) + "\n"


def generate_export_content(session: Session, export_type: str = ExportType.CONVERSATION,
                            exported_at: datetime | None = None) -> str:
    if not ExportType.is_valid(export_type):
        raise ValueError(f"unknown export type: {export_type}")
    full = export_type == ExportType.FULL
    out: list[str] = ["# Conversation Export\n", format_metadata(
        session, export_type, exported_at or now_utc()), "---\n"]

    messages = session.messages
    if full and messages and messages[0].role == Role.SYSTEM:
        out.append("## System Prompt\n")
        out.append(messages[0].text_content() + "\n")
        out.append("---\n")

    number = 0
    for msg in messages:
        if msg.role == Role.SYSTEM:
            continue
        if not full and msg.role not in (Role.HUMAN, Role.AI):
            continue
        body = _format_message(msg, full)
        if not body:
            continue
        number += 1
        heading = _ROLE_HEADINGS.get(msg.role, msg.role.title())
        out.append(f"## {number}. {heading}\n")
        out.append(body + "\n")
    return "\n".join(out)


def _format_message(msg: Message, full: bool) -> str:
    chunks: list[str] = []
    for part in msg.parts:
        ptype = part.get("type")
        if ptype == PartType.TEXT:
            text = part.get("text", "").strip()
            if text:
                chunks.append(text)
        elif full and ptype == PartType.TOOL_CALL:
            chunks.append(_format_tool_call(part))
        elif full and ptype == PartType.TOOL_RESULT:
            chunks.append(_format_tool_result(part))
    return "\n\n".join(chunks)


def _format_tool_call(part: dict[str, Any]) -> str:
    name = part.get("name", "tool")
    args = part.get("arguments", "")
    if not isinstance(args, str):
        args = json.dumps(args, indent=2, ensure_ascii=False)
    return f"**Tool call:** `{name}`\n\n```json\n{args}\n```"


def _format_tool_result(part: dict[str, Any]) -> str:
    name = part.get("name", "tool")
    content = str(part.get("content", ""))
    if len(content) > MAX_TOOL_OUTPUT:
        content = content[:MAX_TOOL_OUTPUT] + "\n... (truncated)"
    return f"**Tool result:** `{name}`\n\n```\n{content}\n```"


def _fmt(dt: datetime | None) -> str:
    return dt.strftime("%Y-%m-%d %H:%M:%S UTC") if dt else "-"


def export_session(session: Session, export_type: str = ExportType.CONVERSATION,
                   output_path: str | None = None) -> str:
    """Write the Markdown export and return its path.

    Without ``output_path`` the file goes to the system temp directory.
    """
    content = generate_export_content(session, export_type)
    if output_path is None:
        stamp = now_utc().strftime("%Y%m%d-%H%M%S")
        output_path = os.path.join(
            tempfile.gettempdir(), f"convstore-export-{export_type}-{session.id}-{stamp}.md")

    tmp_path = output_path + ".tmp"
    try:
        with open(tmp_path, "w", encoding="utf-8") as f:
            f.write(content)
        # Atomic rename
        os.replace(tmp_path, output_path)
    except Exception:
        if os.path.exists(tmp_path):
            os.unlink(tmp_path)
        raise
    return output_path
