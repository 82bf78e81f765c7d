"""convstore sessions - list, show, delete and export stored sessions."""

from __future__ import annotations

import click

from convstore.cli import AppContext, pass_ctx, scope_options
from convstore.errors import StoreError
from convstore.export import ExportType, export_session
from convstore.models import Role
from convstore.utils import format_session_row, format_time_ago, session_title

_ROLE_LABELS = {
    Role.HUMAN: "user",
    Role.AI: "assistant",
}


@click.group("sessions")
def sessions() -> None:
    """Manage saved conversation sessions."""


@sessions.command("list")
@scope_options
@click.option("--all", "all_repos", is_flag=True, help="List sessions from every repository")
@click.option("--limit", "-n", type=int, default=None, help="Max sessions to show")
@click.option("--long", "-L", "long_format", is_flag=True, help="Long format with extra fields")
@pass_ctx
def sessions_list(ctx: AppContext, repo: str | None, branch: str | None,
                  all_repos: bool, limit: int | None, long_format: bool) -> None:
    """List sessions, most recently updated first."""
    ctx.ensure_initialized()
    assert ctx.sessions is not None

    try:
        if all_repos:
            found = ctx.sessions.list_all_sessions(limit=limit)
        else:
            scope = ctx.resolve_scope(repo, branch)
            found = ctx.sessions.list_sessions(*scope.as_tuple(), limit=limit)
    except StoreError as e:
        ctx.fail(str(e))

    if ctx.json_output:
        ctx.output([s.to_dict() for s in found])
        return

    if not found:
        click.echo("No sessions found.")
        return

    for session in found:
        click.echo(format_session_row(session, long_format=long_format or all_repos))

    if not ctx.quiet:
        click.echo(f"\n{len(found)} session(s)")


@sessions.command("show")
@click.argument("session_id")
@click.option("--messages", "-m", "show_messages", is_flag=True,
              help="Print the transcript text")
@pass_ctx
def sessions_show(ctx: AppContext, session_id: str, show_messages: bool) -> None:
    """Show a session's metadata and, optionally, its transcript."""
    ctx.ensure_initialized()
    assert ctx.sessions is not None

    try:
        session = ctx.sessions.load_session(ctx.resolve_session_id(session_id))
    except StoreError as e:
        ctx.fail(str(e))

    if ctx.json_output:
        ctx.output(session.to_dict(include_messages=True))
        return

    click.echo(f"{'─' * 60}")
    click.echo(f"  {session.id}")
    click.echo(f"{'─' * 60}")
    click.echo(f"  Title:    {session_title(session)}")
    click.echo(f"  Project:  {session.project_slug}")
    click.echo(f"  Branch:   {session.branch}")
    if session.provider or session.model:
        click.echo(f"  Model:    {session.provider or '-'} / {session.model or '-'}")
    if session.working_dir:
        click.echo(f"  Dir:      {session.working_dir}")
    click.echo(f"  Created:  {format_time_ago(session.created_at)}")
    click.echo(f"  Updated:  {format_time_ago(session.last_updated)}")
    click.echo(f"  Messages: {session.message_count}")

    if show_messages:
        for i, msg in enumerate(session.messages):
            text = msg.text_content().strip()
            if not text:
                continue
            click.echo(f"\n  [{i}] {_ROLE_LABELS.get(msg.role, msg.role)}:")
            for line in text.split("\n"):
                click.echo(f"    {line}")

    click.echo()


@sessions.command("delete")
@click.argument("session_ids", nargs=-1, required=True)
@pass_ctx
def sessions_delete(ctx: AppContext, session_ids: tuple[str, ...]) -> None:
    """Delete one or more sessions and their messages."""
    ctx.ensure_initialized()
    assert ctx.sessions is not None

    deleted = []
    for partial in session_ids:
        session_id = ctx.resolve_session_id(partial)
        try:
            ctx.sessions.delete_session(session_id)
        except StoreError as e:
            ctx.fail(str(e))
        deleted.append(session_id)

    if ctx.json_output:
        ctx.output({"deleted": deleted})
    elif not ctx.quiet:
        for session_id in deleted:
            click.echo(f"Deleted {session_id}")


@sessions.command("export")
@click.argument("session_id")
@click.option("--type", "-t", "export_type", default=ExportType.CONVERSATION,
              type=click.Choice([ExportType.CONVERSATION, ExportType.FULL]),
              help="conversation: user and assistant text only; full: include tools")
@click.option("--output", "-o", "output_path", type=click.Path(dir_okay=False),
              default=None, help="Output file (default: temp directory)")
@pass_ctx
def sessions_export(ctx: AppContext, session_id: str, export_type: str,
                    output_path: str | None) -> None:
    """Export a session as Markdown."""
    ctx.ensure_initialized()
    assert ctx.sessions is not None

    try:
        session = ctx.sessions.load_session(ctx.resolve_session_id(session_id))
    except StoreError as e:
        ctx.fail(str(e))

    path = export_session(session, export_type, output_path)

    if ctx.json_output:
        ctx.output({"session_id": session.id, "type": export_type, "path": path})
    else:
        click.echo(path)
