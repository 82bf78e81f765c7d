"""convstore cleanup - apply session and history retention."""

from __future__ import annotations

import click

from convstore.cli import AppContext, pass_ctx
from convstore.errors import StoreError


@click.command("cleanup")
@click.option("--max-age-days", type=int, default=None,
              help="Delete sessions not updated for this many days (default: config)")
@click.option("--max-sessions", type=int, default=None,
              help="Keep only this many most recent sessions (default: config)")
@click.option("--history-age-days", type=int, default=None,
              help="Delete history entries older than this (default: config)")
@pass_ctx
def cleanup(ctx: AppContext, max_age_days: int | None, max_sessions: int | None,
            history_age_days: int | None) -> None:
    """Delete expired sessions and history entries."""
    ctx.ensure_initialized()
    assert ctx.sessions is not None and ctx.history is not None

    try:
        sessions_deleted = ctx.sessions.cleanup_old_sessions(
            max_age_days=max_age_days, max_sessions=max_sessions)
        history_deleted = ctx.history.cleanup_old_history(max_age_days=history_age_days)
    except StoreError as e:
        ctx.fail(str(e))

    if ctx.json_output:
        ctx.output({"sessions_deleted": sessions_deleted,
                    "history_deleted": history_deleted})
        return

    if not ctx.quiet:
        click.echo(f"Deleted {sessions_deleted} session(s) and "
                   f"{history_deleted} history entr{'y' if history_deleted == 1 else 'ies'}")
