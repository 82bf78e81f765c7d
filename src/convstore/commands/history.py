"""convstore history - prompt and command history for a branch."""

from __future__ import annotations

import click

from convstore.cli import AppContext, pass_ctx, scope_options
from convstore.errors import StoreError
from convstore.utils import format_time_ago


@click.group("history")
def history() -> None:
    """Show, append to, or clear branch history."""


@history.command("show")
@scope_options
@click.option("--commands", "-c", "commands", is_flag=True,
              help="Command history instead of prompts")
@click.option("--limit", "-n", type=int, default=None, help="Show only the newest N entries")
@pass_ctx
def history_show(ctx: AppContext, repo: str | None, branch: str | None,
                 commands: bool, limit: int | None) -> None:
    """Show history for a branch, oldest first."""
    ctx.ensure_initialized()
    assert ctx.history is not None

    scope = ctx.resolve_scope(repo, branch)
    try:
        if commands:
            entries = ctx.history.load_command_history(*scope.as_tuple(), limit=limit)
        else:
            entries = ctx.history.load_prompt_history(*scope.as_tuple(), limit=limit)
    except StoreError as e:
        ctx.fail(str(e))

    if ctx.json_output:
        ctx.output([
            {"content": entry.content, "timestamp": entry.timestamp.isoformat()}
            for entry in entries
        ])
        return

    if not entries:
        click.echo(f"No history for {scope.slug}@{scope.branch}.")
        return

    for entry in entries:
        click.echo(f"  [{format_time_ago(entry.timestamp):>8}] {entry.content}")


@history.command("add")
@scope_options
@click.argument("text")
@click.option("--command", "-c", "is_command", is_flag=True,
              help="Record as a command instead of a prompt")
@pass_ctx
def history_add(ctx: AppContext, repo: str | None, branch: str | None,
                text: str, is_command: bool) -> None:
    """Append an entry to a branch's history."""
    ctx.ensure_initialized()
    assert ctx.history is not None

    scope = ctx.resolve_scope(repo, branch)
    try:
        if is_command:
            ctx.history.append_command(*scope.as_tuple(), text)
        else:
            ctx.history.append_prompt(*scope.as_tuple(), text)
    except StoreError as e:
        ctx.fail(str(e))

    if not ctx.quiet and not ctx.json_output:
        kind = "command" if is_command else "prompt"
        click.echo(f"Added {kind} to {scope.slug}@{scope.branch}")


@history.command("clear")
@scope_options
@click.option("--commands", "-c", "commands", is_flag=True,
              help="Clear command history instead of prompts")
@pass_ctx
def history_clear(ctx: AppContext, repo: str | None, branch: str | None,
                  commands: bool) -> None:
    """Remove all history entries of one kind for a branch."""
    ctx.ensure_initialized()
    assert ctx.history is not None

    scope = ctx.resolve_scope(repo, branch)
    try:
        if commands:
            removed = ctx.history.clear_command_history(*scope.as_tuple())
        else:
            removed = ctx.history.clear_prompt_history(*scope.as_tuple())
    except StoreError as e:
        ctx.fail(str(e))

    if ctx.json_output:
        ctx.output({"removed": removed})
    elif not ctx.quiet:
        click.echo(f"Removed {removed} entr{'y' if removed == 1 else 'ies'}")
