"""convstore stats - show database statistics."""

from __future__ import annotations

import click

from convstore.cli import AppContext, pass_ctx


@click.command("stats")
@pass_ctx
def stats(ctx: AppContext) -> None:
    """Show row counts and schema version."""
    ctx.ensure_initialized()
    assert ctx.db is not None

    counts = ctx.db.stats()
    version = ctx.db.schema_version()

    if ctx.json_output:
        ctx.output({"path": ctx.db.path, "schema_version": version, **counts})
        return

    click.echo("Database Statistics")
    click.echo("─" * 40)
    click.echo(f"  Path:            {ctx.db.path}")
    click.echo(f"  Schema version:  {version}")
    for table, count in counts.items():
        click.echo(f"  {table + ':':<16} {count}")
