"""convstore compact - reclaim free space in the database file."""

from __future__ import annotations

import os

import click

from convstore.cli import AppContext, pass_ctx
from convstore.errors import StoreError


@click.command("compact")
@pass_ctx
def compact(ctx: AppContext) -> None:
    """Run VACUUM on the database."""
    ctx.ensure_initialized()
    assert ctx.db is not None

    before = _size(ctx.db.path)
    try:
        ctx.db.compact()
    except StoreError as e:
        ctx.fail(str(e))
    after = _size(ctx.db.path)

    if ctx.json_output:
        ctx.output({"path": ctx.db.path, "size_before": before, "size_after": after})
    elif not ctx.quiet:
        click.echo(f"Compacted {ctx.db.path}: {before} -> {after} bytes")


def _size(path: str) -> int:
    return os.path.getsize(path) if os.path.exists(path) else 0
