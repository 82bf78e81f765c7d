"""convstore search - regex search across all stored messages."""

from __future__ import annotations

import click

from convstore.cli import AppContext, pass_ctx
from convstore.errors import StoreError
from convstore.utils import clean_snippet, truncate


@click.command("search")
@click.argument("pattern")
@click.option("--limit", "-n", type=int, default=None, help="Max results to show")
@pass_ctx
def search(ctx: AppContext, pattern: str, limit: int | None) -> None:
    """Search message content with a regular expression."""
    ctx.ensure_initialized()
    assert ctx.sessions is not None

    try:
        results = ctx.sessions.search_messages(pattern, limit=limit)
    except StoreError as e:
        ctx.fail(str(e))

    if ctx.json_output:
        ctx.output([r.to_dict() for r in results])
        return

    if not results:
        click.echo(f"No matches for '{pattern}'.")
        return

    for r in results:
        where = f"{r.host}/{r.org}/{r.project}@{r.branch}"
        click.echo(f"{r.session_id}  [{r.sequence}] {r.role:<8} {where}")
        click.echo(f"    {truncate(clean_snippet(r.snippet), 200)}")

    if not ctx.quiet:
        click.echo(f"\n{len(results)} match(es)")
