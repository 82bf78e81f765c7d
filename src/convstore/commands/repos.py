"""convstore repos - inspect and delete repositories and branches."""

from __future__ import annotations

import click

from convstore.cli import AppContext, pass_ctx
from convstore.errors import StoreError


@click.group("repos")
def repos() -> None:
    """Manage known repositories and branches."""


@repos.command("list")
@pass_ctx
def repos_list(ctx: AppContext) -> None:
    """List repositories."""
    ctx.ensure_initialized()
    assert ctx.identity is not None

    found = ctx.identity.list_repositories()

    if ctx.json_output:
        ctx.output([
            {"id": r.id, "host": r.host, "org": r.org, "project": r.project} for r in found
        ])
        return

    if not found:
        click.echo("No repositories.")
        return

    for r in found:
        click.echo(f"  {r.id:>4}  {r.slug}")


@repos.command("branches")
@click.argument("repository_id", type=int)
@pass_ctx
def repos_branches(ctx: AppContext, repository_id: int) -> None:
    """List branches of a repository."""
    ctx.ensure_initialized()
    assert ctx.identity is not None

    repo = ctx.identity.get_repository_by_id(repository_id)
    if repo is None:
        ctx.fail(f"repository not found: {repository_id}")
    found = ctx.identity.list_branches(repository_id)

    if ctx.json_output:
        ctx.output([{"id": b.id, "repository_id": b.repository_id, "name": b.name}
                    for b in found])
        return

    click.echo(f"{repo.slug}:")
    for b in found:
        click.echo(f"  {b.id:>4}  {b.name}")


@repos.command("delete")
@click.argument("repository_id", type=int)
@click.option("--yes", "-y", is_flag=True, help="Skip confirmation")
@pass_ctx
def repos_delete(ctx: AppContext, repository_id: int, yes: bool) -> None:
    """Delete a repository with all its branches, sessions and history."""
    ctx.ensure_initialized()
    assert ctx.identity is not None

    if not yes:
        click.confirm(f"Delete repository {repository_id} and everything under it?",
                      abort=True)
    try:
        ctx.identity.delete_repository(repository_id)
    except StoreError as e:
        ctx.fail(str(e))

    if not ctx.quiet:
        click.echo(f"Deleted repository {repository_id}")


@repos.command("delete-branch")
@click.argument("branch_id", type=int)
@click.option("--yes", "-y", is_flag=True, help="Skip confirmation")
@pass_ctx
def repos_delete_branch(ctx: AppContext, branch_id: int, yes: bool) -> None:
    """Delete a branch with its sessions and history."""
    ctx.ensure_initialized()
    assert ctx.identity is not None

    if not yes:
        click.confirm(f"Delete branch {branch_id} and everything under it?", abort=True)
    try:
        ctx.identity.delete_branch(branch_id)
    except StoreError as e:
        ctx.fail(str(e))

    if not ctx.quiet:
        click.echo(f"Deleted branch {branch_id}")
