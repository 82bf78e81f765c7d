"""Click CLI root and global flags for convstore."""

from __future__ import annotations

import json
import sys
from typing import Any, Callable, NoReturn

import click

from convstore import __version__
from convstore.config import Config
from convstore.errors import StoreError
from convstore.logging_config import setup_logging
from convstore.id_gen import is_session_id
from convstore.repo_identity import RepoIdentity, detect_identity, normalize_identity
from convstore.storage.db import Database
from convstore.storage.history_store import HistoryStore
from convstore.storage.identity import IdentityResolver
from convstore.storage.session_store import SessionStore


class AppContext:
    """Shared context for all commands."""

    def __init__(self) -> None:
        self.config_path: str | None = None
        self.db_path: str | None = None
        self.config: Config | None = None
        self.db: Database | None = None
        self.sessions: SessionStore | None = None
        self.history: HistoryStore | None = None
        self.identity: IdentityResolver | None = None
        self.json_output: bool = False
        self.verbose: bool = False
        self.quiet: bool = False

    def load_config(self) -> Config:
        if self.config is None:
            self.config = Config.load(self.config_path)
            if self.db_path:
                self.config.database_path = self.db_path
        return self.config

    def ensure_initialized(self) -> None:
        """Open the database and build the stores on first use."""
        if self.db is not None:
            return
        cfg = self.load_config()
        try:
            self.db = Database(cfg.database_path)
        except StoreError as e:
            self.fail(str(e))
        self.identity = IdentityResolver(self.db)
        self.sessions = SessionStore(self.db, cfg.session)
        self.history = HistoryStore(self.db, cfg.history)
        click.get_current_context().find_root().call_on_close(self.close)

    def close(self) -> None:
        if self.db is not None:
            self.db.close()
            self.db = None

    def resolve_scope(self, repo: str | None, branch: str | None) -> RepoIdentity:
        """Scope from --repo/--branch, falling back to the current git checkout.

        Explicit names are normalized the way detected ones are, so
        ``github.com/Acme/Widget -b feature/SQLite`` addresses the same rows
        as a session saved from that checkout.
        """
        detected = detect_identity() if not (repo and branch) else None
        if repo:
            parts = repo.split("/")
            if len(parts) != 3 or not all(parts):
                self.fail(f"invalid --repo {repo!r}: expected HOST/ORG/PROJECT")
            host, org, project = parts
        else:
            host, org, project = detected.host, detected.org, detected.project
        if not branch:
            return normalize_identity(host, org, project, detected.branch)
        return normalize_identity(host, org, project, branch)

    def resolve_session_id(self, partial: str) -> str:
        """Resolve a full or prefix session ID or exit with error."""
        assert self.sessions is not None
        if is_session_id(partial):
            return partial
        full_id = self.sessions.resolve_id(partial)
        if full_id is None:
            self.fail(f"session not found or ambiguous: {partial}")
        return full_id

    def fail(self, message: str) -> NoReturn:
        click.echo(f"Error: {message}", err=True)
        sys.exit(1)

    def output(self, data: dict | list) -> None:
        """Output data as JSON."""
        click.echo(json.dumps(data, indent=2, default=str))


pass_ctx = click.make_pass_decorator(AppContext, ensure=True)


def scope_options(fn: Callable[..., Any]) -> Callable[..., Any]:
    """Add --repo and --branch options selecting a repository branch."""
    fn = click.option("--branch", "-b", default=None,
                      help="Branch name (default: current git branch)")(fn)
    fn = click.option("--repo", "-r", default=None, metavar="HOST/ORG/PROJECT",
                      help="Repository (default: origin of the current git checkout)")(fn)
    return fn


@click.group(invoke_without_command=True)
@click.option("--db", envvar="CONVSTORE_DB", help="Path to database file")
@click.option("--config", "config_path", envvar="CONVSTORE_CONFIG",
              type=click.Path(dir_okay=False), help="Path to config.yaml")
@click.option("--json", "json_output", is_flag=True, help="Output as JSON")
@click.option("--verbose", "-v", is_flag=True, help="Verbose output")
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-essential output")
@click.version_option(__version__, prog_name="convstore")
@click.pass_context
def cli(ctx: click.Context, db: str | None, config_path: str | None,
        json_output: bool, verbose: bool, quiet: bool) -> None:
    """convstore - conversation session and history store"""
    actx = ctx.ensure_object(AppContext)
    actx.verbose = verbose
    actx.quiet = quiet
    actx.json_output = json_output
    actx.config_path = config_path
    actx.db_path = db

    cfg = actx.load_config()
    setup_logging(
        "debug" if verbose else cfg.log_level,
        log_file=cfg.log_file or None,
        json_format=cfg.log_format == "json",
    )

    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())


# --- Register all command groups ---

from convstore.commands.sessions import sessions
from convstore.commands.search import search
from convstore.commands.history import history
from convstore.commands.repos import repos
from convstore.commands.cleanup import cleanup
from convstore.commands.stats import stats
from convstore.commands.compact import compact
from convstore.commands.config_cmd import config_cmd

cli.add_command(sessions, "sessions")
cli.add_command(search, "search")
cli.add_command(history, "history")
cli.add_command(repos, "repos")
cli.add_command(cleanup, "cleanup")
cli.add_command(stats, "stats")
cli.add_command(compact, "compact")
cli.add_command(config_cmd, "config")


def main() -> None:
    cli(auto_envvar_prefix="CONVSTORE")
