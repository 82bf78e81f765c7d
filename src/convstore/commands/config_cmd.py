"""convstore config - show or write the configuration file."""

from __future__ import annotations

import os

import click
import yaml

from convstore.cli import AppContext, pass_ctx
from convstore.config import Config, default_config_path


@click.group("config")
def config_cmd() -> None:
    """Manage convstore configuration."""


@config_cmd.command("show")
@pass_ctx
def config_show(ctx: AppContext) -> None:
    """Print the effective configuration."""
    cfg = ctx.load_config()

    if ctx.json_output:
        ctx.output(cfg.to_dict())
        return

    click.echo(yaml.dump(cfg.to_dict(), default_flow_style=False, sort_keys=False), nl=False)


@config_cmd.command("path")
@pass_ctx
def config_path(ctx: AppContext) -> None:
    """Print the config file location."""
    click.echo(ctx.config_path or default_config_path())


@config_cmd.command("init")
@click.option("--force", is_flag=True, help="Overwrite an existing config file")
@pass_ctx
def config_init(ctx: AppContext, force: bool) -> None:
    """Write a config file with the default settings."""
    path = ctx.config_path or default_config_path()
    if os.path.exists(path) and not force:
        ctx.fail(f"config already exists: {path} (use --force to overwrite)")

    cfg = Config()
    cfg.database_path = ctx.load_config().database_path
    written = cfg.save(path)

    if not ctx.quiet:
        click.echo(f"Wrote {written}")
