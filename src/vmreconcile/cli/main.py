"""vmreconcile CLI — plan VM configuration updates from the command line."""

from __future__ import annotations

import click

from vmreconcile.cli.commands.fields import fields
from vmreconcile.cli.commands.plan import flatten, plan
from vmreconcile.cli.commands.settings import config
from vmreconcile.cli.commands.store import store
from vmreconcile.cli.config import get_reconciler_config


@click.group()
@click.option("--log-level", default=None, help="Override the configured log level")
def cli(log_level: str | None) -> None:
    """vmreconcile — reconcile declared VM configuration with live state."""
    settings = get_reconciler_config()
    if log_level:
        settings.log_level = log_level.upper()
    settings.configure_logging()


# Register subcommands
cli.add_command(plan)
cli.add_command(flatten)
cli.add_command(fields)
cli.add_command(config)
cli.add_command(store)
