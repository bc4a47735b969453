"""vmreconcile config — show and change CLI settings."""

from __future__ import annotations

import click

from vmreconcile.cli.config import CONFIG_PATH, KNOWN_KEYS, load_config, save_config
from vmreconcile.config import as_bool


@click.group()
def config() -> None:
    """Show or change settings in ~/.vmreconcile/config.toml."""
    pass


@config.command("set")
@click.argument("key", type=click.Choice(KNOWN_KEYS))
@click.argument("value")
def set_value(key: str, value: str) -> None:
    """Set a config value."""
    cfg = load_config()
    cfg[key] = as_bool(value) if key == "log_restart_fields" else value
    save_config(cfg)
    click.echo(f"Set {key} in {CONFIG_PATH}")


@config.command()
def show() -> None:
    """Print the current config values."""
    cfg = load_config()
    if not cfg:
        click.echo("No settings saved.")
        return
    for key in sorted(cfg):
        click.echo(f"{key} = {cfg[key]}")
