"""vmreconcile fields — list the managed configuration fields."""

from __future__ import annotations

import click

from vmreconcile.fields import REGISTRY


@click.command()
@click.option(
    "--policy",
    type=click.Choice(["free", "conditional_hot_swap", "always_restart"]),
    default=None,
    help="Only show fields with this restart policy",
)
def fields(policy: str | None) -> None:
    """List configuration fields with their defaults and restart policy."""
    specs = REGISTRY.with_restart_policy(policy) if policy else REGISTRY.all_fields()

    click.echo(f"{'NAME':<42} {'KIND':<10} {'DEFAULT':<12} {'RESTART':<22}")
    click.echo("-" * 88)
    for spec in sorted(specs, key=lambda s: s.name):
        default = "" if spec.default is None else str(spec.default)
        click.echo(f"{spec.name:<42} {spec.kind:<10} {default:<12} {spec.restart_policy:<22}")
