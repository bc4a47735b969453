"""vmreconcile store — manage instances in the configuration store."""

from __future__ import annotations

import asyncio
import json
import os
from typing import Any, Awaitable, Callable

import click

from vmreconcile.cli.commands.plan import load_desired, load_snapshot, print_plan
from vmreconcile.cli.config import get_reconciler_config
from vmreconcile.errors import ReconcileError
from vmreconcile.reconciler import Reconciler
from vmreconcile.store import ConfigStore


def _run(fn: Callable[[Reconciler], Awaitable[Any]]) -> Any:
    """Open the store, run ``fn`` against it, and close it again."""
    settings = get_reconciler_config()

    db_dir = os.path.dirname(settings.db_path)
    if db_dir:
        os.makedirs(db_dir, exist_ok=True)

    async def main() -> Any:
        db = ConfigStore(settings.db_path)
        await db.init_db()
        try:
            return await fn(Reconciler(db, settings))
        finally:
            await db.close()

    try:
        return asyncio.run(main())
    except ReconcileError as e:
        raise click.ClickException(str(e))


@click.group()
def store() -> None:
    """Record desired configs and live snapshots, and plan against them."""
    pass


@store.command()
@click.argument("instance_id")
@click.argument("desired_path", type=click.Path(exists=True, dir_okay=False))
def put(instance_id: str, desired_path: str) -> None:
    """Store the desired configuration for INSTANCE_ID."""
    desired = load_desired(desired_path)
    _run(lambda r: r.store.put_desired(instance_id, desired))
    click.echo(f"Stored desired configuration for {instance_id}")


@store.command()
@click.argument("instance_id")
@click.argument("snapshot_path", type=click.Path(exists=True, dir_okay=False))
def observe(instance_id: str, snapshot_path: str) -> None:
    """Record a live snapshot observed for INSTANCE_ID."""
    live = load_snapshot(snapshot_path)
    if not _run(lambda r: r.store.put_snapshot(instance_id, live)):
        raise click.ClickException(f"Unknown instance: {instance_id}")
    click.echo(f"Recorded snapshot for {instance_id}")


@store.command("plan")
@click.argument("instance_id")
def plan_instance(instance_id: str) -> None:
    """Plan the update for INSTANCE_ID from stored state."""
    result = _run(lambda r: r.plan(instance_id))
    print_plan(
        result.changed,
        result.restart_required,
        result.restart_fields,
        result.changed_fields,
        result.request,
    )


@store.command()
@click.argument("instance_id")
@click.argument("snapshot_path", type=click.Path(exists=True, dir_okay=False))
def applied(instance_id: str, snapshot_path: str) -> None:
    """Mark the desired config of INSTANCE_ID as applied, with its new snapshot."""
    live = load_snapshot(snapshot_path)
    _run(lambda r: r.record_applied(instance_id, live))
    click.echo(f"Recorded apply for {instance_id}")


@store.command("list")
def list_instances() -> None:
    """List stored instances."""
    records = _run(lambda r: r.store.list_instances())
    if not records:
        click.echo("No instances stored.")
        return

    click.echo(f"{'ID':<30} {'UPDATED':<34} {'APPLIED':<34}")
    click.echo("-" * 98)
    for rec in records:
        click.echo(f"{rec.id:<30} {rec.updated_at:<34} {rec.applied_at or '-':<34}")


@store.command()
@click.argument("instance_id")
def show(instance_id: str) -> None:
    """Print the stored desired configuration of INSTANCE_ID."""
    desired = _run(lambda r: r.store.get_desired(instance_id))
    if desired is None:
        raise click.ClickException(f"Unknown instance: {instance_id}")
    click.echo(json.dumps(desired.to_dict(), indent=2, sort_keys=True))


@store.command()
@click.argument("instance_id")
def rm(instance_id: str) -> None:
    """Delete INSTANCE_ID from the store."""
    if not _run(lambda r: r.store.delete_instance(instance_id)):
        raise click.ClickException(f"Unknown instance: {instance_id}")
    click.echo(f"Deleted instance: {instance_id}")
