"""vmreconcile plan / flatten — work directly on files."""

from __future__ import annotations

import json
import os
import sys
import tomllib

import click
import tomli_w

from vmreconcile.codec import (
    desired_from_dict,
    desired_to_dict,
    request_to_dict,
    snapshot_from_json,
)
from vmreconcile.detector import detect
from vmreconcile.errors import ReconcileError
from vmreconcile.models import DesiredConfig, LiveSnapshot
from vmreconcile.snapshot import flatten as flatten_snapshot

# Exit status for `plan --exit-code` when an update is pending.
EXIT_CHANGED = 2


def load_desired(path: str) -> DesiredConfig:
    """Read a desired document from a .toml or .json file."""
    try:
        if os.path.splitext(path)[1].lower() == ".json":
            with open(path) as f:
                data = json.load(f)
        else:
            with open(path, "rb") as f:
                data = tomllib.load(f)
    except (OSError, json.JSONDecodeError, tomllib.TOMLDecodeError) as e:
        raise click.ClickException(f"Cannot read {path}: {e}")
    if not isinstance(data, dict):
        raise click.ClickException(f"{path}: expected a table of fields")
    return desired_from_dict(data)


def load_snapshot(path: str) -> LiveSnapshot:
    try:
        with open(path) as f:
            return snapshot_from_json(f.read())
    except OSError as e:
        raise click.ClickException(f"Cannot read {path}: {e}")
    except ReconcileError as e:
        raise click.ClickException(str(e))


def print_plan(changed: bool, restart_required: bool, restart_fields, changed_fields, request) -> None:
    if not changed:
        click.echo("No changes. Live configuration matches the desired configuration.")
        return
    click.echo(f"Changed: {', '.join(changed_fields)}")
    if restart_required:
        click.echo(f"Restart required (forced by: {', '.join(restart_fields)})")
    else:
        click.echo("Restart required: no")
    click.echo(json.dumps(request_to_dict(request), indent=2, sort_keys=True))


@click.command()
@click.argument("desired_path", type=click.Path(exists=True, dir_okay=False))
@click.argument("snapshot_path", type=click.Path(exists=True, dir_okay=False))
@click.option("--json", "as_json", is_flag=True, help="Print the plan as JSON")
@click.option(
    "--exit-code",
    is_flag=True,
    help=f"Exit with status {EXIT_CHANGED} when an update is pending",
)
def plan(desired_path: str, snapshot_path: str, as_json: bool, exit_code: bool) -> None:
    """Show the update needed to move SNAPSHOT to DESIRED."""
    desired = load_desired(desired_path)
    live = load_snapshot(snapshot_path)

    try:
        detection = detect(desired, live)
    except ReconcileError as e:
        raise click.ClickException(str(e))

    restart_required = detection.changed and detection.restart_required
    if as_json:
        click.echo(
            json.dumps(
                {
                    "changed": detection.changed,
                    "restart_required": restart_required,
                    "restart_fields": list(detection.restart_fields),
                    "changed_fields": list(detection.changed_fields),
                    "request": request_to_dict(detection.request),
                },
                indent=2,
                sort_keys=True,
            )
        )
    else:
        print_plan(
            detection.changed,
            restart_required,
            detection.restart_fields,
            detection.changed_fields,
            detection.request,
        )

    if exit_code and detection.changed:
        sys.exit(EXIT_CHANGED)


@click.command()
@click.argument("snapshot_path", type=click.Path(exists=True, dir_okay=False))
@click.option(
    "--desired",
    "desired_path",
    type=click.Path(exists=True, dir_okay=False),
    default=None,
    help="Desired document whose extra_config keys should be carried over",
)
@click.option("-o", "--output", type=click.Path(dir_okay=False), default=None, help="Write TOML here")
def flatten(snapshot_path: str, desired_path: str | None, output: str | None) -> None:
    """Print SNAPSHOT as a desired-configuration TOML document."""
    live = load_snapshot(snapshot_path)
    target = load_desired(desired_path) if desired_path else None
    try:
        doc = flatten_snapshot(live, target=target)
    except ReconcileError as e:
        raise click.ClickException(str(e))

    text = tomli_w.dumps(desired_to_dict(doc, drop_none=True))
    if output:
        with open(output, "w") as f:
            f.write(text)
        click.echo(f"Wrote {output}")
    else:
        click.echo(text, nl=False)
