"""Decide whether a desired document would change a running VM at all.

Rather than keeping a second comparison code path, the detector replays the
builder twice:

    1. flatten the live snapshot into a baseline document
    2. build baseline vs baseline   -> the canonical no-op request
    3. build desired  vs baseline   -> the request we would send
    4. compare the two requests structurally

If they are equal, applying the desired document is a no-op.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, fields
from typing import Iterable

from vmreconcile.builder import build
from vmreconcile.fields import REGISTRY, FieldRegistry
from vmreconcile.models import DesiredConfig, LiveSnapshot, OptionValue, UpdateRequest
from vmreconcile.snapshot import flatten

logger = logging.getLogger(__name__)


def _extra_config_map(entries: list[OptionValue] | None) -> dict[str, str]:
    return {entry.key: entry.value for entry in entries or ()}


def changed_fields(a: UpdateRequest, b: UpdateRequest) -> list[str]:
    """Names of the top-level request attributes that differ between a and b."""
    diffs = []
    for f in fields(UpdateRequest):
        left, right = getattr(a, f.name), getattr(b, f.name)
        if f.name == "extra_config":
            if _extra_config_map(left) != _extra_config_map(right):
                diffs.append(f.name)
        elif left != right:
            diffs.append(f.name)
    return diffs


def requests_equal(a: UpdateRequest, b: UpdateRequest) -> bool:
    """Field-by-field deep comparison; extra-config entry order is ignored."""
    return not changed_fields(a, b)


@dataclass
class Detection:
    request: UpdateRequest
    changed: bool
    restart_required: bool = False
    restart_fields: tuple[str, ...] = ()
    changed_fields: tuple[str, ...] = ()


def detect(
    desired: DesiredConfig,
    live: LiveSnapshot,
    registry: FieldRegistry = REGISTRY,
    extra_keys: Iterable[str] = (),
) -> Detection:
    """Build the request for ``desired`` against ``live`` and report what it changes.

    ``extra_keys`` names extra-config keys the user managed previously; live
    values for them are surfaced so that dropping one yields a removal.
    """
    baseline = flatten(live, target=desired, registry=registry, extra_keys=extra_keys)
    # The baseline build would log restarts that are not real; keep it quiet.
    noop = build(baseline, baseline, registry=registry, quiet=True).request
    result = build(desired, baseline, registry=registry)

    diffs = changed_fields(noop, result.request)
    if diffs:
        logger.debug("%s: Update request differs in %s", live.uuid or live.name, ", ".join(diffs))
    return Detection(
        request=result.request,
        changed=bool(diffs),
        restart_required=result.restart_required,
        restart_fields=result.restart_fields,
        changed_fields=tuple(diffs),
    )


def has_changed(
    desired: DesiredConfig,
    live: LiveSnapshot,
    registry: FieldRegistry = REGISTRY,
) -> tuple[UpdateRequest, bool]:
    """Return the request for ``desired`` and whether it differs from ``live``."""
    detection = detect(desired, live, registry)
    return detection.request, detection.changed
