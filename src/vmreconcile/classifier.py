"""Restart classification for individual field changes.

Each function returns a Classification: the value to send, and whether
sending it forces the VM to restart. Callers OR the restart bits together.

CPU and memory are asymmetric on purpose:

    CPU grow    – restart unless hot-add was enabled *before* this change
    CPU shrink  – restart unless hot-remove was enabled *before* this change
    Mem grow    – restart unless hot-add was enabled *before* this change
    Mem shrink  – always restart

Toggling the hot-add/remove flags is itself a restart-requiring change, so
only their pre-change value decides whether a count change can go live.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable, Protocol

from vmreconcile.fields import ALWAYS_RESTART, CONDITIONAL_HOT_SWAP, FieldSpec


class ChangeSource(Protocol):
    """Read access to the pre-change and post-change value of each field."""

    def old(self, name: str) -> Any: ...

    def new(self, name: str) -> Any: ...

    def has_field_changed(self, name: str) -> bool: ...


@dataclass(frozen=True)
class Classification:
    value: Any
    restart: bool = False


def classify_free(new: Any) -> Classification:
    return Classification(new, False)


def classify_restart_on_change(new: Any, changed: bool) -> Classification:
    return Classification(new, changed)


def classify_cpu_count(
    old: int,
    new: int,
    prev_hot_add: bool,
    prev_hot_remove: bool,
) -> Classification:
    if new > old:
        return Classification(new, not prev_hot_add)
    if new < old:
        return Classification(new, not prev_hot_remove)
    return Classification(new, False)


def classify_memory_size(old: int, new: int, prev_hot_add: bool) -> Classification:
    if new > old:
        return Classification(new, not prev_hot_add)
    if new < old:
        return Classification(new, True)
    return Classification(new, False)


def classify(spec: FieldSpec, changes: ChangeSource) -> Classification:
    """Classify one field according to its registered restart policy."""
    name = spec.name
    if spec.restart_policy == ALWAYS_RESTART:
        return classify_restart_on_change(changes.new(name), changes.has_field_changed(name))
    if spec.restart_policy == CONDITIONAL_HOT_SWAP:
        if name == "num_cpus":
            return classify_cpu_count(
                changes.old(name),
                changes.new(name),
                bool(changes.old("cpu_hot_add_enabled")),
                bool(changes.old("cpu_hot_remove_enabled")),
            )
        if name == "memory":
            return classify_memory_size(
                changes.old(name),
                changes.new(name),
                bool(changes.old("memory_hot_add_enabled")),
            )
        # Unknown hot-swappable field: assume any change needs a restart.
        return classify_restart_on_change(changes.new(name), changes.has_field_changed(name))
    return classify_free(changes.new(name))


def aggregate(classifications: Iterable[Classification]) -> bool:
    """Logical OR over restart bits. Once true, stays true."""
    restart = False
    for c in classifications:
        restart = restart or c.restart
    return restart
