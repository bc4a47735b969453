"""Error taxonomy for the reconciliation core.

Every error is scoped to a single reconciliation call and is surfaced to the
caller as-is. Nothing in the core retries or recovers from these.
"""

from __future__ import annotations


class ReconcileError(Exception):
    """Base class for all reconciliation failures."""


class ValidationError(ReconcileError):
    """A field value violates its declared constraint."""

    def __init__(self, field: str, message: str) -> None:
        self.field = field
        super().__init__(f"{field}: {message}")


class MappingError(ReconcileError):
    """A required live-state field is missing or malformed during flatten."""


class ConsistencyError(ReconcileError):
    """A cross-field invariant does not hold (e.g. CPU/cores-per-socket)."""


class UnknownFieldError(KeyError):
    """Lookup of a field name the registry does not declare."""


class InstanceNotFoundError(ReconcileError):
    """The configuration store has no record for the requested instance."""
