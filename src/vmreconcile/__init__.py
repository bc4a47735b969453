"""vmreconcile — reconcile declared VM configuration with live state."""

from vmreconcile.builder import BuildResult, build
from vmreconcile.detector import detect, has_changed
from vmreconcile.differ import diff
from vmreconcile.errors import ConsistencyError, MappingError, ValidationError
from vmreconcile.fields import REGISTRY, FieldRegistry, FieldSpec
from vmreconcile.models import (
    DesiredConfig,
    LiveSnapshot,
    OptionValue,
    ResourceAllocation,
    UpdateRequest,
)
from vmreconcile.snapshot import flatten

__all__ = [
    "REGISTRY",
    "BuildResult",
    "ConsistencyError",
    "DesiredConfig",
    "FieldRegistry",
    "FieldSpec",
    "LiveSnapshot",
    "MappingError",
    "OptionValue",
    "ResourceAllocation",
    "UpdateRequest",
    "ValidationError",
    "build",
    "detect",
    "diff",
    "flatten",
    "has_changed",
]
