"""Field registry — every configuration field the reconciler manages.

Each field carries its kind, default, allowed values and restart policy.
The registry is built once at import time and never mutated afterwards, so a
single instance is shared by every reconciliation call.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable, Literal, Mapping

from vmreconcile.errors import ConsistencyError, UnknownFieldError, ValidationError

FieldKind = Literal["bool", "int", "string", "stringset", "map"]
RestartPolicy = Literal["free", "conditional_hot_swap", "always_restart"]

FREE: RestartPolicy = "free"
CONDITIONAL_HOT_SWAP: RestartPolicy = "conditional_hot_swap"
ALWAYS_RESTART: RestartPolicy = "always_restart"

HV_MODE_VALUES = ("hvAuto", "hvOn", "hvOff")
EPT_RVI_MODE_VALUES = ("automatic", "on", "off")
SWAP_PLACEMENT_VALUES = ("inherit", "vmDirectory", "hostLocal")
FIRMWARE_VALUES = ("bios", "efi")
SHARE_LEVEL_VALUES = ("low", "normal", "high", "custom")

RESOURCE_ALLOCATION_KINDS = ("cpu", "memory")

DEFAULT_GUEST_ID = "other-64"
DEFAULT_FIRMWARE = "bios"

NAME_MIN_LENGTH = 1
NAME_MAX_LENGTH = 80


@dataclass(frozen=True)
class FieldSpec:
    """Declaration of a single configuration field."""

    name: str
    kind: FieldKind
    default: Any = None
    allowed_values: tuple[str, ...] | None = None
    restart_policy: RestartPolicy = FREE
    min_value: int | None = None
    min_length: int | None = None
    max_length: int | None = None
    required: bool = False
    # Computed fields are reported by the platform and never sent back.
    computed: bool = False
    description: str = ""


def _allocation_fields(kind: str) -> list[FieldSpec]:
    return [
        FieldSpec(
            f"{kind}_share_level",
            "stringset",
            default="normal",
            allowed_values=SHARE_LEVEL_VALUES,
            description=f"The allocation level for {kind} resources.",
        ),
        FieldSpec(
            f"{kind}_share_count",
            "int",
            default=None,
            computed=True,
            min_value=0,
            description=f"The amount of shares to allocate to {kind} for a custom share level.",
        ),
        FieldSpec(
            f"{kind}_limit",
            "int",
            default=-1,
            min_value=-1,
            description="Maximum MB or MHz this VM can consume. -1 means unlimited.",
        ),
        FieldSpec(
            f"{kind}_reservation",
            "int",
            default=0,
            min_value=0,
            description="Amount of MB or MHz this VM is guaranteed.",
        ),
    ]


def _builtin_fields() -> list[FieldSpec]:
    fields = [
        # Boot options
        FieldSpec("boot_delay", "int", default=0, min_value=0),
        FieldSpec("efi_secure_boot_enabled", "bool", default=False),
        FieldSpec("boot_retry_delay", "int", default=10000, min_value=0),
        FieldSpec("boot_retry_enabled", "bool", default=False),
        # Flag info
        FieldSpec("enable_disk_uuid", "bool", default=False, restart_policy=ALWAYS_RESTART),
        FieldSpec(
            "hv_mode",
            "stringset",
            default="hvAuto",
            allowed_values=HV_MODE_VALUES,
            restart_policy=ALWAYS_RESTART,
        ),
        FieldSpec(
            "ept_rvi_mode",
            "stringset",
            default="automatic",
            allowed_values=EPT_RVI_MODE_VALUES,
            restart_policy=ALWAYS_RESTART,
        ),
        FieldSpec("enable_logging", "bool", default=True, restart_policy=ALWAYS_RESTART),
        # Tools config
        FieldSpec("sync_time_with_host", "bool", default=False),
        FieldSpec(
            "run_tools_scripts_after_power_on", "bool", default=True,
            restart_policy=ALWAYS_RESTART,
        ),
        FieldSpec(
            "run_tools_scripts_after_resume", "bool", default=True,
            restart_policy=ALWAYS_RESTART,
        ),
        FieldSpec(
            "run_tools_scripts_before_guest_reboot", "bool", default=False,
            restart_policy=ALWAYS_RESTART,
        ),
        FieldSpec(
            "run_tools_scripts_before_guest_shutdown", "bool", default=True,
            restart_policy=ALWAYS_RESTART,
        ),
        FieldSpec(
            "run_tools_scripts_before_guest_standby", "bool", default=True,
            restart_policy=ALWAYS_RESTART,
        ),
        # Core VM settings
        FieldSpec(
            "name",
            "string",
            min_length=NAME_MIN_LENGTH,
            max_length=NAME_MAX_LENGTH,
            required=True,
            description="The name of this virtual machine.",
        ),
        FieldSpec("num_cpus", "int", default=1, min_value=1, restart_policy=CONDITIONAL_HOT_SWAP),
        FieldSpec("num_cores_per_socket", "int", default=1, min_value=1, restart_policy=ALWAYS_RESTART),
        FieldSpec("cpu_hot_add_enabled", "bool", default=False, restart_policy=ALWAYS_RESTART),
        FieldSpec("cpu_hot_remove_enabled", "bool", default=False, restart_policy=ALWAYS_RESTART),
        FieldSpec("nested_hv_enabled", "bool", default=False, restart_policy=ALWAYS_RESTART),
        FieldSpec(
            "cpu_performance_counters_enabled", "bool", default=False,
            restart_policy=ALWAYS_RESTART,
        ),
        FieldSpec(
            "memory", "int", default=1024, min_value=1, restart_policy=CONDITIONAL_HOT_SWAP,
            description="The size of the virtual machine's memory, in MB.",
        ),
        FieldSpec("memory_hot_add_enabled", "bool", default=False, restart_policy=ALWAYS_RESTART),
        FieldSpec(
            "swap_placement_policy",
            "stringset",
            default="inherit",
            allowed_values=SWAP_PLACEMENT_VALUES,
            restart_policy=ALWAYS_RESTART,
        ),
        FieldSpec("annotation", "string", default=""),
        FieldSpec("guest_id", "string", default=DEFAULT_GUEST_ID, restart_policy=ALWAYS_RESTART),
        FieldSpec("alternate_guest_name", "string", default="", restart_policy=ALWAYS_RESTART),
        FieldSpec(
            "firmware",
            "stringset",
            default=DEFAULT_FIRMWARE,
            allowed_values=FIRMWARE_VALUES,
            restart_policy=ALWAYS_RESTART,
        ),
        FieldSpec(
            "extra_config", "map", default={}, restart_policy=ALWAYS_RESTART,
            description="Extra configuration key/value pairs, partially owned.",
        ),
        FieldSpec("change_version", "string", default="", computed=True),
        FieldSpec("uuid", "string", default="", computed=True),
    ]
    for kind in RESOURCE_ALLOCATION_KINDS:
        fields.extend(_allocation_fields(kind))
    return fields


class FieldRegistry:
    """Immutable catalogue of FieldSpecs, keyed by name."""

    def __init__(self, fields: Iterable[FieldSpec]) -> None:
        by_name: dict[str, FieldSpec] = {}
        for spec in fields:
            if spec.name in by_name:
                raise ValueError(f"Duplicate field name: {spec.name}")
            if spec.kind == "stringset" and not spec.allowed_values:
                raise ValueError(f"Field {spec.name} is a stringset with no allowed values")
            by_name[spec.name] = spec
        self._fields = by_name
        self._ordered = tuple(by_name.values())

    def lookup(self, name: str) -> FieldSpec:
        try:
            return self._fields[name]
        except KeyError:
            raise UnknownFieldError(name) from None

    def all_fields(self) -> tuple[FieldSpec, ...]:
        return self._ordered

    def __contains__(self, name: object) -> bool:
        return name in self._fields

    def __len__(self) -> int:
        return len(self._fields)

    def default(self, name: str) -> Any:
        value = self.lookup(name).default
        # Never hand out the shared default object for mutable kinds.
        if isinstance(value, dict):
            return dict(value)
        return value

    def defaults(self) -> dict[str, Any]:
        return {spec.name: self.default(spec.name) for spec in self._ordered}

    def with_restart_policy(self, policy: RestartPolicy) -> tuple[FieldSpec, ...]:
        return tuple(spec for spec in self._ordered if spec.restart_policy == policy)

    # ── Validation ────────────────────────────────────────────────

    def validate_value(self, name: str, value: Any) -> None:
        """Check one value against its FieldSpec. Raises ValidationError."""
        spec = self.lookup(name)
        if value is None:
            if spec.required:
                raise ValidationError(name, "is required")
            return

        if spec.kind == "bool":
            if not isinstance(value, bool):
                raise ValidationError(name, f"expected a bool, got {value!r}")
        elif spec.kind == "int":
            if isinstance(value, bool) or not isinstance(value, int):
                raise ValidationError(name, f"expected an int, got {value!r}")
            if spec.min_value is not None and value < spec.min_value:
                raise ValidationError(name, f"must be at least {spec.min_value}, got {value}")
        elif spec.kind in ("string", "stringset"):
            if not isinstance(value, str):
                raise ValidationError(name, f"expected a string, got {value!r}")
            if spec.min_length is not None and len(value) < spec.min_length:
                raise ValidationError(
                    name, f"length must be between {spec.min_length} and {spec.max_length}"
                )
            if spec.max_length is not None and len(value) > spec.max_length:
                raise ValidationError(
                    name, f"length must be between {spec.min_length} and {spec.max_length}"
                )
            if spec.allowed_values is not None and value not in spec.allowed_values:
                allowed = ", ".join(spec.allowed_values)
                raise ValidationError(name, f"expected one of [{allowed}], got {value!r}")
        elif spec.kind == "map":
            if not isinstance(value, Mapping):
                raise ValidationError(name, f"expected a map, got {value!r}")

    def validate(self, values: Mapping[str, Any]) -> None:
        """Validate a whole document, including cross-field invariants.

        Unknown keys are rejected. Fields absent from ``values`` are checked
        through their defaults, so a missing required field fails.
        """
        for key in values:
            if key not in self._fields:
                raise ValidationError(key, "is not a known configuration field")
        for spec in self._ordered:
            self.validate_value(spec.name, values.get(spec.name, spec.default))

        num_cpus = values.get("num_cpus", self.default("num_cpus"))
        cores = values.get("num_cores_per_socket", self.default("num_cores_per_socket"))
        if num_cpus % cores != 0:
            raise ConsistencyError(
                f"num_cpus ({num_cpus}) must be evenly divisible by "
                f"num_cores_per_socket ({cores})"
            )


REGISTRY = FieldRegistry(_builtin_fields())
