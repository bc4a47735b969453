"""Data types shared by the mapper, builder and change detector.

Three shapes matter here:

    LiveSnapshot   – what the remote control plane reports for a running VM
    DesiredConfig  – the flat, user-declared document (field name -> value)
    UpdateRequest  – what the remote update API accepts

The mapper turns a LiveSnapshot into a DesiredConfig, the builder turns a
DesiredConfig into an UpdateRequest. Nothing in this module talks to the
network or the disk.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Mapping

from vmreconcile.errors import ValidationError

# The remote system removes an extra-config key when it receives this value.
TOMBSTONE = ""

SHARE_LEVEL_CUSTOM = "custom"


@dataclass(frozen=True)
class DesiredConfig:
    """A read-only desired-state document.

    ``values`` holds every top-level field except the extra-config map, which
    lives in its own ``extra_config`` attribute. An ``extra_config`` map passed
    inside ``values`` is moved there. Missing fields resolve to the registry
    default at build time.

    Raises ValidationError if ``extra_config`` is given both ways.
    """

    values: Mapping[str, Any] = field(default_factory=dict)
    extra_config: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        values = dict(self.values)
        extra = self.extra_config
        inline = values.pop("extra_config", None)
        if inline is not None:
            if extra:
                raise ValidationError(
                    "extra_config", "given both inside values and as extra_config"
                )
            if not isinstance(inline, Mapping):
                raise ValidationError(
                    "extra_config", f"expected a map, got {type(inline).__name__}"
                )
            extra = inline
        object.__setattr__(self, "values", MappingProxyType(values))
        object.__setattr__(
            self,
            "extra_config",
            MappingProxyType({str(k): str(v) for k, v in extra.items()}),
        )

    def __getitem__(self, name: str) -> Any:
        if name == "extra_config":
            return dict(self.extra_config)
        return self.values[name]

    def __contains__(self, name: object) -> bool:
        return name == "extra_config" or name in self.values

    def get(self, name: str, default: Any = None) -> Any:
        if name == "extra_config":
            return dict(self.extra_config)
        return self.values.get(name, default)

    def to_dict(self) -> dict[str, Any]:
        data = dict(self.values)
        data["extra_config"] = dict(self.extra_config)
        return data


# ── Live snapshot sections ────────────────────────────────────────


@dataclass
class HardwareInfo:
    num_cpu: int
    num_cores_per_socket: int
    memory_mb: int


@dataclass
class ToolsConfigInfo:
    """Guest tools behaviour. ``None`` means the platform did not report it."""

    sync_time_with_host: bool | None = None
    after_power_on: bool | None = None
    after_resume: bool | None = None
    before_guest_standby: bool | None = None
    before_guest_shutdown: bool | None = None
    before_guest_reboot: bool | None = None


@dataclass
class FlagInfo:
    disk_uuid_enabled: bool | None = None
    virtual_exec_usage: str = ""
    virtual_mmu_usage: str = ""
    enable_logging: bool | None = None


@dataclass
class BootOptions:
    boot_delay: int | None = None
    efi_secure_boot_enabled: bool | None = None
    boot_retry_enabled: bool | None = None
    boot_retry_delay: int | None = None


@dataclass(eq=False)
class ResourceAllocation:
    """Share/limit/reservation settings for one resource kind (cpu or memory).

    ``share_count`` only has an effect when ``share_level`` is ``custom``, so
    equality ignores it for every other level.
    """

    share_level: str | None = "normal"
    share_count: int = 0
    limit: int | None = -1
    reservation: int | None = 0

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ResourceAllocation):
            return NotImplemented
        if (self.share_level, self.limit, self.reservation) != (
            other.share_level,
            other.limit,
            other.reservation,
        ):
            return False
        if self.share_level == SHARE_LEVEL_CUSTOM:
            return self.share_count == other.share_count
        return True


@dataclass(frozen=True)
class OptionValue:
    """A single extra-config entry. ``value == TOMBSTONE`` requests removal."""

    key: str
    value: str

    @property
    def is_tombstone(self) -> bool:
        return self.value == TOMBSTONE


@dataclass
class LiveSnapshot:
    """The subset of a running VM's configuration the core reads."""

    name: str | None = None
    guest_id: str | None = None
    alternate_guest_name: str = ""
    annotation: str = ""
    hardware: HardwareInfo | None = None
    cpu_hot_add_enabled: bool | None = None
    cpu_hot_remove_enabled: bool | None = None
    memory_hot_add_enabled: bool | None = None
    swap_placement: str | None = None
    firmware: str | None = None
    nested_hv_enabled: bool | None = None
    vpmc_enabled: bool | None = None
    change_version: str = ""
    uuid: str = ""
    tools: ToolsConfigInfo | None = None
    flags: FlagInfo = field(default_factory=FlagInfo)
    cpu_allocation: ResourceAllocation | None = None
    memory_allocation: ResourceAllocation | None = None
    extra_config: list[OptionValue] = field(default_factory=list)
    boot_options: BootOptions | None = None


# ── Update request ────────────────────────────────────────────────


@dataclass
class UpdateRequest:
    """Everything the remote update API accepts for a VM reconfigure.

    ``extra_config`` is ``None`` when the extra-config map did not change,
    which the remote system treats as "leave extra config alone".
    """

    name: str = ""
    guest_id: str = ""
    alternate_guest_name: str = ""
    annotation: str = ""
    tools: ToolsConfigInfo = field(default_factory=ToolsConfigInfo)
    flags: FlagInfo = field(default_factory=FlagInfo)
    num_cpus: int = 0
    num_cores_per_socket: int = 0
    memory_mb: int = 0
    memory_hot_add_enabled: bool = False
    cpu_hot_add_enabled: bool = False
    cpu_hot_remove_enabled: bool = False
    cpu_allocation: ResourceAllocation = field(default_factory=ResourceAllocation)
    memory_allocation: ResourceAllocation = field(default_factory=ResourceAllocation)
    extra_config: list[OptionValue] | None = None
    swap_placement: str = ""
    boot_options: BootOptions = field(default_factory=BootOptions)
    firmware: str = ""
    nested_hv_enabled: bool = False
    vpmc_enabled: bool = False
