"""Flatten a live VM snapshot into the desired-configuration shape."""

from __future__ import annotations

from typing import Any, Iterable

from vmreconcile.errors import MappingError
from vmreconcile.fields import REGISTRY, RESOURCE_ALLOCATION_KINDS, FieldRegistry
from vmreconcile.models import (
    BootOptions,
    DesiredConfig,
    FlagInfo,
    LiveSnapshot,
    OptionValue,
    ResourceAllocation,
    ToolsConfigInfo,
)


def _or_default(values: dict[str, Any], registry: FieldRegistry, name: str, value: Any) -> None:
    values[name] = registry.default(name) if value is None else value


def _flatten_tools(values: dict, registry: FieldRegistry, tools: ToolsConfigInfo | None) -> None:
    tools = tools or ToolsConfigInfo()
    _or_default(values, registry, "sync_time_with_host", tools.sync_time_with_host)
    _or_default(values, registry, "run_tools_scripts_after_power_on", tools.after_power_on)
    _or_default(values, registry, "run_tools_scripts_after_resume", tools.after_resume)
    _or_default(
        values, registry, "run_tools_scripts_before_guest_standby", tools.before_guest_standby
    )
    _or_default(
        values, registry, "run_tools_scripts_before_guest_shutdown", tools.before_guest_shutdown
    )
    _or_default(
        values, registry, "run_tools_scripts_before_guest_reboot", tools.before_guest_reboot
    )


def _flatten_flags(values: dict, registry: FieldRegistry, flags: FlagInfo | None) -> None:
    flags = flags or FlagInfo()
    _or_default(values, registry, "enable_disk_uuid", flags.disk_uuid_enabled)
    _or_default(values, registry, "hv_mode", flags.virtual_exec_usage or None)
    _or_default(values, registry, "ept_rvi_mode", flags.virtual_mmu_usage or None)
    _or_default(values, registry, "enable_logging", flags.enable_logging)


def _flatten_boot_options(values: dict, registry: FieldRegistry, boot: BootOptions | None) -> None:
    boot = boot or BootOptions()
    _or_default(values, registry, "boot_delay", boot.boot_delay)
    _or_default(values, registry, "efi_secure_boot_enabled", boot.efi_secure_boot_enabled)
    _or_default(values, registry, "boot_retry_enabled", boot.boot_retry_enabled)
    _or_default(values, registry, "boot_retry_delay", boot.boot_retry_delay)


def flatten_resource_allocation(
    values: dict[str, Any],
    registry: FieldRegistry,
    alloc: ResourceAllocation,
    kind: str,
) -> None:
    """Spread one ResourceAllocation over the four ``{kind}_*`` keys."""
    _or_default(values, registry, f"{kind}_limit", alloc.limit)
    _or_default(values, registry, f"{kind}_reservation", alloc.reservation)
    _or_default(values, registry, f"{kind}_share_level", alloc.share_level)
    values[f"{kind}_share_count"] = alloc.share_count


def flatten_extra_config(
    opts: list[OptionValue],
    known_keys: Iterable[str],
) -> dict[str, str]:
    """Keep only the live entries whose keys the target document already declares.

    Keys injected by the platform or other tooling are never surfaced, so
    they cannot show up as drift.
    """
    known = set(known_keys)
    return {opt.key: str(opt.value) for opt in opts if opt.key in known}


def flatten(
    snapshot: LiveSnapshot,
    target: DesiredConfig | None = None,
    registry: FieldRegistry = REGISTRY,
    extra_keys: Iterable[str] = (),
) -> DesiredConfig:
    """Translate a live snapshot into a desired-shaped document.

    ``target`` is the document being flattened into. Only its extra-config
    keys, plus any in ``extra_keys``, are copied over from the snapshot; with
    neither the extra-config map comes back empty. Pass the keys of the last
    applied document as ``extra_keys`` so keys the user has since dropped
    still show up, and get removed.

    Raises MappingError if the snapshot is missing a required section.
    """
    if not snapshot.name:
        raise MappingError("live snapshot is missing the VM name")
    if snapshot.hardware is None:
        raise MappingError(f"{snapshot.name}: live snapshot is missing hardware info")

    values: dict[str, Any] = {}
    values["name"] = snapshot.name
    _or_default(values, registry, "guest_id", snapshot.guest_id or None)
    values["alternate_guest_name"] = snapshot.alternate_guest_name
    values["annotation"] = snapshot.annotation
    values["num_cpus"] = snapshot.hardware.num_cpu
    values["num_cores_per_socket"] = snapshot.hardware.num_cores_per_socket
    values["memory"] = snapshot.hardware.memory_mb
    _or_default(values, registry, "memory_hot_add_enabled", snapshot.memory_hot_add_enabled)
    _or_default(values, registry, "cpu_hot_add_enabled", snapshot.cpu_hot_add_enabled)
    _or_default(values, registry, "cpu_hot_remove_enabled", snapshot.cpu_hot_remove_enabled)
    _or_default(values, registry, "swap_placement_policy", snapshot.swap_placement or None)
    _or_default(values, registry, "firmware", snapshot.firmware or None)
    _or_default(values, registry, "nested_hv_enabled", snapshot.nested_hv_enabled)
    _or_default(values, registry, "cpu_performance_counters_enabled", snapshot.vpmc_enabled)
    values["change_version"] = snapshot.change_version
    values["uuid"] = snapshot.uuid

    _flatten_tools(values, registry, snapshot.tools)
    _flatten_flags(values, registry, snapshot.flags)

    for kind in RESOURCE_ALLOCATION_KINDS:
        alloc = getattr(snapshot, f"{kind}_allocation")
        if alloc is None:
            raise MappingError(f"{snapshot.name}: live snapshot is missing {kind} allocation")
        flatten_resource_allocation(values, registry, alloc, kind)

    _flatten_boot_options(values, registry, snapshot.boot_options)

    known_keys = set(extra_keys)
    if target is not None:
        known_keys.update(target.extra_config)
    extra_config = flatten_extra_config(snapshot.extra_config, known_keys)

    return DesiredConfig(values=values, extra_config=extra_config)
