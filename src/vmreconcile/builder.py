"""Build an UpdateRequest from a desired document.

The builder compares the desired document with the previous one (the values
in effect before this reconciliation began) to decide, field by field,
whether applying the request forces a VM restart.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Iterator

from vmreconcile.classifier import Classification, aggregate, classify
from vmreconcile.differ import diff
from vmreconcile.fields import REGISTRY, FieldRegistry
from vmreconcile.models import (
    BootOptions,
    DesiredConfig,
    FlagInfo,
    OptionValue,
    ResourceAllocation,
    ToolsConfigInfo,
    UpdateRequest,
)

logger = logging.getLogger(__name__)


class ChangeTracker:
    """Resolves old/new values for each field and answers has_field_changed.

    Values missing from either document fall back to the registry default,
    so a field the user never set compares equal to its default. Computed
    fields the desired document leaves unset keep their previous value.
    """

    def __init__(
        self,
        desired: DesiredConfig,
        previous: DesiredConfig,
        registry: FieldRegistry = REGISTRY,
    ) -> None:
        self.desired = desired
        self.previous = previous
        self.registry = registry

    def _resolve(self, doc: DesiredConfig, name: str) -> Any:
        if name == "extra_config":
            return dict(doc.extra_config)
        value = doc.get(name)
        return self.registry.default(name) if value is None else value

    def old(self, name: str) -> Any:
        return self._resolve(self.previous, name)

    def new(self, name: str) -> Any:
        if self.desired.get(name) is None and self.registry.lookup(name).computed:
            return self.old(name)
        return self._resolve(self.desired, name)

    def has_field_changed(self, name: str) -> bool:
        return self.old(name) != self.new(name)


@dataclass
class BuildResult:
    request: UpdateRequest
    restart_required: bool = False
    restart_fields: tuple[str, ...] = field(default_factory=tuple)

    def __iter__(self) -> Iterator[Any]:
        yield self.request
        yield self.restart_required


class _RequestBuilder:
    def __init__(self, changes: ChangeTracker, vm_id: str, quiet: bool) -> None:
        self.changes = changes
        self.registry = changes.registry
        self.vm_id = vm_id
        self.quiet = quiet
        self.classifications: list[Classification] = []
        self.restart_fields: list[str] = []

    def _record(self, name: str, result: Classification) -> Any:
        self.classifications.append(result)
        if result.restart:
            self.restart_fields.append(name)
            if not self.quiet:
                logger.debug("%s: Resource argument %r requires a VM restart", self.vm_id, name)
        return result.value

    def get(self, name: str) -> Any:
        return self._record(name, classify(self.registry.lookup(name), self.changes))

    def tools(self) -> ToolsConfigInfo:
        return ToolsConfigInfo(
            sync_time_with_host=self.get("sync_time_with_host"),
            after_power_on=self.get("run_tools_scripts_after_power_on"),
            after_resume=self.get("run_tools_scripts_after_resume"),
            before_guest_standby=self.get("run_tools_scripts_before_guest_standby"),
            before_guest_shutdown=self.get("run_tools_scripts_before_guest_shutdown"),
            before_guest_reboot=self.get("run_tools_scripts_before_guest_reboot"),
        )

    def flags(self) -> FlagInfo:
        return FlagInfo(
            disk_uuid_enabled=self.get("enable_disk_uuid"),
            virtual_exec_usage=self.get("hv_mode"),
            virtual_mmu_usage=self.get("ept_rvi_mode"),
            enable_logging=self.get("enable_logging"),
        )

    def boot_options(self) -> BootOptions:
        return BootOptions(
            boot_delay=self.get("boot_delay"),
            efi_secure_boot_enabled=self.get("efi_secure_boot_enabled"),
            boot_retry_enabled=self.get("boot_retry_enabled"),
            boot_retry_delay=self.get("boot_retry_delay"),
        )

    def resource_allocation(self, kind: str) -> ResourceAllocation:
        share_count = self.get(f"{kind}_share_count")
        return ResourceAllocation(
            share_level=self.get(f"{kind}_share_level"),
            share_count=share_count if share_count is not None else 0,
            limit=self.get(f"{kind}_limit"),
            reservation=self.get(f"{kind}_reservation"),
        )

    def extra_config(self) -> list[OptionValue] | None:
        if not self.changes.has_field_changed("extra_config"):
            return None
        delta = diff(self.changes.old("extra_config"), self.changes.new("extra_config"))
        # No way to know which keys a guest reads only at boot, so any
        # delta is treated as restart-requiring.
        return self._record("extra_config", Classification(delta or None, bool(delta)))

    def build(self) -> UpdateRequest:
        logger.debug("%s: Building update request", self.vm_id)
        return UpdateRequest(
            name=self.get("name"),
            guest_id=self.get("guest_id"),
            alternate_guest_name=self.get("alternate_guest_name"),
            annotation=self.get("annotation"),
            tools=self.tools(),
            flags=self.flags(),
            num_cpus=self.get("num_cpus"),
            num_cores_per_socket=self.get("num_cores_per_socket"),
            memory_mb=self.get("memory"),
            memory_hot_add_enabled=self.get("memory_hot_add_enabled"),
            cpu_hot_add_enabled=self.get("cpu_hot_add_enabled"),
            cpu_hot_remove_enabled=self.get("cpu_hot_remove_enabled"),
            cpu_allocation=self.resource_allocation("cpu"),
            memory_allocation=self.resource_allocation("memory"),
            extra_config=self.extra_config(),
            swap_placement=self.get("swap_placement_policy"),
            boot_options=self.boot_options(),
            firmware=self.get("firmware"),
            nested_hv_enabled=self.get("nested_hv_enabled"),
            vpmc_enabled=self.get("cpu_performance_counters_enabled"),
        )


def build(
    desired: DesiredConfig,
    previous: DesiredConfig | None = None,
    *,
    registry: FieldRegistry = REGISTRY,
    quiet: bool = False,
) -> BuildResult:
    """Translate ``desired`` into an UpdateRequest and decide if it needs a restart.

    ``previous`` holds the values in effect before this reconciliation began;
    when omitted, nothing is considered changed. ``quiet`` suppresses the
    per-field restart log lines.

    Raises ValidationError or ConsistencyError if ``desired`` is invalid.
    """
    registry.validate(desired.to_dict())
    if previous is None:
        previous = desired

    changes = ChangeTracker(desired, previous, registry)
    vm_id = str(desired.get("uuid") or desired.get("name"))
    builder = _RequestBuilder(changes, vm_id, quiet)
    request = builder.build()
    return BuildResult(
        request=request,
        restart_required=aggregate(builder.classifications),
        restart_fields=tuple(builder.restart_fields),
    )
