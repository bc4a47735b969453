"""Shared fixtures: a realistic live snapshot and a matching desired document."""

from __future__ import annotations

import pytest

from vmreconcile.models import (
    BootOptions,
    DesiredConfig,
    FlagInfo,
    HardwareInfo,
    LiveSnapshot,
    OptionValue,
    ResourceAllocation,
    ToolsConfigInfo,
)


def _snapshot(**overrides) -> LiveSnapshot:
    data = dict(
        name="vm1",
        guest_id="other-64",
        hardware=HardwareInfo(num_cpu=2, num_cores_per_socket=1, memory_mb=1024),
        cpu_hot_add_enabled=False,
        cpu_hot_remove_enabled=False,
        memory_hot_add_enabled=False,
        swap_placement="inherit",
        firmware="bios",
        nested_hv_enabled=False,
        vpmc_enabled=False,
        change_version="2026-10-01T12:00:00.000000Z",
        uuid="4215e3c2-0000-1111-2222-333344445555",
        tools=ToolsConfigInfo(
            sync_time_with_host=False,
            after_power_on=True,
            after_resume=True,
            before_guest_standby=True,
            before_guest_shutdown=True,
            before_guest_reboot=False,
        ),
        flags=FlagInfo(
            disk_uuid_enabled=False,
            virtual_exec_usage="hvAuto",
            virtual_mmu_usage="automatic",
            enable_logging=True,
        ),
        cpu_allocation=ResourceAllocation(share_level="normal", share_count=2000),
        memory_allocation=ResourceAllocation(share_level="normal", share_count=20480),
        extra_config=[
            OptionValue("guestinfo.userdata", "I2Nsb3VkLWNvbmZpZw=="),
            OptionValue("vmware.tools.internalversion", "10346"),
        ],
        boot_options=BootOptions(
            boot_delay=0,
            efi_secure_boot_enabled=False,
            boot_retry_enabled=False,
            boot_retry_delay=10000,
        ),
    )
    data.update(overrides)
    return LiveSnapshot(**data)


@pytest.fixture
def make_snapshot():
    return _snapshot


@pytest.fixture
def snapshot() -> LiveSnapshot:
    return _snapshot()


@pytest.fixture
def desired() -> DesiredConfig:
    """A hand-written desired document describing the default snapshot."""
    return DesiredConfig(
        values={"name": "vm1", "num_cpus": 2, "memory": 1024},
        extra_config={"guestinfo.userdata": "I2Nsb3VkLWNvbmZpZw=="},
    )
