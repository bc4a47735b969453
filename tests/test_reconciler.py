"""Tests for reconciliation cycles over the configuration store."""

import logging

import pytest

from vmreconcile.config import ReconcilerConfig
from vmreconcile.errors import InstanceNotFoundError
from vmreconcile.models import TOMBSTONE, DesiredConfig, HardwareInfo, OptionValue
from vmreconcile.reconciler import Reconciler
from vmreconcile.store import ConfigStore


@pytest.fixture
async def reconciler(tmp_path):
    store = ConfigStore(str(tmp_path / "state.db"))
    await store.init_db()
    yield Reconciler(store, ReconcilerConfig(log_restart_fields=True))
    await store.close()


@pytest.mark.asyncio
async def test_plan_up_to_date(reconciler, desired, snapshot):
    await reconciler.store.put_desired("vm-1", desired)
    await reconciler.store.put_snapshot("vm-1", snapshot)

    plan = await reconciler.plan("vm-1")
    assert plan.changed is False
    assert plan.restart_required is False
    assert plan.restart_fields == ()


@pytest.mark.asyncio
async def test_plan_with_restart(reconciler, desired, snapshot, caplog):
    await reconciler.store.put_desired("vm-1", DesiredConfig(
        values={**desired.values, "memory": 512},
        extra_config=desired.extra_config,
    ))
    await reconciler.store.put_snapshot("vm-1", snapshot)

    with caplog.at_level(logging.INFO, logger="vmreconcile.reconciler"):
        plan = await reconciler.plan("vm-1")

    assert plan.changed is True
    assert plan.request.memory_mb == 512
    assert plan.restart_required is True
    assert plan.restart_fields == ("memory",)
    assert any("restart forced by memory" in r.getMessage() for r in caplog.records)


@pytest.mark.asyncio
async def test_plan_unknown_instance(reconciler):
    with pytest.raises(InstanceNotFoundError):
        await reconciler.plan("nope")


@pytest.mark.asyncio
async def test_plan_without_snapshot(reconciler, desired):
    await reconciler.store.put_desired("vm-1", desired)
    with pytest.raises(InstanceNotFoundError, match="snapshot"):
        await reconciler.plan("vm-1")


@pytest.mark.asyncio
async def test_apply_cycle_converges(reconciler, desired, make_snapshot):
    store = reconciler.store
    bigger = DesiredConfig(values={**desired.values, "num_cpus": 4}, extra_config=desired.extra_config)
    await store.put_desired("vm-1", bigger)
    await store.put_snapshot("vm-1", make_snapshot())

    assert (await reconciler.plan("vm-1")).changed is True

    # The transport applied the request; the VM now reports 4 CPUs.
    after = make_snapshot(hardware=HardwareInfo(num_cpu=4, num_cores_per_socket=1, memory_mb=1024))
    await reconciler.record_applied("vm-1", after)

    assert (await reconciler.plan("vm-1")).changed is False


@pytest.mark.asyncio
async def test_dropped_extra_config_key_is_removed(reconciler, desired, snapshot):
    store = reconciler.store
    await store.put_desired("vm-1", desired)
    await reconciler.record_applied("vm-1", snapshot)

    # The user drops guestinfo.userdata from the document
    await store.put_desired("vm-1", DesiredConfig(values=desired.values))
    plan = await reconciler.plan("vm-1")

    assert plan.changed is True
    assert plan.request.extra_config == [OptionValue("guestinfo.userdata", TOMBSTONE)]
    assert plan.restart_fields == ("extra_config",)


@pytest.mark.asyncio
async def test_record_applied_unknown_instance(reconciler, snapshot):
    with pytest.raises(InstanceNotFoundError):
        await reconciler.record_applied("nope", snapshot)
