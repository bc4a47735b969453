"""Tests for the configuration store (SQLite-backed)."""

import pytest

from vmreconcile.models import DesiredConfig
from vmreconcile.store import ConfigStore


@pytest.fixture
async def store(tmp_path):
    db_path = str(tmp_path / "test.db")
    s = ConfigStore(db_path)
    await s.init_db()
    yield s
    await s.close()


@pytest.mark.asyncio
async def test_put_and_get_desired(store, desired):
    record = await store.put_desired("vm-1", desired)
    assert record.id == "vm-1"
    assert record.baseline_json is None

    fetched = await store.get_desired("vm-1")
    assert fetched == desired

    assert await store.get_desired("missing") is None


@pytest.mark.asyncio
async def test_put_desired_updates_existing(store, desired):
    r1 = await store.put_desired("vm-1", desired)
    changed = DesiredConfig(values={**desired.values, "num_cpus": 4})
    r2 = await store.put_desired("vm-1", changed)

    assert r2.created_at == r1.created_at
    assert (await store.get_desired("vm-1"))["num_cpus"] == 4
    assert len(await store.list_instances()) == 1


@pytest.mark.asyncio
async def test_snapshot_requires_instance(store, snapshot, desired):
    assert await store.put_snapshot("vm-1", snapshot) is False

    await store.put_desired("vm-1", desired)
    assert await store.put_snapshot("vm-1", snapshot) is True
    assert await store.get_snapshot("vm-1") == snapshot


@pytest.mark.asyncio
async def test_mark_applied_sets_baseline(store, snapshot, desired):
    await store.put_desired("vm-1", desired)
    assert await store.get_baseline("vm-1") is None

    assert await store.mark_applied("vm-1", snapshot) is True
    assert await store.get_baseline("vm-1") == desired
    assert await store.get_snapshot("vm-1") == snapshot

    records = await store.list_instances()
    assert records[0].applied_at is not None

    assert await store.mark_applied("other", snapshot) is False


@pytest.mark.asyncio
async def test_has_field_changed(store, snapshot, desired):
    await store.put_desired("vm-1", desired)
    # Nothing applied yet: everything is pending
    assert await store.has_field_changed("vm-1", "num_cpus") is True

    await store.mark_applied("vm-1", snapshot)
    assert await store.has_field_changed("vm-1", "num_cpus") is False

    await store.put_desired("vm-1", DesiredConfig(values={**desired.values, "num_cpus": 4}))
    assert await store.has_field_changed("vm-1", "num_cpus") is True
    assert await store.has_field_changed("vm-1", "memory") is False
    assert await store.has_field_changed("vm-1", "extra_config") is True


@pytest.mark.asyncio
async def test_has_field_changed_uses_defaults(store, snapshot):
    await store.put_desired("vm-1", DesiredConfig(values={"name": "vm1"}))
    await store.mark_applied("vm-1", snapshot)
    # An explicit default is not a change
    await store.put_desired("vm-1", DesiredConfig(values={"name": "vm1", "firmware": "bios"}))
    assert await store.has_field_changed("vm-1", "firmware") is False


@pytest.mark.asyncio
async def test_has_field_changed_unknown_field(store, desired):
    await store.put_desired("vm-1", desired)
    with pytest.raises(KeyError):
        await store.has_field_changed("vm-1", "num_gpus")


@pytest.mark.asyncio
async def test_list_instances_sorted(store, desired):
    await store.put_desired("web-2", desired)
    await store.put_desired("db-1", desired)
    records = await store.list_instances()
    assert [r.id for r in records] == ["db-1", "web-2"]


@pytest.mark.asyncio
async def test_delete_instance(store, desired):
    await store.put_desired("vm-1", desired)
    assert await store.delete_instance("vm-1") is True
    assert await store.get_desired("vm-1") is None
    assert await store.delete_instance("vm-1") is False
