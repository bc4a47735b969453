"""SQLite-backed configuration store.

Holds, per instance, the current desired document, the baseline persisted at
the last successful apply, and the live snapshot observed after that apply.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from datetime import datetime, timezone

import aiosqlite

from vmreconcile.codec import (
    desired_from_dict,
    desired_to_dict,
    snapshot_from_dict,
    snapshot_to_dict,
)
from vmreconcile.fields import REGISTRY, FieldRegistry
from vmreconcile.models import DesiredConfig, LiveSnapshot


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass
class InstanceRecord:
    id: str
    desired_json: str
    baseline_json: str | None
    snapshot_json: str | None
    created_at: str
    updated_at: str
    applied_at: str | None = None


def _record(r) -> InstanceRecord:
    return InstanceRecord(
        id=r[0], desired_json=r[1], baseline_json=r[2], snapshot_json=r[3],
        created_at=r[4], updated_at=r[5], applied_at=r[6],
    )


class ConfigStore:
    """Async SQLite store for desired documents, baselines and live snapshots."""

    def __init__(self, db_path: str, registry: FieldRegistry = REGISTRY) -> None:
        self.db_path = db_path
        self.registry = registry
        self._db: aiosqlite.Connection | None = None

    async def init_db(self) -> None:
        """Open the database and create tables if needed."""
        self._db = await aiosqlite.connect(self.db_path)
        self._db.row_factory = aiosqlite.Row
        await self._db.executescript(
            """
            CREATE TABLE IF NOT EXISTS instances (
                id TEXT PRIMARY KEY,
                desired_json TEXT NOT NULL,
                baseline_json TEXT,
                snapshot_json TEXT,
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL,
                applied_at TEXT
            );
            """
        )
        await self._db.commit()

    async def close(self) -> None:
        if self._db:
            await self._db.close()

    @property
    def db(self) -> aiosqlite.Connection:
        if self._db is None:
            raise RuntimeError("Database not initialized — call init_db() first")
        return self._db

    async def _get(self, instance_id: str) -> InstanceRecord | None:
        rows = await self.db.execute_fetchall(
            "SELECT * FROM instances WHERE id = ?", (instance_id,),
        )
        if not rows:
            return None
        return _record(rows[0])

    # ── Desired documents ─────────────────────────────────────────

    async def put_desired(self, instance_id: str, desired: DesiredConfig) -> InstanceRecord:
        """Insert or replace the desired document for an instance."""
        now = _now()
        desired_json = json.dumps(desired_to_dict(desired), sort_keys=True)
        existing = await self._get(instance_id)
        if existing:
            await self.db.execute(
                "UPDATE instances SET desired_json = ?, updated_at = ? WHERE id = ?",
                (desired_json, now, instance_id),
            )
            await self.db.commit()
            existing.desired_json = desired_json
            existing.updated_at = now
            return existing

        await self.db.execute(
            """INSERT INTO instances (id, desired_json, created_at, updated_at)
               VALUES (?, ?, ?, ?)""",
            (instance_id, desired_json, now, now),
        )
        await self.db.commit()
        return InstanceRecord(
            id=instance_id,
            desired_json=desired_json,
            baseline_json=None,
            snapshot_json=None,
            created_at=now,
            updated_at=now,
        )

    async def get_desired(self, instance_id: str) -> DesiredConfig | None:
        record = await self._get(instance_id)
        if record is None:
            return None
        return desired_from_dict(json.loads(record.desired_json))

    async def get_baseline(self, instance_id: str) -> DesiredConfig | None:
        """The desired document as it stood at the last successful apply."""
        record = await self._get(instance_id)
        if record is None or record.baseline_json is None:
            return None
        return desired_from_dict(json.loads(record.baseline_json))

    # ── Live snapshots ────────────────────────────────────────────

    async def put_snapshot(self, instance_id: str, snapshot: LiveSnapshot) -> bool:
        """Record an observed snapshot. Returns False if the instance is unknown."""
        cursor = await self.db.execute(
            "UPDATE instances SET snapshot_json = ?, updated_at = ? WHERE id = ?",
            (json.dumps(snapshot_to_dict(snapshot), sort_keys=True), _now(), instance_id),
        )
        await self.db.commit()
        return cursor.rowcount > 0

    async def get_snapshot(self, instance_id: str) -> LiveSnapshot | None:
        record = await self._get(instance_id)
        if record is None or record.snapshot_json is None:
            return None
        return snapshot_from_dict(json.loads(record.snapshot_json))

    async def mark_applied(self, instance_id: str, snapshot: LiveSnapshot) -> bool:
        """Persist the current desired document as the new baseline.

        ``snapshot`` is the live state observed after the apply succeeded.
        """
        now = _now()
        cursor = await self.db.execute(
            """UPDATE instances
               SET baseline_json = desired_json, snapshot_json = ?,
                   applied_at = ?, updated_at = ?
               WHERE id = ?""",
            (json.dumps(snapshot_to_dict(snapshot), sort_keys=True), now, now, instance_id),
        )
        await self.db.commit()
        return cursor.rowcount > 0

    async def has_field_changed(self, instance_id: str, name: str) -> bool:
        """Compare a field of the current desired document against the baseline.

        With no baseline yet, every field counts as changed.
        """
        self.registry.lookup(name)
        desired = await self.get_desired(instance_id)
        if desired is None:
            return False
        baseline = await self.get_baseline(instance_id)
        if baseline is None:
            return True
        default = self.registry.default(name)
        old = baseline.get(name)
        new = desired.get(name)
        return (default if old is None else old) != (default if new is None else new)

    # ── Instances ─────────────────────────────────────────────────

    async def list_instances(self) -> list[InstanceRecord]:
        rows = await self.db.execute_fetchall("SELECT * FROM instances ORDER BY id")
        return [_record(r) for r in rows]

    async def delete_instance(self, instance_id: str) -> bool:
        cursor = await self.db.execute(
            "DELETE FROM instances WHERE id = ?", (instance_id,),
        )
        await self.db.commit()
        return cursor.rowcount > 0
