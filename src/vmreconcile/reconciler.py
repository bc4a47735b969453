"""One reconciliation cycle over the configuration store."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from vmreconcile.config import ReconcilerConfig
from vmreconcile.detector import detect
from vmreconcile.errors import InstanceNotFoundError
from vmreconcile.models import LiveSnapshot, UpdateRequest
from vmreconcile.store import ConfigStore

logger = logging.getLogger(__name__)


@dataclass
class Plan:
    """Outcome of a reconciliation pass, ready to hand to the transport."""

    instance_id: str
    request: UpdateRequest
    changed: bool
    restart_required: bool
    restart_fields: tuple[str, ...] = ()
    changed_fields: tuple[str, ...] = ()


class Reconciler:
    def __init__(self, store: ConfigStore, config: ReconcilerConfig | None = None) -> None:
        self.store = store
        self.config = config or ReconcilerConfig()

    async def plan(self, instance_id: str) -> Plan:
        """Compare the stored desired document with the stored live snapshot."""
        desired = await self.store.get_desired(instance_id)
        if desired is None:
            raise InstanceNotFoundError(f"No desired configuration for {instance_id}")
        live = await self.store.get_snapshot(instance_id)
        if live is None:
            raise InstanceNotFoundError(f"No live snapshot recorded for {instance_id}")

        baseline = await self.store.get_baseline(instance_id)
        previous_keys = baseline.extra_config.keys() if baseline is not None else ()
        detection = detect(desired, live, self.store.registry, extra_keys=previous_keys)
        plan = Plan(
            instance_id=instance_id,
            request=detection.request,
            changed=detection.changed,
            restart_required=detection.changed and detection.restart_required,
            restart_fields=detection.restart_fields if detection.changed else (),
            changed_fields=detection.changed_fields,
        )

        if not plan.changed:
            logger.info("%s: configuration is up to date", instance_id)
        elif plan.restart_required:
            level = logging.INFO if self.config.log_restart_fields else logging.DEBUG
            logger.info("%s: update pending, restart required", instance_id)
            logger.log(level, "%s: restart forced by %s", instance_id, ", ".join(plan.restart_fields))
        else:
            logger.info("%s: update pending, can be applied live", instance_id)
        return plan

    async def record_applied(self, instance_id: str, snapshot: LiveSnapshot) -> None:
        """Persist the post-apply snapshot and move the baseline forward."""
        if not await self.store.mark_applied(instance_id, snapshot):
            raise InstanceNotFoundError(f"No desired configuration for {instance_id}")
        logger.info("%s: applied configuration recorded", instance_id)
