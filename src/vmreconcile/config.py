from __future__ import annotations

import logging
import os
from dataclasses import dataclass

TRUTHY = ("1", "true", "yes")


def as_bool(value: object) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in TRUTHY


@dataclass
class ReconcilerConfig:
    db_path: str = "/var/lib/vmreconcile/state.db"
    log_level: str = "WARNING"
    # Log the fields that forced a restart at INFO instead of DEBUG.
    log_restart_fields: bool = False

    @staticmethod
    def from_env() -> ReconcilerConfig:
        return ReconcilerConfig(
            db_path=os.environ.get("VMRECONCILE_DB_PATH", "/var/lib/vmreconcile/state.db"),
            log_level=os.environ.get("VMRECONCILE_LOG_LEVEL", "WARNING").upper(),
            log_restart_fields=as_bool(os.environ.get("VMRECONCILE_LOG_RESTART_FIELDS", "")),
        )

    def configure_logging(self) -> None:
        """Set up root logging at the configured level."""
        logging.basicConfig(
            level=getattr(logging, self.log_level, logging.WARNING),
            format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        )
