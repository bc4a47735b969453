"""CLI config — reads/writes ~/.vmreconcile/config.toml."""

from __future__ import annotations

import os
import stat
import tomllib

import tomli_w

from vmreconcile.config import ReconcilerConfig, as_bool

CONFIG_DIR = os.path.expanduser("~/.vmreconcile")
CONFIG_PATH = os.path.join(CONFIG_DIR, "config.toml")

KNOWN_KEYS = ("db_path", "log_level", "log_restart_fields")


def load_config() -> dict:
    """Load the CLI config file, returning {} if it doesn't exist."""
    if not os.path.exists(CONFIG_PATH):
        return {}
    with open(CONFIG_PATH, "rb") as f:
        return tomllib.load(f)


def save_config(data: dict) -> None:
    """Write the CLI config file with restricted permissions (0600)."""
    os.makedirs(CONFIG_DIR, exist_ok=True)
    with open(CONFIG_PATH, "wb") as f:
        tomli_w.dump(data, f)
    os.chmod(CONFIG_PATH, stat.S_IRUSR | stat.S_IWUSR)


def get_reconciler_config() -> ReconcilerConfig:
    """Environment settings, overridden by anything set in the config file."""
    config = ReconcilerConfig.from_env()
    cfg = load_config()
    if cfg.get("db_path"):
        config.db_path = cfg["db_path"]
    if cfg.get("log_level"):
        config.log_level = str(cfg["log_level"]).upper()
    if "log_restart_fields" in cfg:
        config.log_restart_fields = as_bool(cfg["log_restart_fields"])
    return config
