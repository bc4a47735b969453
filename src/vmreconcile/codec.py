"""Convert core types to and from plain dicts (JSON / TOML documents)."""

from __future__ import annotations

import json
from dataclasses import asdict, fields
from typing import Any, Mapping

from vmreconcile.errors import MappingError
from vmreconcile.models import (
    BootOptions,
    DesiredConfig,
    FlagInfo,
    HardwareInfo,
    LiveSnapshot,
    OptionValue,
    ResourceAllocation,
    ToolsConfigInfo,
    UpdateRequest,
)


def _as_int(value: Any, path: str) -> int:
    # JSON encoders on the control-plane side may emit 1024.0 for 1024.
    if isinstance(value, bool):
        raise MappingError(f"{path}: expected an integer, got bool")
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    raise MappingError(f"{path}: expected an integer, got {value!r}")


def _check_scalars(cls: type, data: Mapping[str, Any], path: str) -> dict[str, Any]:
    """Type-check the int/bool/str fields of ``cls`` found in ``data``."""
    checked = dict(data)
    for f in fields(cls):
        value = checked.get(f.name)
        if value is None:
            continue
        kinds = str(f.type).split(" | ")
        where = f"{path}.{f.name}"
        if "int" in kinds:
            checked[f.name] = _as_int(value, where)
        elif "bool" in kinds and not isinstance(value, bool):
            raise MappingError(f"{where}: expected a boolean, got {value!r}")
        elif "str" in kinds and not isinstance(value, str):
            raise MappingError(f"{where}: expected a string, got {value!r}")
    return checked


def _section(cls: type, data: Any, path: str) -> Any:
    """Build a dataclass from a dict, rejecting unknown, missing or mistyped keys."""
    if not isinstance(data, Mapping):
        raise MappingError(f"{path}: expected an object, got {type(data).__name__}")
    known = {f.name for f in fields(cls)}
    unknown = set(data) - known
    if unknown:
        raise MappingError(f"{path}: unknown keys {sorted(unknown)}")
    data = _check_scalars(cls, data, path)
    try:
        return cls(**data)
    except TypeError as e:
        raise MappingError(f"{path}: {e}") from e


def _option_values(data: Any) -> list[OptionValue]:
    if data is None:
        return []
    if isinstance(data, Mapping):
        return [OptionValue(key=str(k), value=str(v)) for k, v in data.items()]
    opts = []
    for i, item in enumerate(data):
        if not isinstance(item, Mapping) or "key" not in item:
            raise MappingError(f"extra_config[{i}]: expected an object with a 'key'")
        opts.append(OptionValue(key=str(item["key"]), value=str(item.get("value", ""))))
    return opts


def snapshot_from_dict(data: Mapping[str, Any]) -> LiveSnapshot:
    """Parse a live snapshot as reported by the control plane.

    Raises MappingError for malformed input or a missing ``name``/``hardware``.
    """
    if not isinstance(data, Mapping):
        raise MappingError("snapshot: expected an object")
    if not data.get("name"):
        raise MappingError("snapshot: missing required field 'name'")
    if data.get("hardware") is None:
        raise MappingError("snapshot: missing required field 'hardware'")

    raw = dict(data)
    sections = {
        "hardware": HardwareInfo,
        "tools": ToolsConfigInfo,
        "flags": FlagInfo,
        "cpu_allocation": ResourceAllocation,
        "memory_allocation": ResourceAllocation,
        "boot_options": BootOptions,
    }
    for key, cls in sections.items():
        if raw.get(key) is not None:
            raw[key] = _section(cls, raw[key], key)
        else:
            raw.pop(key, None)
    raw["extra_config"] = _option_values(raw.get("extra_config"))
    return _section(LiveSnapshot, raw, "snapshot")


def snapshot_from_json(text: str) -> LiveSnapshot:
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise MappingError(f"snapshot: invalid JSON: {e}") from e
    return snapshot_from_dict(data)


def snapshot_to_dict(snapshot: LiveSnapshot) -> dict[str, Any]:
    return asdict(snapshot)


def desired_from_dict(data: Mapping[str, Any]) -> DesiredConfig:
    extra = data.get("extra_config") or {}
    values = {k: v for k, v in data.items() if k != "extra_config"}
    return DesiredConfig(values=values, extra_config=extra)


def desired_to_dict(config: DesiredConfig, *, drop_none: bool = False) -> dict[str, Any]:
    """Plain-dict form of a desired document.

    TOML has no null, so pass ``drop_none=True`` before handing this to tomli_w.
    """
    data = config.to_dict()
    if drop_none:
        data = {k: v for k, v in data.items() if v is not None}
    return data


def request_to_dict(request: UpdateRequest) -> dict[str, Any]:
    """Serialize an UpdateRequest for the transport layer or for display."""
    return asdict(request)
