"""Tests for the field registry."""

import pytest

from vmreconcile.errors import ConsistencyError, UnknownFieldError, ValidationError
from vmreconcile.fields import (
    ALWAYS_RESTART,
    CONDITIONAL_HOT_SWAP,
    FREE,
    REGISTRY,
    FieldRegistry,
    FieldSpec,
)


def test_lookup_returns_spec():
    spec = REGISTRY.lookup("name")
    assert spec.kind == "string"
    assert spec.required is True
    assert spec.min_length == 1
    assert spec.max_length == 80


def test_lookup_unknown_field():
    with pytest.raises(UnknownFieldError):
        REGISTRY.lookup("not_a_field")
    # Still a KeyError for callers that only care about that
    with pytest.raises(KeyError):
        REGISTRY.lookup("not_a_field")


def test_global_defaults():
    assert REGISTRY.default("guest_id") == "other-64"
    assert REGISTRY.default("firmware") == "bios"
    assert REGISTRY.default("memory") == 1024
    assert REGISTRY.default("num_cpus") == 1
    assert REGISTRY.default("boot_retry_delay") == 10000
    assert REGISTRY.default("enable_logging") is True
    assert REGISTRY.default("cpu_limit") == -1
    assert REGISTRY.default("memory_share_level") == "normal"


def test_map_default_is_not_shared():
    a = REGISTRY.default("extra_config")
    a["k"] = "v"
    assert REGISTRY.default("extra_config") == {}


def test_allowed_values():
    assert REGISTRY.lookup("hv_mode").allowed_values == ("hvAuto", "hvOn", "hvOff")
    assert REGISTRY.lookup("ept_rvi_mode").allowed_values == ("automatic", "on", "off")
    assert REGISTRY.lookup("swap_placement_policy").allowed_values == (
        "inherit", "vmDirectory", "hostLocal",
    )
    assert REGISTRY.lookup("firmware").allowed_values == ("bios", "efi")
    assert REGISTRY.lookup("cpu_share_level").allowed_values == ("low", "normal", "high", "custom")


def test_restart_policies():
    conditional = {s.name for s in REGISTRY.with_restart_policy(CONDITIONAL_HOT_SWAP)}
    assert conditional == {"num_cpus", "memory"}
    assert REGISTRY.lookup("firmware").restart_policy == ALWAYS_RESTART
    assert REGISTRY.lookup("cpu_hot_add_enabled").restart_policy == ALWAYS_RESTART
    assert REGISTRY.lookup("annotation").restart_policy == FREE
    assert REGISTRY.lookup("memory_reservation").restart_policy == FREE


def test_resource_allocation_fields_exist_per_kind():
    for kind in ("cpu", "memory"):
        for suffix in ("share_level", "share_count", "limit", "reservation"):
            assert f"{kind}_{suffix}" in REGISTRY


def test_all_fields_unique():
    names = [s.name for s in REGISTRY.all_fields()]
    assert len(names) == len(set(names)) == len(REGISTRY)


def test_duplicate_field_rejected():
    with pytest.raises(ValueError, match="Duplicate"):
        FieldRegistry([FieldSpec("a", "int"), FieldSpec("a", "bool")])


def test_stringset_without_allowed_values_rejected():
    with pytest.raises(ValueError, match="no allowed values"):
        FieldRegistry([FieldSpec("mode", "stringset")])


# ── validation ────────────────────────────────────────────────


def test_validate_minimal_document():
    REGISTRY.validate({"name": "vm1"})


def test_validate_name_required():
    with pytest.raises(ValidationError) as exc:
        REGISTRY.validate({})
    assert exc.value.field == "name"


@pytest.mark.parametrize("name", ["", "x" * 81])
def test_validate_name_length(name):
    with pytest.raises(ValidationError):
        REGISTRY.validate({"name": name})


def test_validate_name_length_upper_bound_ok():
    REGISTRY.validate({"name": "x" * 80})


def test_validate_enum_value():
    with pytest.raises(ValidationError, match="hv_mode"):
        REGISTRY.validate({"name": "vm1", "hv_mode": "sometimes"})


def test_validate_numeric_bounds():
    REGISTRY.validate({"name": "vm1", "cpu_limit": -1, "cpu_share_count": 0})
    with pytest.raises(ValidationError):
        REGISTRY.validate({"name": "vm1", "cpu_limit": -2})
    with pytest.raises(ValidationError):
        REGISTRY.validate({"name": "vm1", "memory_reservation": -1})
    with pytest.raises(ValidationError):
        REGISTRY.validate({"name": "vm1", "memory_share_count": -5})


def test_validate_type_mismatch():
    with pytest.raises(ValidationError):
        REGISTRY.validate({"name": "vm1", "num_cpus": "4"})
    with pytest.raises(ValidationError):
        REGISTRY.validate({"name": "vm1", "num_cpus": True})
    with pytest.raises(ValidationError):
        REGISTRY.validate({"name": "vm1", "cpu_hot_add_enabled": "yes"})


def test_validate_unknown_key():
    with pytest.raises(ValidationError, match="not a known"):
        REGISTRY.validate({"name": "vm1", "num_gpus": 2})


def test_validate_cpu_cores_divisibility():
    REGISTRY.validate({"name": "vm1", "num_cpus": 8, "num_cores_per_socket": 4})
    with pytest.raises(ConsistencyError):
        REGISTRY.validate({"name": "vm1", "num_cpus": 6, "num_cores_per_socket": 4})
