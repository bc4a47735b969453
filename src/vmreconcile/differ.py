"""Delta computation for the partially-owned extra-config map.

Other systems may write keys into the same map, so the delta only ever
touches keys that appear in ``old`` or ``new``. A key dropped by the user is
sent as a tombstone because the remote system only removes keys it is
explicitly told to remove.
"""

from __future__ import annotations

from typing import Mapping

from vmreconcile.models import TOMBSTONE, OptionValue


def diff(old: Mapping[str, str], new: Mapping[str, str]) -> list[OptionValue]:
    """Compute the minimal add/change/remove edit set from ``old`` to ``new``.

    Entry order is not significant; the remote applies entries per key.
    An empty list means there is nothing to do.
    """
    delta: list[OptionValue] = []

    for key in old:
        if key not in new:
            delta.append(OptionValue(key=key, value=TOMBSTONE))

    for key, value in new.items():
        if key not in old or str(old[key]) != str(value):
            delta.append(OptionValue(key=key, value=str(value)))

    return delta


def apply_delta(current: Mapping[str, str], delta: list[OptionValue]) -> dict[str, str]:
    """Apply a delta to a map the way the remote system does."""
    result = dict(current)
    for entry in delta:
        if entry.is_tombstone:
            result.pop(entry.key, None)
        else:
            result[entry.key] = entry.value
    return result
