"""Change-detection policy for published device values."""

from __future__ import annotations

import math

DeviceValue = bool | float


def values_differ(previous: DeviceValue, incoming: DeviceValue) -> bool:
    """Decide whether *incoming* is a change relative to *previous*.

    Input levels compare as booleans, sensor readings numerically. A value
    switching between the two kinds always counts as a change.
    """
    if isinstance(previous, bool) or isinstance(incoming, bool):
        if isinstance(previous, bool) and isinstance(incoming, bool):
            return previous != incoming
        return True

    prev_num = float(previous)
    new_num = float(incoming)
    if math.isnan(prev_num) and math.isnan(new_num):
        return False
    return prev_num != new_num
