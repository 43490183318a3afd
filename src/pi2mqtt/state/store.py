"""In-memory last-value store.

This is the only component that decides whether a reading gets published.
"""

from __future__ import annotations

from collections.abc import Mapping

from pi2mqtt.state.policy import DeviceValue, values_differ


class StateStore:
    """Last published value per device id.

    Not thread-safe; the bridge calls it from its event loop only.
    """

    def __init__(self) -> None:
        self._values: dict[str, DeviceValue] = {}

    def should_publish(self, device_id: str, value: DeviceValue) -> bool:
        """Record *value* and return ``True`` if it is new or changed."""
        if device_id in self._values and not values_differ(self._values[device_id], value):
            return False
        self._values[device_id] = value
        return True

    def get(self, device_id: str) -> DeviceValue | None:
        return self._values.get(device_id)

    def snapshot(self) -> Mapping[str, DeviceValue]:
        """Copy of all known values."""
        return dict(self._values)

    def __len__(self) -> int:
        return len(self._values)
