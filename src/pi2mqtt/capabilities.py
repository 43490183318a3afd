"""Capability protocols consumed by the bridge core.

The core never touches hardware or the network directly. It is handed
objects of these shapes; :mod:`pi2mqtt.gpio`, :mod:`pi2mqtt.w1` and
:mod:`pi2mqtt._mqtt` provide the production implementations and tests
supply small fakes.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Protocol, runtime_checkable

EdgeCallback = Callable[[BaseException | None, int], None]
"""Called as ``callback(err, level)`` for every edge on an input line."""


@runtime_checkable
class OutputLine(Protocol):
    def write(self, level: int) -> None:
        """Drive the line high (``1``) or low (``0``)."""
        ...


@runtime_checkable
class GpioBackend(Protocol):
    """Opens GPIO lines. Owns every line it opened until :meth:`close`."""

    def open_input(self, pin: int, callback: EdgeCallback) -> None:
        """Open *pin* as input and watch both edges.

        *callback* may be invoked from a foreign thread.
        """
        ...

    def open_output(self, pin: int) -> OutputLine: ...

    def close(self) -> None: ...


@runtime_checkable
class OneWireBus(Protocol):
    def list_devices(self) -> list[str]:
        """Names in the devices directory. Raises ``OSError`` on failure."""
        ...

    def read_slave(self, sensor: str) -> str:
        """Raw ``w1_slave`` record of *sensor*. Raises ``OSError`` on failure."""
        ...


@runtime_checkable
class Publisher(Protocol):
    """Fire-and-forget pub/sub client.

    Calls made while disconnected must not raise.
    """

    def publish(self, topic: str, payload: str, *, retain: bool = False) -> None: ...

    def subscribe(self, topic: str) -> None: ...
