"""gpiozero-backed GPIO lines.

Input lines report the raw physical level on both edges and leave the pin
bias untouched (no internal pull resistor). Output lines are plain high/low
drivers. Pins use BCM numbering.
"""

from __future__ import annotations

import logging
from typing import Any

from gpiozero import DigitalInputDevice, DigitalOutputDevice
from gpiozero.exc import GPIOZeroError

from pi2mqtt.capabilities import EdgeCallback
from pi2mqtt.exceptions import GpioError

_logger = logging.getLogger(__name__)


class GpioInput:
    """An input line that forwards every edge as ``callback(err, level)``."""

    def __init__(self, pin: int, callback: EdgeCallback, *, pin_factory: Any = None) -> None:
        self.pin = pin
        self._callback = callback
        try:
            self._device = DigitalInputDevice(pin, pull_up=None, active_state=True, pin_factory=pin_factory)
        except GPIOZeroError as exc:
            raise GpioError(f"cannot open GPIO{pin} as input: {exc}", pin=pin) from exc
        self._device.when_activated = self._on_edge
        self._device.when_deactivated = self._on_edge

    def read(self) -> int:
        """Current raw level of the line."""
        return 1 if self._device.pin.state else 0

    def _on_edge(self) -> None:
        try:
            level = self.read()
        except GPIOZeroError as exc:
            self._callback(exc, 0)
            return
        self._callback(None, level)

    def close(self) -> None:
        self._device.close()


class GpioOutput:
    def __init__(self, pin: int, *, pin_factory: Any = None) -> None:
        self.pin = pin
        try:
            self._device = DigitalOutputDevice(pin, initial_value=False, pin_factory=pin_factory)
        except GPIOZeroError as exc:
            raise GpioError(f"cannot open GPIO{pin} as output: {exc}", pin=pin) from exc

    def write(self, level: int) -> None:
        try:
            if level:
                self._device.on()
            else:
                self._device.off()
        except GPIOZeroError as exc:
            raise GpioError(f"cannot write GPIO{self.pin}: {exc}", pin=self.pin) from exc

    def close(self) -> None:
        self._device.close()


class GpiozeroBackend:
    """Opens and owns gpiozero devices.

    Parameters
    ----------
    pin_factory
        Optional gpiozero pin factory, e.g. ``MockFactory()`` for tests.
        ``None`` uses gpiozero's default.
    """

    def __init__(self, *, pin_factory: Any = None) -> None:
        self._pin_factory = pin_factory
        self._inputs: dict[int, GpioInput] = {}
        self._outputs: dict[int, GpioOutput] = {}

    def open_input(self, pin: int, callback: EdgeCallback) -> None:
        if pin in self._inputs or pin in self._outputs:
            raise GpioError(f"GPIO{pin} is already open", pin=pin)
        self._inputs[pin] = GpioInput(pin, callback, pin_factory=self._pin_factory)
        _logger.debug("GPIO%s opened as input", pin)

    def open_output(self, pin: int) -> GpioOutput:
        if pin in self._inputs or pin in self._outputs:
            raise GpioError(f"GPIO{pin} is already open", pin=pin)
        line = GpioOutput(pin, pin_factory=self._pin_factory)
        self._outputs[pin] = line
        _logger.debug("GPIO%s opened as output", pin)
        return line

    def close(self) -> None:
        lines: list[GpioInput | GpioOutput] = [*self._inputs.values(), *self._outputs.values()]
        self._inputs.clear()
        self._outputs.clear()
        for line in lines:
            try:
                line.close()
            except GPIOZeroError:
                _logger.debug("GPIO%s close failed", line.pin, exc_info=True)
