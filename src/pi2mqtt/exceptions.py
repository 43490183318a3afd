"""Custom exception hierarchy for pi2mqtt."""

from __future__ import annotations


class Pi2MqttError(Exception):
    """Base exception for all pi2mqtt errors."""


class Pi2MqttConfigError(Pi2MqttError):
    """Invalid or missing configuration."""


class AliasSpecError(Pi2MqttConfigError):
    """An alias specification is not of the form ``left:right``."""

    def __init__(self, message: str, *, spec: str = "") -> None:
        self.spec = spec
        super().__init__(message)


class W1DiscoveryError(Pi2MqttError):
    """The 1-Wire devices directory could not be read or was empty.

    This is fatal: without sensors the poller has nothing to serve, so the
    bridge stops and the command line exits with a dedicated exit code.
    """

    def __init__(self, message: str, *, path: str = "") -> None:
        self.path = path
        super().__init__(message)


class GpioError(Pi2MqttError):
    """A GPIO line could not be opened, read or written."""

    def __init__(self, message: str, *, pin: int | None = None) -> None:
        self.pin = pin
        super().__init__(message)


class MqttConnectionError(Pi2MqttError):
    """The broker URL is unusable or the MQTT client could not be started."""
