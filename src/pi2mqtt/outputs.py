"""GPIO output dispatcher: set-topic messages to output writes."""

from __future__ import annotations

import logging
from collections.abc import Mapping

from pi2mqtt._redact import redact_payload
from pi2mqtt.aliases import AliasTable
from pi2mqtt.capabilities import OutputLine, Publisher
from pi2mqtt.codec import decode_command
from pi2mqtt.exceptions import GpioError
from pi2mqtt.inputs import gpio_device_id

_logger = logging.getLogger(__name__)

_GPIO_PREFIX = "gpio/"


def parse_gpio_id(device_id: str) -> int | None:
    """Pin number of a ``gpio/<digits>`` identifier, else ``None``."""
    if not device_id.startswith(_GPIO_PREFIX):
        return None
    digits = device_id[len(_GPIO_PREFIX) :]
    if not digits.isascii() or not digits.isdigit():
        return None
    return int(digits)


class OutputDispatcher:
    """Writes output lines from inbound set messages.

    Writes are fire-and-forget: nothing is published back and a failed
    write is logged, not retried.
    """

    def __init__(
        self,
        *,
        lines: Mapping[int, OutputLine],
        aliases: AliasTable,
        set_topic: str,
    ) -> None:
        self._lines = dict(lines)
        self._aliases = aliases
        self._set_topic = set_topic

    @property
    def pins(self) -> tuple[int, ...]:
        return tuple(self._lines)

    def subscription_topics(self) -> list[str]:
        return [f"{self._set_topic}{self._aliases.resolve(gpio_device_id(pin))}" for pin in self._lines]

    def subscribe_all(self, publisher: Publisher) -> None:
        for topic in self.subscription_topics():
            publisher.subscribe(topic)

    def resolve_pin(self, topic: str) -> int | None:
        """Map an inbound topic to a configured output pin, if any."""
        if not topic.startswith(self._set_topic):
            return None
        device_id = self._aliases.resolve(topic[len(self._set_topic) :])
        pin = parse_gpio_id(device_id)
        if pin is None or pin not in self._lines:
            return None
        return pin

    def handle_message(self, topic: str, payload: bytes | str) -> int | None:
        """Apply one inbound message. Returns the level written, or ``None``."""
        _logger.debug("mqtt < %s %s", topic, redact_payload(payload))
        pin = self.resolve_pin(topic)
        if pin is None:
            _logger.debug("ignoring message on %s, no configured output", topic)
            return None

        command = decode_command(payload)
        _logger.debug("GPIO%s <- %s (%s)", pin, command.level, command.kind)
        try:
            self._lines[pin].write(command.level)
        except (GpioError, OSError):
            _logger.error("write to GPIO%s failed", pin, exc_info=True)
            return None
        return command.level
