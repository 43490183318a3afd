"""GPIO input watcher: edge notifications to status publications."""

from __future__ import annotations

import logging

from pi2mqtt.aliases import AliasTable
from pi2mqtt.capabilities import Publisher
from pi2mqtt.codec import PayloadMode, encode_input_state
from pi2mqtt.state.store import StateStore

_logger = logging.getLogger(__name__)


def gpio_device_id(pin: int) -> str:
    return f"gpio/{pin}"


class InputWatcher:
    """Publishes input level changes.

    :meth:`handle_edge` must be called from a single thread in arrival order;
    the bridge marshals hardware callbacks onto its event loop for that.
    """

    def __init__(
        self,
        *,
        pins: tuple[int, ...],
        aliases: AliasTable,
        store: StateStore,
        publisher: Publisher,
        status_topic: str,
        mode: PayloadMode,
        retain: bool,
    ) -> None:
        self.pins = pins
        self._aliases = aliases
        self._store = store
        self._publisher = publisher
        self._status_topic = status_topic
        self._mode = mode
        self._retain = retain

    def topic_for(self, pin: int) -> str:
        return f"{self._status_topic}{self._aliases.resolve(gpio_device_id(pin))}"

    def handle_edge(self, pin: int, err: BaseException | None, level: int) -> bool:
        """Process one edge notification. Returns whether it was published."""
        if err is not None:
            _logger.debug("GPIO%s read error dropped: %s", pin, err)
            return False

        if not self._store.should_publish(gpio_device_id(pin), bool(level)):
            return False

        topic = self.topic_for(pin)
        payload = encode_input_state(level, self._mode)
        _logger.debug("%s %s", topic, payload)
        self._publisher.publish(topic, payload, retain=self._retain)
        return True
