"""Bridge lifecycle: wires hardware, state and MQTT onto one event loop."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import Callable
from typing import Any, Protocol

from pi2mqtt._mqtt import MqttRuntime, Testament, parse_broker_url
from pi2mqtt._redact import redact_url
from pi2mqtt.capabilities import GpioBackend, OneWireBus, OutputLine
from pi2mqtt.codec import encode_connection_state
from pi2mqtt.config import BridgeConfig
from pi2mqtt.gpio import GpiozeroBackend
from pi2mqtt.inputs import InputWatcher
from pi2mqtt.outputs import OutputDispatcher
from pi2mqtt.state.store import StateStore
from pi2mqtt.w1 import OneWirePoller, SysfsOneWireBus

_logger = logging.getLogger(__name__)


class _Runtime(Protocol):
    def start(self, address: Any) -> None: ...

    def stop(self) -> None: ...

    def publish(self, topic: str, payload: str, *, retain: bool = False) -> None: ...

    def subscribe(self, topic: str) -> None: ...


RuntimeFactory = Callable[..., _Runtime]


class Pi2MqttBridge:
    """GPIO/1-Wire to MQTT bridge.

    Usage::

        async with Pi2MqttBridge(config) as bridge:
            await bridge.run_until_stopped(stop_event)

    Hardware and broker callbacks arrive on foreign threads and are handed
    to the running loop with ``call_soon_threadsafe``. The state store and
    alias table are therefore only ever touched from the loop.
    """

    def __init__(
        self,
        config: BridgeConfig,
        *,
        gpio: GpioBackend | None = None,
        w1_bus: OneWireBus | None = None,
        runtime_factory: RuntimeFactory = MqttRuntime,
    ) -> None:
        self._config = config
        self._gpio = gpio
        self._w1_bus = w1_bus
        self._runtime_factory = runtime_factory
        self._aliases = config.alias_table()
        self._store = StateStore()
        self._loop: asyncio.AbstractEventLoop | None = None
        self._runtime: _Runtime | None = None
        self._watcher: InputWatcher | None = None
        self._dispatcher: OutputDispatcher | None = None
        self._poller: OneWirePoller | None = None
        self._poller_task: asyncio.Task[None] | None = None

    @property
    def store(self) -> StateStore:
        return self._store

    @property
    def poller(self) -> OneWirePoller | None:
        return self._poller

    # ------------------------------------------------------------------
    # Context manager lifecycle
    # ------------------------------------------------------------------

    async def __aenter__(self) -> Pi2MqttBridge:
        await self.start()
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.stop()

    async def start(self) -> None:
        config = self._config
        self._loop = asyncio.get_running_loop()
        address = parse_broker_url(config.url)

        try:
            _logger.debug("connecting %s", redact_url(config.url))
            testament = Testament(
                topic=config.testament_topic,
                online_payload=encode_connection_state(True, config.payload),
                offline_payload=encode_connection_state(False, config.payload),
            )
            self._runtime = self._runtime_factory(
                loop=self._loop,
                on_message=self._on_message,
                client_id=config.mqtt_client_id,
                keepalive=config.mqtt_keepalive,
                testament=testament,
            )
            self._runtime.start(address)

            if config.inputs or config.outputs:
                if self._gpio is None:
                    self._gpio = GpiozeroBackend()
                self._open_outputs(self._gpio)
                self._open_inputs(self._gpio)

            if config.w1_enabled:
                self._start_poller()
        except BaseException:
            await self.stop()
            raise

    def _open_outputs(self, gpio: GpioBackend) -> None:
        config = self._config
        lines: dict[int, OutputLine] = {pin: gpio.open_output(pin) for pin in config.outputs}
        self._dispatcher = OutputDispatcher(lines=lines, aliases=self._aliases, set_topic=config.set_topic)
        assert self._runtime is not None  # noqa: S101
        self._dispatcher.subscribe_all(self._runtime)

    def _open_inputs(self, gpio: GpioBackend) -> None:
        config = self._config
        assert self._runtime is not None  # noqa: S101
        self._watcher = InputWatcher(
            pins=config.inputs,
            aliases=self._aliases,
            store=self._store,
            publisher=self._runtime,
            status_topic=config.status_topic,
            mode=config.payload,
            retain=config.retain,
        )
        for pin in config.inputs:
            gpio.open_input(pin, self._edge_callback(pin))

    def _start_poller(self) -> None:
        config = self._config
        assert self._runtime is not None and self._loop is not None  # noqa: S101
        bus = self._w1_bus or SysfsOneWireBus(config.w1_devices_path)
        self._poller = OneWirePoller(
            bus=bus,
            aliases=self._aliases,
            store=self._store,
            publisher=self._runtime,
            status_topic=config.status_topic,
            mode=config.payload,
            retain=config.retain,
            wait=config.w1_wait,
            interval=config.w1_interval,
            max_concurrent_reads=config.w1_max_concurrent_reads,
            path=config.w1_devices_path,
        )
        self._poller_task = self._loop.create_task(self._poller.run(), name="pi2mqtt-w1-poller")

    async def stop(self) -> None:
        """Cancel polling, release GPIO lines and disconnect. Idempotent."""
        task = self._poller_task
        self._poller_task = None
        if task is not None and not task.done():
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task

        gpio = self._gpio
        if gpio is not None:
            try:
                gpio.close()
            except Exception:
                _logger.debug("GPIO close failed", exc_info=True)

        runtime = self._runtime
        self._runtime = None
        if runtime is not None:
            loop = self._loop or asyncio.get_running_loop()
            try:
                await loop.run_in_executor(None, runtime.stop)
            except Exception:
                _logger.debug("MQTT runtime stop failed", exc_info=True)
            _logger.debug("mqtt disconnected")

    async def run_until_stopped(self, stop: asyncio.Event) -> None:
        """Serve until *stop* is set.

        Raises whatever ends the poller early, notably
        :class:`~pi2mqtt.exceptions.W1DiscoveryError`.
        """
        stopper = asyncio.ensure_future(stop.wait())
        waiters: set[asyncio.Future[Any]] = {stopper}
        poller_task = self._poller_task
        if poller_task is not None:
            waiters.add(poller_task)
        try:
            done, _pending = await asyncio.wait(waiters, return_when=asyncio.FIRST_COMPLETED)
        finally:
            stopper.cancel()
        if poller_task is not None and poller_task in done:
            poller_task.result()

    # ------------------------------------------------------------------
    # Foreign-thread entry points
    # ------------------------------------------------------------------

    def _edge_callback(self, pin: int) -> Callable[[BaseException | None, int], None]:
        def on_edge(err: BaseException | None, level: int) -> None:
            loop = self._loop
            watcher = self._watcher
            if loop is None or watcher is None:
                return
            try:
                loop.call_soon_threadsafe(watcher.handle_edge, pin, err, level)
            except RuntimeError:
                # Loop already closed during shutdown.
                _logger.debug("GPIO%s edge after shutdown dropped", pin)

        return on_edge

    def _on_message(self, topic: str, payload: bytes) -> None:
        if self._dispatcher is None:
            _logger.debug("mqtt < %s ignored, no outputs configured", topic)
            return
        self._dispatcher.handle_message(topic, payload)
