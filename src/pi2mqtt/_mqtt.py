"""Internal MQTT runtime: broker URL parsing and the threaded paho client."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, cast
from urllib.parse import unquote, urlsplit

import paho.mqtt.client as mqtt

from pi2mqtt._redact import redact_payload, redact_url
from pi2mqtt.exceptions import MqttConnectionError

_PLAIN_SCHEMES = {"mqtt": 1883, "tcp": 1883}
_TLS_SCHEMES = {"mqtts": 8883, "ssl": 8883, "tls": 8883}


@dataclass(frozen=True)
class BrokerAddress:
    """Connection details parsed from a broker URL."""

    host: str
    port: int
    tls: bool = False
    username: str | None = None
    password: str | None = None


@dataclass(frozen=True)
class Testament:
    """Connect/last-will message settings. An empty topic disables both."""

    topic: str
    online_payload: str
    offline_payload: str


def parse_broker_url(url: str) -> BrokerAddress:
    """Parse ``mqtt[s]://[user[:pass]@]host[:port]`` into a :class:`BrokerAddress`.

    A bare ``host[:port]`` is treated as ``mqtt://``.
    """
    value = url.strip()
    if not value:
        raise MqttConnectionError("Broker URL is empty")
    if "://" not in value:
        value = f"mqtt://{value}"

    try:
        parts = urlsplit(value)
        port = parts.port
    except ValueError as exc:
        raise MqttConnectionError(f"Invalid broker URL {redact_url(url)}: {exc}") from exc

    scheme = parts.scheme.lower()
    if scheme in _PLAIN_SCHEMES:
        tls = False
        default_port = _PLAIN_SCHEMES[scheme]
    elif scheme in _TLS_SCHEMES:
        tls = True
        default_port = _TLS_SCHEMES[scheme]
    else:
        raise MqttConnectionError(f"Unsupported broker URL scheme {parts.scheme!r}")

    if not parts.hostname:
        raise MqttConnectionError(f"Broker URL {redact_url(url)} has no host")

    return BrokerAddress(
        host=parts.hostname,
        port=port if port is not None else default_port,
        tls=tls,
        username=unquote(parts.username) if parts.username else None,
        password=unquote(parts.password) if parts.password is not None else None,
    )


class MqttRuntime:
    """Threaded paho-mqtt runtime that hands inbound messages to an asyncio loop.

    ``publish`` and ``subscribe`` may be called at any time; while the broker
    is unreachable they are logged and dropped (publish) or remembered and
    issued on the next connect (subscribe). Reconnection is left to paho.
    """

    def __init__(
        self,
        *,
        loop: asyncio.AbstractEventLoop,
        on_message: Callable[[str, bytes], None],
        client_id: str = "",
        keepalive: int = 60,
        testament: Testament | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self._loop = loop
        self._on_message = on_message
        self._client_id = client_id
        self._keepalive = keepalive
        self._testament = testament if testament is not None and testament.topic else None
        self._logger = logger or logging.getLogger(__name__)
        self._client: mqtt.Client | None = None
        self._running = False
        self._connected = False
        self._topics: list[str] = []

    @property
    def is_running(self) -> bool:
        """Whether the network loop is running."""
        return self._running

    @property
    def is_connected(self) -> bool:
        return self._connected

    def start(self, address: BrokerAddress) -> None:
        """Configure the client and start connecting in the background."""
        self.stop()
        self._logger.debug(
            "MQTT runtime start requested host=%s port=%s tls=%s client_id=%s",
            address.host,
            address.port,
            address.tls,
            self._client_id or "<random>",
        )

        client = mqtt.Client(
            callback_api_version=cast(Any, mqtt).CallbackAPIVersion.VERSION2,
            client_id=self._client_id,
            protocol=mqtt.MQTTv311,
        )
        client.enable_logger(self._logger)
        if address.username is not None:
            client.username_pw_set(address.username, address.password)
        if address.tls:
            client.tls_set()
        if self._testament is not None:
            client.will_set(self._testament.topic, self._testament.offline_payload)
        client.reconnect_delay_set(min_delay=1, max_delay=60)

        def on_connect(
            c: mqtt.Client,
            _userdata: Any,
            _flags: Any,
            reason_code: Any,
            _properties: Any,
        ) -> None:
            if reason_code.value != 0:
                self._logger.warning("MQTT connect failed: %s", reason_code)
                return
            self._connected = True
            self._logger.info("MQTT connected to %s:%s", address.host, address.port)
            if self._testament is not None:
                c.publish(self._testament.topic, self._testament.online_payload)
            for topic in list(self._topics):
                self._logger.debug("mqtt subscribe %s", topic)
                c.subscribe(topic, qos=0)

        def on_message(_c: mqtt.Client, _userdata: Any, msg: mqtt.MQTTMessage) -> None:
            try:
                self._loop.call_soon_threadsafe(self._on_message, msg.topic, bytes(msg.payload))
            except Exception:
                self._logger.debug("MQTT message dispatch failure topic=%s", msg.topic, exc_info=True)

        def on_disconnect(
            _client: mqtt.Client,
            _userdata: Any,
            _disconnect_flags: Any,
            reason_code: Any,
            _properties: Any,
        ) -> None:
            self._connected = False
            if self._running:
                self._logger.warning("MQTT disconnected: %s", reason_code)

        client.on_connect = on_connect
        client.on_message = on_message
        client.on_disconnect = on_disconnect

        try:
            client.connect_async(address.host, address.port, keepalive=self._keepalive)
        except (OSError, ValueError) as exc:
            raise MqttConnectionError(f"Cannot connect to {address.host}:{address.port}: {exc}") from exc
        client.loop_start()

        self._client = client
        self._running = True
        self._logger.debug("MQTT network loop started")

    def subscribe(self, topic: str) -> None:
        """Subscribe now if connected, and again after every reconnect."""
        if topic not in self._topics:
            self._topics.append(topic)
        client = self._client
        if client is None or not self._connected:
            return
        self._logger.debug("mqtt subscribe %s", topic)
        result, _mid = client.subscribe(topic, qos=0)
        if result != mqtt.MQTT_ERR_SUCCESS:
            self._logger.debug("MQTT subscribe %s not sent: %s", topic, result)

    def publish(self, topic: str, payload: str, *, retain: bool = False) -> None:
        client = self._client
        if client is None:
            self._logger.debug("MQTT publish %s dropped, runtime not started", topic)
            return
        self._logger.debug("mqtt > %s %s", topic, redact_payload(payload))
        info = client.publish(topic, payload, qos=0, retain=retain)
        if info.rc != mqtt.MQTT_ERR_SUCCESS:
            self._logger.debug("MQTT publish %s not sent: %s", topic, info.rc)

    def stop(self) -> None:
        """Stop and disconnect current MQTT client if running."""
        client = self._client
        self._client = None
        was_running = self._running
        self._running = False
        self._connected = False

        if client is None:
            return
        try:
            if was_running:
                self._logger.debug("MQTT disconnect requested")
                client.disconnect()
        finally:
            client.loop_stop()
            self._logger.debug("MQTT network loop stopped")

