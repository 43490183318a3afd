"""Bridge configuration for pi2mqtt."""

from __future__ import annotations

import dataclasses
import json
import os
import socket
from collections.abc import Iterable
from pathlib import Path
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError, field_validator

from pi2mqtt.aliases import AliasTable
from pi2mqtt.codec import PayloadMode
from pi2mqtt.exceptions import Pi2MqttConfigError

DEFAULT_URL = "mqtt://127.0.0.1"
DEFAULT_W1_DEVICES_PATH = "/sys/bus/w1/devices/"
DEFAULT_CONFIG_PATH = "~/.pi2mqtt/config.json"


def _env_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "y", "on"}:
        return True
    if normalized in {"0", "false", "no", "n", "off"}:
        return False
    return default


def _env_list(value: str) -> list[str]:
    return [item.strip() for item in value.split(",") if item.strip()]


def _hostname() -> str:
    return socket.gethostname()


def normalize_prefix(prefix: str | None) -> str:
    """Ensure a non-empty topic prefix ends with ``/``."""
    if not prefix:
        return ""
    return prefix if prefix.endswith("/") else f"{prefix}/"


def _as_pins(values: Iterable[Any], what: str) -> tuple[int, ...]:
    pins: list[int] = []
    for value in values:
        try:
            pin = int(value)
        except (TypeError, ValueError):
            raise Pi2MqttConfigError(f"{what} pin must be an integer, got {value!r}") from None
        if pin < 0:
            raise Pi2MqttConfigError(f"{what} pin must not be negative, got {pin}")
        pins.append(pin)
    return tuple(pins)


@dataclasses.dataclass(frozen=True)
class BridgeConfig:
    """Fully resolved bridge configuration.

    Parameters
    ----------
    url : str
        Broker URL (``mqtt://``, ``mqtts://``, ``tcp://`` or ``ssl://``).
    status_topic : str
        Prefix for status publications. Normalized to end with ``/``.
    set_topic : str
        Prefix for command subscriptions. Normalized to end with ``/``.
    testament_topic : str
        Topic for the connect/last-will message. Empty disables it.
    payload : PayloadMode
        Wire format, ``plain`` or ``json`` (``structured`` is accepted).
    retain : bool
        Publish status messages with the retain flag.
    aliases : tuple of str
        ``canonical:friendly`` topic aliases.
    inputs, outputs : tuple of int
        GPIO pins (BCM numbering) used as inputs and outputs.
    w1_enabled : bool
        Poll 1-Wire temperature sensors.
    w1_wait : float
        Seconds to wait before scanning the 1-Wire devices directory.
    w1_interval : float
        Seconds between 1-Wire poll cycles. At least 1.
    w1_devices_path : str
        sysfs directory listing the 1-Wire devices.
    w1_max_concurrent_reads : int
        Upper bound on sensor files read in parallel per cycle.
    mqtt_client_id : str
        MQTT client id. Empty lets paho pick a random one.
    mqtt_keepalive : int
        MQTT keepalive in seconds.
    """

    url: str = DEFAULT_URL
    status_topic: str = dataclasses.field(default_factory=lambda: f"{_hostname()}/status/")
    set_topic: str = dataclasses.field(default_factory=lambda: f"{_hostname()}/set/")
    testament_topic: str = dataclasses.field(default_factory=lambda: f"{_hostname()}/connected")
    payload: PayloadMode = PayloadMode.PLAIN
    retain: bool = True
    aliases: tuple[str, ...] = ()
    inputs: tuple[int, ...] = ()
    outputs: tuple[int, ...] = ()
    w1_enabled: bool = True
    w1_wait: float = 30.0
    w1_interval: float = 30.0
    w1_devices_path: str = DEFAULT_W1_DEVICES_PATH
    w1_max_concurrent_reads: int = 4
    mqtt_client_id: str = ""
    mqtt_keepalive: int = 60

    def __post_init__(self) -> None:
        # Frozen dataclass: normalized values are written with object.__setattr__.
        def _set(name: str, value: Any) -> None:
            object.__setattr__(self, name, value)

        _set("status_topic", normalize_prefix(self.status_topic))
        _set("set_topic", normalize_prefix(self.set_topic))
        _set("testament_topic", self.testament_topic or "")

        try:
            _set("payload", PayloadMode.parse(self.payload))
        except ValueError:
            raise Pi2MqttConfigError(f'payload type must be "plain" or "json", got {self.payload!r}') from None

        aliases = (self.aliases,) if isinstance(self.aliases, str) else tuple(self.aliases)
        _set("aliases", tuple(a for a in aliases if a))
        inputs = (self.inputs,) if isinstance(self.inputs, (int, str)) else self.inputs
        outputs = (self.outputs,) if isinstance(self.outputs, (int, str)) else self.outputs
        _set("inputs", _as_pins(inputs, "input"))
        _set("outputs", _as_pins(outputs, "output"))

        try:
            _set("w1_wait", float(self.w1_wait))
            _set("w1_interval", float(self.w1_interval))
        except (TypeError, ValueError):
            raise Pi2MqttConfigError("w1-wait and w1-interval have to be numbers") from None
        if self.w1_interval < 1:
            raise Pi2MqttConfigError("w1-interval has to be a number greater than 0")
        if self.w1_wait < 0:
            raise Pi2MqttConfigError("w1-wait must not be negative")
        if self.w1_max_concurrent_reads < 1:
            raise Pi2MqttConfigError("w1_max_concurrent_reads must be at least 1")
        if not self.url:
            raise Pi2MqttConfigError("broker url must not be empty")

        # Fail on malformed aliases before anything connects.
        self.alias_table()

    def alias_table(self) -> AliasTable:
        return AliasTable.from_specs(self.aliases)

    @classmethod
    def from_env(cls, **overrides: Any) -> BridgeConfig:
        """Create configuration from ``PI2MQTT_*`` environment variables.

        Explicit keyword arguments override environment values.

        Parameters
        ----------
        **overrides
            Explicit field values that take precedence over env vars.

        Returns
        -------
        BridgeConfig
            Populated configuration.
        """
        env = os.environ

        _ENV_STR_MAP = {
            "PI2MQTT_URL": "url",
            "PI2MQTT_STATUS_TOPIC": "status_topic",
            "PI2MQTT_SET_TOPIC": "set_topic",
            "PI2MQTT_TESTAMENT_TOPIC": "testament_topic",
            "PI2MQTT_PAYLOAD": "payload",
            "PI2MQTT_W1_DEVICES_PATH": "w1_devices_path",
            "PI2MQTT_MQTT_CLIENT_ID": "mqtt_client_id",
        }
        config_kwargs: dict[str, Any] = {}
        for env_key, field_name in _ENV_STR_MAP.items():
            val = env.get(env_key)
            if val is not None:
                config_kwargs[field_name] = val

        _ENV_LIST_MAP = {
            "PI2MQTT_ALIAS": "aliases",
            "PI2MQTT_INPUT": "inputs",
            "PI2MQTT_OUTPUT": "outputs",
        }
        for env_key, field_name in _ENV_LIST_MAP.items():
            val = env.get(env_key)
            if val is not None:
                config_kwargs[field_name] = tuple(_env_list(val))

        _ENV_NUM_MAP = {
            "PI2MQTT_W1_WAIT": ("w1_wait", float),
            "PI2MQTT_W1_INTERVAL": ("w1_interval", float),
            "PI2MQTT_W1_MAX_CONCURRENT_READS": ("w1_max_concurrent_reads", int),
            "PI2MQTT_MQTT_KEEPALIVE": ("mqtt_keepalive", int),
        }
        for env_key, (field_name, convert) in _ENV_NUM_MAP.items():
            val = env.get(env_key)
            if val is not None and field_name not in overrides:
                try:
                    config_kwargs[field_name] = convert(val)
                except ValueError:
                    raise Pi2MqttConfigError(f"{env_key} must be numeric, got {val!r}") from None

        if "retain" not in overrides:
            config_kwargs["retain"] = _env_bool(env.get("PI2MQTT_RETAIN"), True)
        if "w1_enabled" not in overrides:
            config_kwargs["w1_enabled"] = not _env_bool(env.get("PI2MQTT_W1_DISABLE"), False)

        config_kwargs.update(overrides)

        return cls(**config_kwargs)


class ConfigFile(BaseModel):
    """Schema of the JSON config file.

    Keys follow the command line long options; camelCase and snake_case
    spellings are accepted as well. Unknown keys are ignored.
    """

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    url: str | None = None
    alias: list[str] | None = None
    input: list[int] | None = None
    output: list[int] | None = None
    payload: str | None = None
    retain: bool | None = None
    status_topic: str | None = Field(
        default=None, validation_alias=AliasChoices("status-topic", "statusTopic", "status_topic")
    )
    set_topic: str | None = Field(default=None, validation_alias=AliasChoices("set-topic", "setTopic", "set_topic"))
    testament_topic: str | None = Field(
        default=None, validation_alias=AliasChoices("testament-topic", "testamentTopic", "testament_topic")
    )
    w1_disable: bool | None = Field(
        default=None, validation_alias=AliasChoices("w1-disable", "w1Disable", "w1_disable")
    )
    w1_wait: float | None = Field(default=None, validation_alias=AliasChoices("w1-wait", "w1Wait", "w1_wait"))
    w1_interval: float | None = Field(
        default=None, validation_alias=AliasChoices("w1-interval", "w1Interval", "w1_interval")
    )
    verbosity: str | None = None
    log: str | None = None
    debug: bool | None = None

    @field_validator("alias", mode="before")
    @classmethod
    def _single_alias(cls, value: Any) -> Any:
        if isinstance(value, str):
            return [value] if value else []
        return value

    @field_validator("input", "output", mode="before")
    @classmethod
    def _single_pin(cls, value: Any) -> Any:
        if isinstance(value, (int, str)):
            return [value]
        return value

    def to_overrides(self) -> dict[str, Any]:
        """Map the file's keys to :class:`BridgeConfig` field overrides."""
        overrides: dict[str, Any] = {}
        if self.url is not None:
            overrides["url"] = self.url
        if self.alias is not None:
            overrides["aliases"] = tuple(self.alias)
        if self.input is not None:
            overrides["inputs"] = tuple(self.input)
        if self.output is not None:
            overrides["outputs"] = tuple(self.output)
        if self.payload is not None:
            overrides["payload"] = self.payload
        if self.retain is not None:
            overrides["retain"] = self.retain
        if self.status_topic is not None:
            overrides["status_topic"] = self.status_topic
        if self.set_topic is not None:
            overrides["set_topic"] = self.set_topic
        if self.testament_topic is not None:
            overrides["testament_topic"] = self.testament_topic
        if self.w1_disable is not None:
            overrides["w1_enabled"] = not self.w1_disable
        if self.w1_wait is not None:
            overrides["w1_wait"] = self.w1_wait
        if self.w1_interval is not None:
            overrides["w1_interval"] = self.w1_interval
        return overrides


def load_config_file(path: str | os.PathLike[str]) -> ConfigFile:
    """Read and validate a JSON config file.

    Raises :class:`Pi2MqttConfigError` if the file cannot be read or does not
    match :class:`ConfigFile`.
    """
    file_path = Path(path).expanduser()
    try:
        raw = json.loads(file_path.read_text(encoding="utf-8"))
    except OSError as exc:
        raise Pi2MqttConfigError(f"cannot read config file {file_path}: {exc}") from exc
    except ValueError as exc:
        raise Pi2MqttConfigError(f"invalid JSON in config file {file_path}: {exc}") from exc
    if not isinstance(raw, dict):
        raise Pi2MqttConfigError(f"config file {file_path} must contain a JSON object")
    try:
        return ConfigFile.model_validate(raw)
    except ValidationError as exc:
        raise Pi2MqttConfigError(f"invalid config file {file_path}: {exc}") from exc
