"""pi2mqtt - bridge Raspberry Pi GPIOs and 1-Wire sensors to MQTT."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("pi2mqtt")
except PackageNotFoundError:
    __version__ = "0+local"
from pi2mqtt.aliases import AliasTable
from pi2mqtt.bridge import Pi2MqttBridge
from pi2mqtt.codec import (
    DecodedCommand,
    DecodeKind,
    PayloadMode,
    decode_command,
    encode_connection_state,
    encode_input_state,
    encode_sensor_reading,
)
from pi2mqtt.config import BridgeConfig
from pi2mqtt.exceptions import (
    AliasSpecError,
    GpioError,
    MqttConnectionError,
    Pi2MqttConfigError,
    Pi2MqttError,
    W1DiscoveryError,
)
from pi2mqtt.state.store import StateStore

__all__ = [
    "__version__",
    "AliasSpecError",
    "AliasTable",
    "BridgeConfig",
    "DecodeKind",
    "DecodedCommand",
    "GpioError",
    "MqttConnectionError",
    "PayloadMode",
    "Pi2MqttBridge",
    "Pi2MqttConfigError",
    "Pi2MqttError",
    "StateStore",
    "W1DiscoveryError",
    "decode_command",
    "encode_connection_state",
    "encode_input_state",
    "encode_sensor_reading",
]
