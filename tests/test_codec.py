from __future__ import annotations

import json

import pytest

from pi2mqtt.codec import (
    DecodeKind,
    PayloadMode,
    decode_command,
    decode_value,
    encode_connection_state,
    encode_input_state,
    encode_sensor_reading,
    format_number,
)


def test_plain_input_state_is_inverted() -> None:
    assert encode_input_state(0, PayloadMode.PLAIN) == "1"
    assert encode_input_state(1, PayloadMode.PLAIN) == "0"


def test_json_input_state_is_inverted_and_acked() -> None:
    assert encode_input_state(0, PayloadMode.JSON) == '{"val":true,"ack":true}'
    assert encode_input_state(1, PayloadMode.JSON) == '{"val":false,"ack":true}'


def test_sensor_reading_plain() -> None:
    assert encode_sensor_reading(21.437, PayloadMode.PLAIN) == "21.437"
    assert encode_sensor_reading(21.0, PayloadMode.PLAIN) == "21"
    assert encode_sensor_reading(-0.5, PayloadMode.PLAIN) == "-0.5"


def test_sensor_reading_json() -> None:
    assert encode_sensor_reading(21.437, PayloadMode.JSON) == '{"val":21.437}'
    assert encode_sensor_reading(0.0, PayloadMode.JSON) == '{"val":0}'


@pytest.mark.parametrize("value", [21.437, -10.125, 0.0, 85.0, 0.001])
def test_json_sensor_reading_reads_back(value: float) -> None:
    assert decode_value(encode_sensor_reading(value, PayloadMode.JSON)) == value


def test_connection_state_payloads() -> None:
    assert encode_connection_state(True, PayloadMode.PLAIN) == "true"
    assert encode_connection_state(False, PayloadMode.PLAIN) == "false"
    assert json.loads(encode_connection_state(True, PayloadMode.JSON)) == {"val": True}
    assert json.loads(encode_connection_state(False, PayloadMode.JSON)) == {"val": False}


def test_payload_mode_parse_accepts_structured() -> None:
    assert PayloadMode.parse("structured") is PayloadMode.JSON
    assert PayloadMode.parse("JSON") is PayloadMode.JSON
    assert PayloadMode.parse("plain") is PayloadMode.PLAIN
    with pytest.raises(ValueError):
        PayloadMode.parse("xml")


@pytest.mark.parametrize(
    ("payload", "kind", "value"),
    [
        (b'{"val":true}', DecodeKind.STRUCTURED, True),
        (b'{"val":0}', DecodeKind.STRUCTURED, False),
        (b'{"val":"0"}', DecodeKind.STRUCTURED, True),
        (b'{"val":null}', DecodeKind.STRUCTURED, False),
        (b'{"val":[]}', DecodeKind.STRUCTURED, True),
        (b"true", DecodeKind.LITERAL, True),
        (b"false", DecodeKind.LITERAL, False),
        (b"1", DecodeKind.NUMERIC, True),
        (b"0", DecodeKind.NUMERIC, False),
        (b"-3", DecodeKind.NUMERIC, True),
        (b" 12abc", DecodeKind.NUMERIC, True),
        (b'{"other":1}', DecodeKind.FALLBACK, False),
        (b"on", DecodeKind.FALLBACK, False),
        (b"", DecodeKind.FALLBACK, False),
        ("1", DecodeKind.NUMERIC, True),
        (b"1" * 5000, DecodeKind.NUMERIC, True),
        (b"-" + b"0" * 5000, DecodeKind.NUMERIC, False),
        (b"+0", DecodeKind.NUMERIC, False),
        (b'{"val":Infinity}', DecodeKind.FALLBACK, False),
        (b"NaN", DecodeKind.FALLBACK, False),
    ],
)
def test_decode_command_priority(payload: bytes | str, kind: DecodeKind, value: bool) -> None:
    decoded = decode_command(payload)

    assert decoded.kind is kind
    assert decoded.value is value
    assert decoded.level == (1 if value else 0)


@pytest.mark.parametrize("payload", [b"\xff\xfe", 7, 0, None, object(), [], 3.5])
def test_decode_command_is_total_for_non_text(payload: object) -> None:
    decoded = decode_command(payload)

    assert decoded.kind is DecodeKind.FALLBACK
    assert isinstance(decoded.value, bool)


def test_decode_command_non_text_truthiness() -> None:
    assert decode_command(b"\xff").value is True
    assert decode_command(0).value is False
    assert decode_command(None).value is False


def test_decode_command_never_raises_on_deep_json() -> None:
    decoded = decode_command("[" * 100000)

    assert decoded.value is False


def test_format_number() -> None:
    assert format_number(21.5) == "21.5"
    assert format_number(3) == "3"


def test_decode_value_plain_and_garbage() -> None:
    assert decode_value("21.5") == 21.5
    assert decode_value('{"val":true,"ack":true}') is True
    assert decode_value("not a number") is None
    assert decode_value(b"\xff") is None
