from __future__ import annotations

import asyncio
import json
import os
from pathlib import Path
from typing import Any

import pytest

from pi2mqtt import cli
from pi2mqtt.config import load_config_file
from pi2mqtt.exceptions import W1DiscoveryError


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    for key in list(os.environ):
        if key.startswith("PI2MQTT_"):
            monkeypatch.delenv(key)
    monkeypatch.setenv("HOME", str(tmp_path))


class _FailingBridge:
    def __init__(self, config: Any) -> None:
        self.config = config

    async def __aenter__(self) -> _FailingBridge:
        return self

    async def __aexit__(self, *exc: Any) -> None:
        return None

    async def run_until_stopped(self, stop: asyncio.Event) -> None:
        raise W1DiscoveryError("1-Wire devices directory /sys/bus/w1/devices/ is empty")


class _StoppingBridge(_FailingBridge):
    seen: list[Any] = []

    async def run_until_stopped(self, stop: asyncio.Event) -> None:
        _StoppingBridge.seen.append(self.config)


def test_parser_accepts_repeated_options() -> None:
    args = cli.build_parser().parse_args(
        ["-w", "-i", "17", "-i", "18", "-o", "23", "-a", "gpio/17:Light/Garden", "--no-retain", "-t", ""]
    )

    config = cli.resolve_config(args)

    assert config.inputs == (17, 18)
    assert config.outputs == (23,)
    assert config.aliases == ("gpio/17:Light/Garden",)
    assert config.retain is False
    assert config.status_topic == ""
    assert config.w1_enabled is False


def test_precedence_cli_over_file_over_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setenv("PI2MQTT_URL", "mqtt://from-env")
    monkeypatch.setenv("PI2MQTT_PAYLOAD", "json")
    monkeypatch.setenv("PI2MQTT_W1_INTERVAL", "15")
    path = tmp_path / "config.json"
    path.write_text(json.dumps({"url": "mqtt://from-file", "w1-interval": 45}))

    args = cli.build_parser().parse_args(["-c", str(path), "-n", "90"])
    config = cli.resolve_config(args, load_config_file(path))

    assert config.url == "mqtt://from-file"
    assert config.payload == "json"
    assert config.w1_interval == 90.0


def test_invalid_payload_exits_with_config_error() -> None:
    assert cli.main(["-w", "-p", "xml"]) == cli.EXIT_CONFIG_ERROR


def test_malformed_alias_exits_before_connecting(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(cli, "Pi2MqttBridge", _FailingBridge)

    assert cli.main(["-w", "-a", "gpio/17"]) == cli.EXIT_CONFIG_ERROR


def test_missing_explicit_config_file(tmp_path: Path) -> None:
    assert cli.main(["-c", str(tmp_path / "nope.json")]) == cli.EXIT_CONFIG_ERROR


def test_w1_discovery_failure_has_its_own_exit_code(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(cli, "Pi2MqttBridge", _FailingBridge)

    assert cli.main(["-s", "0"]) == cli.EXIT_W1_DISCOVERY_ERROR


def test_default_config_file_is_picked_up(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    config_dir = tmp_path / ".pi2mqtt"
    config_dir.mkdir()
    (config_dir / "config.json").write_text(json.dumps({"input": 4, "w1-disable": True}))
    _StoppingBridge.seen.clear()
    monkeypatch.setattr(cli, "Pi2MqttBridge", _StoppingBridge)

    assert cli.main([]) == cli.EXIT_OK
    assert _StoppingBridge.seen[-1].inputs == (4,)
    assert _StoppingBridge.seen[-1].w1_enabled is False


def test_log_file_is_created(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setattr(cli, "Pi2MqttBridge", _StoppingBridge)
    log_path = tmp_path / "logs" / "daemon.log"

    assert cli.main(["-w", "-v", "info", "-l", str(log_path)]) == cli.EXIT_OK
    assert "started with pid" in log_path.read_text()
