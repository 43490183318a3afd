"""1-Wire temperature sensors: sysfs access, record parsing and the poller.

The poller goes through three phases:

``BOOT_DELAY``
    wait ``w1_wait`` seconds so the kernel bus driver can settle
``DISCOVERY``
    list the devices directory once; family ``28-`` and ``10-`` entries are
    temperature sensors, everything else (bus masters) is ignored
``POLLING``
    read every sensor each ``w1_interval`` seconds and publish changes

A failed or empty discovery raises :class:`W1DiscoveryError`.
"""

from __future__ import annotations

import asyncio
import enum
import logging
import re
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path

from pi2mqtt.aliases import AliasTable
from pi2mqtt.capabilities import OneWireBus, Publisher
from pi2mqtt.codec import PayloadMode, encode_sensor_reading
from pi2mqtt.exceptions import W1DiscoveryError
from pi2mqtt.state.store import StateStore

_logger = logging.getLogger(__name__)

_RECORD_RE = re.compile(r"YES\n[0-9a-f\s]+t=(-?[0-9]+)\n")

# Intervals above this get an immediate first poll after discovery.
IMMEDIATE_POLL_THRESHOLD_S = 5.0


def w1_device_id(sensor: str) -> str:
    return f"w1/{sensor}"


def parse_w1_slave(text: str) -> float | None:
    """Temperature in degrees Celsius, or ``None`` if the record is unusable.

    A usable record has a ``YES`` CRC marker followed by ``t=<millidegrees>``.
    """
    match = _RECORD_RE.search(text)
    if match is None:
        return None
    return int(match.group(1)) / 1000


class SysfsOneWireBus:
    """Reads the kernel's w1 sysfs tree."""

    def __init__(self, path: str | Path = "/sys/bus/w1/devices/") -> None:
        self.path = Path(path)

    def list_devices(self) -> list[str]:
        return sorted(entry.name for entry in self.path.iterdir())

    def read_slave(self, sensor: str) -> str:
        return (self.path / sensor / "w1_slave").read_text(encoding="ascii", errors="replace")


@dataclass(frozen=True)
class SensorSet:
    """Temperature sensors found during discovery, by family code."""

    family_28: tuple[str, ...] = ()
    family_10: tuple[str, ...] = ()

    @classmethod
    def from_listing(cls, names: list[str]) -> SensorSet:
        return cls(
            family_28=tuple(name for name in names if name.startswith("28-")),
            family_10=tuple(name for name in names if name.startswith("10-")),
        )

    @property
    def sensors(self) -> tuple[str, ...]:
        """All sensors in poll order (family 28 first)."""
        return self.family_28 + self.family_10

    def __len__(self) -> int:
        return len(self.family_28) + len(self.family_10)


def discover_sensors(bus: OneWireBus, *, path: str = "") -> SensorSet:
    """List the bus once and partition the entries by family code.

    Raises :class:`W1DiscoveryError` if the listing fails or is empty.
    """
    try:
        names = bus.list_devices()
    except OSError as exc:
        raise W1DiscoveryError(f"error reading 1-Wire devices directory {path}: {exc}", path=path) from exc
    if not names:
        raise W1DiscoveryError(f"1-Wire devices directory {path} is empty", path=path)
    return SensorSet.from_listing(names)


class PollerPhase(enum.Enum):
    BOOT_DELAY = "boot_delay"
    DISCOVERY = "discovery"
    POLLING = "polling"


class OneWirePoller:
    """Polls discovered sensors and publishes changed readings."""

    def __init__(
        self,
        *,
        bus: OneWireBus,
        aliases: AliasTable,
        store: StateStore,
        publisher: Publisher,
        status_topic: str,
        mode: PayloadMode,
        retain: bool,
        wait: float,
        interval: float,
        max_concurrent_reads: int = 4,
        path: str = "",
        clock: Callable[[], float] | None = None,
    ) -> None:
        self._bus = bus
        self._aliases = aliases
        self._store = store
        self._publisher = publisher
        self._status_topic = status_topic
        self._mode = mode
        self._retain = retain
        self._wait = wait
        self._interval = interval
        self._max_concurrent_reads = max_concurrent_reads
        self._path = path
        self._clock = clock
        self.phase = PollerPhase.BOOT_DELAY
        self.sensors = SensorSet()

    def topic_for(self, sensor: str) -> str:
        return f"{self._status_topic}{self._aliases.resolve(w1_device_id(sensor))}"

    async def run(self) -> None:
        """Run all phases; only returns by cancellation or error."""
        self.phase = PollerPhase.BOOT_DELAY
        _logger.info("Waiting %s seconds before reading %s", self._wait, self._path)
        await asyncio.sleep(self._wait)

        self.phase = PollerPhase.DISCOVERY
        await self.discover()

        self.phase = PollerPhase.POLLING
        _logger.info(
            "found %d 1-Wire Temperature Sensors. Polling Interval %s seconds",
            len(self.sensors),
            self._interval,
        )
        loop = asyncio.get_running_loop()
        clock = self._clock or loop.time
        next_tick = clock() + self._interval
        if self._interval > IMMEDIATE_POLL_THRESHOLD_S:
            await self.poll_once()
        while True:
            delay = next_tick - clock()
            if delay > 0:
                await asyncio.sleep(delay)
            await self.poll_once()
            next_tick += self._interval
            if next_tick < clock():
                # A cycle overran; skip the missed ticks instead of bursting.
                missed = int((clock() - next_tick) // self._interval) + 1
                _logger.debug("1-Wire poll overran, skipping %d tick(s)", missed)
                next_tick += missed * self._interval

    async def discover(self) -> SensorSet:
        self.sensors = await asyncio.to_thread(discover_sensors, self._bus, path=self._path)
        return self.sensors

    async def _read(self, sensor: str, limit: asyncio.Semaphore) -> float | None:
        async with limit:
            try:
                text = await asyncio.to_thread(self._bus.read_slave, sensor)
            except OSError as exc:
                _logger.warning("error reading %s: %s", sensor, exc)
                return None
        value = parse_w1_slave(text)
        if value is None:
            _logger.warning("error reading %s: unusable record %r", sensor, text[:80])
        return value

    async def poll_once(self) -> int:
        """Read all sensors once and publish changes. Returns the publish count."""
        sensors = self.sensors.sensors
        if not sensors:
            return 0
        limit = asyncio.Semaphore(self._max_concurrent_reads)
        readings = await asyncio.gather(*(self._read(sensor, limit) for sensor in sensors))

        published = 0
        for sensor, value in zip(sensors, readings, strict=True):
            if value is None:
                continue
            if not self._store.should_publish(w1_device_id(sensor), value):
                continue
            topic = self.topic_for(sensor)
            payload = encode_sensor_reading(value, self._mode)
            _logger.debug("%s %s", topic, payload)
            self._publisher.publish(topic, payload, retain=self._retain)
            published += 1
        return published
