from __future__ import annotations

from _fakes import FakeLine, FakePublisher

from pi2mqtt.aliases import AliasTable
from pi2mqtt.outputs import OutputDispatcher, parse_gpio_id


def _dispatcher(lines: dict[int, FakeLine], aliases: list[str] | None = None) -> OutputDispatcher:
    return OutputDispatcher(
        lines=lines,
        aliases=AliasTable.from_specs(aliases or []),
        set_topic="home/set/",
    )


def test_structured_true_drives_pin_high() -> None:
    line = FakeLine(23)
    dispatcher = _dispatcher({23: line})

    assert dispatcher.handle_message("home/set/gpio/23", b'{"val":true}') == 1
    assert line.writes == [1]


def test_plain_payloads() -> None:
    line = FakeLine(23)
    dispatcher = _dispatcher({23: line})

    dispatcher.handle_message("home/set/gpio/23", b"1")
    dispatcher.handle_message("home/set/gpio/23", b"false")
    dispatcher.handle_message("home/set/gpio/23", b"garbage")
    dispatcher.handle_message("home/set/gpio/23", b"true")

    assert line.writes == [1, 0, 0, 1]


def test_aliased_topic_is_resolved() -> None:
    line = FakeLine(17)
    dispatcher = _dispatcher({17: line}, aliases=["gpio/17:Light/Garden"])

    assert dispatcher.subscription_topics() == ["home/set/Light/Garden"]
    assert dispatcher.handle_message("home/set/Light/Garden", b"1") == 1
    assert line.writes == [1]


def test_unconfigured_pin_is_ignored() -> None:
    line = FakeLine(23)
    dispatcher = _dispatcher({23: line})

    assert dispatcher.handle_message("home/set/gpio/24", b"1") is None
    assert line.writes == []


def test_foreign_or_malformed_topics_are_ignored() -> None:
    line = FakeLine(23)
    dispatcher = _dispatcher({23: line})

    assert dispatcher.handle_message("other/set/gpio/23", b"1") is None
    assert dispatcher.handle_message("home/set/gpio/23/x", b"1") is None
    assert dispatcher.handle_message("home/set/gpio/", b"1") is None
    assert dispatcher.handle_message("home/set/w1/28-0001", b"1") is None
    assert line.writes == []


def test_write_failure_is_swallowed_and_not_retried() -> None:
    line = FakeLine(23, fail=True)
    dispatcher = _dispatcher({23: line})

    assert dispatcher.handle_message("home/set/gpio/23", b"1") is None


def test_subscribe_all() -> None:
    publisher = FakePublisher()
    dispatcher = _dispatcher({23: FakeLine(23), 24: FakeLine(24)})

    dispatcher.subscribe_all(publisher)

    assert publisher.subscriptions == ["home/set/gpio/23", "home/set/gpio/24"]
    assert publisher.published == []


def test_parse_gpio_id() -> None:
    assert parse_gpio_id("gpio/23") == 23
    assert parse_gpio_id("gpio/007") == 7
    assert parse_gpio_id("gpio/2a") is None
    assert parse_gpio_id("gpio/-1") is None
    assert parse_gpio_id("w1/28-1") is None


def test_overlong_numeric_payload_is_written() -> None:
    line = FakeLine(23)
    dispatcher = _dispatcher({23: line})

    assert dispatcher.handle_message("home/set/gpio/23", b"1" * 5000) == 1
    assert dispatcher.handle_message("home/set/gpio/23", b"0" * 5000) == 0
    assert line.writes == [1, 0]
