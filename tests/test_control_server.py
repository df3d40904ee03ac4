"""Tests for the loopback UDP control channel."""

from __future__ import annotations

import asyncio

import pytest

from omnilyrics.services.control_server import (
    MAX_PAYLOAD_BYTES,
    ControlCommand,
    ControlServer,
    parse_command,
    send_command,
)


def _run(coro):
    """Run async control scenario from sync test functions."""
    return asyncio.run(coro)


class RecordingTarget:
    def __init__(self) -> None:
        self.calls: list[tuple[object, ...]] = []

    async def play(self) -> None:
        self.calls.append(("play",))

    async def pause(self) -> None:
        self.calls.append(("pause",))

    async def toggle(self) -> None:
        self.calls.append(("toggle",))

    async def next(self) -> None:
        self.calls.append(("next",))

    async def previous(self) -> None:
        self.calls.append(("previous",))

    async def seek(self, position_s: float) -> None:
        self.calls.append(("seek", position_s))


@pytest.mark.parametrize(
    ("payload", "expected"),
    [
        (b"play", ControlCommand("play")),
        (b"PAUSE\n", ControlCommand("pause")),
        (b" toggle ", ControlCommand("toggle")),
        (b"next", ControlCommand("next")),
        (b"prev", ControlCommand("prev")),
        (b"seek 30", ControlCommand("seek", 30.0)),
        (b"seek 12.5", ControlCommand("seek", 12.5)),
    ],
)
def test_parse_command_accepts_grammar(payload, expected) -> None:
    assert parse_command(payload) == expected


@pytest.mark.parametrize(
    "payload",
    [
        b"",
        b"   ",
        b"stop",
        b"play now",
        b"seek",
        b"seek 1 2",
        b"seek ten",
        b"seek -5",
        b"seek nan",
        b"seek inf",
        b"\xff\xfe",
        b"play" + b" " * MAX_PAYLOAD_BYTES,
    ],
)
def test_parse_command_rejects_garbage(payload) -> None:
    assert parse_command(payload) is None


def test_command_payload_matches_parse_grammar() -> None:
    assert ControlCommand("seek", 42.5).to_payload() == b"seek 42.5"
    assert ControlCommand("prev").to_payload() == b"prev"
    assert parse_command(ControlCommand("seek", 90.0).to_payload()) == ControlCommand(
        "seek", 90.0
    )


@pytest.mark.parametrize("seconds", [1234.567, 3599.999, 0.125, 86400.5])
def test_seek_payload_keeps_full_precision(seconds) -> None:
    payload = ControlCommand("seek", seconds).to_payload()
    assert payload == f"seek {seconds!r}".encode()
    assert parse_command(payload) == ControlCommand("seek", seconds)


def test_seek_payload_defaults_to_zero() -> None:
    assert ControlCommand("seek").to_payload() == b"seek 0.0"
    assert parse_command(b"seek 0.0") == ControlCommand("seek", 0.0)


def test_datagrams_route_to_target_commands() -> None:
    target = RecordingTarget()

    async def run() -> None:
        server = ControlServer(target)
        server.handle_datagram(b"seek 30", ("127.0.0.1", 5555))
        server.handle_datagram(b"prev", ("127.0.0.1", 5555))
        server.handle_datagram(b"bogus", ("127.0.0.1", 5555))
        await asyncio.sleep(0.01)
        await server.shutdown()

    _run(run())
    assert target.calls == [("seek", 30.0), ("previous",)]


def test_failing_command_is_logged(caplog) -> None:
    class BrokenTarget(RecordingTarget):
        async def play(self) -> None:
            raise RuntimeError("no player")

    async def run() -> None:
        server = ControlServer(BrokenTarget())
        server.handle_datagram(b"play", ("127.0.0.1", 5555))
        await asyncio.sleep(0.01)
        await server.shutdown()

    _run(run())
    assert any("Control command play failed" in r.getMessage() for r in caplog.records)


def test_udp_round_trip_on_loopback() -> None:
    target = RecordingTarget()

    async def run() -> None:
        server = ControlServer(target, port=0)
        await server.start()
        address = server.address
        assert address is not None
        host, port = address
        assert host == "127.0.0.1"
        send_command(ControlCommand("next"), port=port)
        send_command(ControlCommand("seek", 7.0), port=port)
        for _ in range(100):
            if len(target.calls) == 2:
                break
            await asyncio.sleep(0.01)
        await server.shutdown()
        assert server.address is None

    _run(run())
    assert target.calls == [("next",), ("seek", 7.0)]
