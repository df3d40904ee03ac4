"""Loopback UDP remote control.

Payloads are UTF-8 text: ``play | pause | toggle | next | prev | seek <seconds>``.
The protocol has no reply channel, so unknown or malformed payloads are
dropped without notice and commands run fire-and-forget.
"""

from __future__ import annotations

import asyncio
import logging
import math
import socket
from dataclasses import dataclass
from typing import Literal, Protocol, cast

logger = logging.getLogger(__name__)

ControlAction = Literal["play", "pause", "toggle", "next", "prev", "seek"]
CONTROL_ACTIONS: tuple[ControlAction, ...] = (
    "play",
    "pause",
    "toggle",
    "next",
    "prev",
    "seek",
)
DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 32651
MAX_PAYLOAD_BYTES = 256


@dataclass(frozen=True)
class ControlCommand:
    action: ControlAction
    seconds: float | None = None

    def to_payload(self) -> bytes:
        if self.action == "seek":
            # repr is the shortest text that parses back to the same float.
            return f"seek {float(self.seconds or 0)!r}".encode()
        return self.action.encode()


class CommandTarget(Protocol):
    """Command surface exposed by `SourceOrchestrator`."""

    async def play(self) -> None: ...

    async def pause(self) -> None: ...

    async def toggle(self) -> None: ...

    async def next(self) -> None: ...

    async def previous(self) -> None: ...

    async def seek(self, position_s: float) -> None: ...


def parse_command(payload: bytes) -> ControlCommand | None:
    """Decode a datagram into a command, or None when it is not recognized."""
    if len(payload) > MAX_PAYLOAD_BYTES:
        return None
    try:
        text = payload.decode("utf-8")
    except UnicodeDecodeError:
        return None
    parts = text.strip().lower().split()
    if not parts:
        return None
    action, args = parts[0], parts[1:]
    if action == "seek":
        if len(args) != 1:
            return None
        try:
            seconds = float(args[0])
        except ValueError:
            return None
        if not math.isfinite(seconds) or seconds < 0:
            return None
        return ControlCommand("seek", seconds)
    if args:
        return None
    if action in CONTROL_ACTIONS:
        return ControlCommand(cast(ControlAction, action))
    return None


async def execute_command(target: CommandTarget, command: ControlCommand) -> None:
    if command.action == "play":
        await target.play()
    elif command.action == "pause":
        await target.pause()
    elif command.action == "toggle":
        await target.toggle()
    elif command.action == "next":
        await target.next()
    elif command.action == "prev":
        await target.previous()
    elif command.action == "seek" and command.seconds is not None:
        await target.seek(command.seconds)


class _ControlProtocol(asyncio.DatagramProtocol):
    def __init__(self, server: ControlServer) -> None:
        self._server = server

    def datagram_received(self, data: bytes, addr: tuple[str, int]) -> None:
        self._server.handle_datagram(data, addr)

    def error_received(self, exc: Exception) -> None:
        logger.debug("Control socket error: %s", exc)


class ControlServer:
    """Datagram listener translating text commands into orchestrator calls."""

    def __init__(
        self,
        target: CommandTarget,
        *,
        host: str = DEFAULT_HOST,
        port: int = DEFAULT_PORT,
    ) -> None:
        self._target = target
        self._host = host
        self._port = port
        self._transport: asyncio.DatagramTransport | None = None
        self._pending: set[asyncio.Task[None]] = set()

    @property
    def address(self) -> tuple[str, int] | None:
        if self._transport is None:
            return None
        sockname = self._transport.get_extra_info("sockname")
        return (sockname[0], sockname[1]) if sockname else None

    async def start(self) -> None:
        if self._transport is not None:
            return
        loop = asyncio.get_running_loop()
        transport, _protocol = await loop.create_datagram_endpoint(
            lambda: _ControlProtocol(self),
            local_addr=(self._host, self._port),
        )
        self._transport = transport
        logger.info("Control server listening on %s:%d", self._host, self._port)

    async def shutdown(self) -> None:
        if self._transport is not None:
            self._transport.close()
            self._transport = None
        for task in list(self._pending):
            task.cancel()
        if self._pending:
            await asyncio.gather(*self._pending, return_exceptions=True)
        self._pending.clear()

    def handle_datagram(self, data: bytes, addr: tuple[str, int]) -> None:
        command = parse_command(data)
        if command is None:
            logger.debug("Dropping unrecognized control payload from %s", addr)
            return
        logger.debug("Control command from %s: %s", addr, command)
        task = asyncio.create_task(self._run(command))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _run(self, command: ControlCommand) -> None:
        try:
            await execute_command(self._target, command)
        except Exception:
            logger.exception("Control command %s failed", command.action)


def send_command(
    command: ControlCommand, *, host: str = DEFAULT_HOST, port: int = DEFAULT_PORT
) -> None:
    """Send one command datagram; there is no acknowledgement to wait for."""
    with socket.socket(socket.AF_INET, socket.SOCK_DGRAM) as sock:
        sock.sendto(command.to_payload(), (host, port))
