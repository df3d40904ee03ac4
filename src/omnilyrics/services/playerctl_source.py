"""MPRIS desktop media-session source driven through the ``playerctl`` CLI."""

from __future__ import annotations

import asyncio
import logging
import shutil
import sys
import time
from collections.abc import Callable
from contextlib import suppress
from dataclasses import replace

from .playback_source import PlaybackState, StateHandler

logger = logging.getLogger(__name__)

FIELD_SEPARATOR = "\x1f"
FOLLOW_FIELDS = (
    "status",
    "playerName",
    "title",
    "artist",
    "album",
    "mpris:length",
    "position",
    "mpris:artUrl",
)
FOLLOW_FORMAT = FIELD_SEPARATOR.join(f"{{{{{name}}}}}" for name in FOLLOW_FIELDS)
RESTART_DELAY_S = 1.0


def playerctl_supported() -> bool:
    return sys.platform.startswith("linux")


def playerctl_binary() -> str | None:
    return shutil.which("playerctl")


async def list_players(binary: str = "playerctl") -> list[str]:
    """Return MPRIS player names known to playerctl (may be empty)."""
    proc = await asyncio.create_subprocess_exec(
        binary,
        "--list-all",
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.DEVNULL,
    )
    stdout, _ = await proc.communicate()
    if proc.returncode != 0:
        return []
    lines = stdout.decode("utf-8", "replace").splitlines()
    return [line.strip() for line in lines if line.strip()]


def parse_follow_line(line: str, *, captured_at: float) -> PlaybackState | None:
    """Parse one ``--follow`` output line; an empty line means no player."""
    if not line.strip():
        return None
    fields = line.rstrip("\r\n").split(FIELD_SEPARATOR)
    if len(fields) != len(FOLLOW_FIELDS):
        raise ValueError(f"unexpected playerctl output: {line!r}")
    status, player, title, artist, album, length_us, position_us, art_url = fields
    duration_s = _micros_to_seconds(length_us)
    # playerctl joins multi-valued xesam:artist with ", ", which is ambiguous
    # against names such as "Tyler, The Creator"; keep the field whole.
    return PlaybackState(
        title=title or None,
        album=album or None,
        artists=(artist.strip(),) if artist.strip() else (),
        position_s=_micros_to_seconds(position_us),
        duration_s=duration_s,
        playing=status.strip().lower() == "playing",
        source=f"mpris:{player}" if player else "mpris",
        artwork_url=art_url or None,
        captured_at=captured_at,
    )


def _micros_to_seconds(value: str) -> float:
    try:
        return max(0, int(value.strip())) / 1_000_000
    except ValueError:
        return 0.0


class PlayerctlPlaybackSource:
    """Follow an MPRIS player via ``playerctl --follow``.

    Many MPRIS players never publish position updates, so a periodic
    ``playerctl position`` resync refreshes the extrapolation baseline
    without notifying subscribers.
    """

    variant = "playerctl"

    def __init__(
        self,
        *,
        player: str | None = None,
        binary: str = "playerctl",
        resync_interval_s: float = 2.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._player = player
        self._binary = binary
        self._resync_interval = resync_interval_s
        self._clock = clock
        self._handler: StateHandler | None = None
        self._state: PlaybackState | None = None
        self._proc: asyncio.subprocess.Process | None = None
        self._follow_task: asyncio.Task[None] | None = None
        self._resync_task: asyncio.Task[None] | None = None

    def set_state_handler(self, handler: StateHandler | None) -> None:
        self._handler = handler

    def current_state(self) -> PlaybackState | None:
        return self._state

    async def start(self) -> None:
        if self._follow_task is not None:
            return
        self._follow_task = asyncio.create_task(self._follow_loop())
        self._resync_task = asyncio.create_task(self._resync_loop())

    async def shutdown(self) -> None:
        for task in (self._follow_task, self._resync_task):
            if task is not None:
                task.cancel()
                with suppress(asyncio.CancelledError):
                    await task
        self._follow_task = None
        self._resync_task = None
        await self._kill_follower()

    async def play(self) -> None:
        await self._run("play")

    async def pause(self) -> None:
        await self._run("pause")

    async def toggle(self) -> None:
        await self._run("play-pause")

    async def next(self) -> None:
        await self._run("next")

    async def previous(self) -> None:
        await self._run("previous")

    async def seek(self, position_s: float) -> None:
        await self._run("position", f"{max(0.0, float(position_s)):.3f}")

    async def handle_line(self, line: str) -> None:
        try:
            state = parse_follow_line(line, captured_at=self._clock())
        except ValueError as exc:
            logger.debug("Ignoring playerctl line: %s", exc)
            return
        await self._publish(state)

    def _base_args(self) -> list[str]:
        args = [self._binary]
        if self._player:
            args.append(f"--player={self._player}")
        return args

    async def _follow_loop(self) -> None:
        try:
            while True:
                try:
                    self._proc = await asyncio.create_subprocess_exec(
                        *self._base_args(),
                        "--follow",
                        "metadata",
                        "--format",
                        FOLLOW_FORMAT,
                        stdout=asyncio.subprocess.PIPE,
                        stderr=asyncio.subprocess.DEVNULL,
                    )
                except OSError as exc:
                    logger.warning("Failed to launch playerctl: %s", exc)
                else:
                    assert self._proc.stdout is not None
                    async for raw in self._proc.stdout:
                        await self.handle_line(raw.decode("utf-8", "replace"))
                    await self._proc.wait()
                    logger.debug(
                        "playerctl follower exited (%s)", self._proc.returncode
                    )
                await self._publish(None)
                await asyncio.sleep(RESTART_DELAY_S)
        except asyncio.CancelledError:
            pass

    async def _resync_loop(self) -> None:
        try:
            while True:
                await asyncio.sleep(self._resync_interval)
                await self.resync_position()
        except asyncio.CancelledError:
            pass

    async def resync_position(self) -> None:
        """Refresh the cached position from `playerctl position`."""
        before = self._state
        if before is None:
            return
        try:
            output = await self._run("position")
            position_s = float(output.strip())
        except (OSError, RuntimeError, ValueError) as exc:
            logger.debug("Position resync failed: %s", exc)
            return
        # A follow line that landed during the query belongs to a newer track.
        if self._state is before:
            self._state = replace(
                before, position_s=position_s, captured_at=self._clock()
            )

    async def _run(self, *command: str) -> str:
        proc = await asyncio.create_subprocess_exec(
            *self._base_args(),
            *command,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
        stdout, stderr = await proc.communicate()
        if proc.returncode != 0:
            detail = stderr.decode("utf-8", "replace").strip()
            raise RuntimeError(
                f"playerctl {' '.join(command)} failed (exit={proc.returncode})"
                + (f": {detail}" if detail else "")
            )
        return stdout.decode("utf-8", "replace")

    async def _publish(self, state: PlaybackState | None) -> None:
        previous = self._state
        self._state = state
        if state is None:
            if previous is not None:
                logger.info("MPRIS player disappeared")
                await self._emit(None)
            return
        if not state.same_material(previous):
            await self._emit(state)

    async def _kill_follower(self) -> None:
        proc = self._proc
        self._proc = None
        if proc is None or proc.returncode is not None:
            return
        with suppress(ProcessLookupError):
            proc.kill()
        await proc.wait()

    async def _emit(self, state: PlaybackState | None) -> None:
        if self._handler is None:
            return
        await self._handler(state)

