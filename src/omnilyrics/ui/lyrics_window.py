"""Timed lyric window rendering.

`LyricsWindowRenderer` polls on its own interval rather than reacting to
playback notifications, so the window keeps scrolling between the sparse
authoritative position updates a source provides.
"""

from __future__ import annotations

import asyncio
import bisect
import logging
from collections.abc import Callable, Sequence
from contextlib import suppress

from ..services.lyrics_service import LyricLine
from ..services.playback_source import PlaybackState
from ..services.position import PositionExtrapolator
from ..services.song_change import LyricsSession
from .output_sink import HEADER_LINES, OutputSink

logger = logging.getLogger(__name__)

CURRENT_MARKER = ">> "
OTHER_MARKER = "   "


def resolve_center_index(lines: Sequence[LyricLine], position_s: float) -> int:
    """Return the last line index whose timestamp is <= position, or -1."""
    timestamps = [line.timestamp_s for line in lines]
    return bisect.bisect_right(timestamps, position_s) - 1


def compute_window(center: int, count: int, size: int) -> range:
    """Return the visible index range around `center`, clamped to ``[0, count)``.

    The window holds ``min(size, count)`` indices and keeps the center line in
    its upper half while room allows.
    """
    if count <= 0 or size <= 0:
        return range(0)
    anchor = max(center, 0)
    start = max(0, anchor - size // 2)
    end = min(count - 1, start + size - 1)
    start = max(0, end - (size - 1))
    return range(start, end + 1)


def format_window(lines: Sequence[LyricLine], center: int, size: int) -> list[str]:
    return [
        f"{CURRENT_MARKER if i == center else OTHER_MARKER}{lines[i].text}"
        for i in compute_window(center, len(lines), size)
    ]


class LyricsWindowRenderer:
    """Map the extrapolated position to a lyric window and redraw on change."""

    def __init__(
        self,
        *,
        sink: OutputSink,
        state_provider: Callable[[], PlaybackState | None],
        session_provider: Callable[[], LyricsSession],
        extrapolator: PositionExtrapolator | None = None,
        window_size: int = 6,
        interval_s: float = 0.05,
        start_line: int = HEADER_LINES,
    ) -> None:
        if window_size < 1:
            raise ValueError("window_size must be >= 1")
        self._sink = sink
        self._state_provider = state_provider
        self._session_provider = session_provider
        self._extrapolator = extrapolator or PositionExtrapolator()
        self._window_size = window_size
        self._interval = interval_s
        self._start_line = start_line
        self._last_drawn: tuple[int, int | None] | None = None
        self._task: asyncio.Task[None] | None = None

    @property
    def last_drawn(self) -> tuple[int, int | None] | None:
        """(generation, center index) of the most recent redraw.

        The center is None when the window was blanked for a song without
        lyrics.
        """
        return self._last_drawn

    async def start(self) -> None:
        if self._task is None:
            self._task = asyncio.create_task(self._tick_loop())

    async def shutdown(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        with suppress(asyncio.CancelledError):
            await self._task
        self._task = None

    async def tick(self) -> bool:
        """Render one frame; returns True when the window was redrawn."""
        session = self._session_provider()
        lines = session.lines
        if not lines:
            return await self._clear_stale(session.generation)
        state = self._state_provider()
        self._extrapolator.observe(state)
        position = self._extrapolator.estimate()
        if position is None:
            return False
        center = resolve_center_index(lines, position)
        key = (session.generation, center)
        if key == self._last_drawn:
            return False
        self._last_drawn = key
        rendered = format_window(lines, center, self._window_size)
        # Pad so a shorter window overwrites what a previous song left behind.
        rendered.extend([""] * (self._window_size - len(rendered)))
        await self._sink.write_lines(self._start_line, rendered)
        return True

    async def _clear_stale(self, generation: int) -> bool:
        # Blank the rows once per song so the previous song's lyrics go away.
        if self._last_drawn is None or self._last_drawn[0] == generation:
            return False
        self._last_drawn = (generation, None)
        await self._sink.write_lines(self._start_line, [""] * self._window_size)
        return True

    async def _tick_loop(self) -> None:
        try:
            while True:
                try:
                    await self.tick()
                except Exception:
                    logger.exception("Lyrics render tick failed")
                await asyncio.sleep(self._interval)
        except asyncio.CancelledError:
            pass
