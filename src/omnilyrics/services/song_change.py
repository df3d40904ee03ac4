"""Song-change detection and lyric loading for the unified playback stream.

The detector commits a new song identity under its lock, then releases the
lock before any I/O. Lyrics are fetched in a separate task, so a slow lookup
never stalls the dispatcher or the renderer. A fetch that finishes after a
newer song was committed is discarded.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from contextlib import suppress
from dataclasses import dataclass, replace
from typing import Literal

from ..utils.time_format import format_time_s
from .lyrics_service import LyricLine, LyricsProvider
from .playback_source import PlaybackState, song_identity

logger = logging.getLogger(__name__)

DetectorStatus = Literal["idle", "loading", "ready"]
HeaderWriter = Callable[[str, str, str], Awaitable[None]]

SEARCHING_TEXT = "Searching lyrics..."
NO_LYRICS_TEXT = "(No lyrics found)"


@dataclass(frozen=True)
class LyricsSession:
    """Committed song plus its lyrics; replaced wholesale on every commit.

    `generation` increments on each commit so renderers can tell a new song
    apart from a repeated window index.
    """

    generation: int = 0
    identity: str | None = None
    state: PlaybackState | None = None
    status: DetectorStatus = "idle"
    lines: tuple[LyricLine, ...] | None = None


def now_playing_line(state: PlaybackState) -> str:
    line = f"{state.artist_line} - {state.title or 'Unknown Title'}"
    if state.duration_s > 0:
        line = f"{line} [{format_time_s(state.duration_s)}]"
    return line


class SongChangeDetector:
    """Idle -> Loading -> Ready state machine keyed on `song_identity`."""

    def __init__(
        self,
        *,
        search_lyrics: LyricsProvider,
        write_header: HeaderWriter | None = None,
    ) -> None:
        self._search_lyrics = search_lyrics
        self._write_header = write_header
        self._lock = asyncio.Lock()
        self._session = LyricsSession()
        self._fetch_task: asyncio.Task[None] | None = None

    @property
    def session(self) -> LyricsSession:
        return self._session

    @property
    def status(self) -> DetectorStatus:
        return self._session.status

    @property
    def committed_identity(self) -> str | None:
        return self._session.identity

    async def handle_state(self, state: PlaybackState | None) -> bool:
        """Commit a new song when `state` is playing a different track.

        Returns True when a new identity was committed and a lyric fetch
        started.
        """
        if state is None or not state.playing:
            return False
        identity = song_identity(state)
        if identity == self._session.identity:
            return False
        async with self._lock:
            if identity == self._session.identity:
                return False
            generation = self._session.generation + 1
            self._session = LyricsSession(
                generation=generation,
                identity=identity,
                state=state,
                status="loading",
            )
        logger.info("Song changed: %s (generation %d)", identity, generation)
        previous = self._fetch_task
        if previous is not None and not previous.done():
            previous.cancel()
        self._fetch_task = asyncio.create_task(self._load_lyrics(generation, state))
        return True

    async def wait_loaded(self) -> None:
        """Wait for the outstanding lyric fetch, if any."""
        task = self._fetch_task
        if task is not None:
            with suppress(asyncio.CancelledError):
                await task

    async def shutdown(self) -> None:
        task = self._fetch_task
        self._fetch_task = None
        if task is not None and not task.done():
            task.cancel()
            with suppress(asyncio.CancelledError):
                await task

    async def _load_lyrics(self, generation: int, state: PlaybackState) -> None:
        title_line = now_playing_line(state)
        await self._header(title_line, SEARCHING_TEXT)
        lines: list[LyricLine] | None
        try:
            lines = await self._search_lyrics(state)
        except Exception:
            logger.exception("Lyrics lookup failed for %s", title_line)
            lines = None
        async with self._lock:
            if self._session.generation != generation:
                logger.debug("Discarding lyrics for superseded song %s", title_line)
                return
            self._session = replace(
                self._session,
                status="ready",
                lines=tuple(lines) if lines else None,
            )
        await self._header(title_line, "" if lines else NO_LYRICS_TEXT)

    async def _header(self, title_line: str, status_line: str) -> None:
        if self._write_header is None:
            return
        try:
            await self._write_header("Now Playing:", title_line, status_line)
        except Exception:
            logger.exception("Failed to write header")
