"""Fake playback source for deterministic testing and offline demos."""

from __future__ import annotations

import asyncio
import time
from collections.abc import Callable, Sequence
from contextlib import suppress
from dataclasses import dataclass, replace

from .playback_source import PlaybackState, StateHandler


@dataclass(frozen=True)
class FakeTrack:
    title: str
    artists: tuple[str, ...]
    duration_s: float
    album: str | None = None


DEFAULT_PLAYLIST = (
    FakeTrack("Demo Song", ("Omni Band",), 180.0, album="Demo Album"),
    FakeTrack("Second Demo", ("Omni Band", "Guest"), 150.0, album="Demo Album"),
)


class FakePlaybackSource:
    """In-memory source that simulates a player walking a playlist.

    Position advances on a ticker like a real player; notifications are only
    emitted for material changes (track, play/pause, seek), never for the
    ticker itself.
    """

    variant = "fake"

    def __init__(
        self,
        *,
        playlist: Sequence[FakeTrack] = DEFAULT_PLAYLIST,
        tick_interval_ms: int = 250,
        autoplay: bool = True,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if not playlist:
            raise ValueError("playlist must not be empty")
        self._playlist = list(playlist)
        self._tick_interval_ms = tick_interval_ms
        self._autoplay = autoplay
        self._clock = clock
        self._index = 0
        self._state: PlaybackState | None = None
        self._handler: StateHandler | None = None
        self._lock = asyncio.Lock()
        self._stop_event = asyncio.Event()
        self._task: asyncio.Task[None] | None = None

    def set_state_handler(self, handler: StateHandler | None) -> None:
        self._handler = handler

    def current_state(self) -> PlaybackState | None:
        return self._state

    async def start(self) -> None:
        if self._task is not None:
            return
        self._stop_event.clear()
        async with self._lock:
            self._state = self._track_state(0.0, playing=self._autoplay)
            state = self._state
        await self._emit(state)
        self._task = asyncio.create_task(self._ticker_loop())

    async def shutdown(self) -> None:
        if self._task is None:
            return
        self._stop_event.set()
        self._task.cancel()
        with suppress(asyncio.CancelledError):
            await self._task
        self._task = None

    async def disappear(self) -> None:
        """Simulate the player process going away."""
        async with self._lock:
            self._state = None
        await self._emit(None)

    async def play(self) -> None:
        await self._set_playing(True)

    async def pause(self) -> None:
        await self._set_playing(False)

    async def toggle(self) -> None:
        async with self._lock:
            playing = self._state is not None and self._state.playing
        await self._set_playing(not playing)

    async def next(self) -> None:
        await self._change_track(1)

    async def previous(self) -> None:
        await self._change_track(-1)

    async def seek(self, position_s: float) -> None:
        async with self._lock:
            if self._state is None:
                return
            self._state = replace(
                self._state, position_s=position_s, captured_at=self._clock()
            )
            state = self._state
        await self._emit(state)

    async def _set_playing(self, playing: bool) -> None:
        async with self._lock:
            if self._state is None or self._state.playing == playing:
                return
            self._state = replace(
                self._state,
                position_s=self._advanced_position(self._state),
                playing=playing,
                captured_at=self._clock(),
            )
            state = self._state
        await self._emit(state)

    async def _change_track(self, step: int) -> None:
        async with self._lock:
            self._index = (self._index + step) % len(self._playlist)
            playing = self._state.playing if self._state is not None else True
            self._state = self._track_state(0.0, playing=playing)
            state = self._state
        await self._emit(state)

    async def _ticker_loop(self) -> None:
        try:
            while not self._stop_event.is_set():
                await asyncio.sleep(self._tick_interval_ms / 1000)
                await self._tick()
        except asyncio.CancelledError:
            pass

    async def _tick(self) -> None:
        async with self._lock:
            state = self._state
            if state is None or not state.playing:
                return
            position = self._advanced_position(state)
            if state.duration_s <= 0 or position < state.duration_s:
                # Silent baseline refresh, as a polling source would do.
                self._state = replace(
                    state, position_s=position, captured_at=self._clock()
                )
                return
        await self._change_track(1)

    def _advanced_position(self, state: PlaybackState) -> float:
        if not state.playing:
            return state.position_s
        return state.position_s + max(0.0, self._clock() - state.captured_at)

    def _track_state(self, position_s: float, *, playing: bool) -> PlaybackState:
        track = self._playlist[self._index]
        return PlaybackState(
            title=track.title,
            album=track.album,
            artists=track.artists,
            position_s=position_s,
            duration_s=track.duration_s,
            playing=playing,
            source=self.variant,
            captured_at=self._clock(),
        )

    async def _emit(self, state: PlaybackState | None) -> None:
        if self._handler is None:
            return
        await self._handler(state)
