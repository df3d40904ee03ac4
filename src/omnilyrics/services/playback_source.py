"""Playback source contracts and the snapshot they report.

`SourceOrchestrator` depends on this protocol to stay source-agnostic. Concrete
variants (Cider HTTP API, MPRIS via playerctl, fake) translate player-specific
behavior into these shared commands and snapshots.
"""

from __future__ import annotations

import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Protocol


@dataclass(frozen=True)
class PlaybackState:
    """Immutable snapshot of what a source reports.

    `position_s` is authoritative as of `captured_at` (a `time.monotonic()`
    reading). Snapshots are superseded by new ones, never mutated.
    """

    title: str | None = None
    album: str | None = None
    artists: tuple[str, ...] = ()
    position_s: float = 0.0
    duration_s: float = 0.0
    playing: bool = False
    source: str = "unknown"
    artwork_url: str | None = None
    captured_at: float = field(default_factory=time.monotonic)

    def __post_init__(self) -> None:
        # Frozen dataclass: normalize through object.__setattr__.
        object.__setattr__(self, "artists", tuple(self.artists))
        object.__setattr__(
            self, "position_s", clamp_position(self.position_s, self.duration_s)
        )

    @property
    def artist_line(self) -> str:
        return ", ".join(self.artists) if self.artists else "Unknown Artist"

    def same_material(self, other: PlaybackState | None) -> bool:
        """Compare observable fields, ignoring position churn."""
        if other is None:
            return False
        return (
            self.title == other.title
            and self.album == other.album
            and self.artists == other.artists
            and self.duration_s == other.duration_s
            and self.playing == other.playing
            and self.source == other.source
            and self.artwork_url == other.artwork_url
        )


StateHandler = Callable[[PlaybackState | None], Awaitable[None]]


class PlaybackSource(Protocol):
    """Capability interface implemented by every source variant.

    `start` must return promptly even when no player is present. When the
    underlying player disappears the source emits `None` once and reports
    `None` from `current_state()` until a player shows up again.
    """

    variant: str

    def set_state_handler(self, handler: StateHandler | None) -> None: ...

    async def start(self) -> None: ...

    async def shutdown(self) -> None: ...

    def current_state(self) -> PlaybackState | None: ...

    async def play(self) -> None: ...

    async def pause(self) -> None: ...

    async def toggle(self) -> None: ...

    async def next(self) -> None: ...

    async def previous(self) -> None: ...

    async def seek(self, position_s: float) -> None: ...


def normalize_identity_part(value: str | None) -> str:
    return (value or "").strip().casefold()


def song_identity(state: PlaybackState) -> str:
    """Derive the track key used to detect song changes."""
    first_artist = state.artists[0] if state.artists else None
    return (
        f"{normalize_identity_part(state.title)}|"
        f"{normalize_identity_part(first_artist)}"
    )


def clamp_position(position_s: float, duration_s: float) -> float:
    """Clamp to ``[0, duration]`` when duration is known; unknown means no clamp."""
    if duration_s > 0:
        return max(0.0, min(float(position_s), float(duration_s)))
    return float(position_s)
