"""Position extrapolation between sparse authoritative playback samples."""

from __future__ import annotations

import time
from collections.abc import Callable

from .playback_source import PlaybackState, clamp_position


class PositionExtrapolator:
    """Advance a display position from the last authoritative sample.

    Most sources only report position when something else changes, so the
    estimate is ``baseline + (now - captured_at)`` while playing and the
    baseline verbatim while paused. The result is display-only state.
    """

    def __init__(self, *, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._baseline: PlaybackState | None = None

    @property
    def baseline(self) -> PlaybackState | None:
        return self._baseline

    def observe(self, state: PlaybackState | None) -> None:
        """Reset the baseline when a newer authoritative sample arrives."""
        if state is None:
            self._baseline = None
            return
        current = self._baseline
        if (
            current is None
            or state.captured_at != current.captured_at
            or state.position_s != current.position_s
            or state.playing != current.playing
            or state.duration_s != current.duration_s
        ):
            self._baseline = state

    def estimate(self, now: float | None = None) -> float | None:
        """Return the extrapolated position in seconds, or `None` without a baseline."""
        baseline = self._baseline
        if baseline is None:
            return None
        return extrapolate(baseline, self._clock() if now is None else now)


def extrapolate(state: PlaybackState, now: float) -> float:
    if not state.playing:
        return state.position_s
    elapsed = max(0.0, now - state.captured_at)
    return clamp_position(state.position_s + elapsed, state.duration_s)
