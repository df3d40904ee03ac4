"""Tests for playback position extrapolation."""

from __future__ import annotations

from omnilyrics.services.playback_source import PlaybackState
from omnilyrics.services.position import PositionExtrapolator, extrapolate


def _state(**kwargs) -> PlaybackState:
    values = {
        "title": "Song",
        "position_s": 10.0,
        "duration_s": 100.0,
        "playing": True,
        "captured_at": 50.0,
    }
    values.update(kwargs)
    return PlaybackState(**values)


def test_playing_position_advances_with_elapsed_time() -> None:
    assert extrapolate(_state(), now=52.5) == 12.5


def test_paused_position_is_returned_verbatim() -> None:
    assert extrapolate(_state(playing=False), now=90.0) == 10.0


def test_extrapolation_clamps_to_duration() -> None:
    assert extrapolate(_state(), now=500.0) == 100.0


def test_clock_before_capture_does_not_rewind() -> None:
    assert extrapolate(_state(), now=40.0) == 10.0


def test_extrapolator_without_baseline_returns_none() -> None:
    assert PositionExtrapolator(clock=lambda: 0.0).estimate() is None


def test_extrapolator_uses_latest_sample_and_clears_on_none() -> None:
    now = [55.0]
    extrapolator = PositionExtrapolator(clock=lambda: now[0])
    extrapolator.observe(_state())
    assert extrapolator.estimate() == 15.0

    extrapolator.observe(_state(position_s=30.0, captured_at=54.0))
    assert extrapolator.estimate() == 31.0

    extrapolator.observe(None)
    assert extrapolator.baseline is None
    assert extrapolator.estimate() is None


def test_extrapolator_keeps_baseline_for_identical_sample() -> None:
    extrapolator = PositionExtrapolator(clock=lambda: 60.0)
    first = _state()
    extrapolator.observe(first)
    extrapolator.observe(_state())
    assert extrapolator.baseline is first
