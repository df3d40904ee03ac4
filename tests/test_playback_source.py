"""Tests for playback snapshots and song identity helpers."""

from __future__ import annotations

from dataclasses import replace

from omnilyrics.services.playback_source import (
    PlaybackState,
    clamp_position,
    song_identity,
)


def test_song_identity_ignores_case_and_whitespace() -> None:
    first = PlaybackState(title=" Song ", artists=("Artist", "Guest"))
    second = PlaybackState(title="song", artists=("ARTIST",))
    assert song_identity(first) == song_identity(second) == "song|artist"


def test_song_identity_without_artist() -> None:
    assert song_identity(PlaybackState(title="Song")) == "song|"


def test_artists_are_normalized_to_tuple() -> None:
    state = PlaybackState(title="Song", artists=["A", "B"])  # type: ignore[arg-type]
    assert state.artists == ("A", "B")
    assert state.artist_line == "A, B"
    assert PlaybackState().artist_line == "Unknown Artist"


def test_position_is_clamped_to_known_duration() -> None:
    assert PlaybackState(position_s=250.0, duration_s=200.0).position_s == 200.0
    assert PlaybackState(position_s=-3.0, duration_s=200.0).position_s == 0.0


def test_unknown_duration_does_not_clamp() -> None:
    assert clamp_position(500.0, 0.0) == 500.0
    assert PlaybackState(position_s=500.0).position_s == 500.0


def test_same_material_ignores_position_and_capture_time() -> None:
    state = PlaybackState(
        title="Song", artists=("A",), position_s=1.0, duration_s=100.0, playing=True
    )
    moved = replace(state, position_s=42.0, captured_at=state.captured_at + 5)
    assert state.same_material(moved)
    assert not state.same_material(replace(state, playing=False))
    assert not state.same_material(replace(state, title="Other"))
    assert not state.same_material(None)
