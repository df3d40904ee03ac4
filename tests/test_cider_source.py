"""Tests for the Cider HTTP playback source."""

from __future__ import annotations

import asyncio
import json

import httpx
import pytest

from omnilyrics.services.cider_source import (
    API_PREFIX,
    CiderPlaybackSource,
    cider_available,
    parse_now_playing,
)
from omnilyrics.services.playback_source import PlaybackState


def _run(coro):
    """Run async Cider scenario from sync test functions."""
    return asyncio.run(coro)


NOW_PLAYING = {
    "status": "ok",
    "info": {
        "name": "Song",
        "artistName": "Artist",
        "albumName": "Album",
        "durationInMillis": 180000,
        "currentPlaybackTime": 12.5,
        "artwork": {"url": "https://art.example/{w}x{h}bb.jpg"},
    },
}


class FakeCider:
    """Mutable stand-in for the Cider RPC server."""

    def __init__(self) -> None:
        self.now_playing: dict | None = NOW_PLAYING
        self.playing = True
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path
        if path == f"{API_PREFIX}/active":
            return httpx.Response(200, json={"status": "ok"})
        if path == f"{API_PREFIX}/now-playing":
            if self.now_playing is None:
                return httpx.Response(404, json={"status": "error"})
            return httpx.Response(200, json=self.now_playing)
        if path == f"{API_PREFIX}/is-playing":
            body = {"status": "ok", "is_playing": self.playing}
            return httpx.Response(200, json=body)
        if request.method == "POST":
            return httpx.Response(204)
        return httpx.Response(404)


def test_parse_now_playing_maps_fields() -> None:
    state = parse_now_playing(NOW_PLAYING, playing=True, captured_at=5.0)
    assert state is not None
    assert state.title == "Song"
    assert state.artists == ("Artist",)
    assert state.album == "Album"
    assert state.duration_s == 180.0
    assert state.position_s == 12.5
    assert state.artwork_url == "https://art.example/512x512bb.jpg"
    assert state.source == "cider"
    assert state.captured_at == 5.0


def test_parse_now_playing_without_track_is_none() -> None:
    assert parse_now_playing({"status": "ok"}, playing=False, captured_at=0.0) is None
    blank = {"info": {"name": ""}}
    assert parse_now_playing(blank, playing=True, captured_at=0.0) is None
    assert parse_now_playing([], playing=True, captured_at=0.0) is None


def test_cider_available_checks_active_endpoint() -> None:
    def refused(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    async def run() -> tuple[bool, bool]:
        up = await cider_available(
            "http://cider.test", transport=httpx.MockTransport(FakeCider())
        )
        down = await cider_available(
            "http://cider.test", transport=httpx.MockTransport(refused)
        )
        return up, down

    assert _run(run()) == (True, False)


def test_poll_notifies_only_on_material_change() -> None:
    server = FakeCider()
    events: list[PlaybackState | None] = []
    now = [100.0]

    async def handler(state: PlaybackState | None) -> None:
        events.append(state)

    async def run() -> None:
        source = CiderPlaybackSource(
            base_url="http://cider.test",
            poll_interval_s=60.0,
            transport=httpx.MockTransport(server),
            clock=lambda: now[0],
        )
        source.set_state_handler(handler)
        await source.start()
        await source.poll_once()
        now[0] = 101.0
        server.now_playing = {
            "info": {**NOW_PLAYING["info"], "currentPlaybackTime": 13.5}
        }
        await source.poll_once()
        current = source.current_state()
        assert current is not None
        assert current.position_s == 13.5
        assert current.captured_at == 101.0

        server.playing = False
        await source.poll_once()
        server.now_playing = None
        await source.poll_once()
        await source.poll_once()
        assert source.current_state() is None
        await source.shutdown()

    _run(run())
    assert len(events) == 3
    assert events[0] is not None and events[0].playing is True
    assert events[1] is not None and events[1].playing is False
    assert events[2] is None


def test_commands_post_to_playback_endpoints_with_token() -> None:
    server = FakeCider()

    async def run() -> None:
        source = CiderPlaybackSource(
            base_url="http://cider.test/",
            token="secret",
            poll_interval_s=60.0,
            transport=httpx.MockTransport(server),
        )
        await source.start()
        await source.play()
        await source.pause()
        await source.toggle()
        await source.next()
        await source.previous()
        await source.seek(42.0)
        await source.shutdown()

    _run(run())
    posts = [r for r in server.requests if r.method == "POST"]
    assert [r.url.path.rsplit("/", 1)[-1] for r in posts] == [
        "play",
        "pause",
        "playpause",
        "next",
        "previous",
        "seek",
    ]
    assert json.loads(posts[-1].content) == {"position": 42.0}
    assert all(r.headers["apptoken"] == "secret" for r in server.requests)


def test_command_http_error_propagates() -> None:
    def failing(request: httpx.Request) -> httpx.Response:
        if request.method == "POST":
            return httpx.Response(500)
        return httpx.Response(404)

    async def run() -> None:
        source = CiderPlaybackSource(
            base_url="http://cider.test",
            poll_interval_s=60.0,
            transport=httpx.MockTransport(failing),
        )
        await source.start()
        try:
            with pytest.raises(httpx.HTTPStatusError):
                await source.next()
        finally:
            await source.shutdown()

    _run(run())
