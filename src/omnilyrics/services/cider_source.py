"""Cider (Apple Music client) source backed by its local HTTP API."""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable
from contextlib import suppress
from typing import Any

import httpx

from .playback_source import PlaybackState, StateHandler

logger = logging.getLogger(__name__)

API_PREFIX = "/api/v1/playback"
ARTWORK_SIZE = 512


def _headers(token: str | None) -> dict[str, str]:
    return {"apptoken": token} if token else {}


async def cider_available(
    base_url: str,
    *,
    token: str | None = None,
    timeout_s: float = 0.5,
    transport: httpx.AsyncBaseTransport | None = None,
) -> bool:
    """Return True when the Cider RPC server answers the ``active`` endpoint."""
    try:
        async with httpx.AsyncClient(
            base_url=base_url,
            headers=_headers(token),
            timeout=timeout_s,
            transport=transport,
        ) as client:
            response = await client.get(f"{API_PREFIX}/active")
            return response.status_code == 200
    except httpx.HTTPError:
        return False


def parse_now_playing(
    payload: Any, *, playing: bool, captured_at: float
) -> PlaybackState | None:
    """Map a ``now-playing`` response body to a snapshot, or None when idle."""
    if not isinstance(payload, dict):
        return None
    info = payload.get("info")
    if not isinstance(info, dict):
        return None
    title = info.get("name")
    if not isinstance(title, str) or not title.strip():
        return None
    artist = info.get("artistName")
    album = info.get("albumName")
    duration_ms = info.get("durationInMillis")
    position_s = info.get("currentPlaybackTime")
    artwork = info.get("artwork")
    artwork_url = artwork.get("url") if isinstance(artwork, dict) else None
    if isinstance(artwork_url, str):
        artwork_url = artwork_url.replace("{w}", str(ARTWORK_SIZE)).replace(
            "{h}", str(ARTWORK_SIZE)
        )
    else:
        artwork_url = None
    return PlaybackState(
        title=title,
        album=album if isinstance(album, str) else None,
        artists=(artist,) if isinstance(artist, str) and artist else (),
        position_s=float(position_s)
        if isinstance(position_s, (int, float)) and not isinstance(position_s, bool)
        else 0.0,
        duration_s=duration_ms / 1000
        if isinstance(duration_ms, (int, float)) and not isinstance(duration_ms, bool)
        else 0.0,
        playing=playing,
        source="cider",
        artwork_url=artwork_url,
        captured_at=captured_at,
    )


class CiderPlaybackSource:
    """Polls Cider's playback endpoints and forwards material changes.

    Every poll replaces `current_state()` so the extrapolation baseline stays
    fresh; subscribers are only notified when observable fields change.
    """

    variant = "cider"

    def __init__(
        self,
        *,
        base_url: str = "http://localhost:10767",
        token: str | None = None,
        poll_interval_s: float = 0.5,
        request_timeout_s: float = 2.0,
        transport: httpx.AsyncBaseTransport | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._token = token
        self._poll_interval = poll_interval_s
        self._request_timeout = request_timeout_s
        self._transport = transport
        self._clock = clock
        self._client: httpx.AsyncClient | None = None
        self._handler: StateHandler | None = None
        self._state: PlaybackState | None = None
        self._task: asyncio.Task[None] | None = None

    def set_state_handler(self, handler: StateHandler | None) -> None:
        self._handler = handler

    def current_state(self) -> PlaybackState | None:
        return self._state

    async def start(self) -> None:
        if self._task is not None:
            return
        self._client = httpx.AsyncClient(
            base_url=self._base_url,
            headers=_headers(self._token),
            timeout=self._request_timeout,
            transport=self._transport,
        )
        self._task = asyncio.create_task(self._poll_loop())

    async def shutdown(self) -> None:
        if self._task is not None:
            self._task.cancel()
            with suppress(asyncio.CancelledError):
                await self._task
            self._task = None
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def play(self) -> None:
        await self._post("play")

    async def pause(self) -> None:
        await self._post("pause")

    async def toggle(self) -> None:
        await self._post("playpause")

    async def next(self) -> None:
        await self._post("next")

    async def previous(self) -> None:
        await self._post("previous")

    async def seek(self, position_s: float) -> None:
        await self._post("seek", {"position": max(0.0, float(position_s))})

    async def poll_once(self) -> None:
        """Fetch the current snapshot and notify on material change."""
        try:
            state = await self._fetch_state()
        except (httpx.HTTPError, ValueError) as exc:
            logger.debug("Cider poll failed: %r", exc)
            state = None
        await self._publish(state)

    async def _poll_loop(self) -> None:
        try:
            while True:
                await self.poll_once()
                await asyncio.sleep(self._poll_interval)
        except asyncio.CancelledError:
            pass

    async def _fetch_state(self) -> PlaybackState | None:
        client = self._require_client()
        now_playing = await client.get(f"{API_PREFIX}/now-playing")
        if now_playing.status_code != 200:
            return None
        is_playing = await client.get(f"{API_PREFIX}/is-playing")
        playing = False
        if is_playing.status_code == 200:
            body = is_playing.json()
            playing = isinstance(body, dict) and body.get("is_playing") is True
        return parse_now_playing(
            now_playing.json(), playing=playing, captured_at=self._clock()
        )

    async def _publish(self, state: PlaybackState | None) -> None:
        previous = self._state
        self._state = state
        if state is None:
            if previous is not None:
                logger.info("Cider reports no active playback")
                await self._emit(None)
            return
        if not state.same_material(previous):
            await self._emit(state)

    async def _post(self, action: str, payload: dict[str, float] | None = None) -> None:
        client = self._require_client()
        response = await client.post(f"{API_PREFIX}/{action}", json=payload)
        response.raise_for_status()

    def _require_client(self) -> httpx.AsyncClient:
        if self._client is None:
            raise RuntimeError("Cider source not started.")
        return self._client

    async def _emit(self, state: PlaybackState | None) -> None:
        if self._handler is None:
            return
        await self._handler(state)
