"""Synced-lyrics lookup against LRCLIB.

The display treats lyric lookup as an opaque async function
(`LyricsProvider`). `LrclibLyricsProvider` is the default implementation; it
only understands plain ``[mm:ss.xx]`` timestamp tags.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

import httpx

from .. import __version__
from .playback_source import PlaybackState

logger = logging.getLogger(__name__)

_TIMESTAMP_TAG = re.compile(r"\[(\d{1,3}):(\d{1,2}(?:[.:]\d{1,3})?)\]")


@dataclass(frozen=True)
class LyricLine:
    """One timed lyric line; `timestamp_s` is the offset from track start."""

    timestamp_s: float
    text: str


LyricsProvider = Callable[[PlaybackState], Awaitable[list[LyricLine] | None]]


def parse_synced_lyrics(text: str) -> list[LyricLine]:
    """Extract timed lines from LRC-style text, sorted by timestamp.

    Lines carrying several tags are repeated once per tag; untagged lines and
    metadata tags such as ``[ar:...]`` are skipped.
    """
    lines: list[LyricLine] = []
    for raw in text.splitlines():
        tags = list(_TIMESTAMP_TAG.finditer(raw))
        if not tags:
            continue
        body = raw[tags[-1].end() :].strip()
        for tag in tags:
            minutes = int(tag.group(1))
            seconds = float(tag.group(2).replace(":", "."))
            lines.append(LyricLine(timestamp_s=minutes * 60 + seconds, text=body))
    lines.sort(key=lambda line: line.timestamp_s)
    return lines


class LrclibLyricsProvider:
    """Look up synced lyrics by track metadata (``/api/get``, then ``/api/search``)."""

    def __init__(
        self,
        *,
        base_url: str = "https://lrclib.net",
        timeout_s: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._client = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            timeout=timeout_s,
            headers={"User-Agent": f"omnilyrics/{__version__}"},
            transport=transport,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __call__(self, state: PlaybackState) -> list[LyricLine] | None:
        if not state.title:
            return None
        artist = state.artists[0] if state.artists else ""
        record = await self._get(state, artist)
        if record is None:
            record = await self._search(state, artist)
        if record is None:
            logger.info("No lyrics record for %s - %s", artist, state.title)
            return None
        synced = record.get("syncedLyrics")
        if not isinstance(synced, str) or not synced.strip():
            logger.info("Lyrics for %s - %s are not synced", artist, state.title)
            return None
        lines = parse_synced_lyrics(synced)
        return lines or None

    async def _get(self, state: PlaybackState, artist: str) -> dict[str, Any] | None:
        params: dict[str, str | int] = {
            "track_name": state.title or "",
            "artist_name": artist,
        }
        if state.album:
            params["album_name"] = state.album
        if state.duration_s > 0:
            params["duration"] = int(round(state.duration_s))
        response = await self._client.get("/api/get", params=params)
        if response.status_code == 404:
            return None
        response.raise_for_status()
        data = response.json()
        return data if isinstance(data, dict) else None

    async def _search(
        self, state: PlaybackState, artist: str
    ) -> dict[str, Any] | None:
        params = {"track_name": state.title or "", "artist_name": artist}
        response = await self._client.get("/api/search", params=params)
        response.raise_for_status()
        items = response.json()
        if not isinstance(items, list):
            return None
        for item in items:
            if isinstance(item, dict) and item.get("syncedLyrics"):
                return item
        return None
