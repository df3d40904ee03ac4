"""Probe registry mapping configured source names to `SourceProbe` entries."""

from __future__ import annotations

import logging
from collections.abc import Sequence

from .cider_source import CiderPlaybackSource, cider_available
from .fake_source import FakePlaybackSource
from .playback_source import PlaybackSource
from .playerctl_source import (
    PlayerctlPlaybackSource,
    list_players,
    playerctl_binary,
    playerctl_supported,
)
from .source_orchestrator import ProbeResult, SourceProbe

logger = logging.getLogger(__name__)


def build_probes(
    names: Sequence[str],
    *,
    cider_url: str = "http://localhost:10767",
    cider_token: str | None = None,
    swap_policy: str = "variant",
) -> list[SourceProbe]:
    """Return probes in priority order for the given source names.

    Under the ``instance`` swap policy the MPRIS source is pinned to the
    player the probe saw, so a different player appearing forces a swap.
    """
    probes: list[SourceProbe] = []
    for name in names:
        if name == "cider":
            probes.append(_cider_probe(cider_url, cider_token))
        elif name == "playerctl":
            probes.append(_playerctl_probe(pin_player=swap_policy == "instance"))
        elif name == "fake":
            probes.append(_fake_probe())
        else:
            logger.warning("Ignoring unknown playback source '%s'", name)
    return probes


def _cider_probe(base_url: str, token: str | None) -> SourceProbe:
    async def detect() -> ProbeResult:
        available = await cider_available(base_url, token=token)
        return ProbeResult(available=available, instance_key=base_url)

    def factory(_result: ProbeResult) -> PlaybackSource:
        return CiderPlaybackSource(base_url=base_url, token=token)

    return SourceProbe(variant="cider", detect=detect, factory=factory)


def _playerctl_probe(*, pin_player: bool) -> SourceProbe:
    async def detect() -> ProbeResult:
        binary = playerctl_binary()
        if binary is None:
            return ProbeResult(available=False)
        players = await list_players(binary)
        return ProbeResult(
            available=True, instance_key=players[0] if players else None
        )

    def factory(result: ProbeResult) -> PlaybackSource:
        player = result.instance_key if pin_player else None
        return PlayerctlPlaybackSource(
            player=player, binary=playerctl_binary() or "playerctl"
        )

    return SourceProbe(
        variant="playerctl",
        detect=detect,
        factory=factory,
        supported=playerctl_supported,
    )


def _fake_probe() -> SourceProbe:
    async def detect() -> ProbeResult:
        return ProbeResult(available=True, instance_key="fake")

    def factory(_result: ProbeResult) -> PlaybackSource:
        return FakePlaybackSource()

    return SourceProbe(variant="fake", detect=detect, factory=factory)
