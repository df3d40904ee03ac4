"""Lyrics display runtime: wires sources, detector, renderer and control server."""

from __future__ import annotations

import asyncio
import logging
import signal
from collections.abc import Sequence
from contextlib import suppress

from .config_store import AppConfig
from .services.control_server import ControlServer
from .services.lyrics_service import LrclibLyricsProvider, LyricsProvider
from .services.song_change import SongChangeDetector
from .services.source_orchestrator import SourceOrchestrator, SourceProbe
from .services.source_probes import build_probes
from .ui.lyrics_window import LyricsWindowRenderer
from .ui.output_sink import OutputSink, TerminalOutputSink

logger = logging.getLogger(__name__)

WAITING_TEXT = "Waiting for a player..."


class LyricsApp:
    """Owns every long-running task of the display and their shutdown order.

    `run()` returns once `request_stop()` is called (SIGINT/SIGTERM do this);
    that single stop signal tears down the probe loop, the render tick, the
    control listener and the active source.
    """

    def __init__(
        self,
        config: AppConfig,
        *,
        sink: OutputSink | None = None,
        probes: Sequence[SourceProbe] | None = None,
        search_lyrics: LyricsProvider | None = None,
    ) -> None:
        self._config = config
        self._sink: OutputSink = sink or TerminalOutputSink()
        self._lyrics_client: LrclibLyricsProvider | None = None
        if search_lyrics is None:
            self._lyrics_client = LrclibLyricsProvider(
                base_url=config.lyrics_url, timeout_s=config.lyrics_timeout_s
            )
            search_lyrics = self._lyrics_client
        self.orchestrator = SourceOrchestrator(
            probes
            if probes is not None
            else build_probes(
                config.sources,
                cider_url=config.cider_url,
                cider_token=config.cider_token,
                swap_policy=config.swap_policy,
            ),
            probe_interval_s=config.probe_interval_s,
            swap_policy="instance" if config.swap_policy == "instance" else "variant",
            command_timeout_s=config.command_timeout_s,
            start_timeout_s=config.start_timeout_s,
        )
        self.detector = SongChangeDetector(
            search_lyrics=search_lyrics, write_header=self._write_header
        )
        self.orchestrator.subscribe(self.detector.handle_state)
        self.renderer = LyricsWindowRenderer(
            sink=self._sink,
            state_provider=self.orchestrator.current_state,
            session_provider=lambda: self.detector.session,
            window_size=config.window_size,
            interval_s=config.render_interval_s,
        )
        self.control = ControlServer(self.orchestrator, port=config.control_port)
        self._stop = asyncio.Event()
        self._sink_open = False

    def request_stop(self) -> None:
        self._stop.set()

    async def run(self) -> None:
        """Start everything, wait for the stop signal, then shut down."""
        try:
            # Fails fast with UnsupportedPlatformError before touching the terminal.
            self.orchestrator.ensure_supported()
            self._install_signal_handlers()
            self._sink.open()
            self._sink_open = True
            # Must precede orchestrator.start(); song headers overwrite it.
            await self._write_header("Now Playing:", "", WAITING_TEXT)
            await self.orchestrator.start()
            try:
                await self.control.start()
            except OSError as exc:
                logger.warning(
                    "Control server unavailable on port %d: %s",
                    self._config.control_port,
                    exc,
                )
            await self.renderer.start()
            await self._stop.wait()
        finally:
            await self.shutdown()

    async def shutdown(self) -> None:
        await self.renderer.shutdown()
        await self.control.shutdown()
        await self.orchestrator.shutdown()
        await self.detector.shutdown()
        if self._lyrics_client is not None:
            await self._lyrics_client.aclose()
        if self._sink_open:
            self._sink.close()
            self._sink_open = False

    async def _write_header(self, line1: str, line2: str, line3: str) -> None:
        await self._sink.write_lines(0, [line1, line2, line3])

    def _install_signal_handlers(self) -> None:
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            # Not available on Windows event loops.
            with suppress(NotImplementedError, RuntimeError):
                loop.add_signal_handler(sig, self.request_stop)
