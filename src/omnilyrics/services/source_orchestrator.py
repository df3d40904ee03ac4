"""Selection, hot-swap and event forwarding for the active playback source.

`SourceOrchestrator` is the single authority over which `PlaybackSource` is
live. A periodic probe pass picks the first available source in priority
order; a swap bumps the epoch so callbacks from a retired source are fenced
out. Source callbacks only enqueue immutable snapshots; one dispatcher task
drains the queue and fans out to subscribers in forwarding order.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Sequence
from contextlib import suppress
from dataclasses import dataclass
from typing import Literal

from .playback_source import PlaybackSource, PlaybackState, StateHandler

logger = logging.getLogger(__name__)

SwapPolicy = Literal["variant", "instance"]
PROBE_TIMEOUT_S = 2.0


class UnsupportedPlatformError(RuntimeError):
    """Raised when no configured probe can run on this platform."""


@dataclass(frozen=True)
class ProbeResult:
    """Outcome of one availability check.

    `instance_key` names the concrete player behind a variant (for example an
    MPRIS bus name) and only matters under the ``instance`` swap policy.
    """

    available: bool
    instance_key: str | None = None


@dataclass(frozen=True)
class SourceProbe:
    """Availability check plus constructor for one source variant."""

    variant: str
    detect: Callable[[], Awaitable[ProbeResult]]
    factory: Callable[[ProbeResult], PlaybackSource]
    supported: Callable[[], bool] = lambda: True


class SourceOrchestrator:
    """Owns the active source and re-exposes one event stream and command surface."""

    def __init__(
        self,
        probes: Sequence[SourceProbe],
        *,
        probe_interval_s: float = 1.0,
        swap_policy: SwapPolicy = "variant",
        command_timeout_s: float = 2.0,
        start_timeout_s: float = 5.0,
        queue_size: int = 64,
    ) -> None:
        if queue_size < 1:
            raise ValueError("queue_size must be >= 1")
        self._probes = list(probes)
        self._probe_interval = probe_interval_s
        self._swap_policy: SwapPolicy = swap_policy
        self._command_timeout = command_timeout_s
        self._start_timeout = start_timeout_s
        self._swap_lock = asyncio.Lock()
        self._epoch = 0
        self._active: PlaybackSource | None = None
        self._active_key: tuple[str, str | None] | None = None
        self._queue: asyncio.Queue[tuple[int, PlaybackState | None]] = asyncio.Queue(
            maxsize=queue_size
        )
        self._subscribers: list[StateHandler] = []
        self._last_delivered: PlaybackState | None = None
        self._has_delivered = False
        self._probe_task: asyncio.Task[None] | None = None
        self._dispatch_task: asyncio.Task[None] | None = None

    @property
    def epoch(self) -> int:
        return self._epoch

    @property
    def active_variant(self) -> str | None:
        return self._active_key[0] if self._active_key else None

    @property
    def active_source(self) -> PlaybackSource | None:
        return self._active

    def subscribe(self, handler: StateHandler) -> None:
        """Register a consumer of the unified, deduplicated notification stream."""
        self._subscribers.append(handler)

    def current_state(self) -> PlaybackState | None:
        source = self._active
        if source is None:
            return None
        return source.current_state()

    def ensure_supported(self) -> None:
        """Drop probes that cannot run here; raise when none remain."""
        supported = []
        for probe in self._probes:
            try:
                if probe.supported():
                    supported.append(probe)
            except Exception:
                logger.exception("Platform check failed for source %s", probe.variant)
        if not supported:
            raise UnsupportedPlatformError(
                "No playback source supports this platform "
                f"(configured: {', '.join(p.variant for p in self._probes) or 'none'})."
            )
        self._probes = supported

    async def start(self) -> None:
        """Select an initial source and start the background loops."""
        self.ensure_supported()
        if self._dispatch_task is None:
            self._dispatch_task = asyncio.create_task(self._dispatch_loop())
        await self.refresh()
        if self._probe_task is None:
            self._probe_task = asyncio.create_task(self._probe_loop())

    async def shutdown(self) -> None:
        """Stop loops and retire the active source."""
        if self._probe_task is not None:
            self._probe_task.cancel()
            with suppress(asyncio.CancelledError):
                await self._probe_task
            self._probe_task = None
        async with self._swap_lock:
            self._epoch += 1
            old = self._active
            self._active = None
            self._active_key = None
        if old is not None:
            await self._retire(old)
        if self._dispatch_task is not None:
            self._dispatch_task.cancel()
            with suppress(asyncio.CancelledError):
                await self._dispatch_task
            self._dispatch_task = None

    async def refresh(self) -> None:
        """Run one probe pass and swap if the best available source changed."""
        selected = await self._select()
        if selected is None:
            return
        probe, result = selected
        async with self._swap_lock:
            if self._is_current(probe, result):
                return
            await self._swap(probe, result)

    async def play(self) -> None:
        await self._command("play")

    async def pause(self) -> None:
        await self._command("pause")

    async def toggle(self) -> None:
        await self._command("toggle")

    async def next(self) -> None:
        await self._command("next")

    async def previous(self) -> None:
        await self._command("previous")

    async def seek(self, position_s: float) -> None:
        await self._command("seek", position_s)

    async def _select(self) -> tuple[SourceProbe, ProbeResult] | None:
        for probe in self._probes:
            try:
                result = await asyncio.wait_for(probe.detect(), timeout=PROBE_TIMEOUT_S)
            except Exception as exc:
                logger.debug("Probe %s treated as unavailable: %r", probe.variant, exc)
                continue
            if result.available:
                return probe, result
        return None

    def _is_current(self, probe: SourceProbe, result: ProbeResult) -> bool:
        if self._active_key is None:
            return False
        if self._swap_policy == "instance":
            return self._active_key == (probe.variant, result.instance_key)
        return self._active_key[0] == probe.variant

    async def _swap(self, probe: SourceProbe, result: ProbeResult) -> None:
        """Replace the active source; caller holds the swap lock."""
        self._epoch += 1
        epoch = self._epoch
        old = self._active
        self._active = None
        self._active_key = None
        if old is not None:
            await self._retire(old)
        logger.info(
            "Switching playback source -> %s (instance=%s, epoch=%d)",
            probe.variant,
            result.instance_key,
            epoch,
        )
        try:
            source = probe.factory(result)
        except Exception:
            logger.exception("Failed to construct source %s", probe.variant)
            return
        source.set_state_handler(self._make_forwarder(epoch))
        try:
            await asyncio.wait_for(source.start(), timeout=self._start_timeout)
        except Exception:
            logger.exception("Failed to start source %s", probe.variant)
            await self._retire(source)
            return
        self._active = source
        self._active_key = (probe.variant, result.instance_key)
        self._enqueue(epoch, source.current_state())

    async def _retire(self, source: PlaybackSource) -> None:
        source.set_state_handler(None)
        try:
            await asyncio.wait_for(source.shutdown(), timeout=self._start_timeout)
        except Exception:
            logger.exception("Failed to shut down source %s", source.variant)

    def _make_forwarder(self, epoch: int) -> StateHandler:
        async def forward(state: PlaybackState | None) -> None:
            self._enqueue(epoch, state)

        return forward

    def _enqueue(self, epoch: int, state: PlaybackState | None) -> None:
        if epoch != self._epoch:
            logger.debug(
                "Dropping notification from stale epoch %d (current %d)",
                epoch,
                self._epoch,
            )
            return
        try:
            self._queue.put_nowait((epoch, state))
        except asyncio.QueueFull:
            # Snapshots supersede each other; the oldest is safe to lose.
            with suppress(asyncio.QueueEmpty):
                self._queue.get_nowait()
            self._queue.put_nowait((epoch, state))

    async def _dispatch_loop(self) -> None:
        while True:
            epoch, state = await self._queue.get()
            if epoch != self._epoch:
                continue
            if self._is_duplicate(state):
                continue
            self._last_delivered = state
            self._has_delivered = True
            for handler in list(self._subscribers):
                try:
                    await handler(state)
                except Exception:
                    logger.exception("Playback state subscriber failed")

    def _is_duplicate(self, state: PlaybackState | None) -> bool:
        if not self._has_delivered:
            return False
        if state is None:
            return self._last_delivered is None
        return state.same_material(self._last_delivered)

    async def _command(self, name: str, *args: float) -> None:
        source = self._active
        if source is None:
            logger.debug("No active source; ignoring %s", name)
            return
        try:
            await asyncio.wait_for(
                getattr(source, name)(*args), timeout=self._command_timeout
            )
        except asyncio.TimeoutError:
            logger.warning(
                "Source %s timed out running %s after %.1fs",
                source.variant,
                name,
                self._command_timeout,
            )
        except Exception:
            logger.exception("Source %s failed to run %s", source.variant, name)

    async def _probe_loop(self) -> None:
        try:
            while True:
                await asyncio.sleep(self._probe_interval)
                try:
                    await self.refresh()
                except Exception:
                    logger.exception("Source probe pass failed")
        except asyncio.CancelledError:
            pass
