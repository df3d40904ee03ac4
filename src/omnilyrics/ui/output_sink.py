"""Line-addressable terminal output for the header and lyric window.

Header and lyric writes come from independent tasks; both go through the
sink's own lock so their cursor moves and text never interleave.
"""

from __future__ import annotations

import asyncio
from collections.abc import Sequence
from typing import Protocol

from rich.console import Console
from rich.control import Control
from rich.segment import ControlType
from rich.text import Text

HEADER_LINES = 3


class OutputSink(Protocol):
    """Text surface addressed by absolute line number."""

    def open(self) -> None: ...

    def close(self) -> None: ...

    async def write_lines(self, start_line: int, lines: Sequence[str]) -> None: ...


class TerminalOutputSink:
    """Rich-console sink that rewrites whole terminal rows in place."""

    def __init__(self, console: Console | None = None) -> None:
        self._console = console or Console(highlight=False)
        self._lock = asyncio.Lock()
        self._max_row = 0

    def open(self) -> None:
        self._console.control(
            Control.clear(), Control.home(), Control.show_cursor(False)
        )

    def close(self) -> None:
        self._console.control(
            Control.move_to(0, self._max_row + 1), Control.show_cursor(True)
        )
        self._console.line()

    async def write_lines(self, start_line: int, lines: Sequence[str]) -> None:
        async with self._lock:
            for offset, line in enumerate(lines):
                row = start_line + offset
                self._console.control(
                    Control.move_to(0, row),
                    Control((ControlType.ERASE_IN_LINE, 2)),
                )
                self._console.print(
                    Text(line, no_wrap=True, overflow="ellipsis"),
                    end="",
                    soft_wrap=False,
                )
                self._max_row = max(self._max_row, row)
            self._console.file.flush()
