"""Runtime configuration normalization helpers.

These helpers keep CLI flag and config-file interpretation deterministic
across entrypoints.
"""

from __future__ import annotations

import math
from collections.abc import Iterable

SWAP_POLICIES = ("variant", "instance")
SOURCE_NAMES = ("cider", "playerctl", "fake")
DEFAULT_SOURCES = ("cider", "playerctl")
WINDOW_SIZE_MIN = 1
WINDOW_SIZE_MAX = 40


def resolve_log_level(*, verbose: bool, quiet: bool) -> str:
    """Resolve effective log level from CLI flags.

    Precedence is deterministic: --quiet overrides --verbose.
    """
    if quiet:
        return "WARNING"
    if verbose:
        return "DEBUG"
    return "INFO"


def normalize_swap_policy(value: str) -> str:
    """Normalize a configured swap policy, falling back to ``variant``."""
    normalized = value.strip().lower()
    if normalized in SWAP_POLICIES:
        return normalized
    return "variant"


def normalize_source_names(values: Iterable[str]) -> tuple[str, ...]:
    """Return known source names in the given priority order, deduplicated."""
    seen: list[str] = []
    for value in values:
        normalized = value.strip().lower()
        if normalized in SOURCE_NAMES and normalized not in seen:
            seen.append(normalized)
    return tuple(seen) or DEFAULT_SOURCES


def clamp_interval(value: float, *, minimum: float, maximum: float) -> float:
    """Clamp a seconds interval, mapping non-finite input to ``minimum``."""
    if not math.isfinite(value):
        return minimum
    return max(minimum, min(float(value), maximum))


def clamp_window_size(value: int) -> int:
    return max(WINDOW_SIZE_MIN, min(int(value), WINDOW_SIZE_MAX))
