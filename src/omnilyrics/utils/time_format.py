"""Time formatting helpers for the header."""

from __future__ import annotations

import math


def format_time_s(seconds: float) -> str:
    """Format seconds as MM:SS or H:MM:SS when needed."""
    total_seconds = int(_coerce_seconds(seconds))
    hours = total_seconds // 3600
    if hours > 0:
        minutes = (total_seconds // 60) % 60
        return f"{hours}:{minutes:02d}:{total_seconds % 60:02d}"
    minutes = total_seconds // 60
    return f"{minutes:02d}:{total_seconds % 60:02d}"


def _coerce_seconds(value: float) -> float:
    try:
        numeric = float(value)
    except (TypeError, ValueError):
        return 0.0
    if not math.isfinite(numeric):
        return 0.0
    return max(0.0, numeric)
