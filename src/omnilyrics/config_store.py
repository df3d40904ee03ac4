"""JSON configuration for the lyrics display and its playback sources.

Invalid or missing values fall back to defaults field by field; an unreadable
or malformed file falls back to defaults as a whole with a user-facing notice.
"""

from __future__ import annotations

import json
import logging
import math
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any

from .runtime_config import (
    DEFAULT_SOURCES,
    clamp_interval,
    clamp_window_size,
    normalize_source_names,
    normalize_swap_policy,
)
from .services.control_server import DEFAULT_PORT as DEFAULT_CONTROL_PORT

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AppConfig:
    """Effective runtime configuration after file loading and CLI overrides."""

    sources: tuple[str, ...] = DEFAULT_SOURCES
    swap_policy: str = "variant"
    probe_interval_s: float = 1.0
    render_interval_s: float = 0.05
    command_timeout_s: float = 2.0
    start_timeout_s: float = 5.0
    window_size: int = 6
    control_port: int = DEFAULT_CONTROL_PORT
    cider_url: str = "http://localhost:10767"
    cider_token: str | None = None
    lyrics_url: str = "https://lrclib.net"
    lyrics_timeout_s: float = 10.0
    log_level: str = "INFO"


def _coerce_config(data: dict[str, Any]) -> AppConfig:
    """Coerce an untyped JSON object into a validated `AppConfig`."""
    defaults = AppConfig()

    def _float_or_default(value: Any, default: float) -> float:
        if isinstance(value, bool):
            return default
        if isinstance(value, (int, float)):
            normalized = float(value)
            if math.isfinite(normalized):
                return normalized
        return default

    def _int_or_default(value: Any, default: int) -> int:
        if isinstance(value, bool):
            return default
        if isinstance(value, int):
            return value
        return default

    def _str_or_default(value: Any, default: str) -> str:
        if isinstance(value, str) and value.strip():
            return value.strip()
        return default

    raw_sources = data.get("sources")
    sources = (
        normalize_source_names(v for v in raw_sources if isinstance(v, str))
        if isinstance(raw_sources, list)
        else defaults.sources
    )
    port = _int_or_default(data.get("control_port"), defaults.control_port)
    if not 1 <= port <= 65535:
        port = defaults.control_port
    token = data.get("cider_token")

    return AppConfig(
        sources=sources,
        swap_policy=normalize_swap_policy(
            _str_or_default(data.get("swap_policy"), defaults.swap_policy)
        ),
        probe_interval_s=clamp_interval(
            _float_or_default(data.get("probe_interval_s"), defaults.probe_interval_s),
            minimum=0.1,
            maximum=30.0,
        ),
        render_interval_s=clamp_interval(
            _float_or_default(
                data.get("render_interval_s"), defaults.render_interval_s
            ),
            minimum=0.01,
            maximum=1.0,
        ),
        command_timeout_s=clamp_interval(
            _float_or_default(
                data.get("command_timeout_s"), defaults.command_timeout_s
            ),
            minimum=0.1,
            maximum=30.0,
        ),
        start_timeout_s=clamp_interval(
            _float_or_default(data.get("start_timeout_s"), defaults.start_timeout_s),
            minimum=0.1,
            maximum=60.0,
        ),
        window_size=clamp_window_size(
            _int_or_default(data.get("window_size"), defaults.window_size)
        ),
        control_port=port,
        cider_url=_str_or_default(data.get("cider_url"), defaults.cider_url).rstrip(
            "/"
        ),
        cider_token=token.strip() if isinstance(token, str) and token.strip() else None,
        lyrics_url=_str_or_default(data.get("lyrics_url"), defaults.lyrics_url).rstrip(
            "/"
        ),
        lyrics_timeout_s=clamp_interval(
            _float_or_default(data.get("lyrics_timeout_s"), defaults.lyrics_timeout_s),
            minimum=0.5,
            maximum=120.0,
        ),
        log_level=_str_or_default(data.get("log_level"), defaults.log_level).upper(),
    )


def load_config_with_notice(path: Path) -> tuple[AppConfig, str | None]:
    """Load config and return an optional user-facing notice."""
    try:
        raw = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        logger.debug("Config file missing at %s; using defaults.", path)
        return AppConfig(), None
    except OSError as exc:
        logger.warning("Failed to read config file %s: %s; using defaults.", path, exc)
        return (
            AppConfig(),
            "Configuration was reset to defaults.\n"
            "Likely cause: config file is unreadable due to permissions or IO issues.\n"
            f"Next step: verify access to '{path}' and restart.",
        )

    try:
        data = json.loads(raw)
    except json.JSONDecodeError:
        logger.warning("Config file at %s is invalid JSON; using defaults.", path)
        return (
            AppConfig(),
            "Configuration was reset to defaults.\n"
            "Likely cause: config file is not valid JSON.\n"
            f"Next step: repair '{path}' and restart.",
        )

    if not isinstance(data, dict):
        logger.warning("Config file at %s is not a JSON object; using defaults.", path)
        return (
            AppConfig(),
            "Configuration was reset to defaults.\n"
            "Likely cause: config file must contain a JSON object.\n"
            f"Next step: repair '{path}' and restart.",
        )

    return _coerce_config(data), None


def load_config(path: Path) -> AppConfig:
    """Load configuration from disk, falling back to defaults."""
    config, _notice = load_config_with_notice(path)
    return config


def apply_overrides(
    config: AppConfig,
    *,
    sources: list[str] | None = None,
    swap_policy: str | None = None,
    port: int | None = None,
    window_size: int | None = None,
) -> AppConfig:
    """Layer CLI flag values over file configuration."""
    if sources:
        config = replace(config, sources=normalize_source_names(sources))
    if swap_policy is not None:
        config = replace(config, swap_policy=normalize_swap_policy(swap_policy))
    if port is not None and 1 <= port <= 65535:
        config = replace(config, control_port=port)
    if window_size is not None:
        config = replace(config, window_size=clamp_window_size(window_size))
    return config
