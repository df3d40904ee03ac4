"""Runtime diagnostics for playback sources and the lyrics service."""

from __future__ import annotations

import shutil
import subprocess
import sys
from dataclasses import dataclass
from typing import Literal

import httpx

from .config_store import AppConfig
from .services.cider_source import API_PREFIX

DoctorStatus = Literal["ok", "missing", "error"]


@dataclass(frozen=True)
class DoctorCheck:
    """One environment/tooling readiness check result."""

    name: str
    status: DoctorStatus
    required: bool
    detail: str
    hint: str | None = None


@dataclass(frozen=True)
class DoctorReport:
    """Collection of doctor checks and derived process exit contract."""

    sources: tuple[str, ...]
    checks: list[DoctorCheck]

    @property
    def exit_code(self) -> int:
        """Return non-zero when a required check failed or no source is usable."""
        for check in self.checks:
            if check.required and check.status != "ok":
                return 2
        source_checks = [c for c in self.checks if c.name in self.sources]
        if source_checks and not any(c.status == "ok" for c in source_checks):
            return 2
        return 0


def run_doctor(config: AppConfig) -> DoctorReport:
    """Run diagnostics for the configured sources and lyrics service."""
    checks: list[DoctorCheck] = []
    for name in config.sources:
        if name == "playerctl":
            checks.append(probe_playerctl())
        elif name == "cider":
            checks.append(probe_cider(config.cider_url, config.cider_token))
        elif name == "fake":
            checks.append(
                DoctorCheck(name="fake", status="ok", required=False, detail="built-in")
            )
    checks.append(probe_lrclib(config.lyrics_url))
    return DoctorReport(sources=config.sources, checks=checks)


def render_report(report: DoctorReport) -> str:
    """Render terminal-friendly diagnostics report text."""
    lines = [f"omnilyrics doctor (sources={','.join(report.sources)})", ""]
    for check in report.checks:
        state = _status_token(check.status)
        req = "required" if check.required else "optional"
        lines.append(f"{state} {check.name:<11} [{req}] {check.detail}")
        if check.hint:
            lines.append(f"      hint: {check.hint}")
    lines.append("")
    lines.append("Result: OK" if report.exit_code == 0 else "Result: FAIL")
    return "\n".join(lines)


def probe_playerctl() -> DoctorCheck:
    """Verify the playerctl binary for MPRIS sessions."""
    if not sys.platform.startswith("linux"):
        return DoctorCheck(
            name="playerctl",
            status="missing",
            required=False,
            detail=f"MPRIS is not available on {sys.platform}",
        )
    playerctl = shutil.which("playerctl")
    if playerctl is None:
        return DoctorCheck(
            name="playerctl",
            status="missing",
            required=False,
            detail="binary not found on PATH",
            hint="Install playerctl to follow MPRIS media players.",
        )
    try:
        proc = subprocess.run(
            [playerctl, "--version"],
            capture_output=True,
            text=True,
            timeout=2,
            check=False,
        )
    except Exception as exc:
        return DoctorCheck(
            name="playerctl",
            status="error",
            required=False,
            detail=f"launch failed ({exc.__class__.__name__})",
            hint="Reinstall playerctl and verify PATH.",
        )
    if proc.returncode != 0:
        return DoctorCheck(
            name="playerctl",
            status="error",
            required=False,
            detail=f"playerctl --version failed (exit={proc.returncode})",
            hint="Reinstall playerctl and verify PATH.",
        )
    version = proc.stdout.strip().splitlines()[0] if proc.stdout.strip() else ""
    return DoctorCheck(
        name="playerctl",
        status="ok",
        required=False,
        detail=f"playerctl {version}".strip(),
    )


def probe_cider(base_url: str, token: str | None) -> DoctorCheck:
    """Check whether the Cider RPC server answers."""
    headers = {"apptoken": token} if token else {}
    try:
        response = httpx.get(
            f"{base_url}{API_PREFIX}/active", headers=headers, timeout=1.0
        )
    except httpx.HTTPError as exc:
        return DoctorCheck(
            name="cider",
            status="missing",
            required=False,
            detail=f"not reachable at {base_url} ({exc.__class__.__name__})",
            hint="Start Cider and enable its RPC/WebSocket API.",
        )
    if response.status_code != 200:
        return DoctorCheck(
            name="cider",
            status="error",
            required=False,
            detail=f"HTTP {response.status_code} from {base_url}",
            hint="Check the Cider API token setting.",
        )
    return DoctorCheck(
        name="cider", status="ok", required=False, detail=f"reachable at {base_url}"
    )


def probe_lrclib(base_url: str) -> DoctorCheck:
    """Check that the lyrics service is reachable; lyrics are optional."""
    try:
        response = httpx.get(
            f"{base_url}/api/search", params={"q": "test"}, timeout=3.0
        )
    except httpx.HTTPError as exc:
        return DoctorCheck(
            name="lrclib",
            status="error",
            required=False,
            detail=f"not reachable ({exc.__class__.__name__})",
            hint="Check network access; the display still runs without lyrics.",
        )
    if response.status_code >= 500:
        return DoctorCheck(
            name="lrclib",
            status="error",
            required=False,
            detail=f"HTTP {response.status_code}",
        )
    return DoctorCheck(
        name="lrclib", status="ok", required=False, detail=f"reachable at {base_url}"
    )


def _status_token(status: DoctorStatus) -> str:
    """Map doctor status to compact display token."""
    if status == "ok":
        return "[OK]"
    if status == "missing":
        return "[MISS]"
    return "[ERR]"
