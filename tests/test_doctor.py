"""Tests for environment diagnostics probes and report behavior."""

from __future__ import annotations

import types

import httpx

import omnilyrics.doctor as doctor_module
from omnilyrics.config_store import AppConfig


def _check(name: str, status: str, required: bool = False):
    return doctor_module.DoctorCheck(
        name=name, status=status, required=required, detail="test"
    )


def test_run_doctor_fake_source_is_always_ok(monkeypatch) -> None:
    monkeypatch.setattr(
        doctor_module, "probe_lrclib", lambda _url: _check("lrclib", "error")
    )
    report = doctor_module.run_doctor(AppConfig(sources=("fake",)))
    assert report.exit_code == 0
    assert [check.name for check in report.checks] == ["fake", "lrclib"]


def test_run_doctor_fails_when_no_configured_source_is_usable(monkeypatch) -> None:
    monkeypatch.setattr(
        doctor_module, "probe_playerctl", lambda: _check("playerctl", "missing")
    )
    monkeypatch.setattr(
        doctor_module, "probe_cider", lambda _url, _token: _check("cider", "missing")
    )
    monkeypatch.setattr(
        doctor_module, "probe_lrclib", lambda _url: _check("lrclib", "ok")
    )
    report = doctor_module.run_doctor(AppConfig(sources=("cider", "playerctl")))
    assert report.exit_code == 2
    rendered = doctor_module.render_report(report)
    assert "[MISS] cider" in rendered
    assert "Result: FAIL" in rendered


def test_run_doctor_passes_with_one_usable_source(monkeypatch) -> None:
    monkeypatch.setattr(
        doctor_module, "probe_playerctl", lambda: _check("playerctl", "ok")
    )
    monkeypatch.setattr(
        doctor_module, "probe_cider", lambda _url, _token: _check("cider", "missing")
    )
    monkeypatch.setattr(
        doctor_module, "probe_lrclib", lambda _url: _check("lrclib", "ok")
    )
    report = doctor_module.run_doctor(AppConfig(sources=("cider", "playerctl")))
    assert report.exit_code == 0
    assert "Result: OK" in doctor_module.render_report(report)


def test_probe_playerctl_missing_binary(monkeypatch) -> None:
    monkeypatch.setattr(doctor_module.sys, "platform", "linux")
    monkeypatch.setattr(doctor_module.shutil, "which", lambda _name: None)
    check = doctor_module.probe_playerctl()
    assert check.status == "missing"
    assert check.hint


def test_probe_playerctl_not_on_linux(monkeypatch) -> None:
    monkeypatch.setattr(doctor_module.sys, "platform", "darwin")
    assert doctor_module.probe_playerctl().status == "missing"


def test_probe_playerctl_nonzero_version_exit_is_error(monkeypatch) -> None:
    monkeypatch.setattr(doctor_module.sys, "platform", "linux")
    monkeypatch.setattr(
        doctor_module.shutil, "which", lambda _name: "/usr/bin/playerctl"
    )
    monkeypatch.setattr(
        doctor_module.subprocess,
        "run",
        lambda *args, **kwargs: types.SimpleNamespace(
            returncode=1, stdout="", stderr="boom"
        ),
    )
    assert doctor_module.probe_playerctl().status == "error"


def test_probe_playerctl_reports_version(monkeypatch) -> None:
    monkeypatch.setattr(doctor_module.sys, "platform", "linux")
    monkeypatch.setattr(
        doctor_module.shutil, "which", lambda _name: "/usr/bin/playerctl"
    )
    monkeypatch.setattr(
        doctor_module.subprocess,
        "run",
        lambda *args, **kwargs: types.SimpleNamespace(
            returncode=0, stdout="v2.4.1\n", stderr=""
        ),
    )
    check = doctor_module.probe_playerctl()
    assert check.status == "ok"
    assert check.detail == "playerctl v2.4.1"


def test_probe_cider_unreachable(monkeypatch) -> None:
    def refuse(url, **kwargs):
        raise httpx.ConnectError("refused")

    monkeypatch.setattr(doctor_module.httpx, "get", refuse)
    check = doctor_module.probe_cider("http://localhost:10767", None)
    assert check.status == "missing"


def test_probe_cider_sends_token(monkeypatch) -> None:
    seen: dict[str, object] = {}

    def fake_get(url, **kwargs):
        seen["url"] = url
        seen["headers"] = kwargs["headers"]
        return types.SimpleNamespace(status_code=200)

    monkeypatch.setattr(doctor_module.httpx, "get", fake_get)
    check = doctor_module.probe_cider("http://localhost:10767", "secret")
    assert check.status == "ok"
    assert seen["url"] == "http://localhost:10767/api/v1/playback/active"
    assert seen["headers"] == {"apptoken": "secret"}


def test_probe_lrclib_server_error(monkeypatch) -> None:
    monkeypatch.setattr(
        doctor_module.httpx,
        "get",
        lambda url, **kwargs: types.SimpleNamespace(status_code=503),
    )
    assert doctor_module.probe_lrclib("https://lrclib.net").status == "error"
