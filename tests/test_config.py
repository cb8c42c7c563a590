from __future__ import annotations

from pathlib import Path

import pytest

from alert_monitor.config import MonitorSettings, load_config


def test_defaults_when_file_missing(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    for var in ("SMS_ENDPOINT", "CONTROL_SERVER_URL", "CONTROL_SERVER_PORT", "DISPLAY_TIMEZONE"):
        monkeypatch.delenv(var, raising=False)
    cfg = load_config(str(tmp_path / "missing.yaml"))
    assert cfg.sms_endpoint == "http://localhost:9090/api/sms/send"
    assert cfg.display_timezone == "Asia/Dhaka"
    assert cfg.resolved_control_server_url() == "http://localhost:3000"


def test_yaml_then_env_overrides(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    path = tmp_path / "cfg.yaml"
    path.write_text(
        "sms_endpoint: http://yaml/sms\n"
        "control_server_port: 4000\n"
        "endpoints:\n"
        "  orders:\n"
        "    api_endpoint: https://base/orders\n",
        encoding="utf-8",
    )
    monkeypatch.setenv("SMS_ENDPOINT", "http://env/sms")
    monkeypatch.setenv("REQUEST_TIMEOUT_SECONDS", "2.5")
    monkeypatch.delenv("CONTROL_SERVER_PORT", raising=False)
    monkeypatch.delenv("CONTROL_SERVER_URL", raising=False)

    cfg = load_config(str(path))

    assert cfg.sms_endpoint == "http://env/sms"
    assert cfg.request_timeout_seconds == 2.5
    assert cfg.control_server_port == 4000
    assert cfg.endpoints["orders"]["api_endpoint"] == "https://base/orders"
    assert cfg.resolved_control_server_url() == "http://localhost:4000"


def test_non_mapping_yaml_is_rejected(tmp_path: Path) -> None:
    path = tmp_path / "cfg.yaml"
    path.write_text("- a\n- b\n", encoding="utf-8")
    with pytest.raises(ValueError):
        load_config(str(path))


def test_control_server_url_trailing_slash() -> None:
    assert MonitorSettings(control_server_url="http://m.local/").resolved_control_server_url() == "http://m.local"
