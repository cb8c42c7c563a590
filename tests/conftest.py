from __future__ import annotations

from pathlib import Path

import pytest

from alert_monitor.config import MonitorSettings
from alert_monitor.service import build_monitor
from fakes import ENDPOINT, Clock, FakeDataSource, FakeNotifier


@pytest.fixture
def settings(tmp_path: Path) -> MonitorSettings:
    return MonitorSettings(
        control_server_url="http://monitor.local",
        sms_endpoint="http://gateway.local/api/sms/send",
        email_endpoint="http://gateway.local/api/email/send",
        state_path=str(tmp_path / "notification-state.json"),
        registry_path=str(tmp_path / "config-state.json"),
        display_timezone="UTC",
    )


@pytest.fixture
def data_source() -> FakeDataSource:
    return FakeDataSource()


@pytest.fixture
def notifier() -> FakeNotifier:
    return FakeNotifier()


@pytest.fixture
def clock() -> Clock:
    return Clock()


@pytest.fixture
def monitor(settings: MonitorSettings, data_source: FakeDataSource, notifier: FakeNotifier, clock: Clock):
    m = build_monitor(settings, data_source=data_source, notifier=notifier, clock=clock)
    m.registry.upsert("payments", dict(ENDPOINT))
    return m
