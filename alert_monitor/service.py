"""Wires the registry, store, clients and scheduler into one object."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Callable

import httpx

from .config import MonitorSettings
from .fetch import DataSource, HttpDataSource
from .notifications import GatewayNotifier, NotificationDispatcher, Notifier
from .registry import EndpointRegistry
from .scheduler import EndpointChecker, MuteControls, SchedulerManager, TagLocks
from .state import NotificationStateStore


@dataclass
class AlertMonitor:
    settings: MonitorSettings
    registry: EndpointRegistry
    store: NotificationStateStore
    data_source: DataSource
    dispatcher: NotificationDispatcher
    checker: EndpointChecker
    scheduler: SchedulerManager
    mutes: MuteControls
    http_client: httpx.AsyncClient | None = None

    async def aclose(self) -> None:
        if self.http_client is not None:
            await self.http_client.aclose()
            self.http_client = None


def build_monitor(
    settings: MonitorSettings,
    *,
    data_source: DataSource | None = None,
    notifier: Notifier | None = None,
    clock: Callable[[], datetime] | None = None,
) -> AlertMonitor:
    """Build the object graph; injected fakes replace the HTTP-backed defaults."""
    http_client: httpx.AsyncClient | None = None
    if data_source is None or notifier is None:
        http_client = httpx.AsyncClient()
    if data_source is None:
        data_source = HttpDataSource(http_client, timeout_seconds=settings.request_timeout_seconds)
    if notifier is None:
        notifier = GatewayNotifier(http_client, timeout_seconds=settings.notify_timeout_seconds)

    registry = EndpointRegistry(settings.registry_path, settings)
    store = NotificationStateStore(settings.state_path)
    dispatcher = NotificationDispatcher(notifier, settings, clock=clock)
    checker = EndpointChecker(registry, store, data_source, dispatcher, settings, clock=clock)
    locks = TagLocks()
    scheduler = SchedulerManager(checker, registry, store=store, locks=locks)
    mutes = MuteControls(registry, store, data_source, locks, clock=clock)
    return AlertMonitor(
        settings=settings,
        registry=registry,
        store=store,
        data_source=data_source,
        dispatcher=dispatcher,
        checker=checker,
        scheduler=scheduler,
        mutes=mutes,
        http_client=http_client,
    )
