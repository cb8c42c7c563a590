"""Manual mute / unmute operations exposed to the control surface."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Callable

import structlog

from ..errors import EndpointNotFoundError, MuteNotAllowedError
from ..fetch import ApiRequest, DataSource
from ..mapping import map_items
from ..registry import EndpointRegistry
from ..state import ApiStatus, EndpointState, NotificationStateStore
from .locks import TagLocks

logger = structlog.get_logger(__name__)

DEFAULT_MUTE_MINUTES = 30


class MuteControls:
    """Every operation runs under the same per-tag lock as scheduled ticks."""

    def __init__(
        self,
        registry: EndpointRegistry,
        store: NotificationStateStore,
        data_source: DataSource,
        locks: TagLocks,
        clock: Callable[[], datetime] | None = None,
    ):
        self.registry = registry
        self.store = store
        self.data_source = data_source
        self.locks = locks
        self.clock = clock or (lambda: datetime.now(timezone.utc))

    def _require(self, tag: str) -> None:
        if not self.registry.exists(tag):
            raise EndpointNotFoundError(tag)

    async def mute_items(self, tag: str, duration_minutes: float = DEFAULT_MUTE_MINUTES) -> EndpointState:
        """Mute item alerts and seed the muted-id set with everything visible right now."""
        config = self.registry.get(tag)
        if not config.enable_manual_mute:
            raise MuteNotAllowedError(f"Manual mute is disabled for endpoint '{tag}'")
        if duration_minutes <= 0:
            raise ValueError(f"Mute duration must be positive, got {duration_minutes}")

        async with self.locks.get(tag):
            state = self.store.load(tag)
            state.mute_payment = True
            state.mute_payment_until = self.clock() + timedelta(minutes=duration_minutes)

            result = await self.data_source.fetch(ApiRequest.from_endpoint(config))
            if result.ok:
                items = map_items(result.data, config.mapping_paths)
                state.add_muted(item.id_key for item in items if item.id_key is not None)
            else:
                logger.warning("Could not fetch items while muting", tag=tag, error=result.error)

            self.store.save(tag, state)

        logger.info(
            "Item alerts muted",
            event_type="MUTE",
            tag=tag,
            minutes=duration_minutes,
            until=state.mute_payment_until.isoformat(),
            muted_ids=len(state.muted_payment_ids),
        )
        return state

    async def unmute_items(self, tag: str) -> EndpointState:
        self._require(tag)
        async with self.locks.get(tag):
            state = self.store.load(tag)
            state.clear_mute()
            self.store.save(tag, state)
        logger.info("Item alerts unmuted", event_type="UNMUTE", tag=tag)
        return state

    async def mute_api(self, tag: str) -> EndpointState:
        self._require(tag)
        async with self.locks.get(tag):
            state = self.store.load(tag)
            state.mute_api = True
            self.store.save(tag, state)
        logger.info("API failure alerts muted", event_type="MUTE", tag=tag, scope="api")
        return state

    async def unmute_api(self, tag: str) -> EndpointState:
        self._require(tag)
        async with self.locks.get(tag):
            state = self.store.load(tag)
            state.mute_api = False
            state.last_api_status = ApiStatus.SUCCESS
            self.store.save(tag, state)
        logger.info("API failure alerts unmuted", event_type="UNMUTE", tag=tag, scope="api")
        return state

    async def get_state(self, tag: str) -> EndpointState:
        self._require(tag)
        async with self.locks.get(tag):
            return self.store.load(tag)

    async def reset_items(self, tag: str) -> EndpointState:
        """Unmute and forget every processed id for the tag."""
        self._require(tag)
        async with self.locks.get(tag):
            state = self.store.load(tag)
            state.clear_mute()
            state.processed_payment_ids = []
            self.store.save(tag, state)
        logger.info("Item history reset", event_type="UNMUTE", tag=tag, scope="reset")
        return state
