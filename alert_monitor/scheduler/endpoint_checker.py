"""One check-fetch-map-notify cycle for a single endpoint."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Callable
from urllib.parse import quote

import structlog

from ..config import MonitorSettings
from ..errors import EndpointConfigError, EndpointNotFoundError, PersistenceError
from ..fetch import ApiRequest, DataSource
from ..mapping import Item, map_items
from ..notifications import Channel, NotificationDispatcher
from ..registry import EndpointConfig, EndpointRegistry, validate_endpoint
from ..state import ApiStatus, EndpointState, NotificationStateStore

logger = structlog.get_logger(__name__)


class TickOutcome(str, Enum):
    INVALID_CONFIG = "invalid_config"
    API_FAILURE = "api_failure"
    API_FAILURE_MUTED = "api_failure_muted"
    MUTED = "muted"
    NO_ITEMS = "no_items"
    NOTIFIED = "notified"
    ERROR = "error"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class EndpointChecker:
    """Runs ticks. Holds no per-tag state of its own; everything lives in the store.

    Callers are responsible for serializing ticks of the same tag.
    """

    def __init__(
        self,
        registry: EndpointRegistry,
        store: NotificationStateStore,
        data_source: DataSource,
        dispatcher: NotificationDispatcher,
        settings: MonitorSettings,
        clock: Callable[[], datetime] | None = None,
    ):
        self.registry = registry
        self.store = store
        self.data_source = data_source
        self.dispatcher = dispatcher
        self.settings = settings
        self.clock = clock or _utcnow

    # --- helpers -----------------------------------------------------------

    def _persist(self, tag: str, state: EndpointState) -> None:
        try:
            self.store.save(tag, state)
        except PersistenceError as e:
            # The tick carries on with in-memory state; the next tick may see stale data.
            logger.error("Failed to persist endpoint state", event_type="SYSTEM", tag=tag, error=str(e))

    def _mute_link(self, config: EndpointConfig, kind: str) -> str | None:
        if not config.enable_manual_mute:
            return None
        base = self.registry.global_settings().control_server_url.rstrip("/")
        path = "/mute/payment" if kind == "items" else "/mute/api"
        return f"{base}{path}?tag={quote(config.tag, safe='')}"

    # --- tick --------------------------------------------------------------

    async def check_and_notify(self, tag: str) -> TickOutcome:
        """Run one tick for ``tag``. Never raises."""
        try:
            return await self._tick(tag)
        except Exception:
            logger.exception("Unexpected error during endpoint check", event_type="SYSTEM", tag=tag)
            return TickOutcome.ERROR

    async def _tick(self, tag: str) -> TickOutcome:
        try:
            config = self.registry.get(tag)
            validate_endpoint(config)
        except (EndpointNotFoundError, EndpointConfigError) as e:
            logger.error("Skipping check, endpoint config invalid", event_type="SYSTEM", tag=tag, error=str(e))
            return TickOutcome.INVALID_CONFIG

        state = self.store.load(tag)
        result = await self.data_source.fetch(ApiRequest.from_endpoint(config))

        if not result.ok:
            return await self._handle_failure(config, state, result.status, result.error)

        if state.last_api_status == ApiStatus.FAILURE:
            await self._handle_recovery(config, state)

        items = map_items(result.data, config.mapping_paths)
        current_ids = [item.id_key for item in items if item.id_key is not None]

        changed = self._evaluate_mute(tag, state, current_ids)
        if state.mute_payment:
            state.add_muted(current_ids)
            self._persist(tag, state)
            logger.info("Item alerts muted, skipping notification", event_type="SYSTEM", tag=tag, items=len(items))
            return TickOutcome.MUTED

        muted = set(state.muted_payment_ids)
        to_notify = [item for item in items if item.id_key is None or item.id_key not in muted]
        if not to_notify:
            if changed:
                self._persist(tag, state)
            logger.debug("No items to notify", tag=tag)
            return TickOutcome.NO_ITEMS

        await self._dispatch_items(config, to_notify)

        state.add_processed(item.id_key for item in to_notify if item.id_key is not None)
        self._persist(tag, state)
        return TickOutcome.NOTIFIED

    def _evaluate_mute(self, tag: str, state: EndpointState, current_ids: list[str]) -> bool:
        """Apply auto-unmute rules in order; returns whether state changed."""
        muted = set(state.muted_payment_ids)
        new_ids = [item_id for item_id in current_ids if item_id not in muted]

        if state.mute_payment and new_ids:
            state.clear_mute()
            logger.info(
                "Item alerts auto-unmuted",
                event_type="AUTO-UNMUTE",
                tag=tag,
                reason="new item(s) detected",
                new_ids=new_ids,
            )
            return True

        if state.mute_expired(self.clock()):
            state.clear_mute()
            logger.info("Item alerts auto-unmuted", event_type="AUTO-UNMUTE", tag=tag, reason="mute timer expired")
            return True

        return False

    async def _handle_failure(
        self,
        config: EndpointConfig,
        state: EndpointState,
        status: int | None,
        error: str | None,
    ) -> TickOutcome:
        tag = config.tag
        state.last_api_status = ApiStatus.FAILURE
        state.last_failure_message = error or "Unknown error"
        self._persist(tag, state)
        logger.warning(
            "Upstream API failure",
            event_type="API-FAILURE",
            tag=tag,
            status=status,
            error=state.last_failure_message,
        )

        if state.mute_api:
            logger.info("API failure alerts muted, skipping notification", event_type="SYSTEM", tag=tag)
            return TickOutcome.API_FAILURE_MUTED

        mute_link = self._mute_link(config, "api")
        if config.sms_ready():
            await self.dispatcher.notify_api_failure(
                Channel.SMS,
                config.phone_numbers,
                tag,
                status,
                state.last_failure_message,
                mute_link,
                endpoint_url=config.sms_endpoint,
            )
        if config.email_ready():
            await self.dispatcher.notify_api_failure(
                Channel.EMAIL,
                config.email_addresses,
                tag,
                status,
                state.last_failure_message,
                mute_link,
                endpoint_url=config.email_endpoint,
            )
        return TickOutcome.API_FAILURE

    async def _handle_recovery(self, config: EndpointConfig, state: EndpointState) -> None:
        tag = config.tag
        previous_error = state.last_failure_message
        state.last_api_status = ApiStatus.SUCCESS
        state.last_failure_message = ""
        state.mute_api = False
        self._persist(tag, state)
        logger.info("Upstream API recovered", event_type="API-RECOVERY", tag=tag, previous_error=previous_error)

        if config.enable_recovery_email and config.email_ready():
            await self.dispatcher.notify_recovery(
                config.email_addresses,
                tag,
                previous_error,
                endpoint_url=config.email_endpoint,
            )

    async def _dispatch_items(self, config: EndpointConfig, items: list[Item]) -> None:
        tag = config.tag
        if config.sms_ready():
            await self.dispatcher.notify(
                Channel.SMS, config.phone_numbers, items, tag, None, endpoint_url=config.sms_endpoint
            )
        if config.email_ready():
            await self.dispatcher.notify(
                Channel.EMAIL,
                config.email_addresses,
                items,
                tag,
                self._mute_link(config, "items"),
                endpoint_url=config.email_endpoint,
            )
