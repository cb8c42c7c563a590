"""Per-recipient notification fan-out for one endpoint."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Awaitable, Callable, Iterable

import structlog

from ..config import MonitorSettings
from ..errors import DeliveryError
from ..mapping import Item
from .gateway_client import Notifier
from .messages import (
    EmailMessage,
    build_api_failure_email,
    build_api_failure_sms,
    build_items_email,
    build_items_sms,
    build_recovery_email,
    format_display_time,
)

logger = structlog.get_logger(__name__)


class Channel(str, Enum):
    SMS = "sms"
    EMAIL = "email"


@dataclass(frozen=True)
class DeliveryResult:
    recipient: str
    channel: str
    ok: bool
    error: str | None = None


class NotificationDispatcher:
    """Builds one summary message per channel and sends it to each recipient in turn.

    A failed send is logged and recorded in the returned results; it never stops
    the loop and never propagates to the caller.
    """

    def __init__(
        self,
        notifier: Notifier,
        settings: MonitorSettings,
        clock: Callable[[], datetime] | None = None,
    ):
        self.notifier = notifier
        self.settings = settings
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def _sent_at(self) -> str:
        return format_display_time(self._clock(), self.settings.display_timezone)

    async def _deliver(
        self,
        channel: Channel,
        recipients: Iterable[str],
        send: Callable[[str], Awaitable[object]],
        *,
        endpoint_tag: str,
        kind: str,
    ) -> list[DeliveryResult]:
        event_type = "SMS" if channel is Channel.SMS else "EMAIL"
        results: list[DeliveryResult] = []
        for recipient in recipients:
            try:
                await send(recipient)
            except DeliveryError as e:
                logger.error(
                    "Notification delivery failed",
                    event_type=event_type,
                    tag=endpoint_tag,
                    kind=kind,
                    recipient=recipient,
                    error=str(e),
                )
                results.append(DeliveryResult(recipient, channel.value, False, str(e)))
                continue
            except Exception as e:
                logger.exception(
                    "Unexpected error delivering notification",
                    event_type=event_type,
                    tag=endpoint_tag,
                    kind=kind,
                    recipient=recipient,
                )
                results.append(DeliveryResult(recipient, channel.value, False, f"{type(e).__name__}: {e}"))
                continue

            logger.info(
                "Notification sent",
                event_type=event_type,
                tag=endpoint_tag,
                kind=kind,
                recipient=recipient,
            )
            results.append(DeliveryResult(recipient, channel.value, True))
        return results

    async def _send_sms_all(
        self, recipients: Iterable[str], message: str, endpoint_url: str, *, endpoint_tag: str, kind: str
    ) -> list[DeliveryResult]:
        async def send(phone: str) -> object:
            return await self.notifier.send_sms(phone, message, endpoint_url)

        return await self._deliver(Channel.SMS, recipients, send, endpoint_tag=endpoint_tag, kind=kind)

    async def _send_email_all(
        self, recipients: Iterable[str], email: EmailMessage, endpoint_url: str, *, endpoint_tag: str, kind: str
    ) -> list[DeliveryResult]:
        async def send(address: str) -> object:
            return await self.notifier.send_email(address, email.subject, email.text, email.html, endpoint_url)

        return await self._deliver(Channel.EMAIL, recipients, send, endpoint_tag=endpoint_tag, kind=kind)

    async def notify(
        self,
        channel: Channel | str,
        recipients: list[str],
        items: list[Item],
        endpoint_tag: str,
        mute_link: str | None,
        *,
        endpoint_url: str,
    ) -> list[DeliveryResult]:
        """Send one item summary to every recipient on ``channel``."""
        channel = Channel(channel)
        if channel is Channel.SMS:
            message = build_items_sms(endpoint_tag, items)
            return await self._send_sms_all(recipients, message, endpoint_url, endpoint_tag=endpoint_tag, kind="items")
        email = build_items_email(endpoint_tag, items, mute_link=mute_link, sent_at=self._sent_at())
        return await self._send_email_all(recipients, email, endpoint_url, endpoint_tag=endpoint_tag, kind="items")

    async def notify_api_failure(
        self,
        channel: Channel | str,
        recipients: list[str],
        endpoint_tag: str,
        status: int | None,
        error: str | None,
        mute_link: str | None,
        *,
        endpoint_url: str,
    ) -> list[DeliveryResult]:
        channel = Channel(channel)
        if channel is Channel.SMS:
            message = build_api_failure_sms(endpoint_tag, status, error or "")
            return await self._send_sms_all(
                recipients, message, endpoint_url, endpoint_tag=endpoint_tag, kind="api_failure"
            )
        email = build_api_failure_email(
            endpoint_tag, status, error or "", mute_link=mute_link, sent_at=self._sent_at()
        )
        return await self._send_email_all(
            recipients, email, endpoint_url, endpoint_tag=endpoint_tag, kind="api_failure"
        )

    async def notify_recovery(
        self,
        recipients: list[str],
        endpoint_tag: str,
        previous_error: str | None,
        *,
        endpoint_url: str,
    ) -> list[DeliveryResult]:
        email = build_recovery_email(endpoint_tag, previous_error or "", sent_at=self._sent_at())
        return await self._send_email_all(
            recipients, email, endpoint_url, endpoint_tag=endpoint_tag, kind="recovery"
        )
