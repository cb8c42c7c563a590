from __future__ import annotations

from typing import Any, Protocol

import httpx

from ..errors import DeliveryError

DEFAULT_NOTIFY_TIMEOUT_SECONDS = 15.0


class Notifier(Protocol):
    async def send_sms(self, phone_number: str, message: str, endpoint_url: str) -> Any:
        ...

    async def send_email(
        self,
        address: str,
        subject: str,
        text_body: str,
        html_body: str | None,
        endpoint_url: str,
    ) -> Any:
        ...


def _gateway_payload(resp: httpx.Response) -> Any:
    try:
        return resp.json()
    except ValueError:
        return resp.text


def _raise_for_gateway(resp: httpx.Response, *, channel: str, recipient: str) -> Any:
    data = _gateway_payload(resp)
    if not resp.is_success:
        raise DeliveryError(f"{channel} gateway returned HTTP {resp.status_code} for {recipient}")
    if isinstance(data, dict) and str(data.get("status") or "").upper() == "ERROR":
        detail = data.get("message") or data.get("providerResponse") or "unknown error"
        raise DeliveryError(f"{channel} gateway rejected {recipient}: {str(detail)[:300]}")
    return data


class GatewayNotifier:
    """Client for the SMS/email gateway service.

    SMS:   GET  <sms_endpoint>?to=<phone>&text=<message>
    Email: POST <email_endpoint> {"to", "subject", "text", "html"}
    """

    def __init__(self, client: httpx.AsyncClient, timeout_seconds: float = DEFAULT_NOTIFY_TIMEOUT_SECONDS):
        self.client = client
        self.timeout_seconds = float(timeout_seconds)

    async def send_sms(self, phone_number: str, message: str, endpoint_url: str) -> Any:
        try:
            resp = await self.client.get(
                endpoint_url,
                params={"to": phone_number, "text": message},
                timeout=self.timeout_seconds,
            )
        except httpx.HTTPError as e:
            raise DeliveryError(f"SMS gateway request failed for {phone_number}: {type(e).__name__}: {e}") from e
        return _raise_for_gateway(resp, channel="SMS", recipient=phone_number)

    async def send_email(
        self,
        address: str,
        subject: str,
        text_body: str,
        html_body: str | None,
        endpoint_url: str,
    ) -> Any:
        payload: dict[str, Any] = {"to": address, "subject": subject, "text": text_body}
        if html_body:
            payload["html"] = html_body
        try:
            resp = await self.client.post(endpoint_url, json=payload, timeout=self.timeout_seconds)
        except httpx.HTTPError as e:
            raise DeliveryError(f"Email gateway request failed for {address}: {type(e).__name__}: {e}") from e
        return _raise_for_gateway(resp, channel="Email", recipient=address)
