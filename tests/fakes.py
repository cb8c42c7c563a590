from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from alert_monitor.errors import DeliveryError
from alert_monitor.fetch import ApiRequest, FetchResult

FIXED_NOW = datetime(2024, 5, 1, 12, 0, 0, tzinfo=timezone.utc)


class FakeDataSource:
    """Returns queued results (the last one repeats) and records every request."""

    def __init__(self, *results: FetchResult):
        self.results = list(results) or [FetchResult(ok=True, status=200, data={"items": []})]
        self.requests: list[ApiRequest] = []

    def respond(self, *results: FetchResult) -> None:
        self.results = list(results)

    async def fetch(self, request: ApiRequest) -> FetchResult:
        self.requests.append(request)
        if len(self.results) > 1:
            return self.results.pop(0)
        return self.results[0]


class FakeNotifier:
    def __init__(self, failing: set[str] | None = None):
        self.failing = failing or set()
        self.sms: list[dict[str, Any]] = []
        self.emails: list[dict[str, Any]] = []

    async def send_sms(self, phone_number: str, message: str, endpoint_url: str) -> Any:
        if phone_number in self.failing:
            raise DeliveryError(f"gateway rejected {phone_number}")
        self.sms.append({"to": phone_number, "text": message, "endpoint": endpoint_url})
        return {"status": "OK"}

    async def send_email(
        self,
        address: str,
        subject: str,
        text_body: str,
        html_body: str | None,
        endpoint_url: str,
    ) -> Any:
        if address in self.failing:
            raise DeliveryError(f"gateway rejected {address}")
        self.emails.append(
            {"to": address, "subject": subject, "text": text_body, "html": html_body, "endpoint": endpoint_url}
        )
        return {"status": "OK"}


def ok(data: Any, status: int = 200) -> FetchResult:
    return FetchResult(ok=True, status=status, data=data)


def failed(error: str = "HTTP 503", status: int | None = 503) -> FetchResult:
    return FetchResult(ok=False, status=status, error=error)


class Clock:
    def __init__(self, now: datetime = FIXED_NOW):
        self.now = now

    def __call__(self) -> datetime:
        return self.now


ENDPOINT = {
    "api_endpoint": "https://x/y",
    "items_path": "data",
    "id_path": "id",
    "timestamp_path": "createdAt",
    "phone_numbers": ["+8801000000001"],
    "email_addresses": ["ops@example.com"],
    "check_interval_ms": 60000,
}
