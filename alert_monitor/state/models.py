"""Per-endpoint notification state."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Iterable

from pydantic import BaseModel, ConfigDict, Field, field_validator


class ApiStatus(str, Enum):
    SUCCESS = "success"
    FAILURE = "failure"


def _unique_strings(values: Any) -> list[str]:
    if not isinstance(values, (list, tuple, set)):
        return []
    out: list[str] = []
    seen: set[str] = set()
    for value in values:
        if value is None:
            continue
        s = value if isinstance(value, str) else str(value)
        if s not in seen:
            seen.add(s)
            out.append(s)
    return out


class EndpointState(BaseModel):
    """Mute flags, last API status and the id sets for one endpoint.

    Stored with the camelCase keys used by the on-disk state document.
    """

    model_config = ConfigDict(populate_by_name=True)

    mute_payment: bool = Field(default=False, alias="mutePayment")
    mute_payment_until: datetime | None = Field(default=None, alias="mutePaymentUntil")
    mute_api: bool = Field(default=False, alias="muteApi")
    last_api_status: ApiStatus = Field(default=ApiStatus.SUCCESS, alias="lastApiStatus")
    last_failure_message: str = Field(default="", alias="lastFailureMessage")
    processed_payment_ids: list[str] = Field(default_factory=list, alias="processedPaymentIds")
    muted_payment_ids: list[str] = Field(default_factory=list, alias="mutedPaymentIds")

    @field_validator("mute_payment_until", mode="before")
    @classmethod
    def _blank_is_none(cls, value: Any) -> Any:
        if value == "":
            return None
        return value

    @field_validator("mute_payment_until")
    @classmethod
    def _assume_utc(cls, value: datetime | None) -> datetime | None:
        if value is not None and value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value

    @field_validator("last_failure_message", mode="before")
    @classmethod
    def _none_is_blank(cls, value: Any) -> Any:
        return "" if value is None else value

    @field_validator("processed_payment_ids", "muted_payment_ids", mode="before")
    @classmethod
    def _dedupe_ids(cls, value: Any) -> list[str]:
        return _unique_strings(value)

    def add_processed(self, ids: Iterable[str]) -> None:
        seen = set(self.processed_payment_ids)
        for item_id in ids:
            if item_id not in seen:
                seen.add(item_id)
                self.processed_payment_ids.append(item_id)

    def add_muted(self, ids: Iterable[str]) -> None:
        seen = set(self.muted_payment_ids)
        for item_id in ids:
            if item_id not in seen:
                seen.add(item_id)
                self.muted_payment_ids.append(item_id)

    def clear_mute(self) -> None:
        self.mute_payment = False
        self.mute_payment_until = None
        self.muted_payment_ids = []

    def mute_expired(self, now: datetime) -> bool:
        return bool(self.mute_payment and self.mute_payment_until is not None and now >= self.mute_payment_until)

    def to_document(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)
