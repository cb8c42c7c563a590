"""Endpoint configuration models."""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..mapping import MappingPaths

# Fields derived from global settings on every write; never taken from user input.
DERIVED_FIELDS = frozenset({"sms_endpoint", "email_endpoint"})


class HttpMethod(str, Enum):
    GET = "GET"
    POST = "POST"
    PUT = "PUT"
    PATCH = "PATCH"
    DELETE = "DELETE"


class AuthType(str, Enum):
    NONE = "none"
    BEARER = "bearer"
    BASIC = "basic"


def normalize_recipients(value: Any) -> list[str]:
    """Accept a list or a comma-separated string; trim and drop blanks."""
    if value is None:
        return []
    if isinstance(value, str):
        parts = value.split(",")
    elif isinstance(value, (list, tuple, set)):
        parts = list(value)
    else:
        return []
    out: list[str] = []
    for part in parts:
        s = str(part if part is not None else "").strip()
        if s:
            out.append(s)
    return out


def coerce_bool(value: Any, default: bool) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value != 0
    if isinstance(value, str):
        s = value.strip().lower()
        if s in {"1", "true", "yes", "y", "on"}:
            return True
        if s in {"0", "false", "no", "n", "off"}:
            return False
    return default


class EndpointConfig(BaseModel):
    """One monitored API endpoint and how its alerts are delivered."""

    model_config = ConfigDict(extra="ignore")

    tag: str = Field(..., min_length=1, max_length=200)

    # Upstream API
    api_endpoint: str = Field(default="", description="URL polled on every tick")
    method: HttpMethod = Field(default=HttpMethod.GET)
    headers: dict[str, Any] = Field(default_factory=dict)
    query: dict[str, Any] = Field(default_factory=dict)
    body: dict[str, Any] = Field(default_factory=dict)
    auth_type: AuthType = Field(default=AuthType.NONE)
    auth_token: str = ""
    auth_username: str = ""
    auth_password: str = ""

    # Response mapping
    items_path: str = "items"
    id_path: str = "id"
    timestamp_path: str = "createdAt"
    title_path: str = ""
    details_path: str = ""

    # Notification settings
    enable_sms: bool = True
    enable_email: bool = True
    enable_manual_mute: bool = True
    enable_recovery_email: bool = True
    phone_numbers: list[str] = Field(default_factory=list)
    email_addresses: list[str] = Field(default_factory=list)
    check_interval_ms: int = Field(default=60_000, gt=0, description="Polling interval in milliseconds")

    # Derived delivery endpoints
    sms_endpoint: str = ""
    email_endpoint: str = ""

    updated_at: str | None = None

    @field_validator("method", mode="before")
    @classmethod
    def _upper_method(cls, value: Any) -> Any:
        if value is None or value == "":
            return HttpMethod.GET
        return str(value).strip().upper() if isinstance(value, str) else value

    @field_validator("auth_type", mode="before")
    @classmethod
    def _normalize_auth_type(cls, value: Any) -> Any:
        if value is None:
            return AuthType.NONE
        if isinstance(value, str):
            s = value.strip().lower()
            return s or AuthType.NONE
        return value

    @field_validator("phone_numbers", "email_addresses", mode="before")
    @classmethod
    def _normalize_recipients(cls, value: Any) -> list[str]:
        return normalize_recipients(value)

    @field_validator("enable_sms", "enable_email", "enable_manual_mute", "enable_recovery_email", mode="before")
    @classmethod
    def _coerce_toggle(cls, value: Any) -> bool:
        return coerce_bool(value, True)

    @field_validator("headers", "query", "body", mode="before")
    @classmethod
    def _none_to_empty(cls, value: Any) -> Any:
        return {} if value is None else value

    @property
    def mapping_paths(self) -> MappingPaths:
        return MappingPaths(
            items_path=self.items_path,
            id_path=self.id_path,
            timestamp_path=self.timestamp_path,
            title_path=self.title_path,
            details_path=self.details_path,
        )

    @property
    def check_interval_seconds(self) -> float:
        return self.check_interval_ms / 1000.0

    def sms_ready(self) -> bool:
        return bool(self.enable_sms and self.phone_numbers and self.sms_endpoint)

    def email_ready(self) -> bool:
        return bool(self.enable_email and self.email_addresses and self.email_endpoint)


class GlobalSettings(BaseModel):
    """Runtime-editable settings shared by every endpoint."""

    sms_endpoint: str = ""
    email_endpoint: str = ""
    control_server_url: str = ""


class RemoveResult(BaseModel):
    tag: str
    deleted: bool
    message: str = ""
