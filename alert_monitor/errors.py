"""Error taxonomy for the alert monitor."""

from __future__ import annotations


class AlertMonitorError(Exception):
    """Base class for all alert monitor errors."""


class EndpointNotFoundError(AlertMonitorError, KeyError):
    def __init__(self, tag: str):
        self.tag = tag
        super().__init__(f"Endpoint '{tag}' not found")

    def __str__(self) -> str:
        return f"Endpoint '{self.tag}' not found"


class EndpointConfigError(AlertMonitorError):
    """Missing or invalid endpoint configuration."""


class FetchError(AlertMonitorError):
    """Upstream API call failed (network error, timeout or non-2xx status)."""

    def __init__(self, message: str, status: int | None = None):
        self.status = status
        super().__init__(message)


class DeliveryError(AlertMonitorError):
    """A single SMS or email send failed."""


class PersistenceError(AlertMonitorError):
    """State could not be written to durable storage."""


class MuteNotAllowedError(AlertMonitorError):
    """Manual mute was requested for an endpoint that disables it."""
