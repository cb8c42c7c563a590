"""Notification state persistence."""

from .models import ApiStatus, EndpointState
from .state_store import NotificationStateStore

__all__ = ["ApiStatus", "EndpointState", "NotificationStateStore"]
