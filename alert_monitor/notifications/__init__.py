from .dispatcher import Channel, DeliveryResult, NotificationDispatcher
from .gateway_client import GatewayNotifier, Notifier
from .messages import EmailMessage, format_display_time

__all__ = [
    "Channel",
    "DeliveryResult",
    "EmailMessage",
    "GatewayNotifier",
    "NotificationDispatcher",
    "Notifier",
    "format_display_time",
]
