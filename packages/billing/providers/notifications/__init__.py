"""Notification providers - delivery of billing notices to users."""

from packages.billing.providers.notifications.interface import (
    NotificationProviderInterface,
)
from packages.billing.providers.notifications.factory import get_notification_provider

__all__ = [
    "NotificationProviderInterface",
    "get_notification_provider",
]
