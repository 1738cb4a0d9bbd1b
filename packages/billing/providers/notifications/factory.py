"""
Factory for the notification provider.
"""

from packages.billing.providers.notifications.interface import (
    NotificationProviderInterface,
)
from packages.billing.providers.notifications.log_notifications import (
    LogNotificationProvider,
)


def get_notification_provider() -> NotificationProviderInterface:
    return LogNotificationProvider()
