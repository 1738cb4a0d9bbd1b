"""
Delivery of Notify commands after their transaction has committed.
"""

from typing import Iterable, Optional

from common.core.otel_axiom_exporter import get_logger
from packages.billing.models.domain.commands import Notify
from packages.billing.providers.notifications.factory import get_notification_provider
from packages.billing.providers.notifications.interface import (
    NotificationProviderInterface,
)

logger = get_logger(__name__)


class NotificationDispatcher:
    """
    Sends notifications produced by state transitions.

    Runs after commit: the state change already happened, so a delivery failure
    is logged and does not undo or retry it.
    """

    def __init__(self, provider: Optional[NotificationProviderInterface] = None):
        self.provider = provider or get_notification_provider()

    async def dispatch(self, user_id: int, notifications: Iterable[Notify]) -> int:
        sent = 0
        for notification in notifications:
            try:
                await self.provider.send(
                    user_id,
                    notification.notification,
                    notification.message,
                    notification.context,
                )
                sent += 1
            except Exception as e:
                logger.error(
                    f"Failed to deliver {notification.notification.value} notification: {e}",
                    extra={"user_id": user_id},
                    exc_info=True,
                )
        return sent
