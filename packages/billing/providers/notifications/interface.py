"""
Interface for notification providers.
"""

from abc import ABC, abstractmethod
from typing import Any, Optional

from packages.billing.models.domain.enums import NotificationKind


class NotificationProviderInterface(ABC):
    @abstractmethod
    async def send(
        self,
        user_id: int,
        kind: NotificationKind,
        message: str,
        context: Optional[dict[str, Any]] = None,
    ) -> None:
        """
        Deliver a billing notification.

        Args:
            user_id: Recipient
            kind: Notification category (payment failed, dunning attempt, ...)
            message: Human readable summary
            context: Extra fields for templating
        """
        pass
