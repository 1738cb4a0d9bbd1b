"""
Notification provider that writes notices to the application log.

Stands in until an email provider is configured.
"""

from typing import Any, Optional

from common.core.otel_axiom_exporter import get_logger, log_span_event
from packages.billing.models.domain.enums import NotificationKind
from packages.billing.providers.notifications.interface import (
    NotificationProviderInterface,
)

logger = get_logger(__name__)


class LogNotificationProvider(NotificationProviderInterface):
    async def send(
        self,
        user_id: int,
        kind: NotificationKind,
        message: str,
        context: Optional[dict[str, Any]] = None,
    ) -> None:
        log_span_event(
            f"Billing notification: {kind.value}",
            {"user_id": user_id, "notification": kind.value, "summary": message},
        )
        logger.debug(f"Notification context: {context or {}}")
