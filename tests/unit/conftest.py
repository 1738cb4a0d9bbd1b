import uuid
from typing import Optional

import pytest
from unittest.mock import AsyncMock, MagicMock, patch

from common.providers.locking.interface import DistributedLockInterface
from packages.billing.providers.notifications.interface import (
    NotificationProviderInterface,
)
from packages.billing.services.notification_dispatcher import NotificationDispatcher
from packages.billing.services.subscription_service import SubscriptionService


class InMemoryLock(DistributedLockInterface):
    """Process-local lock with the provider's semantics, for unit tests."""

    def __init__(self):
        self.held: dict[str, str] = {}
        self.acquired: list[str] = []

    async def acquire_lock(
        self, resource_key: str, timeout_seconds: int = 30
    ) -> Optional[str]:
        if resource_key in self.held:
            return None
        token = str(uuid.uuid4())
        self.held[resource_key] = token
        self.acquired.append(resource_key)
        return token

    async def release_lock(self, resource_key: str, lock_token: str) -> bool:
        if self.held.get(resource_key) != lock_token:
            return False
        del self.held[resource_key]
        return True

    async def is_locked(self, resource_key: str) -> bool:
        return resource_key in self.held

    async def disconnect(self) -> None:
        self.held.clear()


class RecordingNotificationProvider(NotificationProviderInterface):
    """Keeps every notification it is asked to deliver."""

    def __init__(self):
        self.sent: list[tuple] = []

    async def send(self, user_id, kind, message, context=None) -> None:
        self.sent.append((user_id, kind, message, context))

    def kinds(self) -> list:
        return [kind for _, kind, _, _ in self.sent]


@pytest.fixture
def mock_lock_provider():
    """In-memory lock provider for testing."""
    return InMemoryLock()


@pytest.fixture
def mock_payment_provider():
    """Create a mocked payment provider (Stripe)."""
    provider = AsyncMock()
    provider.create_checkout_session = AsyncMock(
        return_value=("https://checkout.stripe.com/mock", "cus_mock123")
    )
    provider.create_customer_portal_session = AsyncMock(
        return_value="https://billing.stripe.com/mock"
    )
    provider.create_payment_intent = AsyncMock(
        return_value=("pi_mock123", "pi_mock123_secret")
    )
    provider.update_subscription_plan = AsyncMock(return_value=None)
    provider.retry_invoice_payment = AsyncMock(return_value=False)
    provider.cancel_subscription = AsyncMock(return_value=None)
    provider.health_check = AsyncMock(return_value=True)
    return provider


@pytest.fixture
def notification_provider():
    return RecordingNotificationProvider()


@pytest.fixture(autouse=True)
def mock_providers(mock_lock_provider, mock_payment_provider, notification_provider):
    """Automatically replace external providers for all unit tests."""
    with patch(
        "packages.billing.services.subscription_service.get_lock_provider",
        return_value=mock_lock_provider,
    ), patch(
        "packages.billing.services.subscription_service.get_payment_provider",
        return_value=mock_payment_provider,
    ), patch(
        "packages.billing.services.notification_dispatcher.get_notification_provider",
        return_value=notification_provider,
    ):
        yield


@pytest.fixture
def subscription_service(mock_lock_provider, mock_payment_provider, notification_provider):
    """SubscriptionService wired to the test providers."""
    return SubscriptionService(
        payment=mock_payment_provider,
        lock_provider=mock_lock_provider,
        dispatcher=NotificationDispatcher(notification_provider),
    )


@pytest.fixture
def mock_span():
    """Create a mock span instance for testing telemetry."""
    span = MagicMock()
    span.__enter__ = MagicMock(return_value=span)
    span.__exit__ = MagicMock(return_value=None)
    return span
