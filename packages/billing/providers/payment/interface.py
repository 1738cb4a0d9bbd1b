"""
Interface for payment providers.

Abstracts the payment gateway (Stripe today). Every call is opaque external I/O
returning a gateway reference id; failures surface as GatewayUnavailable.
"""

from abc import ABC, abstractmethod
from typing import Optional, Tuple

from packages.billing.models.domain.enums import BillingCycle, PurchaseType
from packages.billing.models.domain.plans import Plan


class PaymentProviderInterface(ABC):
    """Abstract interface for payment providers."""

    @abstractmethod
    async def create_customer(self, user_id: int, email: Optional[str] = None) -> str:
        """
        Create a customer in the payment provider.

        Args:
            user_id: Internal user ID
            email: Customer email for receipts

        Returns:
            customer_id: Payment provider customer ID
        """
        pass

    @abstractmethod
    async def create_checkout_session(
        self,
        user_id: int,
        plan: Plan,
        billing_cycle: BillingCycle,
        success_url: str,
        cancel_url: str,
        customer_id: Optional[str] = None,
        customer_email: Optional[str] = None,
        trial_period_days: Optional[int] = None,
    ) -> Tuple[str, str]:
        """
        Create a checkout session for a subscription.

        Args:
            user_id: Internal user ID
            plan: Plan being purchased
            billing_cycle: monthly or yearly
            success_url: URL to redirect on success
            cancel_url: URL to redirect on cancel
            customer_id: Existing customer ID to reuse
            customer_email: Email used when a customer has to be created
            trial_period_days: Optional trial period in days

        Returns:
            Tuple of (checkout_url, customer_id)
        """
        pass

    @abstractmethod
    async def create_payment_intent(
        self,
        user_id: int,
        amount: int,
        currency: str,
        purchase_id: str,
        purchase_type: PurchaseType,
        description: Optional[str] = None,
        customer_id: Optional[str] = None,
    ) -> Tuple[str, str]:
        """
        Create a payment intent for a one-time purchase.

        Returns:
            Tuple of (payment_intent_id, client_secret)
        """
        pass

    @abstractmethod
    async def create_customer_portal_session(self, customer_id: str, return_url: str) -> str:
        """
        Create a customer portal session for managing payment methods and invoices.

        Returns:
            portal_url: URL to customer portal
        """
        pass

    @abstractmethod
    async def update_subscription_plan(
        self,
        subscription_id: str,
        plan: Plan,
        billing_cycle: BillingCycle,
        user_id: int,
    ) -> None:
        """
        Move an existing gateway subscription to another plan/price.

        Proration is recorded locally, so the gateway is told not to prorate.

        Args:
            subscription_id: Payment provider subscription ID
            plan: New plan
            billing_cycle: New billing cycle
            user_id: Internal user ID
        """
        pass

    @abstractmethod
    async def retry_invoice_payment(self, invoice_id: str) -> bool:
        """
        Attempt to collect an open invoice again.

        Returns:
            True if the payment went through, False if it was declined
        """
        pass

    @abstractmethod
    async def cancel_subscription(self, subscription_id: str) -> None:
        pass

    @abstractmethod
    async def health_check(self) -> bool:
        pass
