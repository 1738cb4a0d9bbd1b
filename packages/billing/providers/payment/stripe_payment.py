"""
Stripe implementation of payment provider.
"""

from typing import Optional, Tuple
import stripe

from common.core.config import settings
from common.core.exceptions import GatewayUnavailable
from common.core.otel_axiom_exporter import trace_span, get_logger
from packages.billing.models.domain.enums import BillingCycle, PurchaseType
from packages.billing.models.domain.plans import Plan
from packages.billing.providers.payment.interface import PaymentProviderInterface

logger = get_logger(__name__)

_INTERVALS = {BillingCycle.MONTHLY: "month", BillingCycle.YEARLY: "year"}


class StripePaymentProvider(PaymentProviderInterface):
    """Stripe-based payment implementation."""

    def __init__(self):
        stripe.api_key = settings.stripe_secret_key
        # "<plan_id>:<billing_cycle>" -> Stripe price id
        self.price_ids = settings.stripe_price_ids

    def _line_item(self, plan: Plan, billing_cycle: BillingCycle) -> dict:
        price_id = self.price_ids.get(f"{plan.id}:{billing_cycle.value}")
        if price_id:
            return {"price": price_id, "quantity": 1}
        # No catalog price configured: price inline from the plan
        return {
            "price_data": {
                "currency": plan.currency.lower(),
                "unit_amount": plan.price_for(billing_cycle),
                "recurring": {"interval": _INTERVALS[billing_cycle]},
                "product_data": {"name": plan.name},
            },
            "quantity": 1,
        }

    @trace_span
    async def create_customer(self, user_id: int, email: Optional[str] = None) -> str:
        try:
            customer = stripe.Customer.create(
                email=email,
                metadata={"user_id": str(user_id)},
            )
        except stripe.StripeError as e:
            logger.error(
                f"Failed to create Stripe customer: {str(e)}",
                extra={"user_id": user_id, "error": str(e)},
            )
            raise GatewayUnavailable("Could not create customer") from e

        logger.info(
            "Created Stripe customer",
            extra={"user_id": user_id, "customer_id": customer.id},
        )
        return customer.id

    @trace_span
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
        if not customer_id:
            customer_id = await self.create_customer(user_id, customer_email)

        subscription_data = {
            "metadata": {
                "user_id": str(user_id),
                "plan_id": plan.id,
                "billing_cycle": billing_cycle.value,
            }
        }
        if trial_period_days:
            subscription_data["trial_period_days"] = trial_period_days

        try:
            session = stripe.checkout.Session.create(
                customer=customer_id,
                payment_method_types=["card"],
                line_items=[self._line_item(plan, billing_cycle)],
                mode="subscription",
                success_url=success_url,
                cancel_url=cancel_url,
                metadata={"user_id": str(user_id), "plan_id": plan.id},
                subscription_data=subscription_data,
            )
        except stripe.StripeError as e:
            logger.error(
                f"Failed to create checkout session: {str(e)}",
                extra={"user_id": user_id, "plan_id": plan.id, "error": str(e)},
            )
            raise GatewayUnavailable("Could not create checkout session") from e

        logger.info(
            "Created Stripe checkout session",
            extra={
                "user_id": user_id,
                "plan_id": plan.id,
                "billing_cycle": billing_cycle.value,
                "session_id": session.id,
            },
        )
        return session.url, customer_id

    @trace_span
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
        try:
            intent = stripe.PaymentIntent.create(
                amount=amount,
                currency=currency.lower(),
                customer=customer_id,
                description=description,
                automatic_payment_methods={"enabled": True},
                metadata={
                    "user_id": str(user_id),
                    "purchase_id": purchase_id,
                    "purchase_type": purchase_type.value,
                },
            )
        except stripe.StripeError as e:
            logger.error(
                f"Failed to create payment intent: {str(e)}",
                extra={"user_id": user_id, "purchase_id": purchase_id, "error": str(e)},
            )
            raise GatewayUnavailable("Could not create payment intent") from e

        logger.info(
            "Created Stripe payment intent",
            extra={"user_id": user_id, "purchase_id": purchase_id, "intent_id": intent.id},
        )
        return intent.id, intent.client_secret

    @trace_span
    async def create_customer_portal_session(self, customer_id: str, return_url: str) -> str:
        try:
            session = stripe.billing_portal.Session.create(
                customer=customer_id,
                return_url=return_url,
            )
        except stripe.StripeError as e:
            logger.error(
                f"Failed to create portal session: {str(e)}",
                extra={"customer_id": customer_id, "error": str(e)},
            )
            raise GatewayUnavailable("Could not create billing portal session") from e

        return session.url

    @trace_span
    async def cancel_subscription(self, subscription_id: str) -> None:
        try:
            stripe.Subscription.cancel(subscription_id)
        except stripe.StripeError as e:
            logger.error(
                f"Failed to cancel subscription: {str(e)}",
                extra={"subscription_id": subscription_id, "error": str(e)},
            )
            raise GatewayUnavailable("Could not cancel subscription") from e

        logger.info(
            "Cancelled Stripe subscription",
            extra={"subscription_id": subscription_id},
        )

    @trace_span
    async def update_subscription_plan(
        self,
        subscription_id: str,
        plan: Plan,
        billing_cycle: BillingCycle,
        user_id: int,
    ) -> None:
        try:
            subscription = stripe.Subscription.retrieve(subscription_id)
            item_id = subscription["items"]["data"][0]["id"]

            item = self._line_item(plan, billing_cycle)
            item.pop("quantity")
            stripe.Subscription.modify(
                subscription_id,
                items=[{"id": item_id, **item}],
                metadata={
                    "user_id": str(user_id),
                    "plan_id": plan.id,
                    "billing_cycle": billing_cycle.value,
                },
                proration_behavior="none",
            )
        except stripe.StripeError as e:
            logger.error(
                f"Failed to update subscription plan: {str(e)}",
                extra={"subscription_id": subscription_id, "error": str(e)},
            )
            raise GatewayUnavailable("Could not update subscription plan") from e

        logger.info(
            f"Updated Stripe subscription to {plan.id}",
            extra={
                "subscription_id": subscription_id,
                "plan_id": plan.id,
                "billing_cycle": billing_cycle.value,
                "user_id": user_id,
            },
        )

    @trace_span
    async def retry_invoice_payment(self, invoice_id: str) -> bool:
        try:
            invoice = stripe.Invoice.pay(invoice_id)
        except stripe.CardError as e:
            logger.info(
                "Invoice retry declined",
                extra={"invoice_id": invoice_id, "decline_code": e.code},
            )
            return False
        except stripe.StripeError as e:
            logger.error(
                f"Failed to retry invoice: {str(e)}",
                extra={"invoice_id": invoice_id, "error": str(e)},
            )
            raise GatewayUnavailable("Could not retry invoice payment") from e

        return invoice.status == "paid"

    @trace_span
    async def health_check(self) -> bool:
        try:
            stripe.Account.retrieve()
            return True
        except stripe.StripeError as e:
            logger.error(f"Payment health check failed: {e}")
            return False
