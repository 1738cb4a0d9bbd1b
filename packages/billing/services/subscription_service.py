"""
Service for managing subscriptions.

Every status change goes through the state machine:

    lock subscription:{id}
      transaction
        load state -> transition -> persist state -> execute commands
      commit
    send notifications
"""

import uuid
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import datetime
from typing import AsyncGenerator, Optional

from sqlalchemy.exc import IntegrityError

from common.core.config import settings
from common.core.exceptions import (
    GatewayUnavailable,
    NotFoundError,
    SubscriptionConflict,
    UnsupportedCurrency,
    ValidationError,
)
from common.core.otel_axiom_exporter import trace_span, get_logger
from common.db.base import utcnow
from common.db.scoped import transaction
from common.providers.locking.factory import get_lock_provider
from common.providers.locking.interface import DistributedLockInterface
from packages.billing.lock_keys import subscription_lock_key
from packages.billing.models.domain.commands import Command, Notify
from packages.billing.models.domain.enums import (
    BillingCycle,
    CancellationReason,
    PurchaseType,
    SubscriptionStatus,
)
from packages.billing.models.domain.inputs import (
    CancelSubscription,
    ChangePlan,
    CreateSubscription,
    DunningRecovered,
)
from packages.billing.models.domain.plans import Plan
from packages.billing.models.domain.subscription import (
    Subscription,
    SubscriptionCreateModel,
    SubscriptionUpdateModel,
)
from packages.billing.providers.payment.factory import get_payment_provider
from packages.billing.providers.payment.interface import PaymentProviderInterface
from packages.billing.repositories.plan_repository import PlanRepository
from packages.billing.repositories.subscription_repository import SubscriptionRepository
from packages.billing.services.command_executor import CommandExecutor
from packages.billing.services.notification_dispatcher import NotificationDispatcher
from packages.billing.services.plans_service import PlansService
from packages.billing.state_machine import open_subscription, transition
from packages.dunning.models.domain.dunning import DunningCase, RetryOutcome
from packages.dunning.services.dunning_scheduler import DunningScheduler
from packages.money.services.money_service import MoneyService

logger = get_logger(__name__)


@dataclass
class AppliedTransition:
    """A committed-to-be state change and what it produced."""

    subscription: Subscription
    previous_status: SubscriptionStatus
    commands: list[Command] = field(default_factory=list)
    notifications: list[Notify] = field(default_factory=list)
    # Canceled locally by dunning exhaustion; the gateway still bills it
    gateway_cancel_pending: bool = False


@dataclass
class CheckoutSession:
    checkout_url: str
    subscription: Subscription


@dataclass
class PurchaseIntent:
    purchase_id: str
    payment_intent_id: str
    client_secret: str
    amount: int
    currency: str


class SubscriptionService:
    """Service for subscription management."""

    def __init__(
        self,
        subscription_repo: Optional[SubscriptionRepository] = None,
        plan_repo: Optional[PlanRepository] = None,
        dunning: Optional[DunningScheduler] = None,
        executor: Optional[CommandExecutor] = None,
        dispatcher: Optional[NotificationDispatcher] = None,
        payment: Optional[PaymentProviderInterface] = None,
        lock_provider: Optional[DistributedLockInterface] = None,
        money: Optional[MoneyService] = None,
    ):
        self.subscription_repo = subscription_repo or SubscriptionRepository()
        self.plans = PlansService(plan_repo or PlanRepository())
        self.dispatcher = dispatcher or NotificationDispatcher()
        self.dunning = dunning or DunningScheduler(dispatcher=self.dispatcher)
        self.money = money or MoneyService()
        self.executor = executor or CommandExecutor(dunning=self.dunning, money=self.money)
        self.payment = payment or get_payment_provider()
        self.lock_provider = lock_provider or get_lock_provider()

    # ------------------------------------------------------------------
    # State machine application
    # ------------------------------------------------------------------

    @asynccontextmanager
    async def locked(self, subscription_id: int) -> AsyncGenerator[None, None]:
        """
        Per-subscription mutual exclusion.

        Raises:
            ConflictingWrite: If another writer holds the lock past the timeout
        """
        async with self.lock_provider.hold(
            subscription_lock_key(subscription_id),
            lock_ttl_seconds=settings.subscription_lock_ttl_seconds,
            acquire_timeout_seconds=settings.subscription_lock_acquire_timeout_seconds,
        ):
            yield

    @trace_span
    async def apply_in_transaction(self, subscription_id: int, event) -> AppliedTransition:
        """
        Run `event` through the state machine and execute the resulting commands.

        Must be called under `locked(subscription_id)` inside a `transaction()`.
        Intents produced by the commands (a cancellation after the last dunning
        attempt) are applied right after, in the same transaction.
        """
        subscription = await self.subscription_repo.get(subscription_id)
        if not subscription:
            raise NotFoundError(f"Subscription {subscription_id} not found")

        applied = AppliedTransition(
            subscription=subscription, previous_status=subscription.status
        )
        pending = [event]
        while pending:
            current = pending.pop(0)
            state = applied.subscription.state()
            outcome = transition(state, current)
            if outcome.changed_from(state):
                applied.subscription = await self.subscription_repo.apply_state(
                    subscription_id, outcome.state
                )

            if (
                isinstance(current, CancelSubscription)
                and current.reason == CancellationReason.DUNNING_EXHAUSTED
                and outcome.changed_from(state)
            ):
                applied.gateway_cancel_pending = True

            result = await self.executor.execute(applied.subscription, outcome.commands)
            applied.commands.extend(outcome.commands)
            applied.notifications.extend(result.notifications)
            pending.extend(result.follow_ups)

        if applied.subscription.status != applied.previous_status:
            logger.info(
                f"Subscription {subscription_id} moved from "
                f"{applied.previous_status.value} to {applied.subscription.status.value}",
                extra={
                    "subscription_id": subscription_id,
                    "user_id": subscription.user_id,
                    "input": getattr(event, "kind", type(event).__name__),
                },
            )
        return applied

    @trace_span
    async def apply(self, subscription_id: int, event) -> Subscription:
        """Apply one intent or fact under the subscription lock and commit it."""
        async with self.locked(subscription_id):
            async with transaction():
                applied = await self.apply_in_transaction(subscription_id, event)
        await self.after_commit(applied)
        return applied.subscription

    async def after_commit(self, applied: AppliedTransition) -> None:
        """
        Side effects that must not run before the ledger commits: notifications,
        and the gateway cancellation of a subscription dunning gave up on.
        """
        if applied.gateway_cancel_pending:
            await self._cancel_at_gateway(applied.subscription)
        if applied.notifications:
            await self.dispatcher.dispatch(applied.subscription.user_id, applied.notifications)

    async def _cancel_at_gateway(self, subscription: Subscription) -> None:
        if not subscription.gateway_subscription_id:
            return
        try:
            await self.payment.cancel_subscription(subscription.gateway_subscription_id)
        except GatewayUnavailable as e:
            # Local cancellation stands; reconcile against the gateway by hand
            logger.error(
                f"Gateway cancellation failed for subscription {subscription.id}: {e}",
                extra={
                    "subscription_id": subscription.id,
                    "gateway_subscription_id": subscription.gateway_subscription_id,
                    "reconcile": True,
                },
            )
            return
        logger.info(
            f"Canceled gateway subscription {subscription.gateway_subscription_id} "
            f"after dunning exhaustion",
            extra={"subscription_id": subscription.id},
        )

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    @trace_span
    async def get_current(self, user_id: int) -> tuple[Subscription, Plan]:
        """The user's open subscription (or latest one) with its plan."""
        subscription = await self.subscription_repo.get_open_for_user(user_id)
        if not subscription:
            subscription = await self.subscription_repo.get_latest_for_user(user_id)
        if not subscription:
            raise NotFoundError(f"No subscription found for user {user_id}")
        plan = await self.plans.get_plan(subscription.plan_id)
        return subscription, plan

    async def _require_open(self, user_id: int) -> Subscription:
        subscription = await self.subscription_repo.get_open_for_user(user_id)
        if not subscription:
            raise NotFoundError(f"No open subscription for user {user_id}")
        return subscription

    # ------------------------------------------------------------------
    # Intents
    # ------------------------------------------------------------------

    @trace_span
    async def start_checkout(
        self,
        user_id: int,
        plan_id: str,
        billing_cycle: BillingCycle,
        success_url: str,
        cancel_url: str,
        customer_email: Optional[str] = None,
        trial_period_days: Optional[int] = None,
    ) -> CheckoutSession:
        """
        Create a gateway checkout session and the pending subscription behind it.

        The gateway call happens first; if it fails nothing is written. A user
        who abandoned an earlier checkout has that pending subscription reused.

        Raises:
            SubscriptionConflict: If the user already has a live subscription
            GatewayUnavailable: If the gateway call fails
        """
        plan = await self.plans.get_active_plan(plan_id)

        existing = await self.subscription_repo.get_open_for_user(user_id)
        if existing and existing.status != SubscriptionStatus.PENDING:
            raise SubscriptionConflict(
                f"User {user_id} already has a {existing.status.value} subscription"
            )
        if not existing:
            previous = await self.subscription_repo.get_latest_for_user(user_id)
        else:
            previous = existing

        checkout_url, customer_id = await self.payment.create_checkout_session(
            user_id=user_id,
            plan=plan,
            billing_cycle=billing_cycle,
            success_url=success_url,
            cancel_url=cancel_url,
            customer_id=previous.gateway_customer_id if previous else None,
            customer_email=customer_email,
            trial_period_days=trial_period_days,
        )

        if existing:
            subscription = await self._refresh_pending(
                existing, plan, billing_cycle, customer_id
            )
        else:
            subscription = await self._create_pending(
                user_id, plan, billing_cycle, customer_id
            )

        logger.info(
            f"Created checkout session for user {user_id}",
            extra={
                "user_id": user_id,
                "plan_id": plan.id,
                "billing_cycle": billing_cycle.value,
                "subscription_id": subscription.id,
                "trial_days": trial_period_days,
            },
        )
        return CheckoutSession(checkout_url=checkout_url, subscription=subscription)

    async def _create_pending(
        self, user_id: int, plan: Plan, billing_cycle: BillingCycle, customer_id: str
    ) -> Subscription:
        state = open_subscription(
            CreateSubscription(at=utcnow(), plan_id=plan.id, billing_cycle=billing_cycle)
        ).state
        try:
            async with transaction():
                return await self.subscription_repo.create(
                    SubscriptionCreateModel(
                        user_id=user_id,
                        plan_id=state.plan_id,
                        billing_cycle=state.billing_cycle,
                        status=state.status,
                        gateway_customer_id=customer_id,
                    )
                )
        except IntegrityError as e:
            raise SubscriptionConflict(
                f"User {user_id} already has an open subscription"
            ) from e

    async def _refresh_pending(
        self,
        subscription: Subscription,
        plan: Plan,
        billing_cycle: BillingCycle,
        customer_id: str,
    ) -> Subscription:
        async with self.locked(subscription.id):
            async with transaction():
                await self.apply_in_transaction(
                    subscription.id,
                    ChangePlan(
                        at=utcnow(),
                        plan_id=plan.id,
                        billing_cycle=billing_cycle,
                        current_price=0,
                        new_price=plan.price_for(billing_cycle),
                        currency=plan.currency,
                        prorate=False,
                    ),
                )
                return await self.subscription_repo.update(
                    subscription.id,
                    SubscriptionUpdateModel(gateway_customer_id=customer_id),
                )

    @trace_span
    async def change_plan(
        self,
        user_id: int,
        plan_id: str,
        billing_cycle: Optional[BillingCycle] = None,
        at: Optional[datetime] = None,
        prorate: bool = True,
    ) -> Subscription:
        """
        Move the user's subscription to another plan.

        Both prices are taken over the current billing cycle and in the current
        plan's currency; the difference for the rest of the period is recorded
        as a pending proration line item.

        Raises:
            NotFoundError: If the user has no open subscription or the plan does not exist
            InvalidTransition: If the subscription is in dunning
            GatewayUnavailable: If the gateway subscription cannot be updated
        """
        at = at or utcnow()
        subscription = await self._require_open(user_id)
        billing_cycle = billing_cycle or subscription.billing_cycle
        current_plan = await self.plans.get_plan(subscription.plan_id)
        new_plan = await self.plans.get_active_plan(plan_id)

        new_price = self.money.convert(
            new_plan.price_for(subscription.billing_cycle),
            new_plan.currency,
            current_plan.currency,
        )
        intent = ChangePlan(
            at=at,
            plan_id=new_plan.id,
            billing_cycle=billing_cycle,
            current_price=current_plan.price_for(subscription.billing_cycle),
            new_price=new_price,
            currency=current_plan.currency,
            prorate=prorate,
        )
        # Reject before touching the gateway
        transition(subscription.state(), intent)

        if subscription.gateway_subscription_id:
            await self.payment.update_subscription_plan(
                subscription.gateway_subscription_id, new_plan, billing_cycle, user_id
            )

        updated = await self.apply(subscription.id, intent)
        logger.info(
            f"Changed plan of subscription {subscription.id} from {current_plan.id} to {new_plan.id}",
            extra={
                "subscription_id": subscription.id,
                "user_id": user_id,
                "old_plan": current_plan.id,
                "new_plan": new_plan.id,
                "billing_cycle": billing_cycle.value,
            },
        )
        return updated

    @trace_span
    async def cancel_subscription(
        self, user_id: int, at: Optional[datetime] = None
    ) -> Subscription:
        """
        Cancel the user's subscription.

        Idempotent: a user whose latest subscription is already canceled gets it
        back unchanged. An `unpaid` subscription, which no longer counts as
        open, is still canceled. The gateway subscription is canceled first.

        Raises:
            NotFoundError: If the user never subscribed
            GatewayUnavailable: If the gateway cancellation fails
        """
        subscription = await self.subscription_repo.get_open_for_user(user_id)
        if not subscription:
            subscription = await self.subscription_repo.get_latest_for_user(user_id)
            if not subscription:
                raise NotFoundError(f"No subscription found for user {user_id}")
            if subscription.status.is_terminal():
                return subscription

        if subscription.gateway_subscription_id:
            await self.payment.cancel_subscription(subscription.gateway_subscription_id)

        return await self.apply(
            subscription.id,
            CancelSubscription(at=at or utcnow(), reason=CancellationReason.USER_REQUESTED),
        )

    @trace_span
    async def create_portal_session(self, user_id: int, return_url: str) -> str:
        """Create customer portal session."""
        subscription = await self.subscription_repo.get_latest_for_user(user_id)
        if not subscription or not subscription.gateway_customer_id:
            raise NotFoundError("No payment information found")

        portal_url = await self.payment.create_customer_portal_session(
            customer_id=subscription.gateway_customer_id, return_url=return_url
        )

        logger.info(
            f"Created portal session for user {user_id}",
            extra={"user_id": user_id},
        )
        return portal_url

    @trace_span
    async def create_purchase_intent(
        self,
        user_id: int,
        amount: int,
        currency: str,
        purchase_type: PurchaseType,
        description: Optional[str] = None,
    ) -> PurchaseIntent:
        """
        Start a one-time purchase.

        The payment is recorded when the gateway reports it as succeeded.

        Raises:
            ValidationError: If the amount is not positive
            UnsupportedCurrency: If the gateway cannot charge in `currency`
        """
        if amount <= 0:
            raise ValidationError("Purchase amount must be positive")
        resolved = self.money.require_currency(currency)
        if not resolved.gateway_supported:
            raise UnsupportedCurrency(resolved.code)

        latest = await self.subscription_repo.get_latest_for_user(user_id)
        purchase_id = str(uuid.uuid4())
        intent_id, client_secret = await self.payment.create_payment_intent(
            user_id=user_id,
            amount=amount,
            currency=resolved.code,
            purchase_id=purchase_id,
            purchase_type=purchase_type,
            description=description,
            customer_id=latest.gateway_customer_id if latest else None,
        )

        logger.info(
            f"Created purchase intent for user {user_id}",
            extra={
                "user_id": user_id,
                "purchase_id": purchase_id,
                "purchase_type": purchase_type.value,
                "amount": amount,
                "currency": resolved.code,
            },
        )
        return PurchaseIntent(
            purchase_id=purchase_id,
            payment_intent_id=intent_id,
            client_secret=client_secret,
            amount=amount,
            currency=resolved.code,
        )

    # ------------------------------------------------------------------
    # Dunning
    # ------------------------------------------------------------------

    @trace_span
    async def record_retry_result(
        self, case: DunningCase, succeeded: bool, at: Optional[datetime] = None
    ) -> RetryOutcome:
        """
        Feed a dunning retry result back into the subscription.

        A successful retry reactivates the subscription; the last failed
        attempt cancels it. Both happen in the transaction that updates the case.
        """
        at = at or utcnow()
        subscription_id = case.subscription_id
        async with self.locked(subscription_id):
            async with transaction():
                outcome = await self.dunning.on_retry_result(
                    case.id, succeeded, at=at, attempt=case.attempt_count
                )
                applied = None
                if outcome.recovered:
                    applied = await self.apply_in_transaction(
                        subscription_id, DunningRecovered(at=at)
                    )
                elif outcome.cancellation is not None:
                    applied = await self.apply_in_transaction(
                        subscription_id, outcome.cancellation
                    )

        if applied is not None:
            await self.after_commit(applied)
        return outcome
