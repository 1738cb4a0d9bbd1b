"""
Billing API routes.

Subscription lifecycle, one-time purchases and the payment ledger for a user.
Domain errors are mapped to HTTP statuses by the application exception handler.
"""

from fastapi import APIRouter, Query

from packages.billing.models.schemas.billing import (
    BillingHistoryResponse,
    CancelSubscriptionResponse,
    ChangePlanRequest,
    CheckoutSessionRequest,
    CheckoutSessionResponse,
    PlanResponse,
    PortalSessionRequest,
    PortalSessionResponse,
    PurchaseIntentRequest,
    PurchaseIntentResponse,
    SubscriptionStatusResponse,
    TransactionResponse,
)
from packages.billing.models.domain.plans import Plan
from packages.billing.models.domain.subscription import Subscription
from packages.billing.repositories.billing_history_repository import (
    BillingHistoryRepository,
)
from packages.billing.repositories.transaction_repository import (
    PaymentTransactionRepository,
)
from packages.billing.services.subscription_service import SubscriptionService

router = APIRouter()


def _status_response(subscription: Subscription, plan: Plan) -> SubscriptionStatusResponse:
    return SubscriptionStatusResponse(
        subscription_id=subscription.id,
        user_id=subscription.user_id,
        plan=PlanResponse.from_plan(plan),
        billing_cycle=subscription.billing_cycle,
        status=subscription.status,
        has_access=subscription.has_access(),
        current_period_start=subscription.current_period_start,
        current_period_end=subscription.current_period_end,
        trial_end=subscription.trial_end,
        canceled_at=subscription.canceled_at,
    )


# ============================================================================
# Subscription Status
# ============================================================================


@router.get("/users/{user_id}/subscription", response_model=SubscriptionStatusResponse)
async def get_subscription_status(user_id: int):
    """Get the user's current subscription with its plan."""
    subscription_service = SubscriptionService()
    subscription, plan = await subscription_service.get_current(user_id)
    return _status_response(subscription, plan)


# ============================================================================
# Checkout & Portal
# ============================================================================


@router.post("/users/{user_id}/checkout", response_model=CheckoutSessionResponse)
async def create_checkout_session(user_id: int, request: CheckoutSessionRequest):
    """
    Create a Stripe checkout session for a new subscription.

    The subscription stays pending until the gateway confirms it.
    """
    subscription_service = SubscriptionService()
    session = await subscription_service.start_checkout(
        user_id=user_id,
        plan_id=request.plan_id,
        billing_cycle=request.billing_cycle,
        success_url=str(request.success_url),
        cancel_url=str(request.cancel_url),
        customer_email=request.customer_email,
        trial_period_days=request.trial_period_days,
    )
    return CheckoutSessionResponse(
        checkout_url=session.checkout_url,
        subscription_id=session.subscription.id,
    )


@router.post("/users/{user_id}/portal", response_model=PortalSessionResponse)
async def create_portal_session(user_id: int, request: PortalSessionRequest):
    """
    Create a Stripe customer portal session.

    Allows customers to manage payment methods and view invoices.
    """
    subscription_service = SubscriptionService()
    portal_url = await subscription_service.create_portal_session(
        user_id=user_id,
        return_url=str(request.return_url),
    )
    return PortalSessionResponse(portal_url=portal_url)


# ============================================================================
# Plan Changes & Cancellation
# ============================================================================


@router.post("/users/{user_id}/subscription/plan", response_model=SubscriptionStatusResponse)
async def change_plan(user_id: int, request: ChangePlanRequest):
    """Move the subscription to another plan, prorating the rest of the period."""
    subscription_service = SubscriptionService()
    subscription = await subscription_service.change_plan(
        user_id=user_id,
        plan_id=request.plan_id,
        billing_cycle=request.billing_cycle,
        prorate=request.prorate,
    )
    plan = await subscription_service.plans.get_plan(subscription.plan_id)
    return _status_response(subscription, plan)


@router.post("/users/{user_id}/subscription/cancel", response_model=CancelSubscriptionResponse)
async def cancel_subscription(user_id: int):
    """Cancel the subscription. Repeating the call is harmless."""
    subscription_service = SubscriptionService()
    canceled = await subscription_service.cancel_subscription(user_id)
    return CancelSubscriptionResponse(
        success=True,
        message="Subscription canceled.",
        status=canceled.status,
        canceled_at=canceled.canceled_at,
    )


# ============================================================================
# One-time Purchases
# ============================================================================


@router.post("/users/{user_id}/purchases", response_model=PurchaseIntentResponse)
async def create_purchase_intent(user_id: int, request: PurchaseIntentRequest):
    """
    Start a one-time purchase.

    The transaction is recorded when Stripe reports the payment as succeeded.
    """
    subscription_service = SubscriptionService()
    intent = await subscription_service.create_purchase_intent(
        user_id=user_id,
        amount=request.amount,
        currency=request.currency,
        purchase_type=request.purchase_type,
        description=request.description,
    )
    return PurchaseIntentResponse(
        purchase_id=intent.purchase_id,
        payment_intent_id=intent.payment_intent_id,
        client_secret=intent.client_secret,
        amount=intent.amount,
        currency=intent.currency,
    )


# ============================================================================
# Ledger
# ============================================================================


@router.get("/users/{user_id}/transactions", response_model=list[TransactionResponse])
async def list_transactions(
    user_id: int,
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
):
    """Payment transactions of the user, newest first."""
    transactions = await PaymentTransactionRepository().list_for_user(
        user_id, limit=limit, offset=offset
    )
    return [TransactionResponse.model_validate(t.model_dump()) for t in transactions]


@router.get("/users/{user_id}/billing-history", response_model=list[BillingHistoryResponse])
async def list_billing_history(
    user_id: int,
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
):
    """Invoices of the user, newest first."""
    entries = await BillingHistoryRepository().list_for_user(
        user_id, limit=limit, offset=offset
    )
    return [BillingHistoryResponse.model_validate(e.model_dump()) for e in entries]
