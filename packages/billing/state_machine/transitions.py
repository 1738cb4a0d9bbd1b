"""
Subscription lifecycle transitions.

Every function here is pure: ``(state, event) -> Transition(next_state, commands)``.
Nothing is read from or written to the store; the command executor does that.

    pending ──> active | trialing ──> past_due ──> active
                                          │
                                          ├──> unpaid (gateway gave up)
                                          └──> canceled (dunning exhausted)
    any open status ──> canceled (user or gateway cancellation)
"""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from functools import singledispatch
from typing import Optional

from common.core.exceptions import ValidationError
from packages.billing.models.domain.commands import (
    Command,
    Notify,
    RecordBillingHistory,
    RecordTransaction,
    ResolveDunning,
    StartDunning,
)
from packages.billing.models.domain.enums import (
    CancellationReason,
    InvoiceStatus,
    NotificationKind,
    SubscriptionStatus,
    TransactionStatus,
)
from packages.billing.models.domain.inputs import (
    CancelSubscription,
    ChangePlan,
    CreateSubscription,
    DunningRecovered,
    InvoicePaid,
    InvoicePaymentFailed,
    SubscriptionCreated,
    SubscriptionDeleted,
    SubscriptionUpdated,
    GatewaySubscriptionFact,
)
from packages.billing.models.domain.metadata import (
    ProrationMetadata,
    SubscriptionInvoiceMetadata,
)
from packages.billing.models.domain.subscription import SubscriptionState
from packages.money.services.money_service import round_half_up

Status = SubscriptionStatus


class InvalidTransition(ValidationError):
    """An intent that the current status does not allow."""

    pass


@dataclass(frozen=True)
class Transition:
    state: SubscriptionState
    commands: list[Command] = field(default_factory=list)

    def changed_from(self, previous: SubscriptionState) -> bool:
        return self.state != previous


# Gateway status -> local status
_GATEWAY_STATUS = {
    "active": Status.ACTIVE,
    "trialing": Status.TRIALING,
    "past_due": Status.PAST_DUE,
    "unpaid": Status.UNPAID,
    "canceled": Status.CANCELED,
    "incomplete": Status.PENDING,
    "incomplete_expired": Status.CANCELED,
}

# Statuses a gateway subscription fact may move each local status into
_GATEWAY_REACHABLE = {
    Status.PENDING: {Status.PENDING, Status.ACTIVE, Status.TRIALING, Status.PAST_DUE, Status.CANCELED},
    Status.ACTIVE: {Status.ACTIVE, Status.TRIALING, Status.PAST_DUE, Status.CANCELED},
    Status.TRIALING: {Status.ACTIVE, Status.TRIALING, Status.PAST_DUE, Status.CANCELED},
    Status.PAST_DUE: {Status.ACTIVE, Status.PAST_DUE, Status.UNPAID, Status.CANCELED},
    Status.UNPAID: {Status.ACTIVE, Status.PAST_DUE, Status.UNPAID, Status.CANCELED},
    Status.CANCELED: {Status.CANCELED},
}

_IN_DUNNING = (Status.PAST_DUE, Status.UNPAID)


def map_gateway_status(gateway_status: str) -> Optional[SubscriptionStatus]:
    """Local status for a gateway status string, or None if unrecognized."""
    return _GATEWAY_STATUS.get((gateway_status or "").lower())


def compute_proration(
    current_price: int,
    new_price: int,
    period_start: Optional[datetime],
    period_end: Optional[datetime],
    at: datetime,
) -> tuple[int, Decimal]:
    """
    Price difference for the unused part of the current period.

    Returns (amount, remaining_fraction). Negative amounts are credits.
    """
    if period_start is None or period_end is None or period_end <= period_start:
        return 0, Decimal(0)
    total = Decimal((period_end - period_start).total_seconds())
    remaining = Decimal(max((period_end - at).total_seconds(), 0))
    fraction = min(remaining / total, Decimal(1))
    return round_half_up((new_price - current_price) * fraction), fraction


def _manual_review(message: str, **context) -> Notify:
    return Notify(
        notification=NotificationKind.MANUAL_REVIEW, message=message, context=context
    )


def open_subscription(intent: CreateSubscription) -> Transition:
    """A new subscription starts pending until the gateway confirms it."""
    return Transition(
        state=SubscriptionState(
            status=Status.PENDING,
            plan_id=intent.plan_id,
            billing_cycle=intent.billing_cycle,
        )
    )


def transition(state: SubscriptionState, event) -> Transition:
    """Apply an intent or gateway fact to a subscription state."""
    return _apply(event, state)


@singledispatch
def _apply(event, state: SubscriptionState) -> Transition:
    raise TypeError(f"Unsupported state machine input: {type(event).__name__}")


# ============================================================================
# Intents
# ============================================================================


@_apply.register
def _(event: CancelSubscription, state: SubscriptionState) -> Transition:
    if state.status.is_terminal():
        return Transition(state=state)

    commands: list[Command] = []
    if event.reason == CancellationReason.DUNNING_EXHAUSTED:
        commands.append(
            Notify(
                notification=NotificationKind.DUNNING_EXHAUSTED,
                message="Subscription canceled after all payment retries failed",
            )
        )
    else:
        if state.status in _IN_DUNNING:
            commands.append(ResolveDunning(reason="subscription_canceled"))
        commands.append(
            Notify(
                notification=NotificationKind.SUBSCRIPTION_CANCELED,
                message="Subscription canceled",
                context={"reason": event.reason.value},
            )
        )

    return Transition(
        state=state.model_copy(update={"status": Status.CANCELED, "canceled_at": event.at}),
        commands=commands,
    )


@_apply.register
def _(event: ChangePlan, state: SubscriptionState) -> Transition:
    if state.status not in (Status.ACTIVE, Status.TRIALING, Status.PENDING):
        raise InvalidTransition(f"Cannot change plan while {state.status.value}")
    if event.plan_id == state.plan_id and event.billing_cycle == state.billing_cycle:
        return Transition(state=state)

    next_state = state.model_copy(
        update={"plan_id": event.plan_id, "billing_cycle": event.billing_cycle}
    )
    if state.status != Status.ACTIVE or not event.prorate:
        return Transition(state=next_state)

    amount, fraction = compute_proration(
        event.current_price,
        event.new_price,
        state.current_period_start,
        state.current_period_end,
        event.at,
    )
    if amount == 0:
        return Transition(state=next_state)

    return Transition(
        state=next_state,
        commands=[
            RecordTransaction(
                amount=amount,
                currency=event.currency,
                status=TransactionStatus.PENDING,
                metadata=ProrationMetadata(
                    from_plan_id=state.plan_id,
                    to_plan_id=event.plan_id,
                    period_end=state.current_period_end,
                    remaining_fraction=str(fraction.quantize(Decimal("0.0001"))),
                ),
            )
        ],
    )


# ============================================================================
# Facts
# ============================================================================


def _apply_gateway_subscription(
    fact: GatewaySubscriptionFact, state: SubscriptionState
) -> Transition:
    period = {
        "gateway_subscription_id": fact.gateway_subscription_id,
        "current_period_start": fact.current_period_start or state.current_period_start,
        "current_period_end": fact.current_period_end or state.current_period_end,
        "trial_start": fact.trial_start or state.trial_start,
        "trial_end": fact.trial_end or state.trial_end,
    }

    if state.status.is_terminal():
        if map_gateway_status(fact.gateway_status) == Status.CANCELED:
            return Transition(state=state)
        return Transition(
            state=state,
            commands=[
                _manual_review(
                    "Gateway reports a live subscription that is canceled locally",
                    gateway_status=fact.gateway_status,
                )
            ],
        )

    target = map_gateway_status(fact.gateway_status)
    commands: list[Command] = []

    if target is None:
        # Unrecognized: fail closed
        target = Status.PAST_DUE
        commands.append(
            _manual_review(
                "Unrecognized gateway subscription status",
                gateway_status=fact.gateway_status,
            )
        )
    elif target not in _GATEWAY_REACHABLE[state.status]:
        commands.append(
            _manual_review(
                "Gateway status not reachable from local status",
                gateway_status=fact.gateway_status,
                local_status=state.status.value,
            )
        )
        target = Status.PAST_DUE if target == Status.UNPAID else state.status

    update = dict(period, status=target)
    if target == Status.CANCELED:
        update["canceled_at"] = fact.canceled_at or fact.at
        if state.status in _IN_DUNNING:
            commands.append(ResolveDunning(reason="subscription_canceled"))
    elif target == Status.ACTIVE and state.status in _IN_DUNNING:
        commands.append(ResolveDunning(reason="gateway_reports_active"))

    return Transition(state=state.model_copy(update=update), commands=commands)


@_apply.register
def _(event: SubscriptionCreated, state: SubscriptionState) -> Transition:
    return _apply_gateway_subscription(event, state)


@_apply.register
def _(event: SubscriptionUpdated, state: SubscriptionState) -> Transition:
    return _apply_gateway_subscription(event, state)


@_apply.register
def _(event: SubscriptionDeleted, state: SubscriptionState) -> Transition:
    if state.status.is_terminal():
        return Transition(state=state)

    commands: list[Command] = []
    if state.status in _IN_DUNNING:
        commands.append(ResolveDunning(reason="subscription_canceled"))
    commands.append(
        Notify(
            notification=NotificationKind.SUBSCRIPTION_CANCELED,
            message="Subscription canceled by the payment gateway",
        )
    )
    return Transition(
        state=state.model_copy(update={"status": Status.CANCELED, "canceled_at": event.at}),
        commands=commands,
    )


@_apply.register
def _(event: InvoicePaid, state: SubscriptionState) -> Transition:
    commands: list[Command] = [
        RecordTransaction(
            amount=event.amount_paid,
            currency=event.currency,
            status=TransactionStatus.SUCCEEDED,
            gateway_reference=event.invoice_id,
            metadata=SubscriptionInvoiceMetadata(
                invoice_id=event.invoice_id,
                billing_reason=event.billing_reason,
                event_id=event.event_id,
            ),
        ),
        RecordBillingHistory(
            gateway_invoice_id=event.invoice_id,
            amount_paid=event.amount_paid,
            currency=event.currency,
            status=InvoiceStatus.PAID,
            reason=event.billing_reason,
            invoice_pdf=event.invoice_pdf,
        ),
    ]

    if state.status.is_terminal():
        commands.append(
            _manual_review(
                "Payment collected for a canceled subscription",
                invoice_id=event.invoice_id,
                amount=event.amount_paid,
            )
        )
        return Transition(state=state, commands=commands)

    in_trial = (
        event.amount_paid == 0
        and state.trial_end is not None
        and event.at < state.trial_end
    )
    target = Status.TRIALING if in_trial else Status.ACTIVE

    if state.status in _IN_DUNNING:
        commands.append(ResolveDunning(reason="payment_succeeded"))
        commands.append(
            Notify(
                notification=NotificationKind.PAYMENT_RECOVERED,
                message="Payment received, subscription is active again",
                context={"invoice_id": event.invoice_id},
            )
        )

    update = {"status": target}
    if event.period_start and event.period_end:
        update["current_period_start"] = event.period_start
        update["current_period_end"] = event.period_end
    return Transition(state=state.model_copy(update=update), commands=commands)


@_apply.register
def _(event: InvoicePaymentFailed, state: SubscriptionState) -> Transition:
    commands: list[Command] = [
        RecordTransaction(
            amount=event.amount_due,
            currency=event.currency,
            status=TransactionStatus.FAILED,
            gateway_reference=event.invoice_id,
            metadata=SubscriptionInvoiceMetadata(
                invoice_id=event.invoice_id,
                billing_reason=event.failure_reason,
                event_id=event.event_id,
            ),
        )
    ]

    if state.status in (Status.ACTIVE, Status.TRIALING, Status.PAST_DUE):
        commands.append(
            StartDunning(
                reason=event.failure_reason,
                failed_at=event.at,
                gateway_invoice_id=event.invoice_id,
            )
        )
        commands.append(
            Notify(
                notification=NotificationKind.PAYMENT_FAILED,
                message="Payment failed",
                context={"reason": event.failure_reason, "invoice_id": event.invoice_id},
            )
        )
        return Transition(
            state=state.model_copy(update={"status": Status.PAST_DUE}), commands=commands
        )

    if state.status == Status.PENDING:
        # Failed checkout stays pending
        commands.append(
            Notify(
                notification=NotificationKind.PAYMENT_FAILED,
                message="Initial payment failed",
                context={"reason": event.failure_reason},
            )
        )
    return Transition(state=state, commands=commands)


@_apply.register
def _(event: DunningRecovered, state: SubscriptionState) -> Transition:
    if state.status not in _IN_DUNNING:
        return Transition(state=state)
    return Transition(
        state=state.model_copy(update={"status": Status.ACTIVE}),
        commands=[
            Notify(
                notification=NotificationKind.PAYMENT_RECOVERED,
                message="Payment retry succeeded, subscription is active again",
            )
        ],
    )
