"""
Unit tests for webhook event ingestion.

Events are signed the way Stripe signs them and run through the real state
machine, repositories and dunning scheduler against the test database.
"""

import pytest
from datetime import datetime, timedelta, timezone

from common.core.config import settings
from common.core.exceptions import ConflictingWrite, MalformedEvent, VerificationFailed
from packages.billing.models.domain.enums import (
    NotificationKind,
    SubscriptionStatus,
    TransactionStatus,
)
from packages.billing.models.domain.gateway_events import IngestOutcome
from packages.billing.models.domain.metadata import (
    OneTimePurchaseMetadata,
    SubscriptionInvoiceMetadata,
)
from packages.billing.repositories.billing_history_repository import (
    BillingHistoryRepository,
)
from packages.billing.repositories.processed_event_repository import (
    ProcessedEventRepository,
)
from packages.billing.repositories.subscription_repository import SubscriptionRepository
from packages.billing.repositories.transaction_repository import (
    PaymentTransactionRepository,
)
from packages.billing.webhooks.event_ingestion import EventIngestionGateway
from packages.dunning.models.domain.dunning import DunningStatus
from packages.dunning.repositories.dunning_case_repository import DunningCaseRepository
from tests.fixtures import (
    SAMPLE_INVOICE_DATA,
    TEST_WEBHOOK_SECRET,
    sign_payload,
    stripe_event,
)

CREATED = datetime(2026, 10, 10, 8, 30, tzinfo=timezone.utc)


@pytest.fixture
def gateway(subscription_service):
    return EventIngestionGateway(
        subscriptions=subscription_service,
        webhook_secret=TEST_WEBHOOK_SECRET,
    )


async def deliver(gateway, event_id, event_type, data, created=CREATED):
    payload = stripe_event(event_id, event_type, data, created=int(created.timestamp()))
    return await gateway.ingest(payload, sign_payload(payload))


def invoice(invoice_id="in_test123", **overrides) -> dict:
    return {**SAMPLE_INVOICE_DATA, "id": invoice_id, **overrides}


class TestVerification:
    async def test_missing_signature(self, gateway):
        payload = stripe_event("evt_1", "invoice.paid", invoice())

        with pytest.raises(VerificationFailed):
            await gateway.ingest(payload, None)

    async def test_invalid_signature(self, gateway):
        payload = stripe_event("evt_1", "invoice.paid", invoice())

        with pytest.raises(VerificationFailed):
            await gateway.ingest(payload, sign_payload(payload, secret="whsec_other"))

    async def test_tampered_payload(self, gateway):
        payload = stripe_event("evt_1", "invoice.paid", invoice())
        signature = sign_payload(payload)

        with pytest.raises(VerificationFailed):
            await gateway.ingest(payload.replace("999", "1"), signature)

    async def test_stale_timestamp(self, gateway):
        payload = stripe_event("evt_1", "invoice.paid", invoice())
        old = int((datetime.now(timezone.utc) - timedelta(hours=1)).timestamp())

        with pytest.raises(VerificationFailed):
            await gateway.ingest(payload, sign_payload(payload, timestamp=old))

    async def test_unconfigured_secret_rejects_everything(self, subscription_service, monkeypatch):
        monkeypatch.setattr(settings, "stripe_webhook_secret", "")
        gateway = EventIngestionGateway(subscriptions=subscription_service)
        payload = stripe_event("evt_1", "invoice.paid", invoice())

        with pytest.raises(VerificationFailed):
            await gateway.ingest(payload, sign_payload(payload))

    async def test_rejected_event_is_not_recorded(self, gateway):
        payload = stripe_event("evt_1", "invoice.paid", invoice())

        with pytest.raises(VerificationFailed):
            await gateway.ingest(payload, "t=1,v1=deadbeef")

        assert not await ProcessedEventRepository().is_processed("evt_1")


class TestParsing:
    async def test_body_that_is_not_json(self, gateway):
        payload = "not json"

        with pytest.raises(MalformedEvent):
            await gateway.ingest(payload, sign_payload(payload))

    async def test_envelope_without_id(self, gateway):
        payload = '{"type": "invoice.paid", "created": 1, "data": {"object": {}}}'

        with pytest.raises(MalformedEvent):
            await gateway.ingest(payload, sign_payload(payload))

    async def test_payload_not_matching_type(self, gateway, sample_subscription):
        with pytest.raises(MalformedEvent):
            await deliver(gateway, "evt_1", "invoice.payment_failed", {"id": "in_1"})

        assert not await ProcessedEventRepository().is_processed("evt_1")

    async def test_bytes_body(self, gateway, sample_subscription):
        payload = stripe_event(
            "evt_1", "invoice.paid", invoice(), created=int(CREATED.timestamp())
        )

        ack = await gateway.ingest(payload.encode("utf-8"), sign_payload(payload))

        assert ack.outcome == IngestOutcome.APPLIED


class TestDeduplication:
    async def test_unknown_type_is_ignored_and_not_recorded(self, gateway):
        ack = await deliver(gateway, "evt_1", "customer.created", {"id": "cus_1"})

        assert ack.outcome == IngestOutcome.IGNORED
        assert not await ProcessedEventRepository().is_processed("evt_1")

    async def test_redelivery_is_duplicate(self, gateway, sample_subscription):
        first = await deliver(gateway, "evt_1", "invoice.paid", invoice())
        second = await deliver(gateway, "evt_1", "invoice.paid", invoice())

        assert first.outcome == IngestOutcome.APPLIED
        assert second.outcome == IngestOutcome.DUPLICATE

        transactions = await PaymentTransactionRepository().list_for_subscription(
            sample_subscription.id
        )
        assert len(transactions) == 1

    async def test_failed_payment_redelivery_changes_nothing(
        self, gateway, sample_subscription, notification_provider
    ):
        data = invoice(last_payment_error={"decline_code": "insufficient_funds"})
        await deliver(gateway, "evt_failed", "invoice.payment_failed", data)
        case_before = await DunningCaseRepository().get_open_for_subscription(
            sample_subscription.id
        )
        sent_before = list(notification_provider.sent)

        redelivered = await deliver(gateway, "evt_failed", "invoice.payment_failed", data)

        assert redelivered.outcome == IngestOutcome.DUPLICATE
        case_after = await DunningCaseRepository().get_open_for_subscription(
            sample_subscription.id
        )
        assert case_after.id == case_before.id
        assert case_after.attempt_count == case_before.attempt_count == 1
        assert case_after.next_attempt_date == case_before.next_attempt_date
        assert notification_provider.sent == sent_before
        subscription = await SubscriptionRepository().get(sample_subscription.id)
        assert subscription.status == SubscriptionStatus.PAST_DUE

    async def test_same_invoice_reported_twice_is_booked_once(
        self, gateway, sample_subscription
    ):
        first = await deliver(gateway, "evt_a", "invoice.paid", invoice("in_1"))
        second = await deliver(gateway, "evt_b", "invoice.payment_succeeded", invoice("in_1"))

        assert first.outcome == IngestOutcome.APPLIED
        assert second.outcome == IngestOutcome.APPLIED
        assert await ProcessedEventRepository().is_processed("evt_b")

        transactions = await PaymentTransactionRepository().list_for_subscription(
            sample_subscription.id
        )
        assert [(t.gateway_reference, t.status) for t in transactions] == [
            ("in_1", TransactionStatus.SUCCEEDED)
        ]
        history = await BillingHistoryRepository().list_for_user(sample_subscription.user_id)
        assert [entry.gateway_invoice_id for entry in history] == ["in_1"]

    async def test_failed_then_paid_invoice_keeps_both_rows(self, gateway, sample_subscription):
        await deliver(gateway, "evt_failed", "invoice.payment_failed", invoice("in_1"))
        await deliver(
            gateway, "evt_paid", "invoice.paid", invoice("in_1"), created=CREATED + timedelta(days=3)
        )

        transactions = await PaymentTransactionRepository().list_for_subscription(
            sample_subscription.id
        )
        assert [t.status for t in transactions] == [
            TransactionStatus.FAILED,
            TransactionStatus.SUCCEEDED,
        ]

    async def test_orphan_is_recorded(self, gateway, plans):
        ack = await deliver(
            gateway,
            "evt_1",
            "invoice.payment_failed",
            invoice(customer="cus_unknown", subscription="sub_unknown"),
        )

        assert ack.outcome == IngestOutcome.ORPHAN
        assert ack.subscription_id is None
        assert await ProcessedEventRepository().is_processed("evt_1")

        redelivered = await deliver(
            gateway,
            "evt_1",
            "invoice.payment_failed",
            invoice(customer="cus_unknown", subscription="sub_unknown"),
        )
        assert redelivered.outcome == IngestOutcome.DUPLICATE


class TestInvoiceEvents:
    async def test_paid_invoice_records_ledger(self, gateway, sample_subscription):
        ack = await deliver(
            gateway,
            "evt_paid",
            "invoice.paid",
            invoice(invoice_pdf="https://pay.stripe.com/invoice/in_test123/pdf"),
        )

        assert ack.outcome == IngestOutcome.APPLIED
        assert ack.subscription_id == sample_subscription.id

        [transaction] = await PaymentTransactionRepository().list_for_subscription(
            sample_subscription.id
        )
        assert transaction.status == TransactionStatus.SUCCEEDED
        assert transaction.amount == 999
        assert transaction.currency == "USD"
        assert isinstance(transaction.transaction_metadata, SubscriptionInvoiceMetadata)
        assert transaction.transaction_metadata.event_id == "evt_paid"

        [entry] = await BillingHistoryRepository().list_for_user(sample_subscription.user_id)
        assert entry.gateway_invoice_id == "in_test123"
        assert entry.invoice_pdf == "https://pay.stripe.com/invoice/in_test123/pdf"

    async def test_failed_invoice_starts_dunning(
        self, gateway, sample_subscription, notification_provider
    ):
        ack = await deliver(
            gateway,
            "evt_failed",
            "invoice.payment_failed",
            invoice(last_payment_error={"decline_code": "insufficient_funds"}),
        )

        assert ack.outcome == IngestOutcome.APPLIED

        subscription = await SubscriptionRepository().get(sample_subscription.id)
        assert subscription.status == SubscriptionStatus.PAST_DUE

        case = await DunningCaseRepository().get_open_for_subscription(sample_subscription.id)
        assert case.status == DunningStatus.ACTIVE
        assert case.attempt_count == 1
        assert case.first_failure_at == CREATED
        assert case.next_attempt_date == CREATED + timedelta(days=3)
        assert case.failure_reason == "insufficient_funds"
        assert case.gateway_invoice_id == "in_test123"

        [transaction] = await PaymentTransactionRepository().list_for_subscription(
            sample_subscription.id
        )
        assert transaction.status == TransactionStatus.FAILED

        assert notification_provider.kinds() == [NotificationKind.PAYMENT_FAILED]

    async def test_payment_after_failure_recovers(
        self, gateway, sample_subscription, notification_provider
    ):
        await deliver(gateway, "evt_failed", "invoice.payment_failed", invoice())
        await deliver(
            gateway,
            "evt_paid",
            "invoice.paid",
            invoice(),
            created=CREATED + timedelta(days=1),
        )

        subscription = await SubscriptionRepository().get(sample_subscription.id)
        assert subscription.status == SubscriptionStatus.ACTIVE

        [case] = await DunningCaseRepository().list_for_subscription(sample_subscription.id)
        assert case.status == DunningStatus.RESOLVED
        assert case.resolution_reason == "payment_succeeded"

        assert notification_provider.kinds() == [
            NotificationKind.PAYMENT_FAILED,
            NotificationKind.PAYMENT_RECOVERED,
        ]

    async def test_events_find_subscription_by_customer(self, gateway, make_subscription):
        subscription = await make_subscription(
            gateway_customer_id="cus_only", gateway_subscription_id=None
        )

        ack = await deliver(
            gateway,
            "evt_paid",
            "invoice.paid",
            invoice(customer="cus_only", subscription=None),
        )

        assert ack.outcome == IngestOutcome.APPLIED
        assert ack.subscription_id == subscription.id

    async def test_final_failure_cancels_at_gateway(
        self,
        gateway,
        subscription_service,
        make_subscription,
        mock_payment_provider,
        notification_provider,
    ):
        subscription = await make_subscription(status=SubscriptionStatus.PAST_DUE)
        case = await subscription_service.dunning.on_payment_failed(
            subscription.id, subscription.user_id, "card_declined", CREATED
        )
        for attempt in (1, 2, 3):
            await subscription_service.dunning.on_retry_result(
                case.id, False, at=CREATED, attempt=attempt
            )

        ack = await deliver(
            gateway,
            "evt_final",
            "invoice.payment_failed",
            invoice(),
            created=CREATED + timedelta(days=21),
        )

        assert ack.outcome == IngestOutcome.APPLIED
        canceled = await SubscriptionRepository().get(subscription.id)
        assert canceled.status == SubscriptionStatus.CANCELED
        [exhausted] = await DunningCaseRepository().list_for_subscription(subscription.id)
        assert exhausted.status == DunningStatus.EXHAUSTED
        mock_payment_provider.cancel_subscription.assert_called_once_with("sub_test123")
        assert NotificationKind.DUNNING_EXHAUSTED in notification_provider.kinds()

    async def test_gateway_deletion_is_not_echoed_back(
        self, gateway, sample_subscription, mock_payment_provider
    ):
        await deliver(
            gateway,
            "evt_deleted",
            "customer.subscription.deleted",
            {"id": "sub_test123", "customer": "cus_test123", "status": "canceled"},
        )

        mock_payment_provider.cancel_subscription.assert_not_called()


class TestSubscriptionEvents:
    async def test_created_binds_pending_subscription(self, gateway, make_subscription):
        pending = await make_subscription(
            status=SubscriptionStatus.PENDING,
            gateway_customer_id="cus_new",
            gateway_subscription_id=None,
        )
        period_start = int(CREATED.timestamp())
        period_end = int((CREATED + timedelta(days=30)).timestamp())

        ack = await deliver(
            gateway,
            "evt_created",
            "customer.subscription.created",
            {
                "id": "sub_new",
                "object": "subscription",
                "customer": "cus_new",
                "status": "active",
                "current_period_start": period_start,
                "current_period_end": period_end,
            },
        )

        assert ack.subscription_id == pending.id
        subscription = await SubscriptionRepository().get(pending.id)
        assert subscription.status == SubscriptionStatus.ACTIVE
        assert subscription.gateway_subscription_id == "sub_new"
        assert subscription.current_period_start == CREATED
        assert subscription.current_period_end == CREATED + timedelta(days=30)

    async def test_deleted_cancels(self, gateway, sample_subscription, notification_provider):
        await deliver(
            gateway,
            "evt_deleted",
            "customer.subscription.deleted",
            {"id": "sub_test123", "customer": "cus_test123", "status": "canceled"},
        )

        subscription = await SubscriptionRepository().get(sample_subscription.id)
        assert subscription.status == SubscriptionStatus.CANCELED
        assert subscription.canceled_at == CREATED
        assert notification_provider.kinds() == [NotificationKind.SUBSCRIPTION_CANCELED]

    async def test_locked_subscription_is_not_marked(
        self, gateway, sample_subscription, mock_lock_provider, monkeypatch
    ):
        monkeypatch.setattr(settings, "subscription_lock_acquire_timeout_seconds", 0.05)
        await mock_lock_provider.acquire_lock(f"subscription:{sample_subscription.id}")

        with pytest.raises(ConflictingWrite):
            await deliver(gateway, "evt_paid", "invoice.paid", invoice())

        assert not await ProcessedEventRepository().is_processed("evt_paid")


class TestOneTimePayments:
    async def test_payment_intent_records_purchase(self, gateway, plans):
        ack = await deliver(
            gateway,
            "evt_pi",
            "payment_intent.succeeded",
            {
                "id": "pi_123",
                "object": "payment_intent",
                "amount": 500,
                "currency": "eur",
                "description": "Badge pack",
                "metadata": {
                    "user_id": "7",
                    "purchase_id": "purchase_1",
                    "purchase_type": "badge",
                },
            },
        )

        assert ack.outcome == IngestOutcome.APPLIED

        [transaction] = await PaymentTransactionRepository().list_for_user(7)
        assert transaction.subscription_id is None
        assert transaction.purchase_id == "purchase_1"
        assert transaction.amount == 500
        assert transaction.currency == "EUR"
        assert transaction.status == TransactionStatus.SUCCEEDED
        assert isinstance(transaction.transaction_metadata, OneTimePurchaseMetadata)
        assert transaction.transaction_metadata.payment_intent_id == "pi_123"

    async def test_payment_intent_without_user_is_orphan(self, gateway, plans):
        ack = await deliver(
            gateway,
            "evt_pi",
            "payment_intent.succeeded",
            {"id": "pi_123", "amount": 500, "currency": "usd", "metadata": {}},
        )

        assert ack.outcome == IngestOutcome.ORPHAN
        assert await ProcessedEventRepository().is_processed("evt_pi")
