"""
Unit tests for billing API routes.

Tests API endpoints with mocked external providers.
"""

import pytest

from common.core.config import settings
from common.core.exceptions import GatewayUnavailable
from tests.fixtures import (
    SAMPLE_CHECKOUT_DATA,
    SAMPLE_INVOICE_DATA,
    TEST_WEBHOOK_SECRET,
    sign_payload,
    stripe_event,
)


@pytest.mark.asyncio
class TestPlanRoutes:
    async def test_list_plans(self, client, plans):
        """Test GET /api/v1/billing/plans."""
        response = await client.get("/api/v1/billing/plans")

        assert response.status_code == 200
        ids = [p["id"] for p in response.json()["plans"]]
        assert ids == ["basic", "pro", "premium"]

    async def test_get_plan(self, client, plans):
        response = await client.get("/api/v1/billing/plans/pro")

        assert response.status_code == 200
        data = response.json()
        assert data["price_monthly"] == 999
        assert data["price_yearly"] == 9990
        assert data["yearly_savings_percentage"] == 17

    async def test_unknown_plan(self, client, plans):
        response = await client.get("/api/v1/billing/plans/enterprise")

        assert response.status_code == 404
        assert response.json()["error"] == "NotFoundError"


@pytest.mark.asyncio
class TestSubscriptionRoutes:
    """Tests for the per-user subscription endpoints."""

    async def test_get_subscription_status(self, client, sample_subscription):
        """Test GET /api/v1/billing/users/{user_id}/subscription."""
        response = await client.get("/api/v1/billing/users/1/subscription")

        assert response.status_code == 200
        data = response.json()
        assert data["subscription_id"] == sample_subscription.id
        assert data["status"] == "active"
        assert data["plan"]["id"] == "pro"
        assert data["has_access"] is True

    async def test_get_subscription_status_not_found(self, client, plans):
        response = await client.get("/api/v1/billing/users/404/subscription")

        assert response.status_code == 404
        assert response.json()["error"] == "NotFoundError"

    async def test_create_checkout_session(self, client, mock_payment_provider, plans):
        """Test POST /api/v1/billing/users/{user_id}/checkout."""
        response = await client.post(
            "/api/v1/billing/users/5/checkout", json=SAMPLE_CHECKOUT_DATA
        )

        assert response.status_code == 200
        data = response.json()
        assert data["checkout_url"] == "https://checkout.stripe.com/mock"
        assert data["subscription_id"] is not None
        mock_payment_provider.create_checkout_session.assert_called_once()

    async def test_checkout_with_live_subscription_conflicts(
        self, client, sample_subscription
    ):
        response = await client.post(
            "/api/v1/billing/users/1/checkout", json=SAMPLE_CHECKOUT_DATA
        )

        assert response.status_code == 409
        assert response.json()["error"] == "SubscriptionConflict"

    async def test_checkout_rejects_long_trial(self, client, plans):
        response = await client.post(
            "/api/v1/billing/users/5/checkout",
            json={**SAMPLE_CHECKOUT_DATA, "trial_period_days": 365},
        )

        assert response.status_code == 422

    async def test_checkout_gateway_down(self, client, mock_payment_provider, plans):
        mock_payment_provider.create_checkout_session.side_effect = GatewayUnavailable(
            "stripe down"
        )

        response = await client.post(
            "/api/v1/billing/users/5/checkout", json=SAMPLE_CHECKOUT_DATA
        )

        assert response.status_code == 502
        assert response.json()["error"] == "GatewayUnavailable"

    async def test_create_portal_session(self, client, sample_subscription):
        response = await client.post(
            "/api/v1/billing/users/1/portal",
            json={"return_url": "https://app.example.com/billing"},
        )

        assert response.status_code == 200
        assert response.json()["portal_url"] == "https://billing.stripe.com/mock"

    async def test_change_plan(self, client, mock_payment_provider, sample_subscription):
        response = await client.post(
            "/api/v1/billing/users/1/subscription/plan",
            json={"plan_id": "premium", "prorate": False},
        )

        assert response.status_code == 200
        assert response.json()["plan"]["id"] == "premium"
        mock_payment_provider.update_subscription_plan.assert_called_once()

    async def test_cancel_subscription(self, client, mock_payment_provider, sample_subscription):
        """Test POST /api/v1/billing/users/{user_id}/subscription/cancel."""
        first = await client.post("/api/v1/billing/users/1/subscription/cancel")
        second = await client.post("/api/v1/billing/users/1/subscription/cancel")

        assert first.status_code == 200
        assert first.json()["status"] == "canceled"
        assert second.status_code == 200
        assert second.json()["canceled_at"] == first.json()["canceled_at"]
        mock_payment_provider.cancel_subscription.assert_called_once_with("sub_test123")


@pytest.mark.asyncio
class TestPurchaseRoutes:
    async def test_create_purchase_intent(self, client, plans):
        response = await client.post(
            "/api/v1/billing/users/9/purchases",
            json={"amount": 500, "currency": "usd", "purchase_type": "badge"},
        )

        assert response.status_code == 200
        data = response.json()
        assert data["client_secret"] == "pi_mock123_secret"
        assert data["currency"] == "USD"

    async def test_unsupported_currency(self, client, plans):
        response = await client.post(
            "/api/v1/billing/users/9/purchases",
            json={"amount": 500, "currency": "XYZ", "purchase_type": "badge"},
        )

        assert response.status_code == 422
        assert response.json()["error"] == "UnsupportedCurrency"

    async def test_non_positive_amount(self, client, plans):
        response = await client.post(
            "/api/v1/billing/users/9/purchases",
            json={"amount": 0, "currency": "USD", "purchase_type": "badge"},
        )

        assert response.status_code == 422


@pytest.mark.asyncio
class TestWebhookRoutes:
    """Tests for POST /api/v1/webhooks/stripe."""

    @pytest.fixture(autouse=True)
    def webhook_secret(self, monkeypatch):
        monkeypatch.setattr(settings, "stripe_webhook_secret", TEST_WEBHOOK_SECRET)

    async def test_missing_signature(self, client, plans):
        payload = stripe_event("evt_route_1", "invoice.paid", SAMPLE_INVOICE_DATA)

        response = await client.post("/api/v1/webhooks/stripe", content=payload)

        assert response.status_code == 400
        assert response.json()["error"] == "VerificationFailed"

    async def test_signed_invoice_paid(self, client, sample_subscription):
        payload = stripe_event(
            "evt_route_2", "invoice.paid", {**SAMPLE_INVOICE_DATA, "id": "in_route"}
        )

        response = await client.post(
            "/api/v1/webhooks/stripe",
            content=payload,
            headers={"stripe-signature": sign_payload(payload)},
        )

        assert response.status_code == 200
        data = response.json()
        assert data["event_id"] == "evt_route_2"
        assert data["outcome"] == "applied"
        assert data["subscription_id"] == sample_subscription.id

        transactions = await client.get("/api/v1/billing/users/1/transactions")
        assert transactions.status_code == 200
        [transaction] = transactions.json()
        assert transaction["amount"] == 999
        assert transaction["status"] == "succeeded"
        assert transaction["transaction_metadata"]["kind"] == "subscription_invoice"

        history = await client.get("/api/v1/billing/users/1/billing-history")
        assert [h["gateway_invoice_id"] for h in history.json()] == ["in_route"]

    async def test_redelivery_is_acknowledged(self, client, sample_subscription):
        payload = stripe_event(
            "evt_route_3", "invoice.paid", {**SAMPLE_INVOICE_DATA, "id": "in_route_3"}
        )
        headers = {"stripe-signature": sign_payload(payload)}

        await client.post("/api/v1/webhooks/stripe", content=payload, headers=headers)
        response = await client.post(
            "/api/v1/webhooks/stripe", content=payload, headers=headers
        )

        assert response.status_code == 200
        assert response.json()["outcome"] == "duplicate"


@pytest.mark.asyncio
class TestLedgerRoutes:
    async def test_empty_ledger(self, client, plans):
        response = await client.get("/api/v1/billing/users/1/transactions")

        assert response.status_code == 200
        assert response.json() == []

    async def test_pagination_bounds(self, client, plans):
        response = await client.get("/api/v1/billing/users/1/transactions?limit=0")

        assert response.status_code == 422
