# Test data and helpers
import hashlib
import hmac
import json
import time
from typing import Optional

TEST_WEBHOOK_SECRET = "whsec_test_secret"

SAMPLE_CHECKOUT_DATA = {
    "plan_id": "pro",
    "billing_cycle": "monthly",
    "success_url": "https://app.example.com/billing/success",
    "cancel_url": "https://app.example.com/billing/cancel",
}

SAMPLE_INVOICE_DATA = {
    "object": "invoice",
    "customer": "cus_test123",
    "subscription": "sub_test123",
    "amount_paid": 999,
    "amount_due": 999,
    "currency": "usd",
    "billing_reason": "subscription_cycle",
}


def sign_payload(
    payload: str, secret: str = TEST_WEBHOOK_SECRET, timestamp: Optional[int] = None
) -> str:
    """Build a Stripe-Signature header for `payload`."""
    timestamp = timestamp or int(time.time())
    signature = hmac.new(
        secret.encode("utf-8"),
        f"{timestamp}.{payload}".encode("utf-8"),
        hashlib.sha256,
    ).hexdigest()
    return f"t={timestamp},v1={signature}"


def stripe_event(
    event_id: str, event_type: str, data: dict, created: Optional[int] = None
) -> str:
    """Serialize a Stripe-shaped event envelope."""
    return json.dumps(
        {
            "id": event_id,
            "object": "event",
            "type": event_type,
            "created": created or int(time.time()),
            "data": {"object": data},
        }
    )
