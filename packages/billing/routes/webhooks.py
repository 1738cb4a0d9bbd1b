"""
Webhook endpoints for billing events.

Public endpoints (no auth required) for Stripe webhooks.
"""

from fastapi import APIRouter, Request

from common.providers.rate_limiter.limiter import limiter
from packages.billing.models.domain.gateway_events import IngestAck
from packages.billing.webhooks.event_ingestion import EventIngestionGateway

router = APIRouter()


@router.post("/webhooks/stripe", response_model=IngestAck)
@limiter.exempt
async def stripe_webhook(request: Request):
    """
    Receive webhook events from Stripe payment platform.

    No authentication required - the signature is verified against the raw body.
    Any 2xx tells Stripe to stop redelivering, so only acknowledged events
    return one.
    """
    gateway = EventIngestionGateway()
    return await gateway.ingest(
        await request.body(), request.headers.get("stripe-signature")
    )
