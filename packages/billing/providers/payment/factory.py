"""
Factory for the payment gateway provider.
"""

from typing import Optional

from common.core.config import settings
from common.core.otel_axiom_exporter import get_logger
from packages.billing.providers.payment.interface import PaymentProviderInterface
from packages.billing.providers.payment.stripe_payment import StripePaymentProvider

logger = get_logger(__name__)

_payment_provider: Optional[PaymentProviderInterface] = None


def get_payment_provider() -> PaymentProviderInterface:
    """
    Get the process-wide payment provider.

    Stripe is the only gateway. A missing secret key is logged once; calls then
    fail at the gateway and surface as GatewayUnavailable.
    """
    global _payment_provider

    if _payment_provider is None:
        if not settings.stripe_secret_key:
            logger.warning("STRIPE_SECRET_KEY is not set, gateway calls will fail")
        _payment_provider = StripePaymentProvider()
        logger.info(
            "Initialized Stripe payment provider",
            extra={"price_ids": len(settings.stripe_price_ids)},
        )

    return _payment_provider
