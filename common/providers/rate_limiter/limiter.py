"""Process-wide SlowAPI limiter for the public billing routes."""

from slowapi import Limiter
from slowapi.util import get_remote_address

from common.core.config import settings


def build_limiter(storage_uri: str | None = None, enabled: bool | None = None) -> Limiter:
    """Limits are counted in Redis so they hold across API replicas."""
    return Limiter(
        key_func=get_remote_address,
        default_limits=settings.rate_limit_default,
        storage_uri=storage_uri or settings.redis_connection_url,
        enabled=settings.rate_limit_enabled if enabled is None else enabled,
    )


# Stripe webhooks opt out with @limiter.exempt; signature verification gates them.
limiter = build_limiter()
