"""
Factory for the distributed lock provider.
"""

from typing import Optional

from common.core.config import settings
from common.core.otel_axiom_exporter import get_logger

from .interface import DistributedLockInterface
from .redis_lock import RedisLock

logger = get_logger(__name__)

_lock_provider: Optional[DistributedLockInterface] = None


def get_lock_provider() -> DistributedLockInterface:
    """Get the process-wide lock provider. Subscription locks all go through it."""
    global _lock_provider

    if _lock_provider is None:
        _lock_provider = RedisLock(settings.redis_connection_url)
        logger.info(
            f"Initialized Redis lock provider on {settings.redis_host}:{settings.redis_port}",
            extra={"redis_db": settings.redis_db},
        )

    return _lock_provider
