"""Lock key generators for billing package."""


def subscription_lock_key(subscription_id: int) -> str:
    """Generate lock key for subscription state changes.

    Every write to a subscription's status or to its open dunning case happens
    under this lock.
    """
    return f"subscription:{subscription_id}"
