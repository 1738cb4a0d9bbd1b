"""Pure subscription state machine."""

from packages.billing.state_machine.transitions import (
    Transition,
    InvalidTransition,
    open_subscription,
    transition,
    map_gateway_status,
    compute_proration,
)

__all__ = [
    "Transition",
    "InvalidTransition",
    "open_subscription",
    "transition",
    "map_gateway_status",
    "compute_proration",
]
