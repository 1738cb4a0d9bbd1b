class AppException(Exception):
    """Base application exception."""

    pass


class NotFoundError(AppException):
    """Resource not found exception."""

    pass


class ValidationError(AppException):
    """Validation error exception."""

    pass


# ============================================================================
# Billing engine
# ============================================================================


class VerificationFailed(AppException):
    """Inbound gateway event failed signature verification."""

    pass


class MalformedEvent(AppException):
    """Authentic gateway event whose envelope or payload cannot be parsed."""

    pass


class PeriodClosed(AppException):
    """Usage arrived for a billing period that has already ended."""

    pass


class UnsupportedCurrency(AppException):
    """Currency code is unknown or not supported."""

    def __init__(self, currency: str):
        self.currency = currency
        super().__init__(f"Unsupported currency: {currency}")


class UnsupportedJurisdiction(AppException):
    """Jurisdiction cannot be interpreted for tax purposes."""

    pass


class ConflictingWrite(AppException):
    """A concurrent mutation won the race; retry the whole operation."""

    pass


class SubscriptionConflict(AppException):
    """User already holds a non-terminal subscription."""

    pass


class GatewayUnavailable(AppException):
    """Downstream payment gateway call failed."""

    pass
