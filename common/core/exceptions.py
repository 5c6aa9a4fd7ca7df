class AppException(Exception):
    """Base application exception."""

    pass


class NotFoundError(AppException):
    """Referenced user, subscription or meeting does not exist."""

    pass


class ValidationError(AppException):
    """Validation error exception."""

    pass


class InvariantViolationError(AppException):
    """
    A write would break a cross-row invariant (e.g. a second open meeting).

    Callers should re-read state rather than blindly retry the mutation.
    """

    pass


class UnknownPlanError(AppException):
    """Plan id is not registered in the catalog. Fatal configuration error."""

    def __init__(self, plan_id: str):
        self.plan_id = plan_id
        super().__init__(f"Unknown plan: {plan_id}")


class TransientStoreError(AppException):
    """Persistence timeout or connection failure. Safe to retry with backoff."""

    retryable = True


class UnhandledBillingEventError(AppException):
    """Billing provider sent an event name we do not handle."""

    def __init__(self, event_name: str):
        self.event_name = event_name
        super().__init__(f"Unhandled billing event: {event_name}")


class PaymentProviderError(AppException):
    """The billing provider API rejected or failed a request."""

    pass
