"""
Order lifecycle error taxonomy.

Every error carries the HTTP status the routers answer with. The two
idempotency guards (PaymentAlreadyProcessedError, AlreadyReleasedError)
are benign: callers treat them as "already done", not as failures.
"""


class OrderLifecycleError(Exception):
    status_code = 400

    def __init__(self, message: str = ""):
        super().__init__(message or self.__class__.__doc__ or self.__class__.__name__)


class OrderNotFoundError(OrderLifecycleError):
    """Order not found"""
    status_code = 404


class IllegalTransitionError(OrderLifecycleError):
    """The order's current state does not allow this transition"""
    status_code = 409


class UnauthorizedActorError(OrderLifecycleError):
    """The caller lacks the role or ownership this transition requires"""
    status_code = 403


class PaymentAlreadyProcessedError(OrderLifecycleError):
    """Payment for this order was already processed"""
    status_code = 409
    benign = True


class AlreadyReleasedError(OrderLifecycleError):
    """Payment for this order was already released to the seller"""
    status_code = 409
    benign = True

    def __init__(self, message: str = "", split=None):
        super().__init__(message)
        # The ledger split persisted by the first release
        self.split = split


class MissingTrackingInfoError(OrderLifecycleError):
    """Tracking number and shipping carrier are both required"""
    status_code = 422


class NotShippedError(OrderLifecycleError):
    """The order has not been shipped yet"""
    status_code = 409


class EmptyCartError(OrderLifecycleError):
    """Cannot check out an empty cart"""
    status_code = 422


class InvalidRateError(OrderLifecycleError):
    """Commission rate must be between 0 and 100"""
    status_code = 422
