"""Domain-level exceptions.

All business rule violations are expressed as subclasses of DomainException
so the CLI layer can catch them uniformly and display user-friendly messages.
"""


class DomainException(Exception):
    """Base class for all domain errors."""


class ValidationError(DomainException):
    """A business rule or invariant was violated."""


class EmptyOrderError(ValidationError):
    """Checkout produced no order lines and no fulfillment requirements."""


class EntityNotFoundError(DomainException):
    """A requested entity does not exist."""


class PermissionDenied(DomainException):
    """The acting user does not own the store the operation belongs to."""


class InsufficientStock(DomainException):
    """Neither the retailer nor any wholesaler can cover the quantity."""


class InvalidTransition(DomainException):
    """A state machine transition is not permitted from the current state."""


class ApprovalRequired(DomainException):
    """The retailer has not yet approved the order's wholesaler sourcing."""


class FulfillmentPending(DomainException):
    """Wholesaler stock for the order has not reached the retailer yet."""

    def __init__(self, message: str, blocking_products: list[str]) -> None:
        super().__init__(message)
        self.blocking_products = blocking_products


class ConcurrencyConflict(DomainException):
    """A conditional update lost a race against another writer."""


class ExternalFailure(DomainException):
    """The payment gateway or the data store failed."""
