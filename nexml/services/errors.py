"""
Marketplace Errors

Every rejection raised by the registry is a MarketplaceError subclass with
a stable ``code``. Errors are raised before any state changes, so a caught
error means the operation had no effect.
"""


class MarketplaceError(Exception):
    """Base exception for registry operations."""

    code = "marketplace_error"

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class InvalidInputError(MarketplaceError):
    """A caller-supplied field is malformed or out of range."""

    code = "invalid_input"


class NotFoundError(MarketplaceError):
    """The referenced listing (or index position) does not exist."""

    code = "not_found"


class UnauthorizedError(MarketplaceError):
    """The caller must own the listing for this operation."""

    code = "unauthorized"


class ForbiddenError(MarketplaceError):
    """The caller must not own the listing for this operation."""

    code = "forbidden"


class InvalidStateError(MarketplaceError):
    """The listing's sale/rent flag does not permit the transaction."""

    code = "invalid_state"


class ConflictError(MarketplaceError):
    """The rater already reviewed this listing."""

    code = "conflict"


class PaymentError(MarketplaceError):
    """The payment gateway could not settle the amount."""

    code = "payment_failed"

    def __init__(self, message: str, recipient: str | None = None, amount: int | None = None):
        self.recipient = recipient
        self.amount = amount
        super().__init__(message)
