"""
NexML Services Module

Registry components:
- Catalog: shared listing state and the mutation lock
- ListingLifecycle: upload, update and read listings
- TransactionEngine: purchases and rentals
- RatingLedger: one rating per rater per listing
- IdentityDirectory: caller DIDs
- MarketplaceService: facade over all of the above
"""

from .catalog import Catalog
from .errors import (
    ConflictError,
    ForbiddenError,
    InvalidInputError,
    InvalidStateError,
    MarketplaceError,
    NotFoundError,
    PaymentError,
    UnauthorizedError,
)
from .identity import IdentityDirectory
from .listings import ListingLifecycle
from .marketplace import (
    MarketplaceService,
    close_marketplace_service,
    get_marketplace_service,
    init_marketplace_service,
)
from .payments import LedgerPaymentGateway, PaymentGateway
from .ratings import RatingLedger
from .transactions import TransactionEngine

__all__ = [
    "Catalog",
    "ConflictError",
    "ForbiddenError",
    "InvalidInputError",
    "InvalidStateError",
    "MarketplaceError",
    "NotFoundError",
    "PaymentError",
    "UnauthorizedError",
    "IdentityDirectory",
    "ListingLifecycle",
    "MarketplaceService",
    "close_marketplace_service",
    "get_marketplace_service",
    "init_marketplace_service",
    "LedgerPaymentGateway",
    "PaymentGateway",
    "RatingLedger",
    "TransactionEngine",
]
