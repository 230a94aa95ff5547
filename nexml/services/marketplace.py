"""
Marketplace Service

Single entry point to the registry. Wires the Listing Lifecycle,
Transaction Engine, Rating Ledger and Identity Directory over one shared
Catalog and EventLog.

Every operation takes the trusted caller identity as its first argument;
the registry does not authenticate it.
"""

import structlog

from nexml.config import Settings, get_settings
from nexml.kernel.event_log import EventLog
from nexml.models.marketplace import ModelListing, PaymentRecord, Rating, UserProfile
from nexml.monitoring.logging import operation_context
from nexml.repositories.base import MarketplaceRepository
from nexml.repositories.memory import InMemoryMarketplaceRepository
from nexml.repositories.redis_repository import RedisMarketplaceRepository
from nexml.services.catalog import Catalog
from nexml.services.identity import IdentityDirectory
from nexml.services.listings import ListingLifecycle
from nexml.services.payments import LedgerPaymentGateway, PaymentGateway
from nexml.services.ratings import RatingLedger
from nexml.services.transactions import TransactionEngine

logger = structlog.get_logger(__name__)


class MarketplaceService:
    """
    Central service for marketplace operations.
    """

    def __init__(
        self,
        repository: MarketplaceRepository | None = None,
        payments: PaymentGateway | None = None,
        events: EventLog | None = None,
        id_salt: str | None = None,
        strict_update_validation: bool = False,
    ) -> None:
        self.repository = repository if repository is not None else InMemoryMarketplaceRepository()
        self.payments = payments if payments is not None else LedgerPaymentGateway()
        self.events = events if events is not None else EventLog()
        self.catalog = Catalog(self.repository, id_salt=id_salt)

        self.listings = ListingLifecycle(
            self.catalog, self.events, strict_update_validation=strict_update_validation
        )
        self.transactions = TransactionEngine(self.catalog, self.events, self.payments)
        self.ratings = RatingLedger(self.catalog, self.events)
        self.identity = IdentityDirectory(self.catalog, self.events)

    # =========================================================================
    # Listings
    # =========================================================================

    async def upload_model(
        self,
        caller: str,
        content_ref: str,
        for_rent: bool,
        for_sale: bool,
        rent_price: int,
        sale_price: int,
    ) -> str:
        with operation_context("upload_model", caller):
            return await self.listings.upload_model(
                caller, content_ref, for_rent, for_sale, rent_price, sale_price
            )

    async def update_model_state(
        self,
        caller: str,
        model_id: str,
        content_ref: str,
        for_rent: bool,
        for_sale: bool,
        rent_price: int,
        sale_price: int,
    ) -> ModelListing:
        with operation_context("update_model_state", caller, model_id=model_id):
            return await self.listings.update_model_state(
                caller, model_id, content_ref, for_rent, for_sale, rent_price, sale_price
            )

    async def get_model(self, model_id: str) -> ModelListing:
        return await self.listings.get_model(model_id)

    async def get_models_by_user(self, identity: str) -> list[str]:
        return await self.listings.get_models_by_user(identity)

    async def get_model_by_user(self, identity: str, index: int) -> str:
        return await self.listings.get_model_by_user(identity, index)

    # =========================================================================
    # Transactions
    # =========================================================================

    async def purchase_model(self, caller: str, model_id: str, paid_amount: int) -> PaymentRecord:
        with operation_context("purchase_model", caller, model_id=model_id):
            return await self.transactions.purchase_model(caller, model_id, paid_amount)

    async def rent_model(self, caller: str, model_id: str, paid_amount: int) -> PaymentRecord:
        with operation_context("rent_model", caller, model_id=model_id):
            return await self.transactions.rent_model(caller, model_id, paid_amount)

    async def get_renters(self, model_id: str) -> list[str]:
        return await self.transactions.get_renters(model_id)

    async def get_renter(self, model_id: str, index: int) -> str:
        return await self.transactions.get_renter(model_id, index)

    # =========================================================================
    # Ratings
    # =========================================================================

    async def rate_model(self, caller: str, model_id: str, score: int, comment: str = "") -> Rating:
        with operation_context("rate_model", caller, model_id=model_id):
            return await self.ratings.rate_model(caller, model_id, score, comment)

    async def get_rating(self, model_id: str, rater: str) -> Rating | None:
        return await self.ratings.get_rating(model_id, rater)

    async def get_ratings(self, model_id: str) -> list[Rating]:
        return await self.ratings.get_ratings(model_id)

    # =========================================================================
    # Identity
    # =========================================================================

    async def set_did(self, caller: str, did: str) -> UserProfile:
        with operation_context("set_did", caller):
            return await self.identity.set_did(caller, did)

    async def get_user_profile(self, identity: str) -> UserProfile:
        return await self.identity.get_user_profile(identity)

    async def close(self) -> None:
        await self.repository.close()


# Global instance
_marketplace_service: MarketplaceService | None = None


def _build_repository(settings: Settings) -> MarketplaceRepository:
    if settings.storage_backend == "redis":
        import redis.asyncio as redis

        client = redis.from_url(
            settings.redis_url,
            password=settings.redis_password,
            decode_responses=True,
        )
        logger.info("marketplace_repository_initialized", backend="redis")
        return RedisMarketplaceRepository(client, prefix=settings.redis_key_prefix)

    logger.info("marketplace_repository_initialized", backend="memory")
    return InMemoryMarketplaceRepository()


def init_marketplace_service(
    repository: MarketplaceRepository | None = None,
    payments: PaymentGateway | None = None,
    events: EventLog | None = None,
    settings: Settings | None = None,
) -> MarketplaceService:
    """
    Create the global marketplace service.

    Collaborators not passed in are built from settings.
    """
    global _marketplace_service

    settings = settings or get_settings()
    _marketplace_service = MarketplaceService(
        repository=repository if repository is not None else _build_repository(settings),
        payments=payments,
        events=events if events is not None else EventLog(max_events=settings.event_log_max_events),
        id_salt=settings.id_salt,
        strict_update_validation=settings.strict_update_validation,
    )
    return _marketplace_service


def get_marketplace_service() -> MarketplaceService:
    """Get the global marketplace service, creating it from settings on first use."""
    if _marketplace_service is None:
        return init_marketplace_service()
    return _marketplace_service


async def close_marketplace_service() -> None:
    """Close the storage backend and reset the global service."""
    global _marketplace_service

    if _marketplace_service is None:
        return

    await _marketplace_service.close()
    _marketplace_service = None
    logger.info("marketplace_service_closed")
