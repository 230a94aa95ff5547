"""
Listing Lifecycle

Upload, update and read model listings.

Upload enforces the content and pricing rules. Update only enforces the
ownership rule (plus the integer type of prices) unless strict update
validation is enabled, which keeps listings created under the original
rules updatable exactly as before.
"""

from typing import Any

import structlog

from nexml.kernel.event_log import EventLog
from nexml.models.base import utc_now
from nexml.models.events import EventType
from nexml.models.marketplace import ModelListing
from nexml.services.catalog import Catalog
from nexml.services.errors import InvalidInputError, MarketplaceError, NotFoundError, UnauthorizedError

logger = structlog.get_logger(__name__)


def is_amount(value: Any) -> bool:
    """True for a non-negative int (bools excluded)."""
    return isinstance(value, int) and not isinstance(value, bool) and value >= 0


def validate_terms(
    content_ref: Any,
    for_rent: bool,
    for_sale: bool,
    rent_price: Any,
    sale_price: Any,
) -> None:
    """
    Apply the upload rules, in the order callers observe them.

    Raises:
        InvalidInputError: On the first rule that fails
    """
    if not isinstance(content_ref, str) or not content_ref:
        raise InvalidInputError("content reference required")
    if for_sale and not (is_amount(sale_price) and sale_price > 0):
        raise InvalidInputError("sale price required")
    if for_rent and not (is_amount(rent_price) and rent_price > 0):
        raise InvalidInputError("rent price required")
    validate_prices(rent_price, sale_price)


def validate_prices(rent_price: Any, sale_price: Any) -> None:
    if not (is_amount(rent_price) and is_amount(sale_price)):
        raise InvalidInputError("price must be a non-negative integer")


class ListingLifecycle:
    """Creates listings, lets owners change their terms, and reads them back."""

    def __init__(self, catalog: Catalog, events: EventLog, strict_update_validation: bool = False):
        self._catalog = catalog
        self._events = events
        self.strict_update_validation = strict_update_validation

    async def upload_model(
        self,
        caller: str,
        content_ref: str,
        for_rent: bool,
        for_sale: bool,
        rent_price: int,
        sale_price: int,
    ) -> str:
        """
        Register a new listing owned by the caller.

        Returns:
            The new listing id

        Raises:
            InvalidInputError: Empty content reference, or a missing price
                for an enabled sale/rent flag
        """
        try:
            validate_terms(content_ref, for_rent, for_sale, rent_price, sale_price)
        except MarketplaceError as e:
            logger.info("upload_rejected", caller=caller, code=e.code, reason=e.message)
            raise

        async with self._catalog.transaction():
            listing_id = await self._catalog.allocate_id(caller, content_ref)
            listing = ModelListing(
                id=listing_id,
                content_ref=content_ref,
                owner=caller,
                creator=caller,
                for_rent=bool(for_rent),
                for_sale=bool(for_sale),
                rent_price=rent_price,
                sale_price=sale_price,
            )
            await self._catalog.create(listing)
            event = self._events.append(
                EventType.MODEL_UPLOADED,
                caller,
                model_id=listing_id,
                owner=caller,
                **listing.terms(),
            )

        logger.info(
            "model_uploaded",
            model_id=listing_id,
            owner=caller,
            for_sale=listing.for_sale,
            for_rent=listing.for_rent,
        )
        await self._events.deliver(event)
        return listing_id

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
        """
        Overwrite a listing's content reference, flags and prices.

        Owner and id never change here.

        Raises:
            NotFoundError: Unknown listing
            UnauthorizedError: Caller is not the current owner
            InvalidInputError: Non-integer or negative price, or (strict mode
                only) a failed upload rule
        """
        try:
            async with self._catalog.transaction():
                listing = await self._catalog.get(model_id)
                if listing.owner != caller:
                    raise UnauthorizedError("caller is not the listing owner")
                if self.strict_update_validation:
                    validate_terms(content_ref, for_rent, for_sale, rent_price, sale_price)
                else:
                    if not isinstance(content_ref, str):
                        raise InvalidInputError("content reference must be a string")
                    validate_prices(rent_price, sale_price)

                listing.content_ref = content_ref
                listing.for_rent = bool(for_rent)
                listing.for_sale = bool(for_sale)
                listing.rent_price = rent_price
                listing.sale_price = sale_price
                listing.updated_at = utc_now()
                await self._catalog.update(listing)
                event = self._events.append(
                    EventType.MODEL_UPDATED,
                    caller,
                    model_id=model_id,
                    **listing.terms(),
                )
        except MarketplaceError as e:
            logger.info(
                "update_rejected", caller=caller, model_id=model_id, code=e.code, reason=e.message
            )
            raise

        logger.info("model_updated", model_id=model_id, owner=caller)
        await self._events.deliver(event)
        return listing

    async def get_model(self, model_id: str) -> ModelListing:
        """Snapshot of a listing. Raises NotFoundError if absent."""
        return await self._catalog.get(model_id)

    async def get_models_by_user(self, identity: str) -> list[str]:
        """Ids the user created, in creation order (not current holdings)."""
        return await self._catalog.listing_ids_by_user(identity)

    async def get_model_by_user(self, identity: str, index: int) -> str:
        """The ``index``-th listing id the user created."""
        ids = await self._catalog.listing_ids_by_user(identity)
        if not 0 <= index < len(ids):
            raise NotFoundError("no listing at that index")
        return ids[index]
