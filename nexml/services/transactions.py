"""
Transaction Engine

Purchase (ownership transfer) and rent (participation record).

Payments must match the listed price exactly: the registry cannot make
change, so over- and under-payment are both rejected. Settlement runs
before any state is written; if the gateway fails nothing is committed.
If the storage write fails after a settlement, the error is logged as
``settlement_uncommitted`` with the payment id so the payment can be
reconciled, and re-raised.
"""

from collections.abc import Awaitable

import structlog

from nexml.kernel.event_log import EventLog
from nexml.models.base import utc_now
from nexml.models.events import EventType
from nexml.models.marketplace import PaymentKind, PaymentRecord
from nexml.services.catalog import Catalog
from nexml.services.errors import (
    ForbiddenError,
    InvalidInputError,
    InvalidStateError,
    MarketplaceError,
    NotFoundError,
)
from nexml.services.payments import PaymentGateway

logger = structlog.get_logger(__name__)

INCORRECT_PAYMENT = "incorrect payment amount"


def check_payment(paid_amount: int, price: int) -> None:
    if isinstance(paid_amount, bool) or not isinstance(paid_amount, int) or paid_amount != price:
        raise InvalidInputError(INCORRECT_PAYMENT)


class TransactionEngine:
    """Applies purchases and rentals against the catalog."""

    def __init__(self, catalog: Catalog, events: EventLog, payments: PaymentGateway):
        self._catalog = catalog
        self._events = events
        self._payments = payments

    async def _commit_settled(self, record: PaymentRecord, write: Awaitable[None]) -> None:
        """Await the state write that follows a settlement."""
        try:
            await write
        except Exception as e:
            logger.error(
                "settlement_uncommitted",
                payment_id=record.id,
                model_id=record.listing_id,
                payer=record.payer,
                recipient=record.recipient,
                amount=record.amount,
                error=str(e),
            )
            raise

    async def purchase_model(self, caller: str, model_id: str, paid_amount: int) -> PaymentRecord:
        """
        Buy a listing at its sale price.

        Only ``owner`` changes; flags and prices stay as they were, and the
        creator's listing index is left untouched.

        Raises:
            NotFoundError: Unknown listing
            InvalidStateError: Listing is not for sale
            ForbiddenError: Caller already owns the listing
            InvalidInputError: paid_amount differs from the sale price
            PaymentError: Settlement failed
        """
        try:
            async with self._catalog.transaction():
                listing = await self._catalog.get(model_id)
                if not listing.for_sale:
                    raise InvalidStateError("listing is not for sale")
                if listing.owner == caller:
                    raise ForbiddenError("owner cannot purchase own listing")
                check_payment(paid_amount, listing.sale_price)

                seller = listing.owner
                record = await self._payments.settle(
                    payer=caller,
                    recipient=seller,
                    amount=paid_amount,
                    listing_id=model_id,
                    kind=PaymentKind.PURCHASE,
                )

                listing.owner = caller
                listing.updated_at = utc_now()
                await self._commit_settled(record, self._catalog.update(listing))
                event = self._events.append(
                    EventType.MODEL_PURCHASED,
                    caller,
                    model_id=model_id,
                    buyer=caller,
                    amount=paid_amount,
                )
        except MarketplaceError as e:
            logger.info(
                "purchase_rejected", caller=caller, model_id=model_id, code=e.code, reason=e.message
            )
            raise

        logger.info(
            "model_purchased",
            model_id=model_id,
            buyer=caller,
            seller=seller,
            amount=paid_amount,
            payment_id=record.id,
        )
        await self._events.deliver(event)
        return record

    async def rent_model(self, caller: str, model_id: str, paid_amount: int) -> PaymentRecord:
        """
        Rent a listing at its rent price.

        Appends the caller to the rental record; ownership is unchanged.
        Rentals never expire and any number may run side by side, including
        repeat rentals by the same caller.

        Raises:
            NotFoundError: Unknown listing
            InvalidStateError: Listing is not for rent
            ForbiddenError: Caller owns the listing
            InvalidInputError: paid_amount differs from the rent price
            PaymentError: Settlement failed
        """
        try:
            async with self._catalog.transaction():
                listing = await self._catalog.get(model_id)
                if not listing.for_rent:
                    raise InvalidStateError("listing is not for rent")
                if listing.owner == caller:
                    raise ForbiddenError("owner cannot rent own listing")
                check_payment(paid_amount, listing.rent_price)

                record = await self._payments.settle(
                    payer=caller,
                    recipient=listing.owner,
                    amount=paid_amount,
                    listing_id=model_id,
                    kind=PaymentKind.RENT,
                )

                await self._commit_settled(record, self._catalog.append_renter(model_id, caller))
                event = self._events.append(
                    EventType.MODEL_RENTED,
                    caller,
                    model_id=model_id,
                    renter=caller,
                    amount=paid_amount,
                )
        except MarketplaceError as e:
            logger.info(
                "rent_rejected", caller=caller, model_id=model_id, code=e.code, reason=e.message
            )
            raise

        logger.info(
            "model_rented",
            model_id=model_id,
            renter=caller,
            owner=listing.owner,
            amount=paid_amount,
            payment_id=record.id,
        )
        await self._events.deliver(event)
        return record

    async def get_renters(self, model_id: str) -> list[str]:
        """Rental record of a listing, in payment order."""
        await self._catalog.get(model_id)
        return await self._catalog.renters(model_id)

    async def get_renter(self, model_id: str, index: int) -> str:
        """The ``index``-th entry of a listing's rental record."""
        renters = await self.get_renters(model_id)
        if not 0 <= index < len(renters):
            raise NotFoundError("no renter at that index")
        return renters[index]
