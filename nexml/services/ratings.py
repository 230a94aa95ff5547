"""
Rating Ledger

One score-plus-comment per (listing, rater). Ratings are immutable and
the ledger computes no aggregates; callers that need an average scan
``get_ratings``.
"""

import structlog

from nexml.kernel.event_log import EventLog
from nexml.models.events import EventType
from nexml.models.marketplace import MAX_SCORE, MIN_SCORE, Rating
from nexml.services.catalog import Catalog
from nexml.services.errors import ConflictError, InvalidInputError, MarketplaceError

logger = structlog.get_logger(__name__)

ALREADY_REVIEWED = "rater has already reviewed this listing"


class RatingLedger:
    """Stores first-and-only ratings. Owners may rate their own listings."""

    def __init__(self, catalog: Catalog, events: EventLog):
        self._catalog = catalog
        self._events = events

    async def rate_model(self, caller: str, model_id: str, score: int, comment: str = "") -> Rating:
        """
        Rate a listing.

        Raises:
            NotFoundError: Unknown listing
            InvalidInputError: Score outside 1..5
            ConflictError: Caller already rated this listing
        """
        try:
            async with self._catalog.transaction():
                await self._catalog.get(model_id)
                if (
                    isinstance(score, bool)
                    or not isinstance(score, int)
                    or not MIN_SCORE <= score <= MAX_SCORE
                ):
                    raise InvalidInputError("rating out of bounds")
                if not isinstance(comment, str):
                    raise InvalidInputError("comment must be a string")

                rating = Rating(listing_id=model_id, rater=caller, score=score, comment=comment)
                if not await self._catalog.insert_rating(rating):
                    raise ConflictError(ALREADY_REVIEWED)
                event = self._events.append(
                    EventType.MODEL_RATED,
                    caller,
                    model_id=model_id,
                    rater=caller,
                    score=score,
                    comment=comment,
                )
        except MarketplaceError as e:
            logger.info(
                "rating_rejected", caller=caller, model_id=model_id, code=e.code, reason=e.message
            )
            raise

        logger.info("model_rated", model_id=model_id, rater=caller, score=score)
        await self._events.deliver(event)
        return rating

    async def get_rating(self, model_id: str, rater: str) -> Rating | None:
        """The rating ``rater`` left on a listing, or None."""
        await self._catalog.get(model_id)
        return await self._catalog.get_rating(model_id, rater)

    async def get_ratings(self, model_id: str) -> list[Rating]:
        """Every rating on a listing, oldest first."""
        await self._catalog.get(model_id)
        return await self._catalog.ratings_for(model_id)
