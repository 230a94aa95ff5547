"""
In-Memory Repository

Process-local storage used by default and in tests.
"""

from collections import defaultdict

import structlog

from nexml.models.marketplace import ModelListing, Rating, UserProfile
from nexml.repositories.base import MarketplaceRepository

logger = structlog.get_logger(__name__)


class InMemoryMarketplaceRepository(MarketplaceRepository):
    """Dict-backed repository. Stores and returns deep copies."""

    backend = "memory"

    def __init__(self) -> None:
        self._sequence = 0
        self._listings: dict[str, ModelListing] = {}
        self._user_listings: dict[str, list[str]] = defaultdict(list)
        self._renters: dict[str, list[str]] = defaultdict(list)
        self._ratings: dict[str, dict[str, Rating]] = defaultdict(dict)
        self._profiles: dict[str, UserProfile] = {}
        self._logger = logger.bind(repository=self.backend)

    async def next_sequence(self) -> int:
        self._sequence += 1
        return self._sequence

    async def get_listing(self, listing_id: str) -> ModelListing | None:
        listing = self._listings.get(listing_id)
        return listing.model_copy(deep=True) if listing else None

    async def insert_listing(self, listing: ModelListing) -> None:
        if listing.id in self._listings:
            raise ValueError(f"Listing {listing.id} already exists")
        self._listings[listing.id] = listing.model_copy(deep=True)
        self._user_listings[listing.creator].append(listing.id)
        self._logger.debug("listing_inserted", listing_id=listing.id)

    async def save_listing(self, listing: ModelListing) -> None:
        if listing.id not in self._listings:
            raise ValueError(f"Listing {listing.id} does not exist")
        self._listings[listing.id] = listing.model_copy(deep=True)

    async def listing_ids_by_user(self, identity: str) -> list[str]:
        return list(self._user_listings.get(identity, []))

    async def count_listings(self) -> int:
        return len(self._listings)

    async def append_renter(self, listing_id: str, renter: str) -> None:
        self._renters[listing_id].append(renter)

    async def renters(self, listing_id: str) -> list[str]:
        return list(self._renters.get(listing_id, []))

    async def insert_rating(self, rating: Rating) -> bool:
        by_rater = self._ratings[rating.listing_id]
        if rating.rater in by_rater:
            return False
        by_rater[rating.rater] = rating.model_copy(deep=True)
        return True

    async def get_rating(self, listing_id: str, rater: str) -> Rating | None:
        rating = self._ratings.get(listing_id, {}).get(rater)
        return rating.model_copy(deep=True) if rating else None

    async def ratings_for(self, listing_id: str) -> list[Rating]:
        return [r.model_copy(deep=True) for r in self._ratings.get(listing_id, {}).values()]

    async def get_profile(self, identity: str) -> UserProfile | None:
        profile = self._profiles.get(identity)
        return profile.model_copy(deep=True) if profile else None

    async def save_profile(self, profile: UserProfile) -> None:
        self._profiles[profile.identity] = profile.model_copy(deep=True)
