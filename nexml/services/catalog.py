"""
Catalog

Shared state for every registry component: listings, the per-user
creation index, rental records, ratings and profiles, all held in a
MarketplaceRepository. The catalog also allocates listing ids and owns
the lock that serializes mutations.
"""

import asyncio
import hashlib
import json
import secrets
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import structlog

from nexml.models.marketplace import ModelListing, Rating, UserProfile
from nexml.repositories.base import MarketplaceRepository
from nexml.services.errors import NotFoundError

logger = structlog.get_logger(__name__)

LISTING_NOT_FOUND = "listing does not exist"


class Catalog:
    """
    Listing map and indices over a repository.

    Mutations must run inside ``transaction()``. Only one transaction is
    admitted at a time, so a check made inside it still holds when the
    write happens. Reads take no lock.
    """

    def __init__(self, repository: MarketplaceRepository, id_salt: str | None = None):
        self._repository = repository
        self._salt = id_salt or secrets.token_hex(16)
        self._lock = asyncio.Lock()

    @property
    def repository(self) -> MarketplaceRepository:
        return self._repository

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[None]:
        """Hold the registry-wide mutation lock."""
        async with self._lock:
            yield

    # =========================================================================
    # Listings
    # =========================================================================

    async def allocate_id(self, creator: str, content_ref: str) -> str:
        """
        Allocate a new listing id.

        The digest covers a strictly increasing sequence number, so two
        allocations never share an input; the salt keeps ids unpredictable.
        """
        sequence = await self._repository.next_sequence()
        material = json.dumps([self._salt, creator, sequence, content_ref])
        return "0x" + hashlib.sha256(material.encode()).hexdigest()

    async def create(self, listing: ModelListing) -> str:
        """Store a new listing and append it to its creator's index."""
        await self._repository.insert_listing(listing)
        logger.debug("catalog_listing_created", listing_id=listing.id, creator=listing.creator)
        return listing.id

    async def get(self, listing_id: str) -> ModelListing:
        """Get a listing snapshot or raise NotFoundError."""
        listing = await self._repository.get_listing(listing_id)
        if listing is None:
            raise NotFoundError(LISTING_NOT_FOUND)
        return listing

    async def update(self, listing: ModelListing) -> None:
        await self._repository.save_listing(listing)

    async def listing_ids_by_user(self, identity: str) -> list[str]:
        return await self._repository.listing_ids_by_user(identity)

    async def count(self) -> int:
        return await self._repository.count_listings()

    # =========================================================================
    # Rentals
    # =========================================================================

    async def append_renter(self, listing_id: str, renter: str) -> None:
        await self._repository.append_renter(listing_id, renter)

    async def renters(self, listing_id: str) -> list[str]:
        return await self._repository.renters(listing_id)

    # =========================================================================
    # Ratings
    # =========================================================================

    async def insert_rating(self, rating: Rating) -> bool:
        return await self._repository.insert_rating(rating)

    async def get_rating(self, listing_id: str, rater: str) -> Rating | None:
        return await self._repository.get_rating(listing_id, rater)

    async def ratings_for(self, listing_id: str) -> list[Rating]:
        return await self._repository.ratings_for(listing_id)

    # =========================================================================
    # Profiles
    # =========================================================================

    async def get_profile(self, identity: str) -> UserProfile | None:
        return await self._repository.get_profile(identity)

    async def save_profile(self, profile: UserProfile) -> None:
        await self._repository.save_profile(profile)
