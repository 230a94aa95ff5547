"""
Base Repository

Abstract storage contract for the registry: three keyed stores (listings,
ratings, profiles) and two append-only indices (user -> created listing
ids, listing -> renters).
"""

from abc import ABC, abstractmethod

from nexml.models.marketplace import ModelListing, Rating, UserProfile


class MarketplaceRepository(ABC):
    """
    Storage backend for the catalog.

    Implementations return detached copies; mutating a returned model
    never changes stored state until it is saved back.
    """

    backend: str = "abstract"

    # =========================================================================
    # Listings
    # =========================================================================

    @abstractmethod
    async def next_sequence(self) -> int:
        """Return a strictly increasing sequence number for id allocation."""

    @abstractmethod
    async def get_listing(self, listing_id: str) -> ModelListing | None:
        """Get a listing by id, or None."""

    @abstractmethod
    async def insert_listing(self, listing: ModelListing) -> None:
        """Store a new listing and append its id to the creator's index, atomically."""

    @abstractmethod
    async def save_listing(self, listing: ModelListing) -> None:
        """Overwrite an existing listing."""

    @abstractmethod
    async def listing_ids_by_user(self, identity: str) -> list[str]:
        """Ids created by a user, in creation order."""

    @abstractmethod
    async def count_listings(self) -> int:
        """Number of stored listings."""

    # =========================================================================
    # Rentals
    # =========================================================================

    @abstractmethod
    async def append_renter(self, listing_id: str, renter: str) -> None:
        """Append a renter to the listing's rental record."""

    @abstractmethod
    async def renters(self, listing_id: str) -> list[str]:
        """Renters of a listing, in payment order, duplicates included."""

    # =========================================================================
    # Ratings
    # =========================================================================

    @abstractmethod
    async def insert_rating(self, rating: Rating) -> bool:
        """Store a rating unless one exists for (listing, rater). Returns True if stored."""

    @abstractmethod
    async def get_rating(self, listing_id: str, rater: str) -> Rating | None:
        """Get the rating a rater left on a listing, or None."""

    @abstractmethod
    async def ratings_for(self, listing_id: str) -> list[Rating]:
        """All ratings on a listing, oldest first."""

    # =========================================================================
    # Profiles
    # =========================================================================

    @abstractmethod
    async def get_profile(self, identity: str) -> UserProfile | None:
        """Get a stored profile, or None."""

    @abstractmethod
    async def save_profile(self, profile: UserProfile) -> None:
        """Create or overwrite a profile."""

    async def close(self) -> None:
        """Release backend resources."""
        return None
