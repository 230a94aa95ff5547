"""
Redis Repository

Durable key-value backend. Models are stored as JSON documents; the
indices are Redis lists and ratings live in one hash per listing.

Key layout (under the configured prefix):
    sequence                      INCR counter for id allocation
    listing:{id}                  listing JSON
    listing:{id}:renters          list of renter identities
    listing:{id}:ratings          hash rater -> rating JSON
    user:{identity}:listings      list of created listing ids
    profile:{identity}            profile JSON
    listings:count                number of listings
"""

from typing import Any

import structlog
from redis.exceptions import RedisError

from nexml.models.marketplace import ModelListing, Rating, UserProfile
from nexml.repositories.base import MarketplaceRepository

logger = structlog.get_logger(__name__)


class RedisMarketplaceRepository(MarketplaceRepository):
    """
    Repository over a ``redis.asyncio`` client created with
    ``decode_responses=True``.

    Storage errors are logged and re-raised; the registry never reports a
    write it could not make.
    """

    backend = "redis"

    def __init__(self, redis_client: Any, prefix: str = "nexml:"):
        self._redis = redis_client
        self._prefix = prefix
        self._logger = logger.bind(repository=self.backend)

    def _key(self, *parts: str) -> str:
        return self._prefix + ":".join(parts)

    async def next_sequence(self) -> int:
        return int(await self._redis.incr(self._key("sequence")))

    async def get_listing(self, listing_id: str) -> ModelListing | None:
        data = await self._redis.get(self._key("listing", listing_id))
        if not data:
            return None
        return ModelListing.model_validate_json(data)

    async def insert_listing(self, listing: ModelListing) -> None:
        listing_key = self._key("listing", listing.id)
        try:
            async with self._redis.pipeline(transaction=True) as pipe:
                # A concurrent write to the key aborts EXEC with WatchError
                await pipe.watch(listing_key)
                if await pipe.exists(listing_key):
                    # Ids embed a fresh sequence number, so this only happens on a corrupt counter
                    raise ValueError(f"Listing {listing.id} already exists")
                pipe.multi()
                pipe.set(listing_key, listing.model_dump_json())
                pipe.rpush(self._key("user", listing.creator, "listings"), listing.id)
                pipe.incr(self._key("listings", "count"))
                await pipe.execute()
        except (RedisError, OSError) as e:
            self._logger.error("listing_insert_failed", listing_id=listing.id, error=str(e))
            raise

    async def save_listing(self, listing: ModelListing) -> None:
        try:
            saved = await self._redis.set(
                self._key("listing", listing.id), listing.model_dump_json(), xx=True
            )
        except (RedisError, OSError) as e:
            self._logger.error("listing_save_failed", listing_id=listing.id, error=str(e))
            raise
        if not saved:
            raise ValueError(f"Listing {listing.id} does not exist")

    async def listing_ids_by_user(self, identity: str) -> list[str]:
        return list(await self._redis.lrange(self._key("user", identity, "listings"), 0, -1))

    async def count_listings(self) -> int:
        value = await self._redis.get(self._key("listings", "count"))
        return int(value) if value else 0

    async def append_renter(self, listing_id: str, renter: str) -> None:
        try:
            await self._redis.rpush(self._key("listing", listing_id, "renters"), renter)
        except (RedisError, OSError) as e:
            self._logger.error("renter_append_failed", listing_id=listing_id, error=str(e))
            raise

    async def renters(self, listing_id: str) -> list[str]:
        return list(await self._redis.lrange(self._key("listing", listing_id, "renters"), 0, -1))

    async def insert_rating(self, rating: Rating) -> bool:
        try:
            stored = await self._redis.hsetnx(
                self._key("listing", rating.listing_id, "ratings"),
                rating.rater,
                rating.model_dump_json(),
            )
        except (RedisError, OSError) as e:
            self._logger.error("rating_insert_failed", listing_id=rating.listing_id, error=str(e))
            raise
        return bool(stored)

    async def get_rating(self, listing_id: str, rater: str) -> Rating | None:
        data = await self._redis.hget(self._key("listing", listing_id, "ratings"), rater)
        if not data:
            return None
        return Rating.model_validate_json(data)

    async def ratings_for(self, listing_id: str) -> list[Rating]:
        raw = await self._redis.hgetall(self._key("listing", listing_id, "ratings"))
        ratings = [Rating.model_validate_json(value) for value in raw.values()]
        ratings.sort(key=lambda r: r.rated_at)
        return ratings

    async def get_profile(self, identity: str) -> UserProfile | None:
        data = await self._redis.get(self._key("profile", identity))
        if not data:
            return None
        return UserProfile.model_validate_json(data)

    async def save_profile(self, profile: UserProfile) -> None:
        try:
            await self._redis.set(self._key("profile", profile.identity), profile.model_dump_json())
        except (RedisError, OSError) as e:
            self._logger.error("profile_save_failed", identity=profile.identity, error=str(e))
            raise

    async def close(self) -> None:
        try:
            await self._redis.aclose()
        except (RedisError, OSError) as e:
            self._logger.warning("redis_close_error", error=str(e))
