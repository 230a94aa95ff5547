"""
Repository Layer

Storage backends for the marketplace catalog.
"""

from nexml.repositories.base import MarketplaceRepository
from nexml.repositories.memory import InMemoryMarketplaceRepository
from nexml.repositories.redis_repository import RedisMarketplaceRepository

__all__ = [
    "MarketplaceRepository",
    "InMemoryMarketplaceRepository",
    "RedisMarketplaceRepository",
]
