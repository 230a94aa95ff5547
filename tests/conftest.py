"""
NexML Marketplace - Test Fixtures

Shared pytest fixtures for all test modules.
"""

from __future__ import annotations

import os
from typing import Any

import pytest

os.environ["APP_ENV"] = "testing"

from nexml.kernel.event_log import EventLog
from nexml.repositories.memory import InMemoryMarketplaceRepository
from nexml.services.marketplace import MarketplaceService
from nexml.services.payments import LedgerPaymentGateway

# =============================================================================
# Identities
# =============================================================================

OWNER = "0xowner"
USER1 = "0xuser1"
USER2 = "0xuser2"


# =============================================================================
# Fake Redis
# =============================================================================


class FakePipeline:
    """Queues commands and applies them together on execute()."""

    def __init__(self, client: "FakeRedis"):
        self._client = client
        self._commands: list[tuple[str, tuple[Any, ...], dict[str, Any]]] = []
        self.watched: list[str] = []

    async def __aenter__(self) -> "FakePipeline":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        self._commands.clear()

    async def watch(self, *keys: str) -> bool:
        self.watched = list(keys)
        return True

    async def exists(self, *keys: str) -> int:
        return await self._client.exists(*keys)

    def multi(self) -> None:
        self._commands.clear()

    def set(self, *args: Any, **kwargs: Any) -> "FakePipeline":
        self._commands.append(("set", args, kwargs))
        return self

    def rpush(self, *args: Any, **kwargs: Any) -> "FakePipeline":
        self._commands.append(("rpush", args, kwargs))
        return self

    def incr(self, *args: Any, **kwargs: Any) -> "FakePipeline":
        self._commands.append(("incr", args, kwargs))
        return self

    async def execute(self) -> list[Any]:
        results = []
        for name, args, kwargs in self._commands:
            results.append(await getattr(self._client, name)(*args, **kwargs))
        self._commands.clear()
        return results


class FakeRedis:
    """Just enough of redis.asyncio (decode_responses=True) for the repository."""

    def __init__(self) -> None:
        self.strings: dict[str, str] = {}
        self.lists: dict[str, list[str]] = {}
        self.hashes: dict[str, dict[str, str]] = {}
        self.closed = False
        self.last_pipeline: FakePipeline | None = None

    async def incr(self, key: str) -> int:
        value = int(self.strings.get(key, "0")) + 1
        self.strings[key] = str(value)
        return value

    async def get(self, key: str) -> str | None:
        return self.strings.get(key)

    async def exists(self, *keys: str) -> int:
        return sum(1 for key in keys if key in self.strings)

    async def set(self, key: str, value: str, nx: bool = False, xx: bool = False) -> bool | None:
        if nx and key in self.strings:
            return None
        if xx and key not in self.strings:
            return None
        self.strings[key] = value
        return True

    async def rpush(self, key: str, *values: str) -> int:
        self.lists.setdefault(key, []).extend(values)
        return len(self.lists[key])

    async def lrange(self, key: str, start: int, end: int) -> list[str]:
        items = self.lists.get(key, [])
        return list(items[start:] if end == -1 else items[start : end + 1])

    async def hsetnx(self, key: str, field: str, value: str) -> int:
        bucket = self.hashes.setdefault(key, {})
        if field in bucket:
            return 0
        bucket[field] = value
        return 1

    async def hget(self, key: str, field: str) -> str | None:
        return self.hashes.get(key, {}).get(field)

    async def hgetall(self, key: str) -> dict[str, str]:
        return dict(self.hashes.get(key, {}))

    def pipeline(self, transaction: bool = True) -> FakePipeline:
        self.last_pipeline = FakePipeline(self)
        return self.last_pipeline

    async def aclose(self) -> None:
        self.closed = True


@pytest.fixture
def fake_redis() -> FakeRedis:
    return FakeRedis()


# =============================================================================
# Services
# =============================================================================


@pytest.fixture
def repository():
    return InMemoryMarketplaceRepository()


@pytest.fixture
def payments():
    return LedgerPaymentGateway()


@pytest.fixture
def events():
    return EventLog()


@pytest.fixture
def service(repository, payments, events):
    """A registry over in-memory storage with a deterministic id salt."""
    return MarketplaceService(
        repository=repository,
        payments=payments,
        events=events,
        id_salt="test-salt",
    )


@pytest.fixture
def upload(service):
    """Factory that uploads a listing and returns its id."""

    async def _upload(
        caller: str = USER1,
        content_ref: str = "QmTestHash",
        for_rent: bool = True,
        for_sale: bool = True,
        rent_price: int = 100,
        sale_price: int = 200,
    ) -> str:
        return await service.upload_model(
            caller, content_ref, for_rent, for_sale, rent_price, sale_price
        )

    return _upload
