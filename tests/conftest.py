# tests/conftest.py
"""
Fixtures and test setup for the Pytest suite.
"""

import asyncio
import os
from typing import Dict, List, Optional

import pytest

# Set test environment variables BEFORE any application code is imported.
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["ENV"] = "test"
os.environ["COINGECKO_MIN_INTERVAL_SECONDS"] = "0"

from studiq.application.services.favorites import FavoritesStore
from studiq.domain.market import MarketCoin, MarketFilters, MarketResponse
from studiq.infrastructure.cache import TTLCache
from studiq.infrastructure.storage import InMemoryClientStorage


class FakeClock:
    """A monotonic clock that only moves when told to."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def make_coin(coin_id: str, name: Optional[str] = None, symbol: Optional[str] = None, **fields) -> MarketCoin:
    return MarketCoin(
        id=coin_id,
        name=name or coin_id.title(),
        symbol=symbol or coin_id[:3].upper(),
        **fields,
    )


def make_response(filters: MarketFilters, count: Optional[int] = None) -> MarketResponse:
    """A page of uniquely-identified coins for `filters`; full unless `count` says otherwise."""
    count = filters.per_page if count is None else count
    coins = [
        make_coin(f"{filters.order.value}-p{filters.page}-{i}")
        for i in range(count)
    ]
    return MarketResponse(
        data=coins,
        total_count=count,
        page=filters.page,
        per_page=filters.per_page,
        has_more=count == filters.per_page,
    )


class FakeMarketFetcher:
    """
    Stands in for the markets endpoint. Records every request; a request whose
    cache key has a gate waits on it before answering.
    """

    def __init__(self):
        self.calls: List[MarketFilters] = []
        self.page_sizes: Dict[int, int] = {}
        self.gates: Dict[str, asyncio.Event] = {}
        self.error: Optional[Exception] = None

    async def __call__(self, filters: MarketFilters) -> MarketResponse:
        self.calls.append(filters)
        gate = self.gates.get(filters.cache_key())
        if gate is not None:
            await gate.wait()
        if self.error is not None:
            raise self.error
        return make_response(filters, self.page_sizes.get(filters.page))


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def market_cache(clock) -> TTLCache:
    cache = TTLCache(max_size=50, default_ttl=30, cleanup_interval=60, name="market-test", clock=clock)
    yield cache
    cache.destroy()


@pytest.fixture
def client_storage() -> InMemoryClientStorage:
    return InMemoryClientStorage()


@pytest.fixture
def favorites_store(client_storage) -> FavoritesStore:
    return FavoritesStore(client_storage)


@pytest.fixture
def fetcher() -> FakeMarketFetcher:
    return FakeMarketFetcher()
