# src/studiq/infrastructure/cache.py
"""
In-memory cache with per-item Time-To-Live, bounded size and a background sweep.

Each data class (price quotes, user records, transactions, generic responses,
market pages) gets its own instance built from a `CacheProfile`, so keys never
collide across domains and capacity/TTL can be tuned independently.
"""

import asyncio
import logging
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, Callable, Dict, Generic, Optional, TypeVar

from studiq.infrastructure.monitoring.metrics import (
    CACHE_EVICTIONS,
    CACHE_EXPIRATIONS,
    CACHE_HITS,
    CACHE_MISSES,
)

log = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class CacheProfile:
    """Capacity and timing for one data class. Durations are in seconds."""
    max_size: int
    default_ttl: float
    cleanup_interval: float


CACHE_PROFILES: Dict[str, CacheProfile] = {
    "price": CacheProfile(max_size=1000, default_ttl=5 * 60, cleanup_interval=60),
    "user": CacheProfile(max_size=500, default_ttl=15 * 60, cleanup_interval=5 * 60),
    "transaction": CacheProfile(max_size=200, default_ttl=30 * 60, cleanup_interval=10 * 60),
    "response": CacheProfile(max_size=2000, default_ttl=10 * 60, cleanup_interval=2 * 60),
    "market": CacheProfile(max_size=50, default_ttl=30, cleanup_interval=60),
}


@dataclass
class CacheEntry(Generic[T]):
    value: T
    inserted_at: float
    ttl: float

    def is_valid(self, now: float) -> bool:
        return now - self.inserted_at <= self.ttl


@dataclass
class CacheStats:
    hits: int = 0
    misses: int = 0
    evictions: int = 0
    expirations: int = 0


class TTLCache(Generic[T]):
    """
    A key/value cache where every entry expires after its own TTL.

    - Expired entries are treated as missing on `get` (and removed there), so
      correctness never depends on the sweep having run.
    - When full, inserting a new key evicts the oldest *inserted* entry.
      Reads do not refresh an entry's position.
    - `start()` launches a periodic sweep on the running event loop that drops
      every expired entry; `destroy()` stops it and empties the cache.
    """

    def __init__(
        self,
        max_size: int,
        default_ttl: float,
        cleanup_interval: float,
        *,
        name: str = "cache",
        clock: Callable[[], float] = time.monotonic,
    ):
        if max_size <= 0:
            raise ValueError(f"max_size must be positive, got {max_size}")
        if default_ttl <= 0:
            raise ValueError(f"default_ttl must be positive, got {default_ttl}")
        if cleanup_interval <= 0:
            raise ValueError(f"cleanup_interval must be positive, got {cleanup_interval}")

        self.name = name
        self.max_size = max_size
        self.default_ttl = default_ttl
        self.cleanup_interval = cleanup_interval
        self.stats = CacheStats()
        self._clock = clock
        self._entries: "OrderedDict[str, CacheEntry[T]]" = OrderedDict()
        self._sweep_task: Optional[asyncio.Task] = None

    @classmethod
    def from_profile(
        cls, name: str, profile: CacheProfile, clock: Callable[[], float] = time.monotonic
    ) -> "TTLCache":
        return cls(
            profile.max_size,
            profile.default_ttl,
            profile.cleanup_interval,
            name=name,
            clock=clock,
        )

    def get(self, key: str) -> Optional[T]:
        """
        Retrieves an item from the cache if it exists and has not expired.
        """
        entry = self._entries.get(key)
        if entry is None:
            self._record_miss()
            return None

        if not entry.is_valid(self._clock()):
            # Item has expired, delete it and report a miss
            del self._entries[key]
            self.stats.expirations += 1
            CACHE_EXPIRATIONS.labels(cache=self.name).inc()
            self._record_miss()
            return None

        self.stats.hits += 1
        CACHE_HITS.labels(cache=self.name).inc()
        return entry.value

    def set(self, key: str, value: T, ttl: Optional[float] = None) -> None:
        """
        Adds an item with a specific or default TTL.
        :param ttl: Optional. Lifespan of this item in seconds; the cache's
                    default is used when None.
        """
        if ttl is not None and ttl <= 0:
            raise ValueError(f"ttl must be positive, got {ttl}")

        if key in self._entries:
            # Overwrite restarts both the TTL and the insertion order
            del self._entries[key]
        elif len(self._entries) >= self.max_size:
            self._evict_oldest()

        self._entries[key] = CacheEntry(
            value=value,
            inserted_at=self._clock(),
            ttl=ttl if ttl is not None else self.default_ttl,
        )

    def delete(self, key: str) -> None:
        self._entries.pop(key, None)

    def clear(self) -> None:
        self._entries.clear()

    def purge_expired(self) -> int:
        """Removes every expired entry and returns how many were dropped."""
        now = self._clock()
        expired = [key for key, entry in self._entries.items() if not entry.is_valid(now)]
        for key in expired:
            del self._entries[key]
        if expired:
            self.stats.expirations += len(expired)
            CACHE_EXPIRATIONS.labels(cache=self.name).inc(len(expired))
            log.debug(f"Cache '{self.name}' purged {len(expired)} expired entries.")
        return len(expired)

    def _evict_oldest(self) -> None:
        oldest_key, _ = self._entries.popitem(last=False)
        self.stats.evictions += 1
        CACHE_EVICTIONS.labels(cache=self.name).inc()
        log.debug(f"Cache '{self.name}' full ({self.max_size}); evicted '{oldest_key}'.")

    def _record_miss(self) -> None:
        self.stats.misses += 1
        CACHE_MISSES.labels(cache=self.name).inc()

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        entry = self._entries.get(key)  # type: ignore[arg-type]
        return entry is not None and entry.is_valid(self._clock())

    # --- Background sweep ---

    @property
    def running(self) -> bool:
        return self._sweep_task is not None and not self._sweep_task.done()

    def start(self) -> None:
        """Starts the periodic sweep. Must be called from a running event loop."""
        if self.running:
            return
        self._sweep_task = asyncio.get_running_loop().create_task(self._sweep_loop())
        log.debug(f"Cache '{self.name}' sweep started (every {self.cleanup_interval}s).")

    async def _sweep_loop(self) -> None:
        while True:
            await asyncio.sleep(self.cleanup_interval)
            self.purge_expired()

    def destroy(self) -> None:
        """Stops the sweep and drops all entries."""
        if self._sweep_task is not None:
            self._sweep_task.cancel()
            self._sweep_task = None
        self._entries.clear()
