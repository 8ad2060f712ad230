# src/studiq/application/services/market_coordinator.py
"""
Market refresh coordinator.

Owns the request lifecycle behind the market browser: cache-key derivation,
cancellation of superseded requests, response caching, page accumulation,
auto-refresh gated on page visibility and network status, and the user's
favourite coins.

Concurrency model: everything runs on one asyncio loop. At most one network
request is "accepted" per coordinator; every request carries a generation
number and its result is only applied while that generation is current, so a
late response from a cancelled request can never overwrite newer data, even if
the transport ignored the cancellation.
"""

import asyncio
import logging
from dataclasses import replace
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Coroutine, Dict, List, Optional, Set, Union

from studiq.application.services.favorites import FavoritesStore
from studiq.application.signals import StatusSignal
from studiq.domain.market import (
    CoordinatorStatus,
    MarketCoin,
    MarketFilters,
    MarketResponse,
    MarketState,
    filter_coins,
)
from studiq.infrastructure.cache import TTLCache

log = logging.getLogger(__name__)

MarketFetcher = Callable[[MarketFilters], Awaitable[Union[MarketResponse, Dict[str, Any]]]]
StateListener = Callable[[MarketState], None]

OFFLINE_ERROR = "No internet connection"
DEFAULT_ERROR = "Failed to fetch market data"


class MarketRefreshCoordinator:
    """
    Serves a consistent, incrementally paginated, auto-refreshing market list.

    Lifecycle: construct, `await start()`, then drive it through the public
    operations; `await close()` before discarding it so no task outlives it.
    """

    def __init__(
        self,
        fetch: MarketFetcher,
        cache: TTLCache,
        favorites: FavoritesStore,
        *,
        online: Optional[StatusSignal] = None,
        visibility: Optional[StatusSignal] = None,
        filters: Optional[MarketFilters] = None,
        auto_refresh: bool = True,
        auto_refresh_interval: float = 60.0,
        cache_ttl: float = 30.0,
        request_timeout: float = 15.0,
    ):
        self._fetch = fetch
        self.cache = cache
        self.favorites_store = favorites
        self.online = online or StatusSignal("online", True)
        self.visibility = visibility or StatusSignal("visible", True)
        self.auto_refresh = auto_refresh
        self.auto_refresh_interval = auto_refresh_interval
        self.cache_ttl = cache_ttl
        self.request_timeout = request_timeout

        self.state = MarketState(
            filters=filters or MarketFilters(),
            favorites=favorites.load(),
        )
        if not self.online.value:
            self.state.status = CoordinatorStatus.OFFLINE

        self._generation = 0
        self._inflight: Optional[asyncio.Task] = None
        self._auto_refresh_task: Optional[asyncio.Task] = None
        self._background: Set[asyncio.Task] = set()
        self._unsubscribers: List[Callable[[], None]] = []
        self._listeners: List[StateListener] = []
        self._started = False
        self._closed = False

    # --- Observable state ---

    @property
    def is_online(self) -> bool:
        return self.online.value

    @property
    def is_visible(self) -> bool:
        return self.visibility.value

    @property
    def visible_coins(self) -> List[MarketCoin]:
        """The accumulated coins narrowed by the current search term."""
        return filter_coins(self.state.coins, self.state.filters.search)

    @property
    def favorite_coins(self) -> List[MarketCoin]:
        favorites = set(self.state.favorites)
        return [coin for coin in self.state.coins if coin.id in favorites]

    def is_favorite(self, coin_id: str) -> bool:
        return coin_id in self.state.favorites

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        """Calls `listener(state)` after every state change."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self) -> None:
        for listener in list(self._listeners):
            try:
                listener(self.state)
            except Exception as e:
                log.error(f"Market state listener failed: {e}", exc_info=True)

    # --- Lifecycle ---

    async def start(self) -> None:
        if self._started or self._closed:
            return
        self._started = True
        self._unsubscribers = [
            self.online.subscribe(self._on_online_change),
            self.visibility.subscribe(self._on_visibility_change),
        ]
        self._reschedule_auto_refresh()
        await self.fetch_market_data()

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers = []

        pending = [t for t in (self._auto_refresh_task, self._inflight) if t is not None]
        pending.extend(self._background)
        self._cancel_auto_refresh()
        self._cancel_inflight()
        for task in self._background:
            task.cancel()

        current = asyncio.current_task()
        await asyncio.gather(*(t for t in pending if t is not current), return_exceptions=True)
        self._background.clear()
        log.debug("Market coordinator closed.")

    # --- Fetching ---

    async def fetch_market_data(
        self, filters: Optional[MarketFilters] = None, use_cache: bool = True
    ) -> None:
        """
        Loads the page described by `filters` (the current filters by default)
        and merges it into the state. Never raises for network problems; they
        end up in `state.error` with the previously loaded coins untouched.
        """
        if self._closed:
            return
        filters = filters or self.state.filters

        if not self.is_online:
            self._mark_offline()
            return

        key = filters.cache_key()
        self.cache.purge_expired()

        if use_cache:
            cached = self.cache.get(key)
            if cached is not None:
                # A cached answer for newer filters also supersedes any request in flight
                self._cancel_inflight()
                self._apply_response(filters, cached)
                return

        self._cancel_inflight()
        generation = self._generation

        self.state.loading = True
        self.state.error = None
        self.state.status = CoordinatorStatus.FETCHING
        self._notify()

        request = asyncio.get_running_loop().create_task(self._request(filters))
        self._inflight = request
        try:
            response = await request
        except asyncio.CancelledError:
            current = asyncio.current_task()
            if current is not None and current.cancelling():
                if generation == self._generation:
                    # Our own task was cancelled; nothing is in flight any more
                    self._settle_cancelled()
                raise
            if generation != self._generation:
                log.debug(f"Market request '{key}' superseded by a newer request.")
                return
            raise
        except Exception as e:
            if generation != self._generation:
                return
            self._fail(key, e)
            return
        finally:
            if self._inflight is request:
                self._inflight = None

        if generation != self._generation:
            # Transport ignored the cancellation; the result is stale
            log.debug(f"Discarding late response for '{key}'.")
            return

        self.cache.set(key, response, ttl=self.cache_ttl)
        self._apply_response(filters, response)

    async def _request(self, filters: MarketFilters) -> MarketResponse:
        result = await asyncio.wait_for(self._fetch(filters), timeout=self.request_timeout)
        if isinstance(result, MarketResponse):
            return result
        return MarketResponse.model_validate(result)

    def _apply_response(self, filters: MarketFilters, response: MarketResponse) -> None:
        if filters.page == 1:
            coins = list(response.data)
        else:
            # Pages before this one stay; a re-fetched page replaces itself.
            # The offset never leaves a hole after the coins already loaded.
            offset = min((filters.page - 1) * filters.per_page, len(self.state.coins))
            coins = self.state.coins[:offset] + list(response.data)

        self.state.coins = coins
        self.state.has_more = len(response.data) == filters.per_page
        self.state.total_count = response.total_count
        self.state.last_updated = datetime.now(timezone.utc)
        self.state.loading = False
        self.state.error = None
        self.state.status = CoordinatorStatus.IDLE
        self._notify()

    def _fail(self, key: str, error: Exception) -> None:
        if isinstance(error, asyncio.TimeoutError):
            message = f"Request timed out after {self.request_timeout:g}s"
        else:
            message = str(error) or DEFAULT_ERROR
        log.error(f"Failed to fetch market data for '{key}': {message}")
        self.state.loading = False
        self.state.error = message
        self.state.status = CoordinatorStatus.ERROR
        self._notify()

    def _settle_cancelled(self) -> None:
        self.state.loading = False
        if self.state.status is CoordinatorStatus.FETCHING:
            self.state.status = CoordinatorStatus.IDLE
        self._notify()

    def _mark_offline(self) -> None:
        self.state.loading = False
        self.state.error = OFFLINE_ERROR
        self.state.status = CoordinatorStatus.OFFLINE
        self._notify()

    def _cancel_inflight(self) -> None:
        self._generation += 1
        if self._inflight is not None and not self._inflight.done():
            self._inflight.cancel()
        self._inflight = None

    # --- Public operations ---

    async def update_filters(self, **changes: Any) -> None:
        """
        Shallow-merges filter changes. Sort, category or page-size changes go
        back to page 1; the coins already shown stay visible until the new
        page arrives. A search-only change never touches the network.

        An explicit page may re-fetch a loaded page or load the next one;
        jumping further ahead raises ValueError.
        """
        previous = self.state.filters
        updated = previous.merge(**changes)
        if updated.page > self._next_page():
            raise ValueError(
                f"page {updated.page} skips unloaded pages; the next page to load is {self._next_page()}"
            )
        self.state.filters = updated
        if updated.cache_key() == previous.cache_key():
            self._notify()
            return
        self._reschedule_auto_refresh()
        await self.fetch_market_data(updated)

    async def load_more(self) -> None:
        if self.state.loading or not self.state.has_more:
            log.debug("load_more ignored: a request is loading or there are no more pages.")
            return
        # A page that failed to load is retried before moving past it
        next_page = min(self.state.filters.page + 1, self._next_page())
        self.state.filters = replace(self.state.filters, page=next_page)
        self._reschedule_auto_refresh()
        await self.fetch_market_data(self.state.filters)

    def _next_page(self) -> int:
        """The first page not yet fully held in `coins`."""
        return len(self.state.coins) // self.state.filters.per_page + 1

    async def refresh(self) -> None:
        """Back to page 1, straight from the network."""
        self.state.filters = replace(self.state.filters, page=1)
        self._reschedule_auto_refresh()
        await self.fetch_market_data(self.state.filters, use_cache=False)

    async def retry(self) -> None:
        await self.fetch_market_data(self.state.filters, use_cache=False)

    def search_coins(self, term: str) -> None:
        self.state.filters = replace(self.state.filters, search=term or "")
        self._notify()

    def toggle_favorite(self, coin_id: str) -> bool:
        """Flips `coin_id` in the favourites and persists them. Returns the new membership."""
        favorites = list(self.state.favorites)
        if coin_id in favorites:
            favorites.remove(coin_id)
        else:
            favorites.append(coin_id)
        self.state.favorites = favorites
        self.favorites_store.save(favorites)
        self._notify()
        return coin_id in favorites

    # --- Auto-refresh & environment signals ---

    def _reschedule_auto_refresh(self) -> None:
        self._cancel_auto_refresh()
        if not self.auto_refresh or not self._started or self._closed:
            return
        if not (self.is_online and self.is_visible):
            return
        self._auto_refresh_task = asyncio.get_running_loop().create_task(self._auto_refresh_loop())

    def _cancel_auto_refresh(self) -> None:
        if self._auto_refresh_task is not None:
            self._auto_refresh_task.cancel()
            self._auto_refresh_task = None

    async def _auto_refresh_loop(self) -> None:
        while True:
            await asyncio.sleep(self.auto_refresh_interval)
            # Stopping the timer must not abort a tick that is already fetching
            tick = self._spawn(self.fetch_market_data(self.state.filters, use_cache=False))
            if tick is None:
                return
            try:
                await asyncio.shield(tick)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                log.error(f"Auto-refresh failed: {e}", exc_info=True)

    def _on_online_change(self, online: bool) -> None:
        if self._closed:
            return
        if not online:
            log.warning("Network offline; pausing market refresh.")
            self._cancel_auto_refresh()
            self._cancel_inflight()
            self._mark_offline()
            return

        log.info("Network back online; refreshing market data.")
        self.state.status = CoordinatorStatus.IDLE
        if self.state.error == OFFLINE_ERROR:
            self.state.error = None
        self._reschedule_auto_refresh()
        self._spawn(self.fetch_market_data(use_cache=False))

    def _on_visibility_change(self, visible: bool) -> None:
        if self._closed:
            return
        self._reschedule_auto_refresh()
        if visible and self.is_online:
            self._spawn(self.fetch_market_data(use_cache=False))

    def _spawn(self, coro: Coroutine[Any, Any, None]) -> Optional[asyncio.Task]:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            coro.close()
            log.warning("No running event loop; skipping background market refresh.")
            return None
        task = loop.create_task(coro)
        self._background.add(task)
        task.add_done_callback(self._background.discard)
        return task
