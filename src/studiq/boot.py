# File: src/studiq/boot.py
"""
Explicit wiring of caches, clients, storage and the rate limiter.

There are no module-level singletons: `build_services()` creates one cache per
data class and everything that needs a cache receives it by reference.
Periodic tasks are started and stopped through `start_background_tasks()` /
`stop_background_tasks()` by whoever owns the event loop (the API lifespan).
"""

import logging
import time
from typing import Any, Callable, Dict, Optional

from studiq.application.services.favorites import FavoritesStore
from studiq.application.services.market_coordinator import MarketFetcher, MarketRefreshCoordinator
from studiq.application.signals import StatusSignal
from studiq.config import Settings, settings
from studiq.domain.market import MarketFilters
from studiq.infrastructure.cache import CACHE_PROFILES, TTLCache
from studiq.infrastructure.db.base import create_db_engine
from studiq.infrastructure.market.markets_api import MarketsApiClient
from studiq.infrastructure.pricing.coingecko_client import CoinGeckoClient
from studiq.infrastructure.ratelimit import FixedWindowRateLimiter
from studiq.infrastructure.storage import SqlClientStorage

log = logging.getLogger(__name__)


def build_caches(clock: Callable[[], float] = time.monotonic) -> Dict[str, TTLCache]:
    """One cache per data class, configured from CACHE_PROFILES."""
    return {name: TTLCache.from_profile(name, profile, clock=clock) for name, profile in CACHE_PROFILES.items()}


def build_services(app_settings: Optional[Settings] = None) -> Dict[str, Any]:
    """Build and wire all application services and dependencies."""
    cfg = app_settings or settings
    log.info("Building application services...")
    services: Dict[str, Any] = {"settings": cfg}

    try:
        caches = build_caches()
        services["caches"] = caches

        engine = create_db_engine(cfg.DATABASE_URL)
        services["db_engine"] = engine
        services["client_storage"] = SqlClientStorage(engine)

        services["coingecko_client"] = CoinGeckoClient(
            base_url=cfg.COINGECKO_BASE_URL,
            api_key=cfg.CRYPTO_API_KEY,
            price_cache=caches["price"],
            request_interval=cfg.COINGECKO_MIN_INTERVAL_SECONDS,
            timeout=cfg.COINGECKO_TIMEOUT_SECONDS,
        )
        services["markets_api"] = MarketsApiClient(
            cfg.MARKETS_API_URL, timeout=cfg.MARKET_REQUEST_TIMEOUT_SECONDS
        )
        services["rate_limiter"] = FixedWindowRateLimiter(
            max_requests=cfg.RATE_LIMIT_MAX_REQUESTS,
            window_seconds=cfg.RATE_LIMIT_WINDOW_SECONDS,
        )

        log.info("✅ All services built and wired successfully.")
        return services

    except Exception as e:
        log.critical(f"❌ Service building failed: {e}", exc_info=True)
        raise


def build_market_coordinator(
    services: Dict[str, Any],
    *,
    fetch: Optional[MarketFetcher] = None,
    online: Optional[StatusSignal] = None,
    visibility: Optional[StatusSignal] = None,
    auto_refresh: bool = True,
) -> MarketRefreshCoordinator:
    """A coordinator sharing the process-wide market cache and client storage."""
    cfg: Settings = services["settings"]
    return MarketRefreshCoordinator(
        fetch=fetch or services["markets_api"].fetch_markets,
        cache=services["caches"]["market"],
        favorites=FavoritesStore(services["client_storage"], key=cfg.FAVORITES_STORAGE_KEY),
        online=online,
        visibility=visibility,
        filters=MarketFilters(per_page=cfg.MARKET_DEFAULT_PER_PAGE),
        auto_refresh=auto_refresh,
        auto_refresh_interval=cfg.MARKET_AUTO_REFRESH_SECONDS,
        cache_ttl=cfg.MARKET_CACHE_TTL_SECONDS,
        request_timeout=cfg.MARKET_REQUEST_TIMEOUT_SECONDS,
    )


def start_background_tasks(services: Dict[str, Any]) -> None:
    for cache in services["caches"].values():
        cache.start()
    services["rate_limiter"].start()
    log.info("Cache sweeps and rate limiter cleanup started.")


def stop_background_tasks(services: Dict[str, Any]) -> None:
    services["rate_limiter"].stop()
    for cache in services["caches"].values():
        cache.destroy()
    engine = services.get("db_engine")
    if engine is not None:
        engine.dispose()
    log.info("Background tasks stopped.")
