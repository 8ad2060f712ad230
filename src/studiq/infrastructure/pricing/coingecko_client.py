# src/studiq/infrastructure/pricing/coingecko_client.py
"""
CoinGecko client with built-in request spacing, adaptive 429 backoff and a
per-coin price cache. The free tier tolerates roughly 10-30 requests a minute,
so by default requests are spaced at least 6 seconds apart.
"""

import asyncio
import logging
import time
from typing import Any, Dict, List, Optional

import httpx

from studiq.infrastructure.cache import TTLCache
from studiq.infrastructure.monitoring.metrics import UPSTREAM_REQUESTS

log = logging.getLogger(__name__)

MAX_REQUEST_INTERVAL = 60.0
BACKOFF_STEP = 2.0


class UpstreamError(Exception):
    """CoinGecko failed or returned something unusable."""


class UpstreamRateLimitError(UpstreamError):
    """CoinGecko answered 429 Too Many Requests."""


def _number(value: Any, fallback: float = 0) -> float:
    return value if isinstance(value, (int, float)) and not isinstance(value, bool) else fallback


def transform_market_coin(coin: Dict[str, Any]) -> Dict[str, Any]:
    """Maps one `/coins/markets` row to the shape served by the markets API."""
    current_price = _number(coin.get("current_price"))
    sparkline = coin.get("sparkline_in_7d") or {}
    return {
        "id": coin["id"],
        "symbol": str(coin.get("symbol", "")).upper(),
        "name": coin.get("name", ""),
        "image": coin.get("image") or "",
        "current_price": current_price,
        "market_cap": _number(coin.get("market_cap")),
        "market_cap_rank": coin.get("market_cap_rank") or 0,
        "fully_diluted_valuation": _number(coin.get("fully_diluted_valuation")),
        "total_volume": _number(coin.get("total_volume")),
        "high_24h": _number(coin.get("high_24h"), current_price),
        "low_24h": _number(coin.get("low_24h"), current_price),
        "price_change_24h": _number(coin.get("price_change_24h")),
        "price_change_percentage_24h": _number(coin.get("price_change_percentage_24h")),
        "price_change_percentage_1h_in_currency": _number(coin.get("price_change_percentage_1h_in_currency")),
        "price_change_percentage_7d_in_currency": _number(coin.get("price_change_percentage_7d_in_currency")),
        "market_cap_change_24h": _number(coin.get("market_cap_change_24h")),
        "market_cap_change_percentage_24h": _number(coin.get("market_cap_change_percentage_24h")),
        "circulating_supply": _number(coin.get("circulating_supply")),
        "total_supply": _number(coin.get("total_supply")),
        "max_supply": _number(coin.get("max_supply")),
        "ath": _number(coin.get("ath")),
        "ath_change_percentage": _number(coin.get("ath_change_percentage")),
        "ath_date": coin.get("ath_date"),
        "atl": _number(coin.get("atl")),
        "atl_change_percentage": _number(coin.get("atl_change_percentage")),
        "atl_date": coin.get("atl_date"),
        "roi": coin.get("roi"),
        "last_updated": coin.get("last_updated"),
        "sparkline_in_7d": list(sparkline.get("price") or []) if isinstance(sparkline, dict) else [],
    }


class CoinGeckoClient:
    """
    A robust client for CoinGecko with built-in rate limiting and caching.
    One instance should be shared per process so the spacing holds globally.
    """

    def __init__(
        self,
        base_url: str = "https://api.coingecko.com/api/v3",
        api_key: Optional[str] = None,
        price_cache: Optional[TTLCache] = None,
        request_interval: float = 6.0,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.price_cache = price_cache
        self.timeout = timeout
        self._base_interval = request_interval
        self._request_interval = request_interval
        self._last_request_time = 0.0
        self._lock = asyncio.Lock()
        self._transport = transport

    @property
    def request_interval(self) -> float:
        return self._request_interval

    def _headers(self) -> Dict[str, str]:
        headers = {"Accept": "application/json", "User-Agent": "StudIQ/1.0"}
        if self.api_key:
            headers["x-cg-demo-api-key"] = self.api_key
        return headers

    async def _wait_for_rate_limit(self):
        """Enforces a delay between requests."""
        async with self._lock:
            now = time.monotonic()
            time_since_last = now - self._last_request_time
            if self._last_request_time and time_since_last < self._request_interval:
                wait_time = self._request_interval - time_since_last
                log.debug(f"CoinGecko rate limit: waiting {wait_time:.2f}s")
                await asyncio.sleep(wait_time)
            self._last_request_time = time.monotonic()

    async def _get(self, endpoint: str, params: Dict[str, Any]) -> Any:
        await self._wait_for_rate_limit()
        try:
            async with httpx.AsyncClient(
                base_url=self.base_url,
                headers=self._headers(),
                timeout=self.timeout,
                transport=self._transport,
            ) as client:
                response = await client.get(endpoint, params=params)
        except httpx.HTTPError as e:
            UPSTREAM_REQUESTS.labels(endpoint=endpoint, outcome="network_error").inc()
            log.error(f"CoinGecko request to {endpoint} failed: {e}")
            raise UpstreamError(f"CoinGecko request failed: {e}") from e

        if response.status_code == 429:
            UPSTREAM_REQUESTS.labels(endpoint=endpoint, outcome="rate_limited").inc()
            # Adaptively slow down
            self._request_interval = min(self._request_interval + BACKOFF_STEP, MAX_REQUEST_INTERVAL)
            log.warning(
                f"CoinGecko 429 (Too Many Requests) on {endpoint}. "
                f"Backing off to {self._request_interval:.1f}s between requests."
            )
            raise UpstreamRateLimitError("CoinGecko rate limit exceeded")

        if not response.is_success:
            UPSTREAM_REQUESTS.labels(endpoint=endpoint, outcome="http_error").inc()
            log.error(f"CoinGecko HTTP error for {endpoint}: {response.status_code}")
            raise UpstreamError(f"CoinGecko API error: {response.status_code}")

        UPSTREAM_REQUESTS.labels(endpoint=endpoint, outcome="ok").inc()
        if self._request_interval > self._base_interval:
            # Successful call: drift back towards the configured spacing
            self._request_interval = max(self._base_interval, self._request_interval - BACKOFF_STEP / 2)

        try:
            return response.json()
        except ValueError as e:
            raise UpstreamError(f"CoinGecko returned invalid JSON: {e}") from e

    async def get_markets(
        self,
        order: str = "market_cap_desc",
        per_page: int = 25,
        page: int = 1,
        category: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        params: Dict[str, Any] = {
            "vs_currency": "usd",
            "order": order,
            "per_page": per_page,
            "page": page,
            "sparkline": "true",
            "price_change_percentage": "1h,24h,7d",
            "locale": "en",
        }
        if category:
            params["category"] = category

        data = await self._get("/coins/markets", params)
        if not isinstance(data, list):
            raise UpstreamError("CoinGecko markets payload is not a list")
        coins = [transform_market_coin(coin) for coin in data if isinstance(coin, dict) and coin.get("id")]
        log.info(f"Fetched {len(coins)} coins from CoinGecko (order={order}, page={page}).")
        return coins

    async def get_prices(self, ids: List[str], vs_currency: str = "usd") -> List[Dict[str, Any]]:
        """
        Fetches prices with Cache + Rate Limiting. Only ids without a valid
        cached quote go to the network; if that fails, whatever was cached is
        returned, and the error propagates only when nothing was.
        """
        wanted = [i.strip().lower() for i in ids if i and i.strip()]
        cached: List[Dict[str, Any]] = []
        missing: List[str] = []
        for coin_id in dict.fromkeys(wanted):
            quote = self.price_cache.get(f"{vs_currency}:{coin_id}") if self.price_cache else None
            if quote is not None:
                cached.append(quote)
            else:
                missing.append(coin_id)

        if not missing:
            return cached

        try:
            data = await self._get(
                "/simple/price",
                {
                    "ids": ",".join(missing),
                    "vs_currencies": vs_currency,
                    "include_24hr_change": "true",
                    "include_market_cap": "true",
                    "include_24hr_vol": "true",
                },
            )
        except UpstreamError:
            if cached:
                log.warning("Using cached prices due to CoinGecko error.")
                return cached
            raise

        fresh: List[Dict[str, Any]] = []
        for coin_id, info in (data or {}).items():
            if not isinstance(info, dict) or vs_currency not in info:
                log.warning(f"Price for '{coin_id}' not found in CoinGecko.")
                continue
            quote = {
                "id": coin_id,
                "symbol": coin_id.upper(),
                "name": coin_id[:1].upper() + coin_id[1:],
                "price": float(info[vs_currency]),
                "changePercent24h": _number(info.get(f"{vs_currency}_24h_change")),
                "marketCap": _number(info.get(f"{vs_currency}_market_cap")),
                "volume24h": _number(info.get(f"{vs_currency}_24h_vol")),
            }
            if self.price_cache is not None:
                self.price_cache.set(f"{vs_currency}:{coin_id}", quote)
            fresh.append(quote)
        return cached + fresh
