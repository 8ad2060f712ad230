# src/studiq/interfaces/api/routers/crypto.py
"""
Public market data endpoints, proxied from CoinGecko.

Both endpoints are rate limited per client IP and never surface an upstream
failure to the browser: they fall back to a static snapshot instead.
"""

import logging
import time
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Query, Request, status
from fastapi.responses import JSONResponse

from studiq.domain.market import MAX_PER_PAGE, MarketOrder, MarketResponse
from studiq.infrastructure.monitoring.metrics import LATENCY, REQUESTS
from studiq.infrastructure.pricing.coingecko_client import UpstreamError
from studiq.infrastructure.pricing.fallback import fallback_market_coins, fallback_prices
from studiq.interfaces.api.deps import get_services, rate_limit_response
from studiq.interfaces.api.schemas import ErrorOut, PriceQuoteOut

log = logging.getLogger(__name__)

router = APIRouter(prefix="/api/crypto", tags=["crypto"])


@router.get("/markets", response_model=MarketResponse, responses={429: {"model": ErrorOut}})
async def get_markets(
    request: Request,
    page: int = Query(1, ge=1),
    per_page: int = Query(25, ge=1),
    order: MarketOrder = Query(MarketOrder.MARKET_CAP_DESC),
    category: Optional[str] = None,
    services: Dict[str, Any] = Depends(get_services),
):
    REQUESTS.labels(route="markets").inc()
    limited = rate_limit_response(request, services, "markets")
    if limited is not None:
        return limited

    started = time.perf_counter()
    per_page = min(per_page, MAX_PER_PAGE)
    cache = services["caches"]["response"]
    cache_key = f"markets:{order.value}:{category or ''}:{page}:{per_page}"

    payload = cache.get(cache_key)
    if payload is None:
        try:
            coins = await services["coingecko_client"].get_markets(
                order=order.value, per_page=per_page, page=page, category=category
            )
        except UpstreamError as e:
            log.error(f"Markets API error: {e}; serving fallback data.")
            fallback = fallback_market_coins()
            return {
                "data": fallback,
                "total_count": len(fallback),
                "page": 1,
                "per_page": 25,
                "has_more": False,
            }

        payload = {
            "data": coins,
            "total_count": len(coins),
            "page": page,
            "per_page": per_page,
            "has_more": len(coins) == per_page,
        }
        cache.set(cache_key, payload, ttl=services["settings"].MARKET_CACHE_TTL_SECONDS)

    LATENCY.labels(route="markets").observe(time.perf_counter() - started)
    return payload


@router.get(
    "/prices",
    response_model=List[PriceQuoteOut],
    responses={400: {"model": ErrorOut}, 429: {"model": ErrorOut}},
)
async def get_prices(
    request: Request,
    ids: Optional[str] = None,
    vs_currencies: str = "usd",
    services: Dict[str, Any] = Depends(get_services),
):
    REQUESTS.labels(route="prices").inc()
    if not ids:
        return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"error": "Missing ids parameter"})

    limited = rate_limit_response(request, services, "prices")
    if limited is not None:
        return limited

    started = time.perf_counter()
    try:
        quotes = await services["coingecko_client"].get_prices(ids.split(","), vs_currency=vs_currencies)
    except UpstreamError as e:
        log.error(f"Crypto prices API error: {e}; serving fallback data.")
        return fallback_prices()

    LATENCY.labels(route="prices").observe(time.perf_counter() - started)
    return quotes
