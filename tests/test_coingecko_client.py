# tests/test_coingecko_client.py
import httpx
import pytest

from studiq.infrastructure.cache import TTLCache
from studiq.infrastructure.pricing.coingecko_client import (
    CoinGeckoClient,
    UpstreamError,
    UpstreamRateLimitError,
    transform_market_coin,
)

RAW_BITCOIN = {
    "id": "bitcoin",
    "symbol": "btc",
    "name": "Bitcoin",
    "current_price": 43250.5,
    "market_cap": 850000000000,
    "market_cap_rank": 1,
    "total_volume": None,
    "high_24h": None,
    "price_change_percentage_24h": -1.2,
    "sparkline_in_7d": {"price": [1.0, 2.0, 3.0]},
}


def make_client(handler, **kwargs) -> CoinGeckoClient:
    kwargs.setdefault("request_interval", 0)
    return CoinGeckoClient(transport=httpx.MockTransport(handler), **kwargs)


def test_transform_normalizes_a_market_row():
    coin = transform_market_coin(RAW_BITCOIN)
    assert coin["symbol"] == "BTC"
    assert coin["total_volume"] == 0
    assert coin["high_24h"] == 43250.5
    assert coin["low_24h"] == 43250.5
    assert coin["sparkline_in_7d"] == [1.0, 2.0, 3.0]
    assert coin["image"] == ""


@pytest.mark.asyncio
async def test_get_markets_sends_filters_and_api_key():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["path"] = request.url.path
        seen["params"] = dict(request.url.params)
        seen["key"] = request.headers.get("x-cg-demo-api-key")
        return httpx.Response(200, json=[RAW_BITCOIN, {"name": "no id"}])

    client = make_client(handler, api_key="demo-key")
    coins = await client.get_markets(order="volume_desc", per_page=50, page=2, category="layer-1")

    assert [c["id"] for c in coins] == ["bitcoin"]
    assert seen["path"] == "/api/v3/coins/markets"
    assert seen["params"]["order"] == "volume_desc"
    assert seen["params"]["per_page"] == "50"
    assert seen["params"]["page"] == "2"
    assert seen["params"]["category"] == "layer-1"
    assert seen["key"] == "demo-key"


@pytest.mark.asyncio
async def test_rate_limited_response_backs_off():
    client = make_client(lambda request: httpx.Response(429))

    with pytest.raises(UpstreamRateLimitError):
        await client.get_markets()
    assert client.request_interval == 2.0


@pytest.mark.asyncio
async def test_backoff_is_capped():
    client = make_client(lambda request: httpx.Response(429), request_interval=59)

    with pytest.raises(UpstreamRateLimitError):
        await client.get_markets()
    assert client.request_interval == 60.0


@pytest.mark.asyncio
async def test_server_error_raises_upstream_error():
    client = make_client(lambda request: httpx.Response(503))

    with pytest.raises(UpstreamError, match="503"):
        await client.get_markets()


@pytest.mark.asyncio
async def test_network_failure_raises_upstream_error():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(UpstreamError):
        await make_client(handler).get_markets()


@pytest.mark.asyncio
async def test_get_prices_only_requests_uncached_ids(clock):
    cache = TTLCache(max_size=10, default_ttl=300, cleanup_interval=60, clock=clock)
    cache.set("usd:bitcoin", {"id": "bitcoin", "symbol": "BITCOIN", "name": "Bitcoin", "price": 43000.0})
    requested = []

    def handler(request: httpx.Request) -> httpx.Response:
        requested.append(request.url.params["ids"])
        return httpx.Response(
            200,
            json={"ethereum": {"usd": 2650, "usd_24h_change": 1.7, "usd_market_cap": 3.2e11, "usd_24h_vol": 8.5e9}},
        )

    client = make_client(handler, price_cache=cache)
    quotes = await client.get_prices(["bitcoin", "Ethereum"])

    assert requested == ["ethereum"]
    assert [q["id"] for q in quotes] == ["bitcoin", "ethereum"]
    assert quotes[1]["price"] == 2650.0
    assert quotes[1]["changePercent24h"] == 1.7
    assert "usd:ethereum" in cache

    await client.get_prices(["ethereum"])
    assert requested == ["ethereum"]


@pytest.mark.asyncio
async def test_get_prices_falls_back_to_cached_subset(clock):
    cache = TTLCache(max_size=10, default_ttl=300, cleanup_interval=60, clock=clock)
    cache.set("usd:bitcoin", {"id": "bitcoin", "symbol": "BITCOIN", "name": "Bitcoin", "price": 43000.0})
    client = make_client(lambda request: httpx.Response(500), price_cache=cache)

    quotes = await client.get_prices(["bitcoin", "solana"])
    assert [q["id"] for q in quotes] == ["bitcoin"]

    with pytest.raises(UpstreamError):
        await client.get_prices(["solana"])
