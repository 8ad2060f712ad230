# --- START OF FILE: tests/test_api.py ---
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient

from studiq.config import Settings
from studiq.infrastructure.pricing.coingecko_client import UpstreamError, UpstreamRateLimitError
from studiq.interfaces.api.main import create_app

COINS = [
    {"id": "bitcoin", "symbol": "BTC", "name": "Bitcoin", "current_price": 43250.0},
    {"id": "ethereum", "symbol": "ETH", "name": "Ethereum", "current_price": 2650.0},
]

QUOTES = [
    {"id": "bitcoin", "symbol": "BITCOIN", "name": "Bitcoin", "price": 43250.0,
     "changePercent24h": -1.2, "marketCap": 8.5e11, "volume24h": 1.5e10},
]


@pytest.fixture
def client() -> TestClient:
    """Provides a TestClient with the lifespan (services, background tasks) running."""
    app = create_app(Settings(DATABASE_URL="sqlite://", RATE_LIMIT_MAX_REQUESTS=3))
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def upstream(client: TestClient) -> MagicMock:
    """Replaces the CoinGecko client so no real network calls are made."""
    mock = MagicMock()
    mock.get_markets = AsyncMock(return_value=COINS)
    mock.get_prices = AsyncMock(return_value=QUOTES)
    client.app.state.services["coingecko_client"] = mock
    return mock


def test_root_endpoint(client: TestClient):
    r = client.get("/")
    assert r.status_code == 200
    assert r.json()["message"] == "StudIQ Markets API Running"


def test_requests_before_startup_are_rejected():
    app = create_app(Settings(DATABASE_URL="sqlite://"))
    r = TestClient(app).get("/api/crypto/markets")
    assert r.status_code == 503


def test_markets_returns_a_page(client: TestClient, upstream: MagicMock):
    r = client.get("/api/crypto/markets", params={"per_page": 2, "order": "volume_desc", "category": "layer-1"})

    assert r.status_code == 200
    body = r.json()
    assert [c["id"] for c in body["data"]] == ["bitcoin", "ethereum"]
    assert body["total_count"] == 2
    assert body["page"] == 1
    assert body["per_page"] == 2
    assert body["has_more"] is True
    upstream.get_markets.assert_awaited_once_with(order="volume_desc", per_page=2, page=1, category="layer-1")


def test_markets_clamps_page_size(client: TestClient, upstream: MagicMock):
    r = client.get("/api/crypto/markets", params={"per_page": 500})

    assert r.status_code == 200
    assert r.json()["per_page"] == 100
    assert r.json()["has_more"] is False
    assert upstream.get_markets.await_args.kwargs["per_page"] == 100


def test_markets_responses_are_cached(client: TestClient, upstream: MagicMock):
    first = client.get("/api/crypto/markets", params={"page": 2})
    second = client.get("/api/crypto/markets", params={"page": 2})

    assert first.json() == second.json()
    upstream.get_markets.assert_awaited_once()


def test_markets_falls_back_when_upstream_fails(client: TestClient, upstream: MagicMock):
    upstream.get_markets.side_effect = UpstreamRateLimitError("CoinGecko rate limit exceeded")

    r = client.get("/api/crypto/markets", params={"page": 3, "per_page": 50})

    assert r.status_code == 200
    body = r.json()
    assert [c["id"] for c in body["data"]] == ["bitcoin", "ethereum", "solana"]
    assert body["page"] == 1
    assert body["has_more"] is False


def test_markets_rejects_unknown_order(client: TestClient, upstream: MagicMock):
    r = client.get("/api/crypto/markets", params={"order": "price_desc"})
    assert r.status_code == 422
    upstream.get_markets.assert_not_awaited()


def test_markets_rate_limit_per_client(client: TestClient, upstream: MagicMock):
    for _ in range(3):
        assert client.get("/api/crypto/markets").status_code == 200

    r = client.get("/api/crypto/markets")
    assert r.status_code == 429
    assert r.json()["error"] == "Rate limit exceeded. Please try again later."
    assert r.json()["retry_after"] > 0
    assert r.headers["Retry-After"] == str(r.json()["retry_after"])

    other = client.get("/api/crypto/markets", headers={"X-Forwarded-For": "203.0.113.9, 10.0.0.1"})
    assert other.status_code == 200


def test_prices_require_ids(client: TestClient, upstream: MagicMock):
    r = client.get("/api/crypto/prices")
    assert r.status_code == 400
    assert r.json() == {"error": "Missing ids parameter"}
    upstream.get_prices.assert_not_awaited()


def test_prices_returns_quotes(client: TestClient, upstream: MagicMock):
    r = client.get("/api/crypto/prices", params={"ids": "bitcoin,ethereum"})

    assert r.status_code == 200
    assert r.json()[0]["id"] == "bitcoin"
    assert r.json()[0]["price"] == 43250.0
    upstream.get_prices.assert_awaited_once_with(["bitcoin", "ethereum"], vs_currency="usd")


def test_prices_fall_back_when_upstream_fails(client: TestClient, upstream: MagicMock):
    upstream.get_prices.side_effect = UpstreamError("CoinGecko API error: 500")

    r = client.get("/api/crypto/prices", params={"ids": "bitcoin"})

    assert r.status_code == 200
    assert {q["id"] for q in r.json()} == {"solana", "usd-coin", "bitcoin"}


def test_metrics_endpoint(client: TestClient, upstream: MagicMock):
    client.get("/api/crypto/markets")
    r = client.get("/metrics")
    assert r.status_code == 200
    assert "studiq_requests_total" in r.text
    assert "studiq_cache_misses_total" in r.text
# --- END OF FILE ---
