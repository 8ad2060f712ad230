from .market import (
    CoordinatorStatus,
    MarketCoin,
    MarketFilters,
    MarketOrder,
    MarketResponse,
    MarketState,
    filter_coins,
)

__all__ = [
    "CoordinatorStatus",
    "MarketCoin",
    "MarketFilters",
    "MarketOrder",
    "MarketResponse",
    "MarketState",
    "filter_coins",
]
