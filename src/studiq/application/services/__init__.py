# File: src/studiq/application/services/__init__.py

from .favorites import FavoritesStore
from .market_coordinator import MarketRefreshCoordinator

__all__ = [
    "FavoritesStore",
    "MarketRefreshCoordinator",
]
