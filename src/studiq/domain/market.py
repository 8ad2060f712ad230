# src/studiq/domain/market.py
"""
Market browser domain: list filters, the coin/response shapes returned by the
markets endpoint, and the observable state a refresh coordinator maintains.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

MAX_PER_PAGE = 100


class MarketOrder(str, Enum):
    """Sort orders supported by the markets endpoint."""
    MARKET_CAP_DESC = "market_cap_desc"
    MARKET_CAP_ASC = "market_cap_asc"
    VOLUME_DESC = "volume_desc"
    VOLUME_ASC = "volume_asc"
    ID_ASC = "id_asc"
    ID_DESC = "id_desc"


class CoordinatorStatus(Enum):
    IDLE = "IDLE"
    FETCHING = "FETCHING"
    ERROR = "ERROR"
    OFFLINE = "OFFLINE"


@dataclass(frozen=True)
class MarketFilters:
    """
    What the market list should show.

    `search` is applied client-side over the coins already fetched, so it is
    deliberately left out of `cache_key()`; the other fields select a page on
    the server.
    """
    search: str = ""
    category: str = ""
    order: MarketOrder = MarketOrder.MARKET_CAP_DESC
    page: int = 1
    per_page: int = 25

    def __post_init__(self):
        # Accept plain strings for the order (e.g. from query params)
        try:
            object.__setattr__(self, "order", MarketOrder(self.order))
        except ValueError:
            raise ValueError(f"Unsupported market order: '{self.order}'")
        object.__setattr__(self, "search", self.search or "")
        object.__setattr__(self, "category", self.category or "")
        if self.page < 1:
            raise ValueError(f"page must be >= 1, got {self.page}")
        if not 1 <= self.per_page <= MAX_PER_PAGE:
            raise ValueError(f"per_page must be between 1 and {MAX_PER_PAGE}, got {self.per_page}")

    def cache_key(self) -> str:
        return f"market-{self.order.value}-{self.category}-{self.page}-{self.per_page}"

    def to_query_params(self) -> Dict[str, str]:
        params = {
            "page": str(self.page),
            "per_page": str(self.per_page),
            "order": self.order.value,
        }
        if self.category:
            params["category"] = self.category
        return params

    def merge(self, **changes: Any) -> "MarketFilters":
        """
        Shallow-merges `changes` into a new filter set. Changing the order, the
        category or the page size invalidates accumulated pages, so the page
        goes back to 1.
        """
        unknown = set(changes) - {"search", "category", "order", "page", "per_page"}
        if unknown:
            raise TypeError(f"Unknown filter field(s): {', '.join(sorted(unknown))}")

        updated = replace(self, **changes)
        if (updated.order, updated.category, updated.per_page) != (self.order, self.category, self.per_page):
            updated = replace(updated, page=1)
        return updated


class MarketCoin(BaseModel):
    """One instrument in the market list. Unknown upstream fields are kept."""
    model_config = ConfigDict(extra="allow")

    id: str
    symbol: str
    name: str
    image: str = ""
    current_price: float = 0
    market_cap: float = 0
    market_cap_rank: Optional[int] = None
    total_volume: float = 0
    price_change_percentage_24h: float = 0
    price_change_percentage_7d_in_currency: float = 0
    sparkline_in_7d: List[float] = Field(default_factory=list)


class MarketResponse(BaseModel):
    data: List[MarketCoin]
    total_count: int
    page: int
    per_page: int
    has_more: bool


@dataclass
class MarketState:
    coins: List[MarketCoin] = field(default_factory=list)
    loading: bool = True
    error: Optional[str] = None
    filters: MarketFilters = field(default_factory=MarketFilters)
    # Ordered and duplicate-free; persisted by FavoritesStore
    favorites: List[str] = field(default_factory=list)
    last_updated: Optional[datetime] = None
    has_more: bool = True
    total_count: int = 0
    status: CoordinatorStatus = CoordinatorStatus.IDLE


def filter_coins(coins: List[MarketCoin], term: str) -> List[MarketCoin]:
    """Case-insensitive substring match on name or symbol."""
    needle = (term or "").strip().lower()
    if not needle:
        return list(coins)
    return [c for c in coins if needle in c.name.lower() or needle in c.symbol.lower()]
