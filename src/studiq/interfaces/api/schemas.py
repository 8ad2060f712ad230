# --- START OF FILE: src/studiq/interfaces/api/schemas.py ---
from __future__ import annotations

from pydantic import BaseModel


class PriceQuoteOut(BaseModel):
    id: str
    symbol: str
    name: str
    price: float
    changePercent24h: float = 0
    marketCap: float = 0
    volume24h: float = 0


class ErrorOut(BaseModel):
    error: str
    retry_after: int | None = None
# --- END OF FILE ---
