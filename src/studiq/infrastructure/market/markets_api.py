# src/studiq/infrastructure/market/markets_api.py
"""
HTTP client for the `/api/crypto/markets` endpoint. This is the fetch
capability the market refresh coordinator uses by default.

Cancellation is cooperative: cancelling the awaiting task aborts the httpx
request. Any non-2xx status or transport failure is raised as
`MarketFetchError`, so callers handle both the same way.
"""

import logging
from typing import Optional

import httpx

from studiq.domain.market import MarketFilters, MarketResponse

log = logging.getLogger(__name__)


class MarketFetchError(Exception):
    """The markets endpoint could not be reached or answered with an error."""


class MarketsApiClient:
    def __init__(
        self,
        url: str,
        timeout: float = 15.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.url = url
        self.timeout = timeout
        self._transport = transport

    async def fetch_markets(self, filters: MarketFilters) -> MarketResponse:
        params = filters.to_query_params()
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.get(self.url, params=params)
        except httpx.HTTPError as e:
            log.warning(f"Markets request failed for {params}: {e}")
            raise MarketFetchError(f"Network error: {e}") from e

        if not response.is_success:
            raise MarketFetchError(f"HTTP error! status: {response.status_code}")

        try:
            return MarketResponse.model_validate(response.json())
        except ValueError as e:
            raise MarketFetchError(f"Invalid markets payload: {e}") from e
