"""StudIQ market data: TTL caching, market refresh coordination and the markets API."""

__version__ = "1.0.0"
