# src/studiq/infrastructure/monitoring/metrics.py
"""
Prometheus collectors shared by the cache, the upstream client and the API.
Exposed over HTTP by `studiq.interfaces.api.metrics`.
"""

from prometheus_client import Counter, Histogram

CACHE_HITS = Counter("studiq_cache_hits_total", "Cache lookups served from a valid entry", ["cache"])
CACHE_MISSES = Counter("studiq_cache_misses_total", "Cache lookups that found no valid entry", ["cache"])
CACHE_EVICTIONS = Counter("studiq_cache_evictions_total", "Entries evicted because the cache was full", ["cache"])
CACHE_EXPIRATIONS = Counter("studiq_cache_expirations_total", "Expired entries removed", ["cache"])

UPSTREAM_REQUESTS = Counter("studiq_upstream_requests_total", "Requests sent to CoinGecko", ["endpoint", "outcome"])

REQUESTS = Counter("studiq_requests_total", "Total API requests", ["route"])
RATE_LIMITED = Counter("studiq_rate_limited_total", "API requests rejected by the rate limiter", ["route"])
LATENCY = Histogram("studiq_request_latency_seconds", "Request latency", ["route"])
