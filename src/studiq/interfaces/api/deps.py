# src/studiq/interfaces/api/deps.py
from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from fastapi import HTTPException, Request, status
from fastapi.responses import JSONResponse

from studiq.infrastructure.monitoring.metrics import RATE_LIMITED

log = logging.getLogger(__name__)

RATE_LIMIT_MESSAGE = "Rate limit exceeded. Please try again later."


def get_services(request: Request) -> Dict[str, Any]:
    services = getattr(request.app.state, "services", None)
    if services is None:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Service is starting up")
    return services


def client_ip(request: Request) -> str:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    if request.client and request.client.host:
        return request.client.host
    return "unknown"


def rate_limit_response(request: Request, services: Dict[str, Any], route: str) -> Optional[JSONResponse]:
    """A 429 response when the caller is over its limit, otherwise None."""
    limiter = services["rate_limiter"]
    ip = client_ip(request)
    if limiter.check(f"{route}:{ip}"):
        return None

    retry_after = limiter.retry_after(f"{route}:{ip}")
    RATE_LIMITED.labels(route=route).inc()
    log.warning(f"Rate limit exceeded for {ip} on {route}; retry in {retry_after}s.")
    return JSONResponse(
        status_code=status.HTTP_429_TOO_MANY_REQUESTS,
        content={"error": RATE_LIMIT_MESSAGE, "retry_after": retry_after},
        headers={"Retry-After": str(retry_after)},
    )
