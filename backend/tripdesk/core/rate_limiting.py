"""
Per-client throttling for the TripDesk API.

Search is the hot path for agents; the bulk refresh endpoints rebuild many
trips per call and get a much smaller allowance.
"""

import logging

from fastapi import Request
from fastapi.responses import JSONResponse
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address

from tripdesk.core.config import settings

logger = logging.getLogger(__name__)


def client_key(request: Request) -> str:
    """Throttle by agent key when one is sent, otherwise by remote address."""
    api_key = request.headers.get("X-API-Key")
    if api_key:
        return f"key:{api_key}"
    return get_remote_address(request)


limiter = Limiter(key_func=client_key, enabled=settings.rate_limit_enabled)

SEARCH_LIMIT = settings.rate_limit_search
FACTS_LIMIT = settings.rate_limit_facts
BULK_REFRESH_LIMIT = settings.rate_limit_bulk_refresh
HEALTH_LIMIT = settings.rate_limit_health


async def rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    logger.warning(
        f"Throttled {client_key(request)} on {request.method} {request.url.path} ({exc.detail})"
    )
    return JSONResponse(
        status_code=429,
        content={
            "error": "too_many_requests",
            "detail": f"Limit of {exc.detail} reached for {request.url.path}",
            "retry_after": settings.rate_limit_retry_after,
        },
        headers={"Retry-After": str(settings.rate_limit_retry_after)},
    )
