"""
Rate limiting utilities using slowapi.
Protects cart, checkout and webhook endpoints from abuse.

Usage:
    from shared.security.rate_limit import limiter

    @router.post("/items")
    @limiter.limit(CART_RATE_LIMIT)
    def add_item(request: Request, ...):
        ...
"""

from fastapi import Request
from fastapi.responses import JSONResponse
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address

from shared.config.settings import settings
from shared.config.logging import get_logger

logger = get_logger(__name__)

# Limiter keyed by client IP; can be switched off through RATE_LIMIT_ENABLED
limiter = Limiter(key_func=get_remote_address, enabled=settings.rate_limit_enabled)

# Per-route limits
CART_RATE_LIMIT = "30/minute"
CHECKOUT_RATE_LIMIT = "20/minute"
PAYMENT_STATUS_RATE_LIMIT = "30/minute"
WEBHOOK_RATE_LIMIT = "60/minute"


def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """
    Handler for rate limit exceeded errors.
    Returns a JSON response with retry information.
    """
    logger.warning(
        "Rate limit exceeded",
        path=request.url.path,
        ip_address=get_remote_address(request),
        limit=str(exc.detail),
    )
    return JSONResponse(
        status_code=429,
        content={
            "detail": "Rate limit exceeded. Please try again later.",
            "retry_after": exc.detail,
        },
        headers={"Retry-After": "60"},
    )
