"""
Rate limiting configuration for the Backlog Sync API.
Uses slowapi for request rate limiting.
"""
from slowapi import Limiter
from slowapi.util import get_remote_address
from slowapi.errors import RateLimitExceeded
from fastapi import Request
from fastapi.responses import JSONResponse
import logging

logger = logging.getLogger(__name__)


def get_client_ip(request: Request) -> str:
    """Get client IP, considering X-Forwarded-For header for proxies."""
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return get_remote_address(request)


# Create limiter instance
limiter = Limiter(
    key_func=get_client_ip,
    default_limits=["200/minute"],
    headers_enabled=True,
    strategy="fixed-window"
)


class RateLimits:
    """Rate limit constants for different endpoint categories."""
    API_READ = "200/minute"
    API_WRITE = "50/minute"

    # Endpoints that call out to trackers or the indexing service
    CONNECTION_TEST = "10/minute"
    WORK_ITEM_FETCH = "60/minute"
    CONTEXT_UPLOAD = "20/minute"
    CONTEXT_STATUS = "120/minute"


def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded):
    """Custom handler for rate limit exceeded errors."""
    logger.warning(
        "Rate limit exceeded: %s for %s on %s", exc.detail, get_client_ip(request), request.url.path
    )
    return JSONResponse(
        status_code=429,
        content={
            "message": "Too many requests. Please slow down.",
            "code": "RATE_LIMIT_EXCEEDED",
            "retry_after": exc.detail.split("per")[0].strip() if exc.detail else "60 seconds"
        },
        headers={
            "Retry-After": "60",
            "X-RateLimit-Limit": exc.detail or "unknown"
        }
    )
