"""
Rate Limiting for the Research Cell Portal
==========================================
Implements rate limiting using slowapi (in-memory by default, Redis via
RATE_LIMIT_STORAGE_URI in production).

Rate limit tiers follow the caller's role:
- Anonymous: RATE_LIMIT_PER_MINUTE req/min
- Student: 60 req/min
- Faculty: 120 req/min
- Admin: 300 req/min

The access guard middleware records the caller's tier for every request;
the default limit is resolved from it when slowapi evaluates the request.
Bulk admin operations have their own, stricter limit.
"""

from contextvars import ContextVar
from typing import Optional

from slowapi import Limiter
from slowapi.util import get_remote_address
from slowapi.errors import RateLimitExceeded
from fastapi import Request
from fastapi.responses import JSONResponse

from researchcell.core.config import settings
from researchcell.core.logging_config import logger


# Tier of the request currently being handled
rate_limit_tier_var: ContextVar[str] = ContextVar('rate_limit_tier', default='anonymous')


def get_user_identifier(request: Request) -> str:
    """
    Get rate limit key based on the identity the access guard attached.

    Priority:
    1. Authenticated user ID
    2. IP address (for anonymous users)
    """
    identity = getattr(request.state, 'identity', None)
    if identity is not None:
        return f"user:{identity.user_id}"

    return f"ip:{get_remote_address(request)}"


def tier_for_identity(identity) -> str:
    """Returns: 'anonymous', 'student', 'faculty' or 'admin'"""
    if identity is None:
        return 'anonymous'
    return identity.role.value.lower()


def get_rate_limit_tier(request: Request) -> str:
    return tier_for_identity(getattr(request.state, 'identity', None))


def set_rate_limit_tier(identity) -> None:
    """Record the tier of the current request (called once per request)"""
    rate_limit_tier_var.set(tier_for_identity(identity))


# Rate limit configurations per tier
RATE_LIMITS = {
    'anonymous': f"{settings.RATE_LIMIT_PER_MINUTE}/minute",
    'student': "60/minute",
    'faculty': "120/minute",
    'admin': "300/minute",
}

BULK_ACTION_LIMIT = "10/minute"


def tier_rate_limit() -> str:
    """
    Limit provider for the default limits.

    slowapi calls this for every request it checks, so the allowance
    follows the tier the access guard recorded for that request.
    """
    return RATE_LIMITS.get(rate_limit_tier_var.get(), RATE_LIMITS['anonymous'])


# Create limiter instance
limiter = Limiter(
    key_func=get_user_identifier,
    default_limits=[tier_rate_limit],
    storage_uri=settings.RATE_LIMIT_STORAGE_URI,
    enabled=settings.RATE_LIMIT_ENABLED,
    strategy="fixed-window",
)


def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded):
    """
    Custom handler for rate limit exceeded errors.

    Returns the portal's standard error body plus a Retry-After header.
    Kept synchronous so SlowAPIMiddleware can use it for default limits too.
    """
    tier = get_rate_limit_tier(request)
    tier_limit: Optional[str] = RATE_LIMITS.get(tier)
    logger.warning(
        f"[RateLimit] Exceeded for {get_user_identifier(request)} ({tier}): {exc.detail}"
    )

    return JSONResponse(
        status_code=429,
        content={
            "error": "Too many requests. Please slow down.",
            "code": "RATE_LIMIT_EXCEEDED",
            "details": {
                "limit": str(exc.detail),
                "tier": tier,
                "tier_limit": tier_limit,
            },
        },
        headers={
            "Retry-After": "60",
            "X-RateLimit-Limit": str(exc.detail),
        }
    )


def bulk_action_rate_limit():
    """Rate limit for bulk admin operations (10/min)"""
    return limiter.limit(BULK_ACTION_LIMIT, key_func=get_user_identifier)
