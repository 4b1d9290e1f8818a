"""
Rate Limit Dependencies - FastAPI dependencies that enforce the Redis limits.

Usage:
    from aihub.middleware.rate_limit_dependencies import rate_limit_user

    @router.get("/contacts")
    async def list_contacts(
        user: CurrentUser = Depends(get_current_user),
        _rate: None = Depends(rate_limit_user),
    ):
        ...

Every dependency stores the rate limit info on request.state.rate_limit_info
so RateLimitHeadersMiddleware can surface it, and raises 429 with Retry-After
when the caller is over budget.
"""

import structlog
from fastapi import Depends, HTTPException, Request, status

from aihub.auth.verify import get_current_user
from aihub.config import settings
from aihub.infrastructure.observability.logging import get_logger
from aihub.middleware.rate_limiter import rate_limiter
from aihub.models.domain.user_domain import CurrentUser

logger = get_logger(__name__)


def _too_many_requests(info: dict, message: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_429_TOO_MANY_REQUESTS,
        detail={
            "error": "rate_limit_exceeded",
            "message": f"{message} Try again in {info['retry_after']} seconds.",
            "limit": info["limit"],
            "retry_after": info["retry_after"],
        },
        headers={"Retry-After": str(info["retry_after"])},
    )


async def rate_limit_ip(request: Request) -> None:
    """Per-IP limit, for unauthenticated endpoints."""
    if not settings.RATE_LIMIT_ENABLED:
        return

    ip_address = getattr(request.state, "ip_address", None)
    if not ip_address:
        logger.warning("Rate limit check skipped - no IP address")
        return

    allowed, info = await rate_limiter.check_ip_rate_limit(ip_address)
    request.state.rate_limit_info = info

    if not allowed:
        logger.warning(
            "IP rate limit exceeded",
            ip_address=ip_address,
            limit=info["limit"],
            retry_after=info["retry_after"],
            path=request.url.path,
        )
        raise _too_many_requests(info, "Too many requests from your IP.")


async def rate_limit_user(
    request: Request,
    user: CurrentUser = Depends(get_current_user),
) -> None:
    """
    Per-IP then per-user limits for authenticated endpoints.

    IP is checked first (broader protection), then the user budget.
    """
    request.state.user_id = user.id
    structlog.contextvars.bind_contextvars(user_id=user.id)

    if not settings.RATE_LIMIT_ENABLED:
        return

    await rate_limit_ip(request)

    allowed, info = await rate_limiter.check_user_rate_limit(user.id)
    request.state.rate_limit_info = info

    if not allowed:
        logger.warning(
            "User rate limit exceeded",
            user_id=user.id,
            limit=info["limit"],
            retry_after=info["retry_after"],
            path=request.url.path,
        )
        raise _too_many_requests(info, "Too many requests.")


async def rate_limit_executions(
    request: Request,
    user: CurrentUser = Depends(get_current_user),
) -> None:
    """Per-user limit on tool executions, checked on top of rate_limit_user."""
    if not settings.RATE_LIMIT_ENABLED:
        return

    allowed, info = await rate_limiter.check_execution_rate_limit(user.id)
    request.state.rate_limit_info = info

    if not allowed:
        logger.warning(
            "Execution rate limit exceeded",
            user_id=user.id,
            limit=info["limit"],
            retry_after=info["retry_after"],
        )
        raise _too_many_requests(info, "Too many tool executions.")
