"""
Middleware components for request processing.

This package contains middleware for:
- Request context (request ID, IP address, request logging)
- Rate limiting (per-IP, per-user and per-execution budgets)
"""

from aihub.middleware.rate_limit_dependencies import (
    rate_limit_executions,
    rate_limit_ip,
    rate_limit_user,
)
from aihub.middleware.rate_limit_headers import RateLimitHeadersMiddleware
from aihub.middleware.rate_limiter import rate_limiter
from aihub.middleware.request_context import RequestContextMiddleware

__all__ = [
    "RequestContextMiddleware",
    "RateLimitHeadersMiddleware",
    "rate_limiter",
    "rate_limit_user",
    "rate_limit_ip",
    "rate_limit_executions",
]
