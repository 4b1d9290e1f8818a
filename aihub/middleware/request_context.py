"""
RequestContext Middleware - Adds request tracking to all requests.

Every request gets:
- request_id: Unique ID for request tracing (also returned as X-Request-ID)
- ip_address: Client IP address, used by the IP rate limiter
- user_agent: Client user agent string

The request id is also bound into structlog's contextvars so every log line
emitted while handling the request carries it.
"""

import time
import uuid

import structlog
from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

from aihub.config import settings
from aihub.infrastructure.observability.logging import get_logger, log_request

logger = get_logger(__name__)


class RequestContextMiddleware(BaseHTTPMiddleware):
    """
    Add request context to all incoming requests and log their outcome.

    Request.state Namespace Convention:
    - request_id, ip_address, user_agent: Set by RequestContextMiddleware
    - rate_limit_info: Set by rate limit dependencies
    - user_id: Set by rate limit dependencies once the caller is authenticated
    """

    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get("x-request-id") or str(uuid.uuid4())
        request.state.request_id = request_id

        ip_address = self._extract_client_ip(request)
        request.state.ip_address = ip_address
        request.state.user_agent = request.headers.get("user-agent")

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(request_id=request_id)

        start = time.perf_counter()
        response = await call_next(request)
        duration_ms = round((time.perf_counter() - start) * 1000, 2)

        response.headers["X-Request-ID"] = request_id

        log_request(
            request.method,
            request.url.path,
            response.status_code,
            duration_ms,
            user_id=getattr(request.state, "user_id", None),
        )
        return response

    def _extract_client_ip(self, request: Request) -> str | None:
        """
        Extract client IP address with proxy spoofing protection.

        X-Forwarded-For is only honoured when TRUST_X_FORWARDED_FOR is enabled
        and the direct peer is one of TRUSTED_PROXY_IPS.
        """
        direct_ip = request.client.host if request.client else None

        if not settings.TRUST_X_FORWARDED_FOR:
            return direct_ip

        if direct_ip in settings.TRUSTED_PROXY_IPS:
            forwarded_for = request.headers.get("x-forwarded-for")
            if forwarded_for:
                # "client, proxy1, proxy2"
                return forwarded_for.split(",")[0].strip()

        return direct_ip
