"""
Rate Limiter - Redis-based request rate limiting.

Sliding window rate limiting backed by Redis sorted sets for:
- Per-user rate limits (authenticated requests)
- Per-IP rate limits (all requests)
- Per-user tool execution limits (each execution calls a paid webhook)

Design:
- Atomic Lua script (check and record in one round trip)
- Fail-open behavior (if Redis is down, allow requests) unless configured otherwise

Usage:
    from aihub.middleware.rate_limiter import rate_limiter

    allowed, info = await rate_limiter.check_rate_limit(
        key="user:user-123",
        limit=100,
        window_seconds=60
    )
"""

import time

from aihub.config import settings
from aihub.infrastructure.observability.logging import get_logger
from aihub.services.redis_client import fast_redis

logger = get_logger(__name__)


class RateLimiter:
    """
    Redis-based rate limiter using a sliding window.

    If the limit is 10 req/min and a user made 10 requests at 10:00:00,
    they can make more requests starting at 10:01:01 (not 10:01:00).
    """

    # Returns: {allowed (0 or 1), current_count, oldest_timestamp or 0}
    RATE_LIMIT_LUA_SCRIPT = """
    local key = KEYS[1]
    local limit = tonumber(ARGV[1])
    local window_seconds = tonumber(ARGV[2])
    local current_time = tonumber(ARGV[3])
    local unique_id = ARGV[4]

    redis.call('ZREMRANGEBYSCORE', key, 0, current_time - window_seconds)

    local current_count = redis.call('ZCARD', key)

    if current_count >= limit then
        local oldest_entries = redis.call('ZRANGE', key, 0, 0, 'WITHSCORES')
        local oldest_timestamp = 0
        if #oldest_entries > 0 then
            oldest_timestamp = tonumber(oldest_entries[2])
        end
        return {0, current_count, oldest_timestamp}
    end

    redis.call('ZADD', key, current_time, unique_id)
    redis.call('EXPIRE', key, window_seconds * 2)

    return {1, current_count + 1, 0}
    """

    def __init__(
        self,
        default_limit: int = 100,
        window_seconds: int = 60,
        fail_open: bool = True,
    ):
        self.default_limit = default_limit
        self.window_seconds = window_seconds
        self.fail_open = fail_open

    async def check_rate_limit(
        self,
        key: str,
        limit: int | None = None,
        window_seconds: int | None = None,
    ) -> tuple[bool, dict]:
        """
        Check and record one request against the window for `key`.

        Returns:
            Tuple of (allowed, info) where info carries limit, remaining and
            retry_after (seconds, only when rejected).
        """
        limit = limit or self.default_limit
        window_seconds = window_seconds or self.window_seconds

        redis_key = f"ratelimit:{key}"
        current_time = int(time.time())

        if not fast_redis.client:
            logger.warning("Redis not initialized for rate limiting", fail_open=self.fail_open)
            return self._on_backend_failure(limit, "redis_not_initialized")

        try:
            result = await fast_redis.client.eval(
                self.RATE_LIMIT_LUA_SCRIPT,
                1,
                redis_key,
                limit,
                window_seconds,
                current_time,
                f"{current_time}:{time.time_ns()}",
            )
        except Exception as e:
            logger.error(
                "Rate limiter Redis error",
                error=str(e),
                error_type=type(e).__name__,
                key=key,
                limit=limit,
            )
            return self._on_backend_failure(limit, "rate_limiter_error")

        allowed = bool(result[0])
        current_count = int(result[1])
        oldest_timestamp = int(result[2]) if result[2] else 0

        if not allowed:
            if oldest_timestamp > 0:
                retry_after = max(1, (oldest_timestamp + window_seconds) - current_time)
            else:
                retry_after = window_seconds

            return False, self._create_info_dict(
                allowed=False,
                limit=limit,
                remaining=0,
                retry_after=retry_after,
                window_seconds=window_seconds,
            )

        return True, self._create_info_dict(
            allowed=True,
            limit=limit,
            remaining=max(0, limit - current_count),
            window_seconds=window_seconds,
        )

    async def check_user_rate_limit(self, user_id: str, limit: int | None = None) -> tuple[bool, dict]:
        if limit is None:
            limit = settings.get_rate_limits()["user_per_minute"]
        return await self.check_rate_limit(
            key=f"user:{user_id}", limit=limit, window_seconds=settings.RATE_LIMIT_WINDOW_SECONDS
        )

    async def check_ip_rate_limit(self, ip_address: str, limit: int | None = None) -> tuple[bool, dict]:
        if limit is None:
            limit = settings.get_rate_limits()["ip_per_minute"]
        return await self.check_rate_limit(
            key=f"ip:{ip_address}", limit=limit, window_seconds=settings.RATE_LIMIT_WINDOW_SECONDS
        )

    async def check_execution_rate_limit(
        self, user_id: str, limit: int | None = None
    ) -> tuple[bool, dict]:
        """Tool executions have their own, tighter per-user budget."""
        if limit is None:
            limit = settings.get_rate_limits()["executions_per_minute"]
        return await self.check_rate_limit(
            key=f"executions:{user_id}",
            limit=limit,
            window_seconds=settings.RATE_LIMIT_WINDOW_SECONDS,
        )

    def _on_backend_failure(self, limit: int, error: str) -> tuple[bool, dict]:
        if self.fail_open:
            return True, self._create_info_dict(
                allowed=True, limit=limit, remaining=limit, error=error
            )
        return False, self._create_info_dict(
            allowed=False,
            limit=limit,
            remaining=0,
            retry_after=self.window_seconds,
            error=error,
        )

    def _create_info_dict(
        self,
        allowed: bool,
        limit: int,
        remaining: int,
        retry_after: int | None = None,
        window_seconds: int | None = None,
        error: str | None = None,
    ) -> dict:
        info = {
            "allowed": allowed,
            "limit": limit,
            "remaining": remaining,
            "retry_after": retry_after,
        }

        if window_seconds is not None:
            info["window_seconds"] = window_seconds

        if error:
            info["error"] = error

        return info


# Global singleton
rate_limiter = RateLimiter(
    default_limit=settings.RATE_LIMIT_USER_PER_MINUTE,
    window_seconds=settings.RATE_LIMIT_WINDOW_SECONDS,
    fail_open=settings.RATE_LIMIT_FAIL_OPEN,
)
