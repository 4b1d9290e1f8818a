# aihub/services/redis_client.py
import redis.asyncio as redis
from redis.asyncio.connection import ConnectionPool

from aihub.config import settings
from aihub.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)


class FastRedisClient:
    """Pooled Upstash Redis client used for rate limiting and webhook replay markers."""

    def __init__(self):
        self.pool = None
        self.client = None
        self._initialized = False

    async def initialize(self):
        """Initialize connection pool on startup"""
        if self._initialized:
            return

        try:
            redis_url = self._build_upstash_redis_url()

            self.pool = ConnectionPool.from_url(
                redis_url,
                max_connections=20,
                retry_on_timeout=True,
                retry_on_error=[redis.ConnectionError, redis.TimeoutError],
                socket_connect_timeout=10,
                socket_timeout=10,
                health_check_interval=30,
                ssl_check_hostname=True,
                decode_responses=True,
            )

            self.client = redis.Redis(connection_pool=self.pool)

            await self.client.ping()

            self._initialized = True
            logger.info("Redis client initialized", max_connections=20)

        except Exception as e:
            logger.error("Failed to initialize Redis client", error=str(e))
            self._initialized = False
            self.client = None
            raise RuntimeError("Redis initialization failed") from e

    def _build_upstash_redis_url(self) -> str:
        """Native-protocol URL from the Upstash REST URL: rediss://default:<token>@<host>:6379"""
        rest_url = settings.UPSTASH_REDIS_REST_URL
        host = rest_url.removeprefix("https://").removeprefix("http://").strip("/")
        return f"rediss://default:{settings.UPSTASH_REDIS_REST_TOKEN}@{host}:6379"

    async def close(self):
        """Clean shutdown"""
        try:
            if self.client:
                await self.client.aclose()
            if self.pool:
                await self.pool.disconnect()
            self._initialized = False
            self.client = None
            logger.info("Redis client closed")
        except Exception as e:
            logger.error("Error closing Redis client", error=str(e))

    async def ping(self) -> bool:
        """Test Redis connection"""
        if not self.client:
            return False
        try:
            return bool(await self.client.ping())
        except Exception as e:
            logger.error("Redis ping failed", error=str(e))
            return False

    async def set_if_absent(self, key: str, value: str, ttl_s: int) -> bool | None:
        """
        SET key value NX EX ttl.

        Returns True when the key was set, False when it already existed and
        None when Redis is unavailable (callers decide whether to fail open).
        """
        if not self.client:
            return None
        try:
            return bool(await self.client.set(key, value, nx=True, ex=ttl_s))
        except Exception as e:
            logger.error("Redis SET NX failed", key=key[:40], error=str(e))
            return None

    async def delete(self, key: str) -> bool:
        if not self.client:
            return False
        try:
            return await self.client.delete(key) > 0
        except Exception as e:
            logger.error("Redis DELETE failed", key=key[:40], error=str(e))
            return False


# Global instance
fast_redis = FastRedisClient()
