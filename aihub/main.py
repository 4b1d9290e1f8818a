"""
FastAPI application: lifecycle of the database pool and Redis client,
middleware stack and routers.
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from aihub.config import settings
from aihub.db.pool import db_pool
from aihub.features.contacts import contacts_router
from aihub.infrastructure.observability.logging import get_logger, setup_logging
from aihub.middleware import RateLimitHeadersMiddleware, RequestContextMiddleware
from aihub.routes import health, protected, stripe_webhook, tools
from aihub.services.redis_client import fast_redis

# Setup logging before creating the app
setup_logging(log_level=settings.LOG_LEVEL)
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Handle application startup and shutdown with proper resource management."""
    logger.info("Application starting", environment=settings.environment, debug=settings.debug)

    await db_pool.initialize()

    # Rate limiting and webhook replay markers fail open without Redis
    try:
        await fast_redis.initialize()
    except RuntimeError as e:
        logger.error("Redis unavailable, continuing without it", error=str(e))

    logger.info("Services initialized", redis=fast_redis.client is not None)

    yield

    logger.info("Application shutting down")

    shutdown_errors = []

    try:
        await fast_redis.close()
    except Exception as e:
        logger.error("Error closing Redis", error=str(e))
        shutdown_errors.append(f"Redis: {e}")

    try:
        await db_pool.close()
    except Exception as e:
        logger.error("Error closing database pool", error=str(e))
        shutdown_errors.append(f"Database: {e}")

    if shutdown_errors:
        logger.warning("Some services had shutdown errors", errors=shutdown_errors)
    else:
        logger.info("All services closed successfully")


app = FastAPI(
    title="AI Hub",
    description="AI tool execution with credits, and a contacts CRM",
    version="0.1.0",
    lifespan=lifespan,
)

# Last added runs first: CORS, then request context, then rate limit headers
app.add_middleware(RateLimitHeadersMiddleware)
app.add_middleware(RequestContextMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["X-Request-ID", "X-RateLimit-Limit", "X-RateLimit-Remaining", "Retry-After"],
)

app.include_router(health.router)
app.include_router(protected.router)
app.include_router(tools.router)
app.include_router(contacts_router)
app.include_router(stripe_webhook.router)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000)
