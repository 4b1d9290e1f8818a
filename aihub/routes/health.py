# aihub/routes/health.py
"""
Liveness and readiness endpoints.
"""

import time

from fastapi import APIRouter

from aihub.config import settings
from aihub.db.pool import db_health_check
from aihub.services.redis_client import fast_redis

router = APIRouter(tags=["health"])


@router.get("/healthz")
async def healthz():
    """Basic health check - always returns 200 if app is running."""
    return {"status": "ok", "service": "aihub"}


@router.get("/readyz")
async def readyz():
    """Readiness: database pool, Redis and required configuration."""
    checks = {}

    t0 = time.time()
    redis_ok = await fast_redis.ping()
    checks["redis"] = {"ok": redis_ok, "latency_ms": round((time.time() - t0) * 1000, 1)}

    t0 = time.time()
    db_health = await db_health_check()
    checks["database"] = {
        "ok": db_health.get("healthy", False),
        "latency_ms": round((time.time() - t0) * 1000, 1),
    }
    if "pool_stats" in db_health:
        checks["database"].update(db_health["pool_stats"])
    if not checks["database"]["ok"]:
        checks["database"]["error"] = db_health.get("error", "Database unhealthy")

    config_issues = []
    if not settings.SUPABASE_DB_URL:
        config_issues.append("SUPABASE_DB_URL not set")
    if not settings.STRIPE_WEBHOOK_SECRET:
        config_issues.append("STRIPE_WEBHOOK_SECRET not set")
    checks["configuration"] = {
        "ok": not config_issues,
        "issues": config_issues or None,
        "environment": settings.environment,
    }

    overall_ok = all(check["ok"] for check in checks.values())
    return {"overall_ok": overall_ok, "checks": checks, "timestamp": time.time()}


@router.get("/health/database")
async def database_health():
    """Detailed database pool health information."""
    return await db_health_check()
