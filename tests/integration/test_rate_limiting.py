import sys
from unittest.mock import AsyncMock

import pytest
from fastapi import Depends, FastAPI, Request
from fastapi.testclient import TestClient

from aihub.auth.verify import get_current_user
from aihub.middleware.rate_limit_dependencies import rate_limit_executions, rate_limit_user
from aihub.middleware.rate_limit_headers import RateLimitHeadersMiddleware
from aihub.middleware.rate_limiter import RateLimiter
from aihub.middleware.request_context import RequestContextMiddleware
from aihub.models.domain.user_domain import CurrentUser

# The package __init__ re-exports the `rate_limiter` instance, which shadows the
# submodule for dotted-string monkeypatch targets; patch via the module object.
rate_limiter_module = sys.modules["aihub.middleware.rate_limiter"]

ALLOWED = {"allowed": True, "limit": 120, "remaining": 119, "retry_after": None}


def _blocked(retry_after: int) -> dict:
    return {"allowed": False, "limit": 5, "remaining": 0, "retry_after": retry_after}


def _app():
    app = FastAPI()
    app.add_middleware(RateLimitHeadersMiddleware)
    app.add_middleware(RequestContextMiddleware)
    app.dependency_overrides[get_current_user] = lambda: CurrentUser(id="user-123")

    @app.get("/limited")
    async def limited(_rate: None = Depends(rate_limit_user)):
        return {"ok": True}

    @app.post("/run")
    async def run(
        _rate: None = Depends(rate_limit_user),
        _exec_rate: None = Depends(rate_limit_executions),
    ):
        return {"ok": True}

    return app


@pytest.fixture(autouse=True)
def enabled(monkeypatch):
    monkeypatch.setattr("aihub.middleware.rate_limit_dependencies.settings.RATE_LIMIT_ENABLED", True)


def test_rate_limit_headers_middleware():
    app = FastAPI()
    app.add_middleware(RateLimitHeadersMiddleware)

    @app.get("/limited")
    async def limited(request: Request):
        request.state.rate_limit_info = {
            "allowed": True,
            "limit": 10,
            "remaining": 9,
            "retry_after": 0,
        }
        return {"ok": True}

    client = TestClient(app)
    response = client.get("/limited")

    assert response.status_code == 200
    assert response.headers["X-RateLimit-Limit"] == "10"
    assert response.headers["X-RateLimit-Remaining"] == "9"
    assert "Retry-After" not in response.headers


def test_rate_limit_dependency_blocks(monkeypatch):
    monkeypatch.setattr(
        "aihub.middleware.rate_limit_dependencies.rate_limiter.check_ip_rate_limit",
        AsyncMock(return_value=(True, ALLOWED)),
    )
    monkeypatch.setattr(
        "aihub.middleware.rate_limit_dependencies.rate_limiter.check_user_rate_limit",
        AsyncMock(return_value=(False, _blocked(7))),
    )

    response = TestClient(_app()).get("/limited")

    assert response.status_code == 429
    assert response.headers["Retry-After"] == "7"
    assert response.json()["detail"]["error"] == "rate_limit_exceeded"


def test_execution_budget_is_checked_separately(monkeypatch):
    monkeypatch.setattr(
        "aihub.middleware.rate_limit_dependencies.rate_limiter.check_ip_rate_limit",
        AsyncMock(return_value=(True, ALLOWED)),
    )
    monkeypatch.setattr(
        "aihub.middleware.rate_limit_dependencies.rate_limiter.check_user_rate_limit",
        AsyncMock(return_value=(True, ALLOWED)),
    )
    execution_check = AsyncMock(return_value=(False, _blocked(30)))
    monkeypatch.setattr(
        "aihub.middleware.rate_limit_dependencies.rate_limiter.check_execution_rate_limit",
        execution_check,
    )

    client = TestClient(_app())

    assert client.get("/limited").status_code == 200
    response = client.post("/run")
    assert response.status_code == 429
    assert response.headers["Retry-After"] == "30"
    execution_check.assert_awaited_once_with("user-123")


def test_request_id_is_echoed():
    response = TestClient(_app()).get("/limited", headers={"X-Request-ID": "req-42"})

    assert response.headers["X-Request-ID"] == "req-42"


@pytest.mark.asyncio
async def test_limiter_fails_open_without_redis(monkeypatch):
    monkeypatch.setattr(rate_limiter_module.fast_redis, "client", None)

    allowed, info = await RateLimiter(default_limit=10, fail_open=True).check_rate_limit("user:u1")

    assert allowed is True
    assert info["remaining"] == 10


@pytest.mark.asyncio
async def test_limiter_fails_closed_when_configured(monkeypatch):
    monkeypatch.setattr(rate_limiter_module.fast_redis, "client", None)

    allowed, info = await RateLimiter(default_limit=10, window_seconds=60, fail_open=False).check_rate_limit(
        "user:u1"
    )

    assert allowed is False
    assert info["retry_after"] == 60


@pytest.mark.asyncio
async def test_limiter_reports_retry_after_from_oldest_request(monkeypatch):
    client = AsyncMock()
    client.eval = AsyncMock(return_value=[0, 5, 1_000])
    monkeypatch.setattr(rate_limiter_module.fast_redis, "client", client)
    monkeypatch.setattr(rate_limiter_module.time, "time", lambda: 1_020.0)

    allowed, info = await RateLimiter(default_limit=5, window_seconds=60).check_rate_limit("ip:1.2.3.4")

    assert allowed is False
    assert info["retry_after"] == 40
