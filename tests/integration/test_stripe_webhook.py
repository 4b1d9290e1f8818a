"""
Stripe webhook endpoint tests. Most patch signature verification; one signs a real payload.
"""

import hashlib
import hmac
import json
import time
from unittest.mock import AsyncMock

import pytest
import stripe
from fastapi.testclient import TestClient

from aihub.main import app
from aihub.models.domain.user_domain import UserAccount
from aihub.repositories.user_repository import UserRepository

client = TestClient(app)


def _checkout_event(event_id="evt_1"):
    return {
        "id": event_id,
        "type": "checkout.session.completed",
        "data": {
            "object": {
                "id": "cs_1",
                "client_reference_id": "user-123",
                "customer": "cus_1",
                "customer_details": {"email": "user@example.com"},
            }
        },
    }


@pytest.fixture(autouse=True)
def stripe_setup(monkeypatch, fake_redis):
    monkeypatch.setattr("aihub.middleware.rate_limit_dependencies.settings.RATE_LIMIT_ENABLED", False)
    monkeypatch.setattr("aihub.services.billing_service.fast_redis", fake_redis)
    monkeypatch.setattr(
        UserRepository, "get_user", AsyncMock(return_value=UserAccount(id="user-123", credits=0))
    )
    monkeypatch.setattr(UserRepository, "upsert_subscription", AsyncMock(return_value=None))


def test_checkout_completed_adds_credits_once(monkeypatch):
    add_credits = AsyncMock(return_value=100)
    monkeypatch.setattr(UserRepository, "add_credits", add_credits)
    monkeypatch.setattr(stripe.Webhook, "construct_event", lambda payload, sig, secret: _checkout_event())

    first = client.post("/stripe/webhook", content=b"{}", headers={"Stripe-Signature": "t=1,v1=x"})
    second = client.post("/stripe/webhook", content=b"{}", headers={"Stripe-Signature": "t=1,v1=x"})

    assert first.status_code == 200
    assert first.json() == {"received": True, "user_id": "user-123", "credits": 100}
    assert second.json() == {"received": True, "duplicate": True}
    add_credits.assert_awaited_once()


def test_missing_signature_is_400():
    response = client.post("/stripe/webhook", content=b"{}")

    assert response.status_code == 400


def test_invalid_signature_is_400():
    response = client.post(
        "/stripe/webhook", content=b'{"id": "evt_1"}', headers={"Stripe-Signature": "t=1,v1=bad"}
    )

    assert response.status_code == 400
    assert response.json()["detail"] == "Invalid Stripe signature"


def test_other_events_are_acknowledged(monkeypatch):
    monkeypatch.setattr(
        stripe.Webhook,
        "construct_event",
        lambda payload, sig, secret: {"id": "evt_9", "type": "customer.created", "data": {}},
    )

    response = client.post("/stripe/webhook", content=b"{}", headers={"Stripe-Signature": "t=1,v1=x"})

    assert response.status_code == 200
    assert response.json() == {"received": True}


def _signed(payload: bytes, secret: str = "whsec_test") -> str:
    timestamp = int(time.time())
    signature = hmac.new(
        secret.encode(), f"{timestamp}.{payload.decode()}".encode(), hashlib.sha256
    ).hexdigest()
    return f"t={timestamp},v1={signature}"


def test_signed_checkout_event_credits_the_buyer(monkeypatch):
    add_credits = AsyncMock(return_value=100)
    monkeypatch.setattr(UserRepository, "add_credits", add_credits)
    payload = json.dumps({"object": "event", **_checkout_event("evt_signed")}).encode()

    response = client.post("/stripe/webhook", content=payload, headers={"Stripe-Signature": _signed(payload)})

    assert response.status_code == 200
    assert response.json() == {"received": True, "user_id": "user-123", "credits": 100}
    add_credits.assert_awaited_once()
