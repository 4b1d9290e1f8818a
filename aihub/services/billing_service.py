"""
Credit purchases through Stripe.

Checkout is a hosted Stripe payment link tagged with the buyer's user id.
The `checkout.session.completed` webhook credits the account, records the
Stripe customer and keeps one subscription row per user.
"""

from typing import Any
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

import stripe

from aihub.config import settings
from aihub.db.helpers import DatabaseError
from aihub.infrastructure.observability.logging import get_logger
from aihub.models.domain.user_domain import Subscription, UserAccount
from aihub.repositories.user_repository import UserRepository
from aihub.services.redis_client import fast_redis

logger = get_logger(__name__)

CHECKOUT_COMPLETED = "checkout.session.completed"


class BillingError(Exception):
    """Webhook could not be applied; status_code is the HTTP status to answer Stripe with."""

    def __init__(self, message: str, status_code: int = 500):
        super().__init__(message)
        self.status_code = status_code


def build_checkout_url(user_id: str, email: str | None = None) -> str:
    """Payment link carrying the user id as client_reference_id."""
    parts = urlsplit(settings.STRIPE_PAYMENT_LINK_URL)
    query = dict(parse_qsl(parts.query))
    query["client_reference_id"] = user_id
    if email:
        query["prefilled_email"] = email
    return urlunsplit(parts._replace(query=urlencode(query)))


def construct_event(payload: bytes, signature: str | None) -> dict[str, Any]:
    """
    Verify the Stripe-Signature header and parse the event into a plain dict.

    Raises:
        BillingError: 500 when no webhook secret is configured, 400 for a
            missing or invalid signature
    """
    if not settings.STRIPE_WEBHOOK_SECRET:
        raise BillingError("Stripe webhook secret is not configured", status_code=500)
    if not signature:
        raise BillingError("Missing Stripe signature header", status_code=400)

    try:
        event = stripe.Webhook.construct_event(payload, signature, settings.STRIPE_WEBHOOK_SECRET)
    except stripe.error.SignatureVerificationError as e:
        logger.warning("Stripe signature verification failed", error=str(e))
        raise BillingError("Invalid Stripe signature", status_code=400) from e
    except ValueError as e:
        raise BillingError("Invalid payload", status_code=400) from e

    # StripeObject is no longer a dict subclass; downstream code reads plain dicts
    if isinstance(event, stripe.StripeObject):
        return event.to_dict()
    return event


def _customer_email(session: dict) -> str | None:
    details = session.get("customer_details") or {}
    return details.get("email") or session.get("customer_email")


async def resolve_paying_user(reference_id: str | None, email: str | None) -> UserAccount | None:
    """
    Find the account a checkout belongs to: the client_reference_id first,
    then the customer email. An authenticated account that never got a
    users row gets one created.
    """
    if reference_id:
        user = await UserRepository.get_user(reference_id)
        if user:
            return user

    if email:
        user = await UserRepository.find_by_email(email)
        if user:
            return user

    auth_user = None
    if reference_id:
        auth_user = await UserRepository.find_auth_user(user_id=reference_id)
    if not auth_user and email:
        auth_user = await UserRepository.find_auth_user(email=email)
    if not auth_user:
        return None

    logger.info("Creating users row for paying auth account", user_id=auth_user["id"])
    return await UserRepository.create_user(auth_user["id"], auth_user["email"] or email)


async def apply_checkout_completed(session: dict) -> dict[str, Any]:
    reference_id = session.get("client_reference_id")
    email = _customer_email(session)

    if not reference_id and not email:
        raise BillingError("No client reference or customer email on session", status_code=400)

    user = await resolve_paying_user(reference_id, email)
    if not user:
        logger.error("No user for completed checkout", reference_id=reference_id, email=email)
        raise BillingError("User not found", status_code=404)

    new_balance = await UserRepository.add_credits(
        user.id, settings.CREDITS_PER_PURCHASE, stripe_customer_id=session.get("customer")
    )
    if new_balance is None:
        raise BillingError("Error updating credits", status_code=500)

    logger.info(
        "Credits added from checkout",
        user_id=user.id,
        credits_added=settings.CREDITS_PER_PURCHASE,
        balance=new_balance,
    )

    try:
        await UserRepository.upsert_subscription(
            Subscription(
                user_id=user.id,
                stripe_subscription_id=session.get("subscription") or session.get("id"),
                plan_name=settings.SUBSCRIPTION_PLAN_NAME,
                credits_per_month=settings.CREDITS_PER_PURCHASE,
                status="active",
            )
        )
    except DatabaseError as e:
        # Credits are already granted; a missing subscription row is repairable
        logger.error("Subscription upsert failed", user_id=user.id, error=str(e))

    return {"user_id": user.id, "credits": new_balance}


async def handle_event(event: dict[str, Any]) -> dict[str, Any]:
    """
    Apply one verified Stripe event.

    Replays of an already processed event id are acknowledged without
    effect. The replay marker lives in Redis; when Redis is unavailable the
    event is processed anyway.
    """
    event_id = event.get("id")
    event_type = event.get("type")

    if event_type != CHECKOUT_COMPLETED:
        logger.debug("Ignoring Stripe event", event_type=event_type)
        return {"received": True}

    marker = f"stripe:event:{event_id}"
    if event_id:
        first_delivery = await fast_redis.set_if_absent(
            marker, "1", settings.STRIPE_EVENT_REPLAY_TTL_SECONDS
        )
        if first_delivery is False:
            logger.info("Duplicate Stripe event ignored", event_id=event_id)
            return {"received": True, "duplicate": True}

    data = event.get("data") or {}
    session = data.get("object") if hasattr(data, "get") else None
    if not session:
        await fast_redis.delete(marker)
        raise BillingError("Missing checkout session payload", status_code=400)

    try:
        result = await apply_checkout_completed(session)
    except Exception:
        # Let Stripe's retry reprocess the event
        await fast_redis.delete(marker)
        raise

    return {"received": True, **result}
