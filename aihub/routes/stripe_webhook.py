"""
stripe_webhook.py
-----------------
Purpose:
    Receives Stripe events. `checkout.session.completed` tops up credits;
    every other event type is acknowledged and ignored.
"""

from fastapi import APIRouter, Depends, HTTPException, Request, status

from aihub.db.helpers import DatabaseError
from aihub.infrastructure.observability.logging import get_logger
from aihub.middleware.rate_limit_dependencies import rate_limit_ip
from aihub.services.billing_service import BillingError, construct_event, handle_event

router = APIRouter(prefix="/stripe", tags=["billing"])
logger = get_logger(__name__)


@router.post("/webhook")
async def stripe_webhook(request: Request, _rate: None = Depends(rate_limit_ip)):
    payload = await request.body()

    try:
        event = construct_event(payload, request.headers.get("stripe-signature"))
        result = await handle_event(event)
    except BillingError as e:
        logger.warning("Stripe webhook rejected", error=str(e), status_code=e.status_code)
        raise HTTPException(status_code=e.status_code, detail=str(e)) from e
    except DatabaseError as e:
        logger.error("Stripe webhook failed on storage", error=str(e))
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Webhook processing failed"
        ) from e

    return result
