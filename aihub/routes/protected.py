"""
protected.py
------------
Purpose:
    The caller's identity and live credit balance, plus a checkout link for
    buying more credits. Both require a Supabase access token.
"""

from fastapi import APIRouter, Depends, HTTPException, status

from aihub.auth.verify import get_current_user
from aihub.db.helpers import DatabaseError
from aihub.infrastructure.observability.logging import get_logger
from aihub.middleware.rate_limit_dependencies import rate_limit_user
from aihub.models.api.user_response import CheckoutResponse, MeResponse
from aihub.models.domain.user_domain import CurrentUser
from aihub.services.billing_service import build_checkout_url
from aihub.services.user_service import get_user_account

router = APIRouter()
logger = get_logger(__name__)


@router.get("/me", response_model=MeResponse)
async def me(
    user: CurrentUser = Depends(get_current_user),
    _rate: None = Depends(rate_limit_user),
):
    try:
        account = await get_user_account(user)
    except DatabaseError as e:
        logger.error("Failed to load user account", user_id=user.id, error=str(e))
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to load account"
        ) from e

    return MeResponse(user_id=account.id, email=account.email or user.email, credits=account.credits)


@router.post("/billing/checkout", response_model=CheckoutResponse, tags=["billing"])
async def create_checkout(
    user: CurrentUser = Depends(get_current_user),
    _rate: None = Depends(rate_limit_user),
):
    """Stripe payment link tagged with the caller's id so the webhook can credit them."""
    return CheckoutResponse(url=build_checkout_url(user.id, user.email))
