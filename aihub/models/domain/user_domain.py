from datetime import datetime

from pydantic import BaseModel


class CurrentUser(BaseModel):
    """Authenticated caller, derived from the Supabase access token."""

    id: str
    email: str | None = None


class UserAccount(BaseModel):
    """Row of public.users; credits is the live balance."""

    id: str
    email: str | None = None
    credits: int = 0
    stripe_customer_id: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


class Subscription(BaseModel):
    """Row of public.subscriptions, one per user."""

    user_id: str
    stripe_subscription_id: str | None = None
    plan_name: str
    credits_per_month: int
    status: str
