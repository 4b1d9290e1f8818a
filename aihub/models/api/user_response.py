# aihub/models/api/user_response.py
from pydantic import BaseModel, Field


class MeResponse(BaseModel):
    """API response for /me: identity plus the live credit balance."""

    user_id: str
    email: str | None = None
    credits: int = Field(..., description="Balance read from the database on this request")


class CheckoutResponse(BaseModel):
    url: str
