"""
Billing API schemas - request/response types for billing endpoints.
"""

from ninja import Schema
from pydantic import Field


class CheckoutSessionRequest(Schema):
    """Request to create a Stripe Checkout session."""

    # Validated by the service so unsupported tiers get a 400, not a 422
    tier: str


class CheckoutSessionResponse(Schema):
    """Checkout session to redirect the browser to."""

    session_id: str = Field(..., alias="sessionId")
    url: str

    model_config = {"populate_by_name": True}


class SubscriptionResponse(Schema):
    """Current subscription and usage for the caller's organization."""

    tier: str  # 'trial', 'basic', 'pro'
    status: str  # 'active', 'cancelled', 'past_due', 'trialing'
    documents_used: int
    documents_limit: int  # -1 means unlimited
    documents_remaining: int | None  # None when unlimited
    can_generate: bool
    trial_ends_at: str | None  # ISO timestamp
