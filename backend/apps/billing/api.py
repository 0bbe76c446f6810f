"""
Billing API endpoints.

Handles Stripe checkout and subscription status.
"""

from ninja import Router
from ninja.errors import HttpError

from apps.billing.exceptions import ConfigurationError, InvalidTierError
from apps.billing.quota import is_generation_allowed
from apps.billing.schemas import (
    CheckoutSessionRequest,
    CheckoutSessionResponse,
    SubscriptionResponse,
)
from apps.billing.services import create_checkout_session
from apps.core.logging import get_logger
from apps.core.schemas import ErrorResponse
from apps.core.security import SessionAuthContext
from apps.core.types import AuthenticatedHttpRequest

logger = get_logger(__name__)

router = Router(tags=["billing"])
session_auth = SessionAuthContext()


@router.post(
    "/checkout",
    response={
        200: CheckoutSessionResponse,
        400: ErrorResponse,
        401: ErrorResponse,
        403: ErrorResponse,
        404: ErrorResponse,
        500: ErrorResponse,
    },
    by_alias=True,
    auth=session_auth,
    operation_id="createCheckoutSession",
    summary="Create Stripe Checkout session",
)
def create_checkout(
    request: AuthenticatedHttpRequest, payload: CheckoutSessionRequest
) -> CheckoutSessionResponse:
    """
    Create a Stripe Checkout session for the basic or pro tier.

    Returns the session ID and the URL to redirect the user to.
    """
    user, profile, org = request.auth.require_organization()

    try:
        session = create_checkout_session(org=org, tier=payload.tier, user=user)
    except InvalidTierError as e:
        raise HttpError(400, str(e)) from None
    except ConfigurationError as e:
        logger.error("checkout_configuration_error", tier=payload.tier, error=str(e))
        raise HttpError(500, str(e)) from None
    except Exception:
        logger.exception("checkout_session_creation_failed", org_id=org.id)
        raise HttpError(500, "Failed to create checkout session") from None

    return CheckoutSessionResponse(session_id=session.session_id, url=session.url)


@router.get(
    "/subscription",
    response={200: SubscriptionResponse, 401: ErrorResponse, 404: ErrorResponse},
    auth=session_auth,
    operation_id="getSubscription",
    summary="Get current subscription and usage",
)
def get_subscription(request: AuthenticatedHttpRequest) -> SubscriptionResponse:
    """
    Get the organization's tier, status and document usage.
    """
    _, _, org = request.auth.require_organization()

    return SubscriptionResponse(
        tier=org.subscription_tier,
        status=org.subscription_status,
        documents_used=org.documents_used,
        documents_limit=org.documents_limit,
        documents_remaining=org.documents_remaining,
        can_generate=is_generation_allowed(org),
        trial_ends_at=org.trial_ends_at.isoformat() if org.trial_ends_at else None,
    )
