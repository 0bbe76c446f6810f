"""
Stripe webhook handler.

Handles incoming webhooks from Stripe for checkout, subscription and
invoice events. This is a separate view (not Django Ninja) for raw request
handling needed to verify Stripe signatures.
"""

import json
from typing import Any

import stripe
from django.http import HttpRequest, JsonResponse
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_POST

from apps.billing.exceptions import AuthenticityError, ConfigurationError
from apps.billing.services import process_stripe_event
from apps.billing.stripe_client import get_stripe
from apps.core.logging import get_logger
from config.settings.base import settings

logger = get_logger(__name__)


def verify_stripe_event(payload: bytes, sig_header: str | None) -> dict[str, Any]:
    """
    Verify a webhook delivery and decode its event.

    Returns the event as a plain dict.

    Raises:
        AuthenticityError: Signature missing, invalid, or payload undecodable
        ConfigurationError: STRIPE_WEBHOOK_SECRET is not set
    """
    if not sig_header:
        raise AuthenticityError("No signature")

    if not settings.STRIPE_WEBHOOK_SECRET:
        raise ConfigurationError("Stripe webhook secret not configured")

    get_stripe()  # Ensure Stripe is configured
    try:
        stripe.Webhook.construct_event(payload, sig_header, settings.STRIPE_WEBHOOK_SECRET)
    except ValueError as e:
        raise AuthenticityError(f"Invalid payload: {e}") from e
    except stripe.SignatureVerificationError as e:
        raise AuthenticityError("Invalid signature") from e

    # Signature covers these exact bytes, so decoding them is safe
    return json.loads(payload)


@csrf_exempt
@require_POST
def stripe_webhook(request: HttpRequest) -> JsonResponse:
    """
    Handle Stripe webhook events.

    Verifies the signature and applies the event. Any non-2xx response
    makes Stripe redeliver with exponential backoff.
    """
    try:
        event = verify_stripe_event(request.body, request.headers.get("Stripe-Signature"))
    except AuthenticityError as e:
        logger.warning("stripe_webhook_rejected", reason=str(e))
        return JsonResponse({"error": "Invalid signature"}, status=400)
    except ConfigurationError:
        logger.error("stripe_webhook_secret_not_configured")
        return JsonResponse({"error": "Webhook not configured"}, status=500)

    logger.info("stripe_webhook_received", event_id=event.get("id"), event_type=event.get("type"))

    try:
        process_stripe_event(event)
    except Exception:
        logger.exception("stripe_webhook_handler_error", event_id=event.get("id"))
        return JsonResponse({"error": "Webhook processing failed"}, status=400)

    return JsonResponse({"received": True})
