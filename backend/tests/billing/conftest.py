"""
Billing test helpers.

Webhook tests sign payloads the same way Stripe does so the real
signature verification path is exercised.
"""

import hashlib
import hmac
import json
import time
from typing import Any

import pytest

from config.settings.base import settings


def build_event(
    event_type: str,
    data_object: dict[str, Any],
    event_id: str = "evt_test_123",
    created: int = 1_700_000_000,
) -> dict[str, Any]:
    """Build a Stripe event payload."""
    return {
        "id": event_id,
        "object": "event",
        "type": event_type,
        "created": created,
        "data": {"object": data_object},
    }


def sign_payload(payload: str, secret: str | None = None, timestamp: int | None = None) -> str:
    """Build a Stripe-Signature header for a payload."""
    secret = secret if secret is not None else settings.STRIPE_WEBHOOK_SECRET
    timestamp = timestamp if timestamp is not None else int(time.time())
    signed = f"{timestamp}.{payload}".encode()
    signature = hmac.new(secret.encode(), signed, hashlib.sha256).hexdigest()
    return f"t={timestamp},v1={signature}"


@pytest.fixture
def post_signed_event(client):
    """Post an event to the webhook endpoint with a valid signature."""

    def _post(event: dict[str, Any]):
        payload = json.dumps(event)
        return client.post(
            "/webhooks/stripe/",
            data=payload,
            content_type="application/json",
            HTTP_STRIPE_SIGNATURE=sign_payload(payload),
        )

    return _post
