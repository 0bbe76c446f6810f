"""
Webhook utilities for exactly-once processing.

Callers mark the event inside the same transaction that applies it, so a
failed handler rolls the marker back and the provider's redelivery is
processed normally.
"""

from django.db import IntegrityError, transaction

from apps.core.logging import get_logger
from apps.core.models import ProcessedWebhook

logger = get_logger(__name__)


def is_webhook_processed(source: str, event_id: str) -> bool:
    """
    Check if a webhook event has already been processed.

    Args:
        source: Webhook provider (e.g., 'stripe')
        event_id: Unique event identifier from the provider
    """
    return ProcessedWebhook.objects.filter(source=source, event_id=event_id).exists()


def mark_webhook_processed(source: str, event_id: str) -> bool:
    """
    Mark a webhook event as processed.

    Relies on the unique constraint rather than a read-then-write check, so
    two concurrent deliveries of the same event cannot both succeed.

    Returns:
        True if marked successfully, False if already processed
    """
    try:
        # Savepoint keeps an outer transaction usable after the IntegrityError
        with transaction.atomic():
            ProcessedWebhook.objects.create(source=source, event_id=event_id)
        return True
    except IntegrityError:
        logger.debug(
            "webhook_already_processed",
            source=source,
            event_id=event_id,
        )
        return False
