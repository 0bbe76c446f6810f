"""
Core models - shared base classes and webhook bookkeeping.
"""

from django.db import models


class TimestampedModel(models.Model):
    """
    Abstract base model with created_at/updated_at timestamps.
    """

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        abstract = True


class ProcessedWebhook(models.Model):
    """
    Record of a webhook event that has already been applied.

    The unique (source, event_id) pair turns redeliveries into no-ops.
    """

    source = models.CharField(max_length=50, help_text="Webhook provider, e.g. 'stripe'")
    event_id = models.CharField(max_length=255, help_text="Provider event ID, e.g. 'evt_xxx'")
    processed_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-processed_at"]
        constraints = [
            models.UniqueConstraint(
                fields=["source", "event_id"],
                name="unique_processed_webhook",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.source}:{self.event_id}"
