"""
Organizations models - the billing unit.
"""

from datetime import timedelta

from django.conf import settings
from django.db import models
from django.utils import timezone

from apps.core.models import TimestampedModel


class Organization(TimestampedModel):
    """
    An organization owns one subscription and one document usage counter.

    Subscription fields are written only by apps.billing.services, from an
    authenticated checkout or a verified Stripe webhook.
    """

    class Tier(models.TextChoices):
        TRIAL = "trial", "Trial"
        BASIC = "basic", "Basic"
        PRO = "pro", "Pro"
        # Reserved for future plans, never assigned today
        SOLO = "solo", "Solo"
        PROFESSIONAL = "professional", "Professional"
        PRACTICE = "practice", "Practice"

    class Status(models.TextChoices):
        ACTIVE = "active", "Active"
        CANCELLED = "cancelled", "Cancelled"
        PAST_DUE = "past_due", "Past Due"
        TRIALING = "trialing", "Trialing"

    name = models.CharField(max_length=255)
    slug = models.SlugField(
        max_length=255,
        unique=True,
        help_text="URL-safe identifier, e.g. 'smith-family-law'",
    )

    subscription_tier = models.CharField(
        max_length=20,
        choices=Tier.choices,
        default=Tier.TRIAL,
    )
    subscription_status = models.CharField(
        max_length=20,
        choices=Status.choices,
        default=Status.TRIALING,
        db_index=True,
    )

    # Stripe integration (populated on first checkout)
    stripe_customer_id = models.CharField(
        max_length=255,
        null=True,
        blank=True,
        unique=True,
        help_text="Stripe customer ID, e.g. 'cus_xxx'",
    )
    stripe_subscription_id = models.CharField(
        max_length=255,
        null=True,
        blank=True,
        db_index=True,
        help_text="Stripe subscription ID, e.g. 'sub_xxx'",
    )

    documents_used = models.PositiveIntegerField(
        default=0,
        help_text="Documents generated in the current billing period",
    )
    trial_ends_at = models.DateTimeField(null=True, blank=True)
    billing_event_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="Creation time of the newest Stripe event applied to this organization",
    )

    class Meta:
        ordering = ["-created_at"]

    def __str__(self) -> str:
        return self.name

    @property
    def is_subscription_active(self) -> bool:
        """Check if the subscription is in a usable state."""
        return self.subscription_status in (self.Status.ACTIVE, self.Status.TRIALING)

    @property
    def documents_limit(self) -> int:
        from apps.billing.tiers import get_document_limit

        return get_document_limit(self.subscription_tier)

    @property
    def documents_remaining(self) -> int | None:
        """Documents left this period, or None when the tier is unlimited."""
        from apps.billing.tiers import UNLIMITED

        limit = self.documents_limit
        if limit == UNLIMITED:
            return None
        return max(limit - self.documents_used, 0)

    def start_trial(self) -> None:
        """Put a new organization on the trial tier."""
        self.subscription_tier = self.Tier.TRIAL
        self.subscription_status = self.Status.TRIALING
        self.documents_used = 0
        self.trial_ends_at = timezone.now() + timedelta(days=settings.TRIAL_PERIOD_DAYS)
