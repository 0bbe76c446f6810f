"""
Admin configuration for organizations app.
"""

from django.contrib import admin

from apps.organizations.models import Organization


@admin.register(Organization)
class OrganizationAdmin(admin.ModelAdmin):
    """Admin for organizations. Subscription fields are read-only: Stripe owns them."""

    list_display = [
        "id",
        "name",
        "subscription_tier",
        "subscription_status",
        "documents_used",
        "created_at",
    ]
    list_filter = ["subscription_tier", "subscription_status"]
    search_fields = ["name", "slug", "stripe_customer_id", "stripe_subscription_id"]
    readonly_fields = [
        "subscription_tier",
        "subscription_status",
        "stripe_customer_id",
        "stripe_subscription_id",
        "billing_event_at",
        "created_at",
        "updated_at",
    ]
