"""
Document quota enforcement.

can_generate_document is the pure rule. The other helpers apply it to an
organization row and are called by the document generation endpoint.
"""

from django.db.models import F

from apps.billing.exceptions import QuotaExceededError, SubscriptionInactiveError
from apps.billing.tiers import UNLIMITED, get_document_limit
from apps.core.logging import get_logger
from apps.organizations.models import Organization

logger = get_logger(__name__)

_BLOCKED_STATUSES = (Organization.Status.CANCELLED, Organization.Status.PAST_DUE)


def can_generate_document(tier: str, documents_used: int) -> bool:
    """Return True if an organization on `tier` may generate another document."""
    limit = get_document_limit(tier)
    if limit == UNLIMITED:
        return True
    return documents_used < limit


def check_document_quota(org: Organization) -> None:
    """
    Raise if the organization may not generate a document right now.

    Raises:
        SubscriptionInactiveError: Subscription is cancelled or past due
        QuotaExceededError: Tier limit reached for this billing period
    """
    if org.subscription_status in _BLOCKED_STATUSES:
        raise SubscriptionInactiveError(
            "Your subscription is not active. "
            "Please update your payment method or resubscribe."
        )

    if not can_generate_document(org.subscription_tier, org.documents_used):
        raise QuotaExceededError(
            used=org.documents_used,
            limit=get_document_limit(org.subscription_tier),
            tier=org.subscription_tier,
        )


def record_document_generated(org: Organization) -> int:
    """
    Count one generated document against the organization's quota.

    The limit is re-checked in the UPDATE itself, so concurrent generations
    cannot push documents_used past the cap. If a webhook changes the tier
    between the read and the write, the update is retried once with the
    new tier's limit.

    Returns:
        The new documents_used value

    Raises:
        QuotaExceededError: If the guarded update matched no row
    """
    for _ in range(2):
        tier = org.subscription_tier
        limit = get_document_limit(tier)

        rows = Organization.objects.filter(id=org.id, subscription_tier=tier)
        if limit != UNLIMITED:
            rows = rows.filter(documents_used__lt=limit)

        updated = rows.update(documents_used=F("documents_used") + 1)
        org.refresh_from_db(fields=["documents_used", "subscription_tier"])

        if updated:
            return org.documents_used
        if org.subscription_tier == tier:
            break

    limit = get_document_limit(org.subscription_tier)
    logger.warning(
        "document_quota_exceeded",
        org_id=org.id,
        tier=org.subscription_tier,
        documents_used=org.documents_used,
        limit=limit,
    )
    raise QuotaExceededError(used=org.documents_used, limit=limit, tier=org.subscription_tier)


def is_generation_allowed(org: Organization) -> bool:
    """Non-raising form of check_document_quota."""
    try:
        check_document_quota(org)
    except (SubscriptionInactiveError, QuotaExceededError):
        return False
    return True
