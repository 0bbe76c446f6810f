"""
Billing services - Stripe integration logic.

All Stripe API calls are isolated here for testability.
External calls must NOT be inside database transactions.

Organization subscription fields are only written from this module. Every
webhook transition is one conditional UPDATE that also records the event's
creation time, so an event older than the last applied one matches no row
and is discarded instead of overwriting newer state.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from django.db import transaction
from django.db.models import Q
from django.utils import timezone as django_timezone
from stripe import IdempotencyError, StripeError

from apps.accounts.models import User
from apps.billing.exceptions import InvalidTierError
from apps.billing.stripe_client import get_stripe
from apps.billing.tiers import (
    PURCHASABLE_TIERS,
    get_price_id,
    tier_for_price_id,
    validate_purchasable_tier,
)
from apps.core.logging import get_logger
from apps.core.webhooks import is_webhook_processed, mark_webhook_processed
from apps.organizations.models import Organization
from config.settings.base import settings

logger = get_logger(__name__)

WEBHOOK_SOURCE = "stripe"

# Stripe subscription statuses -> Organization.Status
STRIPE_STATUS_MAP = {
    "active": Organization.Status.ACTIVE,
    "trialing": Organization.Status.TRIALING,
    "past_due": Organization.Status.PAST_DUE,
    "unpaid": Organization.Status.PAST_DUE,
    "incomplete": Organization.Status.PAST_DUE,
    "paused": Organization.Status.PAST_DUE,
    "canceled": Organization.Status.CANCELLED,
    "incomplete_expired": Organization.Status.CANCELLED,
}


@dataclass(frozen=True)
class CheckoutSession:
    """Hosted checkout the browser should be redirected to."""

    session_id: str
    url: str


def _field(obj: Any, *path: str | int) -> Any:
    """Read a nested field from a Stripe object or plain dict, None if absent."""
    for key in path:
        if obj is None:
            return None
        try:
            obj = obj[key]
        except (KeyError, IndexError, TypeError):
            return None
    return obj


def _metadata_org_id(stripe_object: Any) -> int | None:
    raw = _field(stripe_object, "metadata", "organization_id")
    if not raw:
        return None
    try:
        return int(raw)
    except (TypeError, ValueError):
        logger.warning("stripe_metadata_invalid_organization_id", organization_id=raw)
        return None


def _reference_id(ref: Any) -> str | None:
    """Stripe references are either an ID string or an expanded object."""
    if ref is None or isinstance(ref, str):
        return ref
    return _field(ref, "id")


def _event_time(event: Any) -> datetime:
    created = _field(event, "created")
    if created is None:
        return django_timezone.now()
    return datetime.fromtimestamp(created, tz=timezone.utc)


# --- Checkout ---


def get_or_create_stripe_customer(org: Organization, user: User) -> str:
    """
    Get or create the Stripe Customer for the organization.

    At most one customer is ever stored per organization: creation uses an
    idempotency key derived from the organization, and the ID is persisted
    with a compare-and-swap that only succeeds while the column is empty.

    Returns the Stripe customer ID.
    """
    if org.stripe_customer_id:
        return org.stripe_customer_id

    stripe = get_stripe()

    try:
        customer = stripe.Customer.create(
            email=user.email,
            name=org.name,
            metadata={"organization_id": str(org.id)},
            idempotency_key=f"organization-{org.id}-customer",
        )
    except IdempotencyError:
        # Another request created the customer with different parameters
        org.refresh_from_db(fields=["stripe_customer_id"])
        if org.stripe_customer_id:
            return org.stripe_customer_id
        raise

    claimed = Organization.objects.filter(id=org.id, stripe_customer_id__isnull=True).update(
        stripe_customer_id=customer.id,
        updated_at=django_timezone.now(),
    )

    if not claimed:
        org.refresh_from_db(fields=["stripe_customer_id"])
        logger.warning(
            "stripe_customer_race_lost",
            org_id=org.id,
            customer_id=org.stripe_customer_id,
            discarded_customer_id=customer.id,
        )
        return org.stripe_customer_id

    org.stripe_customer_id = customer.id
    logger.info("stripe_customer_created", org_id=org.id, customer_id=customer.id)
    return customer.id


def create_checkout_session(org: Organization, tier: str, user: User) -> CheckoutSession:
    """
    Create a Stripe Checkout Session for a new subscription.

    The organization ID and tier travel as metadata on both the session and
    the subscription; webhook handlers use them to find the organization.

    Raises:
        InvalidTierError: Tier is not 'basic' or 'pro'
        ConfigurationError: Tier has no Stripe price configured
    """
    # Validate before touching Stripe or the database
    price_id = get_price_id(tier)

    customer_id = get_or_create_stripe_customer(org, user)

    stripe = get_stripe()
    metadata = {"organization_id": str(org.id), "tier": tier}

    session = stripe.checkout.Session.create(
        customer=customer_id,
        mode="subscription",
        line_items=[
            {
                "price": price_id,
                "quantity": 1,
            }
        ],
        success_url=f"{settings.APP_URL}/billing?success=true&session_id={{CHECKOUT_SESSION_ID}}",
        cancel_url=f"{settings.APP_URL}/billing?canceled=true",
        metadata=metadata,
        subscription_data={"metadata": metadata},
        allow_promotion_codes=True,
    )

    logger.info("checkout_session_created", session_id=session.id, org_id=org.id, tier=tier)
    return CheckoutSession(session_id=session.id, url=session.url)


# --- Organization updates ---


def _update_organization(
    org_id: int,
    event_at: datetime | None,
    subscription_id: str | None = None,
    require_current_subscription: bool = False,
    **fields: Any,
) -> bool:
    """
    Apply subscription fields to one organization in a single UPDATE.

    Args:
        event_at: Creation time of the triggering event. When given, the row
            is only updated if no newer event has been applied.
        subscription_id: When given, the row is only updated if this is the
            organization's current subscription, or (unless
            require_current_subscription) it has none.

    Returns:
        True if the row was updated
    """
    rows = Organization.objects.filter(id=org_id)

    if event_at is not None:
        rows = rows.filter(Q(billing_event_at__isnull=True) | Q(billing_event_at__lte=event_at))
        fields["billing_event_at"] = event_at

    if subscription_id is not None:
        if require_current_subscription:
            rows = rows.filter(stripe_subscription_id=subscription_id)
        else:
            rows = rows.filter(
                Q(stripe_subscription_id__isnull=True) | Q(stripe_subscription_id=subscription_id)
            )

    # QuerySet.update() bypasses auto_now
    fields["updated_at"] = django_timezone.now()
    return rows.update(**fields) > 0


def _log_skipped_event(
    event_type: str,
    event_id: str,
    org_id: int,
    event_at: datetime,
    subscription_id: str | None,
) -> None:
    """Explain why a transition matched no row."""
    org = Organization.objects.filter(id=org_id).first()
    if org is None:
        logger.warning(
            "stripe_event_organization_not_found",
            event_type=event_type,
            event_id=event_id,
            org_id=org_id,
        )
    elif org.billing_event_at is not None and org.billing_event_at > event_at:
        logger.warning(
            "stripe_event_stale",
            event_type=event_type,
            event_id=event_id,
            org_id=org_id,
            event_at=event_at.isoformat(),
            last_applied_at=org.billing_event_at.isoformat(),
        )
    else:
        logger.warning(
            "stripe_event_subscription_superseded",
            event_type=event_type,
            event_id=event_id,
            org_id=org_id,
            subscription_id=subscription_id,
            current_subscription_id=org.stripe_subscription_id,
        )


def _apply_event(
    event_type: str,
    event_id: str,
    org_id: int,
    event_at: datetime,
    subscription_id: str | None = None,
    require_current_subscription: bool = False,
    **fields: Any,
) -> bool:
    """
    Record the event as processed and apply its transition atomically.

    If the update raises, the processed marker rolls back with it and
    Stripe's redelivery is handled normally.
    """
    with transaction.atomic():
        if not mark_webhook_processed(WEBHOOK_SOURCE, event_id):
            logger.info("stripe_webhook_duplicate", event_id=event_id, event_type=event_type)
            return False

        applied = _update_organization(
            org_id,
            event_at,
            subscription_id=subscription_id,
            require_current_subscription=require_current_subscription,
            **fields,
        )

    if applied:
        logger.info("stripe_event_applied", event_type=event_type, event_id=event_id, org_id=org_id)
    else:
        _log_skipped_event(event_type, event_id, org_id, event_at, subscription_id)
    return applied


def _subscription_tier(stripe_subscription: Any) -> str:
    """
    Tier for a Stripe subscription.

    Metadata wins; otherwise the tier is derived from the subscribed price so
    a routine update without metadata does not downgrade a paying customer.
    """
    tier = _field(stripe_subscription, "metadata", "tier")
    if tier in PURCHASABLE_TIERS:
        return tier

    price_id = _field(stripe_subscription, "items", "data", 0, "price", "id")
    return tier_for_price_id(price_id) or Organization.Tier.TRIAL


# --- Webhook handlers ---


def handle_checkout_completed(session: Any, event_id: str, event_at: datetime) -> bool:
    """
    Handle checkout.session.completed.

    Activates the purchased tier and starts a fresh usage period.
    """
    org_id = _metadata_org_id(session)
    tier = _field(session, "metadata", "tier")

    if org_id is None or not tier:
        logger.warning("stripe_checkout_missing_metadata", event_id=event_id)
        return False

    try:
        tier = validate_purchasable_tier(tier)
    except InvalidTierError:
        logger.warning("stripe_checkout_invalid_tier", event_id=event_id, org_id=org_id, tier=tier)
        return False

    return _apply_event(
        "checkout.session.completed",
        event_id,
        org_id,
        event_at,
        subscription_tier=tier,
        subscription_status=Organization.Status.ACTIVE,
        stripe_subscription_id=_reference_id(_field(session, "subscription")),
        documents_used=0,
    )


def handle_subscription_updated(stripe_subscription: Any, event_id: str, event_at: datetime) -> bool:
    """
    Handle customer.subscription.updated.

    Mirrors the provider's status and the subscription's tier, and links
    the subscription to an organization that has none stored yet.
    """
    org_id = _metadata_org_id(stripe_subscription)
    if org_id is None:
        logger.warning("stripe_subscription_missing_organization", event_id=event_id)
        return False

    provider_status = _field(stripe_subscription, "status")
    status = STRIPE_STATUS_MAP.get(provider_status)
    if status is None:
        logger.warning(
            "stripe_subscription_unknown_status",
            event_id=event_id,
            org_id=org_id,
            status=provider_status,
        )
        return False

    subscription_id = _field(stripe_subscription, "id")
    fields: dict[str, Any] = {
        "subscription_status": status,
        "subscription_tier": _subscription_tier(stripe_subscription),
    }
    if status != Organization.Status.CANCELLED:
        # Checkout completion may arrive after this and be discarded as stale
        fields["stripe_subscription_id"] = subscription_id

    return _apply_event(
        "customer.subscription.updated",
        event_id,
        org_id,
        event_at,
        subscription_id=subscription_id,
        **fields,
    )


def handle_subscription_deleted(stripe_subscription: Any, event_id: str, event_at: datetime) -> bool:
    """
    Handle customer.subscription.deleted.

    Reverts the organization to the trial tier.
    """
    org_id = _metadata_org_id(stripe_subscription)
    if org_id is None:
        logger.warning("stripe_subscription_missing_organization", event_id=event_id)
        return False

    return _apply_event(
        "customer.subscription.deleted",
        event_id,
        org_id,
        event_at,
        subscription_id=_field(stripe_subscription, "id"),
        subscription_tier=Organization.Tier.TRIAL,
        subscription_status=Organization.Status.CANCELLED,
        stripe_subscription_id=None,
    )


def _invoice_subscription_id(invoice: Any) -> str | None:
    # Newer API versions nest the reference under parent.subscription_details
    ref = _field(invoice, "subscription") or _field(
        invoice, "parent", "subscription_details", "subscription"
    )
    return _reference_id(ref)


def _resolve_subscription_organization(subscription_id: str) -> int | None:
    """
    Find the organization whose current subscription this is.

    Only the current subscription may change an organization, so a miss
    (including an invoice that beats checkout completion) is final.
    """
    return (
        Organization.objects.filter(stripe_subscription_id=subscription_id)
        .values_list("id", flat=True)
        .first()
    )


def _handle_invoice(invoice: Any, event_type: str, event_id: str, event_at: datetime, **fields: Any) -> bool:
    subscription_id = _invoice_subscription_id(invoice)
    if not subscription_id:
        logger.info("stripe_invoice_without_subscription", event_id=event_id, event_type=event_type)
        return False

    org_id = _resolve_subscription_organization(subscription_id)
    if org_id is None:
        logger.warning(
            "stripe_invoice_organization_not_found",
            event_id=event_id,
            event_type=event_type,
            subscription_id=subscription_id,
        )
        return False

    # Re-checked in the UPDATE in case the subscription changed since the lookup
    return _apply_event(
        event_type,
        event_id,
        org_id,
        event_at,
        subscription_id=subscription_id,
        require_current_subscription=True,
        **fields,
    )


def handle_invoice_payment_succeeded(invoice: Any, event_id: str, event_at: datetime) -> bool:
    """
    Handle invoice.payment_succeeded.

    A paid renewal starts a new usage period.
    """
    return _handle_invoice(
        invoice,
        "invoice.payment_succeeded",
        event_id,
        event_at,
        documents_used=0,
        subscription_status=Organization.Status.ACTIVE,
    )


def handle_invoice_payment_failed(invoice: Any, event_id: str, event_at: datetime) -> bool:
    """Handle invoice.payment_failed."""
    return _handle_invoice(
        invoice,
        "invoice.payment_failed",
        event_id,
        event_at,
        subscription_status=Organization.Status.PAST_DUE,
    )


_EVENT_HANDLERS = {
    "checkout.session.completed": handle_checkout_completed,
    "customer.subscription.updated": handle_subscription_updated,
    "customer.subscription.deleted": handle_subscription_deleted,
    "invoice.payment_succeeded": handle_invoice_payment_succeeded,
    "invoice.payment_failed": handle_invoice_payment_failed,
}


def process_stripe_event(event: Any) -> bool:
    """
    Apply a verified Stripe event.

    Each event ID is applied at most once, and never over state written by
    a newer event. Events that cannot be linked to an organization are
    logged and acknowledged.

    Returns:
        True if the event changed an organization
    """
    event_id = _field(event, "id")
    event_type = _field(event, "type")

    handler = _EVENT_HANDLERS.get(event_type)
    if handler is None:
        logger.debug("stripe_webhook_unhandled_event", event_type=event_type)
        return False

    # Cheap early exit; the insert in _apply_event is the real guard
    if is_webhook_processed(WEBHOOK_SOURCE, event_id):
        logger.info("stripe_webhook_duplicate", event_id=event_id, event_type=event_type)
        return False

    return handler(_field(event, "data", "object"), event_id, _event_time(event))


# --- Reconciliation ---


def sync_subscription_from_stripe(org: Organization) -> bool:
    """
    Sync an organization's subscription state directly from Stripe.

    Repairs state after missed webhooks. Applies the current subscription
    unconditionally, without event ordering.

    Returns True if the organization is now active.
    """
    if not org.stripe_subscription_id:
        return org.is_subscription_active

    stripe = get_stripe()

    try:
        stripe_subscription = stripe.Subscription.retrieve(org.stripe_subscription_id)
    except StripeError as e:
        logger.error(
            "stripe_subscription_retrieve_failed",
            org_id=org.id,
            subscription_id=org.stripe_subscription_id,
            error=str(e),
        )
        raise

    status = STRIPE_STATUS_MAP.get(_field(stripe_subscription, "status"))

    if status == Organization.Status.CANCELLED:
        fields: dict[str, Any] = {
            "subscription_tier": Organization.Tier.TRIAL,
            "subscription_status": Organization.Status.CANCELLED,
            "stripe_subscription_id": None,
        }
    elif status is not None:
        fields = {
            "subscription_tier": _subscription_tier(stripe_subscription),
            "subscription_status": status,
        }
    else:
        logger.warning(
            "stripe_subscription_unknown_status",
            org_id=org.id,
            status=_field(stripe_subscription, "status"),
        )
        return org.is_subscription_active

    _update_organization(org.id, event_at=None, **fields)
    org.refresh_from_db()

    logger.info(
        "stripe_subscription_synced",
        org_id=org.id,
        tier=org.subscription_tier,
        status=org.subscription_status,
    )
    return org.is_subscription_active
