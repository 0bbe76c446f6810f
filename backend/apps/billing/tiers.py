"""
Subscription tier definitions.

Prices and quotas are static; Stripe price IDs come from the environment
so each deployment can point at its own Stripe account.
"""

from dataclasses import dataclass, field

from apps.billing.exceptions import ConfigurationError, InvalidTierError
from config.settings.base import settings

UNLIMITED = -1

PURCHASABLE_TIERS = ("basic", "pro")


@dataclass(frozen=True, slots=True)
class TierConfig:
    """Price, quota and display metadata for one tier."""

    name: str
    price_cents: int
    documents_limit: int
    price_setting: str | None = None
    features: tuple[str, ...] = field(default_factory=tuple)

    @property
    def price_id(self) -> str | None:
        if self.price_setting is None:
            return None
        return getattr(settings, self.price_setting) or None


SUBSCRIPTION_TIERS: dict[str, TierConfig] = {
    "trial": TierConfig(
        name="Trial",
        price_cents=0,
        documents_limit=3,
        features=(
            "3 free documents",
            "7 day access",
            "All document templates",
            "AI-powered generation",
            "Download in DOCX format",
        ),
    ),
    "basic": TierConfig(
        name="Basic",
        price_cents=2900,
        documents_limit=10,
        price_setting="STRIPE_BASIC_PRICE_ID",
        features=(
            "10 documents per month",
            "All document templates",
            "AI-powered generation",
            "Download in DOCX & PDF",
            "Email support",
            "Priority processing",
        ),
    ),
    "pro": TierConfig(
        name="Pro",
        price_cents=9900,
        documents_limit=UNLIMITED,
        price_setting="STRIPE_PRO_PRICE_ID",
        features=(
            "Unlimited documents",
            "All document templates",
            "Priority AI generation",
            "Download in DOCX & PDF",
            "Attorney review option",
            "Priority email support",
        ),
    ),
}


def get_tier_config(tier: str) -> TierConfig:
    """Get a tier definition, defaulting to trial for unknown tiers."""
    return SUBSCRIPTION_TIERS.get(tier, SUBSCRIPTION_TIERS["trial"])


def get_document_limit(tier: str) -> int:
    return get_tier_config(tier).documents_limit


def validate_purchasable_tier(tier: object) -> str:
    """
    Ensure a tier can be bought through checkout.

    Raises:
        InvalidTierError: For anything other than exactly 'basic' or 'pro'
    """
    if not isinstance(tier, str) or tier not in PURCHASABLE_TIERS:
        raise InvalidTierError("Invalid tier")
    return tier


def get_price_id(tier: str) -> str:
    """
    Get the Stripe price ID for a purchasable tier.

    Raises:
        InvalidTierError: If the tier is not purchasable
        ConfigurationError: If the deployment has no price ID for the tier
    """
    tier = validate_purchasable_tier(tier)
    price_id = SUBSCRIPTION_TIERS[tier].price_id
    if not price_id:
        raise ConfigurationError("Price ID not configured for this tier")
    return price_id


def tier_for_price_id(price_id: str | None) -> str | None:
    """Reverse lookup of a purchasable tier by its configured price ID."""
    if not price_id:
        return None
    for tier in PURCHASABLE_TIERS:
        if SUBSCRIPTION_TIERS[tier].price_id == price_id:
            return tier
    return None


def format_price(price_cents: int) -> str:
    """Format a USD amount in cents, e.g. 2900 -> '$29.00'."""
    return f"${price_cents / 100:,.2f}"
