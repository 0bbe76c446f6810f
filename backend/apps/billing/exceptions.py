"""
Exceptions for billing app.

Services raise these; API views and the webhook view translate them
into HTTP responses.
"""


class BillingError(Exception):
    """Base exception for billing errors."""

    pass


class InvalidTierError(BillingError):
    """Requested tier cannot be purchased."""

    pass


class ConfigurationError(BillingError):
    """Deployment is missing billing configuration (price IDs, secrets)."""

    pass


class AuthenticityError(BillingError):
    """Webhook signature is missing or does not match the payload."""

    pass


class SubscriptionInactiveError(BillingError):
    """Organization's subscription is cancelled or past due."""

    pass


class QuotaExceededError(BillingError):
    """Organization has used every document its tier allows this period."""

    def __init__(self, used: int, limit: int, tier: str):
        super().__init__(
            f"You've reached your document limit ({limit} documents). "
            "Please upgrade your plan to continue."
        )
        self.used = used
        self.limit = limit
        self.tier = tier
