"""
Account services - local user and organization provisioning.

Called after the hosted auth service has signed a user up.
"""

from django.db import IntegrityError, transaction
from django.utils.text import slugify

from apps.accounts.models import User, UserProfile
from apps.core.logging import get_logger
from apps.organizations.models import Organization

logger = get_logger(__name__)


def get_or_create_user(email: str, name: str = "") -> User:
    """
    Get or create a User by email.

    Safe under concurrent signups for the same email.
    """
    try:
        return User.objects.get(email=email)
    except User.DoesNotExist:
        try:
            with transaction.atomic():
                return User.objects.create_user(email=email, name=name)
        except IntegrityError:
            # Concurrent insert won the race, fetch the winner
            return User.objects.get(email=email)


def _unique_slug(name: str) -> str:
    base = slugify(name) or "organization"
    slug = base
    suffix = 2
    while Organization.objects.filter(slug=slug).exists():
        slug = f"{base}-{suffix}"
        suffix += 1
    return slug


def create_organization_for_user(
    user: User,
    organization_name: str,
    full_name: str = "",
) -> UserProfile:
    """
    Create a trial organization owned by the user.

    Returns the existing profile if the user already belongs to an
    organization; a user has exactly one.
    """
    existing = UserProfile.objects.select_related("organization").filter(user=user).first()
    if existing is not None:
        return existing

    with transaction.atomic():
        org = Organization(name=organization_name, slug=_unique_slug(organization_name))
        org.start_trial()
        org.save()

        profile = UserProfile.objects.create(
            user=user,
            organization=org,
            full_name=full_name or user.name,
            role=UserProfile.Role.OWNER,
        )

    logger.info("organization_created", org_id=org.id, user_id=user.id)
    return profile
