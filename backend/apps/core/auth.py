"""
Authentication context for request lifecycle.

Provides a typed container for authentication state that middleware
populates and endpoints consume.
"""

from dataclasses import dataclass
from typing import TYPE_CHECKING

from ninja.errors import HttpError

if TYPE_CHECKING:
    from apps.accounts.models import User, UserProfile
    from apps.organizations.models import Organization


@dataclass
class AuthContext:
    """
    Authentication context attached to requests by AuthContextMiddleware.

    Attributes:
        user: The authenticated User, or None if not authenticated
        profile: The UserProfile linking the user to an organization, or None
        organization: The Organization the user belongs to, or None
    """

    user: "User | None" = None
    profile: "UserProfile | None" = None
    organization: "Organization | None" = None

    @property
    def is_authenticated(self) -> bool:
        """Check if the request carries an authenticated user."""
        return self.user is not None

    def require_auth(self) -> "User":
        """
        Get the authenticated user or raise 401.

        Raises:
            HttpError 401: If not authenticated
        """
        if self.user is None:
            raise HttpError(401, "Unauthorized")
        return self.user

    def require_organization(self) -> tuple["User", "UserProfile", "Organization"]:
        """
        Get the user together with their organization profile.

        Returns:
            Tuple of (user, profile, organization)

        Raises:
            HttpError 401: If not authenticated
            HttpError 404: If the user has no organization profile
        """
        user = self.require_auth()
        if self.profile is None or self.organization is None:
            raise HttpError(404, "Profile not found")
        return user, self.profile, self.organization
