"""
Tests for accounts models.
"""

import pytest
from django.db import IntegrityError

from apps.accounts.models import User, UserProfile

from .factories import OrganizationFactory, UserFactory, UserProfileFactory


@pytest.mark.django_db
class TestUserModel:
    """Tests for User model and manager."""

    def test_create_user_normalizes_email(self) -> None:
        """Should lowercase the email domain."""
        user = User.objects.create_user(email="Jane@EXAMPLE.com")

        assert user.email == "Jane@example.com"
        assert not user.has_usable_password()

    def test_create_user_requires_email(self) -> None:
        """Should reject an empty email."""
        with pytest.raises(ValueError, match="Email is required"):
            User.objects.create_user(email="")

    def test_create_superuser(self) -> None:
        """Should create a staff superuser with a usable password."""
        user = User.objects.create_superuser(email="admin@example.com", password="s3cret-pass")

        assert user.is_staff is True
        assert user.is_superuser is True
        assert user.check_password("s3cret-pass")

    def test_str_returns_email(self) -> None:
        user = UserFactory.create(email="someone@example.com")

        assert str(user) == "someone@example.com"


@pytest.mark.django_db
class TestUserProfileModel:
    """Tests for UserProfile model."""

    def test_str_representation(self) -> None:
        """Should include email, organization and role."""
        org = OrganizationFactory.create(name="Smith Family Law")
        profile = UserProfileFactory.create(
            user=UserFactory.create(email="jane@example.com"), organization=org
        )

        assert str(profile) == "jane@example.com @ Smith Family Law (owner)"

    def test_one_profile_per_user(self) -> None:
        """Should enforce a single profile per user."""
        profile = UserProfileFactory.create()

        with pytest.raises(IntegrityError):
            UserProfile.objects.create(user=profile.user, organization=OrganizationFactory.create())

    def test_reverse_accessor(self) -> None:
        """Should expose the profile as user.profile."""
        profile = UserProfileFactory.create()

        assert profile.user.profile == profile
