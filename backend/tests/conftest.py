"""
Shared pytest fixtures for all tests.

Factories
---------
Import factories directly from their modules:

    from tests.accounts.factories import UserFactory, OrganizationFactory, UserProfileFactory

Example usage:

    @pytest.mark.django_db
    def test_something():
        profile = UserProfileFactory.create()
        org = profile.organization
"""

from typing import Any, cast

import pytest
from django.test import Client, RequestFactory
from django.test.client import WSGIRequest  # type: ignore[attr-defined]

from apps.core.auth import AuthContext
from apps.core.types import AuthenticatedHttpRequest


def make_request_with_auth(request: "WSGIRequest", auth: AuthContext) -> AuthenticatedHttpRequest:
    """
    Set auth on a request and return it typed as AuthenticatedHttpRequest.

    Example:
        request = request_factory.get("/api/v1/billing/subscription")
        request = make_request_with_auth(request, AuthContext(user=user))
    """
    request.auth = auth  # type: ignore[attr-defined]
    return cast(AuthenticatedHttpRequest, request)


def create_authenticated_request(
    request_factory: RequestFactory,
    method: str,
    path: str,
    org: Any = None,
    with_profile: bool = True,
) -> AuthenticatedHttpRequest:
    """
    Helper to create an authenticated request with user/profile/org attached.

    Args:
        request_factory: Django RequestFactory instance
        method: HTTP method (get, post, ...)
        path: Request path
        org: Optional Organization instance (created if None)
        with_profile: If False, the user has no organization profile

    Returns:
        Request object with request.auth set
    """
    from tests.accounts.factories import UserFactory, UserProfileFactory

    method_func = getattr(request_factory, method.lower())
    request = method_func(path)

    if not with_profile:
        return make_request_with_auth(request, AuthContext(user=UserFactory.create()))

    kwargs = {"organization": org} if org is not None else {}
    profile = UserProfileFactory.create(**kwargs)

    return make_request_with_auth(
        request,
        AuthContext(user=profile.user, profile=profile, organization=profile.organization),
    )


@pytest.fixture
def request_factory() -> RequestFactory:
    """
    Django request factory for unit testing views.

    Use this to call Django Ninja endpoint functions directly without
    going through the full HTTP stack.
    """
    return RequestFactory()


@pytest.fixture
def api_client() -> Client:
    """
    Django test client for full HTTP request/response cycle tests.

    Example:
        def test_api_returns_200(api_client):
            response = api_client.get("/api/v1/health")
            assert response.status_code == 200
    """
    return Client()


@pytest.fixture
def profile(db):
    """Create a user with a profile in a fresh trial organization."""
    from tests.accounts.factories import UserProfileFactory

    return UserProfileFactory.create()


@pytest.fixture
def organization(profile):
    """Organization owned by the `profile` fixture."""
    return profile.organization
