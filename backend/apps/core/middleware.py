"""
Core middleware.
"""

import uuid
from collections.abc import Callable

from django.http import HttpRequest, HttpResponse

from apps.core.auth import AuthContext
from apps.core.logging import bind_contextvars, clear_contextvars


def build_auth_context(request: HttpRequest) -> AuthContext:
    """
    Resolve the session user and their organization profile.

    Sign-in itself happens in the hosted auth service; by the time a request
    reaches us Django's AuthenticationMiddleware has set request.user.
    """
    user = getattr(request, "user", None)
    if user is None or not user.is_authenticated:
        return AuthContext()

    from apps.accounts.models import UserProfile

    profile = UserProfile.objects.select_related("organization").filter(user=user).first()
    if profile is None:
        return AuthContext(user=user)

    return AuthContext(user=user, profile=profile, organization=profile.organization)


class AuthContextMiddleware:
    """
    Attaches an AuthContext as request.auth and binds log context.

    Must run after django.contrib.auth's AuthenticationMiddleware.
    """

    def __init__(self, get_response: Callable[[HttpRequest], HttpResponse]) -> None:
        self.get_response = get_response

    def __call__(self, request: HttpRequest) -> HttpResponse:
        clear_contextvars()
        bind_contextvars(
            correlation_id=request.headers.get("X-Request-ID") or str(uuid.uuid4()),
            **{"http.method": request.method, "http.url_details.path": request.path},
        )

        auth = build_auth_context(request)
        request.auth = auth  # type: ignore[attr-defined]

        if auth.user is not None:
            bind_contextvars(**{"usr.id": str(auth.user.pk)})
        if auth.organization is not None:
            bind_contextvars(**{"organization.id": str(auth.organization.pk)})

        try:
            return self.get_response(request)
        finally:
            clear_contextvars()
