"""
Core security - authentication classes for API.
"""

from ninja.security import SessionAuth

from apps.core.auth import AuthContext
from apps.core.middleware import build_auth_context


class SessionAuthContext(SessionAuth):
    """
    Django session authentication for API endpoints.

    Runs Django's CSRF check on unsafe methods, since the session cookie is
    sent by the browser on cross-site requests too. On success Ninja sets
    request.auth to the caller's AuthContext.
    """

    def authenticate(self, request, key: str | None) -> AuthContext | None:
        """
        Return the AuthContext for a signed-in user, None otherwise (triggers 401).
        """
        auth = getattr(request, "auth", None)
        if not isinstance(auth, AuthContext):
            auth = build_auth_context(request)
        return auth if auth.is_authenticated else None
