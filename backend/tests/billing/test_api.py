"""
Tests for billing API endpoints.

Covers all billing endpoints with mocked Stripe services.
"""

from unittest.mock import patch

import pytest
from django.test import Client, RequestFactory
from ninja.errors import HttpError
from stripe import APIConnectionError

from apps.billing.api import create_checkout, get_subscription
from apps.billing.exceptions import ConfigurationError
from apps.billing.schemas import CheckoutSessionRequest, CheckoutSessionResponse
from apps.billing.services import CheckoutSession
from apps.core.auth import AuthContext
from apps.organizations.models import Organization
from tests.accounts.factories import OrganizationFactory, UserFactory, UserProfileFactory
from tests.conftest import create_authenticated_request, make_request_with_auth


@pytest.mark.django_db
class TestGetSubscription:
    """Tests for get_subscription endpoint."""

    def test_returns_trial_usage(self, request_factory: RequestFactory) -> None:
        org = OrganizationFactory(documents_used=1)
        request = create_authenticated_request(
            request_factory, "get", "/api/v1/billing/subscription", org=org
        )

        result = get_subscription(request)

        assert result.tier == "trial"
        assert result.status == "trialing"
        assert result.documents_used == 1
        assert result.documents_limit == 3
        assert result.documents_remaining == 2
        assert result.can_generate is True
        assert result.trial_ends_at == org.trial_ends_at.isoformat()

    def test_pro_tier_is_unlimited(self, request_factory: RequestFactory) -> None:
        org = OrganizationFactory(
            subscription_tier=Organization.Tier.PRO,
            subscription_status=Organization.Status.ACTIVE,
            documents_used=250,
            trial_ends_at=None,
        )
        request = create_authenticated_request(
            request_factory, "get", "/api/v1/billing/subscription", org=org
        )

        result = get_subscription(request)

        assert result.documents_limit == -1
        assert result.documents_remaining is None
        assert result.can_generate is True
        assert result.trial_ends_at is None

    def test_past_due_cannot_generate(self, request_factory: RequestFactory) -> None:
        org = OrganizationFactory(
            subscription_tier=Organization.Tier.BASIC,
            subscription_status=Organization.Status.PAST_DUE,
            documents_used=2,
        )
        request = create_authenticated_request(
            request_factory, "get", "/api/v1/billing/subscription", org=org
        )

        assert get_subscription(request).can_generate is False

    def test_unauthenticated_returns_401(self, request_factory: RequestFactory) -> None:
        """Should raise 401 when not authenticated."""
        request = make_request_with_auth(
            request_factory.get("/api/v1/billing/subscription"), AuthContext()
        )

        with pytest.raises(HttpError) as exc_info:
            get_subscription(request)

        assert exc_info.value.status_code == 401

    def test_user_without_organization_returns_404(self, request_factory: RequestFactory) -> None:
        request = create_authenticated_request(
            request_factory, "get", "/api/v1/billing/subscription", with_profile=False
        )

        with pytest.raises(HttpError) as exc_info:
            get_subscription(request)

        assert exc_info.value.status_code == 404


@pytest.mark.django_db
class TestCreateCheckout:
    """Tests for create_checkout endpoint."""

    @patch("apps.billing.api.create_checkout_session")
    def test_returns_session(self, mock_create, request_factory: RequestFactory) -> None:
        mock_create.return_value = CheckoutSession(
            session_id="cs_test_123", url="https://checkout.stripe.com/c/pay/cs_test_123"
        )
        request = create_authenticated_request(request_factory, "post", "/api/v1/billing/checkout")

        result = create_checkout(request, CheckoutSessionRequest(tier="basic"))

        assert result.session_id == "cs_test_123"
        assert result.url == "https://checkout.stripe.com/c/pay/cs_test_123"
        assert mock_create.call_args[1]["tier"] == "basic"
        assert mock_create.call_args[1]["org"] == request.auth.organization
        assert mock_create.call_args[1]["user"] == request.auth.user

    @pytest.mark.parametrize("tier", ["enterprise", "trial"])
    @patch("apps.billing.services.get_stripe")
    def test_invalid_tier_returns_400(
        self, mock_get_stripe, request_factory: RequestFactory, tier: str
    ) -> None:
        request = create_authenticated_request(request_factory, "post", "/api/v1/billing/checkout")

        with pytest.raises(HttpError) as exc_info:
            create_checkout(request, CheckoutSessionRequest(tier=tier))

        assert exc_info.value.status_code == 400
        mock_get_stripe.assert_not_called()
        org = request.auth.organization
        org.refresh_from_db()
        assert org.stripe_customer_id is None

    @patch("apps.billing.api.create_checkout_session")
    def test_missing_price_configuration_returns_500(
        self, mock_create, request_factory: RequestFactory
    ) -> None:
        mock_create.side_effect = ConfigurationError("Price ID not configured for this tier")
        request = create_authenticated_request(request_factory, "post", "/api/v1/billing/checkout")

        with pytest.raises(HttpError) as exc_info:
            create_checkout(request, CheckoutSessionRequest(tier="pro"))

        assert exc_info.value.status_code == 500

    @patch("apps.billing.api.create_checkout_session")
    def test_stripe_failure_returns_500(self, mock_create, request_factory: RequestFactory) -> None:
        mock_create.side_effect = APIConnectionError("Network unreachable")
        request = create_authenticated_request(request_factory, "post", "/api/v1/billing/checkout")

        with pytest.raises(HttpError) as exc_info:
            create_checkout(request, CheckoutSessionRequest(tier="basic"))

        assert exc_info.value.status_code == 500
        assert str(exc_info.value) == "Failed to create checkout session"

    def test_unauthenticated_returns_401(self, request_factory: RequestFactory) -> None:
        request = make_request_with_auth(request_factory.post("/api/v1/billing/checkout"), AuthContext())

        with pytest.raises(HttpError) as exc_info:
            create_checkout(request, CheckoutSessionRequest(tier="basic"))

        assert exc_info.value.status_code == 401

    def test_user_without_organization_returns_404(self, request_factory: RequestFactory) -> None:
        request = create_authenticated_request(
            request_factory, "post", "/api/v1/billing/checkout", with_profile=False
        )

        with pytest.raises(HttpError) as exc_info:
            create_checkout(request, CheckoutSessionRequest(tier="basic"))

        assert exc_info.value.status_code == 404


class TestCheckoutSessionResponse:
    """The browser client expects camelCase."""

    def test_serializes_session_id_as_camel_case(self) -> None:
        response = CheckoutSessionResponse(session_id="cs_1", url="https://checkout.stripe.com/x")

        assert response.model_dump(by_alias=True) == {
            "sessionId": "cs_1",
            "url": "https://checkout.stripe.com/x",
        }


@pytest.mark.django_db
class TestBillingHttp:
    """Full request cycle through the session-authenticated API."""

    @patch("apps.billing.api.create_checkout_session")
    def test_checkout_over_http(self, mock_create, client: Client) -> None:
        mock_create.return_value = CheckoutSession(
            session_id="cs_http", url="https://checkout.stripe.com/c/pay/cs_http"
        )
        profile = UserProfileFactory.create()
        client.force_login(profile.user)

        response = client.post(
            "/api/v1/billing/checkout",
            data={"tier": "pro"},
            content_type="application/json",
        )

        assert response.status_code == 200
        assert response.json() == {
            "sessionId": "cs_http",
            "url": "https://checkout.stripe.com/c/pay/cs_http",
        }

    def test_invalid_tier_over_http(self, client: Client) -> None:
        profile = UserProfileFactory.create()
        client.force_login(profile.user)

        response = client.post(
            "/api/v1/billing/checkout",
            data={"tier": "enterprise"},
            content_type="application/json",
        )

        assert response.status_code == 400
        assert response.json() == {"detail": "Invalid tier"}

    @patch("apps.billing.api.create_checkout_session")
    def test_checkout_requires_csrf_token(self, mock_create) -> None:
        """A cross-site POST carrying only the session cookie is refused."""
        csrf_client = Client(enforce_csrf_checks=True)
        profile = UserProfileFactory.create()
        csrf_client.force_login(profile.user)

        response = csrf_client.post(
            "/api/v1/billing/checkout",
            data={"tier": "basic"},
            content_type="application/json",
        )

        assert response.status_code == 403
        mock_create.assert_not_called()

    def test_subscription_read_needs_no_csrf_token(self) -> None:
        csrf_client = Client(enforce_csrf_checks=True)
        profile = UserProfileFactory.create()
        csrf_client.force_login(profile.user)

        assert csrf_client.get("/api/v1/billing/subscription").status_code == 200

    def test_user_without_organization_over_http(self, client: Client) -> None:
        client.force_login(UserFactory.create())

        assert client.get("/api/v1/billing/subscription").status_code == 404

    def test_anonymous_subscription_request(self, client: Client) -> None:
        response = client.get("/api/v1/billing/subscription")

        assert response.status_code == 401

    def test_subscription_over_http(self, client: Client) -> None:
        profile = UserProfileFactory.create()
        client.force_login(profile.user)

        response = client.get("/api/v1/billing/subscription")

        assert response.status_code == 200
        assert response.json()["tier"] == "trial"
        assert response.json()["documents_limit"] == 3


@pytest.mark.django_db
def test_health_check(client: Client) -> None:
    response = client.get("/api/v1/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}
