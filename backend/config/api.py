"""
Django Ninja API configuration.
"""

from django.http import HttpRequest
from ninja import NinjaAPI

from apps.billing.api import router as billing_router

api = NinjaAPI(
    title="FamilyDraft API",
    version="1.0.0",
    description="Subscription checkout and usage for FamilyDraft document generation.",
    openapi_extra={
        "info": {
            "contact": {"name": "API Support"},
        },
        "tags": [
            {
                "name": "billing",
                "description": "Stripe checkout and subscription status",
            },
            {
                "name": "health",
                "description": "Service health and readiness checks",
            },
        ],
    },
)

# Register routers
api.add_router("/billing", billing_router)


@api.get("/health", tags=["health"], operation_id="healthCheck", summary="Health check")
def health_check(request: HttpRequest) -> dict:
    """Health check endpoint for load balancer."""
    return {"status": "ok"}
