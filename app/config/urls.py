"""
URL configuration for the checkout service.

The `urlpatterns` list routes URLs to views. This is the root URL configuration
that includes all app-specific routes.

URL Structure:
    /admin/                        - Django admin interface
    /health/                       - Health check endpoint (for load balancers, Docker)
    /api/schema/                   - OpenAPI schema (YAML)
    /api/docs/                     - Swagger UI
    /api/v1/payments/              - Payment endpoints
        orders/                    - Create Razorpay order (POST)
        verify/                    - Verify client-reported payment (POST)
        mark-failed/               - Record client-reported failure (POST)
        refund/                    - Admin refund (POST)
        webhooks/razorpay/         - Razorpay webhook endpoint (POST)
        purchases/                 - Purchase list (internal token)
        purchases/{id}/            - Purchase detail (internal token)

For more information, see:
https://docs.djangoproject.com/en/5.2/topics/http/urls/
"""

from django.contrib import admin
from django.urls import include, path
from drf_spectacular.views import SpectacularAPIView, SpectacularSwaggerView

from core.views import health_check

# =============================================================================
# API v1 Routes
# =============================================================================
# All routes here are prefixed with /api/v1/ automatically
api_v1_patterns = [
    # Payments
    path("payments/", include("payments.urls")),
]

urlpatterns = [
    # Documentation
    path("api/schema/", SpectacularAPIView.as_view(), name="schema"),
    path("api/docs/", SpectacularSwaggerView.as_view(url_name="schema"), name="swagger-ui"),
    # Admin
    path("admin/", admin.site.urls),
    # Health check (Docker, Kubernetes, load balancers)
    path("health/", health_check, name="health_check"),
    # API v1
    path("api/v1/", include(api_v1_patterns)),
]

# =============================================================================
# Admin Site Customization
# =============================================================================
admin.site.site_header = "Paradise Yatra Checkout"
admin.site.site_title = "Checkout Admin"
admin.site.index_title = "Purchases and webhook deliveries"
