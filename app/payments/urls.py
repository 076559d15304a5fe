"""
URL configuration for the payments app.

Routes:
    - POST /orders/ - Create Razorpay order
    - POST /verify/ - Verify client-reported payment
    - POST /mark-failed/ - Record client-reported failure
    - POST /refund/ - Admin refund
    - POST /webhooks/razorpay/ - Razorpay webhook endpoint
    - GET /purchases/ - List purchases (internal)
    - GET /purchases/<id>/ - Purchase details (internal)

All routes are prefixed with /api/v1/payments/ when included in the main URLconf.

Usage:
    # In config/urls.py
    api_v1_patterns = [
        path("payments/", include("payments.urls")),
    ]
"""

from django.urls import path

from payments import views
from payments.webhooks.views import razorpay_webhook

app_name = "payments"

urlpatterns = [
    # Checkout
    path("orders/", views.CreateOrderView.as_view(), name="create-order"),
    path("verify/", views.VerifyPaymentView.as_view(), name="verify"),
    path("mark-failed/", views.MarkFailedView.as_view(), name="mark-failed"),
    # Admin
    path("refund/", views.RefundView.as_view(), name="refund"),
    # Webhook endpoints
    path("webhooks/razorpay/", razorpay_webhook, name="razorpay-webhook"),
    # Internal
    path("purchases/", views.PurchaseListView.as_view(), name="purchase-list"),
    path("purchases/<uuid:purchase_id>/", views.PurchaseDetailView.as_view(), name="purchase-detail"),
]
