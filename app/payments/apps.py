"""
Payments app configuration.

This app provides the Razorpay checkout lifecycle:
- Server-priced order creation
- Signature-verified payment capture (client callback and webhook)
- Purchase state machine
- Admin-gated refunds
"""

from django.apps import AppConfig


class PaymentsConfig(AppConfig):
    """Configuration for the payments application."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "payments"
    verbose_name = "Payments"

    def ready(self):
        # Register webhook handlers
        from payments.webhooks import handlers  # noqa: F401
