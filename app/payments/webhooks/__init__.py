"""
Webhook handling for payment events from Razorpay.

This module provides the view and handlers for Razorpay webhooks.
Deliveries are signature-verified, recorded for deduplication, and
dispatched inline to the purchase state machine.

Usage:
    # In urls.py
    from payments.webhooks.views import razorpay_webhook

    urlpatterns = [
        path("webhooks/razorpay/", razorpay_webhook, name="razorpay-webhook"),
    ]
"""

from payments.webhooks.handlers import dispatch_webhook, register_handler
from payments.webhooks.views import razorpay_webhook

__all__ = [
    "dispatch_webhook",
    "razorpay_webhook",
    "register_handler",
]
