"""
Payment domain models.

This module contains the checkout models:
- Purchase: A single checkout attempt and its outcome
- WebhookEvent: Razorpay webhook delivery tracking
"""

from payments.models.purchase import Purchase
from payments.models.webhook_event import WebhookEvent

__all__ = [
    "Purchase",
    "WebhookEvent",
]
