"""
Payment adapters for external services.

This module provides adapters for the services the checkout depends on:
the Razorpay gateway and the content backend. All external calls go
through these adapters to ensure consistent error handling, timeouts,
and observability.

Usage:
    from payments.adapters import ContentBackendClient, RazorpayAdapter

    order = RazorpayAdapter(payment_settings).create_order(
        amount_minor=500000,
        currency="INR",
        receipt="rcpt_1718000000000",
    )
"""

from payments.adapters.content_backend import ContentBackendClient
from payments.adapters.razorpay_adapter import (
    OrderResult,
    RazorpayAdapter,
    RefundResult,
    build_receipt_token,
)

__all__ = [
    "ContentBackendClient",
    "OrderResult",
    "RazorpayAdapter",
    "RefundResult",
    "build_receipt_token",
]
