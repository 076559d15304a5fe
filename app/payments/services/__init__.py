"""
Payment services for the checkout lifecycle.

This module provides:
- PricingResolver: Authoritative unit prices from the content backend
- OrderService: Razorpay order creation with server-computed amounts
- PurchaseService: Purchase persistence and idempotent status transitions
- VerificationService: Client-reported payment verification and receipts
- RefundAuthorizer / RefundService: Admin-gated refunds

Usage:
    from payments.conf import get_payment_settings
    from payments.services import OrderService, CheckoutRequest

    result = OrderService.from_settings(get_payment_settings()).create_order(
        CheckoutRequest(
            full_name="Asha Rao",
            email="asha@example.com",
            phone="+919800000000",
            package_slug="kedarnath-yatra",
            travellers=3,
        )
    )

    # Record a capture (idempotent)
    from payments.services import PurchaseService

    result = PurchaseService.mark_paid(
        razorpay_order_id="order_Nk1s2Xq",
        razorpay_payment_id="pay_Nk1t9",
    )
"""

from payments.services.order_service import (
    CheckoutRequest,
    OrderService,
    compute_charge,
    to_minor_units,
)
from payments.services.pricing_service import (
    PricingResolver,
    ResolvedPricing,
)
from payments.services.purchase_service import (
    PurchaseService,
    TransitionOutcome,
)
from payments.services.refund_service import (
    AdminActor,
    RefundAuthorizer,
    RefundService,
)
from payments.services.verification_service import (
    VerificationRequest,
    VerificationService,
)

__all__ = [
    "AdminActor",
    "CheckoutRequest",
    "OrderService",
    "PricingResolver",
    "PurchaseService",
    "RefundAuthorizer",
    "RefundService",
    "ResolvedPricing",
    "TransitionOutcome",
    "VerificationRequest",
    "VerificationService",
    "compute_charge",
    "to_minor_units",
]
