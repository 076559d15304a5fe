"""
Payments app for Razorpay checkout.

This app handles:
- Authoritative pricing lookups against the content backend
- Razorpay order creation and purchase records
- Payment verification (client callback) and receipt mail
- Razorpay webhook processing
- Admin refunds with an audit trail

Related apps:
    - core: Base models, services and exceptions

Usage:
    from payments.services import PurchaseService

    # Record a capture (idempotent)
    result = PurchaseService.mark_paid(razorpay_order_id, razorpay_payment_id)
"""
