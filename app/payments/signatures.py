"""
HMAC-SHA256 signature checks for Razorpay callbacks.

Two schemes are in use:
- Payment signature: hex HMAC of "{order_id}|{payment_id}" keyed with the
  API key secret. Sent by the checkout client after a successful payment.
- Webhook signature: hex HMAC of the raw request body keyed with the
  webhook secret. Sent in the x-razorpay-signature header.

All comparisons are constant-time.

Usage:
    from payments.signatures import verify_payment_signature

    if not verify_payment_signature(order_id, payment_id, signature, secret):
        return Response({"verified": False}, status=400)
"""

from __future__ import annotations

import hashlib
import hmac


def compute_signature(payload: bytes, secret: str) -> str:
    """Return the hex HMAC-SHA256 of payload keyed with secret."""
    return hmac.new(secret.encode("utf-8"), payload, hashlib.sha256).hexdigest()


def _matches(expected: str, signature: str) -> bool:
    return hmac.compare_digest(expected.encode("utf-8"), signature.strip().encode("utf-8"))


def compute_payment_signature(order_id: str, payment_id: str, secret: str) -> str:
    return compute_signature(f"{order_id}|{payment_id}".encode("utf-8"), secret)


def verify_payment_signature(
    order_id: str,
    payment_id: str,
    signature: str,
    secret: str,
) -> bool:
    """
    Check a client-reported payment signature.

    Args:
        order_id: Razorpay order id the payment belongs to
        payment_id: Razorpay payment id reported by checkout
        signature: Hex signature reported by checkout
        secret: API key secret

    Returns:
        True only if the signature was produced with secret over exactly
        this order/payment pair
    """
    if not (secret and order_id and payment_id and signature):
        return False
    return _matches(compute_payment_signature(order_id, payment_id, secret), signature)


def verify_webhook_signature(body: bytes, signature: str, secret: str) -> bool:
    """
    Check a webhook signature over the raw request body.

    The body must be the bytes as received. Re-serialized JSON does not
    match the gateway's signature.
    """
    if not (secret and signature):
        return False
    return _matches(compute_signature(body, secret), signature)
