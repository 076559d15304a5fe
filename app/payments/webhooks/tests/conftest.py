"""
Pytest fixtures for webhook tests.

Provides fixtures for testing the webhook view and handlers including
Razorpay event payloads, signed requests, and WebhookEvent objects.
"""

import json

import pytest
from django.test import RequestFactory

from payments.signatures import compute_signature
from payments.tests.factories import WebhookEventFactory


# =============================================================================
# Request Fixtures
# =============================================================================


@pytest.fixture
def rf():
    """Request factory for creating test requests."""
    return RequestFactory()


@pytest.fixture
def signed_webhook_request(rf, payment_settings):
    """
    Build a webhook POST signed with the test webhook secret.

    Usage:
        request = signed_webhook_request(payload, event_id="evt_1")
    """

    def _create(payload, event_id: str | None = "evt_test_1", signature: str | None = None):
        body = payload if isinstance(payload, bytes) else json.dumps(payload).encode("utf-8")
        headers = {}
        if signature is None:
            signature = compute_signature(body, payment_settings.razorpay_webhook_secret)
        if signature:
            headers["HTTP_X_RAZORPAY_SIGNATURE"] = signature
        if event_id:
            headers["HTTP_X_RAZORPAY_EVENT_ID"] = event_id
        return rf.post(
            "/api/v1/payments/webhooks/razorpay/",
            data=body,
            content_type="application/json",
            **headers,
        )

    return _create


# =============================================================================
# Payload Fixtures
# =============================================================================


@pytest.fixture
def payment_event():
    """
    Build a Razorpay payment.* event envelope.

    Entity fields default to a captured card payment; pass entity keys
    as keyword arguments to override them (None removes the key).
    """

    def _create(event: str = "payment.captured", **entity_fields):
        entity = {
            "id": "pay_webhook_1",
            "entity": "payment",
            "amount": 3000000,
            "currency": "INR",
            "status": "captured" if event == "payment.captured" else "failed",
            "order_id": "order_webhook_1",
            "method": "card",
            "notes": {},
        }
        for key, value in entity_fields.items():
            if value is None:
                entity.pop(key, None)
            else:
                entity[key] = value
        return {
            "entity": "event",
            "event": event,
            "contains": ["payment"],
            "payload": {"payment": {"entity": entity}},
            "created_at": 1760868000,
        }

    return _create


@pytest.fixture
def webhook_event_for(payment_event):
    """Create a stored WebhookEvent wrapping a payment event."""

    def _create(event: str = "payment.captured", **entity_fields):
        payload = payment_event(event, **entity_fields)
        return WebhookEventFactory(event_type=event, payload=payload)

    return _create
