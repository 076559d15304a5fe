"""
Tests for the Razorpay webhook view.

Tests cover:
- Configuration and signature verification
- Malformed bodies
- Delivery recording and deduplication by event id
- Stored outcomes for settled redeliveries
- Store failures (500 so the gateway redelivers)
"""

import json
from unittest.mock import patch

import pytest
from django.db import OperationalError

from payments.models import Purchase, WebhookEvent
from payments.state_machines import PurchaseStatus, WebhookEventStatus
from payments.tests.factories import PurchaseFactory, WebhookEventFactory
from payments.webhooks.views import razorpay_webhook


@pytest.fixture
def tracked_purchase(db):
    return PurchaseFactory(razorpay_order_id="order_webhook_1")


# =============================================================================
# Signature Verification Tests
# =============================================================================


@pytest.mark.django_db
class TestWebhookSignature:
    """Tests for configuration and signature checks."""

    def test_missing_secret_returns_500(self, rf, settings, payment_event):
        settings.RAZORPAY_WEBHOOK_SECRET = ""
        request = rf.post(
            "/api/v1/payments/webhooks/razorpay/",
            data=json.dumps(payment_event()),
            content_type="application/json",
            HTTP_X_RAZORPAY_SIGNATURE="abc",
        )

        response = razorpay_webhook(request)

        assert response.status_code == 500
        assert not WebhookEvent.objects.exists()

    def test_missing_signature_returns_400(self, use_payment_settings, signed_webhook_request, payment_event):
        response = razorpay_webhook(signed_webhook_request(payment_event(), signature=""))

        assert response.status_code == 400
        assert b"Missing webhook signature" in response.content

    def test_invalid_signature_returns_400(self, use_payment_settings, signed_webhook_request, payment_event):
        response = razorpay_webhook(signed_webhook_request(payment_event(), signature="0" * 64))

        assert response.status_code == 400
        assert b"Invalid webhook signature" in response.content
        assert not WebhookEvent.objects.exists()

    def test_signature_over_raw_bytes(self, use_payment_settings, signed_webhook_request, tracked_purchase):
        """The signature covers the exact bytes, including whitespace a re-serializer would drop."""
        body = (
            b'{ "event" : "payment.captured",\n  "payload": {"payment": {"entity": '
            b'{"id": "pay_raw_1", "order_id": "order_webhook_1"}}}}'
        )

        response = razorpay_webhook(signed_webhook_request(body))

        assert response.status_code == 200
        assert json.loads(response.content)["handled"] is True

    def test_get_not_allowed(self, rf):
        response = razorpay_webhook(rf.get("/api/v1/payments/webhooks/razorpay/"))

        assert response.status_code == 405


# =============================================================================
# Payload Tests
# =============================================================================


@pytest.mark.django_db
class TestWebhookPayload:
    """Tests for malformed bodies."""

    def test_invalid_json(self, use_payment_settings, signed_webhook_request):
        response = razorpay_webhook(signed_webhook_request(b"{not json"))

        assert response.status_code == 400

    def test_non_object_body(self, use_payment_settings, signed_webhook_request):
        response = razorpay_webhook(signed_webhook_request(b"[1, 2, 3]"))

        assert response.status_code == 400

    def test_non_object_inner_payload(self, use_payment_settings, signed_webhook_request):
        """A signed capture whose payload is not an object is acknowledged as unhandled."""
        response = razorpay_webhook(signed_webhook_request({"event": "payment.captured", "payload": [1, 2]}))

        assert response.status_code == 200
        assert json.loads(response.content)["reason"] == "missing_purchase_reference"

    def test_unknown_event_acknowledged(self, use_payment_settings, signed_webhook_request):
        response = razorpay_webhook(signed_webhook_request({"event": "order.paid", "payload": {}}))

        assert response.status_code == 200
        assert json.loads(response.content) == {"ok": True, "event": "order.paid", "handled": False}
        assert WebhookEvent.objects.get(event_id="evt_test_1").status == WebhookEventStatus.IGNORED


# =============================================================================
# Processing Tests
# =============================================================================


@pytest.mark.django_db
class TestWebhookProcessing:
    """Tests for dispatch, recording and deduplication."""

    def test_captured_marks_paid(self, use_payment_settings, signed_webhook_request, payment_event, tracked_purchase):
        response = razorpay_webhook(signed_webhook_request(payment_event()))

        assert response.status_code == 200
        body = json.loads(response.content)
        assert body["ok"] is True
        assert body["event"] == "payment.captured"
        assert body["handled"] is True
        assert body["purchaseId"] == str(tracked_purchase.pk)

        stored = Purchase.objects.get(pk=tracked_purchase.pk)
        assert stored.status == PurchaseStatus.PAID
        assert stored.razorpay_payment_id == "pay_webhook_1"

        event = WebhookEvent.objects.get(event_id="evt_test_1")
        assert event.status == WebhookEventStatus.PROCESSED
        assert event.razorpay_order_id == "order_webhook_1"
        assert event.outcome["handled"] is True
        assert event.processed_at is not None

    def test_redelivery_returns_stored_outcome(self, use_payment_settings, signed_webhook_request, payment_event):
        WebhookEventFactory(
            event_id="evt_test_1",
            status=WebhookEventStatus.PROCESSED,
            outcome={"handled": True, "purchaseId": "stored", "status": "paid", "changed": True},
        )

        with patch("payments.webhooks.views.dispatch_webhook") as dispatch:
            response = razorpay_webhook(signed_webhook_request(payment_event()))

        dispatch.assert_not_called()
        body = json.loads(response.content)
        assert body["purchaseId"] == "stored"
        event = WebhookEvent.objects.get(event_id="evt_test_1")
        assert event.delivery_count == 2

    def test_failed_delivery_is_redispatched(
        self, use_payment_settings, signed_webhook_request, payment_event, tracked_purchase
    ):
        WebhookEventFactory(event_id="evt_test_1", status=WebhookEventStatus.FAILED)

        response = razorpay_webhook(signed_webhook_request(payment_event()))

        assert json.loads(response.content)["handled"] is True
        event = WebhookEvent.objects.get(event_id="evt_test_1")
        assert event.status == WebhookEventStatus.PROCESSED
        assert event.delivery_count == 2

    def test_replayed_capture_is_idempotent(
        self, use_payment_settings, signed_webhook_request, payment_event, tracked_purchase
    ):
        razorpay_webhook(signed_webhook_request(payment_event(), event_id="evt_a"))
        response = razorpay_webhook(signed_webhook_request(payment_event(), event_id="evt_b"))

        body = json.loads(response.content)
        assert body["handled"] is True
        assert body["changed"] is False
        assert Purchase.objects.get(pk=tracked_purchase.pk).status == PurchaseStatus.PAID

    def test_without_event_id(self, use_payment_settings, signed_webhook_request, payment_event, tracked_purchase):
        response = razorpay_webhook(signed_webhook_request(payment_event(), event_id=None))

        assert response.status_code == 200
        event = WebhookEvent.objects.get()
        assert event.event_id is None

    def test_store_error_returns_500(self, use_payment_settings, signed_webhook_request, payment_event):
        with patch(
            "payments.webhooks.views.dispatch_webhook",
            side_effect=OperationalError("database is locked"),
        ):
            response = razorpay_webhook(signed_webhook_request(payment_event()))

        assert response.status_code == 500
        event = WebhookEvent.objects.get(event_id="evt_test_1")
        assert event.status == WebhookEventStatus.FAILED
        assert "database is locked" in event.error_message
