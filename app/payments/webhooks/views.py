"""
Webhook endpoint view for Razorpay.

The view:
1. Verifies the x-razorpay-signature header over the raw request body
2. Records the delivery as a WebhookEvent (deduplicated by event id)
3. Dispatches the event to its registered handler
4. Stores and returns the outcome

Events are handled inline: the handlers only run a single conditional
update against the purchase table, well within Razorpay's timeout.

Usage:
    # In urls.py
    from payments.webhooks.views import razorpay_webhook

    urlpatterns = [
        path("webhooks/razorpay/", razorpay_webhook, name="razorpay-webhook"),
    ]
"""

from __future__ import annotations

import json
import logging

from django.db import DatabaseError
from django.db.models import F
from django.http import HttpRequest, JsonResponse
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_POST

from payments.conf import get_payment_settings
from payments.models import WebhookEvent
from payments.signatures import verify_webhook_signature
from payments.webhooks.handlers import dispatch_webhook, get_correlation_ids, get_payment_entity

logger = logging.getLogger(__name__)

SIGNATURE_HEADER = "x-razorpay-signature"
EVENT_ID_HEADER = "x-razorpay-event-id"


def _error(message: str, status: int) -> JsonResponse:
    return JsonResponse({"message": message}, status=status)


def _record_delivery(event_id: str | None, event_type: str, payload: dict) -> tuple[WebhookEvent, bool]:
    """Create the WebhookEvent for this delivery, or fetch the earlier one."""
    entity = get_payment_entity(payload)
    purchase_id, order_id = get_correlation_ids(entity)
    defaults = {
        "event_type": event_type,
        "payload": payload,
        "razorpay_order_id": order_id,
        "razorpay_payment_id": str(entity.get("id") or ""),
        "purchase_reference": purchase_id,
    }

    if not event_id:
        return WebhookEvent.objects.create(**defaults), True

    webhook_event, created = WebhookEvent.objects.get_or_create(event_id=event_id, defaults=defaults)
    if not created:
        WebhookEvent.objects.filter(pk=webhook_event.pk).update(delivery_count=F("delivery_count") + 1)
    return webhook_event, created


@csrf_exempt
@require_POST
def razorpay_webhook(request: HttpRequest) -> JsonResponse:
    """
    Receive and process Razorpay webhook events.

    Security:
    - The signature is an HMAC-SHA256 of the exact request bytes keyed
      with the webhook secret, compared in constant time
    - CSRF exemption required for external webhooks
    - Only POST requests accepted

    Idempotency:
    - Redelivered events (same x-razorpay-event-id) that were already
      processed or ignored get their stored outcome back
    - Purchase transitions are idempotent regardless

    Returns:
        JsonResponse with status:
        - 200: {"ok": true, "handled": bool, "event": name, ...}
        - 400: Missing/invalid signature or malformed body
        - 500: Webhook secret not configured, or the store failed
          (the gateway will redeliver)
    """
    payment_settings = get_payment_settings()
    if not payment_settings.razorpay_webhook_secret:
        logger.error("Webhook received but RAZORPAY_WEBHOOK_SECRET is not configured")
        return _error("Webhook secret is missing on server.", status=500)

    body = request.body
    signature = request.headers.get(SIGNATURE_HEADER, "")

    if not signature:
        logger.warning("Webhook received without x-razorpay-signature header")
        return _error("Missing webhook signature", status=400)

    if not verify_webhook_signature(body, signature, payment_settings.razorpay_webhook_secret):
        logger.warning("Webhook signature verification failed")
        return _error("Invalid webhook signature", status=400)

    try:
        payload = json.loads(body)
    except ValueError:
        logger.warning("Webhook body is not valid JSON")
        return _error("Invalid webhook payload", status=400)

    if not isinstance(payload, dict):
        return _error("Invalid webhook payload", status=400)

    event_type = str(payload.get("event") or "")
    event_id = request.headers.get(EVENT_ID_HEADER) or None

    logger.info(
        f"Received Razorpay webhook: {event_type}",
        extra={"event_id": event_id, "event_type": event_type},
    )

    webhook_event, created = _record_delivery(event_id, event_type, payload)

    if not created and webhook_event.is_settled:
        logger.info(
            "Webhook already processed, returning stored outcome",
            extra={"event_id": event_id},
        )
        return JsonResponse({"ok": True, "event": event_type, **webhook_event.outcome})

    try:
        result = dispatch_webhook(webhook_event)
    except DatabaseError as e:
        logger.error(
            f"Webhook processing failed: {type(e).__name__}",
            extra={"event_id": event_id, "event_type": event_type},
            exc_info=True,
        )
        webhook_event.record_failure(str(e))
        webhook_event.save(update_fields=["status", "error_message", "updated_at"])
        return _error("Webhook processing failed", status=500)

    outcome = result.data or {"handled": False}
    webhook_event.record_outcome(outcome, handled=bool(outcome.get("handled")))
    webhook_event.save(update_fields=["status", "outcome", "processed_at", "error_message", "updated_at"])

    return JsonResponse({"ok": True, "event": event_type, **outcome})
