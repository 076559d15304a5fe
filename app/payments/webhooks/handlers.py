"""
Webhook event handlers for Razorpay events.

This module provides a handler registry and the handlers for the payment
events this service acts on. Handlers drive the same PurchaseService
transitions as the client verify path, so a webhook racing a verify call
converges on one PAID purchase.

Every handler returns a ServiceResult whose data is the response body
fragment for the gateway ({"handled": bool, ...}). Expected outcomes
(unknown purchase, state conflict) are successes with handled=False so
the gateway stops redelivering. Unexpected store errors propagate and the
view answers 500 so the gateway retries.

Usage:
    from payments.webhooks.handlers import dispatch_webhook, register_handler

    @register_handler("refund.processed")
    def handle_refund_processed(webhook_event: WebhookEvent) -> ServiceResult:
        ...

    result = dispatch_webhook(webhook_event)
"""

from __future__ import annotations

import logging
from typing import Any, Callable

from core.services import ServiceResult

from payments.models import WebhookEvent
from payments.services import PurchaseService

logger = logging.getLogger(__name__)

DEFAULT_FAILURE_REASON = "Payment failed"

CONFLICT_ERROR_CODES = ("PAYMENT_CONFLICT", "INVALID_STATE_TRANSITION")


# =============================================================================
# Payload Helpers
# =============================================================================


def get_payment_entity(payload: Any) -> dict[str, Any]:
    """Return payload.payment.entity from an event envelope, or {}."""
    if not isinstance(payload, dict):
        return {}
    inner = payload.get("payload")
    payment = inner.get("payment") if isinstance(inner, dict) else None
    entity = payment.get("entity") if isinstance(payment, dict) else None
    return entity if isinstance(entity, dict) else {}


def get_correlation_ids(entity: dict[str, Any]) -> tuple[str, str]:
    """
    Return (purchase_id, razorpay_order_id) for a payment entity.

    The purchase id comes from the payment notes when the checkout
    embedded one; the order id is always present on real payments.
    """
    notes = entity.get("notes")
    notes = notes if isinstance(notes, dict) else {}
    purchase_id = str(notes.get("purchaseId") or notes.get("purchase_id") or "")
    order_id = str(entity.get("order_id") or "")
    return purchase_id, order_id


# =============================================================================
# Handler Registry
# =============================================================================


# Maps event type strings to handler functions
WEBHOOK_HANDLERS: dict[str, Callable[[WebhookEvent], ServiceResult]] = {}


def register_handler(event_type: str) -> Callable:
    """
    Decorator to register a webhook event handler.

    Args:
        event_type: The Razorpay event name (e.g., "payment.captured")
    """

    def decorator(func: Callable[[WebhookEvent], ServiceResult]) -> Callable:
        WEBHOOK_HANDLERS[event_type] = func
        logger.debug(f"Registered webhook handler for {event_type}")
        return func

    return decorator


def dispatch_webhook(webhook_event: WebhookEvent) -> ServiceResult[dict[str, Any]]:
    """
    Dispatch a webhook event to its handler.

    Events without a handler are acknowledged as not handled.
    """
    handler = WEBHOOK_HANDLERS.get(webhook_event.event_type)

    if not handler:
        logger.info(
            f"No handler registered for event type: {webhook_event.event_type}",
            extra={"event_id": webhook_event.event_id},
        )
        return ServiceResult.success({"handled": False})

    logger.info(
        f"Dispatching {webhook_event.event_type} to handler",
        extra={"event_id": webhook_event.event_id},
    )
    return handler(webhook_event)


def _unhandled(reason: str, **extra: Any) -> ServiceResult[dict[str, Any]]:
    return ServiceResult.success({"handled": False, "reason": reason, **extra})


def _transition_outcome(
    webhook_event: WebhookEvent,
    result: ServiceResult,
    log_context: dict[str, Any],
) -> ServiceResult[dict[str, Any]]:
    """Translate a PurchaseService result into the gateway response fragment."""
    if result.success:
        purchase = result.data.purchase
        return ServiceResult.success(
            {
                "handled": True,
                "purchaseId": str(purchase.id),
                "status": purchase.status,
                "changed": result.data.changed,
            }
        )

    if result.error_code == "PURCHASE_NOT_FOUND":
        logger.warning(f"{webhook_event.event_type}: purchase not found", extra=log_context)
        return _unhandled("purchase_not_found")

    if result.error_code in CONFLICT_ERROR_CODES:
        logger.error(
            f"{webhook_event.event_type}: state conflict ({result.error})",
            extra={**log_context, "error_code": result.error_code},
        )
        return _unhandled("state_conflict", error_code=result.error_code)

    logger.error(
        f"{webhook_event.event_type}: transition rejected ({result.error})",
        extra={**log_context, "error_code": result.error_code},
    )
    return _unhandled("rejected", error_code=result.error_code)


# =============================================================================
# Payment Handlers
# =============================================================================


@register_handler("payment.captured")
def handle_payment_captured(webhook_event: WebhookEvent) -> ServiceResult:
    """
    Handle a captured payment.

    Marks the correlated purchase PAID. A purchase the verify path already
    marked paid with the same payment id is an idempotent replay.
    """
    entity = get_payment_entity(webhook_event.payload)
    purchase_id, order_id = get_correlation_ids(entity)
    log_context = {
        "event_id": webhook_event.event_id,
        "purchase_id": purchase_id,
        "razorpay_order_id": order_id,
        "razorpay_payment_id": entity.get("id"),
    }

    if not purchase_id and not order_id:
        logger.info("payment.captured without purchase reference", extra=log_context)
        return _unhandled("missing_purchase_reference")

    if not entity.get("id"):
        logger.warning("payment.captured without payment id", extra=log_context)
        return _unhandled("missing_payment_id")

    result = PurchaseService.mark_paid(
        razorpay_order_id=order_id or None,
        razorpay_payment_id=str(entity.get("id") or ""),
        payment_method=str(entity.get("method") or ""),
        purchase_id=purchase_id or None,
    )
    return _transition_outcome(webhook_event, result, log_context)


@register_handler("payment.failed")
def handle_payment_failed(webhook_event: WebhookEvent) -> ServiceResult:
    """
    Handle a failed payment.

    Marks the correlated purchase FAILED with the gateway's error details.
    A failure for a purchase that is already paid is a conflict: it is
    logged and acknowledged, and the purchase is left paid.
    """
    entity = get_payment_entity(webhook_event.payload)
    purchase_id, order_id = get_correlation_ids(entity)
    log_context = {
        "event_id": webhook_event.event_id,
        "purchase_id": purchase_id,
        "razorpay_order_id": order_id,
        "razorpay_payment_id": entity.get("id"),
        "failure_code": entity.get("error_code"),
    }

    if not purchase_id and not order_id:
        logger.info("payment.failed without purchase reference", extra=log_context)
        return _unhandled("missing_purchase_reference")

    result = PurchaseService.mark_failed(
        razorpay_order_id=order_id or None,
        purchase_id=purchase_id or None,
        razorpay_payment_id=entity.get("id") or None,
        payment_method=str(entity.get("method") or ""),
        failure_code=str(entity.get("error_code") or ""),
        failure_reason=str(entity.get("error_description") or DEFAULT_FAILURE_REASON),
        failure_source=str(entity.get("error_source") or ""),
        failure_step=str(entity.get("error_step") or ""),
    )
    return _transition_outcome(webhook_event, result, log_context)
