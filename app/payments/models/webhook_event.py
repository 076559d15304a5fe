"""
WebhookEvent model for Razorpay webhook delivery tracking.

Stores every signature-verified webhook delivery for audit trails and
redelivery detection. Razorpay sends a unique x-razorpay-event-id header
per event; a redelivered event that was already handled is acknowledged
with its recorded outcome instead of being dispatched again.

Usage:
    from payments.models import WebhookEvent

    event, created = WebhookEvent.objects.get_or_create(
        event_id="Nk2bq1V2Yx0ak9",
        defaults={"event_type": "payment.captured", "payload": payload},
    )
    if not created and event.is_settled:
        return event.outcome
"""

from __future__ import annotations

from django.db import models
from django.utils import timezone

from core.models import BaseModel
from core.model_mixins import UUIDPrimaryKeyMixin

from payments.state_machines import WebhookEventStatus


class WebhookEvent(UUIDPrimaryKeyMixin, BaseModel):
    """
    Tracks Razorpay webhook deliveries.

    Processing Flow:
        1. Webhook arrives, verify signature over the raw body
        2. Insert/get WebhookEvent by event_id (when the header is present)
        3. If PROCESSED or IGNORED -> acknowledge with the stored outcome
        4. Route to the registered handler
        5. Set status to PROCESSED, IGNORED, or FAILED

    Note:
        Deliveries without an event id are still recorded but cannot be
        deduplicated here; the purchase transitions are idempotent on their
        own.
    """

    event_id = models.CharField(
        max_length=64,
        unique=True,
        null=True,
        blank=True,
        help_text="x-razorpay-event-id header, unique per gateway event",
    )

    event_type = models.CharField(
        max_length=100,
        db_index=True,
        help_text="Gateway event name (e.g., 'payment.captured')",
    )

    payload = models.JSONField(
        help_text="Parsed webhook body",
    )

    razorpay_order_id = models.CharField(
        max_length=64,
        blank=True,
        default="",
        db_index=True,
    )

    razorpay_payment_id = models.CharField(max_length=64, blank=True, default="")

    purchase_reference = models.CharField(
        max_length=64,
        blank=True,
        default="",
        help_text="Purchase id embedded in the payment notes, if any",
    )

    status = models.CharField(
        max_length=20,
        choices=WebhookEventStatus.choices,
        default=WebhookEventStatus.PENDING,
        db_index=True,
    )

    outcome = models.JSONField(
        default=dict,
        blank=True,
        help_text="Response body returned to the gateway for this event",
    )

    processed_at = models.DateTimeField(null=True, blank=True)

    error_message = models.TextField(blank=True, default="")

    delivery_count = models.PositiveSmallIntegerField(
        default=1,
        help_text="Number of times the gateway delivered this event",
    )

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "Webhook Event"
        verbose_name_plural = "Webhook Events"
        indexes = [
            models.Index(fields=["status", "created_at"], name="webhook_status_created_idx"),
            models.Index(fields=["event_type", "created_at"], name="webhook_type_created_idx"),
        ]

    def __str__(self) -> str:
        return f"WebhookEvent({self.event_id or self.pk}, {self.event_type})"

    @property
    def is_settled(self) -> bool:
        """Check if the event reached a final outcome and must not be re-dispatched."""
        return self.status in (WebhookEventStatus.PROCESSED, WebhookEventStatus.IGNORED)

    def record_outcome(self, outcome: dict, handled: bool) -> None:
        """
        Store the response body and final status.

        Note: Does not save - caller must save after calling.
        """
        self.outcome = outcome
        self.status = WebhookEventStatus.PROCESSED if handled else WebhookEventStatus.IGNORED
        self.processed_at = timezone.now()
        self.error_message = ""

    def record_failure(self, error_message: str) -> None:
        """
        Mark the delivery as failed so a redelivery is dispatched again.

        Note: Does not save - caller must save after calling.
        """
        self.status = WebhookEventStatus.FAILED
        self.error_message = error_message
