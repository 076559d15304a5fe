"""
State enums for payment models.

This module defines the enums used by payment models with django-fsm.
These are Django TextChoices for database storage and admin integration.

State Machines Overview:

Purchase States:
    created → paid → refunded
    created → failed

WebhookEvent Statuses:
    pending → processed
    pending → ignored
    pending → failed (redelivery retries dispatch)
"""

from django.db import models


class PurchaseStatus(models.TextChoices):
    """
    States for the Purchase model lifecycle.

    Terminal states: FAILED, REFUNDED
    PAID is terminal unless an admin refund is issued.

    State Flow:
        CREATED → PAID (client verify or payment.captured webhook)
        CREATED → FAILED (client mark-failed or payment.failed webhook)
        PAID → REFUNDED (admin refund)
    """

    CREATED = "created", "Created"
    PAID = "paid", "Paid"
    FAILED = "failed", "Failed"
    REFUNDED = "refunded", "Refunded"


class CheckoutType(models.TextChoices):
    """Kind of product being purchased."""

    PACKAGE = "package", "Package"
    FIXED_DEPARTURE = "fixed-departure", "Fixed Departure"


class PriceType(models.TextChoices):
    """How the content backend quotes a unit price."""

    PER_PERSON = "per_person", "Per Person"
    PER_COUPLE = "per_couple", "Per Couple"


class UnitLabel(models.TextChoices):
    """Human-facing label stored with each purchase."""

    PER_PERSON = "Per Person", "Per Person"
    PER_COUPLE = "Per Couple", "Per Couple"


class RefundSpeed(models.TextChoices):
    """Refund speeds accepted by the gateway."""

    NORMAL = "normal", "Normal"
    OPTIMUM = "optimum", "Optimum"


class WebhookEventStatus(models.TextChoices):
    """
    Processing status for a received webhook delivery.

    IGNORED covers events that were acknowledged without a transition
    (unknown event type, untracked purchase, state conflict).
    """

    PENDING = "pending", "Pending"
    PROCESSED = "processed", "Processed"
    IGNORED = "ignored", "Ignored"
    FAILED = "failed", "Failed"
