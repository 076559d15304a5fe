"""
State machine enums and helpers for payment models.

This module defines the state enums used by payment models with django-fsm.
"""

from payments.state_machines.states import (
    CheckoutType,
    PriceType,
    PurchaseStatus,
    RefundSpeed,
    UnitLabel,
    WebhookEventStatus,
)

__all__ = [
    "CheckoutType",
    "PriceType",
    "PurchaseStatus",
    "RefundSpeed",
    "UnitLabel",
    "WebhookEventStatus",
]
