"""
Purchase state machine service.

This module provides PurchaseService, the single entry point for creating
purchases and moving them between statuses. The client verify callback,
the Razorpay webhook and the admin refund flow all go through it.

Transitions are idempotent and safe under concurrency:
- Replaying a transition on a purchase already in the target status with
  matching data succeeds as a no-op (changed=False).
- Each save is a compare-and-swap on the status that was read
  (ConcurrentTransitionMixin). The loser of a race re-reads the row and
  re-evaluates, so the verify and webhook paths converge on one PAID row.

Usage:
    from payments.services import PurchaseService

    result = PurchaseService.mark_paid(
        razorpay_order_id="order_Nk1s2Xq",
        razorpay_payment_id="pay_Nk1t9",
        razorpay_signature="9f2c...",
        payment_method="upi",
    )
    if result.success and result.data.changed:
        send_receipt(result.data.purchase)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Callable

from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import IntegrityError

from django_fsm import ConcurrentTransition, TransitionNotAllowed

from core.services import BaseService, ServiceResult

from payments.exceptions import (
    InvalidStateTransitionError,
    PaymentConflictError,
    PurchaseNotFoundError,
)
from payments.models import Purchase
from payments.state_machines import PurchaseStatus

if TYPE_CHECKING:
    from decimal import Decimal

# A lost compare-and-swap is re-evaluated this many times before giving up
MAX_TRANSITION_ATTEMPTS = 3


@dataclass
class TransitionOutcome:
    """
    Result of a purchase transition.

    Attributes:
        purchase: The purchase as stored after the call
        changed: False when the call was an idempotent replay
    """

    purchase: Purchase
    changed: bool


class PurchaseService(BaseService):
    """
    Service for purchase persistence and status transitions.

    Error codes returned in ServiceResult failures:
        MISSING_REFERENCE: Neither purchase id nor gateway order id given
        PURCHASE_NOT_FOUND: No purchase matches the reference
        PAYMENT_CONFLICT: Authoritative signals disagree (a failure for a
            paid purchase, or a purchase id that is not the gateway
            order's); the purchase is left untouched
        INVALID_STATE_TRANSITION: Any other illegal edge
    """

    # =========================================================================
    # Lookup & Creation
    # =========================================================================

    @classmethod
    def find_purchase(
        cls,
        purchase_id: Any = None,
        razorpay_order_id: str | None = None,
    ) -> Purchase | None:
        """
        Find a purchase by gateway order id, falling back to the purchase id.

        A malformed purchase id is treated as a miss rather than an error.

        Raises:
            PaymentConflictError: Both references were given and they name
                different purchases
        """
        if razorpay_order_id:
            purchase = Purchase.objects.filter(razorpay_order_id=razorpay_order_id).first()
            if purchase is not None:
                if purchase_id and not cls._is_same_purchase(purchase, purchase_id):
                    raise PaymentConflictError(
                        "purchaseId does not belong to razorpayOrderId",
                        details={"purchaseId": ["Does not match the gateway order."]},
                    )
                return purchase

        if not purchase_id:
            return None
        try:
            purchase = Purchase.objects.filter(pk=purchase_id).first()
        except (DjangoValidationError, ValueError):
            return None
        if purchase is not None and razorpay_order_id and purchase.razorpay_order_id != razorpay_order_id:
            raise PaymentConflictError(
                "purchaseId does not belong to razorpayOrderId",
                details={"purchaseId": ["Does not match the gateway order."]},
            )
        return purchase

    @staticmethod
    def _is_same_purchase(purchase: Purchase, purchase_id: Any) -> bool:
        try:
            return purchase.pk == Purchase._meta.pk.to_python(purchase_id)
        except DjangoValidationError:
            return False

    @classmethod
    def find_by_payment_id(cls, razorpay_payment_id: str) -> Purchase | None:
        return Purchase.objects.filter(razorpay_payment_id=razorpay_payment_id).first()

    @classmethod
    def create_purchase(cls, **fields: Any) -> ServiceResult[Purchase]:
        """
        Persist a new purchase in CREATED status.

        Idempotent on razorpay_order_id: a second call for the same gateway
        order returns the existing purchase.
        """
        order_id = fields.get("razorpay_order_id")
        if not order_id:
            return ServiceResult.failure(
                "razorpay_order_id is required",
                error_code="MISSING_REFERENCE",
            )

        existing = Purchase.objects.filter(razorpay_order_id=order_id).first()
        if existing is not None:
            return ServiceResult.success(existing)

        try:
            with cls.atomic():
                purchase = Purchase.objects.create(**fields)
        except IntegrityError:
            existing = Purchase.objects.filter(razorpay_order_id=order_id).first()
            if existing is None:
                raise
            return ServiceResult.success(existing)

        cls.get_logger().info(
            "Purchase created",
            extra={
                "purchase_id": str(purchase.id),
                "internal_order_id": purchase.internal_order_id,
                "razorpay_order_id": order_id,
            },
        )
        return ServiceResult.success(purchase)

    # =========================================================================
    # Transitions
    # =========================================================================

    @classmethod
    def mark_paid(
        cls,
        razorpay_order_id: str | None,
        razorpay_payment_id: str,
        razorpay_signature: str = "",
        payment_method: str = "",
        purchase_id: Any = None,
    ) -> ServiceResult[TransitionOutcome]:
        """
        Move a purchase from CREATED to PAID.

        A purchase already PAID (or since REFUNDED) with the same payment id
        is a no-op success. A different payment id is a conflict.
        """
        return cls._transition(
            action="mark_paid",
            target=PurchaseStatus.PAID,
            settled_statuses=(PurchaseStatus.PAID, PurchaseStatus.REFUNDED),
            purchase_id=purchase_id,
            razorpay_order_id=razorpay_order_id,
            is_replay=lambda p: p.razorpay_payment_id == razorpay_payment_id,
            apply=lambda p: p.mark_paid(
                payment_id=razorpay_payment_id,
                signature=razorpay_signature,
                payment_method=payment_method,
            ),
            context={"razorpay_payment_id": razorpay_payment_id},
        )

    @classmethod
    def mark_failed(
        cls,
        razorpay_order_id: str | None = None,
        purchase_id: Any = None,
        razorpay_payment_id: str | None = None,
        payment_method: str = "",
        failure_code: str = "",
        failure_reason: str = "",
        failure_source: str = "",
        failure_step: str = "",
    ) -> ServiceResult[TransitionOutcome]:
        """
        Move a purchase from CREATED to FAILED.

        A purchase already FAILED is a no-op success. A purchase already
        PAID rejects the failure as a conflict and is not modified.
        """
        return cls._transition(
            action="mark_failed",
            target=PurchaseStatus.FAILED,
            settled_statuses=(PurchaseStatus.FAILED,),
            purchase_id=purchase_id,
            razorpay_order_id=razorpay_order_id,
            is_replay=lambda p: True,
            apply=lambda p: p.mark_failed(
                reason=failure_reason,
                code=failure_code,
                source=failure_source,
                step=failure_step,
                payment_id=razorpay_payment_id,
                payment_method=payment_method,
            ),
            context={
                "razorpay_payment_id": razorpay_payment_id,
                "failure_code": failure_code,
            },
        )

    @classmethod
    def mark_refunded(
        cls,
        refund_id: str,
        refunded_amount: Decimal,
        notes: str = "",
        razorpay_order_id: str | None = None,
        purchase_id: Any = None,
    ) -> ServiceResult[TransitionOutcome]:
        """
        Move a purchase from PAID to REFUNDED.

        A purchase already REFUNDED with the same refund id is a no-op success.
        """
        return cls._transition(
            action="mark_refunded",
            target=PurchaseStatus.REFUNDED,
            settled_statuses=(PurchaseStatus.REFUNDED,),
            purchase_id=purchase_id,
            razorpay_order_id=razorpay_order_id,
            is_replay=lambda p: p.refund_id == refund_id,
            apply=lambda p: p.mark_refunded(
                refund_id=refund_id,
                refunded_amount=refunded_amount,
                notes=notes,
            ),
            context={"refund_id": refund_id},
        )

    # =========================================================================
    # Internals
    # =========================================================================

    @classmethod
    def _transition(
        cls,
        action: str,
        target: str,
        settled_statuses: tuple[str, ...],
        purchase_id: Any,
        razorpay_order_id: str | None,
        is_replay: Callable[[Purchase], bool],
        apply: Callable[[Purchase], None],
        context: dict[str, Any],
    ) -> ServiceResult[TransitionOutcome]:
        log = cls.get_logger()
        log_context = {
            "action": action,
            "purchase_id": str(purchase_id) if purchase_id else None,
            "razorpay_order_id": razorpay_order_id,
            **context,
        }

        if not purchase_id and not razorpay_order_id:
            return ServiceResult.failure(
                "purchaseId or razorpayOrderId is required",
                error_code="MISSING_REFERENCE",
            )

        try:
            purchase = cls.find_purchase(purchase_id=purchase_id, razorpay_order_id=razorpay_order_id)
        except PaymentConflictError as e:
            return cls.handle_exception(e, "Purchase references disagree", extra=log_context)
        if purchase is None:
            return cls.handle_exception(
                PurchaseNotFoundError("Purchase not found"),
                "Purchase not found for transition",
                log_level=logging.WARNING,
                extra=log_context,
            )

        for _ in range(MAX_TRANSITION_ATTEMPTS):
            if purchase.status in settled_statuses:
                if is_replay(purchase):
                    log.info("Transition replayed, no change", extra=log_context)
                    return ServiceResult.success(TransitionOutcome(purchase=purchase, changed=False))
                return cls._conflict(purchase, action, log_context)

            try:
                with cls.atomic():
                    apply(purchase)
                    purchase.save()
            except TransitionNotAllowed:
                return cls._rejected(purchase, action, target, log_context)
            except ConcurrentTransition:
                log.info("Concurrent transition detected, re-reading purchase", extra=log_context)
                purchase = Purchase.objects.get(pk=purchase.pk)
                continue

            log.info(
                "Purchase transitioned",
                extra={**log_context, "purchase_id": str(purchase.id), "status": purchase.status},
            )
            return ServiceResult.success(TransitionOutcome(purchase=purchase, changed=True))

        return cls._conflict(purchase, action, log_context)

    @classmethod
    def _conflict(
        cls,
        purchase: Purchase,
        action: str,
        log_context: dict[str, Any],
    ) -> ServiceResult[TransitionOutcome]:
        return cls.handle_exception(
            PaymentConflictError(
                f"Purchase is already {purchase.status}",
                details={"status": [purchase.status]},
            ),
            f"Conflicting payment signal for purchase {purchase.id} ({action} while {purchase.status})",
            extra={**log_context, "current_status": purchase.status},
        )

    @classmethod
    def _rejected(
        cls,
        purchase: Purchase,
        action: str,
        target: str,
        log_context: dict[str, Any],
    ) -> ServiceResult[TransitionOutcome]:
        # A failure for a paid purchase contradicts the verified capture
        if action == "mark_failed" and purchase.status in (
            PurchaseStatus.PAID,
            PurchaseStatus.REFUNDED,
        ):
            return cls._conflict(purchase, action, log_context)

        # A capture for a failed purchase needs operator attention
        level = logging.ERROR if action == "mark_paid" else logging.WARNING
        return cls.handle_exception(
            InvalidStateTransitionError(
                f"Cannot move purchase from '{purchase.status}' to '{target}'",
                details={"status": [purchase.status]},
            ),
            f"Illegal purchase transition {purchase.status} -> {target}",
            log_level=level,
            extra={**log_context, "current_status": purchase.status},
        )
