"""
Purchase model for the checkout lifecycle.

A Purchase is the record of a single checkout attempt and its outcome.
It is created in CREATED status when a gateway order is opened, and is
then moved by exactly one of the client verify callback, the gateway
webhook, or an admin refund.

Usage:
    from payments.models import Purchase
    from payments.state_machines import PurchaseStatus

    purchase = Purchase.objects.create(
        full_name="Asha Rao",
        email="asha@example.com",
        phone="9999999999",
        package_slug="kedarnath-yatra",
        travellers=2,
        unit_price=Decimal("15000.00"),
        amount=Decimal("30000.00"),
        razorpay_order_id="order_Nk1s2Xq",
    )

    # State transitions using django-fsm
    purchase.mark_paid(payment_id="pay_Nk1t9", signature="...", payment_method="upi")
    purchase.save()  # raises ConcurrentTransition if the row moved meanwhile
"""

from __future__ import annotations

from django.db import models
from django.utils import timezone

from django_fsm import ConcurrentTransitionMixin, FSMField, transition

from core.helpers import generate_token
from core.models import BaseModel
from core.model_mixins import UUIDPrimaryKeyMixin

from payments.state_machines import CheckoutType, PurchaseStatus, UnitLabel


def generate_internal_order_id() -> str:
    """Return a human-facing order id such as PYO-2026-4F1A9C."""
    return f"PYO-{timezone.now():%Y}-{generate_token(3).upper()}"


def generate_receipt_number() -> str:
    """Return a receipt number such as PYR-20261019-0B77E2."""
    return f"PYR-{timezone.now():%Y%m%d}-{generate_token(3).upper()}"


class Purchase(ConcurrentTransitionMixin, UUIDPrimaryKeyMixin, BaseModel):
    """
    A single checkout attempt and its outcome.

    Uses django-fsm for the status state machine. ConcurrentTransitionMixin
    turns every save into a conditional UPDATE filtered on the status that
    was read, so two writers racing on the same row cannot both win.

    State Flow:
        CREATED -> PAID -> REFUNDED
        CREATED -> FAILED

    Fields:
        internal_order_id: Human-facing order id, assigned at creation
        receipt_number: Assigned on the transition to PAID
        razorpay_order_id: Gateway order id, idempotency key for transitions
        amount: Server-computed charge in major currency units
        unit_price/unit_label: Pricing basis the amount was computed from
        failure_*: Populated only on FAILED
        refund_id/refunded_amount: Populated only on REFUNDED
    """

    # ==========================================================================
    # Identity
    # ==========================================================================

    internal_order_id = models.CharField(
        max_length=32,
        unique=True,
        default=generate_internal_order_id,
        editable=False,
        help_text="Human-facing order id (PYO-YYYY-XXXXXX)",
    )

    receipt_number = models.CharField(
        max_length=32,
        unique=True,
        null=True,
        blank=True,
        help_text="Receipt number (PYR-YYYYMMDD-XXXXXX), assigned when paid",
    )

    # ==========================================================================
    # Customer
    # ==========================================================================

    user_id = models.CharField(
        max_length=64,
        blank=True,
        default="",
        db_index=True,
        help_text="Content backend user id, when the buyer was signed in",
    )

    full_name = models.CharField(max_length=200)

    email = models.EmailField(
        db_index=True,
        help_text="Buyer email, stored lower-cased",
    )

    phone = models.CharField(max_length=32)

    # ==========================================================================
    # Product Reference
    # ==========================================================================

    checkout_type = models.CharField(
        max_length=20,
        choices=CheckoutType.choices,
        default=CheckoutType.PACKAGE,
    )

    package_id = models.CharField(
        max_length=64,
        blank=True,
        default="",
        help_text="Content backend id of the package or fixed departure",
    )

    package_slug = models.SlugField(max_length=200)

    package_title = models.CharField(max_length=255, blank=True, default="")

    destination = models.CharField(max_length=255, blank=True, default="")

    travel_date = models.DateField(
        null=True,
        blank=True,
        help_text="Selected departure or travel date, if any",
    )

    # ==========================================================================
    # Commercial Terms
    # ==========================================================================

    travellers = models.PositiveIntegerField(default=1)

    unit_price = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        help_text="Authoritative unit price resolved from the content backend",
    )

    unit_label = models.CharField(
        max_length=20,
        choices=UnitLabel.choices,
        default=UnitLabel.PER_PERSON,
    )

    amount = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        help_text="Server-computed charge in major currency units",
    )

    currency = models.CharField(
        max_length=3,
        default="INR",
        help_text="ISO 4217 currency code (uppercase)",
    )

    # ==========================================================================
    # Gateway Linkage
    # ==========================================================================

    razorpay_order_id = models.CharField(
        max_length=64,
        unique=True,
        help_text="Razorpay order id (order_xxx), idempotency key",
    )

    razorpay_payment_id = models.CharField(
        max_length=64,
        unique=True,
        null=True,
        blank=True,
        help_text="Razorpay payment id (pay_xxx)",
    )

    razorpay_signature = models.CharField(max_length=128, blank=True, default="")

    payment_method = models.CharField(max_length=32, blank=True, default="")

    # ==========================================================================
    # Status
    # ==========================================================================

    status = FSMField(
        default=PurchaseStatus.CREATED,
        choices=PurchaseStatus.choices,
        db_index=True,
        protected=True,
        help_text="Current status of the purchase (managed by FSM)",
    )

    paid_at = models.DateTimeField(null=True, blank=True)
    failed_at = models.DateTimeField(null=True, blank=True)
    refunded_at = models.DateTimeField(null=True, blank=True)

    # ==========================================================================
    # Failure Metadata
    # ==========================================================================

    failure_reason = models.CharField(max_length=500, blank=True, default="")
    failure_code = models.CharField(max_length=100, blank=True, default="")
    failure_source = models.CharField(max_length=100, blank=True, default="")
    failure_step = models.CharField(max_length=100, blank=True, default="")

    # ==========================================================================
    # Refund Metadata
    # ==========================================================================

    refund_id = models.CharField(
        max_length=64,
        unique=True,
        null=True,
        blank=True,
        help_text="Razorpay refund id (rfnd_xxx)",
    )

    refunded_amount = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        null=True,
        blank=True,
    )

    notes = models.TextField(
        blank=True,
        default="",
        help_text="Customer note, followed by any refund notes",
    )

    # ==========================================================================
    # Meta & Methods
    # ==========================================================================

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "Purchase"
        verbose_name_plural = "Purchases"
        indexes = [
            models.Index(fields=["status", "created_at"], name="purchase_status_created_idx"),
            models.Index(fields=["email", "created_at"], name="purchase_email_created_idx"),
        ]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(amount__gt=0),
                name="purchase_amount_positive",
            ),
            models.CheckConstraint(
                condition=models.Q(unit_price__gt=0),
                name="purchase_unit_price_positive",
            ),
            models.CheckConstraint(
                condition=models.Q(travellers__gte=1),
                name="purchase_travellers_at_least_one",
            ),
        ]

    def __str__(self) -> str:
        """Return string representation with order id, status, and amount."""
        return f"Purchase({self.internal_order_id}, {self.status}, {self.amount} {self.currency})"

    def save(self, *args, **kwargs):
        """Normalize email and currency casing before saving."""
        self.email = (self.email or "").strip().lower()
        self.currency = (self.currency or "").strip().upper()
        super().save(*args, **kwargs)

    # ==========================================================================
    # State Transitions (django-fsm)
    # ==========================================================================

    @transition(
        field=status,
        source=PurchaseStatus.CREATED,
        target=PurchaseStatus.PAID,
    )
    def mark_paid(self, payment_id: str, signature: str = "", payment_method: str = ""):
        """
        Record a verified payment.

        Transition: CREATED -> PAID

        Assigns a receipt number when the purchase does not have one yet.
        """
        self.razorpay_payment_id = payment_id
        self.razorpay_signature = signature or ""
        if payment_method:
            self.payment_method = payment_method
        self.paid_at = timezone.now()
        if not self.receipt_number:
            self.receipt_number = generate_receipt_number()

    @transition(
        field=status,
        source=PurchaseStatus.CREATED,
        target=PurchaseStatus.FAILED,
    )
    def mark_failed(
        self,
        reason: str = "",
        code: str = "",
        source: str = "",
        step: str = "",
        payment_id: str | None = None,
        payment_method: str = "",
    ):
        """
        Record a failed payment attempt.

        Transition: CREATED -> FAILED
        """
        self.failure_reason = (reason or "Payment failed")[:500]
        self.failure_code = (code or "")[:100]
        self.failure_source = (source or "")[:100]
        self.failure_step = (step or "")[:100]
        if payment_id and not self.razorpay_payment_id:
            self.razorpay_payment_id = payment_id
        if payment_method:
            self.payment_method = payment_method
        self.failed_at = timezone.now()

    @transition(
        field=status,
        source=PurchaseStatus.PAID,
        target=PurchaseStatus.REFUNDED,
    )
    def mark_refunded(self, refund_id: str, refunded_amount, notes: str = ""):
        """
        Record a completed gateway refund.

        Transition: PAID -> REFUNDED
        """
        self.refund_id = refund_id
        self.refunded_amount = refunded_amount
        self.refunded_at = timezone.now()
        if notes:
            self.notes = f"{self.notes}\nRefund: {notes}".strip()

    # ==========================================================================
    # Properties
    # ==========================================================================

    @property
    def is_paid(self) -> bool:
        """Check if the purchase has been paid (and not refunded)."""
        return self.status == PurchaseStatus.PAID

    @property
    def amount_minor(self) -> int:
        """Charge in the gateway's minor currency unit."""
        return int(self.amount * 100)
