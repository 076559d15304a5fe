import uuid

import django_fsm
from django.db import migrations, models

import payments.models.purchase


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="Purchase",
            fields=[
                (
                    "id",
                    models.UUIDField(
                        default=uuid.uuid4,
                        editable=False,
                        help_text="Unique identifier for this record",
                        primary_key=True,
                        serialize=False,
                    ),
                ),
                (
                    "created_at",
                    models.DateTimeField(
                        auto_now_add=True,
                        db_index=True,
                        help_text="Timestamp when this record was created",
                    ),
                ),
                (
                    "updated_at",
                    models.DateTimeField(
                        auto_now=True,
                        help_text="Timestamp when this record was last modified",
                    ),
                ),
                (
                    "internal_order_id",
                    models.CharField(
                        default=payments.models.purchase.generate_internal_order_id,
                        editable=False,
                        help_text="Human-facing order id (PYO-YYYY-XXXXXX)",
                        max_length=32,
                        unique=True,
                    ),
                ),
                (
                    "receipt_number",
                    models.CharField(
                        blank=True,
                        help_text="Receipt number (PYR-YYYYMMDD-XXXXXX), assigned when paid",
                        max_length=32,
                        null=True,
                        unique=True,
                    ),
                ),
                (
                    "user_id",
                    models.CharField(
                        blank=True,
                        db_index=True,
                        default="",
                        help_text="Content backend user id, when the buyer was signed in",
                        max_length=64,
                    ),
                ),
                ("full_name", models.CharField(max_length=200)),
                (
                    "email",
                    models.EmailField(
                        db_index=True,
                        help_text="Buyer email, stored lower-cased",
                        max_length=254,
                    ),
                ),
                ("phone", models.CharField(max_length=32)),
                (
                    "checkout_type",
                    models.CharField(
                        choices=[
                            ("package", "Package"),
                            ("fixed-departure", "Fixed Departure"),
                        ],
                        default="package",
                        max_length=20,
                    ),
                ),
                (
                    "package_id",
                    models.CharField(
                        blank=True,
                        default="",
                        help_text="Content backend id of the package or fixed departure",
                        max_length=64,
                    ),
                ),
                ("package_slug", models.SlugField(max_length=200)),
                (
                    "package_title",
                    models.CharField(blank=True, default="", max_length=255),
                ),
                (
                    "destination",
                    models.CharField(blank=True, default="", max_length=255),
                ),
                (
                    "travel_date",
                    models.DateField(
                        blank=True,
                        help_text="Selected departure or travel date, if any",
                        null=True,
                    ),
                ),
                ("travellers", models.PositiveIntegerField(default=1)),
                (
                    "unit_price",
                    models.DecimalField(
                        decimal_places=2,
                        help_text="Authoritative unit price resolved from the content backend",
                        max_digits=12,
                    ),
                ),
                (
                    "unit_label",
                    models.CharField(
                        choices=[
                            ("Per Person", "Per Person"),
                            ("Per Couple", "Per Couple"),
                        ],
                        default="Per Person",
                        max_length=20,
                    ),
                ),
                (
                    "amount",
                    models.DecimalField(
                        decimal_places=2,
                        help_text="Server-computed charge in major currency units",
                        max_digits=12,
                    ),
                ),
                (
                    "currency",
                    models.CharField(
                        default="INR",
                        help_text="ISO 4217 currency code (uppercase)",
                        max_length=3,
                    ),
                ),
                (
                    "razorpay_order_id",
                    models.CharField(
                        help_text="Razorpay order id (order_xxx), idempotency key",
                        max_length=64,
                        unique=True,
                    ),
                ),
                (
                    "razorpay_payment_id",
                    models.CharField(
                        blank=True,
                        help_text="Razorpay payment id (pay_xxx)",
                        max_length=64,
                        null=True,
                        unique=True,
                    ),
                ),
                (
                    "razorpay_signature",
                    models.CharField(blank=True, default="", max_length=128),
                ),
                (
                    "payment_method",
                    models.CharField(blank=True, default="", max_length=32),
                ),
                (
                    "status",
                    django_fsm.FSMField(
                        choices=[
                            ("created", "Created"),
                            ("paid", "Paid"),
                            ("failed", "Failed"),
                            ("refunded", "Refunded"),
                        ],
                        db_index=True,
                        default="created",
                        help_text="Current status of the purchase (managed by FSM)",
                        max_length=50,
                        protected=True,
                    ),
                ),
                ("paid_at", models.DateTimeField(blank=True, null=True)),
                ("failed_at", models.DateTimeField(blank=True, null=True)),
                ("refunded_at", models.DateTimeField(blank=True, null=True)),
                (
                    "failure_reason",
                    models.CharField(blank=True, default="", max_length=500),
                ),
                (
                    "failure_code",
                    models.CharField(blank=True, default="", max_length=100),
                ),
                (
                    "failure_source",
                    models.CharField(blank=True, default="", max_length=100),
                ),
                (
                    "failure_step",
                    models.CharField(blank=True, default="", max_length=100),
                ),
                (
                    "refund_id",
                    models.CharField(
                        blank=True,
                        help_text="Razorpay refund id (rfnd_xxx)",
                        max_length=64,
                        null=True,
                        unique=True,
                    ),
                ),
                (
                    "refunded_amount",
                    models.DecimalField(
                        blank=True, decimal_places=2, max_digits=12, null=True
                    ),
                ),
                (
                    "notes",
                    models.TextField(
                        blank=True,
                        default="",
                        help_text="Customer note, followed by any refund notes",
                    ),
                ),
            ],
            options={
                "verbose_name": "Purchase",
                "verbose_name_plural": "Purchases",
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(
                        fields=["status", "created_at"],
                        name="purchase_status_created_idx",
                    ),
                    models.Index(
                        fields=["email", "created_at"],
                        name="purchase_email_created_idx",
                    ),
                ],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(("amount__gt", 0)),
                        name="purchase_amount_positive",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(("unit_price__gt", 0)),
                        name="purchase_unit_price_positive",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(("travellers__gte", 1)),
                        name="purchase_travellers_at_least_one",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="WebhookEvent",
            fields=[
                (
                    "id",
                    models.UUIDField(
                        default=uuid.uuid4,
                        editable=False,
                        help_text="Unique identifier for this record",
                        primary_key=True,
                        serialize=False,
                    ),
                ),
                (
                    "created_at",
                    models.DateTimeField(
                        auto_now_add=True,
                        db_index=True,
                        help_text="Timestamp when this record was created",
                    ),
                ),
                (
                    "updated_at",
                    models.DateTimeField(
                        auto_now=True,
                        help_text="Timestamp when this record was last modified",
                    ),
                ),
                (
                    "event_id",
                    models.CharField(
                        blank=True,
                        help_text="x-razorpay-event-id header, unique per gateway event",
                        max_length=64,
                        null=True,
                        unique=True,
                    ),
                ),
                (
                    "event_type",
                    models.CharField(
                        db_index=True,
                        help_text="Gateway event name (e.g., 'payment.captured')",
                        max_length=100,
                    ),
                ),
                ("payload", models.JSONField(help_text="Parsed webhook body")),
                (
                    "razorpay_order_id",
                    models.CharField(
                        blank=True, db_index=True, default="", max_length=64
                    ),
                ),
                (
                    "razorpay_payment_id",
                    models.CharField(blank=True, default="", max_length=64),
                ),
                (
                    "purchase_reference",
                    models.CharField(
                        blank=True,
                        default="",
                        help_text="Purchase id embedded in the payment notes, if any",
                        max_length=64,
                    ),
                ),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("pending", "Pending"),
                            ("processed", "Processed"),
                            ("ignored", "Ignored"),
                            ("failed", "Failed"),
                        ],
                        db_index=True,
                        default="pending",
                        max_length=20,
                    ),
                ),
                (
                    "outcome",
                    models.JSONField(
                        blank=True,
                        default=dict,
                        help_text="Response body returned to the gateway for this event",
                    ),
                ),
                ("processed_at", models.DateTimeField(blank=True, null=True)),
                ("error_message", models.TextField(blank=True, default="")),
                (
                    "delivery_count",
                    models.PositiveSmallIntegerField(
                        default=1,
                        help_text="Number of times the gateway delivered this event",
                    ),
                ),
            ],
            options={
                "verbose_name": "Webhook Event",
                "verbose_name_plural": "Webhook Events",
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(
                        fields=["status", "created_at"],
                        name="webhook_status_created_idx",
                    ),
                    models.Index(
                        fields=["event_type", "created_at"],
                        name="webhook_type_created_idx",
                    ),
                ],
            },
        ),
    ]
