"""
Payment admin configuration.

Registers Purchase and WebhookEvent with the Django admin. Both are
read-mostly: purchase status only moves through the service layer, and
webhook deliveries are an audit trail.
"""

from django.contrib import admin

from payments.models import Purchase, WebhookEvent

__all__ = [
    "PurchaseAdmin",
    "WebhookEventAdmin",
]


@admin.register(Purchase)
class PurchaseAdmin(admin.ModelAdmin):
    """
    Admin configuration for Purchase.

    Status and gateway fields are read-only; transitions happen through
    PurchaseService so the compare-and-swap guarantees hold.
    """

    list_display = [
        "internal_order_id",
        "email",
        "package_title",
        "amount",
        "currency",
        "status",
        "razorpay_order_id",
        "paid_at",
        "created_at",
    ]
    list_filter = ["status", "checkout_type", "currency", "created_at"]
    search_fields = [
        "id",
        "internal_order_id",
        "receipt_number",
        "email",
        "phone",
        "razorpay_order_id",
        "razorpay_payment_id",
        "refund_id",
    ]
    readonly_fields = [
        "id",
        "internal_order_id",
        "receipt_number",
        "checkout_type",
        "package_id",
        "package_slug",
        "unit_price",
        "unit_label",
        "travellers",
        "amount",
        "currency",
        "razorpay_order_id",
        "razorpay_payment_id",
        "razorpay_signature",
        "payment_method",
        "status",
        "paid_at",
        "failed_at",
        "refunded_at",
        "failure_reason",
        "failure_code",
        "failure_source",
        "failure_step",
        "refund_id",
        "refunded_amount",
        "created_at",
        "updated_at",
    ]
    date_hierarchy = "created_at"
    ordering = ["-created_at"]

    fieldsets = (
        (
            None,
            {
                "fields": ("id", "internal_order_id", "receipt_number", "status"),
            },
        ),
        (
            "Customer",
            {
                "fields": ("user_id", "full_name", "email", "phone", "notes"),
            },
        ),
        (
            "Package",
            {
                "fields": (
                    "checkout_type",
                    "package_id",
                    "package_slug",
                    "package_title",
                    "destination",
                    "travel_date",
                ),
            },
        ),
        (
            "Charge",
            {
                "fields": ("travellers", "unit_price", "unit_label", "amount", "currency"),
            },
        ),
        (
            "Gateway",
            {
                "fields": (
                    "razorpay_order_id",
                    "razorpay_payment_id",
                    "razorpay_signature",
                    "payment_method",
                ),
            },
        ),
        (
            "Failure",
            {
                "fields": ("failure_reason", "failure_code", "failure_source", "failure_step"),
                "classes": ("collapse",),
            },
        ),
        (
            "Refund",
            {
                "fields": ("refund_id", "refunded_amount"),
                "classes": ("collapse",),
            },
        ),
        (
            "Timestamps",
            {
                "fields": ("created_at", "paid_at", "failed_at", "refunded_at", "updated_at"),
            },
        ),
    )

    def has_delete_permission(self, request, obj=None) -> bool:
        """Purchases are never deleted."""
        return False

    def has_add_permission(self, request) -> bool:
        """Purchases are only created by checkout."""
        return False


@admin.register(WebhookEvent)
class WebhookEventAdmin(admin.ModelAdmin):
    """
    Admin configuration for WebhookEvent.

    Provides visibility into webhook processing status.
    Webhook events are immutable once received.
    """

    list_display = [
        "id",
        "event_id",
        "event_type",
        "status",
        "razorpay_order_id",
        "delivery_count",
        "processed_at",
        "created_at",
    ]
    list_filter = ["status", "event_type", "created_at"]
    search_fields = ["id", "event_id", "razorpay_order_id", "razorpay_payment_id", "purchase_reference"]
    readonly_fields = [
        "id",
        "created_at",
        "updated_at",
        "event_id",
        "event_type",
        "payload",
        "razorpay_order_id",
        "razorpay_payment_id",
        "purchase_reference",
        "outcome",
        "processed_at",
        "delivery_count",
    ]
    date_hierarchy = "created_at"
    ordering = ["-created_at"]

    fieldsets = (
        (
            None,
            {
                "fields": ("id", "event_id", "event_type", "status"),
            },
        ),
        (
            "Correlation",
            {
                "fields": ("razorpay_order_id", "razorpay_payment_id", "purchase_reference"),
            },
        ),
        (
            "Processing",
            {
                "fields": ("processed_at", "delivery_count", "outcome"),
            },
        ),
        (
            "Error Info",
            {
                "fields": ("error_message",),
                "classes": ("collapse",),
            },
        ),
        (
            "Payload",
            {
                "fields": ("payload",),
                "classes": ("collapse",),
            },
        ),
        (
            "Timestamps",
            {
                "fields": ("created_at", "updated_at"),
            },
        ),
    )

    def has_delete_permission(self, request, obj=None) -> bool:
        """Disable delete for webhook events (audit trail)."""
        return False

    def has_add_permission(self, request) -> bool:
        """Disable adding webhook events through admin."""
        return False
