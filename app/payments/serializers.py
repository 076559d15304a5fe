"""
Serializers for the payments API.

Request serializers accept the camelCase field names the checkout client
sends and expose snake_case validated data. No request serializer accepts
a price or amount for order creation; the charge is always computed on
the server.

Serializers:
    CreateOrderRequestSerializer: Checkout request
    CreateOrderResponseSerializer: Gateway order handed to the client
    VerifyPaymentRequestSerializer: Client-reported successful payment
    VerifyPaymentResponseSerializer: Verification and receipt outcome
    MarkFailedRequestSerializer: Client-reported failed payment
    RefundRequestSerializer: Admin refund request (schema only)
    RefundResponseSerializer: Refund outcome
    PurchaseSerializer: Read-only purchase details
    ErrorResponseSerializer: Error body shared by all endpoints

Usage:
    serializer = CreateOrderRequestSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
"""

from __future__ import annotations

from rest_framework import serializers

from payments.models import Purchase
from payments.state_machines import CheckoutType, RefundSpeed


# =============================================================================
# Shared
# =============================================================================


class ErrorResponseSerializer(serializers.Serializer):
    """Error body returned by payment endpoints."""

    message = serializers.CharField(help_text="Human-readable error description")
    error_code = serializers.CharField(required=False, help_text="Machine-readable error code")
    errors = serializers.DictField(required=False, help_text="Field-level errors")


# =============================================================================
# Create Order
# =============================================================================


class CreateOrderRequestSerializer(serializers.Serializer):
    """Checkout request. Any client-sent price fields are ignored."""

    fullName = serializers.CharField(source="full_name", max_length=200)
    email = serializers.EmailField()
    phone = serializers.CharField(max_length=32)
    packageSlug = serializers.CharField(source="package_slug", max_length=200, allow_blank=True)
    checkoutType = serializers.CharField(
        source="checkout_type",
        required=False,
        allow_blank=True,
        default=CheckoutType.PACKAGE,
        help_text="'package' or 'fixed-departure'; anything else is treated as 'package'",
    )
    selectedDepartureDate = serializers.CharField(
        source="selected_departure_date",
        required=False,
        allow_blank=True,
        allow_null=True,
        default=None,
    )
    travelDate = serializers.CharField(
        source="travel_date",
        required=False,
        allow_blank=True,
        allow_null=True,
        default=None,
    )
    travellers = serializers.IntegerField(required=False, default=1, help_text="Coerced to at least 1")
    customerNote = serializers.CharField(source="customer_note", required=False, allow_blank=True, default="")
    userId = serializers.CharField(source="user_id", required=False, allow_blank=True, default="")


class CreateOrderResponseSerializer(serializers.Serializer):
    orderId = serializers.CharField()
    amount = serializers.IntegerField(help_text="Amount in minor currency units (paise)")
    currency = serializers.CharField()
    key = serializers.CharField(help_text="Razorpay public key id")
    purchaseId = serializers.UUIDField(allow_null=True)
    internalOrderId = serializers.CharField(allow_null=True)
    receiptNumber = serializers.CharField(allow_null=True)


# =============================================================================
# Verify
# =============================================================================


class CustomerInfoSerializer(serializers.Serializer):
    fullName = serializers.CharField(required=False, allow_blank=True)
    email = serializers.CharField(required=False, allow_blank=True)
    phone = serializers.CharField(required=False, allow_blank=True)


class PackageInfoSerializer(serializers.Serializer):
    title = serializers.CharField(required=False, allow_blank=True)
    slug = serializers.CharField(required=False, allow_blank=True)
    destination = serializers.CharField(required=False, allow_blank=True)
    travelDate = serializers.CharField(required=False, allow_blank=True)
    travellers = serializers.IntegerField(required=False, min_value=1)
    unitLabel = serializers.CharField(required=False, allow_blank=True)
    unitPrice = serializers.DecimalField(required=False, max_digits=12, decimal_places=2)
    amount = serializers.DecimalField(required=False, max_digits=12, decimal_places=2)


class VerifyPaymentRequestSerializer(serializers.Serializer):
    """
    Client-reported successful payment.

    The three Razorpay fields are checked for presence by the service so
    that a missing secret is reported before a missing field.
    """

    razorpay_order_id = serializers.CharField(required=False, allow_blank=True, default="")
    razorpay_payment_id = serializers.CharField(required=False, allow_blank=True, default="")
    razorpay_signature = serializers.CharField(required=False, allow_blank=True, default="")
    purchaseId = serializers.CharField(source="purchase_id", required=False, allow_blank=True, allow_null=True)
    paymentMethod = serializers.CharField(source="payment_method", required=False, allow_blank=True, default="")
    customer = CustomerInfoSerializer(required=False)
    packageInfo = PackageInfoSerializer(source="package_info", required=False)


class VerifyPaymentResponseSerializer(serializers.Serializer):
    verified = serializers.BooleanField()
    orderId = serializers.CharField()
    paymentId = serializers.CharField()
    purchaseId = serializers.UUIDField(allow_null=True)
    internalOrderId = serializers.CharField(allow_null=True)
    receiptNumber = serializers.CharField(allow_null=True)
    status = serializers.CharField()
    travelDate = serializers.CharField()
    travellers = serializers.IntegerField()
    unitLabel = serializers.CharField()
    receiptEmailSentToCustomer = serializers.BooleanField()
    receiptEmailSentToAdmin = serializers.BooleanField()
    mailTransport = serializers.CharField(allow_blank=True)
    receiptEmailError = serializers.CharField(allow_blank=True)


# =============================================================================
# Mark Failed
# =============================================================================


class MarkFailedRequestSerializer(serializers.Serializer):
    """Client-reported failed payment. Needs a purchase id or an order id."""

    purchaseId = serializers.CharField(source="purchase_id", required=False, allow_blank=True, allow_null=True)
    razorpayOrderId = serializers.CharField(
        source="razorpay_order_id",
        required=False,
        allow_blank=True,
        allow_null=True,
    )
    razorpayPaymentId = serializers.CharField(
        source="razorpay_payment_id",
        required=False,
        allow_blank=True,
        allow_null=True,
    )
    failureReason = serializers.CharField(source="failure_reason", required=False, allow_blank=True, default="")
    failureCode = serializers.CharField(source="failure_code", required=False, allow_blank=True, default="")
    failureSource = serializers.CharField(source="failure_source", required=False, allow_blank=True, default="")
    failureStep = serializers.CharField(source="failure_step", required=False, allow_blank=True, default="")
    paymentMethod = serializers.CharField(source="payment_method", required=False, allow_blank=True, default="")

    def validate(self, attrs):
        if not attrs.get("purchase_id") and not attrs.get("razorpay_order_id"):
            raise serializers.ValidationError("purchaseId or razorpayOrderId is required")
        return attrs


# =============================================================================
# Refund
# =============================================================================


class RefundRequestSerializer(serializers.Serializer):
    """
    Admin refund request.

    Used for the API schema. The payload is validated by RefundService
    after the authorization gates so that unauthenticated callers learn
    nothing about the request format.
    """

    purchaseId = serializers.CharField(required=False)
    razorpayOrderId = serializers.CharField(required=False)
    razorpayPaymentId = serializers.CharField()
    amount = serializers.DecimalField(
        required=False,
        max_digits=12,
        decimal_places=2,
        help_text="Partial refund in major currency units; omit for a full refund",
    )
    speed = serializers.ChoiceField(choices=RefundSpeed.choices, required=False, default=RefundSpeed.NORMAL)
    notes = serializers.CharField(required=False, allow_blank=True)


class RefundResponseSerializer(serializers.Serializer):
    success = serializers.BooleanField()
    status = serializers.CharField()
    refundId = serializers.CharField()
    refundedAmount = serializers.DecimalField(max_digits=12, decimal_places=2)
    purchaseId = serializers.UUIDField(allow_null=True)
    internalOrderId = serializers.CharField(allow_null=True)


# =============================================================================
# Purchases
# =============================================================================


class PurchaseSerializer(serializers.ModelSerializer):
    """
    Read-only purchase details for internal consumers.

    The gateway signature is never exposed.
    """

    class Meta:
        model = Purchase
        fields = [
            "id",
            "internal_order_id",
            "receipt_number",
            "user_id",
            "full_name",
            "email",
            "phone",
            "checkout_type",
            "package_id",
            "package_slug",
            "package_title",
            "destination",
            "travel_date",
            "travellers",
            "unit_price",
            "unit_label",
            "amount",
            "currency",
            "razorpay_order_id",
            "razorpay_payment_id",
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
            "notes",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields
