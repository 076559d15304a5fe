"""
DRF views for the payments app.

This module provides API views for:
- Razorpay order creation with server-verified pricing
- Client-reported payment verification and receipts
- Client-reported payment failure
- Admin-gated refunds
- Internal purchase reads

Related files:
    - services/: Business logic for each endpoint
    - serializers.py: Request/response serializers
    - webhooks/: Razorpay webhook endpoint
    - urls.py: URL routing

Endpoints:
    POST /api/v1/payments/orders/ - Create Razorpay order
    POST /api/v1/payments/verify/ - Verify a completed payment
    POST /api/v1/payments/mark-failed/ - Record a failed payment
    POST /api/v1/payments/refund/ - Refund a payment (admin)
    GET /api/v1/payments/purchases/ - List purchases (internal token)
    GET /api/v1/payments/purchases/<id>/ - Purchase details (internal token)

Security:
    - Checkout endpoints are public; the amount is never taken from the client
    - Verify authenticates the payment by HMAC signature
    - Refund requires an admin bearer token plus a double-submit CSRF token
    - Purchase reads require the internal service token
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from django.shortcuts import get_object_or_404

from rest_framework import generics, status
from rest_framework.permissions import AllowAny
from rest_framework.response import Response
from rest_framework.views import APIView

from drf_spectacular.utils import OpenApiParameter, OpenApiResponse, extend_schema

from payments.adapters import ContentBackendClient, RazorpayAdapter
from payments.conf import get_payment_settings
from payments.models import Purchase
from payments.permissions import HasInternalServiceToken
from payments.serializers import (
    CreateOrderRequestSerializer,
    CreateOrderResponseSerializer,
    ErrorResponseSerializer,
    MarkFailedRequestSerializer,
    PurchaseSerializer,
    RefundRequestSerializer,
    RefundResponseSerializer,
    VerifyPaymentRequestSerializer,
    VerifyPaymentResponseSerializer,
)
from payments.services import (
    CheckoutRequest,
    OrderService,
    PurchaseService,
    RefundAuthorizer,
    RefundService,
    VerificationRequest,
    VerificationService,
)
from payments.state_machines import PurchaseStatus

if TYPE_CHECKING:
    from core.services import ServiceResult

logger = logging.getLogger(__name__)

CSRF_HEADER = "x-csrf-token"
CSRF_COOKIE = "csrf_token"

# Maps service error codes to HTTP statuses
ERROR_STATUS_CODES: dict[str, int] = {
    "PAYMENT_CONFIGURATION_ERROR": status.HTTP_500_INTERNAL_SERVER_ERROR,
    "VALIDATION_ERROR": status.HTTP_400_BAD_REQUEST,
    "MISSING_REFERENCE": status.HTTP_400_BAD_REQUEST,
    "PRICING_NOT_FOUND": status.HTTP_400_BAD_REQUEST,
    "PRICING_SOURCE_UNAVAILABLE": status.HTTP_502_BAD_GATEWAY,
    "INVALID_AMOUNT": status.HTTP_400_BAD_REQUEST,
    "INVALID_SIGNATURE": status.HTTP_400_BAD_REQUEST,
    "PURCHASE_NOT_FOUND": status.HTTP_404_NOT_FOUND,
    "PAYMENT_CONFLICT": status.HTTP_409_CONFLICT,
    "INVALID_STATE_TRANSITION": status.HTTP_409_CONFLICT,
    "GATEWAY_BAD_REQUEST": status.HTTP_400_BAD_REQUEST,
    "GATEWAY_UNAVAILABLE": status.HTTP_502_BAD_GATEWAY,
    "GATEWAY_TIMEOUT": status.HTTP_504_GATEWAY_TIMEOUT,
    "REFUND_API_DISABLED": status.HTTP_403_FORBIDDEN,
    "UNAUTHORIZED": status.HTTP_401_UNAUTHORIZED,
    "CSRF_FAILED": status.HTTP_403_FORBIDDEN,
    "INVALID_AUTH_TOKEN": status.HTTP_401_UNAUTHORIZED,
    "FORBIDDEN_ROLE": status.HTTP_403_FORBIDDEN,
    "REFUND_DB_UPDATE_FAILED": status.HTTP_502_BAD_GATEWAY,
}


def error_response(result: ServiceResult, **extra) -> Response:
    """Build the error Response for a failed ServiceResult."""
    body = {"message": result.error, "error_code": result.error_code, **extra}
    if result.errors:
        body["errors"] = result.errors
    if isinstance(result.data, dict):
        body.update(result.data)
    http_status = ERROR_STATUS_CODES.get(result.error_code or "", status.HTTP_400_BAD_REQUEST)
    return Response(body, status=http_status)


def validation_error_response(errors, **extra) -> Response:
    return Response(
        {"message": "Invalid request", "error_code": "VALIDATION_ERROR", "errors": errors, **extra},
        status=status.HTTP_400_BAD_REQUEST,
    )


# =============================================================================
# Checkout
# =============================================================================


class CreateOrderView(APIView):
    """
    Create a Razorpay order for a checkout.

    POST /api/v1/payments/orders/

    Request body:
        {
            "fullName": "Asha Rao",
            "email": "asha@example.com",
            "phone": "+919800000000",
            "packageSlug": "kedarnath-yatra",
            "checkoutType": "package",
            "travellers": 3
        }

    Returns:
        {"orderId": "order_xxx", "amount": 2000000, "currency": "INR", "key": "rzp_...",
         "purchaseId": "...", "internalOrderId": "PYO-...", "receiptNumber": null}
    """

    permission_classes = [AllowAny]
    authentication_classes = []

    @extend_schema(
        operation_id="payments_create_order",
        summary="Create Razorpay order",
        description=(
            "Resolves the authoritative unit price from the content backend, computes the "
            "charge on the server and creates a Razorpay order. Client-sent prices are ignored."
        ),
        request=CreateOrderRequestSerializer,
        responses={
            200: CreateOrderResponseSerializer,
            400: OpenApiResponse(response=ErrorResponseSerializer, description="Invalid request or pricing"),
            500: OpenApiResponse(response=ErrorResponseSerializer, description="Gateway not configured"),
            502: OpenApiResponse(response=ErrorResponseSerializer, description="Gateway or pricing source failed"),
        },
        tags=["Payments"],
    )
    def post(self, request):
        serializer = CreateOrderRequestSerializer(data=request.data)
        if not serializer.is_valid():
            return validation_error_response(serializer.errors)

        service = OrderService.from_settings(get_payment_settings())
        result = service.create_order(CheckoutRequest(**serializer.validated_data))
        if not result.success:
            return error_response(result)
        return Response(result.data)


class VerifyPaymentView(APIView):
    """
    Verify a client-reported successful payment.

    POST /api/v1/payments/verify/

    Request body:
        {
            "razorpay_order_id": "order_xxx",
            "razorpay_payment_id": "pay_xxx",
            "razorpay_signature": "hex",
            "purchaseId": "...",
            "customer": {...},
            "packageInfo": {...}
        }

    Returns:
        {"verified": true, "status": "paid", "receiptNumber": "PYR-...", ...}
        {"verified": false, "message": "Invalid payment signature"} with 400
    """

    permission_classes = [AllowAny]
    authentication_classes = []

    @extend_schema(
        operation_id="payments_verify",
        summary="Verify payment signature",
        request=VerifyPaymentRequestSerializer,
        responses={
            200: VerifyPaymentResponseSerializer,
            400: OpenApiResponse(response=ErrorResponseSerializer, description="Missing fields or invalid signature"),
            500: OpenApiResponse(response=ErrorResponseSerializer, description="Key secret not configured"),
        },
        tags=["Payments"],
    )
    def post(self, request):
        serializer = VerifyPaymentRequestSerializer(data=request.data)
        if not serializer.is_valid():
            return validation_error_response(serializer.errors, verified=False)

        data = serializer.validated_data
        service = VerificationService.from_settings(get_payment_settings())
        result = service.verify(
            VerificationRequest(
                razorpay_order_id=data["razorpay_order_id"],
                razorpay_payment_id=data["razorpay_payment_id"],
                razorpay_signature=data["razorpay_signature"],
                purchase_id=data.get("purchase_id") or None,
                payment_method=data.get("payment_method", ""),
                customer=dict(data.get("customer") or {}),
                package_info=dict(data.get("package_info") or {}),
            )
        )
        if not result.success:
            return error_response(result, verified=False)
        return Response(result.data)


class MarkFailedView(APIView):
    """
    Record a client-reported payment failure.

    POST /api/v1/payments/mark-failed/

    Returns:
        {"success": true, "status": "failed", "purchaseId": "...", "internalOrderId": "PYO-..."}
        409 when the purchase is already paid
    """

    permission_classes = [AllowAny]
    authentication_classes = []

    @extend_schema(
        operation_id="payments_mark_failed",
        summary="Record failed payment",
        request=MarkFailedRequestSerializer,
        responses={
            200: OpenApiResponse(description="Purchase marked failed (or already failed)"),
            400: OpenApiResponse(response=ErrorResponseSerializer, description="No purchase reference"),
            404: OpenApiResponse(response=ErrorResponseSerializer, description="Purchase not found"),
            409: OpenApiResponse(response=ErrorResponseSerializer, description="Purchase already paid"),
        },
        tags=["Payments"],
    )
    def post(self, request):
        serializer = MarkFailedRequestSerializer(data=request.data)
        if not serializer.is_valid():
            return validation_error_response(serializer.errors)

        data = serializer.validated_data
        result = PurchaseService.mark_failed(
            razorpay_order_id=data.get("razorpay_order_id") or None,
            purchase_id=data.get("purchase_id") or None,
            razorpay_payment_id=data.get("razorpay_payment_id") or None,
            payment_method=data["payment_method"],
            failure_code=data["failure_code"],
            failure_reason=data["failure_reason"],
            failure_source=data["failure_source"],
            failure_step=data["failure_step"],
        )
        if not result.success:
            return error_response(result)

        purchase = result.data.purchase
        return Response(
            {
                "success": True,
                "status": purchase.status or PurchaseStatus.FAILED.value,
                "purchaseId": str(purchase.id),
                "internalOrderId": purchase.internal_order_id,
            }
        )


# =============================================================================
# Refund
# =============================================================================


class RefundView(APIView):
    """
    Refund a captured payment.

    POST /api/v1/payments/refund/

    Headers:
        Authorization: Bearer <admin token>
        x-csrf-token: <must equal the csrf_token cookie>

    Returns:
        {"success": true, "status": "refunded", "refundId": "rfnd_xxx",
         "refundedAmount": "1500.00", "purchaseId": "..."}
    """

    permission_classes = [AllowAny]
    authentication_classes = []  # Bearer token is checked against the content backend

    @extend_schema(
        operation_id="payments_refund",
        summary="Refund payment (admin)",
        request=RefundRequestSerializer,
        parameters=[
            OpenApiParameter(name=CSRF_HEADER, location=OpenApiParameter.HEADER, required=True),
        ],
        responses={
            200: RefundResponseSerializer,
            400: OpenApiResponse(response=ErrorResponseSerializer, description="Invalid refund request"),
            401: OpenApiResponse(response=ErrorResponseSerializer, description="Missing or invalid bearer token"),
            403: OpenApiResponse(response=ErrorResponseSerializer, description="Disabled, CSRF failure or not admin"),
            502: OpenApiResponse(
                response=ErrorResponseSerializer,
                description="Refunded at the gateway but the purchase could not be updated",
            ),
        },
        tags=["Payments"],
    )
    def post(self, request):
        payment_settings = get_payment_settings()

        authorization = RefundAuthorizer(payment_settings, ContentBackendClient(payment_settings)).authorize(
            authorization=request.headers.get("Authorization"),
            csrf_header=request.headers.get(CSRF_HEADER),
            csrf_cookie=request.COOKIES.get(CSRF_COOKIE),
        )
        if not authorization.success:
            return error_response(authorization)

        service = RefundService(payment_settings, RazorpayAdapter(payment_settings))
        result = service.refund(authorization.data, request.data)
        if not result.success:
            return error_response(result)
        return Response(result.data)


# =============================================================================
# Internal Purchase API
# =============================================================================


class PurchaseListView(generics.ListAPIView):
    """
    List purchases for trusted services.

    GET /api/v1/payments/purchases/?email=&user_id=&status=
    """

    serializer_class = PurchaseSerializer
    permission_classes = [HasInternalServiceToken]
    authentication_classes = []

    @extend_schema(
        operation_id="payments_purchases_list",
        summary="List purchases (internal)",
        parameters=[
            OpenApiParameter(name="email", type=str, required=False),
            OpenApiParameter(name="user_id", type=str, required=False),
            OpenApiParameter(name="status", type=str, enum=PurchaseStatus.values, required=False),
        ],
        tags=["Payments - Internal"],
    )
    def get(self, request, *args, **kwargs):
        return super().get(request, *args, **kwargs)

    def get_queryset(self):
        queryset = Purchase.objects.all()
        params = self.request.query_params
        if params.get("email"):
            queryset = queryset.filter(email=params["email"].strip().lower())
        if params.get("user_id"):
            queryset = queryset.filter(user_id=params["user_id"])
        if params.get("status"):
            queryset = queryset.filter(status=params["status"])
        return queryset.order_by("-created_at")


class PurchaseDetailView(APIView):
    """
    Get one purchase for trusted services.

    GET /api/v1/payments/purchases/<id>/
    """

    permission_classes = [HasInternalServiceToken]
    authentication_classes = []

    @extend_schema(
        operation_id="payments_purchases_retrieve",
        summary="Get purchase (internal)",
        responses={200: PurchaseSerializer, 404: OpenApiResponse(description="Purchase not found")},
        tags=["Payments - Internal"],
    )
    def get(self, request, purchase_id):
        purchase = get_object_or_404(Purchase, pk=purchase_id)
        return Response(PurchaseSerializer(purchase).data)
