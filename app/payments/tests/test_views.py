"""
API tests for the checkout, verify, mark-failed and refund endpoints.

Gateway and content backend adapters are mocked at the view module so
requests exercise the real serializers, services and error mapping.
"""

from decimal import Decimal
from unittest.mock import MagicMock, patch

import pytest
from django.db import DatabaseError
from django.urls import reverse

from core.services import ServiceResult

from payments.adapters import OrderResult, RefundResult
from payments.exceptions import ContentBackendError, GatewayTimeoutError
from payments.models import Purchase
from payments.services import OrderService
from payments.services.pricing_service import ResolvedPricing
from payments.state_machines import PriceType, PurchaseStatus

CREATE_ORDER_URL = reverse("payments:create-order")
VERIFY_URL = reverse("payments:verify")
MARK_FAILED_URL = reverse("payments:mark-failed")
REFUND_URL = reverse("payments:refund")


@pytest.fixture
def order_gateway():
    gateway = MagicMock()
    gateway.create_order.return_value = OrderResult(id="order_view_1", amount_minor=3000000, currency="INR")
    return gateway


@pytest.fixture
def order_pricing():
    pricing = MagicMock()
    pricing.resolve.return_value = ServiceResult.success(
        ResolvedPricing(
            product_id="pkg_1",
            price=Decimal("15000"),
            price_type=PriceType.PER_PERSON,
            title="Kedarnath Yatra",
            destination="Uttarakhand",
        )
    )
    return pricing


@pytest.fixture
def order_service(use_payment_settings, order_gateway, order_pricing):
    service = OrderService(use_payment_settings, gateway=order_gateway, pricing=order_pricing)
    with patch("payments.views.OrderService.from_settings", return_value=service):
        yield service


def checkout_body(**overrides):
    body = {
        "fullName": "Asha Rao",
        "email": "asha@example.com",
        "phone": "+919800000000",
        "packageSlug": "kedarnath-yatra",
        "travellers": 2,
    }
    body.update(overrides)
    return body


# =============================================================================
# Create Order
# =============================================================================


@pytest.mark.django_db
class TestCreateOrderView:
    """Tests for POST /api/v1/payments/orders/."""

    def test_creates_order(self, api_client, order_service, order_gateway):
        response = api_client.post(CREATE_ORDER_URL, checkout_body(), format="json")

        assert response.status_code == 200
        body = response.json()
        assert body["orderId"] == "order_view_1"
        assert body["amount"] == 3000000
        assert body["key"] == "rzp_test_key"
        assert body["internalOrderId"].startswith("PYO-")
        assert Purchase.objects.filter(razorpay_order_id="order_view_1").exists()

    def test_client_price_ignored(self, api_client, order_service, order_gateway):
        """Price-like fields in the body never reach the gateway."""
        response = api_client.post(
            CREATE_ORDER_URL,
            checkout_body(amount=1, price=1, unitPrice=1),
            format="json",
        )

        assert response.status_code == 200
        assert order_gateway.create_order.call_args.kwargs["amount_minor"] == 3000000

    def test_invalid_body(self, api_client, order_service):
        response = api_client.post(CREATE_ORDER_URL, {"fullName": "Asha"}, format="json")

        assert response.status_code == 400
        body = response.json()
        assert body["error_code"] == "VALIDATION_ERROR"
        assert "email" in body["errors"]

    def test_pricing_not_found(self, api_client, order_service, order_pricing):
        order_pricing.resolve.return_value = ServiceResult.failure(
            "Unable to verify package pricing", error_code="PRICING_NOT_FOUND"
        )

        response = api_client.post(CREATE_ORDER_URL, checkout_body(), format="json")

        assert response.status_code == 400
        assert response.json()["error_code"] == "PRICING_NOT_FOUND"

    def test_pricing_source_unavailable(self, api_client, order_service, order_pricing):
        order_pricing.resolve.return_value = ServiceResult.from_exception(
            ContentBackendError("Pricing service is unavailable. Please try again.", error_code="PRICING_SOURCE_UNAVAILABLE")
        )

        response = api_client.post(CREATE_ORDER_URL, checkout_body(), format="json")

        assert response.status_code == 502

    def test_gateway_timeout(self, api_client, order_service, order_gateway):
        order_gateway.create_order.side_effect = GatewayTimeoutError("Payment gateway timed out. Please retry.")

        response = api_client.post(CREATE_ORDER_URL, checkout_body(), format="json")

        assert response.status_code == 504
        assert response.json()["error_code"] == "GATEWAY_TIMEOUT"

    def test_missing_credentials(self, api_client, settings, db):
        """Without gateway keys the endpoint answers 500 before pricing anything."""
        settings.RAZORPAY_KEY_ID = ""
        settings.RAZORPAY_KEY_SECRET = ""

        response = api_client.post(CREATE_ORDER_URL, checkout_body(), format="json")

        assert response.status_code == 500
        assert response.json()["error_code"] == "PAYMENT_CONFIGURATION_ERROR"


# =============================================================================
# Verify
# =============================================================================


@pytest.mark.django_db
class TestVerifyPaymentView:
    """Tests for POST /api/v1/payments/verify/."""

    def test_verifies_and_marks_paid(self, api_client, use_payment_settings, created_purchase, sign_payment):
        order_id = created_purchase.razorpay_order_id
        response = api_client.post(
            VERIFY_URL,
            {
                "razorpay_order_id": order_id,
                "razorpay_payment_id": "pay_view_1",
                "razorpay_signature": sign_payment(order_id, "pay_view_1"),
                "purchaseId": str(created_purchase.pk),
                "paymentMethod": "card",
            },
            format="json",
        )

        assert response.status_code == 200
        body = response.json()
        assert body["verified"] is True
        assert body["status"] == PurchaseStatus.PAID
        assert body["receiptNumber"].startswith("PYR-")
        assert Purchase.objects.get(pk=created_purchase.pk).status == PurchaseStatus.PAID

    def test_invalid_signature(self, api_client, use_payment_settings, created_purchase):
        response = api_client.post(
            VERIFY_URL,
            {
                "razorpay_order_id": created_purchase.razorpay_order_id,
                "razorpay_payment_id": "pay_view_1",
                "razorpay_signature": "deadbeef",
            },
            format="json",
        )

        assert response.status_code == 400
        assert response.json()["verified"] is False
        assert response.json()["error_code"] == "INVALID_SIGNATURE"
        assert Purchase.objects.get(pk=created_purchase.pk).status == PurchaseStatus.CREATED

    def test_missing_fields(self, api_client, use_payment_settings):
        response = api_client.post(VERIFY_URL, {"razorpay_order_id": "order_1"}, format="json")

        assert response.status_code == 400
        body = response.json()
        assert body["verified"] is False
        assert set(body["errors"]) == {"razorpay_payment_id", "razorpay_signature"}


# =============================================================================
# Mark Failed
# =============================================================================


@pytest.mark.django_db
class TestMarkFailedView:
    """Tests for POST /api/v1/payments/mark-failed/."""

    def test_marks_failed(self, api_client, created_purchase):
        response = api_client.post(
            MARK_FAILED_URL,
            {
                "razorpayOrderId": created_purchase.razorpay_order_id,
                "failureReason": "Payment cancelled by user",
                "failureCode": "PAYMENT_CANCELLED",
            },
            format="json",
        )

        assert response.status_code == 200
        assert response.json()["status"] == PurchaseStatus.FAILED
        stored = Purchase.objects.get(pk=created_purchase.pk)
        assert stored.failure_code == "PAYMENT_CANCELLED"

    def test_requires_reference(self, api_client, db):
        response = api_client.post(MARK_FAILED_URL, {"failureReason": "x"}, format="json")

        assert response.status_code == 400

    def test_unknown_purchase(self, api_client, db):
        response = api_client.post(MARK_FAILED_URL, {"razorpayOrderId": "order_missing"}, format="json")

        assert response.status_code == 404
        assert response.json()["error_code"] == "PURCHASE_NOT_FOUND"

    def test_paid_purchase_conflict(self, api_client, paid_purchase):
        response = api_client.post(MARK_FAILED_URL, {"purchaseId": str(paid_purchase.pk)}, format="json")

        assert response.status_code == 409
        assert response.json()["error_code"] == "PAYMENT_CONFLICT"
        assert Purchase.objects.get(pk=paid_purchase.pk).status == PurchaseStatus.PAID


# =============================================================================
# Refund
# =============================================================================


@pytest.mark.django_db
class TestRefundView:
    """Tests for POST /api/v1/payments/refund/."""

    @pytest.fixture
    def content_backend(self):
        backend = MagicMock()
        backend.get_profile.return_value = {"_id": "u_admin", "email": "ops@paradiseyatra.test", "role": "admin"}
        with patch("payments.views.ContentBackendClient", return_value=backend):
            yield backend

    @pytest.fixture
    def gateway(self):
        gateway = MagicMock()
        gateway.refund_payment.return_value = RefundResult(
            id="rfnd_view_1",
            payment_id="pay_test_paid",
            amount_minor=3000000,
            currency="INR",
            status="processed",
        )
        with patch("payments.views.RazorpayAdapter", return_value=gateway):
            yield gateway

    def _post(self, api_client, body, csrf="csrf-abc", cookie="csrf-abc", token="admin-token"):
        if cookie is not None:
            api_client.cookies["csrf_token"] = cookie
        headers = {}
        if token:
            headers["HTTP_AUTHORIZATION"] = f"Bearer {token}"
        if csrf:
            headers["HTTP_X_CSRF_TOKEN"] = csrf
        return api_client.post(REFUND_URL, body, format="json", **headers)

    def test_refunds(self, api_client, use_payment_settings, content_backend, gateway, paid_purchase):
        response = self._post(api_client, {"purchaseId": str(paid_purchase.pk), "razorpayPaymentId": "pay_test_paid"})

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["refundId"] == "rfnd_view_1"
        assert body["status"] == PurchaseStatus.REFUNDED
        assert Purchase.objects.get(pk=paid_purchase.pk).status == PurchaseStatus.REFUNDED

    def test_disabled(self, api_client, settings, content_backend, gateway):
        settings.ENABLE_REFUND_API = False

        response = self._post(api_client, {"razorpayPaymentId": "pay_test_paid"})

        assert response.status_code == 403
        assert response.json()["error_code"] == "REFUND_API_DISABLED"

    def test_missing_token(self, api_client, use_payment_settings, content_backend, gateway):
        response = self._post(api_client, {"razorpayPaymentId": "pay_test_paid"}, token="")

        assert response.status_code == 401

    def test_csrf_mismatch(self, api_client, use_payment_settings, content_backend, gateway):
        response = self._post(api_client, {"razorpayPaymentId": "pay_test_paid"}, cookie="other")

        assert response.status_code == 403
        assert response.json()["error_code"] == "CSRF_FAILED"
        content_backend.get_profile.assert_not_called()

    def test_non_admin(self, api_client, use_payment_settings, content_backend, gateway):
        content_backend.get_profile.return_value = {"role": "user"}

        response = self._post(api_client, {"razorpayPaymentId": "pay_test_paid"})

        assert response.status_code == 403
        assert response.json()["error_code"] == "FORBIDDEN_ROLE"
        gateway.refund_payment.assert_not_called()

    def test_bad_body_after_gates(self, api_client, use_payment_settings, content_backend, gateway):
        response = self._post(api_client, {"amount": "abc"})

        assert response.status_code == 400
        assert response.json()["error_code"] == "VALIDATION_ERROR"

    def test_unpaid_purchase_conflict(self, api_client, use_payment_settings, content_backend, gateway, created_purchase):
        response = self._post(api_client, {"purchaseId": str(created_purchase.pk), "razorpayPaymentId": "pay_x"})

        assert response.status_code == 409
        assert response.json()["error_code"] == "PAYMENT_CONFLICT"
        gateway.refund_payment.assert_not_called()

    def test_db_update_failure(self, api_client, use_payment_settings, content_backend, gateway, paid_purchase):
        with patch(
            "payments.services.refund_service.PurchaseService.mark_refunded",
            side_effect=DatabaseError("connection lost"),
        ):
            response = self._post(
                api_client, {"purchaseId": str(paid_purchase.pk), "razorpayPaymentId": "pay_test_paid"}
            )

        assert response.status_code == 502
        body = response.json()
        assert body["error_code"] == "REFUND_DB_UPDATE_FAILED"
        assert body["refundId"] == "rfnd_view_1"
