"""
Tests for Razorpay adapter.

Tests cover:
- Receipt token format
- Lazy client construction and missing credentials
- Successful order and refund calls
- Error translation for each exception type
"""

from unittest.mock import patch

import pytest
import requests
from razorpay.errors import BadRequestError, GatewayError, ServerError

from payments.adapters import OrderResult, RazorpayAdapter, RefundResult, build_receipt_token
from payments.conf import PaymentSettings
from payments.exceptions import (
    GatewayBadRequestError,
    GatewayTimeoutError,
    GatewayUnavailableError,
    PaymentConfigurationError,
)


# =============================================================================
# Receipt Token Tests
# =============================================================================


class TestBuildReceiptToken:
    """Tests for build_receipt_token."""

    def test_format(self):
        assert build_receipt_token(1760868000000) == "rcpt_1760868000000"

    def test_capped_at_forty_characters(self):
        assert len(build_receipt_token(10**50)) == 40

    def test_uses_current_time(self):
        with patch("payments.adapters.razorpay_adapter.time.time", return_value=1760868000.5):
            assert build_receipt_token() == "rcpt_1760868000500"


# =============================================================================
# Client Construction Tests
# =============================================================================


class TestClient:
    """Tests for SDK client construction."""

    def test_missing_credentials(self):
        adapter = RazorpayAdapter(PaymentSettings())

        with pytest.raises(PaymentConfigurationError):
            adapter.create_order(amount_minor=100, currency="INR", receipt="rcpt_1")

    def test_built_once_with_credentials(self, adapter_settings):
        adapter = RazorpayAdapter(adapter_settings)

        with patch("payments.adapters.razorpay_adapter.razorpay.Client") as client_class:
            first = adapter.client
            second = adapter.client

        assert first is second
        client_class.assert_called_once_with(auth=("rzp_test_key", "test_key_secret"))


# =============================================================================
# Create Order Tests
# =============================================================================


class TestCreateOrder:
    """Tests for RazorpayAdapter.create_order."""

    def test_success(self, adapter, razorpay_client):
        result = adapter.create_order(
            amount_minor=3000000,
            currency="INR",
            receipt="rcpt_1760868000000",
            notes={"packageSlug": "kedarnath-yatra"},
        )

        assert isinstance(result, OrderResult)
        assert result.id == "order_test123"
        assert result.amount_minor == 3000000
        assert result.currency == "INR"
        razorpay_client.order.create.assert_called_once_with(
            data={
                "amount": 3000000,
                "currency": "INR",
                "receipt": "rcpt_1760868000000",
                "notes": {"packageSlug": "kedarnath-yatra"},
            },
            timeout=7,
        )

    def test_receipt_truncated(self, adapter, razorpay_client):
        adapter.create_order(amount_minor=100, currency="INR", receipt="r" * 60)

        sent = razorpay_client.order.create.call_args.kwargs["data"]["receipt"]
        assert len(sent) == 40

    @pytest.mark.parametrize(
        "error,expected",
        [
            (BadRequestError("Order amount less than minimum amount allowed"), GatewayBadRequestError),
            (ServerError("Internal server error"), GatewayUnavailableError),
            (GatewayError("Gateway error"), GatewayUnavailableError),
            (requests.Timeout("read timed out"), GatewayTimeoutError),
            (requests.ConnectionError("refused"), GatewayUnavailableError),
            (RuntimeError("boom"), GatewayUnavailableError),
        ],
    )
    def test_error_translation(self, adapter, razorpay_client, error, expected):
        razorpay_client.order.create.side_effect = error

        with pytest.raises(expected) as exc_info:
            adapter.create_order(amount_minor=100, currency="INR", receipt="rcpt_1")

        assert exc_info.value.__cause__ is error

    def test_bad_request_keeps_gateway_description(self, adapter, razorpay_client):
        razorpay_client.order.create.side_effect = BadRequestError("Order amount less than minimum amount allowed")

        with pytest.raises(GatewayBadRequestError) as exc_info:
            adapter.create_order(amount_minor=1, currency="INR", receipt="rcpt_1")

        assert exc_info.value.message == "Order amount less than minimum amount allowed"
        assert exc_info.value.status_code == 400
        assert exc_info.value.is_retryable is False

    def test_timeout_is_retryable(self, adapter, razorpay_client):
        razorpay_client.order.create.side_effect = requests.Timeout()

        with pytest.raises(GatewayTimeoutError) as exc_info:
            adapter.create_order(amount_minor=100, currency="INR", receipt="rcpt_1")

        assert exc_info.value.is_retryable is True
        assert exc_info.value.status_code == 504


# =============================================================================
# Refund Tests
# =============================================================================


class TestRefundPayment:
    """Tests for RazorpayAdapter.refund_payment."""

    def test_full_refund(self, adapter, razorpay_client):
        result = adapter.refund_payment("pay_test123", notes={"reason": "cancelled"})

        assert isinstance(result, RefundResult)
        assert result.id == "rfnd_test123"
        assert result.amount_minor == 3000000
        assert result.speed == "normal"
        razorpay_client.payment.refund.assert_called_once_with(
            "pay_test123",
            {"speed": "normal", "notes": {"reason": "cancelled"}},
            timeout=7,
        )

    def test_partial_refund(self, adapter, razorpay_client, razorpay_refund):
        razorpay_client.payment.refund.return_value = razorpay_refund(amount=150000, speed_processed=None)

        result = adapter.refund_payment("pay_test123", amount_minor=150000, speed="optimum")

        data = razorpay_client.payment.refund.call_args.args[1]
        assert data["amount"] == 150000
        assert data["speed"] == "optimum"
        assert result.amount_minor == 150000
        assert result.speed == "normal"

    def test_already_refunded(self, adapter, razorpay_client):
        razorpay_client.payment.refund.side_effect = BadRequestError("The payment has been fully refunded already")

        with pytest.raises(GatewayBadRequestError, match="fully refunded"):
            adapter.refund_payment("pay_test123")
