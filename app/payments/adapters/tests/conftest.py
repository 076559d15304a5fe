"""
Pytest fixtures for payment adapter tests.

This module provides fixtures for testing the Razorpay adapter and the
content backend client, including mock SDK clients, canned gateway
responses, and mock HTTP sessions.

Sections:
    - Mock Razorpay Response Fixtures
    - Mock Client Fixtures
    - Content Backend Fixtures
"""

from unittest.mock import MagicMock

import pytest
import requests

from payments.adapters import ContentBackendClient, RazorpayAdapter
from payments.conf import PaymentSettings


@pytest.fixture
def adapter_settings():
    return PaymentSettings(
        razorpay_key_id="rzp_test_key",
        razorpay_key_secret="test_key_secret",
        razorpay_timeout=7,
        content_backend_url="http://content.test/",
        internal_api_token="internal-test-token",
        content_backend_timeout=5,
    )


# =============================================================================
# Mock Razorpay Response Fixtures
# =============================================================================


@pytest.fixture
def razorpay_order():
    """Create a Razorpay order response body."""

    def _create(
        id: str = "order_test123",
        amount: int = 3000000,
        currency: str = "INR",
        receipt: str = "rcpt_1760868000000",
        status: str = "created",
        notes: dict | None = None,
    ) -> dict:
        return {
            "id": id,
            "entity": "order",
            "amount": amount,
            "currency": currency,
            "receipt": receipt,
            "status": status,
            "notes": notes or {},
        }

    return _create


@pytest.fixture
def razorpay_refund():
    """Create a Razorpay refund response body."""

    def _create(
        id: str = "rfnd_test123",
        payment_id: str = "pay_test123",
        amount: int = 3000000,
        status: str = "processed",
        speed_processed: str | None = "normal",
    ) -> dict:
        body = {
            "id": id,
            "entity": "refund",
            "payment_id": payment_id,
            "amount": amount,
            "currency": "INR",
            "status": status,
            "speed_requested": "normal",
        }
        if speed_processed:
            body["speed_processed"] = speed_processed
        return body

    return _create


# =============================================================================
# Mock Client Fixtures
# =============================================================================


@pytest.fixture
def razorpay_client(razorpay_order, razorpay_refund):
    """Mock razorpay.Client with successful defaults."""
    client = MagicMock()
    client.order.create.return_value = razorpay_order()
    client.payment.refund.return_value = razorpay_refund()
    return client


@pytest.fixture
def adapter(adapter_settings, razorpay_client):
    return RazorpayAdapter(adapter_settings, client=razorpay_client)


# =============================================================================
# Content Backend Fixtures
# =============================================================================


@pytest.fixture
def http_response():
    """Build a mock requests.Response."""

    def _create(status_code: int = 200, body=None, invalid_json: bool = False):
        response = MagicMock(spec=requests.Response)
        response.status_code = status_code
        response.ok = status_code < 400
        if invalid_json:
            response.json.side_effect = ValueError("Expecting value")
        else:
            response.json.return_value = body if body is not None else {}
        return response

    return _create


@pytest.fixture
def http_session(http_response):
    session = MagicMock(spec=requests.Session)
    session.get.return_value = http_response(body={"ok": True})
    return session


@pytest.fixture
def content_client(adapter_settings, http_session):
    return ContentBackendClient(adapter_settings, session=http_session)
