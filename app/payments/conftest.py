"""
Pytest fixtures shared by every payments test package.

This module provides fixtures for creating payment-related test data.
Fixtures provide purchases in every status for testing transitions, a
fully configured PaymentSettings, and helpers for signing gateway payloads.

Usage:
    def test_capture(created_purchase):
        result = PurchaseService.mark_paid(created_purchase.razorpay_order_id, "pay_1")
        assert result.data.purchase.status == PurchaseStatus.PAID
"""

import logging
from unittest.mock import patch

import pytest
from django.utils import timezone
from rest_framework.test import APIClient

from payments.conf import PaymentSettings
from payments.signatures import compute_payment_signature
from payments.state_machines import PurchaseStatus
from payments.tests.factories import PurchaseFactory


# =============================================================================
# Configuration Fixtures
# =============================================================================


@pytest.fixture
def payment_settings():
    """Payment settings with every credential configured."""
    return PaymentSettings(
        razorpay_key_id="rzp_test_key",
        razorpay_key_secret="test_key_secret",
        razorpay_webhook_secret="test_webhook_secret",
        currency="INR",
        content_backend_url="http://content.test",
        internal_api_token="internal-test-token",
        refund_api_enabled=True,
        receipt_admin_email="admin@paradiseyatra.test",
    )


@pytest.fixture
def use_payment_settings(payment_settings):
    """
    Route every get_payment_settings() caller to the payment_settings fixture.

    Yields the settings instance so tests can assert against it.
    """
    targets = [
        "payments.views.get_payment_settings",
        "payments.permissions.get_payment_settings",
        "payments.webhooks.views.get_payment_settings",
    ]
    patchers = [patch(target, return_value=payment_settings) for target in targets]
    for patcher in patchers:
        patcher.start()
    yield payment_settings
    for patcher in patchers:
        patcher.stop()


@pytest.fixture
def api_client():
    """DRF test client."""
    return APIClient()


# =============================================================================
# Purchase State Fixtures
# =============================================================================


@pytest.fixture
def created_purchase(db):
    """Create a purchase awaiting payment."""
    return PurchaseFactory()


@pytest.fixture
def paid_purchase(db):
    """Create a paid purchase."""
    return PurchaseFactory(
        status=PurchaseStatus.PAID,
        razorpay_payment_id="pay_test_paid",
        razorpay_signature="sig",
        payment_method="upi",
        receipt_number="PYR-20261019-AAAAAA",
        paid_at=timezone.now(),
    )


@pytest.fixture
def failed_purchase(db):
    """Create a failed purchase."""
    return PurchaseFactory(
        status=PurchaseStatus.FAILED,
        failure_reason="Payment declined by bank",
        failure_code="BAD_REQUEST_ERROR",
        failed_at=timezone.now(),
    )


@pytest.fixture
def refunded_purchase(db):
    """Create a refunded purchase."""
    return PurchaseFactory(
        status=PurchaseStatus.REFUNDED,
        razorpay_payment_id="pay_test_refunded",
        receipt_number="PYR-20261019-BBBBBB",
        paid_at=timezone.now(),
        refund_id="rfnd_test_1",
        refunded_amount="30000.00",
        refunded_at=timezone.now(),
    )


# =============================================================================
# Signature Helpers
# =============================================================================


@pytest.fixture
def sign_payment(payment_settings):
    """Return a function producing a valid checkout signature."""

    def _sign(order_id: str, payment_id: str) -> str:
        return compute_payment_signature(order_id, payment_id, payment_settings.razorpay_key_secret)

    return _sign


# =============================================================================
# Logging Helpers
# =============================================================================


@pytest.fixture
def audit_log(caplog):
    """
    Capture refund audit records.

    payments.audit does not propagate to the root logger, so caplog's
    handler is attached to it directly.
    """
    audit_logger = logging.getLogger("payments.audit")
    audit_logger.addHandler(caplog.handler)
    caplog.set_level(logging.INFO, logger="payments.audit")
    yield caplog
    audit_logger.removeHandler(caplog.handler)
