"""
Tests for VerificationService.

Receipts are delivered through a MailTransport backed by Django's locmem
email backend, so sent messages land in the pytest-django mailoutbox.
"""

from unittest.mock import patch

import pytest
from django.db import DatabaseError

from payments.conf import PaymentSettings
from payments.mailers import MISSING_MAIL_CONFIG, MailTransport
from payments.models import Purchase
from payments.receipts import ReceiptSender
from payments.services import PurchaseService, VerificationRequest, VerificationService
from payments.state_machines import PurchaseStatus
from payments.tests.factories import PurchaseFactory

LOCMEM_BACKEND = "django.core.mail.backends.locmem.EmailBackend"


@pytest.fixture
def transport():
    return MailTransport(
        label="smtp",
        sender_email="receipts@paradiseyatra.test",
        host="localhost",
        port=25,
        username="",
        password="",
        from_name="Paradise Yatra",
        backend=LOCMEM_BACKEND,
    )


@pytest.fixture
def service(payment_settings, transport):
    return VerificationService(
        payment_settings,
        receipts=ReceiptSender([transport], admin_email=payment_settings.receipt_admin_email),
    )


@pytest.fixture
def verify_request(sign_payment):
    """Build a correctly signed VerificationRequest."""

    def _build(order_id, payment_id="pay_verify_1", **overrides):
        fields = {
            "razorpay_order_id": order_id,
            "razorpay_payment_id": payment_id,
            "razorpay_signature": sign_payment(order_id, payment_id),
        }
        fields.update(overrides)
        return VerificationRequest(**fields)

    return _build


# =============================================================================
# Rejections
# =============================================================================


@pytest.mark.django_db
class TestVerificationRejections:
    """Calls that must not touch the purchase."""

    def test_missing_secret(self, transport, verify_request, created_purchase):
        service = VerificationService(PaymentSettings(), receipts=ReceiptSender([transport]))

        result = service.verify(verify_request(created_purchase.razorpay_order_id))

        assert result.success is False
        assert result.error_code == "PAYMENT_CONFIGURATION_ERROR"

    def test_missing_fields(self, service):
        result = service.verify(
            VerificationRequest(razorpay_order_id="order_1", razorpay_payment_id="", razorpay_signature="")
        )

        assert result.error_code == "VALIDATION_ERROR"
        assert set(result.errors) == {"razorpay_payment_id", "razorpay_signature"}

    def test_invalid_signature(self, service, created_purchase, mailoutbox):
        result = service.verify(
            VerificationRequest(
                razorpay_order_id=created_purchase.razorpay_order_id,
                razorpay_payment_id="pay_forged",
                razorpay_signature="0" * 64,
            )
        )

        assert result.success is False
        assert result.error_code == "INVALID_SIGNATURE"
        assert Purchase.objects.get(pk=created_purchase.pk).status == PurchaseStatus.CREATED
        assert len(mailoutbox) == 0


# =============================================================================
# Successful Verification
# =============================================================================


@pytest.mark.django_db
class TestVerificationSuccess:
    """Tests for authentic payments."""

    def test_marks_paid_and_sends_receipts(self, service, verify_request, created_purchase, mailoutbox):
        result = service.verify(
            verify_request(created_purchase.razorpay_order_id, payment_method="upi")
        )

        assert result.success is True
        data = result.data
        stored = Purchase.objects.get(pk=created_purchase.pk)
        assert stored.status == PurchaseStatus.PAID
        assert stored.payment_method == "upi"
        assert data["verified"] is True
        assert data["status"] == PurchaseStatus.PAID
        assert data["purchaseId"] == str(stored.id)
        assert data["receiptNumber"] == stored.receipt_number
        assert data["travellers"] == 2
        assert data["unitLabel"] == "Per Person"
        assert data["travelDate"] == "Flexible"
        assert data["receiptEmailSentToCustomer"] is True
        assert data["receiptEmailSentToAdmin"] is True
        assert data["mailTransport"] == "smtp"
        assert data["receiptEmailError"] == ""

        assert len(mailoutbox) == 2
        customer_mail, admin_mail = mailoutbox
        assert customer_mail.to == [stored.email]
        assert stored.receipt_number in customer_mail.subject
        assert admin_mail.to == ["admin@paradiseyatra.test"]
        assert admin_mail.subject.startswith("Admin Copy")
        assert customer_mail.from_email == "Paradise Yatra <receipts@paradiseyatra.test>"

    def test_replay_sends_no_second_receipt(self, service, verify_request, created_purchase, mailoutbox):
        request = verify_request(created_purchase.razorpay_order_id)
        service.verify(request)
        mailoutbox.clear()

        result = service.verify(request)

        assert result.success is True
        assert result.data["status"] == PurchaseStatus.PAID
        assert result.data["receiptEmailSentToCustomer"] is False
        assert len(mailoutbox) == 0

    def test_webhook_already_captured(self, service, verify_request, created_purchase, mailoutbox):
        """When the webhook won the race, verify reports the stored purchase without mailing."""
        request = verify_request(created_purchase.razorpay_order_id)

        PurchaseService.mark_paid(
            razorpay_order_id=request.razorpay_order_id,
            razorpay_payment_id=request.razorpay_payment_id,
        )

        result = service.verify(request)

        assert result.data["verified"] is True
        assert result.data["receiptNumber"]
        assert len(mailoutbox) == 0

    def test_unknown_purchase_uses_client_data(self, service, verify_request, db, mailoutbox):
        """An authentic payment with no stored purchase is still verified and receipted."""
        result = service.verify(
            verify_request(
                "order_untracked",
                customer={"fullName": "Ravi Kumar", "email": "ravi@example.com", "phone": "+919811111111"},
                package_info={"title": "Vaishno Devi", "travellers": 4, "amount": "20000", "travelDate": "2026-07-01"},
            )
        )

        assert result.success is True
        data = result.data
        assert data["purchaseId"] is None
        assert data["internalOrderId"] is None
        assert data["status"] == PurchaseStatus.PAID
        assert data["travellers"] == 4
        assert data["travelDate"] == "2026-07-01"
        assert data["receiptEmailSentToCustomer"] is True
        assert mailoutbox[0].to == ["ravi@example.com"]
        assert "Vaishno Devi" in mailoutbox[0].body

    def test_store_failure_still_verifies(self, service, verify_request, created_purchase, mailoutbox):
        with patch(
            "payments.services.verification_service.PurchaseService.mark_paid",
            side_effect=DatabaseError("connection lost"),
        ):
            result = service.verify(verify_request(created_purchase.razorpay_order_id))

        assert result.success is True
        assert result.data["verified"] is True
        assert result.data["purchaseId"] is None
        assert result.data["receiptEmailSentToAdmin"] is True
        assert "Customer email missing" in result.data["receiptEmailError"]
        assert len(mailoutbox) == 1

    def test_conflicting_capture_reports_stored_status(self, service, verify_request, paid_purchase, mailoutbox):
        """A second, different payment for a paid order is verified but not recorded."""
        result = service.verify(verify_request(paid_purchase.razorpay_order_id, payment_id="pay_duplicate"))

        assert result.success is True
        assert result.data["status"] == PurchaseStatus.PAID
        assert Purchase.objects.get(pk=paid_purchase.pk).razorpay_payment_id == "pay_test_paid"
        assert len(mailoutbox) == 0

    def test_signature_for_another_order_cannot_pay_purchase(self, service, verify_request, created_purchase, mailoutbox):
        """The purchase paid is the one the signed order belongs to, never the client purchaseId."""
        cheap = PurchaseFactory(razorpay_order_id="order_cheap")

        result = service.verify(verify_request(cheap.razorpay_order_id, purchase_id=str(created_purchase.pk)))

        assert result.success is True
        assert result.data["purchaseId"] == str(cheap.pk)
        assert result.data["status"] == PurchaseStatus.CREATED
        assert Purchase.objects.get(pk=created_purchase.pk).status == PurchaseStatus.CREATED
        assert len(mailoutbox) == 0

    def test_bad_customer_address_does_not_fail_verify(self, service, verify_request, db, mailoutbox):
        """A client email with an injected header is reported, and the admin copy still goes out."""
        result = service.verify(
            verify_request(
                "order_untracked",
                customer={"fullName": "Ravi Kumar", "email": "ravi@example.com\nBcc: spam@example.com"},
            )
        )

        assert result.success is True
        assert result.data["verified"] is True
        assert result.data["receiptEmailSentToCustomer"] is False
        assert result.data["receiptEmailSentToAdmin"] is True
        assert result.data["receiptEmailError"].startswith("customer: ")
        assert [message.to for message in mailoutbox] == [["admin@paradiseyatra.test"]]

    def test_no_mail_transport(self, payment_settings, verify_request, created_purchase):
        service = VerificationService(payment_settings, receipts=ReceiptSender([]))

        result = service.verify(verify_request(created_purchase.razorpay_order_id))

        assert result.success is True
        assert result.data["receiptEmailSentToCustomer"] is False
        assert result.data["receiptEmailError"] == MISSING_MAIL_CONFIG
