"""
Client-reported payment verification.

After checkout, the browser posts the Razorpay order id, payment id and
signature. VerificationService authenticates the signature, records the
capture through PurchaseService and sends the receipt.

The webhook path records the same capture independently; whichever
arrives second is an idempotent replay. Receipts go out only for the call
that actually moved the purchase to PAID, or when no stored purchase
could be used, so a replayed verify never mails twice.

Usage:
    from payments.services import VerificationService

    service = VerificationService.from_settings(get_payment_settings())
    result = service.verify(VerificationRequest(...))
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from django.db import DatabaseError

from core.services import BaseService, ServiceResult

from payments.exceptions import PaymentConfigurationError, PaymentValidationError
from payments.mailers import build_transports
from payments.receipts import ReceiptDelivery, ReceiptSender, build_receipt_context
from payments.services.purchase_service import PurchaseService
from payments.signatures import verify_payment_signature
from payments.state_machines import PurchaseStatus

if TYPE_CHECKING:
    from payments.conf import PaymentSettings
    from payments.models import Purchase


@dataclass
class VerificationRequest:
    razorpay_order_id: str
    razorpay_payment_id: str
    razorpay_signature: str
    purchase_id: str | None = None
    payment_method: str = ""
    customer: dict[str, Any] = field(default_factory=dict)
    package_info: dict[str, Any] = field(default_factory=dict)


class VerificationService(BaseService):
    """
    Authenticate client-reported payments and record them.

    Failure error codes:
        PAYMENT_CONFIGURATION_ERROR: Key secret missing (500)
        VALIDATION_ERROR: Order id, payment id or signature missing (400)
        INVALID_SIGNATURE: Signature does not match (400, no state change)
    """

    def __init__(self, payment_settings: PaymentSettings, receipts: ReceiptSender):
        self.payment_settings = payment_settings
        self.receipts = receipts

    @classmethod
    def from_settings(cls, payment_settings: PaymentSettings) -> VerificationService:
        return cls(
            payment_settings=payment_settings,
            receipts=ReceiptSender(
                build_transports(payment_settings),
                admin_email=payment_settings.receipt_admin_email,
            ),
        )

    def verify(self, request: VerificationRequest) -> ServiceResult[dict[str, Any]]:
        logger = self.get_logger()
        log_context = {
            "razorpay_order_id": request.razorpay_order_id,
            "razorpay_payment_id": request.razorpay_payment_id,
        }

        secret = self.payment_settings.razorpay_key_secret
        if not secret:
            logger.error("Verify attempted without Razorpay key secret", extra=log_context)
            return ServiceResult.from_exception(
                PaymentConfigurationError("Razorpay secret is missing on server.")
            )

        missing = [
            name
            for name, value in (
                ("razorpay_order_id", request.razorpay_order_id),
                ("razorpay_payment_id", request.razorpay_payment_id),
                ("razorpay_signature", request.razorpay_signature),
            )
            if not value
        ]
        if missing:
            return ServiceResult.from_exception(
                PaymentValidationError(
                    "Missing payment verification fields",
                    details={name: ["This field is required."] for name in missing},
                )
            )

        if not verify_payment_signature(
            request.razorpay_order_id,
            request.razorpay_payment_id,
            request.razorpay_signature,
            secret,
        ):
            logger.warning("Invalid payment signature", extra=log_context)
            return ServiceResult.failure("Invalid payment signature", error_code="INVALID_SIGNATURE")

        purchase, should_send_receipt = self._record_capture(request, log_context)

        delivery = ReceiptDelivery()
        if should_send_receipt:
            context = build_receipt_context(
                purchase,
                request.razorpay_order_id,
                request.razorpay_payment_id,
                customer=request.customer,
                package_info=request.package_info,
            )
            delivery = self.receipts.send(context)

        return ServiceResult.success(self._response(request, purchase, delivery))

    def _record_capture(
        self,
        request: VerificationRequest,
        log_context: dict[str, Any],
    ) -> tuple[Purchase | None, bool]:
        """
        Mark the purchase paid.

        Returns the stored purchase (None when unavailable) and whether a
        receipt should be sent. Store problems never fail the verify call;
        the signature is already authentic.
        """
        logger = self.get_logger()
        try:
            result = PurchaseService.mark_paid(
                razorpay_order_id=request.razorpay_order_id,
                razorpay_payment_id=request.razorpay_payment_id,
                razorpay_signature=request.razorpay_signature,
                payment_method=request.payment_method or "",
                purchase_id=request.purchase_id,
            )
        except DatabaseError:
            logger.exception("Purchase mark-paid failed", extra=log_context)
            return None, True

        if result.success:
            return result.data.purchase, result.data.changed

        if result.error_code == "PURCHASE_NOT_FOUND":
            return None, True

        # Conflicts are logged by PurchaseService; report the signed order's status as is
        purchase = PurchaseService.find_purchase(razorpay_order_id=request.razorpay_order_id)
        return purchase, False

    @staticmethod
    def _response(
        request: VerificationRequest,
        purchase: Purchase | None,
        delivery: ReceiptDelivery,
    ) -> dict[str, Any]:
        package_info = request.package_info or {}
        if purchase is not None:
            travel_date = purchase.travel_date.isoformat() if purchase.travel_date else ""
            travellers = purchase.travellers
            unit_label = purchase.unit_label
        else:
            travel_date, travellers, unit_label = "", 0, ""

        try:
            client_travellers = int(package_info.get("travellers") or 0)
        except (TypeError, ValueError):
            client_travellers = 0

        return {
            "verified": True,
            "orderId": request.razorpay_order_id,
            "paymentId": request.razorpay_payment_id,
            "purchaseId": str(purchase.id) if purchase else None,
            "internalOrderId": purchase.internal_order_id if purchase else None,
            "receiptNumber": (purchase.receipt_number or None) if purchase else None,
            "status": purchase.status if purchase else PurchaseStatus.PAID.value,
            "travelDate": travel_date or package_info.get("travelDate") or "Flexible",
            "travellers": travellers or client_travellers or 1,
            "unitLabel": unit_label or package_info.get("unitLabel") or "Per Person",
            "receiptEmailSentToCustomer": delivery.sent_to_customer,
            "receiptEmailSentToAdmin": delivery.sent_to_admin,
            "mailTransport": delivery.transport,
            "receiptEmailError": delivery.error,
        }
