"""
Payment receipt rendering and delivery.

A receipt is rendered from the stored purchase, falling back to the
display data the checkout client sent with its verify call when the
purchase record is missing or thin. One copy goes to the customer and
one to the admin mailbox.

Templates:
    payments/emails/receipt.txt
    payments/emails/receipt.html

Usage:
    from payments.receipts import ReceiptSender, build_receipt_context

    context = build_receipt_context(purchase, order_id, payment_id, customer, package_info)
    delivery = ReceiptSender(build_transports(settings)).send(context)
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import TYPE_CHECKING, Any

from django.core.mail import EmailMultiAlternatives
from django.template.loader import render_to_string
from django.utils import timezone

from payments.mailers import MISSING_MAIL_CONFIG

if TYPE_CHECKING:
    from payments.mailers import MailTransport
    from payments.models import Purchase

logger = logging.getLogger(__name__)

TEXT_TEMPLATE = "payments/emails/receipt.txt"
HTML_TEMPLATE = "payments/emails/receipt.html"

CUSTOMER_SUBJECT = "Paradise Yatra Payment Receipt {receipt_number}"
ADMIN_SUBJECT = "Admin Copy - Payment Receipt {receipt_number}"


@dataclass
class ReceiptDelivery:
    """Outcome of one receipt send, reported back on the verify response."""

    sent_to_customer: bool = False
    sent_to_admin: bool = False
    transport: str = ""
    error: str = ""

    def add_error(self, message: str) -> None:
        self.error = f"{self.error} | {message}" if self.error else message


def _as_decimal(value: Any) -> Decimal:
    try:
        return Decimal(str(value)) if value not in (None, "") else Decimal("0")
    except InvalidOperation:
        return Decimal("0")


def _as_int(value: Any, default: int = 1) -> int:
    try:
        return int(value) or default
    except (TypeError, ValueError):
        return default


def format_money(amount: Decimal, currency: str) -> str:
    """Format a whole-unit amount, e.g. "INR 30,000"."""
    return f"{currency} {amount.quantize(Decimal('1')):,}"


def build_receipt_context(
    purchase: Purchase | None,
    razorpay_order_id: str,
    razorpay_payment_id: str,
    customer: dict[str, Any] | None = None,
    package_info: dict[str, Any] | None = None,
) -> dict[str, Any]:
    """
    Assemble receipt fields.

    Stored purchase values win; client-supplied values fill the gaps;
    fixed defaults cover the rest.
    """
    customer = customer or {}
    package_info = package_info or {}
    now_ms = int(time.time() * 1000)

    def pick(stored: Any, client: Any, default: Any = "") -> Any:
        return stored or client or default

    stored_travel_date = purchase.travel_date.isoformat() if purchase and purchase.travel_date else ""
    currency = (purchase.currency if purchase else "") or "INR"
    unit_price = _as_decimal(pick(purchase.unit_price if purchase else None, package_info.get("unitPrice"), 0))
    amount = _as_decimal(pick(purchase.amount if purchase else None, package_info.get("amount"), 0))

    return {
        "receipt_number": pick(purchase.receipt_number if purchase else "", "", f"PYR-{now_ms}"),
        "internal_order_id": pick(purchase.internal_order_id if purchase else "", "", f"PYO-{now_ms}"),
        "paid_at": (purchase.paid_at if purchase and purchase.paid_at else timezone.now()),
        "razorpay_order_id": razorpay_order_id,
        "razorpay_payment_id": razorpay_payment_id,
        "customer_name": pick(purchase.full_name if purchase else "", customer.get("fullName"), "Customer"),
        "customer_email": pick(purchase.email if purchase else "", customer.get("email"), ""),
        "customer_phone": pick(purchase.phone if purchase else "", customer.get("phone"), ""),
        "package_title": pick(purchase.package_title if purchase else "", package_info.get("title"), "Travel Package"),
        "destination": pick(purchase.destination if purchase else "", package_info.get("destination"), ""),
        "travel_date": pick(stored_travel_date, package_info.get("travelDate"), "Flexible"),
        "travellers": _as_int(pick(purchase.travellers if purchase else None, package_info.get("travellers"), 1)),
        "unit_label": pick(purchase.unit_label if purchase else "", package_info.get("unitLabel"), "Per Person"),
        "unit_price": unit_price,
        "unit_price_text": format_money(unit_price, currency) if unit_price else "",
        "amount": amount,
        "amount_text": format_money(amount, currency),
        "currency": currency,
    }


class ReceiptSender:
    """
    Send a receipt over the first transport that works.

    For each transport in order: open the connection, send the customer
    copy (when an address is known) and the admin copy. Stop at the first
    transport that delivered either copy. Errors from every attempt are
    collected into ReceiptDelivery.error.
    """

    def __init__(self, transports: list[MailTransport], admin_email: str = ""):
        self.transports = transports
        self.admin_email = admin_email

    def send(self, context: dict[str, Any]) -> ReceiptDelivery:
        delivery = ReceiptDelivery()
        if not self.transports:
            delivery.error = MISSING_MAIL_CONFIG
            logger.warning("Receipt not sent: no mail transport configured")
            return delivery

        text_body = render_to_string(TEXT_TEMPLATE, context)
        html_body = render_to_string(HTML_TEMPLATE, context)
        receipt_number = context["receipt_number"]
        customer_email = context.get("customer_email") or ""

        for transport in self.transports:
            connection = transport.get_connection()
            verified = transport.verify(connection)
            if not verified.success:
                delivery.add_error(f"{transport.label}: {verified.error}")
                continue

            try:
                if customer_email:
                    result = transport.send(
                        self._message(CUSTOMER_SUBJECT, receipt_number, customer_email, text_body, html_body),
                        connection,
                    )
                    if result.success:
                        delivery.sent_to_customer = True
                    else:
                        delivery.add_error(f"customer: {result.error}")
                else:
                    delivery.add_error("Customer email missing in verified order")

                admin_email = self.admin_email or transport.sender_email
                result = transport.send(
                    self._message(ADMIN_SUBJECT, receipt_number, admin_email, text_body, html_body),
                    connection,
                )
                if result.success:
                    delivery.sent_to_admin = True
                else:
                    delivery.add_error(f"admin: {result.error}")
            finally:
                connection.close()

            if delivery.sent_to_customer or delivery.sent_to_admin:
                delivery.transport = transport.label
                break

        logger.info(
            "Receipt delivery finished",
            extra={
                "receipt_number": receipt_number,
                "transport": delivery.transport,
                "sent_to_customer": delivery.sent_to_customer,
                "sent_to_admin": delivery.sent_to_admin,
            },
        )
        return delivery

    @staticmethod
    def _message(
        subject_template: str,
        receipt_number: str,
        to: str,
        text_body: str,
        html_body: str,
    ) -> EmailMultiAlternatives:
        message = EmailMultiAlternatives(
            subject=subject_template.format(receipt_number=receipt_number),
            body=text_body,
            to=[to],
        )
        message.attach_alternative(html_body, "text/html")
        return message
