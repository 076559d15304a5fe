"""
Razorpay API adapter for payment operations.

This module provides the RazorpayAdapter class which encapsulates all
Razorpay API interactions. All gateway calls go through this adapter to
ensure consistent error handling, timeouts, and observability.

Features:
- Configurable timeout on every API call
- Automatic error translation to domain exceptions
- Structured logging with timing metrics

Configuration (via PaymentSettings):
- razorpay_key_id / razorpay_key_secret: API credentials
- razorpay_timeout: API call timeout in seconds (default: 10)

Usage:
    from payments.adapters import RazorpayAdapter
    from payments.conf import get_payment_settings

    adapter = RazorpayAdapter(get_payment_settings())
    order = adapter.create_order(
        amount_minor=3000000,
        currency="INR",
        receipt=build_receipt_token(),
        notes={"packageId": "65f1c0", "packageSlug": "kedarnath-yatra"},
    )
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

import razorpay
import requests
from razorpay.errors import BadRequestError, GatewayError, ServerError

from payments.exceptions import (
    GatewayBadRequestError,
    GatewayTimeoutError,
    GatewayUnavailableError,
    PaymentConfigurationError,
)

if TYPE_CHECKING:
    from payments.conf import PaymentSettings


RECEIPT_MAX_LENGTH = 40


def build_receipt_token(now_ms: int | None = None) -> str:
    """
    Build the gateway receipt token for a new order.

    Razorpay caps receipts at 40 characters.
    """
    if now_ms is None:
        now_ms = int(time.time() * 1000)
    return f"rcpt_{now_ms}"[:RECEIPT_MAX_LENGTH]


# =============================================================================
# Data Types
# =============================================================================


@dataclass
class OrderResult:
    """
    Result from Razorpay order creation.

    Attributes:
        id: Order ID (order_xxx)
        amount_minor: Amount in the smallest currency unit (paise)
        currency: Currency code
        receipt: Receipt token sent with the order
        status: Order status (created, attempted, paid)
        notes: Notes attached to the order
        raw_response: Full gateway response dict (for debugging)
    """

    id: str
    amount_minor: int
    currency: str
    receipt: str = ""
    status: str = ""
    notes: dict[str, Any] = field(default_factory=dict)
    raw_response: dict[str, Any] = field(default_factory=dict)


@dataclass
class RefundResult:
    """
    Result from Razorpay refund creation.

    Attributes:
        id: Refund ID (rfnd_xxx)
        payment_id: Refunded payment ID
        amount_minor: Refunded amount in paise
        currency: Currency code
        status: Refund status (pending, processed, failed)
        speed: Speed the gateway processed the refund at
        raw_response: Full gateway response dict
    """

    id: str
    payment_id: str
    amount_minor: int
    currency: str = ""
    status: str = ""
    speed: str = ""
    raw_response: dict[str, Any] = field(default_factory=dict)


# =============================================================================
# Razorpay Adapter
# =============================================================================


class RazorpayAdapter:
    """
    Adapter for Razorpay API operations.

    One instance wraps one razorpay.Client built from the supplied
    settings. A pre-built client can be injected for tests.

    Usage:
        adapter = RazorpayAdapter(payment_settings)
        order = adapter.create_order(amount_minor=500000, currency="INR", receipt="rcpt_1")
        refund = adapter.refund_payment("pay_xxx", amount_minor=100000)
    """

    def __init__(
        self,
        payment_settings: PaymentSettings,
        client: razorpay.Client | None = None,
    ):
        self.payment_settings = payment_settings
        self._client = client

    @property
    def key_id(self) -> str:
        return self.payment_settings.razorpay_key_id

    @property
    def client(self) -> razorpay.Client:
        """Return the SDK client, building it on first use."""
        if self._client is None:
            if not self.payment_settings.has_gateway_credentials:
                raise PaymentConfigurationError("Razorpay credentials are not configured")
            self._client = razorpay.Client(
                auth=(
                    self.payment_settings.razorpay_key_id,
                    self.payment_settings.razorpay_key_secret,
                )
            )
        return self._client

    @classmethod
    def get_logger(cls) -> logging.Logger:
        """Get logger for this adapter."""
        return logging.getLogger(f"{cls.__module__}.{cls.__name__}")

    # =========================================================================
    # Core Operations
    # =========================================================================

    def create_order(
        self,
        amount_minor: int,
        currency: str,
        receipt: str,
        notes: dict[str, str] | None = None,
    ) -> OrderResult:
        """
        Create a Razorpay order.

        Args:
            amount_minor: Charge in paise, must be a positive integer
            currency: ISO 4217 currency code
            receipt: Receipt token, at most 40 characters
            notes: Notes used later for webhook correlation

        Returns:
            OrderResult with the gateway order id

        Raises:
            PaymentConfigurationError: Credentials are missing
            GatewayBadRequestError: Gateway rejected the parameters
            GatewayUnavailableError: Gateway errored or was unreachable
            GatewayTimeoutError: Request timed out
        """
        logger = self.get_logger()
        log_context = {
            "operation": "create_order",
            "amount_minor": amount_minor,
            "currency": currency,
            "receipt": receipt,
        }

        start_time = time.time()
        logger.info("Starting Razorpay operation", extra=log_context)

        try:
            order = self.client.order.create(
                data={
                    "amount": amount_minor,
                    "currency": currency,
                    "receipt": receipt[:RECEIPT_MAX_LENGTH],
                    "notes": notes or {},
                },
                timeout=self.payment_settings.razorpay_timeout,
            )
        except PaymentConfigurationError:
            raise
        except Exception as e:
            duration_ms = (time.time() - start_time) * 1000
            self._handle_razorpay_error(e, log_context, duration_ms)
            raise

        duration_ms = (time.time() - start_time) * 1000
        logger.info(
            "Razorpay operation completed",
            extra={**log_context, "order_id": order.get("id"), "duration_ms": duration_ms},
        )

        return OrderResult(
            id=order["id"],
            amount_minor=int(order.get("amount", amount_minor)),
            currency=order.get("currency", currency),
            receipt=order.get("receipt") or receipt,
            status=order.get("status", ""),
            notes=dict(order.get("notes") or {}),
            raw_response=order,
        )

    def refund_payment(
        self,
        payment_id: str,
        amount_minor: int | None = None,
        speed: str = "normal",
        notes: dict[str, str] | None = None,
    ) -> RefundResult:
        """
        Refund a captured payment, fully or partially.

        Args:
            payment_id: Razorpay payment ID (pay_xxx)
            amount_minor: Amount to refund in paise (None for full refund)
            speed: "normal" or "optimum"
            notes: Notes attached to the refund

        Returns:
            RefundResult with refund details

        Raises:
            GatewayBadRequestError: Refund not possible for this payment
            GatewayUnavailableError: Gateway errored or was unreachable
            GatewayTimeoutError: Request timed out
        """
        logger = self.get_logger()
        log_context = {
            "operation": "refund_payment",
            "payment_id": payment_id,
            "amount_minor": amount_minor,
            "speed": speed,
        }

        start_time = time.time()
        logger.info("Starting Razorpay operation", extra=log_context)

        data: dict[str, Any] = {"speed": speed, "notes": notes or {}}
        if amount_minor is not None:
            data["amount"] = amount_minor

        try:
            refund = self.client.payment.refund(
                payment_id,
                data,
                timeout=self.payment_settings.razorpay_timeout,
            )
        except PaymentConfigurationError:
            raise
        except Exception as e:
            duration_ms = (time.time() - start_time) * 1000
            self._handle_razorpay_error(e, log_context, duration_ms)
            raise

        duration_ms = (time.time() - start_time) * 1000
        logger.info(
            "Razorpay operation completed",
            extra={
                **log_context,
                "refund_id": refund.get("id"),
                "status": refund.get("status"),
                "duration_ms": duration_ms,
            },
        )

        return RefundResult(
            id=refund["id"],
            payment_id=refund.get("payment_id", payment_id),
            amount_minor=int(refund.get("amount") or amount_minor or 0),
            currency=refund.get("currency", ""),
            status=refund.get("status", ""),
            speed=refund.get("speed_processed") or refund.get("speed_requested") or speed,
            raw_response=refund,
        )

    # =========================================================================
    # Error Handling
    # =========================================================================

    def _handle_razorpay_error(
        self,
        error: Exception,
        log_context: dict[str, Any],
        duration_ms: float,
    ) -> None:
        """
        Translate Razorpay SDK and transport exceptions to domain exceptions.

        Raises:
            GatewayBadRequestError: Request rejected (400)
            GatewayUnavailableError: Gateway/server error or connection failure
            GatewayTimeoutError: Request timed out
        """
        logger = self.get_logger()
        log_context = {**log_context, "duration_ms": duration_ms}

        if isinstance(error, BadRequestError):
            logger.warning("Razorpay rejected request", extra=log_context)
            raise GatewayBadRequestError(
                str(error) or "Razorpay rejected the request",
                details={"operation": log_context["operation"]},
            ) from error

        if isinstance(error, (GatewayError, ServerError)):
            logger.error("Razorpay server error", extra=log_context)
            raise GatewayUnavailableError(
                "Payment gateway error. Please retry.",
                details={"operation": log_context["operation"]},
            ) from error

        if isinstance(error, requests.Timeout):
            logger.error("Razorpay request timed out", extra=log_context)
            raise GatewayTimeoutError(
                "Payment gateway timed out. Please retry.",
            ) from error

        if isinstance(error, requests.RequestException):
            logger.error("Connection error to Razorpay", extra=log_context, exc_info=True)
            raise GatewayUnavailableError(
                "Could not connect to payment gateway. Please retry.",
                status_code=503,
            ) from error

        logger.exception("Unexpected Razorpay error", extra=log_context)
        raise GatewayUnavailableError("Unexpected payment gateway error") from error
