"""
Order initiation for checkout.

OrderService turns a checkout request into a Razorpay order and a purchase
in CREATED status. The charge is always computed on the server from the
resolved unit price; any price-like value in the request is ignored.

Flow:
    1. Resolve the authoritative unit price (PricingResolver)
    2. Compute the charge in minor units
    3. Create the Razorpay order
    4. Persist the purchase (a failure here is logged, not raised)

Usage:
    from payments.services import OrderService

    service = OrderService.from_settings(get_payment_settings())
    result = service.create_order(
        CheckoutRequest(
            full_name="Asha Rao",
            email="asha@example.com",
            phone="+919800000000",
            package_slug="kedarnath-yatra",
            travellers=2,
        )
    )
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import TYPE_CHECKING, Any

from django.db import DatabaseError

from core.services import BaseService, ServiceResult

from payments.adapters import ContentBackendClient, RazorpayAdapter, build_receipt_token
from payments.exceptions import (
    GatewayError,
    InvalidAmountError,
    PaymentConfigurationError,
    PaymentValidationError,
)
from payments.services.pricing_service import PricingResolver, normalize_date
from payments.services.purchase_service import PurchaseService
from payments.state_machines import CheckoutType

if TYPE_CHECKING:
    from payments.conf import PaymentSettings
    from payments.models import Purchase
    from payments.services.pricing_service import ResolvedPricing

MINOR_UNITS_PER_MAJOR = 100


def coerce_travellers(value: Any) -> int:
    """Return value as an int of at least 1."""
    try:
        travellers = int(value)
    except (TypeError, ValueError):
        return 1
    return max(1, travellers)


def compute_charge(pricing: ResolvedPricing, travellers: int) -> Decimal:
    """
    Compute the charge in major units.

    Per-couple prices are charged per started couple, so 3 travellers
    pay for 2 units.
    """
    if pricing.is_per_couple:
        units = max(1, math.ceil(travellers / 2))
    else:
        units = travellers
    return pricing.price * units


def to_minor_units(amount: Decimal) -> int:
    return int((amount * MINOR_UNITS_PER_MAJOR).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


@dataclass
class CheckoutRequest:
    """Validated checkout input."""

    full_name: str
    email: str
    phone: str
    package_slug: str
    checkout_type: str = CheckoutType.PACKAGE
    selected_departure_date: str | None = None
    travel_date: str | None = None
    travellers: int = 1
    customer_note: str = ""
    user_id: str = ""


class OrderService(BaseService):
    """
    Create gateway orders with server-verified pricing.

    Failure error codes:
        PAYMENT_CONFIGURATION_ERROR: Gateway credentials missing (500)
        VALIDATION_ERROR: Missing package slug (400)
        PRICING_NOT_FOUND: No positive price resolved (400)
        PRICING_SOURCE_UNAVAILABLE: Content backend unreachable (502)
        INVALID_AMOUNT: Charge is not a positive integer in minor units (400)
        GATEWAY_*: Razorpay rejected or failed the order
    """

    def __init__(
        self,
        payment_settings: PaymentSettings,
        gateway: RazorpayAdapter,
        pricing: PricingResolver,
    ):
        self.payment_settings = payment_settings
        self.gateway = gateway
        self.pricing = pricing

    @classmethod
    def from_settings(cls, payment_settings: PaymentSettings) -> OrderService:
        return cls(
            payment_settings=payment_settings,
            gateway=RazorpayAdapter(payment_settings),
            pricing=PricingResolver(ContentBackendClient(payment_settings)),
        )

    def create_order(self, request: CheckoutRequest) -> ServiceResult[dict[str, Any]]:
        logger = self.get_logger()

        if not self.payment_settings.has_gateway_credentials:
            logger.error("Order creation attempted without Razorpay credentials")
            return ServiceResult.from_exception(
                PaymentConfigurationError("Razorpay credentials are missing on server.")
            )

        if not request.package_slug:
            return ServiceResult.from_exception(
                PaymentValidationError(
                    "Package slug is required",
                    details={"packageSlug": ["This field is required."]},
                )
            )

        checkout_type = (
            CheckoutType.FIXED_DEPARTURE
            if request.checkout_type == CheckoutType.FIXED_DEPARTURE
            else CheckoutType.PACKAGE
        )
        travellers = coerce_travellers(request.travellers)

        pricing_result = self.pricing.resolve(
            checkout_type,
            request.package_slug,
            departure_date=request.selected_departure_date,
        )
        if not pricing_result.success:
            return pricing_result  # type: ignore[return-value]
        pricing = pricing_result.data

        amount = compute_charge(pricing, travellers)
        amount_minor = to_minor_units(amount)
        if amount_minor <= 0:
            return ServiceResult.from_exception(InvalidAmountError("Invalid amount"))

        currency = self.payment_settings.currency
        try:
            order = self.gateway.create_order(
                amount_minor=amount_minor,
                currency=currency,
                receipt=build_receipt_token(),
                notes={
                    "packageId": pricing.product_id,
                    "packageSlug": request.package_slug,
                    "checkoutType": checkout_type,
                },
            )
        except GatewayError as e:
            return ServiceResult.failure(e.message, error_code=e.error_code)

        purchase = self._persist_purchase(request, pricing, checkout_type, travellers, amount, currency, order.id)

        return ServiceResult.success(
            {
                "orderId": order.id,
                "amount": order.amount_minor,
                "currency": order.currency,
                "key": self.payment_settings.razorpay_key_id,
                "purchaseId": str(purchase.id) if purchase else None,
                "internalOrderId": purchase.internal_order_id if purchase else None,
                "receiptNumber": purchase.receipt_number if purchase else None,
            }
        )

    def _persist_purchase(
        self,
        request: CheckoutRequest,
        pricing: ResolvedPricing,
        checkout_type: str,
        travellers: int,
        amount: Decimal,
        currency: str,
        razorpay_order_id: str,
    ) -> Purchase | None:
        """
        Store the purchase intent.

        The gateway order already exists at this point, so a failure is
        logged and swallowed; the webhook can still correlate by order id.
        """
        travel_date = normalize_date(request.travel_date) or normalize_date(request.selected_departure_date)
        try:
            result = PurchaseService.create_purchase(
                user_id=request.user_id or "",
                full_name=request.full_name,
                email=request.email,
                phone=request.phone,
                checkout_type=checkout_type,
                package_id=pricing.product_id,
                package_slug=request.package_slug,
                package_title=pricing.title,
                destination=pricing.destination,
                travel_date=travel_date,
                travellers=travellers,
                unit_price=pricing.price,
                unit_label=pricing.unit_label,
                amount=amount.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP),
                currency=currency,
                razorpay_order_id=razorpay_order_id,
                notes=request.customer_note or "",
            )
        except DatabaseError:
            self.get_logger().exception(
                "Purchase persist failed after gateway order creation",
                extra={"razorpay_order_id": razorpay_order_id},
            )
            return None

        if not result.success:
            self.get_logger().error(
                "Purchase persist rejected: %s",
                result.error,
                extra={"razorpay_order_id": razorpay_order_id},
            )
            return None
        return result.data
