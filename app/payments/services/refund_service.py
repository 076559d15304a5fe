"""
Admin-initiated refunds.

Two services split the refund endpoint:

RefundAuthorizer runs the gates, in order, each a hard stop:
    1. Refund API kill-switch enabled
    2. Bearer token present
    3. Double-submit CSRF token (x-csrf-token header == csrf_token cookie)
    4. Bearer token resolves to a content backend profile
    5. Profile role is "admin"

RefundService then validates the request and the purchase (it must be
PAID and carry the payment id being refunded), refunds at Razorpay and marks
the purchase REFUNDED. If the gateway refund succeeds but the purchase
cannot be updated, the failure carries the refund id so an operator can
reconcile by hand.

Every gate failure, attempt and outcome is written to the refund audit log.

Usage:
    auth = RefundAuthorizer(settings, ContentBackendClient(settings)).authorize(
        authorization=request.headers.get("Authorization"),
        csrf_header=request.headers.get("x-csrf-token"),
        csrf_cookie=request.COOKIES.get("csrf_token"),
    )
    if auth.success:
        result = RefundService(settings, RazorpayAdapter(settings)).refund(auth.data, request.data)
"""

from __future__ import annotations

import hmac
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import TYPE_CHECKING, Any

from django.db import DatabaseError

from core.exceptions import PermissionDeniedError
from core.services import BaseService, ServiceResult

from payments.audit import audit_refund_event
from payments.exceptions import (
    ContentBackendError,
    GatewayError,
    PaymentConfigurationError,
    PaymentConflictError,
    PurchaseNotFoundError,
)
from payments.services.order_service import MINOR_UNITS_PER_MAJOR, to_minor_units
from payments.services.purchase_service import PurchaseService
from payments.state_machines import PurchaseStatus, RefundSpeed

if TYPE_CHECKING:
    from payments.adapters import ContentBackendClient, RazorpayAdapter
    from payments.conf import PaymentSettings
    from payments.models import Purchase

ADMIN_ROLE = "admin"
BEARER_PREFIX = "Bearer "


@dataclass(frozen=True)
class AdminActor:
    """The authenticated admin requesting a refund."""

    id: str
    email: str
    role: str

    def audit_fields(self) -> dict[str, str]:
        return {"adminId": self.id, "adminEmail": self.email, "adminRole": self.role}


@dataclass
class RefundRequest:
    razorpay_payment_id: str
    purchase_id: str | None = None
    razorpay_order_id: str | None = None
    amount: Decimal | None = None
    speed: str = RefundSpeed.NORMAL
    notes: str = ""


def normalize_profile(profile: Any) -> AdminActor:
    """
    Read id, email and role from a profile body.

    The fields may sit at the top level or under "user".
    """
    profile = profile if isinstance(profile, dict) else {}
    user = profile.get("user") if isinstance(profile.get("user"), dict) else {}

    def first(*values: Any) -> str:
        for value in values:
            if value:
                return str(value)
        return ""

    return AdminActor(
        id=first(profile.get("_id"), profile.get("id"), user.get("_id"), user.get("id")),
        email=first(profile.get("email"), user.get("email")),
        role=first(profile.get("role"), user.get("role")),
    )


def parse_refund_request(payload: Any) -> tuple[RefundRequest | None, dict[str, list[str]]]:
    """
    Validate a refund payload.

    Returns the parsed request, or None and field errors. amount is in
    major currency units and optional (omitted means a full refund).
    """
    payload = payload if hasattr(payload, "get") else {}
    errors: dict[str, list[str]] = {}

    payment_id = str(payload.get("razorpayPaymentId") or "").strip()
    if not payment_id:
        errors["razorpayPaymentId"] = ["This field is required."]

    amount = None
    raw_amount = payload.get("amount")
    if raw_amount not in (None, ""):
        try:
            amount = Decimal(str(raw_amount))
        except InvalidOperation:
            amount = None
            errors["amount"] = ["A valid number is required."]
        else:
            if isinstance(raw_amount, bool) or not amount.is_finite() or amount <= 0:
                errors["amount"] = ["Ensure this value is greater than 0."]

    speed = payload.get("speed") or RefundSpeed.NORMAL
    if speed not in RefundSpeed.values:
        errors["speed"] = [f'"{speed}" is not a valid choice.']

    notes = payload.get("notes") or ""
    if not isinstance(notes, str):
        notes = ", ".join(f"{key}: {value}" for key, value in notes.items()) if isinstance(notes, dict) else str(notes)

    if errors:
        return None, errors
    return (
        RefundRequest(
            razorpay_payment_id=payment_id,
            purchase_id=payload.get("purchaseId") or None,
            razorpay_order_id=payload.get("razorpayOrderId") or None,
            amount=amount,
            speed=speed,
            notes=notes,
        ),
        {},
    )


# =============================================================================
# Authorization
# =============================================================================


class RefundAuthorizer(BaseService):
    """
    Gate refund requests.

    Failure error codes (audit event in brackets):
        REFUND_API_DISABLED: Kill-switch off, 403 [blocked_disabled]
        UNAUTHORIZED: No bearer token, 401 [blocked_unauthorized]
        CSRF_FAILED: Header/cookie mismatch, 403 [blocked_csrf]
        INVALID_AUTH_TOKEN: Profile lookup failed, 401 [blocked_unauthorized]
        FORBIDDEN_ROLE: Not an admin, 403 [blocked_forbidden_role]
    """

    def __init__(self, payment_settings: PaymentSettings, content_backend: ContentBackendClient):
        self.payment_settings = payment_settings
        self.content_backend = content_backend

    def authorize(
        self,
        authorization: str | None,
        csrf_header: str | None,
        csrf_cookie: str | None,
    ) -> ServiceResult[AdminActor]:
        if not self.payment_settings.refund_api_enabled:
            audit_refund_event("blocked_disabled", reason="ENABLE_REFUND_API is not enabled")
            return ServiceResult.failure("Refund API is disabled", error_code="REFUND_API_DISABLED")

        authorization = authorization or ""
        token = authorization[len(BEARER_PREFIX):].strip() if authorization.startswith(BEARER_PREFIX) else ""
        if not token:
            audit_refund_event("blocked_unauthorized", reason="missing_or_invalid_auth_header")
            return ServiceResult.failure("Admin authorization is required", error_code="UNAUTHORIZED")

        if not csrf_header or not csrf_cookie or not hmac.compare_digest(
            csrf_header.encode("utf-8"), csrf_cookie.encode("utf-8")
        ):
            audit_refund_event("blocked_csrf", reason="csrf_mismatch")
            return ServiceResult.failure("CSRF validation failed", error_code="CSRF_FAILED")

        try:
            profile = self.content_backend.get_profile(token)
        except ContentBackendError as e:
            audit_refund_event("blocked_unauthorized", reason="invalid_auth_token", status=e.status_code)
            return ServiceResult.failure("Admin authorization failed", error_code="INVALID_AUTH_TOKEN")

        actor = normalize_profile(profile)
        if actor.role != ADMIN_ROLE:
            audit_refund_event(
                "blocked_forbidden_role",
                reason="non_admin_user",
                adminId=actor.id,
                adminEmail=actor.email,
            )
            return ServiceResult.from_exception(
                PermissionDeniedError("Admin role required", error_code="FORBIDDEN_ROLE")
            )

        return ServiceResult.success(actor)


# =============================================================================
# Refund
# =============================================================================


class RefundService(BaseService):
    """
    Refund a captured payment and record it on the purchase.

    Failure error codes:
        PAYMENT_CONFIGURATION_ERROR: Gateway credentials missing (500)
        VALIDATION_ERROR: Bad request payload (400)
        PURCHASE_NOT_FOUND: No purchase for the references given (404)
        PAYMENT_CONFLICT: References disagree, the payment id is not the
            purchase's, or the purchase is not PAID (409)
        GATEWAY_*: Razorpay refused or failed the refund
        REFUND_DB_UPDATE_FAILED: Refunded at Razorpay, purchase not updated
            (502, data carries refundId and refundedAmount)
    """

    def __init__(self, payment_settings: PaymentSettings, gateway: RazorpayAdapter):
        self.payment_settings = payment_settings
        self.gateway = gateway

    def refund(self, actor: AdminActor, payload: Any) -> ServiceResult[dict[str, Any]]:
        if not self.payment_settings.has_gateway_credentials:
            audit_refund_event("blocked_missing_credentials", **actor.audit_fields())
            return ServiceResult.from_exception(
                PaymentConfigurationError("Razorpay credentials are missing on server.")
            )

        request, errors = parse_refund_request(payload)
        if request is None:
            audit_refund_event(
                "blocked_bad_request",
                reason="invalid_" + "_".join(sorted(errors)),
                adminId=actor.id,
            )
            return ServiceResult.failure("Invalid refund request", error_code="VALIDATION_ERROR", errors=errors)

        checked = self._check_purchase(actor, request)
        if not checked.success:
            return checked
        purchase_id = str(checked.data.id)

        reference = {
            **actor.audit_fields(),
            "purchaseId": purchase_id or "",
            "razorpayOrderId": request.razorpay_order_id or "",
            "razorpayPaymentId": request.razorpay_payment_id,
        }
        amount_minor = to_minor_units(request.amount) if request.amount is not None else None
        audit_refund_event("refund_attempt", **reference, amountMinor=amount_minor, speed=request.speed)

        gateway_notes = {
            key: value
            for key, value in {
                "purchaseId": purchase_id or "",
                "razorpayOrderId": request.razorpay_order_id or "",
                "refundedBy": actor.email or actor.id,
                "notes": request.notes,
            }.items()
            if value
        }

        try:
            refund = self.gateway.refund_payment(
                request.razorpay_payment_id,
                amount_minor=amount_minor,
                speed=request.speed,
                notes=gateway_notes,
            )
        except GatewayError as e:
            audit_refund_event("refund_error", **reference, message=e.message, status=e.status_code)
            return ServiceResult.failure(e.message, error_code=e.error_code)

        refunded_amount = Decimal(refund.amount_minor) / MINOR_UNITS_PER_MAJOR
        outcome = {**reference, "refundId": refund.id, "refundedAmount": refunded_amount}

        try:
            result = PurchaseService.mark_refunded(
                refund_id=refund.id,
                refunded_amount=refunded_amount,
                notes=request.notes,
                razorpay_order_id=checked.data.razorpay_order_id,
                purchase_id=purchase_id,
            )
        except DatabaseError as e:
            self.get_logger().exception("Purchase mark-refunded failed", extra={"refund_id": refund.id})
            result = ServiceResult.failure(str(e), error_code="DATABASE_ERROR")

        if not result.success:
            audit_refund_event("refund_db_update_failed", **outcome, error_code=result.error_code)
            return ServiceResult(
                success=False,
                data={"refundId": refund.id, "refundedAmount": refunded_amount},
                error="Refund succeeded but DB update failed",
                error_code="REFUND_DB_UPDATE_FAILED",
            )

        purchase = result.data.purchase
        audit_refund_event("refund_success", **{**outcome, "purchaseId": str(purchase.id)})
        return ServiceResult.success(
            {
                "success": True,
                "status": purchase.status or PurchaseStatus.REFUNDED.value,
                "refundId": refund.id,
                "refundedAmount": refunded_amount,
                "purchaseId": str(purchase.id),
                "internalOrderId": purchase.internal_order_id,
            }
        )

    def _check_purchase(self, actor: AdminActor, request: RefundRequest) -> ServiceResult[Purchase]:
        """
        Resolve the purchase being refunded before the gateway is called.

        The purchase must be PAID and record the payment id being refunded.
        """
        reference = {
            "adminId": actor.id,
            "purchaseId": request.purchase_id or "",
            "razorpayOrderId": request.razorpay_order_id or "",
            "razorpayPaymentId": request.razorpay_payment_id,
        }

        try:
            if request.purchase_id or request.razorpay_order_id:
                purchase = PurchaseService.find_purchase(
                    purchase_id=request.purchase_id,
                    razorpay_order_id=request.razorpay_order_id,
                )
            else:
                purchase = PurchaseService.find_by_payment_id(request.razorpay_payment_id)
        except PaymentConflictError as e:
            audit_refund_event("blocked_bad_request", reason="purchase_reference_mismatch", **reference)
            return ServiceResult.from_exception(e)

        if purchase is None:
            audit_refund_event("blocked_bad_request", reason="purchase_not_found", **reference)
            return ServiceResult.from_exception(PurchaseNotFoundError("Purchase not found"))

        if purchase.razorpay_payment_id != request.razorpay_payment_id:
            audit_refund_event("blocked_bad_request", reason="payment_id_mismatch", **reference)
            return ServiceResult.from_exception(
                PaymentConflictError(
                    "razorpayPaymentId does not belong to this purchase",
                    details={"razorpayPaymentId": ["Does not match the purchase."]},
                )
            )

        if purchase.status != PurchaseStatus.PAID:
            audit_refund_event(
                "blocked_bad_request",
                reason="purchase_not_paid",
                status=purchase.status,
                **reference,
            )
            return ServiceResult.from_exception(
                PaymentConflictError(
                    f"Purchase is {purchase.status}, only paid purchases can be refunded",
                    details={"status": [purchase.status]},
                )
            )

        return ServiceResult.success(purchase)
