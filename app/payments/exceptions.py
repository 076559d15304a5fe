"""
Payment-specific exceptions for the checkout lifecycle.

This module provides the exception hierarchy raised by the payment adapters
and services. Services convert these into ServiceResult failures; views map
the resulting error codes onto HTTP statuses.

Exception Hierarchy:
    PaymentError (base for payment domain)
    ├── PaymentConfigurationError - Missing gateway credentials or secrets
    ├── PurchaseNotFoundError - Purchase lookup failures
    ├── PaymentValidationError - Invalid checkout input
    │   └── InvalidAmountError - Computed charge is not a positive integer
    ├── PricingNotFoundError - No authoritative price could be resolved
    └── PaymentProcessingError - Remote call failures
        ├── GatewayError - Base for all Razorpay errors
        │   ├── GatewayBadRequestError - Request rejected (permanent)
        │   ├── GatewayUnavailableError - Gateway/server error (transient)
        │   └── GatewayTimeoutError - Request timeout (transient)
        └── ContentBackendError - Content backend call failed

    InvalidStateTransitionError - FSM transition not allowed (inherits ConflictError)
    PaymentConflictError - Conflicting authoritative signals (inherits ConflictError)

Usage:
    from payments.exceptions import GatewayError, PricingNotFoundError

    try:
        order = adapter.create_order(amount_minor=500000, currency="INR", ...)
    except GatewayError as e:
        return ServiceResult.failure(e.message, error_code=e.error_code)
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from core.exceptions import (
    BaseApplicationError,
    ConflictError,
    ExternalServiceError,
    NotFoundError,
    ValidationError,
)

if TYPE_CHECKING:
    from typing import Any


# =============================================================================
# Payment Domain Exceptions
# =============================================================================


class PaymentError(BaseApplicationError):
    """
    Base exception for all payment operations.

    All payment-specific exceptions inherit from this class,
    which itself inherits from BaseApplicationError for
    consistent API error responses.
    """

    default_error_code: str = "PAYMENT_ERROR"


class PaymentConfigurationError(PaymentError):
    """
    Raised when a required gateway credential or secret is missing.

    Configuration errors abort the operation before any side effect.
    They are reported to clients as a generic 500 without naming the
    missing value.
    """

    default_error_code: str = "PAYMENT_CONFIGURATION_ERROR"


class PurchaseNotFoundError(PaymentError, NotFoundError):
    """Raised when no purchase matches the supplied reference."""

    default_error_code: str = "PURCHASE_NOT_FOUND"


class PaymentValidationError(PaymentError, ValidationError):
    """
    Raised when checkout input fails validation.

    Example:
        if not package_slug:
            raise PaymentValidationError("packageSlug is required")
    """

    default_error_code: str = "VALIDATION_ERROR"


class InvalidAmountError(PaymentValidationError):
    """Raised when the computed charge is not a positive integer in minor units."""

    default_error_code: str = "INVALID_AMOUNT"


class PricingNotFoundError(PaymentError):
    """
    Raised when no pricing source yields a positive price.

    Order creation must stop here. A default price is never substituted.
    """

    default_error_code: str = "PRICING_NOT_FOUND"


class PaymentProcessingError(PaymentError, ExternalServiceError):
    """
    Raised when a remote call made on behalf of a payment fails.

    Carries the upstream HTTP status when one is known so views can
    surface it to the caller.
    """

    default_error_code: str = "PAYMENT_PROCESSING_ERROR"
    default_status_code: int = 502
    is_retryable: bool = False

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        status_code: int | None = None,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message, error_code=error_code, details=details)
        self.status_code = status_code or self.default_status_code


# =============================================================================
# Gateway Exceptions
# =============================================================================


class GatewayError(PaymentProcessingError):
    """
    Base exception for all Razorpay errors.

    Use is_retryable to decide whether the caller may try again:
    - True: Transient error, safe to retry
    - False: Permanent error, do not retry

    Example:
        try:
            adapter.refund_payment("pay_123")
        except GatewayError as e:
            if e.is_retryable:
                ...
    """

    default_error_code: str = "GATEWAY_ERROR"


class GatewayBadRequestError(GatewayError):
    """
    Gateway rejected the request parameters.

    Not retryable. The gateway's description is passed through to the
    caller with a 400 status.
    """

    default_error_code: str = "GATEWAY_BAD_REQUEST"
    default_status_code: int = 400


class GatewayUnavailableError(GatewayError):
    """Gateway returned a server error or could not be reached."""

    default_error_code: str = "GATEWAY_UNAVAILABLE"
    is_retryable: bool = True


class GatewayTimeoutError(GatewayError):
    """Gateway did not answer within the configured timeout."""

    default_error_code: str = "GATEWAY_TIMEOUT"
    default_status_code: int = 504
    is_retryable: bool = True


# =============================================================================
# Content Backend Exceptions
# =============================================================================


class ContentBackendError(PaymentProcessingError):
    """
    Raised when a content backend request fails.

    status_code is the upstream status for non-2xx answers, 504 for
    timeouts and 503 for connection failures.
    """

    default_error_code: str = "CONTENT_BACKEND_ERROR"


# =============================================================================
# State Machine Exceptions
# =============================================================================


class InvalidStateTransitionError(ConflictError):
    """
    Raised when a purchase state machine transition is not allowed.

    Wraps django-fsm's TransitionNotAllowed in the standard error format.

    Example:
        raise InvalidStateTransitionError(
            "Cannot mark purchase refunded from 'created'",
            details={"current_status": "created", "target_status": "refunded"}
        )
    """

    default_error_code: str = "INVALID_STATE_TRANSITION"


class PaymentConflictError(ConflictError):
    """
    Raised when two authoritative signals disagree about a purchase.

    Example: a payment.failed event for a purchase that is already paid,
    or a capture with a different payment id than the one recorded.
    The mutation is rejected and the conflict logged for operators.
    """

    default_error_code: str = "PAYMENT_CONFLICT"


__all__ = [
    "PaymentError",
    "PaymentConfigurationError",
    "PurchaseNotFoundError",
    "PaymentValidationError",
    "InvalidAmountError",
    "PricingNotFoundError",
    "PaymentProcessingError",
    "GatewayError",
    "GatewayBadRequestError",
    "GatewayUnavailableError",
    "GatewayTimeoutError",
    "ContentBackendError",
    "InvalidStateTransitionError",
    "PaymentConflictError",
]
