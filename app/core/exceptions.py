"""
Base exception classes for application-wide error handling.

This module provides a standardized exception hierarchy that enables:
- Consistent error responses across the application
- Machine-readable error codes for client handling
- Detailed error information for debugging

Exception Hierarchy:
    BaseApplicationError (base)
    ├── ValidationError - Input validation failures
    ├── NotFoundError - Resource not found
    ├── PermissionDeniedError - Authorization failures
    ├── ConflictError - State conflicts (duplicates, concurrent modifications)
    └── ExternalServiceError - Third-party service failures

Usage:
    from core.exceptions import ValidationError, NotFoundError

    # Raise with message only
    raise ValidationError("Invalid email format")

    # Raise with error code for client handling
    raise NotFoundError("Purchase not found", error_code="PURCHASE_NOT_FOUND")

    # Raise with additional details
    raise ValidationError(
        "Validation failed",
        error_code="VALIDATION_ERROR",
        details={"razorpayPaymentId": ["This field is required."]}
    )

Note:
    These exceptions are for domain/business logic errors.
    DRF handles API-layer exceptions (serialization, parsing, etc.).
    Services usually convert them with ServiceResult.from_exception().
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from typing import Any


class BaseApplicationError(Exception):
    """
    Base exception for all application-specific errors.

    Services convert these into ServiceResult failures with
    ServiceResult.from_exception(); the message and error_code end up in
    the API error body and details become field-level errors.

    Attributes:
        message: Human-readable error description
        error_code: Machine-readable code for client-side handling
        details: Additional error context (field errors, metadata, etc.)
    """

    default_error_code: str = "APPLICATION_ERROR"

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        """
        Initialize the exception.

        Args:
            message: Human-readable error description
            error_code: Machine-readable error code (defaults to class default)
            details: Additional error context
        """
        self.message = message
        self.error_code = error_code or self.default_error_code
        self.details = details or {}
        super().__init__(message)

    def __str__(self) -> str:
        """Return string representation with error code."""
        return f"[{self.error_code}] {self.message}"

    def __repr__(self) -> str:
        """Return detailed representation for debugging."""
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, "
            f"error_code={self.error_code!r}, "
            f"details={self.details!r})"
        )


class ValidationError(BaseApplicationError):
    """
    Raised when service-layer input validation fails.

    Request shape is checked by the DRF serializers; this covers checks
    that need configuration or stored state, such as refund payloads
    validated only after the admin gates.
    """

    default_error_code: str = "VALIDATION_ERROR"


class NotFoundError(BaseApplicationError):
    """
    Raised when a requested resource is not found.

    Example:
        purchase = Purchase.objects.filter(pk=purchase_id).first()
        if not purchase:
            raise NotFoundError(
                "Purchase not found",
                error_code="PURCHASE_NOT_FOUND",
                details={"purchase_id": purchase_id}
            )
    """

    default_error_code: str = "NOT_FOUND"


class PermissionDeniedError(BaseApplicationError):
    """
    Raised when the caller lacks permission for an operation.

    Example:
        if actor.role != "admin":
            raise PermissionDeniedError("Admin role required", error_code="FORBIDDEN_ROLE")

    Note:
        For a missing or malformed credential, return an authentication
        failure instead. Use this for authorization failures.
    """

    default_error_code: str = "PERMISSION_DENIED"


class ConflictError(BaseApplicationError):
    """
    Raised when operation conflicts with current resource state.

    Raised for illegal purchase transitions and for payment signals
    that contradict what is already recorded. Views answer 409.
    """

    default_error_code: str = "CONFLICT"


class ExternalServiceError(BaseApplicationError):
    """
    Raised when an external service call fails.

    Covers the Razorpay API and the content backend. The upstream
    error is logged; clients get a generic message with a 5xx status.
    """

    default_error_code: str = "EXTERNAL_SERVICE_ERROR"
