"""
Base exception classes for application-wide error handling.

This module provides a standardized exception hierarchy that enables:
- Consistent error payloads across the settlement and payout apps
- Machine-readable error codes for caller handling
- Detailed error information for debugging

Exception Hierarchy:
    BaseApplicationError (base)
    ├── ValidationError - Input validation failures
    ├── NotFoundError - Resource not found
    ├── PermissionDeniedError - Authorization failures
    ├── ConflictError - State conflicts (concurrent modifications, bad transitions)
    └── ExternalServiceError - Third-party service failures

Usage:
    from core.exceptions import ValidationError, NotFoundError

    # Raise with message only
    raise ValidationError("Routing number is required")

    # Raise with error code for caller handling
    raise ValidationError("Unsupported network", error_code="UNSUPPORTED_NETWORK")

    # Raise with additional details
    raise ValidationError(
        "Validation failed",
        error_code="VALIDATION_ERROR",
        details={"wallet_address": ["This field is required."]}
    )

    # Convert to dict for an API or task payload
    try:
        ...
    except BaseApplicationError as e:
        payload = e.to_dict()

Note:
    These exceptions are for domain/business logic errors. Services turn the
    expected ones into ServiceResult failures (see core.services).
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from typing import Any


class BaseApplicationError(Exception):
    """
    Base exception for all application-specific errors.

    Provides a consistent interface for error handling across the application.
    All custom exceptions should inherit from this class.

    Attributes:
        message: Human-readable error description
        error_code: Machine-readable code for caller-side handling
        details: Additional error context (field errors, metadata, etc.)

    Example:
        try:
            method = PayoutMethodRegistry.get_method(owner_id, method_id)
        except NotFoundError as e:
            logger.warning(f"Payout method not found: {e.error_code}")
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

    def to_dict(self) -> dict[str, Any]:
        """
        Convert exception to dictionary.

        Returns:
            Dict with error, error_code, and details keys

        Example:
            {
                "error": "Payment not found",
                "error_code": "PAYMENT_NOT_FOUND",
                "details": {"payment_id": "..."}
            }
        """
        result: dict[str, Any] = {
            "error": self.message,
            "error_code": str(self.error_code),
        }
        if self.details:
            result["details"] = self.details
        return result

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
    Raised when input validation fails.

    Use for:
    - Invalid field formats (routing numbers, emails, addresses)
    - Missing required fields
    - Out-of-range configuration values

    Example:
        raise ValidationError(
            "Validation failed",
            error_code="VALIDATION_ERROR",
            details={
                "routing_number": ["US routing number must be exactly 9 digits"],
                "holder_name": ["Account holder name is required"],
            }
        )
    """

    default_error_code: str = "VALIDATION_ERROR"


class NotFoundError(BaseApplicationError):
    """
    Raised when a requested resource is not found.

    Example:
        account = FundingAccount.objects.filter(id=account_id).first()
        if not account:
            raise NotFoundError(
                f"Funding account {account_id} not found",
                error_code="FUNDING_ACCOUNT_NOT_FOUND",
                details={"funding_account_id": str(account_id)}
            )
    """

    default_error_code: str = "NOT_FOUND"


class PermissionDeniedError(BaseApplicationError):
    """
    Raised when an actor lacks permission for an operation.

    Use for:
    - A company acting on another company's payment
    - An owner touching another owner's payout method

    Example:
        if payment.company_id != company_id:
            raise PermissionDeniedError(
                "Payment does not belong to this company",
                details={"payment_id": str(payment.id)}
            )
    """

    default_error_code: str = "PERMISSION_DENIED"


class ConflictError(BaseApplicationError):
    """
    Raised when an operation conflicts with current resource state.

    Use for:
    - Concurrent modification conflicts
    - Invalid state transitions
    - Optimistic locking failures

    Example:
        if payment.status != "pending":
            raise ConflictError(
                f"Cannot approve payment in {payment.status} status",
                error_code="INVALID_STATE",
                details={"current_status": payment.status, "action": "approve"}
            )
    """

    default_error_code: str = "CONFLICT"


class ExternalServiceError(BaseApplicationError):
    """
    Raised when an external service call fails.

    Use for:
    - Payout provider failures (Stripe, sandbox)
    - Exchange-rate lookups
    - Network timeouts

    Note:
        Log the original error for debugging but keep provider internals
        out of messages shown to creators.
    """

    default_error_code: str = "EXTERNAL_SERVICE_ERROR"
