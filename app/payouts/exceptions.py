"""
Payout-specific exceptions and error codes.

Exception Hierarchy:
    PayoutError (base for payout domain)
    ├── PayoutValidationError - Missing or malformed method fields
    │   └── InvalidAddressError - Wallet address/network rejected
    ├── PayoutMethodNotFoundError - Unknown method id for the owner
    ├── PayoutMethodInUseError - Method is the destination of an in-flight payout
    ├── PayoutMethodConflictError - A concurrent change to the owner's methods won
    ├── NotInitializedError - Step called before its prerequisite
    └── VerificationMismatchError - Micro-deposit amounts did not match

    PayoutProviderError - Base for provider failures (ExternalServiceError)
    ├── ProviderTimeoutError - Provider did not answer in time (retryable)
    ├── ProviderUnavailableError - Network/5xx/rate limit (retryable)
    └── ProviderInsufficientFundsError - Provider balance too low (permanent)

    ExchangeRateUnavailableError - Rates endpoint failed (ExternalServiceError)

Usage:
    from payouts.exceptions import PayoutErrorCode, PayoutProviderError

    try:
        provider.send_payout(...)
    except PayoutProviderError as e:
        if e.is_retryable:
            schedule_retry()
"""

from __future__ import annotations

from enum import Enum
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


class PayoutErrorCode(str, Enum):
    """Machine-readable outcome codes for payout method operations."""

    VALIDATION_ERROR = "VALIDATION_ERROR"
    INVALID_ADDRESS = "INVALID_ADDRESS"
    METHOD_NOT_FOUND = "METHOD_NOT_FOUND"
    METHOD_IN_USE = "METHOD_IN_USE"
    STALE_STATE = "STALE_STATE"
    NOT_INITIALIZED = "NOT_INITIALIZED"
    VERIFICATION_MISMATCH = "VERIFICATION_MISMATCH"
    PROVIDER_ERROR = "PROVIDER_ERROR"
    INSUFFICIENT_FUNDS = "INSUFFICIENT_FUNDS"
    RATES_UNAVAILABLE = "RATES_UNAVAILABLE"
    PAYOUT_ERROR = "PAYOUT_ERROR"

    def __str__(self) -> str:
        return self.value


# =============================================================================
# Payout Domain Exceptions
# =============================================================================


class PayoutError(BaseApplicationError):
    """Base exception for all payout method operations."""

    default_error_code: str = PayoutErrorCode.PAYOUT_ERROR


class PayoutValidationError(PayoutError, ValidationError):
    """
    Raised when payout method fields are missing or malformed.

    details["errors"] maps field names to messages, so the caller can show
    them next to the offending inputs.

    Example:
        raise PayoutValidationError(
            "Validation failed",
            details={"errors": {"routing_number": ["This field is required."]}},
        )
    """

    default_error_code: str = PayoutErrorCode.VALIDATION_ERROR


class InvalidAddressError(PayoutValidationError):
    """Raised when a wallet address does not match its network's format."""

    default_error_code: str = PayoutErrorCode.INVALID_ADDRESS


class PayoutMethodNotFoundError(PayoutError, NotFoundError):
    """Raised when a method id does not belong to the owner."""

    default_error_code: str = PayoutErrorCode.METHOD_NOT_FOUND


class PayoutMethodInUseError(PayoutError, ConflictError):
    """Raised when deleting a method a payout is currently being sent to."""

    default_error_code: str = PayoutErrorCode.METHOD_IN_USE


class PayoutMethodConflictError(PayoutError, ConflictError):
    """Raised when two writers race to set an owner's default method."""

    default_error_code: str = PayoutErrorCode.STALE_STATE


class NotInitializedError(PayoutError, ConflictError):
    """
    Raised when a step runs before its prerequisite.

    Use for:
    - Verifying micro-deposits before the bank account was submitted
    - Completing onboarding for a method without a provider account
    """

    default_error_code: str = PayoutErrorCode.NOT_INITIALIZED


class VerificationMismatchError(PayoutError, ValidationError):
    """Raised when micro-deposit amounts do not match what was sent."""

    default_error_code: str = PayoutErrorCode.VERIFICATION_MISMATCH


# =============================================================================
# Provider Exceptions
# =============================================================================


class PayoutProviderError(ExternalServiceError):
    """
    Base exception for payout provider failures.

    Attributes:
        provider_code: Provider's own error code, if any
        is_retryable: Whether the same call may succeed later

    Note:
        The message is the provider's text; it is stored verbatim as the
        failure reason of a failed payment.
    """

    default_error_code: str = PayoutErrorCode.PROVIDER_ERROR
    is_retryable: bool = False

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        provider_code: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        details = details or {}
        if provider_code:
            details["provider_code"] = provider_code
        super().__init__(message, error_code=error_code, details=details)
        self.provider_code = provider_code


class ProviderTimeoutError(PayoutProviderError):
    """
    Provider call timed out.

    The operation may have succeeded on the provider's side; retries must
    reuse the same idempotency key.
    """

    is_retryable: bool = True


class ProviderUnavailableError(PayoutProviderError):
    """Network failure, provider 5xx or rate limiting."""

    is_retryable: bool = True


class ProviderInsufficientFundsError(PayoutProviderError):
    """The provider balance cannot cover the transfer."""

    default_error_code: str = PayoutErrorCode.INSUFFICIENT_FUNDS
    is_retryable: bool = False


class ExchangeRateUnavailableError(ExternalServiceError):
    """Raised when exchange rates cannot be fetched or parsed."""

    default_error_code: str = PayoutErrorCode.RATES_UNAVAILABLE


__all__ = [
    "ExchangeRateUnavailableError",
    "InvalidAddressError",
    "NotInitializedError",
    "PayoutError",
    "PayoutErrorCode",
    "PayoutMethodConflictError",
    "PayoutMethodInUseError",
    "PayoutMethodNotFoundError",
    "PayoutProviderError",
    "PayoutValidationError",
    "ProviderInsufficientFundsError",
    "ProviderTimeoutError",
    "ProviderUnavailableError",
    "VerificationMismatchError",
]
