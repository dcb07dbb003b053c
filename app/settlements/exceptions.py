"""
Settlement-specific exceptions and error codes.

Every expected failure of a settlement operation carries a member of
SettlementErrorCode, so callers branch on the code rather than on the
message text.

Exception Hierarchy:
    SettlementError (base for settlement domain)
    ├── InvalidAmountError - Gross amount or fee split is unusable
    ├── FeeConfigValidationError - Admin fee config update rejected
    ├── PaymentNotFoundError - Unknown payment id
    ├── FundingAccountNotFoundError - Unknown funding account id
    ├── FundingAccountStateError - Funding account cannot take the requested role
    └── PayoutBlockedError - Payout cannot proceed, payment moves to FAILED
        ├── InsufficientFundsError
        ├── BelowMinimumPayoutError
        ├── PayoutMethodUnavailableError
        └── FundingSourceUnavailableError

    PaymentPermissionError - Actor does not own the payment (PermissionDeniedError)
    InvalidStateTransitionError - Transition not allowed from current state (ConflictError)
    StaleStateError - Optimistic lock lost or payout in flight (ConflictError)
        └── LockAcquisitionError - Distributed lock is held elsewhere

Usage:
    from settlements.exceptions import SettlementErrorCode, StaleStateError

    result = PaymentService.dispute(payment_id, company_id=company_id)
    if result.error_code == SettlementErrorCode.STALE_STATE:
        reload_and_try_again()
"""

from __future__ import annotations

from enum import Enum

from core.exceptions import (
    BaseApplicationError,
    ConflictError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)
from settlements.state_machines import FailureKind


class SettlementErrorCode(str, Enum):
    """Machine-readable outcome codes for settlement operations."""

    INVALID_AMOUNT = "INVALID_AMOUNT"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    PAYMENT_NOT_FOUND = "PAYMENT_NOT_FOUND"
    FUNDING_ACCOUNT_NOT_FOUND = "FUNDING_ACCOUNT_NOT_FOUND"
    FUNDING_ACCOUNT_INACTIVE = "FUNDING_ACCOUNT_INACTIVE"
    PERMISSION_DENIED = "PERMISSION_DENIED"
    INVALID_STATE = "INVALID_STATE"
    STALE_STATE = "STALE_STATE"
    INSUFFICIENT_FUNDS = "INSUFFICIENT_FUNDS"
    BELOW_MINIMUM_PAYOUT = "BELOW_MINIMUM_PAYOUT"
    PROVIDER_ERROR = "PROVIDER_ERROR"
    PAYOUT_METHOD_UNAVAILABLE = "PAYOUT_METHOD_UNAVAILABLE"
    FUNDING_SOURCE_UNAVAILABLE = "FUNDING_SOURCE_UNAVAILABLE"
    SETTLEMENT_ERROR = "SETTLEMENT_ERROR"

    def __str__(self) -> str:
        return self.value


# =============================================================================
# Settlement Domain Exceptions
# =============================================================================


class SettlementError(BaseApplicationError):
    """
    Base exception for all settlement operations.

    Example:
        try:
            PaymentService.create_payment(...)
        except SettlementError as e:
            logger.error(f"Settlement operation failed: {e}")
    """

    default_error_code: str = SettlementErrorCode.SETTLEMENT_ERROR


class InvalidAmountError(SettlementError, ValidationError):
    """
    Raised when a gross amount cannot be split into fees and net.

    Use for:
    - Zero, negative or non-numeric gross amounts
    - Amounts with more than two fraction digits
    - Fee percentages that would leave a negative net amount
    """

    default_error_code: str = SettlementErrorCode.INVALID_AMOUNT


class FeeConfigValidationError(SettlementError, ValidationError):
    """
    Raised when an admin update to the fee configuration is rejected.

    details["errors"] maps each offending key to its messages.
    """

    default_error_code: str = SettlementErrorCode.VALIDATION_ERROR


class PaymentNotFoundError(SettlementError, NotFoundError):
    """Raised when a payment id does not resolve to a payment."""

    default_error_code: str = SettlementErrorCode.PAYMENT_NOT_FOUND


class FundingAccountNotFoundError(SettlementError, NotFoundError):
    """Raised when a funding account id does not resolve to an account."""

    default_error_code: str = SettlementErrorCode.FUNDING_ACCOUNT_NOT_FOUND


class FundingAccountStateError(SettlementError, ConflictError):
    """Raised when a funding account's status forbids the operation."""

    default_error_code: str = SettlementErrorCode.FUNDING_ACCOUNT_INACTIVE


class PaymentPermissionError(PermissionDeniedError):
    """Raised when a company acts on a payment it does not own."""

    default_error_code: str = SettlementErrorCode.PERMISSION_DENIED


# =============================================================================
# Payout Blocking Exceptions
# =============================================================================


class PayoutBlockedError(SettlementError):
    """
    Base for failures that stop a payout and fail the payment.

    Unlike the rejections above, these are recorded on the payment:
    the service moves it to FAILED with failure_kind set from the
    exception class.

    Attributes:
        failure_kind: FailureKind stored on the failed payment
    """

    failure_kind: str = FailureKind.PROVIDER_ERROR


class InsufficientFundsError(PayoutBlockedError):
    """
    The funding source cannot cover the payout.

    Raised when the available balance (balance minus reserve) of the
    primary funding account is below the payment's net amount, or when
    the provider itself reports insufficient funds.
    """

    default_error_code: str = SettlementErrorCode.INSUFFICIENT_FUNDS
    failure_kind: str = FailureKind.INSUFFICIENT_FUNDS


class BelowMinimumPayoutError(PayoutBlockedError):
    """The payment's net amount is below the configured minimum payout."""

    default_error_code: str = SettlementErrorCode.BELOW_MINIMUM_PAYOUT
    failure_kind: str = FailureKind.BELOW_MINIMUM_PAYOUT


class PayoutMethodUnavailableError(PayoutBlockedError):
    """The creator has no payout method ready to receive money."""

    default_error_code: str = SettlementErrorCode.PAYOUT_METHOD_UNAVAILABLE
    failure_kind: str = FailureKind.PAYOUT_METHOD_UNAVAILABLE


class FundingSourceUnavailableError(PayoutBlockedError):
    """There is no active primary funding account to pay from."""

    default_error_code: str = SettlementErrorCode.FUNDING_SOURCE_UNAVAILABLE
    failure_kind: str = FailureKind.FUNDING_SOURCE_UNAVAILABLE


class PayoutProviderFailedError(PayoutBlockedError):
    """The payout provider rejected or failed the transfer."""

    default_error_code: str = SettlementErrorCode.PROVIDER_ERROR
    failure_kind: str = FailureKind.PROVIDER_ERROR


# =============================================================================
# Concurrency Control Exceptions
# =============================================================================


class InvalidStateTransitionError(ConflictError):
    """
    Raised when a payment transition is not allowed from its current state.

    Example:
        raise InvalidStateTransitionError(
            "Cannot dispute payment in completed status",
            details={"current_status": "completed", "action": "dispute"}
        )
    """

    default_error_code: str = SettlementErrorCode.INVALID_STATE


class StaleStateError(ConflictError):
    """
    Raised when a payment moved underneath the caller.

    Covers both optimistic-lock conflicts (the caller's expected_version
    is behind) and attempts to change a payment whose payout is in flight.

    Attributes:
        details: Contains pk, expected_version and current_version when
            raised by check_version
    """

    default_error_code: str = SettlementErrorCode.STALE_STATE


class LockAcquisitionError(StaleStateError):
    """
    Raised when a distributed lock cannot be acquired.

    Another process is working on the same payment; callers see the same
    STALE_STATE code as an optimistic-lock conflict.
    """


__all__ = [
    "BelowMinimumPayoutError",
    "FeeConfigValidationError",
    "FundingAccountNotFoundError",
    "FundingAccountStateError",
    "FundingSourceUnavailableError",
    "InsufficientFundsError",
    "InvalidAmountError",
    "InvalidStateTransitionError",
    "LockAcquisitionError",
    "PaymentNotFoundError",
    "PaymentPermissionError",
    "PayoutBlockedError",
    "PayoutMethodUnavailableError",
    "PayoutProviderFailedError",
    "SettlementError",
    "SettlementErrorCode",
    "StaleStateError",
]
