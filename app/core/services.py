"""
Base service layer patterns for business logic encapsulation.

This module provides foundational patterns for the service layer:
- ServiceResult: Standard result wrapper for consistent success/failure handling
- BaseService: Base class with common service utilities

Service Layer Philosophy:
    Services encapsulate business logic separate from models and tasks.
    Models hold data and state transitions, services decide when to run them.

Pattern Comparison:
    - ServiceResult: Use for expected failures (validation, business rules,
      declined payouts)
    - Exceptions: Use for unexpected failures (database errors, bugs)

Usage:
    from core.services import BaseService, ServiceResult

    class FundingAccountService(BaseService):
        @classmethod
        def add(cls, name: str, ...) -> ServiceResult[FundingAccount]:
            with cls.atomic():
                account = FundingAccount.objects.create(name=name, ...)

            cls.get_logger().info(f"Added funding account {account.id}")
            return ServiceResult.success(account)

    result = FundingAccountService.add(...)
    if not result:
        print(result.error_code)
"""

from __future__ import annotations

import logging
import uuid
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Generic, TypeVar

from django.db import transaction

if TYPE_CHECKING:
    from collections.abc import Generator
    from typing import Any

    from core.exceptions import BaseApplicationError

# Generic type for ServiceResult data
T = TypeVar("T")


@dataclass
class ServiceResult(Generic[T]):
    """
    Standard result wrapper for service operations.

    Provides consistent success/failure handling without exceptions.
    Use this for expected failures (validation errors, business rule
    violations, provider declines).

    Attributes:
        success: Whether the operation succeeded
        data: Result data (may also be set on failure, e.g. the failed payment)
        error: Error message if failed (None if successful)
        error_code: Machine-readable error code; domain apps pass enum members
            so callers can switch on the kind instead of the message text
        errors: Field-level errors for validation failures

    Usage:
        result = PaymentService.complete(payment_id)
        if result.success:
            payment = result.data
        elif result.error_code == SettlementErrorCode.INSUFFICIENT_FUNDS:
            top_up_funding_account()
    """

    success: bool
    data: T | None = None
    error: str | None = None
    error_code: str | None = None
    errors: dict[str, list[str]] | None = field(default=None)

    @classmethod
    def ok(cls, data: T) -> ServiceResult[T]:
        """
        Create a successful result.

        Alias for success() - use whichever reads better in context.
        """
        return cls(success=True, data=data)

    @classmethod
    def success(cls, data: T) -> ServiceResult[T]:
        """
        Create a successful result.

        Args:
            data: The result data

        Returns:
            ServiceResult with success=True and data set
        """
        return cls(success=True, data=data)

    @classmethod
    def failure(
        cls,
        error: str,
        error_code: str | None = None,
        errors: dict[str, list[str]] | None = None,
        data: T | None = None,
    ) -> ServiceResult[T]:
        """
        Create a failed result.

        Args:
            error: Human-readable error message
            error_code: Machine-readable error code for caller handling
            errors: Field-level errors (for validation failures)
            data: Optional payload describing the failed entity

        Returns:
            ServiceResult with success=False and error details

        Example:
            return ServiceResult.failure(
                "Validation failed",
                error_code=PayoutErrorCode.VALIDATION_ERROR,
                errors={"wallet_address": ["This field is required."]}
            )
        """
        return cls(
            success=False,
            data=data,
            error=error,
            error_code=error_code,
            errors=errors,
        )

    @classmethod
    def from_exception(cls, exc: Exception, error_code: str | None = None) -> ServiceResult[T]:
        """
        Create a failed result from an exception.

        Application errors keep their own error_code and, for validation
        errors, their field-level details.

        Args:
            exc: The caught exception
            error_code: Optional error code override

        Returns:
            ServiceResult with error details from exception
        """
        message = getattr(exc, "message", None) or str(exc)
        code = error_code or getattr(exc, "error_code", None)
        details = getattr(exc, "details", None) or {}
        field_errors = details.get("errors") if isinstance(details, dict) else None
        return cls(
            success=False,
            error=message,
            error_code=code or exc.__class__.__name__.upper(),
            errors=field_errors,
        )

    def to_response(self) -> dict[str, Any]:
        """
        Convert to a plain dict payload.

        Returns:
            Dict with success status and data or error details
        """
        if self.success:
            return {"success": True, "data": self.data}

        response: dict[str, Any] = {
            "success": False,
            "error": self.error,
        }
        if self.error_code:
            response["error_code"] = str(self.error_code)
        if self.errors:
            response["errors"] = self.errors
        return response

    def map(self, func) -> ServiceResult:
        """
        Transform the data if successful.

        Example:
            result = PayoutMethodRegistry.get_default_method(owner_id)
            method_id = result.map(lambda m: m.id)
        """
        if self.success and self.data is not None:
            return ServiceResult.success(func(self.data))
        return self  # type: ignore

    def __bool__(self) -> bool:
        """
        Allow using result in boolean context.

        Example:
            if PaymentService.approve(payment_id, company_id=company_id):
                print("approved")
        """
        return self.success


class BaseService:
    """
    Base class for service layer classes.

    Provides common utilities for services:
    - Logging setup per service
    - Database transaction management
    - Exception handling patterns

    Design Notes:
        - Use @staticmethod or @classmethod (no instance state)
        - Use ServiceResult for expected failures
        - Raise exceptions for unexpected failures
    """

    @classmethod
    def get_logger(cls) -> logging.Logger:
        """
        Get logger for this service.

        Returns a logger named after the service class for
        easy filtering in logs.
        """
        return logging.getLogger(f"{cls.__module__}.{cls.__name__}")

    @classmethod
    @contextmanager
    def atomic(cls) -> Generator[None, None, None]:
        """
        Execute operations in a database transaction.

        All database operations within this context manager are
        wrapped in a transaction. If any operation fails, all
        changes are rolled back.

        Example:
            with cls.atomic():
                previous.is_default = False
                previous.save(update_fields=["is_default", "updated_at"])
                method.is_default = True
                method.save(update_fields=["is_default", "updated_at"])
        """
        with transaction.atomic():
            yield

    @classmethod
    def handle_exception(
        cls,
        exc: BaseApplicationError | Exception,
        context: str = "",
        log_level: int = logging.WARNING,
    ) -> ServiceResult:
        """
        Convert an expected exception to ServiceResult with logging.

        Args:
            exc: The caught exception
            context: Additional context for logging
            log_level: Logging level (default WARNING)

        Returns:
            ServiceResult with error details
        """
        logger = cls.get_logger()
        message = f"{context}: {exc}" if context else str(exc)
        logger.log(log_level, message)
        return ServiceResult.from_exception(exc)

    @classmethod
    def validate_required(cls, **kwargs) -> dict[str, list[str]]:
        """
        Validate that required fields are provided.

        Args:
            **kwargs: Field names and their values

        Returns:
            Field errors for every missing value (empty dict when all present)

        Example:
            errors = cls.validate_required(wallet_address=address, network=network)
            if errors:
                raise PayoutValidationError("Missing fields", details={"errors": errors})
        """
        errors: dict[str, list[str]] = {}
        for field_name, value in kwargs.items():
            if value is None or (isinstance(value, str) and not value.strip()):
                errors[field_name] = ["This field is required."]
        return errors

    @staticmethod
    def as_uuid(value: Any) -> uuid.UUID | None:
        """Parse an id from a caller, or None if it is not a UUID."""
        if isinstance(value, uuid.UUID):
            return value
        try:
            return uuid.UUID(str(value))
        except (TypeError, ValueError):
            return None
