"""
Tests for ServiceResult, BaseService and the application exception hierarchy.

These tests verify that:
- Expected failures become ServiceResult values carrying the error code
- Field errors travel from exception details to ServiceResult.errors
- Exceptions render with their code for logs
"""

from __future__ import annotations

import uuid

import pytest

from core.exceptions import BaseApplicationError, ConflictError, NotFoundError, ValidationError
from core.services import BaseService, ServiceResult


class ExampleService(BaseService):
    pass


# =============================================================================
# ServiceResult
# =============================================================================


class TestServiceResult:
    def test_success(self):
        result = ServiceResult.success({"id": 1})

        assert result.success is True
        assert bool(result) is True
        assert result.data == {"id": 1}
        assert result.error is None

    def test_failure_keeps_data(self):
        result = ServiceResult.failure("Payout failed", error_code="PROVIDER_ERROR", data="payment")

        assert bool(result) is False
        assert result.data == "payment"
        assert result.to_response() == {
            "success": False,
            "error": "Payout failed",
            "error_code": "PROVIDER_ERROR",
        }

    def test_from_exception_uses_message_and_field_errors(self):
        exc = ValidationError(
            "Invalid bank details",
            details={"errors": {"routing_number": ["Invalid routing number checksum"]}},
        )

        result = ServiceResult.from_exception(exc)

        assert result.error == "Invalid bank details"
        assert result.error_code == "VALIDATION_ERROR"
        assert result.errors == {"routing_number": ["Invalid routing number checksum"]}

    def test_from_plain_exception(self):
        result = ServiceResult.from_exception(RuntimeError("boom"))

        assert result.error == "boom"
        assert result.error_code == "RUNTIMEERROR"
        assert result.errors is None

    def test_map(self):
        assert ServiceResult.success(2).map(lambda value: value * 10).data == 20

        failed = ServiceResult.failure("nope")
        assert failed.map(lambda value: value * 10) is failed


# =============================================================================
# BaseService
# =============================================================================


class TestBaseService:
    def test_logger_named_after_service(self):
        assert ExampleService.get_logger().name == f"{__name__}.ExampleService"

    def test_validate_required(self):
        errors = ExampleService.validate_required(name="Ops", last4="  ", owner_id=None)

        assert errors == {
            "last4": ["This field is required."],
            "owner_id": ["This field is required."],
        }

    def test_as_uuid(self):
        value = uuid.uuid4()

        assert ExampleService.as_uuid(value) is value
        assert ExampleService.as_uuid(str(value)) == value
        assert ExampleService.as_uuid("not-a-uuid") is None
        assert ExampleService.as_uuid(None) is None

    def test_handle_exception(self):
        result = ExampleService.handle_exception(NotFoundError("Payment missing"), "approve")

        assert result.error_code == "NOT_FOUND"
        assert result.error == "Payment missing"


# =============================================================================
# Exceptions
# =============================================================================


class TestApplicationErrors:
    def test_str_includes_code(self):
        assert str(ConflictError("Row moved")) == "[CONFLICT] Row moved"

    def test_custom_code_and_details(self):
        exc = BaseApplicationError("Bad network", error_code="UNSUPPORTED_NETWORK", details={"network": "x"})

        assert exc.to_dict() == {
            "error": "Bad network",
            "error_code": "UNSUPPORTED_NETWORK",
            "details": {"network": "x"},
        }

    def test_subclasses_are_catchable_as_base(self):
        with pytest.raises(BaseApplicationError):
            raise ValidationError("Invalid")
