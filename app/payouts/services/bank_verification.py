"""
Bank account verification for wire/ACH payout methods.

Flow:
    1. create_bank_account submits the stored bank details to the payout
       provider. The provider answers verified (instant verification) or
       pending with a provider bank account id; two micro-deposits are sent.
    2. verify_micro_deposits checks the two amounts the creator saw on
       their statement.

The method only ever becomes VERIFIED on a positive provider answer. A
timeout or error while submitting leaves it UNVERIFIED; wrong amounts
leave it PENDING so the creator can try again.
"""

from __future__ import annotations

import uuid

from core.exceptions import BaseApplicationError
from core.services import BaseService, ServiceResult
from payouts.adapters import BankAccountDetails, get_payout_provider
from payouts.exceptions import (
    NotInitializedError,
    PayoutErrorCode,
    PayoutMethodNotFoundError,
    PayoutProviderError,
    PayoutValidationError,
    VerificationMismatchError,
)
from payouts.models import PayoutMethod
from payouts.state_machines import BankVerificationStatus, PayoutMethodType

MAX_MICRO_DEPOSIT_CENTS = 99


class BankVerificationService(BaseService):
    """Submits wire/ACH methods to the provider and verifies micro-deposits."""

    @classmethod
    def create_bank_account(
        cls,
        method_id: uuid.UUID,
        *,
        owner_id: uuid.UUID | None = None,
    ) -> ServiceResult[PayoutMethod]:
        """
        Submit a wire method's bank details to the payout provider.

        Args:
            method_id: Wire payout method to submit
            owner_id: When given, the method must belong to this owner

        Returns:
            ServiceResult with the updated method (verified or pending), or
            PROVIDER_ERROR with the method left unverified
        """
        logger = cls.get_logger()

        try:
            method = cls._get_wire_method(method_id, owner_id)
        except BaseApplicationError as e:
            return cls.handle_exception(e, "create_bank_account")

        if method.verification_status == BankVerificationStatus.VERIFIED:
            return ServiceResult.success(method)

        details = BankAccountDetails(
            owner_id=str(method.owner_id),
            routing_number=method.routing_number,
            account_number=method.account_number,
            holder_name=method.holder_name,
            holder_type=method.holder_type,
            account_type=method.account_type,
            country=method.country or "US",
        )

        log_context = {
            "payout_method_id": str(method.id),
            "owner_id": str(method.owner_id),
            "account_last4": method.account_last4,
        }

        try:
            result = get_payout_provider().create_bank_account(details)
        except PayoutProviderError as e:
            logger.warning(
                "Bank account submission failed",
                extra={**log_context, "error": e.message, "retryable": e.is_retryable},
            )
            with cls.atomic():
                method = PayoutMethod.objects.select_for_update().get(pk=method.pk)
                if method.verification_status != BankVerificationStatus.VERIFIED:
                    method.verification_status = BankVerificationStatus.UNVERIFIED
                    method.save(update_fields=["verification_status", "updated_at"])
            return ServiceResult.failure(
                e.message,
                error_code=PayoutErrorCode.PROVIDER_ERROR,
                data=method,
            )

        with cls.atomic():
            method = PayoutMethod.objects.select_for_update().get(pk=method.pk)
            method.provider_bank_account_id = result.provider_bank_account_id
            if result.provider_customer_id:
                method.provider_account_id = result.provider_customer_id
            method.verification_method = result.verification_method
            method.verification_status = (
                BankVerificationStatus.VERIFIED if result.verified else BankVerificationStatus.PENDING
            )
            method.save(
                update_fields=[
                    "provider_bank_account_id",
                    "provider_account_id",
                    "verification_method",
                    "verification_status",
                    "updated_at",
                ]
            )

        logger.info(
            "Bank account submitted",
            extra={**log_context, "verification_status": method.verification_status},
        )
        return ServiceResult.success(method)

    @classmethod
    def verify_micro_deposits(
        cls,
        method_id: uuid.UUID,
        amount1_cents: int,
        amount2_cents: int,
        *,
        owner_id: uuid.UUID | None = None,
    ) -> ServiceResult[PayoutMethod]:
        """
        Confirm the two micro-deposit amounts.

        Returns:
            ServiceResult with the verified method, or NOT_INITIALIZED (no
            provider bank account yet, checked before calling the provider),
            VALIDATION_ERROR, VERIFICATION_MISMATCH (status stays pending)
            or PROVIDER_ERROR
        """
        logger = cls.get_logger()

        try:
            method = cls._get_wire_method(method_id, owner_id)
            if not method.provider_bank_account_id:
                raise NotInitializedError(
                    "Bank account has not been submitted for verification",
                    details={"payout_method_id": str(method_id)},
                )
            amounts = cls._clean_amounts(amount1_cents, amount2_cents)
        except BaseApplicationError as e:
            return cls.handle_exception(e, "verify_micro_deposits")

        if method.verification_status == BankVerificationStatus.VERIFIED:
            return ServiceResult.success(method)

        try:
            verified = get_payout_provider().verify_micro_deposits(
                method.provider_bank_account_id,
                amounts,
                customer_id=method.provider_account_id or None,
            )
        except PayoutProviderError as e:
            logger.warning(
                "Micro-deposit verification call failed",
                extra={"payout_method_id": str(method.id), "error": e.message},
            )
            return ServiceResult.failure(e.message, error_code=PayoutErrorCode.PROVIDER_ERROR, data=method)

        with cls.atomic():
            method = PayoutMethod.objects.select_for_update().get(pk=method.pk)
            attempts = int(method.metadata.get("micro_deposit_attempts", 0)) + 1
            method.metadata = {**method.metadata, "micro_deposit_attempts": attempts}
            if verified:
                method.verification_status = BankVerificationStatus.VERIFIED
            method.save(update_fields=["metadata", "verification_status", "updated_at"])

        if not verified:
            return cls.handle_exception(
                VerificationMismatchError(
                    "Micro-deposit amounts do not match",
                    details={"payout_method_id": str(method.id), "attempts": attempts},
                ),
                "verify_micro_deposits",
            )

        logger.info(
            "Bank account verified",
            extra={"payout_method_id": str(method.id), "attempts": attempts},
        )
        return ServiceResult.success(method)

    @classmethod
    def _get_wire_method(cls, method_id: uuid.UUID, owner_id: uuid.UUID | None) -> PayoutMethod:
        method_uuid = cls.as_uuid(method_id)
        method = None
        if method_uuid is not None:
            queryset = PayoutMethod.objects.filter(id=method_uuid)
            if owner_id is not None:
                queryset = queryset.filter(owner_id=owner_id)
            method = queryset.first()
        if method is None:
            raise PayoutMethodNotFoundError(
                f"Payout method {method_id} not found",
                details={"payout_method_id": str(method_id)},
            )
        if method.method_type != PayoutMethodType.WIRE:
            raise PayoutValidationError(
                "Only wire/ACH methods can be verified",
                details={"errors": {"method_type": ["Not a wire/ACH method."]}},
            )
        return method

    @classmethod
    def _clean_amounts(cls, amount1_cents: int, amount2_cents: int) -> tuple[int, int]:
        errors: dict[str, list[str]] = {}
        cleaned: list[int] = []
        for name, value in (("amount1_cents", amount1_cents), ("amount2_cents", amount2_cents)):
            try:
                cents = int(value)
            except (TypeError, ValueError):
                errors[name] = ["Enter the amount in cents."]
                continue
            if isinstance(value, bool) or not 1 <= cents <= MAX_MICRO_DEPOSIT_CENTS:
                errors[name] = [f"Must be between 1 and {MAX_MICRO_DEPOSIT_CENTS} cents."]
                continue
            cleaned.append(cents)
        if errors:
            raise PayoutValidationError("Validation failed", details={"errors": errors})
        return cleaned[0], cleaned[1]
