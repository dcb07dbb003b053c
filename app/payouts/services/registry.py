"""
Payout method registry.

Keeps each creator's payout methods and the default-method invariant:
while an owner has any methods, exactly one of them is the default.

- The first method an owner adds becomes the default
- Adding with is_default=True or calling set_default demotes the old
  default and promotes the new one in the same transaction
- Deleting the default promotes the oldest remaining method
- A method cannot be deleted while a payout to it is in flight

Usage:
    from payouts.services import PayoutMethodRegistry

    result = PayoutMethodRegistry.add_method(
        owner_id,
        PayoutMethodType.CRYPTO,
        wallet_address="0x...",
        network="polygon",
    )
    if result.success:
        method = result.data.method
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from typing import Any

from django.conf import settings
from django.db import IntegrityError
from django.db.models import F

from core.exceptions import BaseApplicationError
from core.services import BaseService, ServiceResult
from payouts.adapters import get_payout_provider
from payouts.exceptions import (
    NotInitializedError,
    PayoutMethodConflictError,
    PayoutMethodInUseError,
    PayoutMethodNotFoundError,
    PayoutProviderError,
    PayoutValidationError,
)
from payouts.models import PayoutMethod
from payouts.services.crypto import CryptoPayoutService
from payouts.state_machines import (
    BankAccountType,
    BankHolderType,
    OnboardingStatus,
    PayoutMethodType,
)
from payouts.validators import (
    email_errors,
    normalize_digits,
    validate_bank_details,
    validate_wallet_address,
)

# Fields each variant accepts in add_method
VARIANT_FIELDS: dict[str, tuple[str, ...]] = {
    PayoutMethodType.ETRANSFER: ("email",),
    PayoutMethodType.PAYPAL: ("email",),
    PayoutMethodType.WIRE: (
        "routing_number",
        "account_number",
        "holder_name",
        "holder_type",
        "account_type",
        "country",
    ),
    PayoutMethodType.CRYPTO: ("wallet_address", "network"),
}


@dataclass
class PayoutMethodResult:
    """
    Result of adding a method or starting e-transfer onboarding.

    Attributes:
        method: The stored payout method
        onboarding_url: Where the creator finishes provider onboarding
            (e-transfer only)
    """

    method: PayoutMethod
    onboarding_url: str | None = None


class PayoutMethodRegistry(BaseService):
    """
    Service for creators' payout methods.

    All writes lock the owner's method rows with select_for_update so the
    default flag is never lost or duplicated by concurrent calls.
    """

    # =========================================================================
    # Queries
    # =========================================================================

    @classmethod
    def list_methods(cls, owner_id: uuid.UUID) -> list[PayoutMethod]:
        return list(PayoutMethod.objects.for_owner(owner_id).oldest_first())

    @classmethod
    def get_method(cls, owner_id: uuid.UUID, method_id: uuid.UUID) -> PayoutMethod:
        """
        Raises:
            PayoutMethodNotFoundError: No such method for this owner
        """
        method_uuid = cls.as_uuid(method_id)
        method = None
        if method_uuid is not None:
            method = PayoutMethod.objects.for_owner(owner_id).filter(id=method_uuid).first()
        if method is None:
            raise PayoutMethodNotFoundError(
                f"Payout method {method_id} not found",
                details={"payout_method_id": str(method_id), "owner_id": str(owner_id)},
            )
        return method

    @classmethod
    def get_default_method(cls, owner_id: uuid.UUID) -> PayoutMethod | None:
        return PayoutMethod.objects.for_owner(owner_id).filter(is_default=True).first()

    @classmethod
    def is_ready_for_payouts(cls, owner_id: uuid.UUID) -> bool:
        """Whether the owner's default method can receive money now."""
        method = cls.get_default_method(owner_id)
        return method is not None and method.is_ready_for_payouts

    # =========================================================================
    # Add
    # =========================================================================

    @classmethod
    def add_method(
        cls,
        owner_id: uuid.UUID,
        method_type: str,
        *,
        is_default: bool = False,
        **fields: Any,
    ) -> ServiceResult[PayoutMethodResult]:
        """
        Store a new payout method for an owner.

        The owner's first method becomes the default regardless of
        is_default. E-transfer methods also get a provider sub-account and
        an onboarding link; if the provider fails, the method is kept and
        start_etransfer_onboarding can be retried later.

        Args:
            owner_id: Creator adding the method
            method_type: PayoutMethodType value
            is_default: Make this the default, demoting the current one
            **fields: Variant fields (see VARIANT_FIELDS)

        Returns:
            ServiceResult with PayoutMethodResult, or VALIDATION_ERROR /
            INVALID_ADDRESS with per-field errors, or PROVIDER_ERROR (with
            the stored method as data) when e-transfer onboarding failed
        """
        logger = cls.get_logger()

        try:
            cleaned = cls._clean_fields(method_type, fields)
        except PayoutValidationError as e:
            return cls.handle_exception(e, "add_method")

        if method_type == PayoutMethodType.CRYPTO:
            cleaned["metadata"] = cls._crypto_lookups(cleaned["network"])

        try:
            with cls.atomic():
                existing = list(
                    PayoutMethod.objects.select_for_update().for_owner(owner_id).values_list("id", flat=True)
                )
                make_default = is_default or not existing
                if make_default:
                    cls._demote_defaults(owner_id)
                method = PayoutMethod.objects.create(
                    owner_id=owner_id,
                    method_type=method_type,
                    is_default=make_default,
                    **cleaned,
                )
        except IntegrityError:
            # A concurrent first method for this owner took the default slot
            return cls.handle_exception(
                PayoutMethodConflictError(
                    "Another payout method was made default concurrently",
                    details={"owner_id": str(owner_id)},
                ),
                "add_method",
            )

        logger.info(
            "Added payout method",
            extra={
                "owner_id": str(owner_id),
                "payout_method_id": str(method.id),
                "method_type": method_type,
                "is_default": make_default,
            },
        )

        if method_type != PayoutMethodType.ETRANSFER:
            return ServiceResult.success(PayoutMethodResult(method=method))

        try:
            method, onboarding_url = cls._begin_onboarding(method)
        except PayoutProviderError as e:
            logger.warning(
                "E-transfer onboarding could not start",
                extra={"payout_method_id": str(method.id), "error": e.message},
            )
            return ServiceResult.failure(
                e.message,
                error_code=e.error_code,
                data=PayoutMethodResult(method=method),
            )
        return ServiceResult.success(PayoutMethodResult(method=method, onboarding_url=onboarding_url))

    @classmethod
    def _clean_fields(cls, method_type: str, fields: dict[str, Any]) -> dict[str, Any]:
        """
        Validate variant fields and return the values to store.

        Raises:
            PayoutValidationError: Unknown type, unknown/missing/malformed fields
            InvalidAddressError: Wallet address does not match the network
        """
        if method_type not in VARIANT_FIELDS:
            raise PayoutValidationError(
                f"Unsupported payout method type: {method_type}",
                details={"errors": {"method_type": [f"Choose one of: {', '.join(VARIANT_FIELDS)}"]}},
            )

        allowed = VARIANT_FIELDS[method_type]
        unknown = sorted(set(fields) - set(allowed))
        if unknown:
            raise PayoutValidationError(
                "Validation failed",
                details={"errors": {name: ["Not accepted for this method type."] for name in unknown}},
            )

        if method_type in (PayoutMethodType.ETRANSFER, PayoutMethodType.PAYPAL):
            errors = cls.validate_required(email=fields.get("email"))
            if not errors and email_errors(fields["email"]):
                errors["email"] = email_errors(fields["email"])
            if errors:
                raise PayoutValidationError("Validation failed", details={"errors": errors})
            return {"email": fields["email"].strip().lower()}

        if method_type == PayoutMethodType.CRYPTO:
            errors = cls.validate_required(
                wallet_address=fields.get("wallet_address"),
                network=fields.get("network"),
            )
            if errors:
                raise PayoutValidationError("Validation failed", details={"errors": errors})
            network = fields["network"].strip().lower()
            address = validate_wallet_address(fields["wallet_address"], network)
            return {"wallet_address": address, "network": network}

        errors = cls.validate_required(
            routing_number=fields.get("routing_number"),
            account_number=fields.get("account_number"),
            holder_name=fields.get("holder_name"),
        )
        if not errors:
            errors = validate_bank_details(
                fields["routing_number"],
                fields["account_number"],
                fields["holder_name"],
                fields.get("country") or "US",
            )
        holder_type = fields.get("holder_type") or BankHolderType.INDIVIDUAL
        if holder_type not in BankHolderType.values:
            errors["holder_type"] = [f"Choose one of: {', '.join(BankHolderType.values)}"]
        account_type = fields.get("account_type") or BankAccountType.CHECKING
        if account_type not in BankAccountType.values:
            errors["account_type"] = [f"Choose one of: {', '.join(BankAccountType.values)}"]
        if errors:
            raise PayoutValidationError("Validation failed", details={"errors": errors})

        return {
            "routing_number": normalize_digits(fields["routing_number"]),
            "account_number": normalize_digits(fields["account_number"]),
            "holder_name": fields["holder_name"].strip(),
            "holder_type": holder_type,
            "account_type": account_type,
            "country": (fields.get("country") or "US").upper(),
        }

    @classmethod
    def _crypto_lookups(cls, network: str) -> dict[str, str]:
        """Best-effort fee estimate and rate, stored for display."""
        metadata: dict[str, str] = {}
        fee = CryptoPayoutService.estimate_network_fee(network)
        if fee.success:
            metadata["estimated_network_fee_usd"] = str(fee.data.fee_usd)
            rates = CryptoPayoutService.get_exchange_rates()
            rate = rates.data.get(fee.data.symbol) if rates.success else None
            if rate is not None:
                metadata["usd_rate_at_creation"] = str(rate)
        return metadata

    # =========================================================================
    # Default Management
    # =========================================================================

    @classmethod
    def set_default(cls, owner_id: uuid.UUID, method_id: uuid.UUID) -> ServiceResult[PayoutMethod]:
        """Make a method the owner's default, demoting the previous one."""
        try:
            with cls.atomic():
                methods = {
                    m.id: m for m in PayoutMethod.objects.select_for_update().for_owner(owner_id)
                }
                method = methods.get(cls.as_uuid(method_id))
                if method is None:
                    raise PayoutMethodNotFoundError(
                        f"Payout method {method_id} not found",
                        details={"payout_method_id": str(method_id)},
                    )
                if not method.is_default:
                    cls._demote_defaults(owner_id)
                    method.is_default = True
                    method.save(update_fields=["is_default", "updated_at"])
        except BaseApplicationError as e:
            return cls.handle_exception(e, "set_default")

        cls.get_logger().info(
            "Set default payout method",
            extra={"owner_id": str(owner_id), "payout_method_id": str(method.id)},
        )
        return ServiceResult.success(method)

    @classmethod
    def _demote_defaults(cls, owner_id: uuid.UUID) -> None:
        PayoutMethod.objects.for_owner(owner_id).filter(is_default=True).update(
            is_default=False,
            version=F("version") + 1,
        )

    # =========================================================================
    # Delete
    # =========================================================================

    @classmethod
    def delete_method(cls, owner_id: uuid.UUID, method_id: uuid.UUID) -> ServiceResult[PayoutMethod | None]:
        """
        Delete a method; the oldest remaining one takes over as default.

        Returns:
            ServiceResult with the owner's default method after deletion
            (None when no methods remain), or METHOD_NOT_FOUND /
            METHOD_IN_USE
        """
        try:
            with cls.atomic():
                methods = list(
                    PayoutMethod.objects.select_for_update().for_owner(owner_id).oldest_first()
                )
                target_id = cls.as_uuid(method_id)
                method = next((m for m in methods if m.id == target_id), None)
                if method is None:
                    raise PayoutMethodNotFoundError(
                        f"Payout method {method_id} not found",
                        details={"payout_method_id": str(method_id)},
                    )
                if method.payments.filter(payout_started_at__isnull=False).exists():
                    raise PayoutMethodInUseError(
                        "A payout to this method is in progress",
                        details={"payout_method_id": str(method_id)},
                    )

                was_default = method.is_default
                method.delete()

                remaining = [m for m in methods if m.id != target_id]
                new_default = next((m for m in remaining if m.is_default), None)
                if was_default and remaining:
                    new_default = remaining[0]
                    new_default.is_default = True
                    new_default.save(update_fields=["is_default", "updated_at"])
        except BaseApplicationError as e:
            return cls.handle_exception(e, "delete_method")

        cls.get_logger().info(
            "Deleted payout method",
            extra={
                "owner_id": str(owner_id),
                "payout_method_id": str(method_id),
                "new_default_id": str(new_default.id) if new_default else None,
            },
        )
        return ServiceResult.success(new_default)

    # =========================================================================
    # E-Transfer Onboarding
    # =========================================================================

    @classmethod
    def start_etransfer_onboarding(
        cls, owner_id: uuid.UUID, method_id: uuid.UUID
    ) -> ServiceResult[PayoutMethodResult]:
        """
        Create the provider sub-account if missing and return a fresh onboarding link.

        Used for e-transfer methods whose provider account was never created
        or whose onboarding link expired.
        """
        try:
            method = cls.get_method(owner_id, method_id)
            if method.method_type != PayoutMethodType.ETRANSFER:
                raise PayoutValidationError(
                    "Only e-transfer methods need onboarding",
                    details={"errors": {"method_type": ["Not an e-transfer method."]}},
                )
            if method.onboarding_status == OnboardingStatus.COMPLETE:
                return ServiceResult.success(PayoutMethodResult(method=method))
            method, onboarding_url = cls._begin_onboarding(method)
        except BaseApplicationError as e:
            return cls.handle_exception(e, "start_etransfer_onboarding")

        return ServiceResult.success(PayoutMethodResult(method=method, onboarding_url=onboarding_url))

    @classmethod
    def _begin_onboarding(cls, method: PayoutMethod) -> tuple[PayoutMethod, str]:
        """
        Provider calls run outside any transaction.

        Raises:
            PayoutProviderError: Provider failed; the method keeps whatever
                it had before
        """
        provider = get_payout_provider()

        if not method.provider_account_id:
            account_id = provider.create_connected_account(str(method.owner_id), method.email or None)
            with cls.atomic():
                method = PayoutMethod.objects.select_for_update().get(pk=method.pk)
                method.provider_account_id = account_id
                method.onboarding_status = OnboardingStatus.IN_PROGRESS
                method.save(update_fields=["provider_account_id", "onboarding_status", "updated_at"])

        onboarding_url = provider.create_onboarding_link(
            method.provider_account_id,
            settings.PAYOUT_ONBOARDING_RETURN_URL,
            settings.PAYOUT_ONBOARDING_REFRESH_URL,
        )
        return method, onboarding_url

    @classmethod
    def mark_onboarding_complete(cls, method_id: uuid.UUID) -> ServiceResult[PayoutMethod]:
        """
        Record that the creator finished provider onboarding.

        Called out-of-band, e.g. from the provider's account-updated webhook.
        """
        try:
            with cls.atomic():
                method_uuid = cls.as_uuid(method_id)
                method = None
                if method_uuid is not None:
                    method = PayoutMethod.objects.select_for_update().filter(id=method_uuid).first()
                if method is None:
                    raise PayoutMethodNotFoundError(
                        f"Payout method {method_id} not found",
                        details={"payout_method_id": str(method_id)},
                    )
                if not method.provider_account_id:
                    raise NotInitializedError(
                        "Onboarding was never started for this method",
                        details={"payout_method_id": str(method_id)},
                    )
                method.onboarding_status = OnboardingStatus.COMPLETE
                method.save(update_fields=["onboarding_status", "updated_at"])
        except BaseApplicationError as e:
            return cls.handle_exception(e, "mark_onboarding_complete")

        cls.get_logger().info(
            "E-transfer onboarding complete",
            extra={"payout_method_id": str(method_id)},
        )
        return ServiceResult.success(method)
