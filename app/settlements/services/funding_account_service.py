"""
Platform funding account management.

Admins register the accounts payouts are drawn from and pick one as
primary. At most one account is primary at any time; deleting the primary
leaves the platform without one until an admin picks another.
"""

from __future__ import annotations

import re
import uuid
from decimal import Decimal
from typing import TYPE_CHECKING

from django.conf import settings
from django.db import IntegrityError
from django.db.models import F

from core.exceptions import BaseApplicationError
from core.services import BaseService, ServiceResult
from settlements.exceptions import (
    FundingAccountNotFoundError,
    FundingAccountStateError,
    InvalidAmountError,
    SettlementErrorCode,
    StaleStateError,
)
from settlements.fees import CENT, MAX_AMOUNT, to_decimal
from settlements.models import FundingAccount
from settlements.state_machines import FundingAccountStatus, FundingAccountType

if TYPE_CHECKING:
    from typing import Any

LAST4_PATTERN = re.compile(r"^\d{4}$")


class FundingAccountService(BaseService):
    """Add, configure and fund platform funding accounts."""

    @classmethod
    def list_accounts(cls) -> list[FundingAccount]:
        return list(FundingAccount.objects.order_by("created_at", "id"))

    @classmethod
    def get_primary(cls) -> FundingAccount | None:
        return FundingAccount.objects.filter(is_primary=True).first()

    @classmethod
    def add(
        cls,
        name: str,
        account_type: str,
        last4: str,
        *,
        status: str = FundingAccountStatus.ACTIVE,
        is_primary: bool = False,
        balance: Any = Decimal("0.00"),
        currency: str | None = None,
    ) -> ServiceResult[FundingAccount]:
        """
        Register a funding account.

        Args:
            name: Admin-facing label
            account_type: bank, wallet or card
            last4: Last four digits of the underlying account
            status: Initial status (active by default)
            is_primary: Make it the primary account, demoting the current one
            balance: Opening balance
            currency: ISO code, defaults to DEFAULT_PAYMENT_CURRENCY

        Returns:
            ServiceResult with the account, or VALIDATION_ERROR with field
            errors, or FUNDING_ACCOUNT_INACTIVE for a non-active primary
        """
        logger = cls.get_logger()

        errors = cls.validate_required(name=name, account_type=account_type, last4=last4)
        if account_type and account_type not in FundingAccountType.values:
            errors["account_type"] = [f"Must be one of: {', '.join(FundingAccountType.values)}."]
        if last4 and not LAST4_PATTERN.match(str(last4)):
            errors["last4"] = ["Must be exactly four digits."]
        if status not in FundingAccountStatus.values:
            errors["status"] = [f"Must be one of: {', '.join(FundingAccountStatus.values)}."]

        opening_balance = None
        try:
            opening_balance = to_decimal(balance, "balance")
        except InvalidAmountError:
            errors["balance"] = ["Must be a number."]
        if opening_balance is not None and (
            opening_balance < 0
            or opening_balance >= MAX_AMOUNT
            or opening_balance != opening_balance.quantize(CENT)
        ):
            errors["balance"] = ["Must be a non-negative amount with at most two decimal places."]

        if errors:
            return ServiceResult.failure(
                "Validation failed",
                error_code=SettlementErrorCode.VALIDATION_ERROR,
                errors=errors,
            )

        if is_primary and status != FundingAccountStatus.ACTIVE:
            return cls.handle_exception(
                FundingAccountStateError(
                    "Only an active funding account can be primary",
                    details={"status": status},
                ),
                "add",
            )

        try:
            with cls.atomic():
                if is_primary:
                    cls._demote_primary()
                account = FundingAccount.objects.create(
                    name=name.strip(),
                    account_type=account_type,
                    last4=str(last4),
                    status=status,
                    is_primary=is_primary,
                    balance=opening_balance,
                    currency=currency or settings.DEFAULT_PAYMENT_CURRENCY,
                )
        except IntegrityError:
            return cls.handle_exception(cls._primary_conflict(), "add")

        logger.info(
            "Funding account added",
            extra={
                "funding_account_id": str(account.id),
                "account_type": account.account_type,
                "last4": account.last4,
                "is_primary": account.is_primary,
            },
        )
        return ServiceResult.success(account)

    @classmethod
    def set_status(cls, account_id: uuid.UUID, status: str) -> ServiceResult[FundingAccount]:
        """
        Change an account's status.

        A disabled primary stays primary but can no longer fund payouts;
        payouts then fail with FUNDING_SOURCE_UNAVAILABLE.
        """
        if status not in FundingAccountStatus.values:
            return ServiceResult.failure(
                "Validation failed",
                error_code=SettlementErrorCode.VALIDATION_ERROR,
                errors={"status": [f"Must be one of: {', '.join(FundingAccountStatus.values)}."]},
            )

        try:
            with cls.atomic():
                account = cls._lock_account(account_id)
                previous = account.status
                account.status = status
                account.save(update_fields=["status", "updated_at"])
        except BaseApplicationError as e:
            return cls.handle_exception(e, "set_status")

        cls.get_logger().info(
            "Funding account status changed",
            extra={
                "funding_account_id": str(account.id),
                "from_status": previous,
                "to_status": status,
            },
        )
        return ServiceResult.success(account)

    @classmethod
    def set_primary(cls, account_id: uuid.UUID) -> ServiceResult[FundingAccount]:
        """
        Make an account the primary one, demoting the current primary.

        Returns:
            ServiceResult with the new primary, or FUNDING_ACCOUNT_NOT_FOUND,
            or FUNDING_ACCOUNT_INACTIVE when the account is not active
        """
        try:
            with cls.atomic():
                account = cls._lock_account(account_id)
                if account.is_primary:
                    return ServiceResult.success(account)
                if not account.is_active:
                    raise FundingAccountStateError(
                        f"A {account.status} funding account cannot be primary",
                        details={"funding_account_id": str(account.id), "status": account.status},
                    )
                cls._demote_primary()
                account.is_primary = True
                account.save(update_fields=["is_primary", "updated_at"])
        except BaseApplicationError as e:
            return cls.handle_exception(e, "set_primary")
        except IntegrityError:
            return cls.handle_exception(cls._primary_conflict(), "set_primary")

        cls.get_logger().info(
            "Primary funding account changed",
            extra={"funding_account_id": str(account.id)},
        )
        return ServiceResult.success(account)

    @classmethod
    def delete(cls, account_id: uuid.UUID) -> ServiceResult[bool]:
        """
        Delete an account.

        Deleting the primary does not promote another account.
        """
        try:
            with cls.atomic():
                account = cls._lock_account(account_id)
                was_primary = account.is_primary
                account.delete()
        except BaseApplicationError as e:
            return cls.handle_exception(e, "delete")

        cls.get_logger().info(
            "Funding account deleted",
            extra={"funding_account_id": str(account_id), "was_primary": was_primary},
        )
        return ServiceResult.success(True)

    @classmethod
    def credit(cls, account_id: uuid.UUID, amount: Any) -> ServiceResult[FundingAccount]:
        """
        Add funds to an account.

        Returns:
            ServiceResult with the updated account, or INVALID_AMOUNT when the
            amount is not a positive amount in cents
        """
        try:
            value = to_decimal(amount, "amount")
            if value <= 0 or value >= MAX_AMOUNT or value != value.quantize(CENT):
                raise InvalidAmountError(
                    "Credit amount must be positive with at most two decimal places",
                    details={"amount": str(value)},
                )
            with cls.atomic():
                account = cls._lock_account(account_id)
                account.balance = F("balance") + value
                account.save(update_fields=["balance", "updated_at"])
                account.refresh_from_db(fields=["balance"])
        except BaseApplicationError as e:
            return cls.handle_exception(e, "credit")

        cls.get_logger().info(
            "Funding account credited",
            extra={
                "funding_account_id": str(account.id),
                "amount": str(value),
                "balance": str(account.balance),
            },
        )
        return ServiceResult.success(account)

    @classmethod
    def _lock_account(cls, account_id: uuid.UUID) -> FundingAccount:
        account_uuid = cls.as_uuid(account_id)
        account = None
        if account_uuid is not None:
            account = FundingAccount.objects.select_for_update().filter(pk=account_uuid).first()
        if account is None:
            raise FundingAccountNotFoundError(
                f"Funding account {account_id} not found",
                details={"funding_account_id": str(account_id)},
            )
        return account

    @classmethod
    def _primary_conflict(cls) -> StaleStateError:
        # Demoting an absent primary locks no row; the unique constraint catches the race
        return StaleStateError("Another funding account was made primary concurrently")

    @classmethod
    def _demote_primary(cls) -> None:
        FundingAccount.objects.filter(is_primary=True).update(
            is_primary=False,
            version=F("version") + 1,
        )
