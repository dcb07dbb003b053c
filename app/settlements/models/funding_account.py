"""
Platform funding accounts.

Funding accounts are where payout money comes from. At most one is primary;
payouts are always drawn from the primary account.
"""

from __future__ import annotations

from decimal import Decimal

from django.core.validators import RegexValidator
from django.db import models

from core.model_mixins import UUIDPrimaryKeyMixin, VersionedMixin
from core.models import BaseModel
from settlements.fees import available_balance
from settlements.state_machines import FundingAccountStatus, FundingAccountType


class FundingAccount(UUIDPrimaryKeyMixin, VersionedMixin, BaseModel):
    """
    A platform-owned source of funds for creator payouts.

    Fields:
        name: Admin-facing label
        account_type: bank, wallet or card
        last4: Last four digits of the underlying account
        status: active, pending or disabled
        is_primary: Payouts are drawn from the primary account
        balance: Funds currently held
        currency: ISO 4217 currency code
        version: Optimistic locking version

    Note:
        A partial unique constraint keeps at most one primary account.
    """

    name = models.CharField(max_length=120)

    account_type = models.CharField(
        max_length=16,
        choices=FundingAccountType.choices,
    )

    last4 = models.CharField(
        max_length=4,
        validators=[RegexValidator(r"^\d{4}$", "Must be exactly four digits")],
    )

    status = models.CharField(
        max_length=16,
        choices=FundingAccountStatus.choices,
        default=FundingAccountStatus.ACTIVE,
        db_index=True,
    )

    is_primary = models.BooleanField(default=False)

    balance = models.DecimalField(
        max_digits=14,
        decimal_places=2,
        default=Decimal("0.00"),
    )

    currency = models.CharField(max_length=3, default="CAD")

    class Meta:
        ordering = ["created_at"]
        verbose_name = "Funding account"
        verbose_name_plural = "Funding accounts"
        constraints = [
            models.UniqueConstraint(
                fields=["is_primary"],
                condition=models.Q(is_primary=True),
                name="unique_primary_funding_account",
            ),
            models.CheckConstraint(
                condition=models.Q(balance__gte=0),
                name="funding_account_balance_non_negative",
            ),
        ]

    def __str__(self) -> str:
        primary = ", primary" if self.is_primary else ""
        return f"FundingAccount({self.name} ****{self.last4}, {self.status}{primary})"

    @property
    def is_active(self) -> bool:
        return self.status == FundingAccountStatus.ACTIVE

    def available_balance(self, reserve_percentage: Decimal) -> Decimal:
        """Balance minus the held-back reserve."""
        return available_balance(Decimal(str(self.balance)), reserve_percentage)
