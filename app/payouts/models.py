"""
Payout method model.

A PayoutMethod is where a creator receives money. The four variants share
one table, discriminated by method_type; variant fields are blank for the
others.

Usage:
    from payouts.models import PayoutMethod
    from payouts.state_machines import PayoutMethodType

    default = PayoutMethod.objects.for_owner(owner_id).filter(is_default=True).first()
    if default and default.is_ready_for_payouts:
        ...
"""

from __future__ import annotations

from django.db import models

from core.model_mixins import UUIDPrimaryKeyMixin, VersionedMixin
from core.models import BaseModel
from payouts.state_machines import (
    BankAccountType,
    BankHolderType,
    BankVerificationStatus,
    CryptoNetwork,
    OnboardingStatus,
    PayoutMethodType,
)


class PayoutMethodQuerySet(models.QuerySet):
    def for_owner(self, owner_id) -> PayoutMethodQuerySet:
        return self.filter(owner_id=owner_id)

    def oldest_first(self) -> PayoutMethodQuerySet:
        return self.order_by("created_at", "id")


class PayoutMethod(UUIDPrimaryKeyMixin, VersionedMixin, BaseModel):
    """
    A destination for a creator's payouts.

    Variants:
        ETRANSFER: email, provider_account_id, onboarding_status
        WIRE: routing_number, account_number, holder_name, holder_type,
            account_type, country, verification_status,
            provider_bank_account_id, verification_method
        PAYPAL: email
        CRYPTO: wallet_address, network

    Fields:
        owner_id: Creator the method belongs to
        is_default: Exactly one per owner while the owner has any methods
        version: Optimistic locking version

    Note:
        A partial unique constraint keeps at most one default per owner;
        PayoutMethodRegistry keeps at least one.
    """

    owner_id = models.UUIDField(
        db_index=True,
        help_text="Creator who receives payouts through this method",
    )

    method_type = models.CharField(
        max_length=16,
        choices=PayoutMethodType.choices,
        help_text="Variant of this payout method",
    )

    is_default = models.BooleanField(
        default=False,
        help_text="Payouts go to the owner's default method",
    )

    # ==========================================================================
    # E-Transfer & PayPal
    # ==========================================================================

    email = models.EmailField(
        blank=True,
        default="",
        help_text="Recipient email for e-transfer and PayPal",
    )

    provider_account_id = models.CharField(
        max_length=255,
        blank=True,
        default="",
        help_text="Provider sub-account (e-transfer) or customer (wire) id",
    )

    onboarding_status = models.CharField(
        max_length=16,
        choices=OnboardingStatus.choices,
        default=OnboardingStatus.NOT_STARTED,
        help_text="Provider onboarding progress for e-transfer",
    )

    # ==========================================================================
    # Wire / ACH
    # ==========================================================================

    routing_number = models.CharField(max_length=9, blank=True, default="")
    account_number = models.CharField(max_length=17, blank=True, default="")
    holder_name = models.CharField(max_length=255, blank=True, default="")

    holder_type = models.CharField(
        max_length=16,
        choices=BankHolderType.choices,
        default=BankHolderType.INDIVIDUAL,
    )

    account_type = models.CharField(
        max_length=16,
        choices=BankAccountType.choices,
        default=BankAccountType.CHECKING,
    )

    country = models.CharField(
        max_length=2,
        blank=True,
        default="",
        help_text="ISO 3166 country of the bank (US or CA)",
    )

    verification_status = models.CharField(
        max_length=16,
        choices=BankVerificationStatus.choices,
        default=BankVerificationStatus.UNVERIFIED,
    )

    provider_bank_account_id = models.CharField(
        max_length=255,
        blank=True,
        default="",
        help_text="Bank account id returned by the payout provider",
    )

    verification_method = models.CharField(
        max_length=32,
        blank=True,
        default="",
        help_text="How the provider verifies the account, e.g. microdeposits",
    )

    # ==========================================================================
    # Crypto
    # ==========================================================================

    wallet_address = models.CharField(max_length=128, blank=True, default="")

    network = models.CharField(
        max_length=16,
        choices=CryptoNetwork.choices,
        blank=True,
        default="",
    )

    metadata = models.JSONField(
        default=dict,
        blank=True,
        help_text="Arbitrary JSON metadata for extensibility",
    )

    objects = PayoutMethodQuerySet.as_manager()

    class Meta:
        ordering = ["created_at"]
        verbose_name = "Payout method"
        verbose_name_plural = "Payout methods"
        indexes = [
            models.Index(fields=["owner_id", "is_default"]),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=["owner_id"],
                condition=models.Q(is_default=True),
                name="unique_default_payout_method_per_owner",
            ),
        ]

    def __str__(self) -> str:
        default = ", default" if self.is_default else ""
        return f"PayoutMethod({self.id}, {self.display_name}{default})"

    @property
    def account_last4(self) -> str:
        return self.account_number[-4:] if self.account_number else ""

    @property
    def display_name(self) -> str:
        """Label safe to show and log; never includes full account numbers."""
        if self.method_type == PayoutMethodType.WIRE:
            return f"Bank ****{self.account_last4}"
        if self.method_type == PayoutMethodType.CRYPTO:
            short = f"{self.wallet_address[:6]}...{self.wallet_address[-4:]}"
            return f"{self.get_network_display()} {short}"
        if self.method_type == PayoutMethodType.ETRANSFER:
            return f"e-Transfer {self.email}"
        return f"PayPal {self.email}"

    @property
    def is_ready_for_payouts(self) -> bool:
        """
        Whether money can be sent to this method right now.

        E-transfer needs a provider sub-account with finished onboarding and
        wire needs a verified bank account. PayPal and crypto are usable as
        soon as they pass validation.
        """
        if self.method_type == PayoutMethodType.ETRANSFER:
            return bool(self.provider_account_id) and (
                self.onboarding_status == OnboardingStatus.COMPLETE
            )
        if self.method_type == PayoutMethodType.WIRE:
            return bool(self.provider_bank_account_id) and (
                self.verification_status == BankVerificationStatus.VERIFIED
            )
        return True

    def destination_snapshot(self) -> dict[str, str]:
        """Masked description stored on payments paid to this method."""
        return {
            "payout_method_id": str(self.id),
            "method_type": self.method_type,
            "display_name": self.display_name,
        }
