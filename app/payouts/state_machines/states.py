"""
State enums for payout methods.

A PayoutMethod is a tagged union discriminated by PayoutMethodType. The
e-transfer variant tracks provider onboarding with OnboardingStatus, the
wire variant tracks micro-deposit verification with BankVerificationStatus.

Bank verification flow:

    UNVERIFIED ──create_bank_account──> PENDING ──verify_micro_deposits──> VERIFIED
        │                                  │
        │                                  └──wrong amounts──> PENDING
        └──provider verifies instantly──────────────────────> VERIFIED
"""

from django.db import models


class PayoutMethodType(models.TextChoices):
    """Variants of a payout method."""

    ETRANSFER = "etransfer", "Interac e-Transfer"
    WIRE = "wire", "Wire / ACH"
    PAYPAL = "paypal", "PayPal"
    CRYPTO = "crypto", "Crypto"


class OnboardingStatus(models.TextChoices):
    """
    Provider onboarding status of an e-transfer method.

    States:
        NOT_STARTED: No provider sub-account yet
        IN_PROGRESS: Sub-account created, creator has not finished onboarding
        COMPLETE: Onboarding finished, payouts enabled
        REJECTED: Provider rejected the account
    """

    NOT_STARTED = "not_started", "Not Started"
    IN_PROGRESS = "in_progress", "In Progress"
    COMPLETE = "complete", "Complete"
    REJECTED = "rejected", "Rejected"


class BankVerificationStatus(models.TextChoices):
    """Verification status of a wire/ACH method."""

    UNVERIFIED = "unverified", "Unverified"
    PENDING = "pending", "Pending"
    VERIFIED = "verified", "Verified"


class BankHolderType(models.TextChoices):
    INDIVIDUAL = "individual", "Individual"
    COMPANY = "company", "Company"


class BankAccountType(models.TextChoices):
    CHECKING = "checking", "Checking"
    SAVINGS = "savings", "Savings"


class CryptoNetwork(models.TextChoices):
    """Blockchain networks crypto payouts can be sent on."""

    ETHEREUM = "ethereum", "Ethereum"
    POLYGON = "polygon", "Polygon"
    BSC = "bsc", "BNB Smart Chain"
    BITCOIN = "bitcoin", "Bitcoin"
    TRON = "tron", "Tron"


__all__ = [
    "BankAccountType",
    "BankHolderType",
    "BankVerificationStatus",
    "CryptoNetwork",
    "OnboardingStatus",
    "PayoutMethodType",
]
