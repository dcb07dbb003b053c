"""
Status enums for payout methods.
"""

from payouts.state_machines.states import (
    BankAccountType,
    BankHolderType,
    BankVerificationStatus,
    CryptoNetwork,
    OnboardingStatus,
    PayoutMethodType,
)

__all__ = [
    "BankAccountType",
    "BankHolderType",
    "BankVerificationStatus",
    "CryptoNetwork",
    "OnboardingStatus",
    "PayoutMethodType",
]
