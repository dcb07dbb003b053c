"""
Payout services.

- PayoutMethodRegistry: creators' payout methods and the default method
- BankVerificationService: provider submission and micro-deposit checks
- CryptoPayoutService: address checks, network fees and exchange rates
"""

from payouts.services.bank_verification import BankVerificationService
from payouts.services.crypto import CryptoPayoutService, CryptoQuote, NetworkFeeEstimate
from payouts.services.registry import PayoutMethodRegistry, PayoutMethodResult

__all__ = [
    "BankVerificationService",
    "CryptoPayoutService",
    "CryptoQuote",
    "NetworkFeeEstimate",
    "PayoutMethodRegistry",
    "PayoutMethodResult",
]
