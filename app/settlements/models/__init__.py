"""
Settlement domain models.

This module contains all settlement models:
- Payment: Money owed to a creator, tracked through the approval/payout lifecycle
- PlatformFeeConfig: Singleton holding fee percentages and payout limits
- FundingAccount: Platform accounts payouts are drawn from
"""

from settlements.models.fee_config import PlatformFeeConfig
from settlements.models.funding_account import FundingAccount
from settlements.models.payment import Payment

__all__ = [
    "FundingAccount",
    "Payment",
    "PlatformFeeConfig",
]
