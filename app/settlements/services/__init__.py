"""
Settlement services.

Usage:
    from settlements.services import PaymentService, PlatformFeeConfigService
"""

from settlements.services.fee_config_service import PlatformFeeConfigService
from settlements.services.funding_account_service import FundingAccountService
from settlements.services.payment_service import (
    BulkCompletionResult,
    PaymentOutcome,
    PaymentService,
)

__all__ = [
    "BulkCompletionResult",
    "FundingAccountService",
    "PaymentOutcome",
    "PaymentService",
    "PlatformFeeConfigService",
]
