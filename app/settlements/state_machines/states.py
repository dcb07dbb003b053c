"""
State enums for settlement models.

PaymentStatus drives the django-fsm field on Payment. The remaining enums
are plain choices used alongside it.

State diagram for PaymentStatus:

    PENDING ──approve / mark_processing──> PROCESSING ──complete──> COMPLETED ──refund──> REFUNDED
       │                                       │
       └──────────dispute──────────┐           ├──dispute──┐
                                   v           v           v
                                 FAILED <───fail────────────
                                   │
                                   └──retry──> PROCESSING
"""

from django.db import models


class PaymentStatus(models.TextChoices):
    """
    Lifecycle states of a Payment.

    States:
        PENDING: Earned by the creator, waiting for company approval
        PROCESSING: Approved, waiting for an admin to pay it out
        COMPLETED: Paid out to the creator's payout method (terminal unless refunded)
        FAILED: Disputed by the company or the payout failed (retryable)
        REFUNDED: A completed payout was reversed externally (terminal)
    """

    PENDING = "pending", "Pending"
    PROCESSING = "processing", "Processing"
    COMPLETED = "completed", "Completed"
    FAILED = "failed", "Failed"
    REFUNDED = "refunded", "Refunded"

    @classmethod
    def terminal_states(cls) -> list[str]:
        """States whose amounts can never change again."""
        return [cls.COMPLETED, cls.REFUNDED]

    @classmethod
    def disputable_states(cls) -> list[str]:
        """States from which a company can still dispute."""
        return [cls.PENDING, cls.PROCESSING]


class FailureKind(models.TextChoices):
    """
    Why a Payment ended up FAILED.

    Classification is stored explicitly so nothing has to parse the
    payment description to find out whether a failure was a dispute.
    """

    DISPUTED = "disputed", "Disputed"
    INSUFFICIENT_FUNDS = "insufficient_funds", "Insufficient Funds"
    BELOW_MINIMUM_PAYOUT = "below_minimum_payout", "Below Minimum Payout"
    PROVIDER_ERROR = "provider_error", "Provider Error"
    PAYOUT_METHOD_UNAVAILABLE = "payout_method_unavailable", "Payout Method Unavailable"
    FUNDING_SOURCE_UNAVAILABLE = "funding_source_unavailable", "Funding Source Unavailable"


class FundingAccountType(models.TextChoices):
    """Kinds of platform funding sources."""

    BANK = "bank", "Bank"
    WALLET = "wallet", "Wallet"
    CARD = "card", "Card"


class FundingAccountStatus(models.TextChoices):
    """
    Status of a platform funding account.

    Only ACTIVE accounts can fund payouts or be made primary.
    """

    ACTIVE = "active", "Active"
    PENDING = "pending", "Pending"
    DISABLED = "disabled", "Disabled"


__all__ = [
    "FailureKind",
    "FundingAccountStatus",
    "FundingAccountType",
    "PaymentStatus",
]
