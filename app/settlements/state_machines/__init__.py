"""
State machine enums for settlement models.

This module defines the state enums used by settlement models with django-fsm.
"""

from settlements.state_machines.states import (
    FailureKind,
    FundingAccountStatus,
    FundingAccountType,
    PaymentStatus,
)

__all__ = [
    "FailureKind",
    "FundingAccountStatus",
    "FundingAccountType",
    "PaymentStatus",
]
