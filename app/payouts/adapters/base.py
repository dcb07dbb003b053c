"""
Payout provider interface and shared data types.

The engine never talks to a card or bank network itself: every transfer,
sub-account and bank verification goes through a PayoutProvider. The
Stripe and sandbox adapters implement it; tests inject a MagicMock.

Providers raise payouts.exceptions.PayoutProviderError subclasses for every
failure, with the provider's own text as the message.
"""

from __future__ import annotations

import hashlib
import uuid
from dataclasses import dataclass, field
from decimal import Decimal
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

from django.conf import settings

if TYPE_CHECKING:
    from payouts.models import PayoutMethod


# =============================================================================
# Data Types
# =============================================================================


@dataclass
class BankAccountDetails:
    """
    Bank details submitted for verification.

    Attributes:
        owner_id: Creator the account belongs to
        routing_number: ABA routing or Canadian transit number
        account_number: Full account number (never logged)
        holder_name: Name on the account
        holder_type: individual or company
        account_type: checking or savings
        country: US or CA
        currency: ISO 4217 currency code
    """

    owner_id: str
    routing_number: str
    account_number: str
    holder_name: str
    holder_type: str = "individual"
    account_type: str = "checking"
    country: str = "US"
    currency: str = "CAD"

    @property
    def last4(self) -> str:
        return self.account_number[-4:]


@dataclass
class BankAccountResult:
    """
    Result of submitting a bank account.

    Attributes:
        provider_bank_account_id: Provider's id for the bank account
        verified: True if the provider verified instantly
        verification_method: e.g. "microdeposits" or "instant"
        provider_customer_id: Provider customer the account hangs off, if any
    """

    provider_bank_account_id: str
    verified: bool = False
    verification_method: str = "microdeposits"
    provider_customer_id: str | None = None
    raw_response: dict[str, Any] = field(default_factory=dict)


@dataclass
class PayoutResult:
    """
    Result of a successful payout.

    Attributes:
        transaction_id: Provider reference for the transfer
        amount: Amount sent
        currency: Currency code
    """

    transaction_id: str
    amount: Decimal
    currency: str
    raw_response: dict[str, Any] = field(default_factory=dict)


# =============================================================================
# Provider Protocol
# =============================================================================


@runtime_checkable
class PayoutProvider(Protocol):
    """
    Operations the engine needs from a payout provider.

    All calls block until the provider answers or the configured timeout
    (PAYOUT_PROVIDER_TIMEOUT_SECONDS) expires.
    """

    def create_connected_account(self, owner_id: str, email: str | None = None) -> str:
        """Create a provider sub-account for e-transfer payouts; returns its id."""
        ...

    def create_onboarding_link(self, account_id: str, return_url: str, refresh_url: str) -> str:
        """Return a URL where the creator finishes provider onboarding."""
        ...

    def create_bank_account(self, details: BankAccountDetails) -> BankAccountResult:
        """Submit bank details; the account comes back verified or pending."""
        ...

    def verify_micro_deposits(
        self,
        provider_bank_account_id: str,
        amounts: tuple[int, int],
        customer_id: str | None = None,
    ) -> bool:
        """Check the two deposit amounts in cents; False when they don't match."""
        ...

    def send_payout(
        self,
        method: PayoutMethod,
        amount: Decimal,
        currency: str,
        idempotency_key: str,
        metadata: dict[str, str] | None = None,
    ) -> PayoutResult:
        """Send money to a payout method."""
        ...


# =============================================================================
# Idempotency Key Generator
# =============================================================================


class IdempotencyKeyGenerator:
    """
    Generate idempotency keys for provider calls.

    Format: "{operation}:{entity_id}:{attempt}:{hash}"

    Example:
        key = IdempotencyKeyGenerator.generate(
            operation="send_payout",
            entity_id=payment.id,
            attempt=payment.retry_count + 1,
        )
    """

    @staticmethod
    def generate(
        operation: str,
        entity_id: uuid.UUID | str,
        attempt: int = 1,
    ) -> str:
        entity_str = str(entity_id)
        hash_input = f"{operation}:{entity_str}:{attempt}:{settings.SECRET_KEY}"
        short_hash = hashlib.sha256(hash_input.encode()).hexdigest()[:8]
        return f"{operation}:{entity_str}:{attempt}:{short_hash}"


def to_minor_units(amount: Decimal) -> int:
    """Decimal amount to integer cents."""
    return int((amount * 100).quantize(Decimal("1")))
