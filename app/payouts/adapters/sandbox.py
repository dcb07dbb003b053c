"""
Sandbox payout provider.

Behaves like a real provider without moving money, so the full settlement
and verification flows can run locally and in tests:

- Sub-accounts and bank accounts get random sandbox ids
- Bank accounts come back pending; the micro-deposits are always
  32 and 45 cents
- Payouts succeed with a reference prefixed by the method type, unless the
  configured balance cannot cover them

Selected with PAYOUT_PROVIDER=sandbox.
"""

from __future__ import annotations

import logging
import uuid
from decimal import Decimal
from typing import TYPE_CHECKING

from payouts.adapters.base import BankAccountDetails, BankAccountResult, PayoutResult
from payouts.exceptions import PayoutProviderError, ProviderInsufficientFundsError
from payouts.state_machines import PayoutMethodType

if TYPE_CHECKING:
    from payouts.models import PayoutMethod

logger = logging.getLogger(__name__)

SANDBOX_MICRO_DEPOSITS = (32, 45)

TRANSACTION_PREFIXES = {
    PayoutMethodType.ETRANSFER: "ET",
    PayoutMethodType.WIRE: "WIRE",
    PayoutMethodType.PAYPAL: "PP",
    PayoutMethodType.CRYPTO: "0x",
}


def _short_id() -> str:
    return uuid.uuid4().hex[:16]


class SandboxPayoutProvider:
    """
    In-process payout provider for development and tests.

    Args:
        balance: Provider-side balance; None means unlimited
        micro_deposits: Amounts (cents) a bank account must be verified with
        instant_verification: Return bank accounts already verified
    """

    def __init__(
        self,
        balance: Decimal | None = None,
        micro_deposits: tuple[int, int] = SANDBOX_MICRO_DEPOSITS,
        instant_verification: bool = False,
    ) -> None:
        self.balance = balance
        self.micro_deposits = micro_deposits
        self.instant_verification = instant_verification
        self.bank_accounts: dict[str, BankAccountDetails] = {}
        self.payouts: dict[str, PayoutResult] = {}

    def create_connected_account(self, owner_id: str, email: str | None = None) -> str:
        account_id = f"acct_sandbox_{_short_id()}"
        logger.info(
            "Sandbox connected account created",
            extra={"owner_id": str(owner_id), "account_id": account_id},
        )
        return account_id

    def create_onboarding_link(self, account_id: str, return_url: str, refresh_url: str) -> str:
        separator = "&" if "?" in return_url else "?"
        return f"{return_url}{separator}sandbox_account={account_id}"

    def create_bank_account(self, details: BankAccountDetails) -> BankAccountResult:
        bank_account_id = f"ba_sandbox_{_short_id()}"
        self.bank_accounts[bank_account_id] = details
        logger.info(
            "Sandbox bank account created",
            extra={
                "owner_id": details.owner_id,
                "bank_account_id": bank_account_id,
                "account_last4": details.last4,
            },
        )
        return BankAccountResult(
            provider_bank_account_id=bank_account_id,
            verified=self.instant_verification,
            verification_method="instant" if self.instant_verification else "microdeposits",
            provider_customer_id=f"cus_sandbox_{_short_id()}",
        )

    def verify_micro_deposits(
        self,
        provider_bank_account_id: str,
        amounts: tuple[int, int],
        customer_id: str | None = None,
    ) -> bool:
        return sorted(amounts) == sorted(self.micro_deposits)

    def send_payout(
        self,
        method: PayoutMethod,
        amount: Decimal,
        currency: str,
        idempotency_key: str,
        metadata: dict[str, str] | None = None,
    ) -> PayoutResult:
        if idempotency_key in self.payouts:
            return self.payouts[idempotency_key]

        if amount <= 0:
            raise PayoutProviderError(
                "Payout amount must be positive",
                provider_code="invalid_amount",
            )
        if self.balance is not None:
            if amount > self.balance:
                raise ProviderInsufficientFundsError(
                    "Insufficient funds in sandbox balance",
                    provider_code="balance_insufficient",
                )
            self.balance -= amount

        prefix = TRANSACTION_PREFIXES.get(method.method_type, "TX")
        separator = "" if prefix == "0x" else "-"
        result = PayoutResult(
            transaction_id=f"{prefix}{separator}{uuid.uuid4().hex}",
            amount=amount,
            currency=currency,
            raw_response={"sandbox": True, "metadata": metadata or {}},
        )
        self.payouts[idempotency_key] = result
        logger.info(
            "Sandbox payout sent",
            extra={
                "payout_method_id": str(method.id),
                "amount": str(amount),
                "transaction_id": result.transaction_id,
            },
        )
        return result
