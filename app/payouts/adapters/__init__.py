"""
Payout adapters for external services.

All payout provider and exchange-rate calls go through these adapters.
get_payout_provider() returns the provider selected by the PAYOUT_PROVIDER
setting; set_payout_provider() swaps it (tests inject a MagicMock or a
SandboxPayoutProvider).

Usage:
    from payouts.adapters import get_payout_provider

    provider = get_payout_provider()
    result = provider.send_payout(method, amount, "CAD", idempotency_key)
"""

from __future__ import annotations

from django.conf import settings

from payouts.adapters.base import (
    BankAccountDetails,
    BankAccountResult,
    IdempotencyKeyGenerator,
    PayoutProvider,
    PayoutResult,
)
from payouts.adapters.exchange_rates import ExchangeRateClient
from payouts.adapters.sandbox import SandboxPayoutProvider
from payouts.adapters.stripe_adapter import StripePayoutProvider

_payout_provider: PayoutProvider | None = None


def get_payout_provider() -> PayoutProvider:
    """Return the configured payout provider, building it on first use."""
    global _payout_provider
    if _payout_provider is None:
        if settings.PAYOUT_PROVIDER == "stripe":
            _payout_provider = StripePayoutProvider(
                timeout=settings.PAYOUT_PROVIDER_TIMEOUT_SECONDS,
            )
        elif settings.PAYOUT_PROVIDER == "sandbox":
            _payout_provider = SandboxPayoutProvider()
        else:
            raise ValueError(f"Unknown PAYOUT_PROVIDER: {settings.PAYOUT_PROVIDER}")
    return _payout_provider


def set_payout_provider(provider: PayoutProvider | None) -> None:
    """
    Replace the payout provider (for testing).

    Pass None to go back to the provider selected by settings.
    """
    global _payout_provider
    _payout_provider = provider


__all__ = [
    "BankAccountDetails",
    "BankAccountResult",
    "ExchangeRateClient",
    "IdempotencyKeyGenerator",
    "PayoutProvider",
    "PayoutResult",
    "SandboxPayoutProvider",
    "StripePayoutProvider",
    "get_payout_provider",
    "set_payout_provider",
]
