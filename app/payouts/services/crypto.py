"""
Crypto payout helpers.

Read-only lookups used while a creator sets up a crypto payout method:
address validation, a network fee estimate and USD exchange rates. Each
lookup fails on its own; none of them blocks adding a method.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_DOWN, Decimal

from core.services import BaseService, ServiceResult
from payouts.adapters.exchange_rates import STABLECOINS, ExchangeRateClient
from payouts.exceptions import (
    ExchangeRateUnavailableError,
    InvalidAddressError,
    PayoutValidationError,
)
from payouts.validators import get_network_spec, validate_wallet_address

# Decimal places crypto amounts are quoted with
QUOTE_PRECISION = {"BTC": 8, "ETH": 6, "BNB": 6, "MATIC": 6}
DEFAULT_QUOTE_PRECISION = 8
STABLECOIN_PRECISION = 2


@dataclass(frozen=True)
class NetworkFeeEstimate:
    network: str
    symbol: str
    fee_usd: Decimal


@dataclass(frozen=True)
class CryptoQuote:
    """How much of an asset a USD amount buys at the current rate."""

    symbol: str
    usd_amount: Decimal
    rate: Decimal
    crypto_amount: Decimal


class CryptoPayoutService(BaseService):
    """Address checks, fee estimates and exchange rates for crypto payouts."""

    _rate_client: ExchangeRateClient | None = None

    @classmethod
    def get_rate_client(cls) -> ExchangeRateClient:
        if cls._rate_client is None:
            cls._rate_client = ExchangeRateClient()
        return cls._rate_client

    @classmethod
    def set_rate_client(cls, client: ExchangeRateClient | None) -> None:
        """Replace the exchange-rate client (for testing)."""
        cls._rate_client = client

    @classmethod
    def validate_address(cls, address: str, network: str) -> ServiceResult[str]:
        """
        Check a wallet address for a network.

        Returns:
            ServiceResult with the stripped address, or INVALID_ADDRESS
        """
        try:
            return ServiceResult.success(validate_wallet_address(address, network))
        except InvalidAddressError as e:
            return cls.handle_exception(e, "validate_address")

    @classmethod
    def estimate_network_fee(cls, network: str) -> ServiceResult[NetworkFeeEstimate]:
        spec = get_network_spec(network)
        if spec is None:
            return ServiceResult.from_exception(
                PayoutValidationError(
                    f"Unsupported network: {network}",
                    details={"errors": {"network": ["Unsupported network"]}},
                )
            )
        return ServiceResult.success(
            NetworkFeeEstimate(network=spec.network, symbol=spec.symbol, fee_usd=spec.estimated_fee_usd)
        )

    @classmethod
    def get_exchange_rates(cls) -> ServiceResult[dict[str, Decimal]]:
        """USD rates per asset symbol, or RATES_UNAVAILABLE."""
        try:
            return ServiceResult.success(cls.get_rate_client().get_rates())
        except ExchangeRateUnavailableError as e:
            return cls.handle_exception(e, "get_exchange_rates")

    @classmethod
    def convert_usd_to_crypto(cls, usd_amount: Decimal, symbol: str) -> ServiceResult[CryptoQuote]:
        """
        Quote a USD amount in a crypto asset.

        Amounts are truncated, never rounded up, to the asset's quoting
        precision so the quote never exceeds what the USD amount buys.
        """
        symbol = symbol.upper()
        usd = Decimal(str(usd_amount))
        try:
            rate = cls.get_rate_client().get_rate(symbol)
        except ExchangeRateUnavailableError as e:
            return cls.handle_exception(e, "convert_usd_to_crypto")

        if symbol in STABLECOINS:
            precision = STABLECOIN_PRECISION
        else:
            precision = QUOTE_PRECISION.get(symbol, DEFAULT_QUOTE_PRECISION)
        quantum = Decimal(1).scaleb(-precision)
        crypto_amount = (usd / rate).quantize(quantum, rounding=ROUND_DOWN)

        return ServiceResult.success(
            CryptoQuote(
                symbol=symbol,
                usd_amount=usd,
                rate=rate,
                crypto_amount=crypto_amount,
            )
        )
