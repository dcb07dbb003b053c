"""
Crypto exchange rates.

Rates are USD per one unit of each asset, fetched from a public rates
endpoint with httpx, normalised to {symbol: Decimal} and cached in the
Django cache for EXCHANGE_RATES_CACHE_SECONDS. Stablecoins are pinned to 1.

When the primary endpoint fails, a CoinGecko price query is tried before
giving up. In sandbox mode fixed rates are returned and nothing is fetched.

Usage:
    from payouts.adapters.exchange_rates import ExchangeRateClient

    rates = ExchangeRateClient().get_rates()
    rates["BTC"]  # Decimal("43500")
"""

from __future__ import annotations

import logging
from decimal import Decimal, InvalidOperation
from typing import TYPE_CHECKING, Any

import httpx
from django.conf import settings
from django.core.cache import cache as default_cache

from payouts.exceptions import ExchangeRateUnavailableError

if TYPE_CHECKING:
    from core.protocols import CacheBackend

logger = logging.getLogger(__name__)

CACHE_KEY = "payouts:exchange_rates"

STABLECOINS = ("USDC", "USDT", "BUSD")

SANDBOX_RATES: dict[str, Decimal] = {
    "BTC": Decimal("43500"),
    "ETH": Decimal("2350"),
    "MATIC": Decimal("0.85"),
    "BNB": Decimal("310"),
    "TRX": Decimal("0.11"),
    "USDC": Decimal("1"),
    "USDT": Decimal("1"),
    "BUSD": Decimal("1"),
}

# CoinGecko ids for the fallback query
COINGECKO_IDS = {
    "bitcoin": "BTC",
    "ethereum": "ETH",
    "matic-network": "MATIC",
    "binancecoin": "BNB",
    "tron": "TRX",
}


class ExchangeRateClient:
    """
    Read-through cached exchange-rate lookups.

    Args:
        cache: Cache backend (defaults to Django's default cache)
        http_client: httpx.Client to use; one is created per fetch otherwise
        sandbox: Return fixed rates instead of fetching
    """

    def __init__(
        self,
        cache: CacheBackend | None = None,
        http_client: httpx.Client | None = None,
        sandbox: bool | None = None,
    ) -> None:
        self.cache = cache if cache is not None else default_cache
        self.http_client = http_client
        self.sandbox = settings.EXCHANGE_RATES_SANDBOX if sandbox is None else sandbox
        self.url = settings.EXCHANGE_RATES_URL
        self.fallback_url = settings.EXCHANGE_RATES_FALLBACK_URL
        self.timeout = settings.EXCHANGE_RATES_TIMEOUT_SECONDS
        self.cache_seconds = settings.EXCHANGE_RATES_CACHE_SECONDS

    def get_rates(self) -> dict[str, Decimal]:
        """
        Current USD rates per asset symbol.

        Raises:
            ExchangeRateUnavailableError: Both endpoints failed
        """
        cached = self.cache.get(CACHE_KEY)
        if cached is not None:
            return {symbol: Decimal(value) for symbol, value in cached.items()}

        if self.sandbox:
            rates = dict(SANDBOX_RATES)
        else:
            rates = self._fetch()

        # Stored as strings so any cache serializer round-trips them exactly
        self.cache.set(
            CACHE_KEY,
            {symbol: str(value) for symbol, value in rates.items()},
            timeout=self.cache_seconds,
        )
        return rates

    def get_rate(self, symbol: str) -> Decimal:
        rate = self.get_rates().get(symbol.upper())
        if not rate:
            raise ExchangeRateUnavailableError(
                f"Exchange rate not available for {symbol}",
                details={"symbol": symbol},
            )
        return rate

    def invalidate(self) -> None:
        self.cache.delete(CACHE_KEY)

    # =========================================================================
    # Fetching
    # =========================================================================

    def _fetch(self) -> dict[str, Decimal]:
        try:
            rates = self._parse_primary(self._get_json(self.url))
        except (httpx.HTTPError, ValueError) as e:
            logger.warning(
                "Primary exchange rate fetch failed, trying fallback",
                extra={"url": self.url, "error": str(e)},
            )
            try:
                rates = self._parse_fallback(self._get_json(self.fallback_url))
            except (httpx.HTTPError, ValueError) as fallback_error:
                logger.error(
                    "Exchange rate fallback failed",
                    extra={"url": self.fallback_url, "error": str(fallback_error)},
                )
                raise ExchangeRateUnavailableError(
                    f"Failed to fetch exchange rates: {e}",
                    details={"url": self.url},
                ) from e

        for symbol in STABLECOINS:
            rates[symbol] = Decimal("1")
        logger.info("Fetched exchange rates", extra={"symbols": len(rates)})
        return rates

    def _get_json(self, url: str) -> Any:
        if self.http_client is not None:
            response = self.http_client.get(url)
        else:
            with httpx.Client(timeout=self.timeout, follow_redirects=True) as client:
                response = client.get(url)
        response.raise_for_status()
        return response.json()

    @staticmethod
    def _parse_primary(payload: Any) -> dict[str, Decimal]:
        """Parse a list of {code, name, rate} entries."""
        if not isinstance(payload, list):
            raise ValueError("Rates payload is not a list")

        rates: dict[str, Decimal] = {}
        for item in payload:
            if not isinstance(item, dict) or not item.get("code") or not item.get("rate"):
                continue
            try:
                rates[str(item["code"]).upper()] = Decimal(str(item["rate"]))
            except InvalidOperation:
                continue
        if not rates:
            raise ValueError("Rates payload contained no usable entries")
        return rates

    @staticmethod
    def _parse_fallback(payload: Any) -> dict[str, Decimal]:
        """Parse a CoinGecko simple/price response."""
        if not isinstance(payload, dict):
            raise ValueError("Fallback payload is not an object")

        rates: dict[str, Decimal] = {}
        for coin_id, symbol in COINGECKO_IDS.items():
            usd = (payload.get(coin_id) or {}).get("usd")
            if usd:
                rates[symbol] = Decimal(str(usd))
        if not rates:
            raise ValueError("Fallback payload contained no usable entries")
        return rates
