"""
Structural validation for payout method details.

Nothing here talks to a provider: these checks run before a method is
stored, so obviously wrong input never reaches the payout provider.

- Crypto wallet addresses are matched against per-network patterns
- Bank details get the US ABA routing checksum or the Canadian transit
  length check, plus account number and holder name checks
- Emails use Django's email validator

Usage:
    from payouts.validators import validate_wallet_address, validate_bank_details

    address = validate_wallet_address(" 0xAbC...", "ethereum")  # stripped
    errors = validate_bank_details(routing, account, holder, country="US")
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from decimal import Decimal

from django.core.exceptions import ValidationError as DjangoValidationError
from django.core.validators import validate_email

from payouts.exceptions import InvalidAddressError
from payouts.state_machines import CryptoNetwork

EVM_ADDRESS = re.compile(r"^0x[a-fA-F0-9]{40}$")
BITCOIN_ADDRESS = re.compile(
    r"^(1[a-km-zA-HJ-NP-Z1-9]{25,34}"
    r"|3[a-km-zA-HJ-NP-Z1-9]{25,34}"
    r"|bc1[a-zA-HJ-NP-Z0-9]{39,59})$"
)
TRON_ADDRESS = re.compile(r"^T[1-9A-HJ-NP-Za-km-z]{33}$")

DIGITS = re.compile(r"^\d+$")
SEPARATORS = re.compile(r"[\s-]")

SUPPORTED_BANK_COUNTRIES = ("US", "CA")
MIN_HOLDER_NAME_LENGTH = 2


@dataclass(frozen=True)
class NetworkSpec:
    """
    Static facts about a crypto payout network.

    Attributes:
        network: CryptoNetwork value
        symbol: Native asset ticker, used to look up exchange rates
        pattern: Address format
        estimated_fee_usd: Typical transfer fee, shown before sending
        address_hint: Short description of the expected format
    """

    network: str
    symbol: str
    pattern: re.Pattern
    estimated_fee_usd: Decimal
    address_hint: str


NETWORKS: dict[str, NetworkSpec] = {
    CryptoNetwork.ETHEREUM: NetworkSpec(
        CryptoNetwork.ETHEREUM, "ETH", EVM_ADDRESS, Decimal("5.00"), "0x followed by 40 hex characters"
    ),
    CryptoNetwork.POLYGON: NetworkSpec(
        CryptoNetwork.POLYGON, "MATIC", EVM_ADDRESS, Decimal("0.10"), "0x followed by 40 hex characters"
    ),
    CryptoNetwork.BSC: NetworkSpec(
        CryptoNetwork.BSC, "BNB", EVM_ADDRESS, Decimal("0.30"), "0x followed by 40 hex characters"
    ),
    CryptoNetwork.BITCOIN: NetworkSpec(
        CryptoNetwork.BITCOIN,
        "BTC",
        BITCOIN_ADDRESS,
        Decimal("2.00"),
        "legacy (1...), P2SH (3...) or bech32 (bc1...) address",
    ),
    CryptoNetwork.TRON: NetworkSpec(
        CryptoNetwork.TRON, "TRX", TRON_ADDRESS, Decimal("1.00"), "T followed by 33 base58 characters"
    ),
}


def get_network_spec(network: str) -> NetworkSpec | None:
    return NETWORKS.get((network or "").strip().lower())


# =============================================================================
# Crypto
# =============================================================================


def validate_wallet_address(address: str, network: str) -> str:
    """
    Check a wallet address against its network's format.

    Args:
        address: Address as typed by the creator; surrounding whitespace is ignored
        network: CryptoNetwork value

    Returns:
        The stripped address

    Raises:
        InvalidAddressError: Unsupported network or malformed address
    """
    spec = get_network_spec(network)
    if spec is None:
        raise InvalidAddressError(
            f"Unsupported network: {network}",
            details={
                "errors": {"network": [f"Supported networks: {', '.join(NETWORKS)}"]},
            },
        )

    cleaned = (address or "").strip()
    if not spec.pattern.match(cleaned):
        raise InvalidAddressError(
            f"Invalid {spec.network} address",
            details={
                "errors": {"wallet_address": [f"Expected {spec.address_hint}"]},
                "network": spec.network,
            },
        )
    return cleaned


def is_valid_wallet_address(address: str, network: str) -> bool:
    try:
        validate_wallet_address(address, network)
    except InvalidAddressError:
        return False
    return True


# =============================================================================
# Bank
# =============================================================================


def normalize_digits(value: str | None) -> str:
    """Drop spaces and dashes people type into bank numbers."""
    return SEPARATORS.sub("", value or "")


def aba_checksum_is_valid(routing_number: str) -> bool:
    """
    ABA routing number checksum.

    3*(d1+d4+d7) + 7*(d2+d5+d8) + (d3+d6+d9) must be divisible by 10.
    """
    if len(routing_number) != 9 or not DIGITS.match(routing_number):
        return False
    d = [int(c) for c in routing_number]
    total = 3 * (d[0] + d[3] + d[6]) + 7 * (d[1] + d[4] + d[7]) + (d[2] + d[5] + d[8])
    return total % 10 == 0


def validate_routing_number(routing_number: str, country: str) -> list[str]:
    errors: list[str] = []
    if country == "CA":
        if not DIGITS.match(routing_number) or not 8 <= len(routing_number) <= 9:
            errors.append("Canadian transit number must be 8 or 9 digits")
        return errors

    if len(routing_number) != 9 or not DIGITS.match(routing_number):
        errors.append("US routing number must be exactly 9 digits")
    elif not aba_checksum_is_valid(routing_number):
        errors.append("Invalid routing number")
    return errors


def validate_bank_details(
    routing_number: str | None,
    account_number: str | None,
    holder_name: str | None,
    country: str | None = "US",
) -> dict[str, list[str]]:
    """
    Validate wire/ACH details without contacting the provider.

    Args:
        routing_number: ABA routing number (US) or transit + institution (CA)
        account_number: 4-17 digits
        holder_name: Name on the account
        country: US or CA

    Returns:
        Field errors; empty when everything is valid
    """
    errors: dict[str, list[str]] = {}
    country = (country or "US").upper()

    if country not in SUPPORTED_BANK_COUNTRIES:
        errors["country"] = [f"Supported countries: {', '.join(SUPPORTED_BANK_COUNTRIES)}"]
        return errors

    routing_errors = validate_routing_number(normalize_digits(routing_number), country)
    if routing_errors:
        errors["routing_number"] = routing_errors

    account = normalize_digits(account_number)
    if not DIGITS.match(account) or not 4 <= len(account) <= 17:
        errors["account_number"] = ["Account number must be 4 to 17 digits"]

    if len((holder_name or "").strip()) < MIN_HOLDER_NAME_LENGTH:
        errors["holder_name"] = ["Account holder name is required"]

    return errors


# =============================================================================
# Email
# =============================================================================


def email_errors(email: str | None) -> list[str]:
    try:
        validate_email((email or "").strip())
    except DjangoValidationError:
        return ["Enter a valid email address."]
    return []
