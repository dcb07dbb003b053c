"""
Fee computation for creator payments.

A gross amount is split into the platform fee, the payment processing fee
and the net amount the creator receives:

    platform_fee_amount = round2(gross * platform_fee_percentage / 100)
    stripe_fee_amount   = round2(gross * processing_fee_percentage / 100)
    net_amount          = gross - platform_fee_amount - stripe_fee_amount

Each fee is rounded half-up to cents on its own; the gross amount is never
rounded before splitting, so the three parts always add back to the gross.

Usage:
    from settlements.fees import compute_fees

    breakdown = compute_fees(Decimal("1000.00"), fee_config)
    breakdown.net_amount  # Decimal("930.00") at 4% / 3%
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import TYPE_CHECKING, Protocol

from settlements.exceptions import InvalidAmountError

if TYPE_CHECKING:
    from typing import Any

CENT = Decimal("0.01")
HUNDRED = Decimal("100")
# Amount columns hold 12 digits, 2 after the point
MAX_AMOUNT = Decimal("10000000000")
ZERO = Decimal("0.00")


class FeeRates(Protocol):
    """Anything carrying the two fee percentages, e.g. a FeeConfig snapshot."""

    platform_fee_percentage: Decimal
    processing_fee_percentage: Decimal


@dataclass(frozen=True)
class FeeConfig:
    """
    Immutable snapshot of the platform fee configuration.

    Handed out by PlatformFeeConfigService.get_fee_config() and stored
    field-by-field on each payment so later config edits never change
    an existing payment.
    """

    platform_fee_percentage: Decimal
    processing_fee_percentage: Decimal
    minimum_payout_threshold: Decimal
    reserve_percentage: Decimal
    version: int = 1


@dataclass(frozen=True)
class FeeBreakdown:
    """Result of splitting a gross amount."""

    gross_amount: Decimal
    platform_fee_amount: Decimal
    stripe_fee_amount: Decimal
    net_amount: Decimal

    @property
    def total_fees(self) -> Decimal:
        return self.platform_fee_amount + self.stripe_fee_amount


def round2(value: Decimal) -> Decimal:
    """Round to cents, half-up (0.005 -> 0.01)."""
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def to_decimal(value: Any, field: str = "amount") -> Decimal:
    """
    Coerce user input to Decimal.

    Floats go through str() so 0.1 becomes Decimal("0.1") rather than
    its binary expansion.

    Raises:
        InvalidAmountError: If the value is not a finite number
    """
    if isinstance(value, bool):
        raise InvalidAmountError(
            f"{field} must be a number",
            details={field: str(value)},
        )
    try:
        result = value if isinstance(value, Decimal) else Decimal(str(value).strip())
    except (InvalidOperation, ValueError, TypeError):
        raise InvalidAmountError(
            f"{field} must be a number",
            details={field: str(value)},
        ) from None
    if not result.is_finite():
        raise InvalidAmountError(
            f"{field} must be a finite number",
            details={field: str(value)},
        )
    return result


def compute_fees(gross_amount: Any, config: FeeRates) -> FeeBreakdown:
    """
    Split a gross amount into platform fee, processing fee and net.

    Args:
        gross_amount: Amount owed to the creator before fees
        config: Resolved fee percentages (partnership overrides are applied
            by the caller before getting here)

    Returns:
        FeeBreakdown with all amounts at two fraction digits

    Raises:
        InvalidAmountError: If gross is not a positive amount with at most
            two fraction digits, or the percentages would leave a negative net
    """
    gross = to_decimal(gross_amount, "gross_amount")
    if gross <= 0:
        raise InvalidAmountError(
            "Gross amount must be greater than zero",
            details={"gross_amount": str(gross)},
        )
    if gross >= MAX_AMOUNT:
        raise InvalidAmountError(
            f"Gross amount must be less than {MAX_AMOUNT}",
            details={"gross_amount": str(gross)},
        )
    if gross != gross.quantize(CENT):
        raise InvalidAmountError(
            "Gross amount cannot have more than two decimal places",
            details={"gross_amount": str(gross)},
        )

    platform_pct = to_decimal(config.platform_fee_percentage, "platform_fee_percentage")
    processing_pct = to_decimal(config.processing_fee_percentage, "processing_fee_percentage")
    if platform_pct < 0 or processing_pct < 0 or platform_pct + processing_pct > HUNDRED:
        raise InvalidAmountError(
            "Fee percentages must be non-negative and total at most 100",
            details={
                "platform_fee_percentage": str(platform_pct),
                "processing_fee_percentage": str(processing_pct),
            },
        )

    gross = gross.quantize(CENT)
    platform_fee = round2(gross * platform_pct / HUNDRED)
    stripe_fee = round2(gross * processing_pct / HUNDRED)
    net = gross - platform_fee - stripe_fee

    # Two half-up roundings can overshoot a 100% split by a cent
    if net < 0:
        raise InvalidAmountError(
            "Fees exceed the gross amount",
            details={"gross_amount": str(gross), "fees": str(platform_fee + stripe_fee)},
        )

    return FeeBreakdown(
        gross_amount=gross,
        platform_fee_amount=platform_fee,
        stripe_fee_amount=stripe_fee,
        net_amount=net,
    )


def available_balance(balance: Decimal, reserve_percentage: Decimal) -> Decimal:
    """Balance left for payouts after holding back the reserve."""
    return balance - round2(balance * reserve_percentage / HUNDRED)


__all__ = [
    "FeeBreakdown",
    "FeeConfig",
    "available_balance",
    "compute_fees",
    "round2",
    "to_decimal",
]
