"""
Platform fee configuration service.

Reads are served from a process-wide cache holding a frozen FeeConfig
snapshot, loaded from the singleton row on first use. Admin updates are
validated key by key, written in one transaction and invalidate the cache,
so the next read in any thread sees the new values.

Usage:
    from settlements.services import PlatformFeeConfigService

    config = PlatformFeeConfigService.get_fee_config()
    breakdown = compute_fees(gross, config)

    result = PlatformFeeConfigService.update_fee_config(platform_fee_percentage="5")
    if not result:
        print(result.errors)  # {"platform_fee_percentage": [...]}
"""

from __future__ import annotations

import threading
from decimal import Decimal
from typing import TYPE_CHECKING

from core.services import BaseService, ServiceResult
from settlements.exceptions import FeeConfigValidationError, InvalidAmountError
from settlements.fees import MAX_AMOUNT, FeeConfig, to_decimal
from settlements.models import PlatformFeeConfig

if TYPE_CHECKING:
    from collections.abc import Callable
    from typing import Any

PERCENTAGE_FIELDS = (
    "platform_fee_percentage",
    "processing_fee_percentage",
    "reserve_percentage",
)
AMOUNT_FIELDS = ("minimum_payout_threshold",)
UPDATABLE_FIELDS = PERCENTAGE_FIELDS + AMOUNT_FIELDS

HUNDRED = Decimal("100")


class FeeConfigCache:
    """Thread-safe holder for the current FeeConfig snapshot."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._snapshot: FeeConfig | None = None

    def get(self, loader: Callable[[], FeeConfig]) -> FeeConfig:
        with self._lock:
            if self._snapshot is None:
                self._snapshot = loader()
            return self._snapshot

    def invalidate(self) -> None:
        with self._lock:
            self._snapshot = None


class PlatformFeeConfigService(BaseService):
    """Read and update the platform fee configuration."""

    _cache = FeeConfigCache()

    @classmethod
    def get_fee_config(cls) -> FeeConfig:
        """Current fee configuration, read through the process cache."""
        return cls._cache.get(lambda: PlatformFeeConfig.load().to_snapshot())

    @classmethod
    def clear_cache(cls) -> None:
        cls._cache.invalidate()

    @classmethod
    def update_fee_config(cls, **changes: Any) -> ServiceResult[FeeConfig]:
        """
        Apply a partial admin update.

        Every supplied key is validated before anything is written; either
        all keys are stored or none are.

        Args:
            **changes: Any of platform_fee_percentage,
                processing_fee_percentage, reserve_percentage (0-100) and
                minimum_payout_threshold (>= 0)

        Returns:
            ServiceResult with the new FeeConfig snapshot, or
            VALIDATION_ERROR with per-key errors
        """
        logger = cls.get_logger()

        try:
            cleaned = cls._clean(changes)
            with cls.atomic():
                config = PlatformFeeConfig.load(for_update=True)
                merged = {name: getattr(config, name) for name in UPDATABLE_FIELDS}
                merged.update(cleaned)
                if merged["platform_fee_percentage"] + merged["processing_fee_percentage"] > HUNDRED:
                    raise FeeConfigValidationError(
                        "Fee percentages cannot total more than 100",
                        details={
                            "errors": {
                                "platform_fee_percentage": [
                                    "Platform and processing fees cannot total more than 100."
                                ],
                            }
                        },
                    )
                for name, value in cleaned.items():
                    setattr(config, name, value)
                config.save()
        except FeeConfigValidationError as e:
            return cls.handle_exception(e, "update_fee_config")
        finally:
            # The row may have changed even when this call failed validation
            cls._cache.invalidate()

        snapshot = config.to_snapshot()
        logger.info(
            "Platform fee config updated",
            extra={
                "version": snapshot.version,
                "changes": {name: str(value) for name, value in cleaned.items()},
            },
        )
        return ServiceResult.success(snapshot)

    @classmethod
    def _clean(cls, changes: dict[str, Any]) -> dict[str, Decimal]:
        errors: dict[str, list[str]] = {}
        cleaned: dict[str, Decimal] = {}

        if not changes:
            errors["non_field_errors"] = ["Provide at least one setting to update."]

        for name, raw in changes.items():
            if name not in UPDATABLE_FIELDS:
                errors[name] = ["Unknown fee config setting."]
                continue
            try:
                value = to_decimal(raw, name)
            except InvalidAmountError:
                errors[name] = ["Must be a number."]
                continue
            if name in PERCENTAGE_FIELDS and not Decimal("0") <= value <= HUNDRED:
                errors[name] = ["Must be between 0 and 100."]
            elif name in AMOUNT_FIELDS and value < 0:
                errors[name] = ["Cannot be negative."]
            elif name in AMOUNT_FIELDS and value >= MAX_AMOUNT:
                errors[name] = [f"Must be less than {MAX_AMOUNT}."]
            elif value != value.quantize(Decimal("0.01")):
                errors[name] = ["Cannot have more than two decimal places."]
            else:
                cleaned[name] = value.quantize(Decimal("0.01"))

        if errors:
            raise FeeConfigValidationError(
                "Invalid fee configuration",
                details={"errors": errors},
            )
        return cleaned
