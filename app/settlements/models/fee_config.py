"""
Platform fee configuration singleton.

One row (pk=1) holds the platform-wide fee split and payout limits. Reads go
through PlatformFeeConfigService, which caches a frozen FeeConfig snapshot.
"""

from __future__ import annotations

from decimal import Decimal

from django.conf import settings
from django.core.validators import MaxValueValidator, MinValueValidator
from django.db import models

from core.model_mixins import VersionedMixin
from core.models import BaseModel
from settlements.fees import FeeConfig

SINGLETON_PK = 1

PERCENTAGE_VALIDATORS = [MinValueValidator(Decimal("0")), MaxValueValidator(Decimal("100"))]


class PlatformFeeConfig(VersionedMixin, BaseModel):
    """
    Platform-wide fee percentages and payout limits.

    Fields:
        platform_fee_percentage: Platform's cut of each gross amount (0-100)
        processing_fee_percentage: Payment processing cut (0-100)
        minimum_payout_threshold: Smallest net amount that can be paid out
        reserve_percentage: Share of the funding balance held back from payouts
        version: Bumped on every admin write; copied onto each payment
    """

    id = models.PositiveSmallIntegerField(
        primary_key=True,
        default=SINGLETON_PK,
        editable=False,
    )

    platform_fee_percentage = models.DecimalField(
        max_digits=5,
        decimal_places=2,
        validators=PERCENTAGE_VALIDATORS,
    )

    processing_fee_percentage = models.DecimalField(
        max_digits=5,
        decimal_places=2,
        validators=PERCENTAGE_VALIDATORS,
    )

    minimum_payout_threshold = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        validators=[MinValueValidator(Decimal("0"))],
    )

    reserve_percentage = models.DecimalField(
        max_digits=5,
        decimal_places=2,
        validators=PERCENTAGE_VALIDATORS,
    )

    class Meta:
        verbose_name = "Platform fee config"
        verbose_name_plural = "Platform fee config"
        constraints = [
            models.CheckConstraint(
                condition=models.Q(id=SINGLETON_PK),
                name="platform_fee_config_singleton",
            ),
        ]

    def __str__(self) -> str:
        return (
            f"PlatformFeeConfig(v{self.version}, platform={self.platform_fee_percentage}%, "
            f"processing={self.processing_fee_percentage}%)"
        )

    @classmethod
    def defaults(cls) -> dict[str, Decimal]:
        """Initial values, taken from settings."""
        return {
            "platform_fee_percentage": Decimal(str(settings.DEFAULT_PLATFORM_FEE_PERCENTAGE)),
            "processing_fee_percentage": Decimal(str(settings.DEFAULT_PROCESSING_FEE_PERCENTAGE)),
            "minimum_payout_threshold": Decimal(str(settings.DEFAULT_MINIMUM_PAYOUT_THRESHOLD)),
            "reserve_percentage": Decimal(str(settings.DEFAULT_RESERVE_PERCENTAGE)),
        }

    @classmethod
    def load(cls, for_update: bool = False) -> PlatformFeeConfig:
        """Fetch the singleton row, creating it with defaults on first use."""
        queryset = cls.objects.select_for_update() if for_update else cls.objects
        config, _ = queryset.get_or_create(pk=SINGLETON_PK, defaults=cls.defaults())
        return config

    def to_snapshot(self) -> FeeConfig:
        return FeeConfig(
            platform_fee_percentage=Decimal(str(self.platform_fee_percentage)),
            processing_fee_percentage=Decimal(str(self.processing_fee_percentage)),
            minimum_payout_threshold=Decimal(str(self.minimum_payout_threshold)),
            reserve_percentage=Decimal(str(self.reserve_percentage)),
            version=self.version,
        )
