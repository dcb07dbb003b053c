"""
Payouts app configuration.

This app provides the creator side of payouts:
- Payout method registry with one default method per owner
- Bank account verification via micro-deposits
- Crypto wallet validation, network fees and exchange rates
- Payout provider adapters (Stripe, sandbox)
"""

from django.apps import AppConfig


class PayoutsConfig(AppConfig):
    """Configuration for the payouts application."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "payouts"
    verbose_name = "Payouts"
