"""
Settlements app configuration.

This app provides the settlement side of the platform:
- Fee computation and the platform fee configuration
- Payment state machine and payout execution
- Platform funding accounts
"""

from django.apps import AppConfig


class SettlementsConfig(AppConfig):
    """Configuration for the settlements application."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "settlements"
    verbose_name = "Settlements"
