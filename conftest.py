"""
Root pytest configuration for the Django project.

This module configures pytest-django and provides project-wide settings
overrides. App-specific fixtures are defined in each app's tests/conftest.py.
"""

import os

import django

# Ensure Django settings are configured before any tests run
os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings")


def pytest_configure():
    """Configure Django settings before tests run."""
    from django.conf import settings

    # No Redis in tests: DistributedLock's connection is mocked per test
    settings.CACHES = {
        "default": {
            "BACKEND": "django.core.cache.backends.locmem.LocMemCache",
            "LOCATION": "settlements-tests",
        }
    }
    settings.CELERY_TASK_ALWAYS_EAGER = True
    settings.PAYOUT_PROVIDER = "sandbox"
    settings.EXCHANGE_RATES_SANDBOX = True

    django.setup()
