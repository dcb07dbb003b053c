"""
Celery configuration for the settlement engine.

Celery runs the settlement background work:
- Delivering payment notifications after the triggering transaction commits
- The scheduled payout run over every processing payment

This configuration uses Redis as both the message broker and result backend.
Tasks are auto-discovered from all installed Django apps; the payout run is
scheduled through CELERY_BEAT_SCHEDULE in settings.

Usage:
    from settlements.tasks import complete_processing_payments

    complete_processing_payments.delay()

For more information, see:
https://docs.celeryq.dev/en/stable/django/first-steps-with-django.html
"""

import os

from celery import Celery

# Set the default Django settings module for the Celery worker
os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings")

app = Celery("config")

# All Celery settings are prefixed with CELERY_ in settings.py
app.config_from_object("django.conf:settings", namespace="CELERY")

app.autodiscover_tasks()
