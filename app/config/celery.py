"""
Celery application for the billing backend.

Background work handled here:
- Manual and scheduled webhook retries (billing.tasks)
- Recovery of ledger rows stuck in "received" (billing.tasks)
- Usage/entitlement recalculation after subscription changes
  (organizations.tasks)

Redis is both broker and result backend. Periodic schedules live in the
database (django-celery-beat) and are created by data migrations.

Usage:
    from billing.tasks import retry_webhook_event

    retry_webhook_event.delay("evt_123")
"""

import os

from celery import Celery

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings")

app = Celery("config")

# All Celery settings are prefixed with CELERY_ in settings.py
app.config_from_object("django.conf:settings", namespace="CELERY")

# Looks for a tasks.py module in each installed app
app.autodiscover_tasks()
