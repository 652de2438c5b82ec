"""
Billing app configuration.

This app ingests payment provider webhooks:
- Signature verification with an audit trail
- Idempotent event ledger with retry bookkeeping
- Handler registry and dispatch to per-event-type handlers
- Operator API, admin and periodic retry sweeps
"""

from __future__ import annotations

from django.apps import AppConfig


class BillingConfig(AppConfig):
    """
    Configuration for the billing application.

    The handler registry is built once here and shared by the webhook
    ingress, the retry coordinator and the Celery tasks.
    """

    default_auto_field = "django.db.models.BigAutoField"
    name = "billing"
    verbose_name = "Billing"

    registry = None
    dispatcher = None

    def ready(self):
        from billing.webhooks.registry import WebhookDispatcher, build_default_registry

        self.registry = build_default_registry()
        self.dispatcher = WebhookDispatcher(self.registry)
