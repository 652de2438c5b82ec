"""
Signals emitted by the billing app.

billing_notification_requested is the boundary to the notification
delivery side (email, in-app). Handlers never send notifications directly;
they request one, and the signal fires only after the surrounding
transaction commits, so a rolled-back handler never notifies.

Signal kwargs:
    organization_id: str or None
    notification_type: "trial_ending", "payment_failed",
        "invoice_payment_failed" or "invoice_upcoming"
    context: dict of provider identifiers and amounts

Usage:
    from django.dispatch import receiver
    from billing.signals import billing_notification_requested

    @receiver(billing_notification_requested)
    def send_billing_email(sender, organization_id, notification_type, context, **kwargs):
        ...
"""

from __future__ import annotations

import logging
from typing import Any

from django.db import transaction
from django.dispatch import Signal

logger = logging.getLogger(__name__)

billing_notification_requested = Signal()


def request_notification(
    sender: type,
    organization_id: str | None,
    notification_type: str,
    context: dict[str, Any],
) -> None:
    """Send billing_notification_requested once the transaction commits."""

    def _send():
        logger.info(
            "Billing notification requested",
            extra={
                "organization_id": organization_id,
                "notification_type": notification_type,
            },
        )
        billing_notification_requested.send(
            sender=sender,
            organization_id=organization_id,
            notification_type=notification_type,
            context=context,
        )

    transaction.on_commit(_send)
