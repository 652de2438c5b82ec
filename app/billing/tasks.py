"""
Celery tasks for webhook processing.

This module provides async tasks for:
- Retrying one webhook event from its stored payload
- Periodically queueing failed events whose backoff has elapsed
- Recovering events left in "received" by a crashed worker

Usage:
    from billing.tasks import retry_webhook_event

    retry_webhook_event.delay("evt_123")
"""

from __future__ import annotations

import logging
from datetime import timedelta

from celery import shared_task
from django.conf import settings
from django.utils import timezone

logger = logging.getLogger(__name__)


# =============================================================================
# Retry Tasks
# =============================================================================


@shared_task(acks_late=True)
def retry_webhook_event(stripe_event_id: str, scheduled: bool = False) -> dict:
    """
    Retry one webhook event.

    Args:
        stripe_event_id: Provider event id of the ledger row
        scheduled: True when queued by the periodic sweep; the retry is then
            skipped unless its backoff has elapsed

    Returns:
        Dict with the outcome and the HTTP-equivalent status code
    """
    from billing.webhooks.retry import RetryCoordinator

    result = RetryCoordinator().retry(stripe_event_id, due_only=scheduled)

    return {
        "stripe_event_id": stripe_event_id,
        "success": result.success,
        "status_code": result.status_code,
        "message": result.message,
    }


@shared_task
def process_due_webhook_retries() -> dict:
    """
    Periodic task: queue retries for failed events whose backoff elapsed.

    Scheduled via celery-beat (see migration 0002).

    Returns:
        Dict with count of events queued
    """
    from billing.webhooks.ledger import EventLedger

    due = EventLedger().due_for_retry(limit=settings.BILLING_WEBHOOK_RETRY_BATCH_SIZE)
    event_ids = list(due.values_list("stripe_event_id", flat=True))

    for stripe_event_id in event_ids:
        retry_webhook_event.delay(stripe_event_id, scheduled=True)

    if event_ids:
        logger.info(
            f"Queued {len(event_ids)} webhook events for retry",
            extra={"queued_count": len(event_ids)},
        )

    return {"queued_count": len(event_ids)}


@shared_task
def recover_stuck_webhooks() -> dict:
    """
    Periodic task: fail events stuck in "received".

    An event stays in "received" only if the worker died between the
    ledger insert and recording the outcome. Each one is counted as a
    failed attempt and scheduled for retry.

    Returns:
        Dict with count of events recovered
    """
    from billing.webhooks.ledger import EventLedger

    ledger = EventLedger()
    threshold = timezone.now() - timedelta(
        minutes=settings.BILLING_WEBHOOK_STUCK_THRESHOLD_MINUTES
    )

    recovered_count = 0
    for stripe_event_id in ledger.stuck_received(threshold).values_list(
        "stripe_event_id", flat=True
    ):
        event = ledger.schedule_retry(stripe_event_id)
        recovered_count += 1
        logger.warning(
            "Recovered stuck webhook event",
            extra={
                "stripe_event_id": stripe_event_id,
                "retry_count": event.retry_count,
                "next_retry_at": (
                    event.next_retry_at.isoformat() if event.next_retry_at else None
                ),
            },
        )

    return {"recovered_count": recovered_count}
