"""
Event ledger over the WebhookEvent table.

The ledger is the single writer of WebhookEvent rows. Idempotency rests on
the unique stripe_event_id constraint: two concurrent deliveries of the
same event both attempt the insert, exactly one wins, and the loser gets
AlreadyExists instead of an exception.

Usage:
    from billing.webhooks.ledger import AlreadyExists, EventLedger

    ledger = EventLedger()
    outcome = ledger.insert(envelope, organization_id)
    if isinstance(outcome, AlreadyExists):
        return  # duplicate delivery
    ledger.record_outcome(envelope.id, dispatcher.dispatch(envelope))
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING

from django.db import IntegrityError, transaction
from django.utils import timezone

from billing.models import WebhookEvent
from billing.state_machines import WebhookEventStatus
from billing.webhooks.backoff import RetryPolicy

if TYPE_CHECKING:
    from uuid import UUID

    from django.db.models import QuerySet

    from billing.webhooks.events import WebhookEnvelope
    from billing.webhooks.results import HandlerResult

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Inserted:
    event: WebhookEvent


@dataclass(frozen=True)
class AlreadyExists:
    event: WebhookEvent


InsertOutcome = Inserted | AlreadyExists


class EventLedger:
    """
    Persistent record of every accepted webhook event.

    Rows are never deleted. Status changes go through the WebhookEvent FSM
    transitions; retry bookkeeping (retry_count, next_retry_at) is owned
    here.
    """

    def __init__(self, policy: RetryPolicy | None = None):
        self.policy = policy or RetryPolicy.from_settings()

    # ==========================================================================
    # Lookup & Insert
    # ==========================================================================

    def exists(self, event_id: str) -> WebhookEvent | None:
        return WebhookEvent.objects.filter(stripe_event_id=event_id).first()

    def insert(
        self,
        envelope: WebhookEnvelope,
        organization_id: UUID | None = None,
    ) -> InsertOutcome:
        """
        Insert the event as RECEIVED.

        Returns:
            Inserted with the new row, or AlreadyExists with the row another
            delivery created first
        """
        try:
            with transaction.atomic():
                event = WebhookEvent.objects.create(
                    stripe_event_id=envelope.id,
                    event_type=envelope.type,
                    organization_id=organization_id,
                    payload=envelope.payload,
                    api_version=envelope.api_version,
                    livemode=envelope.livemode,
                    max_retries=self.policy.max_retries,
                )
        except IntegrityError:
            existing = WebhookEvent.objects.get(stripe_event_id=envelope.id)
            logger.info(
                "Duplicate webhook delivery",
                extra={
                    "stripe_event_id": envelope.id,
                    "event_type": envelope.type,
                    "status": existing.status,
                },
            )
            return AlreadyExists(existing)

        logger.info(
            "Webhook event recorded",
            extra={
                "stripe_event_id": envelope.id,
                "event_type": envelope.type,
                "organization_id": str(organization_id) if organization_id else None,
            },
        )
        return Inserted(event)

    # ==========================================================================
    # Outcome Recording
    # ==========================================================================

    def mark_processed(
        self,
        event_id: str,
        success: bool,
        error: str | None = None,
        note: str | None = None,
    ) -> WebhookEvent:
        """
        Set the terminal status of one processing attempt.

        Failure here only records the error; use schedule_retry() or
        record_outcome() for retry bookkeeping.

        Raises:
            WebhookEvent.DoesNotExist: Unknown event id
        """
        with transaction.atomic():
            event = WebhookEvent.objects.select_for_update().get(stripe_event_id=event_id)
            if success:
                if event.is_processed:
                    return event
                event.mark_processed(note=note)
            else:
                event.mark_failed(error or "Unknown error")
            event.save()
        return event

    def schedule_retry(
        self,
        event_id: str,
        next_retry_at: datetime | None = None,
    ) -> WebhookEvent:
        """
        Count a failed attempt and schedule the next one.

        Once retry_count reaches max_retries the row is terminal and
        next_retry_at is cleared. Calling this on an exhausted row changes
        nothing.

        Raises:
            WebhookEvent.DoesNotExist: Unknown event id
        """
        with transaction.atomic():
            event = WebhookEvent.objects.select_for_update().get(stripe_event_id=event_id)
            if event.retry_count >= event.max_retries:
                return event
            if event.status == WebhookEventStatus.RECEIVED:
                event.mark_failed(event.error_message or "Processing did not complete")
            self._count_failure(event, next_retry_at)
            event.save()
        return event

    def record_outcome(self, event_id: str, result: HandlerResult) -> WebhookEvent:
        """
        Persist a dispatch result in one transaction.

        Success marks the row processed. Failure marks it failed and
        schedules a retry (or makes it terminal).

        Raises:
            WebhookEvent.DoesNotExist: Unknown event id
        """
        with transaction.atomic():
            event = WebhookEvent.objects.select_for_update().get(stripe_event_id=event_id)
            if result.success:
                if not event.is_processed:
                    event.mark_processed(note=result.note)
            else:
                event.mark_failed(result.error or "Unknown error")
                if event.retry_count < event.max_retries:
                    self._count_failure(event)
            event.save()

        log_extra = {
            "stripe_event_id": event.stripe_event_id,
            "event_type": event.event_type,
            "status": event.status,
            "retry_count": event.retry_count,
        }
        if result.success:
            logger.info("Webhook event processed", extra=log_extra)
        elif event.retries_exhausted:
            logger.error(
                "Webhook event failed permanently",
                extra={**log_extra, "error": result.error},
            )
        else:
            logger.warning(
                "Webhook event failed, retry scheduled",
                extra={
                    **log_extra,
                    "error": result.error,
                    "next_retry_at": event.next_retry_at.isoformat(),
                },
            )
        return event

    def _count_failure(
        self, event: WebhookEvent, next_retry_at: datetime | None = None
    ) -> None:
        event.retry_count += 1
        if event.retry_count >= event.max_retries:
            event.next_retry_at = None
        else:
            event.next_retry_at = next_retry_at or self.policy.next_retry_at(
                event.retry_count
            )

    # ==========================================================================
    # Sweeps
    # ==========================================================================

    def due_for_retry(
        self, now: datetime | None = None, limit: int = 100
    ) -> QuerySet[WebhookEvent]:
        """Failed, non-exhausted rows whose next_retry_at has passed."""
        return (
            WebhookEvent.objects.retryable()
            .filter(next_retry_at__lte=now or timezone.now())
            .order_by("next_retry_at")[:limit]
        )

    def stuck_received(self, older_than: datetime) -> QuerySet[WebhookEvent]:
        """Rows left in RECEIVED since before older_than (crashed workers)."""
        return WebhookEvent.objects.filter(
            status=WebhookEventStatus.RECEIVED,
            created_at__lt=older_than,
        ).order_by("created_at")
