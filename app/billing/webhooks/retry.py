"""
Retry coordinator.

Re-runs a failed event from its stored payload. Used by the operator API,
the admin action and the periodic sweep. The provider is never asked to
resend; the ledger row is the source of truth.

Outcomes:
    404  unknown event id
    200  already processed (no-op)
    409  still in "received" (another worker has it in flight), or not due
         yet when called from the periodic sweep
    400  retries exhausted (handler not called)
    200  retry succeeded
    500  retry failed (next retry scheduled, or now exhausted)
"""

from __future__ import annotations

from django.db import transaction
from django.utils import timezone

from core.services import BaseService

from billing.exceptions import WebhookPayloadError
from billing.models import WebhookEvent
from billing.state_machines import WebhookEventStatus
from billing.webhooks.events import WebhookEnvelope
from billing.webhooks.ledger import EventLedger
from billing.webhooks.registry import WebhookDispatcher, get_dispatcher
from billing.webhooks.results import HandlerResult

MAX_RETRIES_EXCEEDED = "Maximum retry attempts exceeded"


class RetryCoordinator(BaseService):
    def __init__(
        self,
        dispatcher: WebhookDispatcher | None = None,
        ledger: EventLedger | None = None,
    ):
        self.dispatcher = dispatcher or get_dispatcher()
        self.ledger = ledger or EventLedger()

    def retry(self, event_id: str, due_only: bool = False) -> HandlerResult:
        """
        Retry one event.

        With due_only, an event whose next_retry_at is still in the future
        is left alone (409). The periodic sweep uses this so a retry queued
        twice runs once.

        The row is locked for the duration, so two concurrent retries of the
        same event run one after the other and the second sees the first's
        outcome.
        """
        logger = self.get_logger()
        log_extra = {"stripe_event_id": event_id}

        with transaction.atomic():
            event = (
                WebhookEvent.objects.select_for_update()
                .filter(stripe_event_id=event_id)
                .first()
            )
            if event is None:
                return HandlerResult.rejected(
                    "Event not found", status_code=404, error_code="EVENT_NOT_FOUND"
                )

            if event.status == WebhookEventStatus.PROCESSED:
                return HandlerResult.handled("Event already processed")

            if event.status == WebhookEventStatus.RECEIVED:
                return HandlerResult.rejected(
                    "Event is currently being processed",
                    status_code=409,
                    error_code="EVENT_IN_FLIGHT",
                )

            if event.retry_count >= event.max_retries:
                logger.warning("Retry refused, retries exhausted", extra=log_extra)
                return HandlerResult.rejected(
                    MAX_RETRIES_EXCEEDED,
                    status_code=400,
                    error_code="MAX_RETRIES_EXCEEDED",
                )

            if due_only and (
                event.next_retry_at is None or event.next_retry_at > timezone.now()
            ):
                return HandlerResult.rejected(
                    "Retry not due yet", status_code=409, error_code="RETRY_NOT_DUE"
                )

            try:
                envelope = WebhookEnvelope.from_payload(event.payload)
            except WebhookPayloadError as e:
                result = HandlerResult.failed(str(e), error_code=e.error_code)
            else:
                logger.info(
                    "Retrying webhook event",
                    extra={**log_extra, "retry_count": event.retry_count},
                )
                result = self.dispatcher.dispatch(envelope)

            event = self.ledger.record_outcome(event_id, result)

        if result.success:
            return result.with_status(200)
        if event.retries_exhausted:
            return HandlerResult.failed(
                f"{result.error} ({MAX_RETRIES_EXCEEDED.lower()})",
                error_code=result.error_code,
            )
        return result.with_status(500)
