"""
Tests for RetryCoordinator.

Tests cover:
- Refusals (unknown, in flight, exhausted, not due)
- Successful and failed retries with ledger bookkeeping
- Exhausting retries after repeated handler failures
"""

from datetime import timedelta

import pytest
from django.utils import timezone

from billing.models import WebhookEvent
from billing.state_machines import WebhookEventStatus
from billing.tests.factories import WebhookEventFactory
from billing.webhooks.backoff import RetryPolicy
from billing.webhooks.ledger import EventLedger
from billing.webhooks.results import HandlerResult
from billing.webhooks.retry import MAX_RETRIES_EXCEEDED, RetryCoordinator


@pytest.fixture
def coordinator_for(make_dispatcher):
    """Factory: coordinator dispatching to the given handlers."""

    def _make(*handlers):
        return RetryCoordinator(
            dispatcher=make_dispatcher(*handlers),
            ledger=EventLedger(RetryPolicy(max_retries=3)),
        )

    return _make


# =============================================================================
# Refusals
# =============================================================================


@pytest.mark.django_db
class TestRetryRefusals:
    def test_unknown_event(self, coordinator_for):
        result = coordinator_for().retry("evt_missing")

        assert result.status_code == 404
        assert result.error == "Event not found"

    def test_processed_event_is_noop(self, coordinator_for, scripted_handler):
        handler = scripted_handler()
        WebhookEventFactory(stripe_event_id="evt_done", processed=True)

        result = coordinator_for(handler).retry("evt_done")

        assert result.success
        assert result.status_code == 200
        assert result.message == "Event already processed"
        assert handler.calls == []

    def test_received_event_is_in_flight(self, coordinator_for, scripted_handler):
        handler = scripted_handler()
        WebhookEventFactory(stripe_event_id="evt_busy")

        result = coordinator_for(handler).retry("evt_busy")

        assert result.status_code == 409
        assert handler.calls == []

    def test_exhausted_event_not_dispatched(self, coordinator_for, scripted_handler):
        handler = scripted_handler()
        WebhookEventFactory(stripe_event_id="evt_dead", exhausted=True)

        result = coordinator_for(handler).retry("evt_dead")

        assert result.status_code == 400
        assert result.error == MAX_RETRIES_EXCEEDED
        assert handler.calls == []
        assert WebhookEvent.objects.get(stripe_event_id="evt_dead").retry_count == 3

    def test_not_due_when_sweeping(self, coordinator_for, scripted_handler):
        handler = scripted_handler()
        WebhookEventFactory(
            stripe_event_id="evt_later",
            failed=True,
            next_retry_at=timezone.now() + timedelta(minutes=5),
        )

        result = coordinator_for(handler).retry("evt_later", due_only=True)

        assert result.status_code == 409
        assert result.error_code == "RETRY_NOT_DUE"
        assert handler.calls == []

    def test_manual_retry_ignores_schedule(self, coordinator_for, scripted_handler):
        handler = scripted_handler()
        WebhookEventFactory(
            stripe_event_id="evt_later",
            failed=True,
            next_retry_at=timezone.now() + timedelta(minutes=5),
        )

        result = coordinator_for(handler).retry("evt_later")

        assert result.success
        assert handler.calls == ["evt_later"]


# =============================================================================
# Retry Outcomes
# =============================================================================


@pytest.mark.django_db
class TestRetryOutcomes:
    def test_success_marks_processed(self, coordinator_for, scripted_handler):
        WebhookEventFactory(stripe_event_id="evt_1", failed=True)

        result = coordinator_for(scripted_handler()).retry("evt_1")

        assert result.status_code == 200
        event = WebhookEvent.objects.get(stripe_event_id="evt_1")
        assert event.status == WebhookEventStatus.PROCESSED
        assert event.error_message is None
        assert event.retry_count == 1

    def test_failure_schedules_next_retry(self, coordinator_for, scripted_handler):
        WebhookEventFactory(stripe_event_id="evt_1", failed=True)
        handler = scripted_handler(HandlerResult.failed("still down"))

        result = coordinator_for(handler).retry("evt_1")

        assert result.status_code == 500
        assert result.error == "still down"
        event = WebhookEvent.objects.get(stripe_event_id="evt_1")
        assert event.retry_count == 2
        assert event.next_retry_at is not None
        assert event.can_retry

    def test_last_failure_reports_exhaustion(self, coordinator_for, scripted_handler):
        WebhookEventFactory(stripe_event_id="evt_1", failed=True, retry_count=2)
        handler = scripted_handler(HandlerResult.failed("still down"))

        result = coordinator_for(handler).retry("evt_1")

        assert result.status_code == 500
        assert result.error == "still down (maximum retry attempts exceeded)"
        event = WebhookEvent.objects.get(stripe_event_id="evt_1")
        assert event.retries_exhausted
        assert event.next_retry_at is None

    def test_handler_exception_is_counted(self, coordinator_for, scripted_handler):
        WebhookEventFactory(stripe_event_id="evt_1", failed=True)

        result = coordinator_for(scripted_handler(KeyError("customer"))).retry("evt_1")

        assert result.status_code == 500
        assert result.error_code == "HANDLER_EXCEPTION"
        assert WebhookEvent.objects.get(stripe_event_id="evt_1").retry_count == 2

    def test_unusable_stored_payload_is_counted(self, coordinator_for, scripted_handler):
        handler = scripted_handler()
        WebhookEventFactory(stripe_event_id="evt_1", failed=True, payload={"data": {}})

        result = coordinator_for(handler).retry("evt_1")

        assert not result.success
        assert result.error_code == "INVALID_WEBHOOK_PAYLOAD"
        assert handler.calls == []
        assert WebhookEvent.objects.get(stripe_event_id="evt_1").retry_count == 2

    def test_uses_stored_payload(self, coordinator_for, scripted_handler):
        handler = scripted_handler(event_types=("invoice.paid",))
        WebhookEventFactory(stripe_event_id="evt_stored", failed=True)

        coordinator_for(handler).retry("evt_stored")

        assert handler.calls == ["evt_stored"]


@pytest.mark.django_db
def test_repeated_failures_exhaust_retries(coordinator_for, scripted_handler):
    """
    evt_3 fails on delivery and on two retries; the next retry is refused
    without calling the handler again.
    """
    handler = scripted_handler(HandlerResult.failed("upstream unavailable"))
    coordinator = coordinator_for(handler)
    WebhookEventFactory(stripe_event_id="evt_3", failed=True, retry_count=1)
    handler.calls.append("evt_3")  # the failed delivery

    second = coordinator.retry("evt_3")
    third = coordinator.retry("evt_3")
    fourth = coordinator.retry("evt_3")

    assert second.status_code == 500
    assert "maximum retry attempts exceeded" in third.error
    assert fourth.status_code == 400
    assert fourth.error == MAX_RETRIES_EXCEEDED
    assert handler.calls == ["evt_3", "evt_3", "evt_3"]

    event = WebhookEvent.objects.get(stripe_event_id="evt_3")
    assert event.retry_count == 3
    assert event.status == WebhookEventStatus.FAILED
    assert event.retries_exhausted
