"""
Tests for billing Celery tasks.
"""

from datetime import timedelta
from unittest.mock import patch

import pytest
from django.utils import timezone

from billing.models import WebhookEvent
from billing.state_machines import WebhookEventStatus
from billing.tasks import (
    process_due_webhook_retries,
    recover_stuck_webhooks,
    retry_webhook_event,
)
from billing.tests.factories import WebhookEventFactory


@pytest.mark.django_db
class TestRetryWebhookEvent:
    def test_returns_outcome(self, failed_event):
        # invoice.paid with no organization: the real handler mirrors the invoice
        result = retry_webhook_event(failed_event.stripe_event_id)

        assert result == {
            "stripe_event_id": "evt_failed_1",
            "success": True,
            "status_code": 200,
            "message": "Invoice in_test_123 paid",
        }
        failed_event.refresh_from_db()
        assert failed_event.status == WebhookEventStatus.PROCESSED

    def test_scheduled_retry_not_due(self, failed_event):
        result = retry_webhook_event(failed_event.stripe_event_id, scheduled=True)

        assert result["status_code"] == 409
        failed_event.refresh_from_db()
        assert failed_event.status == WebhookEventStatus.FAILED

    def test_exhausted(self, exhausted_event):
        result = retry_webhook_event(exhausted_event.stripe_event_id)

        assert result["success"] is False
        assert result["status_code"] == 400


@pytest.mark.django_db
class TestProcessDueWebhookRetries:
    def test_queues_due_events(self):
        now = timezone.now()
        due = WebhookEventFactory(failed=True, next_retry_at=now - timedelta(seconds=1))
        WebhookEventFactory(failed=True, next_retry_at=now + timedelta(minutes=10))
        WebhookEventFactory(exhausted=True)

        with patch("billing.tasks.retry_webhook_event.delay") as mock_delay:
            result = process_due_webhook_retries()

        assert result == {"queued_count": 1}
        mock_delay.assert_called_once_with(due.stripe_event_id, scheduled=True)

    def test_respects_batch_size(self, settings):
        settings.BILLING_WEBHOOK_RETRY_BATCH_SIZE = 2
        past = timezone.now() - timedelta(minutes=1)
        WebhookEventFactory.create_batch(3, failed=True, next_retry_at=past)

        with patch("billing.tasks.retry_webhook_event.delay") as mock_delay:
            result = process_due_webhook_retries()

        assert result == {"queued_count": 2}
        assert mock_delay.call_count == 2

    def test_runs_retries_eagerly(self):
        WebhookEventFactory(
            stripe_event_id="evt_due",
            failed=True,
            next_retry_at=timezone.now() - timedelta(seconds=1),
        )

        process_due_webhook_retries()

        assert WebhookEvent.objects.get(stripe_event_id="evt_due").is_processed


@pytest.mark.django_db
class TestRecoverStuckWebhooks:
    def test_fails_and_schedules_stuck_events(self, settings):
        settings.BILLING_WEBHOOK_STUCK_THRESHOLD_MINUTES = 30
        stuck = WebhookEventFactory()
        WebhookEvent.objects.filter(pk=stuck.pk).update(
            created_at=timezone.now() - timedelta(hours=1)
        )
        fresh = WebhookEventFactory()

        result = recover_stuck_webhooks()

        assert result == {"recovered_count": 1}
        stuck.refresh_from_db()
        assert stuck.status == WebhookEventStatus.FAILED
        assert stuck.retry_count == 1
        assert stuck.next_retry_at is not None
        fresh.refresh_from_db()
        assert fresh.status == WebhookEventStatus.RECEIVED

    def test_nothing_stuck(self):
        assert recover_stuck_webhooks() == {"recovered_count": 0}
