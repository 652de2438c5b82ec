"""
Tests for billing models.
"""

import pytest
from django.db import IntegrityError, transaction
from django_fsm import TransitionNotAllowed

from billing.models import WebhookEvent
from billing.state_machines import WebhookEventStatus
from billing.tests.factories import (
    InvoiceFactory,
    PaymentIntentFactory,
    StripeCustomerFactory,
    WebhookEventFactory,
)


@pytest.mark.django_db
class TestWebhookEvent:
    def test_defaults(self):
        event = WebhookEvent.objects.create(
            stripe_event_id="evt_defaults",
            event_type="invoice.paid",
            payload={"id": "evt_defaults"},
        )

        assert event.status == WebhookEventStatus.RECEIVED
        assert event.retry_count == 0
        assert event.max_retries == 3
        assert event.next_retry_at is None

    def test_max_retries_default_follows_settings(self, settings):
        settings.BILLING_WEBHOOK_MAX_RETRIES = 5

        event = WebhookEvent.objects.create(
            stripe_event_id="evt_five", event_type="invoice.paid", payload={}
        )

        assert event.max_retries == 5

    def test_stripe_event_id_is_unique(self):
        WebhookEventFactory(stripe_event_id="evt_dup")

        with pytest.raises(IntegrityError), transaction.atomic():
            WebhookEventFactory(stripe_event_id="evt_dup")

    def test_retry_count_cannot_exceed_max(self):
        with pytest.raises(IntegrityError), transaction.atomic():
            WebhookEventFactory(retry_count=4, max_retries=3)

    def test_mark_processed(self):
        event = WebhookEventFactory(failed=True)

        event.mark_processed(note="recovered")

        assert event.status == WebhookEventStatus.PROCESSED
        assert event.processed_at is not None
        assert event.processing_note == "recovered"
        assert event.error_message is None
        assert event.next_retry_at is None

    def test_processed_event_cannot_fail(self):
        event = WebhookEventFactory(processed=True)

        with pytest.raises(TransitionNotAllowed):
            event.mark_failed("late failure")

    def test_retry_properties(self):
        assert WebhookEventFactory(failed=True).can_retry
        exhausted = WebhookEventFactory(exhausted=True)
        assert exhausted.retries_exhausted
        assert not exhausted.can_retry
        assert not WebhookEventFactory(processed=True).retries_exhausted

    def test_queryset_filters(self):
        retryable = WebhookEventFactory(failed=True)
        exhausted = WebhookEventFactory(exhausted=True)
        WebhookEventFactory(processed=True)

        assert list(WebhookEvent.objects.retryable()) == [retryable]
        assert list(WebhookEvent.objects.exhausted()) == [exhausted]

    def test_get_object_id(self):
        assert WebhookEventFactory().get_object_id() == "in_test_123"
        assert WebhookEventFactory(payload={"data": {}}).get_object_id() is None

    def test_str(self):
        event = WebhookEventFactory(stripe_event_id="evt_s", event_type="invoice.paid")

        assert str(event) == "WebhookEvent(evt_s, invoice.paid)"


@pytest.mark.django_db
class TestMirrors:
    def test_str(self):
        assert str(StripeCustomerFactory(stripe_customer_id="cus_1")) == "StripeCustomer(cus_1)"
        assert (
            str(PaymentIntentFactory(stripe_payment_intent_id="pi_1"))
            == "PaymentIntent(pi_1, processing)"
        )
        assert str(InvoiceFactory(stripe_invoice_id="in_1")) == "Invoice(in_1, open)"

    def test_organization_delete_keeps_ledger_rows(self, organization):
        event = WebhookEventFactory(organization=organization)

        organization.delete()

        event.refresh_from_db()
        assert event.organization_id is None
