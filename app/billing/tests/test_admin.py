"""
Tests for the billing admin.
"""

from unittest.mock import patch

import pytest
from django.urls import reverse

from billing.state_machines import WebhookEventStatus
from billing.tests.factories import (
    InvoiceFactory,
    PaymentIntentFactory,
    SecurityEventFactory,
    VerificationAttemptFactory,
    WebhookEventFactory,
)
from billing.webhooks.results import HandlerResult

CHANGELIST_URL_NAMES = [
    "admin:billing_webhookevent_changelist",
    "admin:billing_verificationattempt_changelist",
    "admin:billing_securityevent_changelist",
    "admin:billing_stripecustomer_changelist",
    "admin:billing_paymentmethod_changelist",
    "admin:billing_paymentintent_changelist",
    "admin:billing_invoice_changelist",
]


@pytest.mark.django_db
class TestChangelists:
    @pytest.mark.parametrize("url_name", CHANGELIST_URL_NAMES)
    def test_changelist_loads(self, admin_client, url_name):
        WebhookEventFactory(failed=True)
        VerificationAttemptFactory()
        SecurityEventFactory()
        PaymentIntentFactory()
        InvoiceFactory()

        response = admin_client.get(reverse(url_name))

        assert response.status_code == 200

    def test_add_is_disabled(self, admin_client):
        response = admin_client.get(reverse("admin:billing_webhookevent_add"))

        assert response.status_code == 403


@pytest.mark.django_db
class TestRetrySelectedAction:
    def post_action(self, admin_client, events):
        return admin_client.post(
            reverse("admin:billing_webhookevent_changelist"),
            {
                "action": "retry_selected",
                "_selected_action": [str(event.pk) for event in events],
            },
            follow=True,
        )

    def test_retries_failed_events(self, admin_client, failed_event):
        processed = WebhookEventFactory(processed=True)

        response = self.post_action(admin_client, [failed_event, processed])

        assert response.status_code == 200
        messages = [str(m) for m in response.context["messages"]]
        assert messages == [
            "Retried events: 1 succeeded, 0 failed, 0 skipped (retries exhausted)."
        ]
        failed_event.refresh_from_db()
        assert failed_event.status == WebhookEventStatus.PROCESSED

    def test_reports_failures_and_exhausted(
        self, admin_client, failed_event, exhausted_event
    ):
        with patch(
            "billing.webhooks.handlers.invoices.InvoiceHandler.on_paid",
            return_value=HandlerResult.failed("Invoice lookup failed"),
        ):
            response = self.post_action(admin_client, [failed_event, exhausted_event])

        messages = [str(m) for m in response.context["messages"]]
        assert messages == [
            "Retried events: 0 succeeded, 1 failed, 1 skipped (retries exhausted)."
        ]
        failed_event.refresh_from_db()
        assert failed_event.retry_count == 2
