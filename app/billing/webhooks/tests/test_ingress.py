"""
Tests for WebhookIngress.

Tests cover:
- Verification outcomes and the audit trail they leave
- Ledger idempotency for duplicate deliveries
- Dispatch outcomes mapped to response status codes
"""

from unittest.mock import patch

import pytest
import stripe

from billing.models import SecurityEvent, VerificationAttempt, WebhookEvent
from billing.state_machines import (
    SecurityEventType,
    SecuritySeverity,
    VerificationStatus,
    WebhookEventStatus,
)
from billing.tests.factories import WebhookEventFactory, build_event, sign_payload
from billing.webhooks.ingress import (
    ALREADY_EXHAUSTED,
    ALREADY_IN_PROGRESS,
    ALREADY_PROCESSED,
    ALREADY_RETRY_SCHEDULED,
    INVALID_PAYLOAD,
    InboundWebhook,
    WebhookIngress,
)
from billing.webhooks.results import HandlerResult
from billing.webhooks.signatures import MISSING_SIGNATURE, SIGNATURE_MISMATCH


def inbound(payload, secret=None, **kwargs):
    raw_body, header = sign_payload(payload, secret=secret)
    return InboundWebhook(
        raw_body=raw_body,
        signature_header=header,
        ip_address=kwargs.pop("ip_address", "203.0.113.5"),
        user_agent=kwargs.pop("user_agent", "Stripe/1.0"),
    )


@pytest.fixture
def ingress_for(make_dispatcher):
    def _make(*handlers):
        return WebhookIngress(dispatcher=make_dispatcher(*handlers))

    return _make


# =============================================================================
# Verification
# =============================================================================


@pytest.mark.django_db
class TestVerification:
    def test_valid_delivery_is_audited(self, ingress_for, scripted_handler):
        payload = build_event("invoice.paid", {"id": "in_1"}, event_id="evt_ok")

        result = ingress_for(scripted_handler()).receive(inbound(payload))

        assert result.status_code == 200
        attempt = VerificationAttempt.objects.get()
        assert attempt.status == VerificationStatus.SUCCESS
        assert attempt.stripe_event_id == "evt_ok"
        assert attempt.event_type == "invoice.paid"
        assert attempt.failure_reason is None
        assert attempt.ip_address == "203.0.113.5"
        assert attempt.payload_size > 0
        assert not SecurityEvent.objects.exists()

    def test_wrong_secret_is_rejected(self, ingress_for, scripted_handler):
        handler = scripted_handler()
        payload = build_event("invoice.paid", {"id": "in_1"}, event_id="evt_2")

        result = ingress_for(handler).receive(inbound(payload, secret="whsec_other"))

        assert result.status_code == 400
        assert result.error == SIGNATURE_MISMATCH
        assert result.error_code == "WEBHOOK_VERIFICATION_FAILED"
        assert not WebhookEvent.objects.filter(stripe_event_id="evt_2").exists()
        assert handler.calls == []

        attempt = VerificationAttempt.objects.get()
        assert attempt.status == VerificationStatus.FAILED
        assert attempt.failure_reason == SIGNATURE_MISMATCH
        assert attempt.stripe_event_id == "evt_2"

        security_event = SecurityEvent.objects.get()
        assert security_event.event_type == SecurityEventType.WEBHOOK_VERIFICATION_FAILED
        assert security_event.severity == SecuritySeverity.HIGH
        assert security_event.action_taken == "blocked"
        assert security_event.ip_address == "203.0.113.5"

    def test_missing_signature(self, ingress_for):
        raw_body, _ = sign_payload(build_event("invoice.paid"))

        result = ingress_for().receive(InboundWebhook(raw_body=raw_body, signature_header=""))

        assert result.status_code == 400
        assert result.error == MISSING_SIGNATURE
        assert VerificationAttempt.objects.get().failure_reason == MISSING_SIGNATURE

    def test_signed_garbage_is_invalid_payload(self, ingress_for):
        raw_body, header = sign_payload(b"not json at all")

        result = ingress_for().receive(
            InboundWebhook(raw_body=raw_body, signature_header=header)
        )

        assert result.status_code == 400
        assert result.error == INVALID_PAYLOAD
        attempt = VerificationAttempt.objects.get()
        assert attempt.status == VerificationStatus.FAILED
        assert attempt.failure_reason == INVALID_PAYLOAD
        assert attempt.stripe_event_id is None
        assert not WebhookEvent.objects.exists()

    def test_checks_disagreeing_is_rejected_as_discrepancy(self, ingress_for):
        payload = build_event("invoice.paid", {"id": "in_1"}, event_id="evt_disc")

        with patch(
            "stripe.WebhookSignature.verify_header",
            side_effect=stripe.SignatureVerificationError("No signatures found", "hdr"),
        ):
            result = ingress_for().receive(inbound(payload))

        assert result.status_code == 400
        assert not WebhookEvent.objects.exists()
        security_event = SecurityEvent.objects.get()
        assert (
            security_event.event_type
            == SecurityEventType.WEBHOOK_VERIFICATION_DISCREPANCY
        )
        assert security_event.severity == SecuritySeverity.CRITICAL

    def test_unverified_oversized_identifiers_are_not_recorded(self, ingress_for):
        payload = build_event("x" * 150, event_id="evt_" + "a" * 400)

        ingress_for().receive(inbound(payload, secret="whsec_other"))

        attempt = VerificationAttempt.objects.get()
        assert attempt.stripe_event_id is None
        assert attempt.event_type is None

    @pytest.mark.parametrize(
        "event_type,event_id",
        [
            ("x" * 101, "evt_long_type"),
            ("invoice.paid", "evt_" + "a" * 252),
        ],
    )
    def test_verified_oversized_identifiers_are_rejected(
        self, ingress_for, scripted_handler, event_type, event_id
    ):
        handler = scripted_handler(event_types=(event_type,))
        payload = build_event(event_type, {"id": "in_1"}, event_id=event_id)

        result = ingress_for(handler).receive(inbound(payload))

        assert result.status_code == 400
        assert result.error == INVALID_PAYLOAD
        assert handler.calls == []
        assert not WebhookEvent.objects.exists()
        attempt = VerificationAttempt.objects.get()
        assert attempt.status == VerificationStatus.FAILED
        assert attempt.stripe_event_id is None


# =============================================================================
# Idempotency
# =============================================================================


@pytest.mark.django_db
class TestIdempotency:
    def test_redelivery_of_processed_event(self, ingress_for, scripted_handler):
        handler = scripted_handler()
        ingress = ingress_for(handler)
        payload = build_event("invoice.paid", {"id": "in_1"}, event_id="evt_1")

        first = ingress.receive(inbound(payload))
        second = ingress.receive(inbound(payload))

        assert first.status_code == 200
        assert second.status_code == 200
        assert second.message == ALREADY_PROCESSED
        assert handler.calls == ["evt_1"]
        assert WebhookEvent.objects.filter(stripe_event_id="evt_1").count() == 1
        assert VerificationAttempt.objects.count() == 2

    def test_delivery_racing_an_in_flight_insert(self, ingress_for, scripted_handler):
        """The row already exists as RECEIVED: the insert loses on the unique key."""
        handler = scripted_handler()
        WebhookEventFactory(stripe_event_id="evt_race")
        payload = build_event("invoice.paid", {"id": "in_1"}, event_id="evt_race")

        result = ingress_for(handler).receive(inbound(payload))

        assert result.status_code == 200
        assert result.message == ALREADY_IN_PROGRESS
        assert handler.calls == []

    def test_redelivery_of_failed_event_does_not_reprocess(
        self, ingress_for, scripted_handler
    ):
        handler = scripted_handler()
        WebhookEventFactory(stripe_event_id="evt_f", failed=True)
        payload = build_event("invoice.paid", {"id": "in_1"}, event_id="evt_f")

        result = ingress_for(handler).receive(inbound(payload))

        assert result.status_code == 200
        assert result.message == ALREADY_RETRY_SCHEDULED
        assert handler.calls == []

    def test_redelivery_of_exhausted_event(self, ingress_for, scripted_handler):
        handler = scripted_handler()
        WebhookEventFactory(stripe_event_id="evt_x", exhausted=True)
        payload = build_event("invoice.paid", {"id": "in_1"}, event_id="evt_x")

        result = ingress_for(handler).receive(inbound(payload))

        assert result.message == ALREADY_EXHAUSTED
        assert handler.calls == []


# =============================================================================
# Dispatch Outcomes
# =============================================================================


@pytest.mark.django_db
class TestDispatchOutcomes:
    def test_success_marks_processed(self, ingress_for, scripted_handler, organization):
        payload = build_event(
            "invoice.paid",
            {"id": "in_1", "metadata": {"organization_id": str(organization.id)}},
            event_id="evt_ok",
        )

        result = ingress_for(scripted_handler(HandlerResult.handled("Invoice in_1 paid"))).receive(
            inbound(payload)
        )

        assert result.to_response() == {"success": True, "message": "Invoice in_1 paid"}
        event = WebhookEvent.objects.get(stripe_event_id="evt_ok")
        assert event.status == WebhookEventStatus.PROCESSED
        assert event.organization_id == organization.id

    def test_handler_failure_is_accepted_for_internal_retry(
        self, ingress_for, scripted_handler
    ):
        payload = build_event("invoice.paid", {"id": "in_1"}, event_id="evt_fail")

        result = ingress_for(scripted_handler(HandlerResult.failed("boom"))).receive(
            inbound(payload)
        )

        assert result.status_code == 202
        assert not result.success
        event = WebhookEvent.objects.get(stripe_event_id="evt_fail")
        assert event.status == WebhookEventStatus.FAILED
        assert event.retry_count == 1
        assert event.next_retry_at is not None

    def test_unregistered_type_is_processed_with_note(self, ingress_for):
        payload = build_event("charge.refunded", {"id": "ch_1"}, event_id="evt_unk")

        result = ingress_for().receive(inbound(payload))

        assert result.status_code == 200
        event = WebhookEvent.objects.get(stripe_event_id="evt_unk")
        assert event.status == WebhookEventStatus.PROCESSED
        assert event.processing_note == "No handler registered for charge.refunded"

    def test_unresolved_organization_still_processed(self, ingress_for, scripted_handler):
        payload = build_event("invoice.paid", {"id": "in_1"}, event_id="evt_noorg")

        result = ingress_for(scripted_handler()).receive(inbound(payload))

        assert result.success
        assert WebhookEvent.objects.get(stripe_event_id="evt_noorg").organization is None

    @pytest.mark.parametrize(
        "invoice",
        [
            {"id": "in_parent", "parent": "sub_123"},
            {"id": "in_details", "subscription_details": "x"},
            {"id": "in_customer", "customer": {"id": 42, "metadata": "x"}},
        ],
    )
    def test_malformed_nested_fields_are_recorded_unattributed(
        self, ingress_for, scripted_handler, invoice
    ):
        payload = build_event("invoice.paid", invoice, event_id="evt_nested")

        result = ingress_for(scripted_handler()).receive(inbound(payload))

        assert result.status_code == 200
        event = WebhookEvent.objects.get(stripe_event_id="evt_nested")
        assert event.status == WebhookEventStatus.PROCESSED
        assert event.organization is None

    def test_malformed_nested_fields_with_default_handlers(self):
        payload = build_event(
            "invoice.paid", {"id": "in_parent", "parent": "sub_123"}, event_id="evt_real"
        )

        result = WebhookIngress().receive(inbound(payload))

        assert result.status_code == 200
        assert result.message == "Invoice in_parent paid"
        assert WebhookEvent.objects.get(stripe_event_id="evt_real").is_processed

    def test_resolver_error_still_records_event(self, ingress_for, scripted_handler):
        payload = build_event("invoice.paid", {"id": "in_1"}, event_id="evt_resolver")

        with patch(
            "billing.webhooks.ingress.resolve_organization_id",
            side_effect=RuntimeError("resolver broke"),
        ):
            result = ingress_for(scripted_handler()).receive(inbound(payload))

        assert result.status_code == 200
        event = WebhookEvent.objects.get(stripe_event_id="evt_resolver")
        assert event.organization is None
        assert event.status == WebhookEventStatus.PROCESSED
