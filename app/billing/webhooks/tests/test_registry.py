"""
Tests for HandlerRegistry and WebhookDispatcher.
"""

import pytest
from django.apps import apps

from billing.exceptions import HandlerRegistrationError
from billing.models import StripeCustomer
from billing.signals import billing_notification_requested, request_notification
from billing.tests.factories import build_event
from billing.webhooks.events import WebhookEnvelope
from billing.webhooks.handlers import (
    AcknowledgeHandler,
    InvoiceHandler,
    SubscriptionHandler,
)
from billing.webhooks.handlers.base import WebhookHandler
from billing.webhooks.registry import (
    HandlerRegistry,
    build_default_registry,
    get_dispatcher,
)
from billing.webhooks.results import HandlerResult


def envelope_for(event_type="invoice.paid", data_object=None):
    return WebhookEnvelope.from_payload(
        build_event(event_type, data_object or {"id": "obj_1"}, event_id="evt_reg_1")
    )


# =============================================================================
# Registry
# =============================================================================


class TestHandlerRegistry:
    def test_register_and_get(self):
        registry = HandlerRegistry()
        handler = InvoiceHandler()

        registry.register(handler)

        assert registry.get("invoice.paid") is handler
        assert "invoice.upcoming" in registry
        assert len(registry) == len(InvoiceHandler.event_types)

    def test_duplicate_registration_raises(self):
        registry = HandlerRegistry()
        registry.register(AcknowledgeHandler(("invoice.paid",)))

        with pytest.raises(HandlerRegistrationError) as exc_info:
            registry.register(InvoiceHandler())

        assert exc_info.value.details["event_type"] == "invoice.paid"

    def test_failed_registration_registers_nothing(self):
        registry = HandlerRegistry()
        registry.register(AcknowledgeHandler(("invoice.upcoming",)))

        with pytest.raises(HandlerRegistrationError):
            registry.register(InvoiceHandler())

        assert registry.event_types == ["invoice.upcoming"]

    def test_unknown_type(self):
        assert HandlerRegistry().get("charge.refunded") is None

    def test_default_registry_covers_supported_types(self):
        registry = build_default_registry()

        for event_type in SubscriptionHandler.event_types + (
            "customer.created",
            "customer.deleted",
            "payment_method.attached",
            "payment_method.detached",
            "payment_intent.succeeded",
            "payment_intent.payment_failed",
            "invoice.paid",
            "invoice.upcoming",
            "setup_intent.succeeded",
        ):
            assert event_type in registry

    def test_app_builds_dispatcher_once(self):
        config = apps.get_app_config("billing")

        assert get_dispatcher() is config.dispatcher
        assert config.dispatcher.registry is config.registry


# =============================================================================
# Dispatcher
# =============================================================================


@pytest.mark.django_db
class TestWebhookDispatcher:
    def test_routes_to_handler(self, scripted_handler, make_dispatcher):
        handler = scripted_handler(HandlerResult.handled("Invoice paid"))
        dispatcher = make_dispatcher(handler)

        result = dispatcher.dispatch(envelope_for())

        assert result.success
        assert result.message == "Invoice paid"
        assert handler.calls == ["evt_reg_1"]

    def test_unregistered_type_succeeds_with_note(self, make_dispatcher):
        result = make_dispatcher().dispatch(envelope_for("charge.refunded"))

        assert result.success
        assert result.note == "No handler registered for charge.refunded"

    def test_handler_exception_becomes_failure(self, scripted_handler, make_dispatcher):
        dispatcher = make_dispatcher(scripted_handler(RuntimeError("db down")))

        result = dispatcher.dispatch(envelope_for())

        assert not result.success
        assert result.error == "RuntimeError: db down"
        assert result.error_code == "HANDLER_EXCEPTION"

    def test_failed_result_rolls_back_handler_writes(self, make_dispatcher):
        class WritesThenFails(WebhookHandler):
            event_types = ("customer.created",)

            def on_created(self, envelope, customer):
                StripeCustomer.objects.create(stripe_customer_id=customer["id"])
                return HandlerResult.failed("downstream rejected")

        dispatcher = make_dispatcher(WritesThenFails())

        result = dispatcher.dispatch(envelope_for("customer.created", {"id": "cus_rb"}))

        assert not result.success
        assert not StripeCustomer.objects.filter(stripe_customer_id="cus_rb").exists()

    def test_exception_rolls_back_handler_writes(self, make_dispatcher):
        class WritesThenRaises(WebhookHandler):
            event_types = ("customer.created",)

            def on_created(self, envelope, customer):
                StripeCustomer.objects.create(stripe_customer_id=customer["id"])
                raise ValueError("after write")

        dispatcher = make_dispatcher(WritesThenRaises())

        result = dispatcher.dispatch(envelope_for("customer.created", {"id": "cus_rb"}))

        assert result.error == "ValueError: after write"
        assert not StripeCustomer.objects.filter(stripe_customer_id="cus_rb").exists()

    def test_declared_type_without_method_fails(self, make_dispatcher):
        class Incomplete(WebhookHandler):
            event_types = ("invoice.voided",)

        result = make_dispatcher(Incomplete()).dispatch(envelope_for("invoice.voided"))

        assert not result.success
        assert result.error.startswith("NotImplementedError")

    def test_failed_result_discards_notification(
        self, make_dispatcher, django_capture_on_commit_callbacks
    ):
        sent = []

        def receiver(sender, **kwargs):
            sent.append(kwargs["notification_type"])

        class NotifiesThenFails(WebhookHandler):
            event_types = ("invoice.payment_failed",)

            def on_payment_failed(self, envelope, invoice):
                request_notification(
                    sender=type(self),
                    organization_id=None,
                    notification_type="invoice_payment_failed",
                    context={},
                )
                return HandlerResult.failed("mirror write rejected")

        billing_notification_requested.connect(receiver, weak=False)
        try:
            with django_capture_on_commit_callbacks(execute=True):
                make_dispatcher(NotifiesThenFails()).dispatch(
                    envelope_for("invoice.payment_failed")
                )
        finally:
            billing_notification_requested.disconnect(receiver)

        assert sent == []
