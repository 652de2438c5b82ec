"""
Handler registry and dispatcher.

The registry is an explicit object: build_default_registry() wires the
standard handler set and BillingConfig.ready() builds it once. Tests can
build their own registry with fakes and hand it to a WebhookDispatcher.

Usage:
    from billing.webhooks.registry import get_dispatcher

    result = get_dispatcher().dispatch(envelope)
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from django.apps import apps
from django.db import transaction

from billing.exceptions import HandlerRegistrationError
from billing.webhooks.results import HandlerResult

if TYPE_CHECKING:
    from billing.webhooks.events import WebhookEnvelope
    from billing.webhooks.handlers.base import WebhookHandler

logger = logging.getLogger(__name__)


class HandlerRegistry:
    """Maps event types to the single handler responsible for each."""

    def __init__(self):
        self._handlers: dict[str, WebhookHandler] = {}

    def register(self, handler: WebhookHandler) -> WebhookHandler:
        """
        Register a handler for every type in handler.event_types.

        Raises:
            HandlerRegistrationError: A type already has a handler
        """
        for event_type in handler.event_types:
            existing = self._handlers.get(event_type)
            if existing is not None:
                raise HandlerRegistrationError(
                    f"Handler already registered for {event_type}",
                    details={
                        "event_type": event_type,
                        "existing": type(existing).__name__,
                        "new": type(handler).__name__,
                    },
                )
        for event_type in handler.event_types:
            self._handlers[event_type] = handler
        return handler

    def get(self, event_type: str) -> WebhookHandler | None:
        return self._handlers.get(event_type)

    @property
    def event_types(self) -> list[str]:
        return sorted(self._handlers)

    def __contains__(self, event_type: str) -> bool:
        return event_type in self._handlers

    def __len__(self) -> int:
        return len(self._handlers)


def build_default_registry() -> HandlerRegistry:
    from billing.webhooks.handlers import (
        AcknowledgeHandler,
        CustomerHandler,
        InvoiceHandler,
        PaymentIntentHandler,
        PaymentMethodHandler,
        SubscriptionHandler,
    )

    registry = HandlerRegistry()
    registry.register(SubscriptionHandler())
    registry.register(CustomerHandler())
    registry.register(PaymentMethodHandler())
    registry.register(PaymentIntentHandler())
    registry.register(InvoiceHandler())
    registry.register(AcknowledgeHandler(("setup_intent.succeeded",)))
    return registry


class WebhookDispatcher:
    """
    Routes an envelope to its handler.

    Never raises for handler problems: exceptions and failure results both
    come back as a failed HandlerResult, and the handler's database writes
    are rolled back to a savepoint.
    """

    def __init__(self, registry: HandlerRegistry):
        self.registry = registry

    def dispatch(self, envelope: WebhookEnvelope) -> HandlerResult:
        handler = self.registry.get(envelope.type)
        log_extra = {"stripe_event_id": envelope.id, "event_type": envelope.type}

        if handler is None:
            note = f"No handler registered for {envelope.type}"
            logger.info(note, extra=log_extra)
            return HandlerResult.handled(note, note=note)

        logger.info(
            f"Dispatching {envelope.type} to {type(handler).__name__}",
            extra=log_extra,
        )

        try:
            with transaction.atomic():
                result = handler.process(envelope)
                if not result.success:
                    transaction.set_rollback(True)
        except Exception as e:
            logger.exception("Webhook handler raised", extra=log_extra)
            return HandlerResult.failed(
                f"{type(e).__name__}: {e}", error_code="HANDLER_EXCEPTION"
            )

        if not result.success:
            logger.warning(
                "Webhook handler failed",
                extra={**log_extra, "error": result.error},
            )
        return result


def get_dispatcher() -> WebhookDispatcher:
    """The dispatcher built at app startup."""
    return apps.get_app_config("billing").dispatcher
