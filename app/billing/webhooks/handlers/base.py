"""
Base class for webhook handlers.

A handler declares the event types it owns and implements one on_<action>
method per type, where <action> is the last dotted segment of the type
("invoice.payment_failed" -> on_payment_failed).

Handlers must be idempotent: the same event can be processed again by a
retry after a partial failure. They run inside a savepoint opened by the
dispatcher, so any failure rolls back their writes.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any
from uuid import UUID

from billing.exceptions import MissingOrganizationError
from billing.webhooks.events import resolve_organization_id
from billing.webhooks.results import HandlerResult

if TYPE_CHECKING:
    from billing.webhooks.events import WebhookEnvelope

logger = logging.getLogger(__name__)


def nested_object(value: Any) -> dict[str, Any]:
    """Nested provider object, or {} when absent or not an object."""
    return value if isinstance(value, dict) else {}


class WebhookHandler:
    event_types: tuple[str, ...] = ()

    def process(self, envelope: WebhookEnvelope) -> HandlerResult:
        action = envelope.type.rsplit(".", 1)[-1]
        method = getattr(self, f"on_{action}", None)
        if method is None:
            raise NotImplementedError(
                f"{type(self).__name__} declares {envelope.type} but has no on_{action}"
            )
        return method(envelope, envelope.data_object)

    def organization_id(self, envelope: WebhookEnvelope) -> UUID | None:
        return resolve_organization_id(envelope)

    def require_organization_id(self, envelope: WebhookEnvelope) -> UUID:
        """
        Resolve the organization or raise.

        Raises:
            MissingOrganizationError: Event cannot be attributed yet
        """
        organization_id = self.organization_id(envelope)
        if organization_id is None:
            raise MissingOrganizationError(
                f"No organization found for {envelope.type} {envelope.object_id}",
                details={"stripe_event_id": envelope.id},
            )
        return organization_id

    def log_extra(self, envelope: WebhookEnvelope, **extra: Any) -> dict[str, Any]:
        return {"stripe_event_id": envelope.id, "event_type": envelope.type, **extra}


class AcknowledgeHandler(WebhookHandler):
    """Accepts event types we subscribe to but have nothing to do for."""

    def __init__(self, event_types: tuple[str, ...]):
        self.event_types = tuple(event_types)

    def process(self, envelope: WebhookEnvelope) -> HandlerResult:
        logger.debug("Acknowledged webhook", extra=self.log_extra(envelope))
        return HandlerResult.handled(f"Acknowledged {envelope.type}")
