"""
Typed view of provider events.

WebhookEnvelope is the parsed, validated form of an event payload that the
rest of the pipeline works with. EventCategory groups event types by the
provider object they carry, and each category has one organization
resolver.

Usage:
    from billing.webhooks.events import WebhookEnvelope, resolve_organization_id

    envelope = WebhookEnvelope.from_json(request.body)
    organization_id = resolve_organization_id(envelope)
"""

from __future__ import annotations

import enum
import json
import logging
import uuid
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from django.core.exceptions import ImproperlyConfigured

from billing.exceptions import WebhookPayloadError

logger = logging.getLogger(__name__)

ORGANIZATION_METADATA_KEYS = ("organization_id", "organizationId")

# Column sizes of WebhookEvent / VerificationAttempt
MAX_EVENT_ID_LENGTH = 255
MAX_EVENT_TYPE_LENGTH = 100
MAX_API_VERSION_LENGTH = 50


# =============================================================================
# Envelope
# =============================================================================


@dataclass(frozen=True)
class WebhookEnvelope:
    """
    Validated provider event.

    Attributes:
        id: Provider event id (evt_xxx)
        type: Event type (e.g. "invoice.paid")
        data_object: The provider object the event is about (data.object)
        api_version: API version used to render the payload
        livemode: Live or test mode
        created: Unix time the provider created the event
        payload: The full payload as received
    """

    id: str
    type: str
    data_object: dict[str, Any]
    api_version: str | None = None
    livemode: bool = False
    created: int | None = None
    payload: dict[str, Any] = field(default_factory=dict, repr=False)

    @classmethod
    def from_payload(cls, payload: Any) -> WebhookEnvelope:
        """
        Build an envelope from a decoded payload.

        Raises:
            WebhookPayloadError: Payload is not an object, has no id/type, or
                the id/type do not fit the ledger columns
        """
        if not isinstance(payload, dict):
            raise WebhookPayloadError("Invalid payload: event must be a JSON object")

        event_id = payload.get("id")
        event_type = payload.get("type")
        if not isinstance(event_id, str) or not event_id:
            raise WebhookPayloadError("Invalid payload: missing event id")
        if not isinstance(event_type, str) or not event_type:
            raise WebhookPayloadError(
                "Invalid payload: missing event type",
                details={"stripe_event_id": event_id},
            )
        if len(event_id) > MAX_EVENT_ID_LENGTH:
            raise WebhookPayloadError(
                f"Invalid payload: event id longer than {MAX_EVENT_ID_LENGTH} characters"
            )
        if len(event_type) > MAX_EVENT_TYPE_LENGTH:
            raise WebhookPayloadError(
                f"Invalid payload: event type longer than {MAX_EVENT_TYPE_LENGTH} characters",
                details={"stripe_event_id": event_id},
            )

        api_version = payload.get("api_version")
        if not isinstance(api_version, str) or len(api_version) > MAX_API_VERSION_LENGTH:
            api_version = None

        data = payload.get("data") or {}
        data_object = data.get("object") if isinstance(data, dict) else None
        if not isinstance(data_object, dict):
            data_object = {}

        return cls(
            id=event_id,
            type=event_type,
            data_object=data_object,
            api_version=api_version,
            livemode=bool(payload.get("livemode", False)),
            created=payload.get("created"),
            payload=payload,
        )

    @classmethod
    def from_json(cls, raw_body: bytes) -> WebhookEnvelope:
        """
        Decode and validate a raw request body.

        Raises:
            WebhookPayloadError: Body is not valid JSON or not a usable event
        """
        try:
            payload = json.loads(raw_body)
        except (ValueError, TypeError) as e:
            raise WebhookPayloadError("Invalid payload: body is not valid JSON") from e
        return cls.from_payload(payload)

    @property
    def category(self) -> EventCategory:
        return EventCategory.for_event_type(self.type)

    @property
    def object_id(self) -> str | None:
        return self.data_object.get("id")


# =============================================================================
# Categories
# =============================================================================


class EventCategory(enum.Enum):
    """Provider object families, matched by event type prefix."""

    SUBSCRIPTION = "customer.subscription."
    CUSTOMER = "customer."
    PAYMENT_METHOD = "payment_method."
    PAYMENT_INTENT = "payment_intent."
    INVOICE = "invoice."
    SETUP_INTENT = "setup_intent."
    UNKNOWN = ""

    @classmethod
    def for_event_type(cls, event_type: str) -> EventCategory:
        # Declaration order matters: SUBSCRIPTION must match before CUSTOMER
        for category in cls:
            if category is not cls.UNKNOWN and event_type.startswith(category.value):
                return category
        return cls.UNKNOWN


# =============================================================================
# Organization Resolution
# =============================================================================


def _reference_id(value: Any) -> str | None:
    """Provider references arrive either as an id string or an expanded object."""
    if isinstance(value, dict):
        value = value.get("id")
    if isinstance(value, str) and value:
        return value
    return None


def _from_metadata(obj: Any) -> str | None:
    if not isinstance(obj, dict):
        return None
    metadata = obj.get("metadata") or {}
    if not isinstance(metadata, dict):
        return None
    for key in ORGANIZATION_METADATA_KEYS:
        if metadata.get(key):
            return str(metadata[key])
    return None


def _from_customer(customer: Any) -> str | None:
    from billing.models import StripeCustomer

    customer_id = _reference_id(customer)
    if customer_id is None:
        return None
    if isinstance(customer, dict) and _from_metadata(customer):
        return _from_metadata(customer)
    organization_id = (
        StripeCustomer.objects.filter(stripe_customer_id=customer_id)
        .values_list("organization_id", flat=True)
        .first()
    )
    return str(organization_id) if organization_id else None


def _from_subscription(subscription: Any) -> str | None:
    from organizations.models import Subscription

    if isinstance(subscription, dict) and _from_metadata(subscription):
        return _from_metadata(subscription)
    subscription_id = _reference_id(subscription)
    if subscription_id is None:
        return None
    organization_id = (
        Subscription.objects.filter(stripe_subscription_id=subscription_id)
        .values_list("organization_id", flat=True)
        .first()
    )
    return str(organization_id) if organization_id else None


def _resolve_subscription(obj: dict[str, Any]) -> str | None:
    return _from_subscription(obj) or _from_customer(obj.get("customer"))


def _resolve_customer(obj: dict[str, Any]) -> str | None:
    return _from_metadata(obj) or _from_customer(obj.get("id"))


def _resolve_customer_owned(obj: dict[str, Any]) -> str | None:
    return _from_metadata(obj) or _from_customer(obj.get("customer"))


def _resolve_invoice(obj: dict[str, Any]) -> str | None:
    # Newer API versions nest subscription details under "parent"
    parent = obj.get("parent")
    if not isinstance(parent, dict):
        parent = {}
    return (
        _from_metadata(obj)
        or _from_metadata(obj.get("subscription_details"))
        or _from_metadata(parent.get("subscription_details"))
        or _from_subscription(obj.get("subscription"))
        or _from_customer(obj.get("customer"))
    )


def _resolve_unknown(obj: dict[str, Any]) -> str | None:
    return _from_metadata(obj)


ORGANIZATION_RESOLVERS: dict[EventCategory, Callable[[dict[str, Any]], str | None]] = {
    EventCategory.SUBSCRIPTION: _resolve_subscription,
    EventCategory.CUSTOMER: _resolve_customer,
    EventCategory.PAYMENT_METHOD: _resolve_customer_owned,
    EventCategory.PAYMENT_INTENT: _resolve_customer_owned,
    EventCategory.INVOICE: _resolve_invoice,
    EventCategory.SETUP_INTENT: _resolve_customer_owned,
    EventCategory.UNKNOWN: _resolve_unknown,
}

_unmapped = set(EventCategory) - set(ORGANIZATION_RESOLVERS)
if _unmapped:
    raise ImproperlyConfigured(
        f"No organization resolver for categories: {sorted(c.name for c in _unmapped)}"
    )


def resolve_organization_id(envelope: WebhookEnvelope) -> uuid.UUID | None:
    """
    Find the organization an event belongs to.

    Metadata on the event object wins; otherwise local mirrors
    (subscriptions, customers) are consulted. The candidate must be a
    valid UUID of an existing organization.

    Returns:
        Organization id, or None when the event cannot be attributed
    """
    from organizations.models import Organization

    candidate = ORGANIZATION_RESOLVERS[envelope.category](envelope.data_object)
    if candidate is None:
        return None

    try:
        organization_id = uuid.UUID(candidate)
    except ValueError:
        logger.warning(
            "Ignoring malformed organization id in webhook",
            extra={"stripe_event_id": envelope.id, "organization_id": candidate},
        )
        return None

    if not Organization.objects.filter(pk=organization_id).exists():
        logger.warning(
            "Webhook references unknown organization",
            extra={"stripe_event_id": envelope.id, "organization_id": candidate},
        )
        return None

    return organization_id
