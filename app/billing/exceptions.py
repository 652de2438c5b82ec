"""
Billing-specific exceptions.

Exception Hierarchy:
    WebhookError (base for webhook processing)
    ├── WebhookPayloadError - Payload is not a usable provider event
    ├── HandlerRegistrationError - Handler registry misconfiguration
    ├── MissingOrganizationError - Handler needs an organization it cannot resolve
    └── ImmutableRecordError - Attempt to modify or delete an audit row

Usage:
    from billing.exceptions import WebhookPayloadError

    if "id" not in payload:
        raise WebhookPayloadError("Event has no id")
"""

from __future__ import annotations

from core.exceptions import (
    BaseApplicationError,
    ConflictError,
    NotFoundError,
    ValidationError,
)


class WebhookError(BaseApplicationError):
    """Base exception for webhook processing."""

    default_error_code = "WEBHOOK_ERROR"


class WebhookPayloadError(WebhookError, ValidationError):
    """
    Raised when a webhook body cannot be interpreted as a provider event.

    Covers invalid JSON, a non-object body and a missing id or type.
    """

    default_error_code = "INVALID_WEBHOOK_PAYLOAD"


class HandlerRegistrationError(WebhookError, ConflictError):
    """Raised when two handlers claim the same event type."""

    default_error_code = "HANDLER_ALREADY_REGISTERED"


class MissingOrganizationError(WebhookError, NotFoundError):
    """
    Raised by a handler that cannot act without an organization.

    Treated as a handler failure, so the event is retried: the organization
    may be linked by a later event.
    """

    default_error_code = "ORGANIZATION_NOT_RESOLVED"


class ImmutableRecordError(WebhookError):
    """Raised when code tries to update or delete an append-only audit row."""

    default_error_code = "IMMUTABLE_RECORD"
