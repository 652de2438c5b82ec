"""
Payment outcome handlers.

payment_intent.succeeded      -> mirror status
payment_intent.payment_failed -> mirror status and failure, request payment_failed notification
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from billing.models import PaymentIntent
from billing.signals import request_notification
from billing.state_machines import PaymentIntentStatus
from billing.webhooks.handlers.base import WebhookHandler, nested_object
from billing.webhooks.results import HandlerResult

if TYPE_CHECKING:
    from uuid import UUID

    from billing.webhooks.events import WebhookEnvelope

logger = logging.getLogger(__name__)


class PaymentIntentHandler(WebhookHandler):
    event_types = (
        "payment_intent.succeeded",
        "payment_intent.payment_failed",
    )

    def on_succeeded(self, envelope: WebhookEnvelope, intent: dict[str, Any]) -> HandlerResult:
        organization_id = self.organization_id(envelope)
        payment_intent = self._upsert(
            intent, organization_id, default_status=PaymentIntentStatus.SUCCEEDED
        )

        logger.info(
            "Payment succeeded",
            extra=self.log_extra(
                envelope,
                payment_intent_id=payment_intent.stripe_payment_intent_id,
                amount_cents=payment_intent.amount_cents,
            ),
        )
        return HandlerResult.handled(
            f"Payment succeeded for {payment_intent.stripe_payment_intent_id}"
        )

    def on_payment_failed(
        self, envelope: WebhookEnvelope, intent: dict[str, Any]
    ) -> HandlerResult:
        organization_id = self.organization_id(envelope)
        payment_intent = self._upsert(
            intent,
            organization_id,
            default_status=PaymentIntentStatus.REQUIRES_PAYMENT_METHOD,
        )

        request_notification(
            sender=type(self),
            organization_id=str(organization_id) if organization_id else None,
            notification_type="payment_failed",
            context={
                "stripe_payment_intent_id": payment_intent.stripe_payment_intent_id,
                "amount_cents": payment_intent.amount_cents,
                "currency": payment_intent.currency,
                "failure_code": payment_intent.failure_code,
                "failure_message": payment_intent.failure_message,
            },
        )

        logger.warning(
            "Payment failed",
            extra=self.log_extra(
                envelope,
                payment_intent_id=payment_intent.stripe_payment_intent_id,
                failure_code=payment_intent.failure_code,
            ),
        )
        return HandlerResult.handled(
            f"Payment failure recorded for {payment_intent.stripe_payment_intent_id}"
        )

    def _upsert(
        self,
        intent: dict[str, Any],
        organization_id: UUID | None,
        default_status: str,
    ) -> PaymentIntent:
        intent_id = intent.get("id")
        if not intent_id:
            raise ValueError("PaymentIntent object has no id")

        status = intent.get("status")
        if status not in PaymentIntentStatus.values:
            status = default_status

        last_error = nested_object(intent.get("last_payment_error"))
        customer = intent.get("customer")

        payment_intent, _ = PaymentIntent.objects.update_or_create(
            stripe_payment_intent_id=intent_id,
            defaults={
                "organization_id": organization_id,
                "stripe_customer_id": (
                    customer.get("id") if isinstance(customer, dict) else customer or ""
                ),
                "amount_cents": intent.get("amount") or 0,
                "currency": (intent.get("currency") or "usd").lower(),
                "status": status,
                "failure_code": last_error.get("code") or "",
                "failure_message": last_error.get("message") or "",
                "metadata": intent.get("metadata") or {},
            },
        )
        return payment_intent
