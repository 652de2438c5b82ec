"""
Invoice handlers.

invoice.created / finalized  -> mirror invoice
invoice.paid                 -> mirror invoice, set paid_at
invoice.payment_failed       -> mirror as open, request invoice_payment_failed notification
invoice.upcoming             -> request invoice_upcoming notification (no mirror; the
                                upcoming invoice has no id yet)
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from django.utils import timezone

from organizations.services import from_unix

from billing.models import Invoice
from billing.signals import request_notification
from billing.state_machines import InvoiceStatus
from billing.webhooks.handlers.base import WebhookHandler, nested_object
from billing.webhooks.results import HandlerResult

if TYPE_CHECKING:
    from uuid import UUID

    from billing.webhooks.events import WebhookEnvelope

logger = logging.getLogger(__name__)


def _reference_id(value: Any) -> str:
    if isinstance(value, dict):
        return value.get("id") or ""
    return value or ""


class InvoiceHandler(WebhookHandler):
    event_types = (
        "invoice.created",
        "invoice.finalized",
        "invoice.paid",
        "invoice.payment_failed",
        "invoice.upcoming",
    )

    def on_created(self, envelope: WebhookEnvelope, invoice: dict[str, Any]) -> HandlerResult:
        mirror = self._upsert(invoice, self.organization_id(envelope))
        return HandlerResult.handled(f"Invoice {mirror.stripe_invoice_id} created")

    def on_finalized(self, envelope: WebhookEnvelope, invoice: dict[str, Any]) -> HandlerResult:
        mirror = self._upsert(
            invoice, self.organization_id(envelope), default_status=InvoiceStatus.OPEN
        )
        return HandlerResult.handled(f"Invoice {mirror.stripe_invoice_id} finalized")

    def on_paid(self, envelope: WebhookEnvelope, invoice: dict[str, Any]) -> HandlerResult:
        transitions = nested_object(invoice.get("status_transitions"))
        mirror = self._upsert(
            invoice,
            self.organization_id(envelope),
            status=InvoiceStatus.PAID,
            extra={"paid_at": from_unix(transitions.get("paid_at")) or timezone.now()},
        )
        logger.info(
            "Invoice paid",
            extra=self.log_extra(
                envelope,
                invoice_id=mirror.stripe_invoice_id,
                amount_paid_cents=mirror.amount_paid_cents,
            ),
        )
        return HandlerResult.handled(f"Invoice {mirror.stripe_invoice_id} paid")

    def on_payment_failed(
        self, envelope: WebhookEnvelope, invoice: dict[str, Any]
    ) -> HandlerResult:
        organization_id = self.organization_id(envelope)
        mirror = self._upsert(invoice, organization_id, status=InvoiceStatus.OPEN)

        request_notification(
            sender=type(self),
            organization_id=str(organization_id) if organization_id else None,
            notification_type="invoice_payment_failed",
            context={
                "stripe_invoice_id": mirror.stripe_invoice_id,
                "amount_due_cents": mirror.amount_due_cents,
                "currency": mirror.currency,
                "attempt_count": mirror.attempt_count,
                "hosted_invoice_url": mirror.hosted_invoice_url,
            },
        )
        logger.warning(
            "Invoice payment failed",
            extra=self.log_extra(
                envelope,
                invoice_id=mirror.stripe_invoice_id,
                attempt_count=mirror.attempt_count,
            ),
        )
        return HandlerResult.handled(
            f"Invoice {mirror.stripe_invoice_id} payment failure recorded"
        )

    def on_upcoming(self, envelope: WebhookEnvelope, invoice: dict[str, Any]) -> HandlerResult:
        organization_id = self.organization_id(envelope)
        request_notification(
            sender=type(self),
            organization_id=str(organization_id) if organization_id else None,
            notification_type="invoice_upcoming",
            context={
                "stripe_customer_id": _reference_id(invoice.get("customer")),
                "amount_due_cents": invoice.get("amount_due") or 0,
                "currency": invoice.get("currency") or "usd",
                "next_payment_attempt": invoice.get("next_payment_attempt"),
            },
        )
        return HandlerResult.handled("Upcoming invoice notification sent")

    def _upsert(
        self,
        invoice: dict[str, Any],
        organization_id: UUID | None,
        status: str | None = None,
        default_status: str = InvoiceStatus.DRAFT,
        extra: dict[str, Any] | None = None,
    ) -> Invoice:
        invoice_id = invoice.get("id")
        if not invoice_id:
            raise ValueError("Invoice object has no id")

        if status is None:
            status = invoice.get("status")
            if status not in InvoiceStatus.values:
                status = default_status

        parent = nested_object(invoice.get("parent"))
        subscription_id = _reference_id(invoice.get("subscription")) or _reference_id(
            nested_object(parent.get("subscription_details")).get("subscription")
        )

        defaults = {
            "organization_id": organization_id,
            "stripe_customer_id": _reference_id(invoice.get("customer")),
            "stripe_subscription_id": subscription_id,
            "number": invoice.get("number") or "",
            "status": status,
            "amount_due_cents": invoice.get("amount_due") or 0,
            "amount_paid_cents": invoice.get("amount_paid") or 0,
            "currency": (invoice.get("currency") or "usd").lower(),
            "hosted_invoice_url": invoice.get("hosted_invoice_url") or "",
            "invoice_pdf": invoice.get("invoice_pdf") or "",
            "period_start": from_unix(invoice.get("period_start")),
            "period_end": from_unix(invoice.get("period_end")),
            "due_date": from_unix(invoice.get("due_date")),
            "attempt_count": invoice.get("attempt_count") or 0,
            **(extra or {}),
        }
        mirror, _ = Invoice.objects.update_or_create(
            stripe_invoice_id=invoice_id, defaults=defaults
        )
        return mirror
