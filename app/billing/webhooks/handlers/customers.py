"""
Customer and payment method handlers.

customer.created / updated  -> mirror email, name, address
customer.deleted            -> delete mirror
payment_method.attached     -> mirror type and card summary
payment_method.detached     -> delete mirror
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from billing.models import PaymentMethod, StripeCustomer
from billing.webhooks.handlers.base import WebhookHandler, nested_object
from billing.webhooks.results import HandlerResult

if TYPE_CHECKING:
    from billing.webhooks.events import WebhookEnvelope

logger = logging.getLogger(__name__)


class CustomerHandler(WebhookHandler):
    event_types = (
        "customer.created",
        "customer.updated",
        "customer.deleted",
    )

    def on_created(self, envelope: WebhookEnvelope, customer: dict[str, Any]) -> HandlerResult:
        mirror = self._upsert(envelope, customer)
        return HandlerResult.handled(f"Customer {mirror.stripe_customer_id} created")

    def on_updated(self, envelope: WebhookEnvelope, customer: dict[str, Any]) -> HandlerResult:
        mirror = self._upsert(envelope, customer)
        return HandlerResult.handled(f"Customer {mirror.stripe_customer_id} updated")

    def on_deleted(self, envelope: WebhookEnvelope, customer: dict[str, Any]) -> HandlerResult:
        customer_id = customer.get("id")
        deleted, _ = StripeCustomer.objects.filter(stripe_customer_id=customer_id).delete()
        logger.info(
            "Customer mirror deleted",
            extra=self.log_extra(envelope, stripe_customer_id=customer_id, rows=deleted),
        )
        return HandlerResult.handled(f"Customer {customer_id} deleted")

    def _upsert(self, envelope: WebhookEnvelope, customer: dict[str, Any]) -> StripeCustomer:
        customer_id = customer.get("id")
        if not customer_id:
            raise ValueError("Customer object has no id")

        defaults = {
            "email": customer.get("email") or "",
            "name": customer.get("name") or "",
            "address": customer.get("address") or {},
            "metadata": customer.get("metadata") or {},
        }
        # Keep a previously linked organization when metadata no longer names one
        organization_id = self.organization_id(envelope)
        if organization_id is not None:
            defaults["organization_id"] = organization_id

        mirror, _ = StripeCustomer.objects.update_or_create(
            stripe_customer_id=customer_id, defaults=defaults
        )
        return mirror


class PaymentMethodHandler(WebhookHandler):
    event_types = (
        "payment_method.attached",
        "payment_method.detached",
    )

    def on_attached(
        self, envelope: WebhookEnvelope, payment_method: dict[str, Any]
    ) -> HandlerResult:
        payment_method_id = payment_method.get("id")
        if not payment_method_id:
            raise ValueError("PaymentMethod object has no id")

        card = nested_object(payment_method.get("card"))
        customer = payment_method.get("customer")

        PaymentMethod.objects.update_or_create(
            stripe_payment_method_id=payment_method_id,
            defaults={
                "stripe_customer_id": (
                    customer.get("id") if isinstance(customer, dict) else customer or ""
                ),
                "organization_id": self.organization_id(envelope),
                "type": payment_method.get("type") or "",
                "card_brand": card.get("brand") or "",
                "card_last4": card.get("last4") or "",
                "card_exp_month": card.get("exp_month"),
                "card_exp_year": card.get("exp_year"),
            },
        )
        return HandlerResult.handled(f"Payment method {payment_method_id} attached")

    def on_detached(
        self, envelope: WebhookEnvelope, payment_method: dict[str, Any]
    ) -> HandlerResult:
        payment_method_id = payment_method.get("id")
        PaymentMethod.objects.filter(stripe_payment_method_id=payment_method_id).delete()
        return HandlerResult.handled(f"Payment method {payment_method_id} detached")
