"""
PaymentIntent mirror written by the payment outcome handlers.
"""

from __future__ import annotations

from django.db import models

from core.model_mixins import UUIDPrimaryKeyMixin
from core.models import BaseModel

from billing.state_machines import PaymentIntentStatus


class PaymentIntent(UUIDPrimaryKeyMixin, BaseModel):
    """
    Mirror of a provider PaymentIntent.

    Fields:
        stripe_payment_intent_id: Stripe PaymentIntent ID (pi_xxx)
        organization: Organization charged, if resolvable
        stripe_customer_id: Customer charged
        amount_cents: Amount in smallest currency unit
        currency: ISO 4217 currency code
        status: Provider status
        failure_code/failure_message: From last_payment_error
    """

    stripe_payment_intent_id = models.CharField(
        max_length=255,
        unique=True,
        help_text="Stripe PaymentIntent ID (pi_xxx)",
    )

    organization = models.ForeignKey(
        "organizations.Organization",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="payment_intents",
    )

    stripe_customer_id = models.CharField(max_length=255, blank=True, default="")

    amount_cents = models.PositiveBigIntegerField(default=0)

    currency = models.CharField(max_length=3, default="usd")

    status = models.CharField(
        max_length=30,
        choices=PaymentIntentStatus.choices,
        db_index=True,
    )

    failure_code = models.CharField(max_length=100, blank=True, default="")
    failure_message = models.TextField(blank=True, default="")

    metadata = models.JSONField(default=dict, blank=True)

    class Meta:
        db_table = "billing_payment_intents"
        ordering = ["-created_at"]
        verbose_name = "Payment Intent"
        verbose_name_plural = "Payment Intents"

    def __str__(self) -> str:
        return f"PaymentIntent({self.stripe_payment_intent_id}, {self.status})"
