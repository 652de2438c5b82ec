"""
Provider customer and payment method mirrors.

Written by the customer and payment method webhook handlers. Mirrors are
keyed by provider id, so replays overwrite with identical values.
"""

from __future__ import annotations

from django.db import models

from core.model_mixins import UUIDPrimaryKeyMixin
from core.models import BaseModel


class StripeCustomer(UUIDPrimaryKeyMixin, BaseModel):
    """
    Mirror of a provider Customer.

    Fields:
        stripe_customer_id: Stripe Customer ID (cus_xxx)
        organization: Organization the customer bills for
        email/name: Contact details
        address: Billing address as sent by the provider
        metadata: Provider metadata
    """

    stripe_customer_id = models.CharField(
        max_length=255,
        unique=True,
        help_text="Stripe Customer ID (cus_xxx)",
    )

    organization = models.ForeignKey(
        "organizations.Organization",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="stripe_customers",
    )

    email = models.EmailField(blank=True, default="")
    name = models.CharField(max_length=255, blank=True, default="")
    address = models.JSONField(default=dict, blank=True)
    metadata = models.JSONField(default=dict, blank=True)

    class Meta:
        db_table = "billing_stripe_customers"
        ordering = ["-created_at"]
        verbose_name = "Stripe Customer"
        verbose_name_plural = "Stripe Customers"

    def __str__(self) -> str:
        return f"StripeCustomer({self.stripe_customer_id})"


class PaymentMethod(UUIDPrimaryKeyMixin, BaseModel):
    """Mirror of a payment method attached to a provider customer."""

    stripe_payment_method_id = models.CharField(
        max_length=255,
        unique=True,
        help_text="Stripe PaymentMethod ID (pm_xxx)",
    )

    stripe_customer_id = models.CharField(
        max_length=255,
        db_index=True,
        blank=True,
        default="",
    )

    organization = models.ForeignKey(
        "organizations.Organization",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="payment_methods",
    )

    type = models.CharField(
        max_length=50,
        help_text="Payment method type (e.g., 'card')",
    )

    # ==========================================================================
    # Card Summary (only for type='card')
    # ==========================================================================

    card_brand = models.CharField(max_length=30, blank=True, default="")
    card_last4 = models.CharField(max_length=4, blank=True, default="")
    card_exp_month = models.PositiveSmallIntegerField(null=True, blank=True)
    card_exp_year = models.PositiveSmallIntegerField(null=True, blank=True)

    class Meta:
        db_table = "billing_payment_methods"
        ordering = ["-created_at"]
        verbose_name = "Payment Method"
        verbose_name_plural = "Payment Methods"

    def __str__(self) -> str:
        if self.card_last4:
            return f"{self.card_brand} ****{self.card_last4}"
        return f"PaymentMethod({self.stripe_payment_method_id})"
