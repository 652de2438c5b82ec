"""
Invoice mirror written by the invoice handlers.
"""

from __future__ import annotations

from django.db import models

from core.model_mixins import UUIDPrimaryKeyMixin
from core.models import BaseModel

from billing.state_machines import InvoiceStatus


class Invoice(UUIDPrimaryKeyMixin, BaseModel):
    """
    Mirror of a provider Invoice.

    Fields:
        stripe_invoice_id: Stripe Invoice ID (in_xxx)
        organization: Billed organization, if resolvable
        stripe_customer_id / stripe_subscription_id: Provider references
        number: Human-facing invoice number
        status: Provider status
        amount_due_cents / amount_paid_cents: Amounts in smallest unit
        hosted_invoice_url / invoice_pdf: Provider-hosted documents
        period_start / period_end / due_date: Billing dates
        paid_at: When the invoice was paid
        attempt_count: Collection attempts made by the provider
    """

    stripe_invoice_id = models.CharField(
        max_length=255,
        unique=True,
        help_text="Stripe Invoice ID (in_xxx)",
    )

    organization = models.ForeignKey(
        "organizations.Organization",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="invoices",
    )

    stripe_customer_id = models.CharField(max_length=255, blank=True, default="")
    stripe_subscription_id = models.CharField(
        max_length=255, blank=True, default="", db_index=True
    )

    number = models.CharField(max_length=100, blank=True, default="")

    status = models.CharField(
        max_length=20,
        choices=InvoiceStatus.choices,
        default=InvoiceStatus.DRAFT,
        db_index=True,
    )

    # ==========================================================================
    # Amounts
    # ==========================================================================

    amount_due_cents = models.PositiveBigIntegerField(default=0)
    amount_paid_cents = models.PositiveBigIntegerField(default=0)
    currency = models.CharField(max_length=3, default="usd")

    # ==========================================================================
    # Documents & Dates
    # ==========================================================================

    hosted_invoice_url = models.URLField(max_length=500, blank=True, default="")
    invoice_pdf = models.URLField(max_length=500, blank=True, default="")

    period_start = models.DateTimeField(null=True, blank=True)
    period_end = models.DateTimeField(null=True, blank=True)
    due_date = models.DateTimeField(null=True, blank=True)
    paid_at = models.DateTimeField(null=True, blank=True)

    attempt_count = models.PositiveSmallIntegerField(default=0)

    class Meta:
        db_table = "billing_invoices"
        ordering = ["-created_at"]
        verbose_name = "Invoice"
        verbose_name_plural = "Invoices"

    def __str__(self) -> str:
        return f"Invoice({self.stripe_invoice_id}, {self.status})"
