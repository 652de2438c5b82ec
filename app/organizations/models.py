"""
Organization and Subscription models.

An Organization is the billing tenant. Its Subscription rows mirror the
provider's subscription objects and are written by the billing webhook
handlers through organizations.services.SubscriptionService.

Usage:
    from organizations.models import Organization, Subscription

    org = Organization.objects.create(name="Acme", slug="acme")
    Subscription.objects.filter(organization=org, status="active")
"""

from __future__ import annotations

from django.db import models

from core.model_mixins import UUIDPrimaryKeyMixin
from core.models import BaseModel


class Plan(models.TextChoices):
    FREE = "free", "Free"
    PROFESSIONAL = "professional", "Professional"
    ENTERPRISE = "enterprise", "Enterprise"


class SubscriptionStatus(models.TextChoices):
    """Subscription states as reported by the payment provider."""

    TRIALING = "trialing", "Trialing"
    ACTIVE = "active", "Active"
    PAST_DUE = "past_due", "Past Due"
    CANCELED = "canceled", "Canceled"
    UNPAID = "unpaid", "Unpaid"
    INCOMPLETE = "incomplete", "Incomplete"
    INCOMPLETE_EXPIRED = "incomplete_expired", "Incomplete Expired"
    PAUSED = "paused", "Paused"


class BillingCycle(models.TextChoices):
    MONTHLY = "monthly", "Monthly"
    YEARLY = "yearly", "Yearly"


class Organization(UUIDPrimaryKeyMixin, BaseModel):
    """
    Billing tenant.

    Fields:
        name: Display name
        slug: Unique URL-safe identifier
        plan: Current plan tier
        subscription_status: Status of the current subscription (denormalized)
        entitlements: Derived limits, see organizations.plans
        usage_recalculated_at: Last entitlement recalculation
    """

    name = models.CharField(max_length=255)

    slug = models.SlugField(
        max_length=100,
        unique=True,
        help_text="Unique URL-safe identifier",
    )

    plan = models.CharField(
        max_length=20,
        choices=Plan.choices,
        default=Plan.FREE,
        help_text="Current plan tier",
    )

    subscription_status = models.CharField(
        max_length=30,
        choices=SubscriptionStatus.choices,
        null=True,
        blank=True,
        help_text="Status of the current provider subscription",
    )

    entitlements = models.JSONField(
        default=dict,
        blank=True,
        help_text="Limits derived from plan and subscription status",
    )

    usage_recalculated_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When entitlements were last recalculated",
    )

    class Meta:
        ordering = ["name"]
        verbose_name = "Organization"
        verbose_name_plural = "Organizations"

    def __str__(self) -> str:
        return self.name


class Subscription(UUIDPrimaryKeyMixin, BaseModel):
    """
    Mirror of a provider subscription.

    Fields:
        organization: Owning organization
        stripe_subscription_id: Stripe Subscription ID (sub_xxx)
        stripe_customer_id: Stripe Customer ID (cus_xxx)
        stripe_price_id: Price of the first subscription item
        plan: Plan tier the subscription grants
        status: Provider-reported status
        billing_cycle: monthly or yearly
        current_period_start/end: Current billing period
        trial_end: End of trial, if any
        cancel_at_period_end: Whether cancellation is scheduled
        canceled_at: When the subscription was canceled
        metadata: Provider metadata, stored verbatim
    """

    organization = models.ForeignKey(
        Organization,
        on_delete=models.CASCADE,
        related_name="subscriptions",
    )

    # ==========================================================================
    # Stripe Identifiers
    # ==========================================================================

    stripe_subscription_id = models.CharField(
        max_length=255,
        unique=True,
        help_text="Stripe Subscription ID (sub_xxx)",
    )

    stripe_customer_id = models.CharField(
        max_length=255,
        db_index=True,
        help_text="Stripe Customer ID (cus_xxx)",
    )

    stripe_price_id = models.CharField(
        max_length=255,
        blank=True,
        default="",
        help_text="Stripe Price ID of the first subscription item",
    )

    # ==========================================================================
    # Plan & Status
    # ==========================================================================

    plan = models.CharField(
        max_length=20,
        choices=Plan.choices,
        default=Plan.FREE,
    )

    status = models.CharField(
        max_length=30,
        choices=SubscriptionStatus.choices,
        default=SubscriptionStatus.INCOMPLETE,
        db_index=True,
    )

    billing_cycle = models.CharField(
        max_length=10,
        choices=BillingCycle.choices,
        default=BillingCycle.MONTHLY,
    )

    # ==========================================================================
    # Billing Period
    # ==========================================================================

    current_period_start = models.DateTimeField(null=True, blank=True)
    current_period_end = models.DateTimeField(null=True, blank=True)
    trial_end = models.DateTimeField(null=True, blank=True)

    cancel_at_period_end = models.BooleanField(default=False)
    canceled_at = models.DateTimeField(null=True, blank=True)

    metadata = models.JSONField(default=dict, blank=True)

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "Subscription"
        verbose_name_plural = "Subscriptions"
        indexes = [
            models.Index(
                fields=["organization", "status"], name="org_subscription_status_idx"
            ),
        ]

    def __str__(self) -> str:
        return f"Subscription({self.stripe_subscription_id}, {self.status})"

    @property
    def is_active(self) -> bool:
        return self.status in (SubscriptionStatus.ACTIVE, SubscriptionStatus.TRIALING)
