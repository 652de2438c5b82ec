"""
Subscription and usage services for organizations.

These are the entry points the billing webhook handlers call into. All
operations are idempotent: applying the same provider object twice leaves
the same state.

Usage:
    from organizations.services import SubscriptionService, UsageService

    result = SubscriptionService.upsert_subscription(
        organization_id=org.id,
        stripe_subscription=event_object,
    )
    if result.success:
        UsageService.schedule_recalculation(org.id)
"""

from __future__ import annotations

from datetime import datetime, timezone as dt_timezone
from typing import TYPE_CHECKING, Any

from django.db import transaction
from django.utils import timezone

from core.services import BaseService, ServiceResult

from organizations.models import (
    BillingCycle,
    Organization,
    Plan,
    Subscription,
    SubscriptionStatus,
)
from organizations.plans import build_entitlements

if TYPE_CHECKING:
    from uuid import UUID


def from_unix(value: int | float | None) -> datetime | None:
    """Convert a provider unix timestamp to an aware datetime."""
    if value in (None, ""):
        return None
    return datetime.fromtimestamp(int(value), tz=dt_timezone.utc)


def _first_item(stripe_subscription: dict[str, Any]) -> dict[str, Any]:
    items = (stripe_subscription.get("items") or {}).get("data") or []
    return items[0] if items else {}


def _resolve_plan(stripe_subscription: dict[str, Any]) -> str | None:
    """
    Determine the plan tier from subscription or price metadata.

    Checked in order: subscription metadata "plan", price lookup_key,
    price metadata "plan". Unknown values are ignored.
    """
    price = _first_item(stripe_subscription).get("price") or {}
    candidates = (
        (stripe_subscription.get("metadata") or {}).get("plan"),
        price.get("lookup_key"),
        (price.get("metadata") or {}).get("plan"),
    )
    for candidate in candidates:
        if candidate and str(candidate).lower() in Plan.values:
            return str(candidate).lower()
    return None


def _resolve_status(raw_status: str | None) -> str:
    if raw_status in SubscriptionStatus.values:
        return raw_status
    return SubscriptionStatus.INCOMPLETE


class SubscriptionService(BaseService):
    """Writes provider subscription state onto organizations."""

    @classmethod
    def upsert_subscription(
        cls,
        organization_id: UUID | str,
        stripe_subscription: dict[str, Any],
    ) -> ServiceResult[Subscription]:
        """
        Create or update the local mirror of a provider subscription.

        Also denormalizes plan and status onto the organization.

        Args:
            organization_id: Owning organization
            stripe_subscription: Provider subscription object (event data.object)

        Returns:
            ServiceResult containing the Subscription
        """
        stripe_subscription_id = stripe_subscription.get("id")
        if not stripe_subscription_id:
            return ServiceResult.failure(
                "Subscription object has no id",
                error_code="INVALID_SUBSCRIPTION",
            )

        item = _first_item(stripe_subscription)
        price = item.get("price") or {}
        interval = (price.get("recurring") or {}).get("interval")

        with cls.atomic():
            organization = (
                Organization.objects.select_for_update()
                .filter(pk=organization_id)
                .first()
            )
            if organization is None:
                return ServiceResult.failure(
                    f"Organization {organization_id} not found",
                    error_code="ORGANIZATION_NOT_FOUND",
                )

            plan = _resolve_plan(stripe_subscription) or organization.plan
            status = _resolve_status(stripe_subscription.get("status"))

            subscription, created = Subscription.objects.update_or_create(
                stripe_subscription_id=stripe_subscription_id,
                defaults={
                    "organization": organization,
                    "stripe_customer_id": stripe_subscription.get("customer") or "",
                    "stripe_price_id": price.get("id") or "",
                    "plan": plan,
                    "status": status,
                    "billing_cycle": (
                        BillingCycle.YEARLY
                        if interval == "year"
                        else BillingCycle.MONTHLY
                    ),
                    # Newer API versions carry the period on the item
                    "current_period_start": from_unix(
                        stripe_subscription.get("current_period_start")
                        or item.get("current_period_start")
                    ),
                    "current_period_end": from_unix(
                        stripe_subscription.get("current_period_end")
                        or item.get("current_period_end")
                    ),
                    "trial_end": from_unix(stripe_subscription.get("trial_end")),
                    "cancel_at_period_end": bool(
                        stripe_subscription.get("cancel_at_period_end")
                    ),
                    "canceled_at": from_unix(stripe_subscription.get("canceled_at")),
                    "metadata": stripe_subscription.get("metadata") or {},
                },
            )

            organization.plan = plan
            organization.subscription_status = status
            organization.save(update_fields=["plan", "subscription_status", "updated_at"])

        cls.get_logger().info(
            "Subscription %s",
            "created" if created else "updated",
            extra={
                "organization_id": str(organization.id),
                "stripe_subscription_id": stripe_subscription_id,
                "status": status,
                "plan": plan,
            },
        )
        return ServiceResult.success(subscription)

    @classmethod
    def cancel_subscription(
        cls,
        stripe_subscription_id: str,
        canceled_at: datetime | None = None,
    ) -> ServiceResult[Subscription]:
        """
        Mark a subscription canceled.

        Canceling an already canceled subscription is a no-op success.
        """
        with cls.atomic():
            subscription = (
                Subscription.objects.select_for_update()
                .select_related("organization")
                .filter(stripe_subscription_id=stripe_subscription_id)
                .first()
            )
            if subscription is None:
                return ServiceResult.failure(
                    f"Subscription {stripe_subscription_id} not found",
                    error_code="SUBSCRIPTION_NOT_FOUND",
                )

            if subscription.status == SubscriptionStatus.CANCELED:
                return ServiceResult.success(subscription)

            subscription.status = SubscriptionStatus.CANCELED
            subscription.canceled_at = canceled_at or timezone.now()
            subscription.save(update_fields=["status", "canceled_at", "updated_at"])

            organization = subscription.organization
            organization.subscription_status = SubscriptionStatus.CANCELED
            organization.save(update_fields=["subscription_status", "updated_at"])

        cls.get_logger().info(
            "Subscription canceled",
            extra={
                "organization_id": str(subscription.organization_id),
                "stripe_subscription_id": stripe_subscription_id,
            },
        )
        return ServiceResult.success(subscription)


class UsageService(BaseService):
    """Recomputes organization entitlements from plan limits."""

    @classmethod
    def recalculate(cls, organization_id: UUID | str) -> ServiceResult[dict]:
        with cls.atomic():
            organization = (
                Organization.objects.select_for_update()
                .filter(pk=organization_id)
                .first()
            )
            if organization is None:
                return ServiceResult.failure(
                    f"Organization {organization_id} not found",
                    error_code="ORGANIZATION_NOT_FOUND",
                )

            organization.entitlements = build_entitlements(
                organization.plan, organization.subscription_status
            )
            organization.usage_recalculated_at = timezone.now()
            organization.save(
                update_fields=["entitlements", "usage_recalculated_at", "updated_at"]
            )

        cls.get_logger().info(
            "Recalculated entitlements",
            extra={
                "organization_id": str(organization_id),
                "effective_plan": organization.entitlements["effective_plan"],
            },
        )
        return ServiceResult.success(organization.entitlements)

    @classmethod
    def schedule_recalculation(cls, organization_id: UUID | str) -> None:
        """Queue a recalculation once the current transaction commits."""
        from organizations.tasks import recalculate_usage_metrics

        transaction.on_commit(
            lambda: recalculate_usage_metrics.delay(str(organization_id))
        )
