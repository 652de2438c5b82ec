"""
Subscription lifecycle handlers.

customer.subscription.created / updated  -> upsert mirror, recalculate usage
customer.subscription.deleted            -> mark canceled, recalculate usage
customer.subscription.trial_will_end     -> request trial_ending notification
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from organizations.services import SubscriptionService, UsageService, from_unix

from billing.signals import request_notification
from billing.webhooks.handlers.base import WebhookHandler
from billing.webhooks.results import HandlerResult

if TYPE_CHECKING:
    from billing.webhooks.events import WebhookEnvelope

logger = logging.getLogger(__name__)


class SubscriptionHandler(WebhookHandler):
    event_types = (
        "customer.subscription.created",
        "customer.subscription.updated",
        "customer.subscription.deleted",
        "customer.subscription.trial_will_end",
    )

    def on_created(self, envelope: WebhookEnvelope, subscription: dict[str, Any]) -> HandlerResult:
        return self._sync(envelope, subscription, "created")

    def on_updated(self, envelope: WebhookEnvelope, subscription: dict[str, Any]) -> HandlerResult:
        return self._sync(envelope, subscription, "updated")

    def _sync(
        self, envelope: WebhookEnvelope, subscription: dict[str, Any], verb: str
    ) -> HandlerResult:
        organization_id = self.require_organization_id(envelope)

        result = SubscriptionService.upsert_subscription(organization_id, subscription)
        if not result.success:
            return HandlerResult.failed(result.error, error_code=result.error_code)

        UsageService.schedule_recalculation(organization_id)
        return HandlerResult.handled(f"Subscription {subscription.get('id')} {verb}")

    def on_deleted(self, envelope: WebhookEnvelope, subscription: dict[str, Any]) -> HandlerResult:
        subscription_id = subscription.get("id")
        result = SubscriptionService.cancel_subscription(
            subscription_id,
            canceled_at=from_unix(subscription.get("canceled_at") or subscription.get("ended_at")),
        )
        if result.error_code == "SUBSCRIPTION_NOT_FOUND":
            logger.info("Deleted subscription has no local mirror", extra=self.log_extra(envelope))
            return HandlerResult.handled(
                f"Subscription {subscription_id} canceled",
                note="No local subscription to cancel",
            )
        if not result.success:
            return HandlerResult.failed(result.error, error_code=result.error_code)

        UsageService.schedule_recalculation(result.data.organization_id)
        return HandlerResult.handled(f"Subscription {subscription_id} canceled")

    def on_trial_will_end(
        self, envelope: WebhookEnvelope, subscription: dict[str, Any]
    ) -> HandlerResult:
        organization_id = self.organization_id(envelope)
        subscription_id = subscription.get("id")

        request_notification(
            sender=type(self),
            organization_id=str(organization_id) if organization_id else None,
            notification_type="trial_ending",
            context={
                "stripe_subscription_id": subscription_id,
                "trial_end": subscription.get("trial_end"),
            },
        )
        logger.info("Trial ending notification requested", extra=self.log_extra(envelope))
        return HandlerResult.handled(f"Trial ending notification sent for {subscription_id}")
