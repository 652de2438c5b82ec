"""
Operator queries over the ledger and the verification audit log.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from django.db.models import Count, F, Q

from billing.models import VerificationAttempt, WebhookEvent
from billing.state_machines import VerificationStatus, WebhookEventStatus

if TYPE_CHECKING:
    from uuid import UUID


def webhook_stats(organization_id: UUID | str | None = None) -> dict[str, Any]:
    """
    Ledger totals, optionally scoped to one organization.

    Verification totals are global: rejected requests are never attributed
    to an organization.
    """
    events = WebhookEvent.objects.all()
    if organization_id is not None:
        events = events.filter(organization_id=organization_id)

    totals = events.aggregate(
        total=Count("id"),
        received=Count("id", filter=Q(status=WebhookEventStatus.RECEIVED)),
        processed=Count("id", filter=Q(status=WebhookEventStatus.PROCESSED)),
        failed=Count("id", filter=Q(status=WebhookEventStatus.FAILED)),
        exhausted=Count(
            "id",
            filter=Q(status=WebhookEventStatus.FAILED, retry_count__gte=F("max_retries")),
        ),
    )

    by_type = {
        row["event_type"]: row["count"]
        for row in events.order_by()
        .values("event_type")
        .annotate(count=Count("id"))
        .order_by("event_type")
    }

    verification = VerificationAttempt.objects.aggregate(
        total=Count("id"),
        success=Count("id", filter=Q(status=VerificationStatus.SUCCESS)),
        failed=Count("id", filter=Q(status=VerificationStatus.FAILED)),
    )

    return {**totals, "by_type": by_type, "verification": verification}
