"""
Celery tasks for organizations.

Usage:
    from organizations.tasks import recalculate_usage_metrics

    recalculate_usage_metrics.delay(str(organization.id))
"""

from __future__ import annotations

import logging

from celery import shared_task

logger = logging.getLogger(__name__)


@shared_task(
    bind=True,
    autoretry_for=(Exception,),
    retry_backoff=True,
    retry_backoff_max=300,
    retry_kwargs={"max_retries": 3},
)
def recalculate_usage_metrics(self, organization_id: str) -> dict:
    """
    Recompute entitlements for one organization.

    Returns:
        Dict with status and the effective plan when successful
    """
    from organizations.services import UsageService

    result = UsageService.recalculate(organization_id)
    if not result.success:
        logger.warning(
            "Usage recalculation skipped",
            extra={"organization_id": organization_id, "error": result.error},
        )
        return {"status": "skipped", "reason": result.error}

    return {"status": "recalculated", "effective_plan": result.data["effective_plan"]}
