"""
Tests for organizations Celery tasks.
"""

import uuid

import pytest

from organizations.models import Plan, SubscriptionStatus
from organizations.tasks import recalculate_usage_metrics
from organizations.tests.factories import OrganizationFactory


@pytest.mark.django_db
class TestRecalculateUsageMetrics:
    def test_recalculates(self):
        organization = OrganizationFactory(
            plan=Plan.ENTERPRISE,
            subscription_status=SubscriptionStatus.TRIALING,
        )

        result = recalculate_usage_metrics(str(organization.id))

        assert result == {"status": "recalculated", "effective_plan": "enterprise"}
        organization.refresh_from_db()
        assert organization.entitlements["limits"]["storage_gb"] == 100

    def test_missing_organization_is_skipped(self):
        result = recalculate_usage_metrics(str(uuid.uuid4()))

        assert result["status"] == "skipped"
