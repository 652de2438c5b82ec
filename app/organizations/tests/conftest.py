"""
Fixtures for organizations tests.
"""

import pytest

from organizations.tests.factories import OrganizationFactory


@pytest.fixture
def organization(db):
    return OrganizationFactory()


@pytest.fixture
def stripe_subscription(organization):
    """Provider subscription object as delivered in webhook data.object."""
    return {
        "id": "sub_test_123",
        "object": "subscription",
        "customer": "cus_test_123",
        "status": "active",
        "current_period_start": 1700000000,
        "current_period_end": 1702592000,
        "trial_end": None,
        "cancel_at_period_end": False,
        "canceled_at": None,
        "metadata": {
            "organization_id": str(organization.id),
            "plan": "professional",
        },
        "items": {
            "object": "list",
            "data": [
                {
                    "id": "si_test_123",
                    "price": {
                        "id": "price_pro_monthly",
                        "lookup_key": None,
                        "recurring": {"interval": "month"},
                    },
                }
            ],
        },
    }
