"""
Fixtures for billing tests.
"""

import pytest

from organizations.tests.factories import OrganizationFactory

from billing.tests.factories import WebhookEventFactory


@pytest.fixture
def organization(db):
    return OrganizationFactory()


@pytest.fixture
def failed_event(db):
    """Failed invoice.paid event with one attempt used and a retry due."""
    return WebhookEventFactory(failed=True, stripe_event_id="evt_failed_1")


@pytest.fixture
def exhausted_event(db):
    return WebhookEventFactory(exhausted=True, stripe_event_id="evt_exhausted_1")
