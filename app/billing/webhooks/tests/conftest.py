"""
Pytest fixtures for webhook pipeline tests.

Provides an organization with a linked provider customer, payload
builders, and a dispatcher built from a throwaway registry so handler
behavior can be scripted per test.
"""

import pytest

from organizations.tests.factories import OrganizationFactory

from billing.tests.factories import StripeCustomerFactory, build_event
from billing.webhooks.handlers.base import WebhookHandler
from billing.webhooks.registry import HandlerRegistry, WebhookDispatcher
from billing.webhooks.results import HandlerResult


# =============================================================================
# Organization Fixtures
# =============================================================================


@pytest.fixture
def organization(db):
    return OrganizationFactory()


@pytest.fixture
def stripe_customer(organization):
    """Provider customer mirror linked to the organization."""
    return StripeCustomerFactory(
        stripe_customer_id="cus_linked_1", organization=organization
    )


# =============================================================================
# Payload Fixtures
# =============================================================================


@pytest.fixture
def subscription_object(organization):
    """Provider subscription carrying the organization id in metadata."""
    return {
        "id": "sub_test_1",
        "object": "subscription",
        "customer": "cus_linked_1",
        "status": "active",
        "current_period_start": 1700000000,
        "current_period_end": 1702592000,
        "cancel_at_period_end": False,
        "metadata": {"organization_id": str(organization.id), "plan": "professional"},
        "items": {
            "data": [
                {
                    "price": {
                        "id": "price_pro_monthly",
                        "recurring": {"interval": "month"},
                    }
                }
            ]
        },
    }


@pytest.fixture
def invoice_paid_payload(organization):
    return build_event(
        "invoice.paid",
        {
            "id": "in_test_1",
            "object": "invoice",
            "customer": "cus_linked_1",
            "number": "INV-0001",
            "status": "paid",
            "amount_due": 4900,
            "amount_paid": 4900,
            "currency": "usd",
            "metadata": {"organization_id": str(organization.id)},
            "status_transitions": {"paid_at": 1700000500},
        },
        event_id="evt_invoice_paid_1",
    )


# =============================================================================
# Dispatcher Fixtures
# =============================================================================


class ScriptedHandler(WebhookHandler):
    """
    Handler whose outcome is set by the test.

    outcomes is consumed in order; each entry is a HandlerResult to return
    or an exception to raise. The last entry repeats.
    """

    def __init__(self, event_types, outcomes):
        self.event_types = tuple(event_types)
        self.outcomes = list(outcomes)
        self.calls = []

    def process(self, envelope):
        self.calls.append(envelope.id)
        outcome = self.outcomes.pop(0) if len(self.outcomes) > 1 else self.outcomes[0]
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


@pytest.fixture
def scripted_handler():
    """Factory: scripted_handler(*outcomes, event_types=("invoice.paid",))."""

    def _make(*outcomes, event_types=("invoice.paid",)):
        return ScriptedHandler(event_types, outcomes or [HandlerResult.handled("ok")])

    return _make


@pytest.fixture
def make_dispatcher():
    """Factory: dispatcher over a fresh registry holding the given handlers."""

    def _make(*handlers):
        registry = HandlerRegistry()
        for handler in handlers:
            registry.register(handler)
        return WebhookDispatcher(registry)

    return _make
