"""
Project-wide pytest configuration.

Tests are auto-marked by filename so suites can be selected with -m.
App-specific fixtures are defined in each app's tests/conftest.py.
"""

import pytest
from rest_framework.test import APIClient


def pytest_collection_modifyitems(items):
    """
    Auto-mark tests based on filename patterns.

    Mapping:
    - test_integration.py → e2e (full delivery/retry scenarios)
    - test_views.py, test_tasks.py, test_ingress.py, etc. → integration
    - test_signatures.py, test_backoff.py, test_events.py, etc. → unit
    - Unmatched files → integration (safe default for Django)

    Explicit markers on test functions/classes take precedence.
    """
    e2e_patterns = ["test_integration.py"]

    integration_patterns = [
        "test_views.py",
        "test_services.py",
        "test_tasks.py",
        "test_handlers.py",
        "test_ingress.py",
        "test_retry.py",
        "test_ledger.py",
        "test_registry.py",
        "test_audit.py",
        "test_stats.py",
        "test_admin.py",
    ]

    unit_patterns = [
        "test_models.py",
        "test_signatures.py",
        "test_backoff.py",
        "test_events.py",
        "test_results.py",
        "test_plans.py",
    ]

    for item in items:
        existing_markers = {m.name for m in item.iter_markers()}
        if existing_markers & {"unit", "integration", "e2e"}:
            continue

        filename = str(item.fspath).split("/")[-1]

        if any(pattern in filename for pattern in e2e_patterns):
            item.add_marker(pytest.mark.e2e)
        elif any(pattern in filename for pattern in integration_patterns):
            item.add_marker(pytest.mark.integration)
        elif any(pattern in filename for pattern in unit_patterns):
            item.add_marker(pytest.mark.unit)
        else:
            item.add_marker(pytest.mark.integration)


@pytest.fixture
def api_client():
    """Unauthenticated DRF test client."""
    return APIClient()


@pytest.fixture
def staff_user(django_user_model):
    """Staff user allowed to call the operator endpoints."""
    return django_user_model.objects.create_user(
        username="operator",
        email="operator@example.com",
        password="testpass123",
        is_staff=True,
    )


@pytest.fixture
def staff_client(api_client, staff_user):
    """DRF client authenticated as a staff operator."""
    api_client.force_authenticate(user=staff_user)
    return api_client
