"""
Plan limits per subscription tier.

A limit of -1 means unlimited. Entitlements stored on an Organization are
derived from these tables by UsageService.recalculate().
"""

from __future__ import annotations

from typing import Any

UNLIMITED = -1

PLAN_LIMITS: dict[str, dict[str, int]] = {
    "free": {
        "projects": 1,
        "team_members": 5,
        "installations": 100,
        "storage_gb": 1,
        "api_requests": 1000,
        "webhook_endpoints": 0,
        "custom_integrations": 0,
    },
    "professional": {
        "projects": 10,
        "team_members": 25,
        "installations": 2500,
        "storage_gb": 10,
        "api_requests": 25000,
        "webhook_endpoints": 5,
        "custom_integrations": 3,
    },
    "enterprise": {
        "projects": UNLIMITED,
        "team_members": UNLIMITED,
        "installations": UNLIMITED,
        "storage_gb": 100,
        "api_requests": UNLIMITED,
        "webhook_endpoints": UNLIMITED,
        "custom_integrations": UNLIMITED,
    },
}

# Subscription statuses under which paid limits apply
ENTITLED_STATUSES = frozenset({"trialing", "active", "past_due"})


def limits_for(plan: str) -> dict[str, int]:
    """Return a copy of the limits for a plan, falling back to free."""
    return dict(PLAN_LIMITS.get(plan, PLAN_LIMITS["free"]))


def build_entitlements(plan: str, subscription_status: str | None) -> dict[str, Any]:
    """
    Build the entitlement document for an organization.

    Organizations whose subscription is not in good standing drop to the
    free tier limits while keeping their nominal plan.
    """
    effective_plan = plan if subscription_status in ENTITLED_STATUSES else "free"
    return {
        "plan": plan,
        "effective_plan": effective_plan,
        "limits": limits_for(effective_plan),
    }
