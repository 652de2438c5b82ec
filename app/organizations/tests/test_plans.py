"""
Tests for plan limits and entitlement documents.
"""

from organizations.plans import UNLIMITED, build_entitlements, limits_for


class TestLimitsFor:
    def test_known_plan(self):
        limits = limits_for("professional")

        assert limits["projects"] == 10
        assert limits["team_members"] == 25
        assert limits["webhook_endpoints"] == 5

    def test_enterprise_is_unlimited_except_storage(self):
        limits = limits_for("enterprise")

        assert limits["projects"] == UNLIMITED
        assert limits["api_requests"] == UNLIMITED
        assert limits["storage_gb"] == 100

    def test_unknown_plan_falls_back_to_free(self):
        assert limits_for("platinum") == limits_for("free")

    def test_returns_copy(self):
        limits_for("free")["projects"] = 99

        assert limits_for("free")["projects"] == 1


class TestBuildEntitlements:
    def test_active_subscription_gets_plan_limits(self):
        entitlements = build_entitlements("professional", "active")

        assert entitlements["plan"] == "professional"
        assert entitlements["effective_plan"] == "professional"
        assert entitlements["limits"]["projects"] == 10

    def test_trialing_and_past_due_keep_plan_limits(self):
        assert build_entitlements("enterprise", "trialing")["effective_plan"] == "enterprise"
        assert build_entitlements("enterprise", "past_due")["effective_plan"] == "enterprise"

    def test_canceled_subscription_drops_to_free(self):
        entitlements = build_entitlements("professional", "canceled")

        assert entitlements["plan"] == "professional"
        assert entitlements["effective_plan"] == "free"
        assert entitlements["limits"]["projects"] == 1

    def test_no_subscription_is_free(self):
        assert build_entitlements("free", None)["effective_plan"] == "free"
