"""
Organizations admin configuration.
"""

from django.contrib import admin

from organizations.models import Organization, Subscription


class SubscriptionInline(admin.TabularInline):
    model = Subscription
    extra = 0
    fields = ["stripe_subscription_id", "plan", "status", "current_period_end"]
    readonly_fields = fields
    can_delete = False
    show_change_link = True


@admin.register(Organization)
class OrganizationAdmin(admin.ModelAdmin):
    """Admin configuration for Organization."""

    list_display = ["name", "slug", "plan", "subscription_status", "created_at"]
    list_filter = ["plan", "subscription_status"]
    search_fields = ["id", "name", "slug"]
    readonly_fields = ["id", "entitlements", "usage_recalculated_at", "created_at", "updated_at"]
    prepopulated_fields = {"slug": ("name",)}
    inlines = [SubscriptionInline]


@admin.register(Subscription)
class SubscriptionAdmin(admin.ModelAdmin):
    """
    Admin configuration for Subscription.

    Rows are written by webhook handlers; the admin is read-only.
    """

    list_display = [
        "stripe_subscription_id",
        "organization",
        "plan",
        "status",
        "billing_cycle",
        "current_period_end",
        "cancel_at_period_end",
    ]
    list_filter = ["status", "plan", "billing_cycle", "cancel_at_period_end"]
    search_fields = ["stripe_subscription_id", "stripe_customer_id", "organization__name"]
    ordering = ["-created_at"]

    fieldsets = (
        (
            None,
            {
                "fields": ("id", "organization", "stripe_subscription_id", "stripe_customer_id"),
            },
        ),
        (
            "Plan & Status",
            {
                "fields": ("plan", "status", "billing_cycle", "stripe_price_id"),
            },
        ),
        (
            "Billing Period",
            {
                "fields": (
                    "current_period_start",
                    "current_period_end",
                    "trial_end",
                    "cancel_at_period_end",
                    "canceled_at",
                ),
            },
        ),
        (
            "Metadata",
            {
                "fields": ("metadata",),
                "classes": ("collapse",),
            },
        ),
        (
            "Timestamps",
            {
                "fields": ("created_at", "updated_at"),
            },
        ),
    )

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False
