"""
Billing admin configuration.

Ledger and audit rows are read-only here: the ledger is written by the
ingress and retry coordinator, the audit log is append-only. The one
write path is the "retry selected events" action, which goes through the
retry coordinator like the operator API does.
"""

from django.contrib import admin, messages

from billing.models import (
    Invoice,
    PaymentIntent,
    PaymentMethod,
    SecurityEvent,
    StripeCustomer,
    VerificationAttempt,
    WebhookEvent,
)
from billing.state_machines import WebhookEventStatus
from billing.webhooks.retry import RetryCoordinator

__all__ = [
    "InvoiceAdmin",
    "PaymentIntentAdmin",
    "PaymentMethodAdmin",
    "SecurityEventAdmin",
    "StripeCustomerAdmin",
    "VerificationAttemptAdmin",
    "WebhookEventAdmin",
]


class ReadOnlyAdminMixin:
    """Disable add, change and delete in the admin."""

    def has_add_permission(self, request, obj=None) -> bool:
        return False

    def has_change_permission(self, request, obj=None) -> bool:
        return False

    def has_delete_permission(self, request, obj=None) -> bool:
        return False


# =============================================================================
# Event Ledger
# =============================================================================


@admin.register(WebhookEvent)
class WebhookEventAdmin(ReadOnlyAdminMixin, admin.ModelAdmin):
    """
    Admin configuration for WebhookEvent.

    Provides visibility into webhook processing status and retry state.
    """

    list_display = [
        "stripe_event_id",
        "event_type",
        "status",
        "retry_count",
        "max_retries",
        "next_retry_at",
        "organization",
        "created_at",
    ]
    list_filter = ["status", "event_type", "livemode", "created_at"]
    search_fields = ["id", "stripe_event_id", "event_type", "organization__name"]
    date_hierarchy = "created_at"
    ordering = ["-created_at"]
    actions = ["retry_selected"]

    fieldsets = (
        (
            None,
            {
                "fields": (
                    "id",
                    "stripe_event_id",
                    "event_type",
                    "organization",
                    "status",
                ),
            },
        ),
        (
            "Processing",
            {
                "fields": ("processed_at", "processing_note"),
            },
        ),
        (
            "Retries",
            {
                "fields": ("retry_count", "max_retries", "next_retry_at"),
            },
        ),
        (
            "Error Info",
            {
                "fields": ("error_message",),
                "classes": ("collapse",),
            },
        ),
        (
            "Payload",
            {
                "fields": ("api_version", "livemode", "payload"),
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

    @admin.action(description="Retry selected failed events")
    def retry_selected(self, request, queryset):
        """Run each selected failed event through the retry coordinator."""
        coordinator = RetryCoordinator()
        succeeded = failed = skipped = 0

        event_ids = queryset.filter(status=WebhookEventStatus.FAILED).values_list(
            "stripe_event_id", flat=True
        )
        for stripe_event_id in event_ids:
            result = coordinator.retry(stripe_event_id)
            if result.success:
                succeeded += 1
            elif result.status_code == 400:
                skipped += 1
            else:
                failed += 1

        level = messages.WARNING if failed else messages.SUCCESS
        self.message_user(
            request,
            f"Retried events: {succeeded} succeeded, {failed} failed, "
            f"{skipped} skipped (retries exhausted).",
            level=level,
        )


# =============================================================================
# Audit Logs
# =============================================================================


@admin.register(VerificationAttempt)
class VerificationAttemptAdmin(ReadOnlyAdminMixin, admin.ModelAdmin):
    list_display = [
        "created_at",
        "status",
        "stripe_event_id",
        "event_type",
        "failure_reason",
        "ip_address",
        "processing_time_ms",
    ]
    list_filter = ["status", "created_at"]
    search_fields = ["stripe_event_id", "ip_address", "failure_reason"]
    date_hierarchy = "created_at"
    ordering = ["-created_at"]


@admin.register(SecurityEvent)
class SecurityEventAdmin(ReadOnlyAdminMixin, admin.ModelAdmin):
    list_display = [
        "created_at",
        "event_type",
        "severity",
        "ip_address",
        "action_taken",
    ]
    list_filter = ["event_type", "severity", "created_at"]
    search_fields = ["description", "ip_address"]
    date_hierarchy = "created_at"
    ordering = ["-created_at"]


# =============================================================================
# Provider Mirrors
# =============================================================================


@admin.register(StripeCustomer)
class StripeCustomerAdmin(ReadOnlyAdminMixin, admin.ModelAdmin):
    list_display = ["stripe_customer_id", "organization", "email", "name", "created_at"]
    search_fields = ["stripe_customer_id", "email", "name", "organization__name"]
    ordering = ["-created_at"]


@admin.register(PaymentMethod)
class PaymentMethodAdmin(ReadOnlyAdminMixin, admin.ModelAdmin):
    list_display = [
        "stripe_payment_method_id",
        "organization",
        "type",
        "card_brand",
        "card_last4",
        "created_at",
    ]
    list_filter = ["type", "card_brand"]
    search_fields = ["stripe_payment_method_id", "stripe_customer_id"]
    ordering = ["-created_at"]


@admin.register(PaymentIntent)
class PaymentIntentAdmin(ReadOnlyAdminMixin, admin.ModelAdmin):
    list_display = [
        "stripe_payment_intent_id",
        "organization",
        "amount_display",
        "status",
        "failure_code",
        "created_at",
    ]
    list_filter = ["status", "currency", "created_at"]
    search_fields = ["stripe_payment_intent_id", "stripe_customer_id"]
    ordering = ["-created_at"]

    def amount_display(self, obj: PaymentIntent) -> str:
        """Display the amount formatted as currency."""
        return f"{obj.amount_cents / 100:.2f} {obj.currency.upper()}"

    amount_display.short_description = "Amount"


@admin.register(Invoice)
class InvoiceAdmin(ReadOnlyAdminMixin, admin.ModelAdmin):
    list_display = [
        "stripe_invoice_id",
        "number",
        "organization",
        "status",
        "amount_display",
        "paid_at",
        "created_at",
    ]
    list_filter = ["status", "currency", "created_at"]
    search_fields = [
        "stripe_invoice_id",
        "number",
        "stripe_customer_id",
        "stripe_subscription_id",
    ]
    ordering = ["-created_at"]

    def amount_display(self, obj: Invoice) -> str:
        """Display the amount due formatted as currency."""
        return f"{obj.amount_due_cents / 100:.2f} {obj.currency.upper()}"

    amount_display.short_description = "Amount Due"
