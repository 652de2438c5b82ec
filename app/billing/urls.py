"""
URL configuration for billing.

Routes:
    /webhooks/stripe/                        - Stripe webhook endpoint (POST)
    /webhooks/stats/                         - Ledger totals (GET, staff)
    /webhooks/events/                        - Ledger listing (GET, staff)
    /webhooks/events/{stripe_event_id}/      - Ledger row detail (GET, staff)
    /webhooks/events/{stripe_event_id}/retry/ - Manual retry (POST, staff)
    /webhooks/verification-attempts/         - Verification audit log (GET, staff)
"""

from django.urls import path

from billing.views import (
    VerificationAttemptListView,
    WebhookEventDetailView,
    WebhookEventListView,
    WebhookEventRetryView,
    WebhookStatsView,
)
from billing.webhooks.views import stripe_webhook

app_name = "billing"
urlpatterns = [
    path("webhooks/stripe/", stripe_webhook, name="stripe-webhook"),
    path("webhooks/stats/", WebhookStatsView.as_view(), name="webhook-stats"),
    path("webhooks/events/", WebhookEventListView.as_view(), name="webhook-event-list"),
    path(
        "webhooks/events/<str:stripe_event_id>/",
        WebhookEventDetailView.as_view(),
        name="webhook-event-detail",
    ),
    path(
        "webhooks/events/<str:stripe_event_id>/retry/",
        WebhookEventRetryView.as_view(),
        name="webhook-event-retry",
    ),
    path(
        "webhooks/verification-attempts/",
        VerificationAttemptListView.as_view(),
        name="verification-attempt-list",
    ),
]
