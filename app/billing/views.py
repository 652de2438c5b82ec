"""
Operator API for the webhook ledger.

Endpoints (staff only):
    GET  /api/v1/billing/webhooks/stats/ - Ledger and verification totals
    GET  /api/v1/billing/webhooks/events/ - List ledger rows (paginated, filtered)
    GET  /api/v1/billing/webhooks/events/{stripe_event_id}/ - Ledger row detail
    POST /api/v1/billing/webhooks/events/{stripe_event_id}/retry/ - Manual retry
    GET  /api/v1/billing/webhooks/verification-attempts/ - Verification audit log

The provider-facing endpoint lives in billing.webhooks.views.
"""

from __future__ import annotations

import logging
import uuid

from rest_framework import generics
from rest_framework.exceptions import ValidationError
from rest_framework.permissions import IsAdminUser
from rest_framework.response import Response
from rest_framework.views import APIView

from drf_spectacular.utils import (
    OpenApiParameter,
    OpenApiResponse,
    extend_schema,
    extend_schema_view,
)

from billing.models import VerificationAttempt, WebhookEvent
from billing.serializers import (
    RetryResultSerializer,
    VerificationAttemptSerializer,
    WebhookEventDetailSerializer,
    WebhookEventListSerializer,
    WebhookStatsSerializer,
)
from billing.state_machines import VerificationStatus, WebhookEventStatus
from billing.webhooks.retry import RetryCoordinator
from billing.webhooks.stats import webhook_stats

logger = logging.getLogger(__name__)

ORGANIZATION_ID_PARAMETER = OpenApiParameter(
    name="organization_id",
    type=str,
    location=OpenApiParameter.QUERY,
    description="Restrict to one organization (UUID)",
    required=False,
)


def _validated_uuid(value: str) -> str:
    """Raise a 400 for malformed organization ids instead of a database error."""
    try:
        return str(uuid.UUID(value))
    except ValueError:
        raise ValidationError({"organization_id": ["Must be a valid UUID."]})


class WebhookStatsView(APIView):
    """Counts by status and type, plus verification totals."""

    permission_classes = [IsAdminUser]

    @extend_schema(
        operation_id="get_webhook_stats",
        summary="Webhook statistics",
        description=(
            "Ledger totals by status and event type. Verification totals are "
            "global even when filtering by organization."
        ),
        parameters=[ORGANIZATION_ID_PARAMETER],
        responses={200: WebhookStatsSerializer},
        tags=["Billing - Webhooks"],
    )
    def get(self, request):
        organization_id = request.query_params.get("organization_id")
        if organization_id:
            organization_id = _validated_uuid(organization_id)

        serializer = WebhookStatsSerializer(webhook_stats(organization_id or None))
        return Response(serializer.data)


@extend_schema_view(
    get=extend_schema(
        operation_id="list_webhook_events",
        summary="List webhook events",
        description="Paginated ledger listing, newest first.",
        parameters=[
            OpenApiParameter(
                name="status",
                type=str,
                location=OpenApiParameter.QUERY,
                description="received, processed or failed",
                required=False,
                enum=WebhookEventStatus.values,
            ),
            OpenApiParameter(
                name="event_type",
                type=str,
                location=OpenApiParameter.QUERY,
                description="Exact event type (e.g. invoice.paid)",
                required=False,
            ),
            OpenApiParameter(
                name="exhausted",
                type=bool,
                location=OpenApiParameter.QUERY,
                description="Only failed rows with no retries left",
                required=False,
            ),
            ORGANIZATION_ID_PARAMETER,
        ],
        tags=["Billing - Webhooks"],
    ),
)
class WebhookEventListView(generics.ListAPIView):
    permission_classes = [IsAdminUser]
    serializer_class = WebhookEventListSerializer

    def get_queryset(self):
        queryset = WebhookEvent.objects.all()

        event_status = self.request.query_params.get("status")
        if event_status:
            queryset = queryset.filter(status=event_status)

        event_type = self.request.query_params.get("event_type")
        if event_type:
            queryset = queryset.filter(event_type=event_type)

        organization_id = self.request.query_params.get("organization_id")
        if organization_id:
            queryset = queryset.filter(organization_id=_validated_uuid(organization_id))

        exhausted = self.request.query_params.get("exhausted")
        if exhausted is not None and exhausted.lower() == "true":
            queryset = queryset.exhausted()

        return queryset.order_by("-created_at")


@extend_schema_view(
    get=extend_schema(
        operation_id="get_webhook_event",
        summary="Get webhook event",
        description="Ledger row including the stored payload.",
        tags=["Billing - Webhooks"],
    ),
)
class WebhookEventDetailView(generics.RetrieveAPIView):
    permission_classes = [IsAdminUser]
    serializer_class = WebhookEventDetailSerializer
    queryset = WebhookEvent.objects.all()
    lookup_field = "stripe_event_id"


class WebhookEventRetryView(APIView):
    """
    Re-run a failed event from its stored payload.

    Answers with the status code of the retry outcome: 200 on success or
    when already processed, 400 when retries are exhausted, 404 for an
    unknown id, 409 while the event is still in flight and 500 when the
    handler failed again.
    """

    permission_classes = [IsAdminUser]

    @extend_schema(
        operation_id="retry_webhook_event",
        summary="Retry webhook event",
        request=None,
        responses={
            200: RetryResultSerializer,
            400: OpenApiResponse(
                response=RetryResultSerializer,
                description="Maximum retry attempts exceeded",
            ),
            404: OpenApiResponse(
                response=RetryResultSerializer, description="Event not found"
            ),
            409: OpenApiResponse(
                response=RetryResultSerializer,
                description="Event is currently being processed",
            ),
            500: OpenApiResponse(
                response=RetryResultSerializer, description="Retry failed"
            ),
        },
        tags=["Billing - Webhooks"],
    )
    def post(self, request, stripe_event_id: str):
        logger.info(
            "Manual webhook retry requested",
            extra={"stripe_event_id": stripe_event_id, "user_id": request.user.pk},
        )
        result = RetryCoordinator().retry(stripe_event_id)
        return Response(result.to_response(), status=result.status_code)


@extend_schema_view(
    get=extend_schema(
        operation_id="list_verification_attempts",
        summary="List verification attempts",
        description="Signature verification audit log, newest first.",
        parameters=[
            OpenApiParameter(
                name="status",
                type=str,
                location=OpenApiParameter.QUERY,
                description="success or failed",
                required=False,
                enum=VerificationStatus.values,
            ),
        ],
        tags=["Billing - Webhooks"],
    ),
)
class VerificationAttemptListView(generics.ListAPIView):
    permission_classes = [IsAdminUser]
    serializer_class = VerificationAttemptSerializer

    def get_queryset(self):
        queryset = VerificationAttempt.objects.all()

        attempt_status = self.request.query_params.get("status")
        if attempt_status:
            queryset = queryset.filter(status=attempt_status)

        return queryset.order_by("-created_at")
