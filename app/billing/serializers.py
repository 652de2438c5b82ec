"""
Serializers for the billing operator API.

Serializers:
    WebhookEventListSerializer: Ledger row summary for listings
    WebhookEventDetailSerializer: Ledger row including the stored payload
    VerificationAttemptSerializer: Verification audit row
    WebhookStatsSerializer: Ledger and verification totals
    RetryResultSerializer: Outcome of a manual retry

Usage:
    from billing.serializers import WebhookEventDetailSerializer

    serializer = WebhookEventDetailSerializer(event)
    data = serializer.data
"""

from __future__ import annotations

from rest_framework import serializers

from billing.models import VerificationAttempt, WebhookEvent


class WebhookEventListSerializer(serializers.ModelSerializer):
    """
    Ledger row without the payload.

    retries_exhausted tells operators which failed rows will not be
    retried automatically anymore.
    """

    organization_id = serializers.UUIDField(read_only=True, allow_null=True)
    retries_exhausted = serializers.BooleanField(read_only=True)

    class Meta:
        model = WebhookEvent
        fields = [
            "id",
            "stripe_event_id",
            "event_type",
            "organization_id",
            "status",
            "retry_count",
            "max_retries",
            "next_retry_at",
            "retries_exhausted",
            "error_message",
            "processing_note",
            "livemode",
            "processed_at",
            "created_at",
        ]
        read_only_fields = fields


class WebhookEventDetailSerializer(WebhookEventListSerializer):
    object_id = serializers.SerializerMethodField()

    class Meta(WebhookEventListSerializer.Meta):
        fields = WebhookEventListSerializer.Meta.fields + [
            "object_id",
            "api_version",
            "payload",
            "updated_at",
        ]
        read_only_fields = fields

    def get_object_id(self, obj: WebhookEvent) -> str | None:
        return obj.get_object_id()


class VerificationAttemptSerializer(serializers.ModelSerializer):
    class Meta:
        model = VerificationAttempt
        fields = [
            "id",
            "stripe_event_id",
            "event_type",
            "status",
            "failure_reason",
            "ip_address",
            "user_agent",
            "payload_size",
            "processing_time_ms",
            "created_at",
        ]
        read_only_fields = fields


class VerificationTotalsSerializer(serializers.Serializer):
    total = serializers.IntegerField()
    success = serializers.IntegerField()
    failed = serializers.IntegerField()


class WebhookStatsSerializer(serializers.Serializer):
    """
    Response for the stats endpoint.

    Fields:
        total/received/processed/failed: Ledger counts by status
        exhausted: Failed rows with no retries left
        by_type: Count per event type
        verification: Global verification attempt totals
    """

    total = serializers.IntegerField()
    received = serializers.IntegerField()
    processed = serializers.IntegerField()
    failed = serializers.IntegerField()
    exhausted = serializers.IntegerField()
    by_type = serializers.DictField(child=serializers.IntegerField())
    verification = VerificationTotalsSerializer()


class RetryResultSerializer(serializers.Serializer):
    success = serializers.BooleanField()
    message = serializers.CharField(required=False)
    error = serializers.CharField(required=False)
    error_code = serializers.CharField(required=False, allow_null=True)
