"""
WebhookEvent model: the event ledger.

One row per provider event id. The unique stripe_event_id constraint is the
idempotency guard for concurrent deliveries; status moves through django-fsm
transitions and rows are never deleted.

Usage:
    from billing.models import WebhookEvent
    from billing.state_machines import WebhookEventStatus

    WebhookEvent.objects.filter(status=WebhookEventStatus.FAILED).exhausted()
"""

from __future__ import annotations

from django.conf import settings
from django.db import models
from django.db.models import F, Q
from django.utils import timezone

from django_fsm import FSMField, transition

from core.model_mixins import UUIDPrimaryKeyMixin
from core.models import BaseModel

from billing.state_machines import WebhookEventStatus


def default_max_retries() -> int:
    return settings.BILLING_WEBHOOK_MAX_RETRIES


class WebhookEventQuerySet(models.QuerySet):
    def exhausted(self):
        """Failed rows with no retries left."""
        return self.filter(
            status=WebhookEventStatus.FAILED,
            retry_count__gte=F("max_retries"),
        )

    def retryable(self):
        """Failed rows that still have retries left."""
        return self.filter(
            status=WebhookEventStatus.FAILED,
            retry_count__lt=F("max_retries"),
        )


class WebhookEvent(UUIDPrimaryKeyMixin, BaseModel):
    """
    Ledger entry for a provider webhook event.

    Processing Flow:
        1. Ingress verifies the signature and inserts the row as RECEIVED
        2. Dispatcher routes the event to its handler
        3. Row becomes PROCESSED, or FAILED with retry bookkeeping
        4. Retries run from the stored payload until max_retries is reached

    Fields:
        stripe_event_id: Provider Event ID (evt_xxx), unique
        event_type: Provider event type
        organization: Resolved organization, if any
        payload: Full event JSON as received
        api_version: Provider API version that rendered the payload
        livemode: Whether the event came from live mode
        status: Processing status (FSM)
        retry_count: Failed processing attempts so far
        max_retries: Failed attempts allowed before the row is terminal
        next_retry_at: When the next automatic retry is due
        error_message: Last handler error
        processing_note: Informational note (e.g. no handler registered)
        processed_at: When processing succeeded
    """

    # ==========================================================================
    # Event Identification
    # ==========================================================================

    stripe_event_id = models.CharField(
        max_length=255,
        unique=True,
        help_text="Stripe Event ID (evt_xxx) - unique constraint for idempotency",
    )

    event_type = models.CharField(
        max_length=100,
        db_index=True,
        help_text="Stripe event type (e.g., 'invoice.paid')",
    )

    organization = models.ForeignKey(
        "organizations.Organization",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="webhook_events",
        help_text="Organization the event belongs to, if resolvable",
    )

    # ==========================================================================
    # Payload
    # ==========================================================================

    payload = models.JSONField(
        help_text="Full webhook payload from Stripe (JSON)",
    )

    api_version = models.CharField(
        max_length=50,
        null=True,
        blank=True,
        help_text="Stripe API version used to render the event",
    )

    livemode = models.BooleanField(
        default=False,
        help_text="Whether the event originated in live mode",
    )

    # ==========================================================================
    # Processing Status
    # ==========================================================================

    status = FSMField(
        default=WebhookEventStatus.RECEIVED,
        choices=WebhookEventStatus.choices,
        db_index=True,
        help_text="Current processing status (managed by FSM)",
    )

    processed_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When event was successfully processed",
    )

    processing_note = models.CharField(
        max_length=255,
        null=True,
        blank=True,
        help_text="Informational note recorded on success",
    )

    # ==========================================================================
    # Error Handling & Retries
    # ==========================================================================

    error_message = models.TextField(
        null=True,
        blank=True,
        help_text="Error message if processing failed",
    )

    retry_count = models.PositiveSmallIntegerField(
        default=0,
        help_text="Number of failed processing attempts",
    )

    max_retries = models.PositiveSmallIntegerField(
        default=default_max_retries,
        help_text="Failed attempts allowed before the event is terminal",
    )

    next_retry_at = models.DateTimeField(
        null=True,
        blank=True,
        db_index=True,
        help_text="When the next automatic retry is due",
    )

    objects = WebhookEventQuerySet.as_manager()

    # ==========================================================================
    # Meta & Methods
    # ==========================================================================

    class Meta:
        db_table = "billing_webhook_events"
        ordering = ["-created_at"]
        verbose_name = "Webhook Event"
        verbose_name_plural = "Webhook Events"
        indexes = [
            models.Index(fields=["status", "next_retry_at"], name="webhook_status_retry_idx"),
            models.Index(fields=["event_type", "created_at"], name="webhook_type_created_idx"),
            models.Index(fields=["organization", "status"], name="webhook_org_status_idx"),
        ]
        constraints = [
            models.CheckConstraint(
                condition=Q(retry_count__lte=F("max_retries")),
                name="webhook_retry_count_within_max",
            ),
        ]

    def __str__(self) -> str:
        return f"WebhookEvent({self.stripe_event_id}, {self.event_type})"

    # ==========================================================================
    # Properties
    # ==========================================================================

    @property
    def is_processed(self) -> bool:
        return self.status == WebhookEventStatus.PROCESSED

    @property
    def is_failed(self) -> bool:
        return self.status == WebhookEventStatus.FAILED

    @property
    def retries_exhausted(self) -> bool:
        """Failed with no retries left; only an operator can act on it."""
        return self.is_failed and self.retry_count >= self.max_retries

    @property
    def can_retry(self) -> bool:
        return self.is_failed and self.retry_count < self.max_retries

    # ==========================================================================
    # State Transitions (django-fsm)
    # ==========================================================================

    @transition(
        field=status,
        source=[WebhookEventStatus.RECEIVED, WebhookEventStatus.FAILED],
        target=WebhookEventStatus.PROCESSED,
    )
    def mark_processed(self, note: str | None = None):
        """
        Record successful processing.

        Transition: RECEIVED/FAILED -> PROCESSED

        Note: Does not save - caller must save after calling.
        """
        self.processed_at = timezone.now()
        self.processing_note = note
        self.error_message = None
        self.next_retry_at = None

    @transition(
        field=status,
        source=[WebhookEventStatus.RECEIVED, WebhookEventStatus.FAILED],
        target=WebhookEventStatus.FAILED,
    )
    def mark_failed(self, error_message: str):
        """
        Record a failed processing attempt.

        Transition: RECEIVED/FAILED -> FAILED

        Retry bookkeeping is done by the ledger (see billing.webhooks.ledger).
        Note: Does not save - caller must save after calling.
        """
        self.error_message = error_message

    # ==========================================================================
    # Helper Methods
    # ==========================================================================

    def get_object_id(self) -> str | None:
        """Primary object ID from payload.data.object.id, if present."""
        data_object = (self.payload or {}).get("data", {}).get("object", {})
        if isinstance(data_object, dict):
            return data_object.get("id")
        return None
