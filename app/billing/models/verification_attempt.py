"""
VerificationAttempt model: append-only signature verification audit log.

One row per inbound webhook request, written whether or not the
signature verified.
"""

from __future__ import annotations

from django.db import models

from core.model_mixins import UUIDPrimaryKeyMixin

from billing.exceptions import ImmutableRecordError
from billing.state_machines import VerificationStatus


class VerificationAttempt(UUIDPrimaryKeyMixin, models.Model):
    """
    Record of one signature verification.

    Immutable: rows cannot be updated or deleted through the ORM instance
    API. No updated_at, since rows never change.

    Fields:
        stripe_event_id: Event id when the body could be parsed
        event_type: Event type when the body could be parsed
        status: success or failed
        failure_reason: Why verification failed
        ip_address: Client IP (first X-Forwarded-For hop or REMOTE_ADDR)
        user_agent: Client User-Agent header
        payload_size: Raw body length in bytes
        processing_time_ms: Time spent verifying
    """

    stripe_event_id = models.CharField(
        max_length=255,
        null=True,
        blank=True,
        db_index=True,
        help_text="Stripe Event ID, when the payload could be parsed",
    )

    event_type = models.CharField(
        max_length=100,
        null=True,
        blank=True,
    )

    status = models.CharField(
        max_length=10,
        choices=VerificationStatus.choices,
        db_index=True,
    )

    failure_reason = models.CharField(
        max_length=255,
        null=True,
        blank=True,
    )

    ip_address = models.GenericIPAddressField(null=True, blank=True)

    user_agent = models.TextField(blank=True, default="")

    payload_size = models.PositiveIntegerField(
        default=0,
        help_text="Raw request body size in bytes",
    )

    processing_time_ms = models.PositiveIntegerField(
        default=0,
        help_text="Time spent on verification in milliseconds",
    )

    created_at = models.DateTimeField(auto_now_add=True, db_index=True)

    class Meta:
        db_table = "billing_verification_attempts"
        ordering = ["-created_at"]
        verbose_name = "Verification Attempt"
        verbose_name_plural = "Verification Attempts"

    def __str__(self) -> str:
        return f"VerificationAttempt({self.stripe_event_id or '-'}, {self.status})"

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise ImmutableRecordError(
                "Verification attempts cannot be modified",
                details={"id": str(self.pk)},
            )
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise ImmutableRecordError(
            "Verification attempts cannot be deleted",
            details={"id": str(self.pk)},
        )
