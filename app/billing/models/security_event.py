"""
SecurityEvent model: append-only log of security-relevant webhook activity.

Written when a webhook fails verification or when the two signature
checks disagree. Read by the security dashboard and the admin.
"""

from __future__ import annotations

from django.db import models

from core.model_mixins import UUIDPrimaryKeyMixin

from billing.exceptions import ImmutableRecordError
from billing.state_machines import SecurityEventType, SecuritySeverity


class SecurityEvent(UUIDPrimaryKeyMixin, models.Model):
    event_type = models.CharField(
        max_length=50,
        choices=SecurityEventType.choices,
        db_index=True,
    )

    severity = models.CharField(
        max_length=10,
        choices=SecuritySeverity.choices,
        default=SecuritySeverity.HIGH,
    )

    description = models.TextField()

    details = models.JSONField(default=dict, blank=True)

    ip_address = models.GenericIPAddressField(null=True, blank=True)

    user_agent = models.TextField(blank=True, default="")

    action_taken = models.CharField(
        max_length=50,
        help_text="What the system did in response (e.g. 'blocked')",
    )

    created_at = models.DateTimeField(auto_now_add=True, db_index=True)

    class Meta:
        db_table = "billing_security_events"
        ordering = ["-created_at"]
        verbose_name = "Security Event"
        verbose_name_plural = "Security Events"

    def __str__(self) -> str:
        return f"SecurityEvent({self.event_type}, {self.severity})"

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise ImmutableRecordError("Security events cannot be modified")
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise ImmutableRecordError("Security events cannot be deleted")
