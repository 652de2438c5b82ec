"""
Verification audit log.

Every inbound webhook request produces exactly one VerificationAttempt,
valid or not. Rejected requests additionally produce a SecurityEvent.
"""

from __future__ import annotations

from dataclasses import dataclass

from core.services import BaseService

from billing.models import SecurityEvent, VerificationAttempt
from billing.state_machines import (
    SecurityEventType,
    SecuritySeverity,
    VerificationStatus,
)

BLOCKED = "blocked"


@dataclass(frozen=True)
class RequestContext:
    """Client details recorded alongside an attempt."""

    ip_address: str | None = None
    user_agent: str = ""
    payload_size: int = 0


class VerificationAuditLog(BaseService):
    """Append-only writer for verification attempts and security events."""

    @classmethod
    def record_attempt(
        cls,
        *,
        valid: bool,
        context: RequestContext,
        failure_reason: str | None = None,
        stripe_event_id: str | None = None,
        event_type: str | None = None,
        processing_time_ms: int = 0,
    ) -> VerificationAttempt:
        return VerificationAttempt.objects.create(
            stripe_event_id=stripe_event_id,
            event_type=event_type,
            status=VerificationStatus.SUCCESS if valid else VerificationStatus.FAILED,
            failure_reason=None if valid else failure_reason,
            ip_address=context.ip_address,
            user_agent=context.user_agent[:1000],
            payload_size=context.payload_size,
            processing_time_ms=max(processing_time_ms, 0),
        )

    @classmethod
    def record_rejection(
        cls,
        *,
        reason: str,
        context: RequestContext,
        stripe_event_id: str | None = None,
        discrepancy: bool = False,
    ) -> SecurityEvent:
        """
        Log a rejected webhook as a security event.

        A disagreement between the two signature checks is logged as a
        critical discrepancy rather than a plain verification failure.
        """
        if discrepancy:
            event_type = SecurityEventType.WEBHOOK_VERIFICATION_DISCREPANCY
            severity = SecuritySeverity.CRITICAL
            description = f"Webhook signature checks disagreed: {reason}"
        else:
            event_type = SecurityEventType.WEBHOOK_VERIFICATION_FAILED
            severity = SecuritySeverity.HIGH
            description = f"Webhook signature verification failed: {reason}"

        cls.get_logger().warning(
            description,
            extra={
                "stripe_event_id": stripe_event_id,
                "ip_address": context.ip_address,
                "security_event_type": event_type,
            },
        )

        return SecurityEvent.objects.create(
            event_type=event_type,
            severity=severity,
            description=description,
            details={
                "reason": reason,
                "stripe_event_id": stripe_event_id,
                "payload_size": context.payload_size,
            },
            ip_address=context.ip_address,
            user_agent=context.user_agent[:1000],
            action_taken=BLOCKED,
        )
