"""
State enums for billing models.
"""

from billing.state_machines.states import (
    InvoiceStatus,
    PaymentIntentStatus,
    SecurityEventType,
    SecuritySeverity,
    VerificationStatus,
    WebhookEventStatus,
)

__all__ = [
    "InvoiceStatus",
    "PaymentIntentStatus",
    "SecurityEventType",
    "SecuritySeverity",
    "VerificationStatus",
    "WebhookEventStatus",
]
