"""
State definitions for billing models.

WebhookEventStatus is driven by django-fsm transitions on WebhookEvent;
the other enums mirror provider values or classify audit rows.
"""

from django.db import models


class WebhookEventStatus(models.TextChoices):
    """
    Processing status for WebhookEvent.

    State Flow:
        RECEIVED → PROCESSED
        RECEIVED → FAILED → (retry) → PROCESSED
        FAILED → (retry) → FAILED, until retries are exhausted

    A FAILED row with retry_count >= max_retries is terminal.
    """

    RECEIVED = "received", "Received"
    PROCESSED = "processed", "Processed"
    FAILED = "failed", "Failed"


class VerificationStatus(models.TextChoices):
    SUCCESS = "success", "Success"
    FAILED = "failed", "Failed"


class SecurityEventType(models.TextChoices):
    WEBHOOK_VERIFICATION_FAILED = (
        "webhook_verification_failed",
        "Webhook Verification Failed",
    )
    WEBHOOK_VERIFICATION_DISCREPANCY = (
        "webhook_verification_discrepancy",
        "Webhook Verification Discrepancy",
    )


class SecuritySeverity(models.TextChoices):
    LOW = "low", "Low"
    MEDIUM = "medium", "Medium"
    HIGH = "high", "High"
    CRITICAL = "critical", "Critical"


class PaymentIntentStatus(models.TextChoices):
    """Provider PaymentIntent statuses."""

    REQUIRES_PAYMENT_METHOD = "requires_payment_method", "Requires Payment Method"
    REQUIRES_CONFIRMATION = "requires_confirmation", "Requires Confirmation"
    REQUIRES_ACTION = "requires_action", "Requires Action"
    PROCESSING = "processing", "Processing"
    REQUIRES_CAPTURE = "requires_capture", "Requires Capture"
    CANCELED = "canceled", "Canceled"
    SUCCEEDED = "succeeded", "Succeeded"


class InvoiceStatus(models.TextChoices):
    """Provider invoice statuses."""

    DRAFT = "draft", "Draft"
    OPEN = "open", "Open"
    PAID = "paid", "Paid"
    UNCOLLECTIBLE = "uncollectible", "Uncollectible"
    VOID = "void", "Void"
