"""
Billing domain models.

- WebhookEvent: Event ledger for idempotent webhook processing
- VerificationAttempt: Append-only signature verification audit log
- SecurityEvent: Append-only security event log
- StripeCustomer, PaymentMethod, PaymentIntent, Invoice: Provider mirrors
"""

from billing.models.customer import PaymentMethod, StripeCustomer
from billing.models.invoice import Invoice
from billing.models.payment_intent import PaymentIntent
from billing.models.security_event import SecurityEvent
from billing.models.verification_attempt import VerificationAttempt
from billing.models.webhook_event import WebhookEvent

__all__ = [
    "Invoice",
    "PaymentIntent",
    "PaymentMethod",
    "SecurityEvent",
    "StripeCustomer",
    "VerificationAttempt",
    "WebhookEvent",
]
