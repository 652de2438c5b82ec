"""
Webhook handlers, one class per provider object family.
"""

from billing.webhooks.handlers.base import AcknowledgeHandler, WebhookHandler
from billing.webhooks.handlers.customers import CustomerHandler, PaymentMethodHandler
from billing.webhooks.handlers.invoices import InvoiceHandler
from billing.webhooks.handlers.payments import PaymentIntentHandler
from billing.webhooks.handlers.subscriptions import SubscriptionHandler

__all__ = [
    "AcknowledgeHandler",
    "CustomerHandler",
    "InvoiceHandler",
    "PaymentIntentHandler",
    "PaymentMethodHandler",
    "SubscriptionHandler",
    "WebhookHandler",
]
