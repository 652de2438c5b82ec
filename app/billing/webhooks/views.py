"""
Stripe webhook endpoint.

Plain Django view rather than DRF: the signature covers the raw body, so
the request must not be parsed or authenticated by the API stack first.

Usage:
    # In billing/urls.py
    from billing.webhooks.views import stripe_webhook

    urlpatterns = [
        path("webhooks/stripe/", stripe_webhook, name="stripe-webhook"),
    ]
"""

from __future__ import annotations

import logging

from django.http import HttpRequest, JsonResponse
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_POST

from core.helpers import get_client_ip

from billing.webhooks.ingress import InboundWebhook, WebhookIngress

logger = logging.getLogger(__name__)


@csrf_exempt
@require_POST
def stripe_webhook(request: HttpRequest) -> JsonResponse:
    """
    Receive a Stripe webhook delivery.

    Returns:
        JsonResponse with status:
        - 200: Processed, or duplicate delivery acknowledged
        - 202: Accepted; handler failed and an internal retry is scheduled
        - 400: Signature or payload rejected

    Example Stripe-Signature header:
        t=1614556800,v1=xxx,v0=yyy
    """
    inbound = InboundWebhook(
        raw_body=request.body,
        signature_header=request.headers.get("Stripe-Signature", ""),
        ip_address=get_client_ip(request),
        user_agent=request.headers.get("User-Agent", ""),
    )

    result = WebhookIngress().receive(inbound)

    logger.info(
        "Stripe webhook answered",
        extra={"status_code": result.status_code, "detail": result.message},
    )
    return JsonResponse(result.to_response(), status=result.status_code)
