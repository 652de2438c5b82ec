"""
Webhook ingress: the entry point for every inbound delivery.

Flow:
    1. Verify the signature and parse the envelope
    2. Record a VerificationAttempt (always); reject invalid requests with a
       SecurityEvent and 400, leaving the ledger untouched
    3. Insert into the ledger; duplicates short-circuit with 200
    4. Dispatch to the handler and record the outcome
    5. Answer 200 on success, 202 when the handler failed (the event is
       retried internally, so the provider must not redeliver)

Usage:
    from billing.webhooks.ingress import InboundWebhook, WebhookIngress

    result = WebhookIngress().receive(
        InboundWebhook(raw_body=request.body, signature_header=sig)
    )
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import TYPE_CHECKING

from core.services import BaseService

from billing.exceptions import WebhookPayloadError
from billing.state_machines import WebhookEventStatus
from billing.webhooks.audit import RequestContext, VerificationAuditLog
from billing.webhooks.events import WebhookEnvelope, resolve_organization_id
from billing.webhooks.ledger import AlreadyExists, EventLedger
from billing.webhooks.registry import WebhookDispatcher, get_dispatcher
from billing.webhooks.results import HandlerResult
from billing.webhooks.signatures import StripeSignatureVerifier

if TYPE_CHECKING:
    from uuid import UUID

INVALID_PAYLOAD = "Invalid payload"
ALREADY_PROCESSED = "Event already processed"
ALREADY_IN_PROGRESS = "Event already being processed"
ALREADY_RETRY_SCHEDULED = "Event already received; retry scheduled"
ALREADY_EXHAUSTED = "Event already received; retries exhausted"


@dataclass(frozen=True)
class InboundWebhook:
    raw_body: bytes
    signature_header: str
    ip_address: str | None = None
    user_agent: str = ""


class WebhookIngress(BaseService):
    def __init__(
        self,
        verifier: StripeSignatureVerifier | None = None,
        ledger: EventLedger | None = None,
        dispatcher: WebhookDispatcher | None = None,
    ):
        self.verifier = verifier or StripeSignatureVerifier.from_settings()
        self.ledger = ledger or EventLedger()
        self.dispatcher = dispatcher or get_dispatcher()

    def receive(self, inbound: InboundWebhook) -> HandlerResult:
        logger = self.get_logger()
        context = RequestContext(
            ip_address=inbound.ip_address,
            user_agent=inbound.user_agent or "",
            payload_size=len(inbound.raw_body),
        )

        # ------------------------------------------------------------------
        # Verify & parse
        # ------------------------------------------------------------------
        started = time.monotonic()
        verification = self.verifier.verify(inbound.raw_body, inbound.signature_header)

        envelope = None
        failure_reason = verification.error
        if verification.valid:
            try:
                envelope = WebhookEnvelope.from_json(inbound.raw_body)
            except WebhookPayloadError as e:
                logger.warning(
                    "Verified webhook has unusable payload",
                    extra={"error": e.message, "ip_address": inbound.ip_address},
                )
                failure_reason = INVALID_PAYLOAD
        elapsed_ms = int((time.monotonic() - started) * 1000)

        valid = envelope is not None
        event_id, event_type = self._identify(envelope, inbound.raw_body)

        VerificationAuditLog.record_attempt(
            valid=valid,
            context=context,
            failure_reason=failure_reason,
            stripe_event_id=event_id,
            event_type=event_type,
            processing_time_ms=elapsed_ms,
        )

        if not valid:
            VerificationAuditLog.record_rejection(
                reason=failure_reason,
                context=context,
                stripe_event_id=event_id,
                discrepancy=verification.discrepancy,
            )
            return HandlerResult.rejected(
                failure_reason, status_code=400, error_code="WEBHOOK_VERIFICATION_FAILED"
            )

        # ------------------------------------------------------------------
        # Idempotency
        # ------------------------------------------------------------------
        organization_id = self._resolve_organization(envelope)
        outcome = self.ledger.insert(envelope, organization_id)
        if isinstance(outcome, AlreadyExists):
            existing = outcome.event
            if existing.status == WebhookEventStatus.RECEIVED:
                return HandlerResult.handled(ALREADY_IN_PROGRESS)
            if existing.retries_exhausted:
                return HandlerResult.handled(ALREADY_EXHAUSTED)
            if existing.is_failed:
                return HandlerResult.handled(ALREADY_RETRY_SCHEDULED)
            return HandlerResult.handled(ALREADY_PROCESSED)

        # ------------------------------------------------------------------
        # Dispatch & record
        # ------------------------------------------------------------------
        result = self.dispatcher.dispatch(envelope)
        self.ledger.record_outcome(envelope.id, result)

        if result.success:
            return result.with_status(200)
        return result.with_status(202)

    @staticmethod
    def _identify(
        envelope: WebhookEnvelope | None, raw_body: bytes
    ) -> tuple[str | None, str | None]:
        """Event id and type for the audit row, best effort for rejected bodies."""
        if envelope is not None:
            return envelope.id, envelope.type
        try:
            rejected = WebhookEnvelope.from_json(raw_body)
        except WebhookPayloadError:
            return None, None
        return rejected.id, rejected.type

    def _resolve_organization(self, envelope: WebhookEnvelope) -> UUID | None:
        """
        Attribute the event to an organization, or None.

        Resolver errors are logged and the event is recorded unattributed.
        """
        try:
            return resolve_organization_id(envelope)
        except Exception:
            self.get_logger().exception(
                "Organization resolution failed",
                extra={"stripe_event_id": envelope.id, "event_type": envelope.type},
            )
            return None
