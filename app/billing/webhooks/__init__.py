"""
Payment provider webhook ingestion.

Modules:
    signatures: Signature verification (internal HMAC check + stripe library)
    events: Typed event envelope, event categories, organization resolution
    ledger: Idempotent event ledger over WebhookEvent
    backoff: Retry policy
    audit: Verification audit log and security events
    results: HandlerResult
    registry: Handler registry and dispatcher
    handlers: Per-event-type handlers
    retry: Retry coordinator
    ingress: Entry point for inbound webhooks
    stats: Operator queries
"""
