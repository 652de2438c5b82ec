"""
Webhook signature verification.

The provider signs each delivery with HMAC-SHA256 over "<timestamp>.<body>"
and sends the result in the Stripe-Signature header:

    t=1700000000,v1=5257a869e7ecebeda32affa62cdca3fa51cad7e77a0e56ff536d0ce8e108d8bd

Two independent checks run on every request: verify_signature() below and
the stripe library's WebhookSignature.verify_header(). Both must accept the
request. A disagreement between them is reported as a discrepancy so it
can be logged as a security event.

Usage:
    from billing.webhooks.signatures import StripeSignatureVerifier

    verifier = StripeSignatureVerifier.from_settings()
    result = verifier.verify(request.body, request.headers.get("Stripe-Signature", ""))
    if not result.valid:
        return HttpResponseBadRequest(result.error)
"""

from __future__ import annotations

import hashlib
import hmac
import logging
import time
from dataclasses import dataclass

import stripe
from django.conf import settings

logger = logging.getLogger(__name__)

DEFAULT_TOLERANCE_SECONDS = 300
SIGNATURE_SCHEME = "v1"

MISSING_SIGNATURE = "Missing signature or endpoint secret"
INVALID_FORMAT = "Invalid signature format"
TIMESTAMP_OUT_OF_TOLERANCE = "Timestamp outside of tolerance"
SIGNATURE_MISMATCH = "Signature mismatch"


@dataclass(frozen=True)
class VerificationResult:
    """
    Outcome of signature verification.

    Attributes:
        valid: Whether the request is authentic
        error: Reason for rejection, None when valid
        timestamp: Signed timestamp from the header, when parseable
        discrepancy: True when the two checks disagreed
    """

    valid: bool
    error: str | None = None
    timestamp: int | None = None
    discrepancy: bool = False


def parse_signature_header(signature_header: str) -> tuple[int | None, list[str]]:
    """
    Split a signature header into its timestamp and v1 signatures.

    Unknown schemes (e.g. v0) are ignored. Returns (None, []) pieces for
    anything that cannot be parsed.
    """
    timestamp = None
    signatures = []
    for element in signature_header.split(","):
        key, sep, value = element.strip().partition("=")
        if not sep:
            continue
        if key == "t":
            try:
                timestamp = int(value)
            except ValueError:
                return None, signatures
        elif key == SIGNATURE_SCHEME and value:
            signatures.append(value)
    return timestamp, signatures


def compute_signature(raw_body: bytes, secret: str, timestamp: int) -> str:
    """Hex HMAC-SHA256 of "<timestamp>.<body>" keyed by the endpoint secret."""
    signed_payload = f"{timestamp}.".encode() + raw_body
    return hmac.new(secret.encode(), signed_payload, hashlib.sha256).hexdigest()


def verify_signature(
    raw_body: bytes,
    signature_header: str,
    secret: str,
    tolerance: int = DEFAULT_TOLERANCE_SECONDS,
    now: float | None = None,
) -> VerificationResult:
    """
    Verify a webhook signature header against the raw request body.

    Pure function: the result depends only on the arguments.

    Args:
        raw_body: Request body bytes exactly as received
        signature_header: Stripe-Signature header value
        secret: Endpoint signing secret (whsec_...)
        tolerance: Maximum clock skew in seconds, in either direction
        now: Current unix time (defaults to time.time())

    Returns:
        VerificationResult with one of the module-level error strings on
        failure
    """
    if not signature_header or not secret:
        return VerificationResult(valid=False, error=MISSING_SIGNATURE)

    timestamp, signatures = parse_signature_header(signature_header)
    if timestamp is None or not signatures:
        return VerificationResult(valid=False, error=INVALID_FORMAT)

    current = time.time() if now is None else now
    if abs(current - timestamp) > tolerance:
        return VerificationResult(
            valid=False, error=TIMESTAMP_OUT_OF_TOLERANCE, timestamp=timestamp
        )

    expected = compute_signature(raw_body, secret, timestamp)
    if not any(hmac.compare_digest(expected, candidate) for candidate in signatures):
        return VerificationResult(
            valid=False, error=SIGNATURE_MISMATCH, timestamp=timestamp
        )

    return VerificationResult(valid=True, timestamp=timestamp)


class StripeSignatureVerifier:
    """
    Runs the internal check and the stripe library check together.

    The library check is skipped when the header or secret is missing or
    malformed, since the internal result is then conclusive.
    """

    def __init__(self, secret: str, tolerance: int = DEFAULT_TOLERANCE_SECONDS):
        self.secret = secret
        self.tolerance = tolerance

    @classmethod
    def from_settings(cls) -> StripeSignatureVerifier:
        return cls(
            secret=settings.STRIPE_WEBHOOK_SECRET,
            tolerance=settings.STRIPE_WEBHOOK_TOLERANCE_SECONDS,
        )

    def verify(self, raw_body: bytes, signature_header: str) -> VerificationResult:
        internal = verify_signature(
            raw_body, signature_header, self.secret, tolerance=self.tolerance
        )
        if internal.error in (MISSING_SIGNATURE, INVALID_FORMAT):
            return internal

        library_error = self._library_check(raw_body, signature_header)
        library_valid = library_error is None

        if internal.valid and library_valid:
            return internal

        discrepancy = internal.valid != library_valid
        if discrepancy:
            logger.warning(
                "Signature checks disagree",
                extra={
                    "internal_valid": internal.valid,
                    "internal_error": internal.error,
                    "library_error": library_error,
                },
            )

        return VerificationResult(
            valid=False,
            error=internal.error or f"Signature rejected: {library_error}",
            timestamp=internal.timestamp,
            discrepancy=discrepancy,
        )

    def _library_check(self, raw_body: bytes, signature_header: str) -> str | None:
        """Return the stripe library's rejection message, or None if accepted."""
        try:
            stripe.WebhookSignature.verify_header(
                raw_body.decode("utf-8"),
                signature_header,
                self.secret,
                self.tolerance,
            )
        except UnicodeDecodeError:
            return "Payload is not valid UTF-8"
        except stripe.SignatureVerificationError as e:
            return str(e.user_message or e)
        return None
