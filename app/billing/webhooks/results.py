"""
Handler result type.

HandlerResult is a ServiceResult that also carries the HTTP status the
ingress or operator API should answer with.

Usage:
    from billing.webhooks.results import HandlerResult

    return HandlerResult.handled("Invoice in_123 paid")
    return HandlerResult.failed("Subscription sub_123 not found")
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from core.services import ServiceResult


@dataclass
class HandlerResult(ServiceResult[str]):
    """
    Outcome of processing (or refusing to process) a webhook event.

    Attributes:
        status_code: HTTP status for the transport layer
        note: Informational note stored on the ledger row (success only)

    Success results carry their message in data; failures in error.
    """

    status_code: int = 200
    note: str | None = None

    @classmethod
    def handled(
        cls, message: str, note: str | None = None, status_code: int = 200
    ) -> HandlerResult:
        return cls(success=True, data=message, note=note, status_code=status_code)

    @classmethod
    def failed(
        cls,
        error: str,
        error_code: str | None = "HANDLER_FAILED",
        status_code: int = 500,
    ) -> HandlerResult:
        """Processing failed; the event is eligible for retry."""
        return cls(
            success=False, error=error, error_code=error_code, status_code=status_code
        )

    @classmethod
    def rejected(
        cls, error: str, status_code: int, error_code: str | None = None
    ) -> HandlerResult:
        """Request refused before processing (bad signature, not found, in flight)."""
        return cls(
            success=False, error=error, error_code=error_code, status_code=status_code
        )

    @property
    def message(self) -> str:
        return (self.data if self.success else self.error) or ""

    def with_status(self, status_code: int) -> HandlerResult:
        return HandlerResult(
            success=self.success,
            data=self.data,
            error=self.error,
            error_code=self.error_code,
            errors=self.errors,
            status_code=status_code,
            note=self.note,
        )

    def to_response(self) -> dict[str, Any]:
        response = super().to_response()
        if self.success:
            response["message"] = response.pop("data")
        return response
