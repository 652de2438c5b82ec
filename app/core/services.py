"""
Service layer primitives.

- ServiceResult: outcome wrapper for expected failures
- BaseService: per-class logger and transaction helper

Services hold the business logic; views translate HTTP, models hold data.
Expected failures (bad payloads, unknown records, exhausted retries) are
returned as ServiceResult.failure(); unexpected failures raise.

Usage:
    from core.services import BaseService, ServiceResult

    class SubscriptionService(BaseService):
        @classmethod
        def cancel(cls, stripe_subscription_id: str) -> ServiceResult[Subscription]:
            with cls.atomic():
                subscription = (
                    Subscription.objects.select_for_update()
                    .filter(stripe_subscription_id=stripe_subscription_id)
                    .first()
                )
                if subscription is None:
                    return ServiceResult.failure(
                        "Subscription not found", error_code="SUBSCRIPTION_NOT_FOUND"
                    )
                subscription.status = SubscriptionStatus.CANCELED
                subscription.save(update_fields=["status", "updated_at"])
            return ServiceResult.success(subscription)
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Generic, TypeVar

from django.db import transaction

if TYPE_CHECKING:
    from collections.abc import Generator
    from typing import Any

T = TypeVar("T")


@dataclass
class ServiceResult(Generic[T]):
    """
    Standard result wrapper for service operations.

    Attributes:
        success: Whether the operation succeeded
        data: Result data if successful
        error: Human-readable error message if failed
        error_code: Machine-readable error code
        errors: Field-level error details
    """

    success: bool
    data: T | None = None
    error: str | None = None
    error_code: str | None = None
    errors: dict[str, list[str]] | None = field(default=None)

    @classmethod
    def success(cls, data: T | None = None) -> ServiceResult[T]:
        return cls(success=True, data=data)

    @classmethod
    def failure(
        cls,
        error: str,
        error_code: str | None = None,
        errors: dict[str, list[str]] | None = None,
    ) -> ServiceResult[T]:
        """
        Create a failed result.

        Example:
            return ServiceResult.failure("Event not found", "EVENT_NOT_FOUND")
        """
        return cls(success=False, error=error, error_code=error_code, errors=errors)

    def to_response(self) -> dict[str, Any]:
        """Convert to a DRF-friendly response body."""
        if self.success:
            return {"success": True, "data": self.data}

        response: dict[str, Any] = {"success": False, "error": self.error}
        if self.error_code:
            response["error_code"] = self.error_code
        if self.errors:
            response["errors"] = self.errors
        return response

    def __bool__(self) -> bool:
        return self.success


class BaseService:
    """
    Base class for services.

    Simple services expose classmethods only. Services with collaborators
    (verifier, ledger, dispatcher) take them in __init__ so tests can
    substitute fakes.
    """

    @classmethod
    def get_logger(cls) -> logging.Logger:
        """Logger named after the concrete service class."""
        return logging.getLogger(f"{cls.__module__}.{cls.__name__}")

    @classmethod
    @contextmanager
    def atomic(cls) -> Generator[None, None, None]:
        """
        Run the enclosed block in a database transaction.

        Nested use creates a savepoint, so an inner failure rolls back
        only the inner block.
        """
        with transaction.atomic():
            yield

