"""
Application exception hierarchy.

Exception Hierarchy:
    BaseApplicationError (base)
    ├── ValidationError - Input validation failures
    ├── NotFoundError - Resource not found
    └── ConflictError - State conflicts (duplicates, concurrent modifications)

Domain apps subclass these (see billing.exceptions). Services return
ServiceResult for expected failures and raise these only where the caller
cannot reasonably continue.

Usage:
    from core.exceptions import ValidationError

    raise ValidationError("Missing event id", error_code="INVALID_WEBHOOK_PAYLOAD")
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from typing import Any


class BaseApplicationError(Exception):
    """
    Base exception for all application-specific errors.

    Attributes:
        message: Human-readable error description
        error_code: Machine-readable code for client-side handling
        details: Additional error context
    """

    default_error_code: str = "APPLICATION_ERROR"

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        self.message = message
        self.error_code = error_code or self.default_error_code
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        """Convert to a dictionary for API responses."""
        result: dict[str, Any] = {
            "error": self.message,
            "error_code": self.error_code,
        }
        if self.details:
            result["details"] = self.details
        return result

    def __str__(self) -> str:
        return self.message

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, "
            f"error_code={self.error_code!r})"
        )


class ValidationError(BaseApplicationError):
    """Input failed validation."""

    default_error_code = "VALIDATION_ERROR"


class NotFoundError(BaseApplicationError):
    """Requested resource does not exist."""

    default_error_code = "NOT_FOUND"


class ConflictError(BaseApplicationError):
    """Operation conflicts with current state (duplicate key, concurrent write)."""

    default_error_code = "CONFLICT"
