"""
Retry policy for failed webhook events.

delay(k) = min(base * 2 ** k, max_delay), where k is the retry count after
the failure being scheduled. With the defaults (60s base, 1h cap) the
delays are 2, 4 and 8 minutes.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta

from django.conf import settings
from django.utils import timezone


@dataclass(frozen=True)
class RetryPolicy:
    base_seconds: int = 60
    max_delay_seconds: int = 3600
    max_retries: int = 3

    @classmethod
    def from_settings(cls) -> RetryPolicy:
        return cls(
            base_seconds=settings.BILLING_WEBHOOK_RETRY_BASE_SECONDS,
            max_delay_seconds=settings.BILLING_WEBHOOK_RETRY_MAX_DELAY_SECONDS,
            max_retries=settings.BILLING_WEBHOOK_MAX_RETRIES,
        )

    def delay_for(self, retry_count: int) -> timedelta:
        """Backoff before the next attempt, given the current retry count."""
        seconds = min(self.base_seconds * 2 ** max(retry_count, 0), self.max_delay_seconds)
        return timedelta(seconds=seconds)

    def next_retry_at(self, retry_count: int, now: datetime | None = None) -> datetime:
        return (now or timezone.now()) + self.delay_for(retry_count)
