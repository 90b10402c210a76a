"""
Retry policy for failed news processing.

Bounded attempts with exponential backoff and jitter, so a persistently
failing downstream dependency (e.g. an AI provider outage) is not hammered
every retry cycle forever.
"""
import random
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

# Exponential backoff settings
BASE_DELAY_MINUTES = 5  # First retry after 5 minutes
MAX_DELAY_MINUTES = 60 * 24  # Max 24 hours between retries
BACKOFF_MULTIPLIER = 2  # Double the delay each retry
JITTER_FACTOR = 0.25  # ±25% random jitter to prevent thundering herd
MAX_ATTEMPTS = 5


@dataclass(frozen=True)
class RetryPolicy:
    """
    Attributes:
        max_attempts: Processing attempts (first run included) before a
            FAILED record is left for manual intervention
        base_delay_minutes: Delay after the first failure
        max_delay_minutes: Upper bound on any delay
        multiplier: Growth factor per additional failure
        jitter_factor: Relative randomization applied to each delay
    """
    max_attempts: int = MAX_ATTEMPTS
    base_delay_minutes: float = BASE_DELAY_MINUTES
    max_delay_minutes: float = MAX_DELAY_MINUTES
    multiplier: float = BACKOFF_MULTIPLIER
    jitter_factor: float = JITTER_FACTOR

    @classmethod
    def from_settings(cls, settings) -> "RetryPolicy":
        return cls(
            max_attempts=settings.news_max_attempts,
            base_delay_minutes=settings.news_retry_base_minutes,
            max_delay_minutes=settings.news_retry_max_minutes,
            multiplier=settings.news_retry_multiplier,
        )

    def can_retry(self, attempts: int) -> bool:
        return attempts < self.max_attempts

    def calculate_delay(self, attempts: int) -> timedelta:
        """
        Delay before the next retry after `attempts` failed attempts.

        Adds ±jitter_factor random jitter so records that failed together
        do not retry together.
        """
        exponent = max(attempts - 1, 0)
        delay_minutes = min(
            self.base_delay_minutes * (self.multiplier ** exponent),
            self.max_delay_minutes,
        )
        jitter = delay_minutes * self.jitter_factor * (2 * random.random() - 1)
        delay_minutes = max(0.0, delay_minutes + jitter)
        return timedelta(minutes=delay_minutes)

    def next_retry_at(self, attempts: int, now: Optional[datetime] = None) -> Optional[datetime]:
        """When the record becomes eligible again; None once attempts are exhausted."""
        if not self.can_retry(attempts):
            return None
        now = now or datetime.utcnow()
        return now + self.calculate_delay(attempts)
