"""
Retry backoff policy.

Exponential: base_delay * 2^(n-1) for retry number n (the first attempt is
not a retry), optionally clamped to max_delay.
"""
from dataclasses import dataclass


@dataclass(frozen=True)
class BackoffPolicy:
    """Deterministic retry delay and attempt budget."""

    base_delay: float
    max_attempts: int
    max_delay: float | None = None

    def __post_init__(self):
        if self.base_delay < 0:
            raise ValueError("base_delay must be >= 0")
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        if self.max_delay is not None and self.max_delay < 0:
            raise ValueError("max_delay must be >= 0")

    @classmethod
    def from_milliseconds(
        cls,
        base_delay_ms: int,
        max_attempts: int,
        max_delay_ms: int | None = None
    ) -> "BackoffPolicy":
        return cls(
            base_delay=base_delay_ms / 1000,
            max_attempts=max_attempts,
            max_delay=max_delay_ms / 1000 if max_delay_ms is not None else None,
        )

    def delay(self, retry_number: int) -> float:
        """Seconds to wait before retry number `retry_number` (1-based)."""
        if retry_number < 1:
            raise ValueError(f"retry_number must be >= 1, got {retry_number}")
        seconds = self.base_delay * (2 ** (retry_number - 1))
        if self.max_delay is not None:
            seconds = min(seconds, self.max_delay)
        return seconds

    def should_retry(self, attempt_count: int) -> bool:
        """True if another attempt is allowed after `attempt_count` attempts."""
        return attempt_count < self.max_attempts
