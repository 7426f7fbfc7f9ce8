"""
Upstream retry policy.

Decides whether another attempt is allowed and how long to wait before it.
The default retries forever with a fixed 5 second delay; bounded attempts,
a wall-clock budget and exponential growth are opt-in.
"""

from dataclasses import dataclass

from history_replicator.config.state import RetrySettings


@dataclass(frozen=True)
class RetryPolicy:
    """Retry behaviour for upstream fetches."""

    max_attempts: int | None = None  # None = unbounded
    delay: float = 5.0
    backoff_multiplier: float = 1.0
    max_delay: float = 60.0
    max_elapsed: float | None = None  # seconds since the first attempt

    @classmethod
    def from_settings(cls, settings: RetrySettings) -> "RetryPolicy":
        return cls(
            max_attempts=settings.max_attempts,
            delay=settings.delay,
            backoff_multiplier=settings.backoff_multiplier,
            max_delay=settings.max_delay,
            max_elapsed=settings.max_elapsed,
        )

    def should_retry(self, attempt: int, elapsed: float = 0.0) -> bool:
        """
        Whether another attempt may follow a failed one.

        Args:
            attempt: Number of attempts made so far (1 after the first failure)
            elapsed: Seconds spent since the first attempt started
        """
        if self.max_attempts is not None and attempt >= self.max_attempts:
            return False
        if self.max_elapsed is not None and elapsed >= self.max_elapsed:
            return False
        return True

    def delay_for(self, attempt: int) -> float:
        """
        Seconds to wait after the given failed attempt (1-indexed).

        Fixed delay when backoff_multiplier is 1, otherwise
        ``delay * multiplier ** (attempt - 1)`` capped at max_delay.
        """
        if self.backoff_multiplier == 1.0:
            return self.delay
        grown = self.delay * self.backoff_multiplier ** max(attempt - 1, 0)
        return min(grown, max(self.max_delay, self.delay))
