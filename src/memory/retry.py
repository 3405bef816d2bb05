"""
Retry policy for memory retrieval.

Backoff follows min(initial_delay * multiplier^(attempt-1), max_delay) and only
retryable error kinds are re-attempted.
"""

from dataclasses import dataclass
from typing import Optional

from loguru import logger
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from .errors import RetrievalError


@dataclass(frozen=True)
class RetryPolicy:
    """
    Retry configuration, immutable per service instance.

    Attributes:
        max_attempts: Total attempts including the first one
        initial_delay: Delay before the second attempt (seconds)
        max_delay: Upper bound on any single delay (seconds)
        multiplier: Backoff growth factor per attempt
    """
    max_attempts: int = 3
    initial_delay: float = 0.1
    max_delay: float = 2.0
    multiplier: float = 2.0

    def __post_init__(self):
        if self.max_attempts < 1:
            raise ValueError(f"max_attempts must be at least 1, got {self.max_attempts}")
        if self.initial_delay < 0 or self.max_delay < 0:
            raise ValueError("Retry delays must be non-negative")
        if self.multiplier < 1:
            raise ValueError(f"multiplier must be >= 1, got {self.multiplier}")

    def delay_for(self, attempt: int) -> float:
        """Delay to wait after a failed `attempt` (1-based) before the next one."""
        return min(self.initial_delay * self.multiplier ** (attempt - 1), self.max_delay)

    @classmethod
    def from_attempts(cls, retry_attempts: int) -> "RetryPolicy":
        """Build a policy from the MEMORY_SYSTEM_RETRY_ATTEMPTS setting (0 means no retries)."""
        return cls(max_attempts=max(1, retry_attempts))

    def retrying(self, label: Optional[str] = None) -> AsyncRetrying:
        """
        Tenacity controller implementing this policy.

        Non-retryable RetrievalErrors and any other exception are re-raised
        immediately; the final retryable failure is re-raised unchanged.
        """
        def _log_retry(state: RetryCallState) -> None:
            error = state.outcome.exception() if state.outcome else None
            logger.warning(
                f"[MemoryRetrieval] {label or 'query'} attempt {state.attempt_number}/"
                f"{self.max_attempts} failed ({getattr(error, 'kind', 'error')}), "
                f"retrying in {state.next_action.sleep if state.next_action else 0:.2f}s"
            )

        return AsyncRetrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_exponential(
                multiplier=self.initial_delay,
                exp_base=self.multiplier,
                min=0,
                max=self.max_delay,
            ),
            retry=retry_if_exception(
                lambda e: isinstance(e, RetrievalError) and e.retryable
            ),
            before_sleep=_log_retry,
            reraise=True,
        )
