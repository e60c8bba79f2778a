"""
Retry classification for fetch attempts.
"""
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from common.errors import FatalFetchError, NoDataError, TransientFetchError


class RetryAction(str, Enum):
    """What the worker should do after a failed attempt."""

    EMPTY = "empty"
    RETRY = "retry"
    ABORT = "abort"


@dataclass(frozen=True)
class RetryDecision:
    action: RetryAction
    delay: float = 0.0


@dataclass
class RetryState:
    """Attempt bookkeeping for one unit invocation."""
    attempts: int = 0
    last_error: Optional[BaseException] = None


class RetryPolicy:
    """
    Decides between terminal-empty, retry-with-backoff and abort.

    Backoff is linear in the attempt number (``attempt * base_delay``) and
    optionally capped at ``max_delay``, so it never decreases.
    """

    def __init__(self, max_attempts: int = 10, base_delay: float = 1.0,
                 max_delay: Optional[float] = None):
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.max_attempts = max_attempts
        self.base_delay = base_delay
        self.max_delay = max_delay

    def backoff(self, attempt: int) -> float:
        """Seconds to sleep after failed attempt number ``attempt`` (1-based)."""
        delay = attempt * self.base_delay
        if self.max_delay is not None:
            delay = min(delay, self.max_delay)
        return delay

    def classify(self, error: BaseException, state: RetryState) -> RetryDecision:
        """
        Classify an error raised by attempt ``state.attempts``.

        Args:
            error: Exception raised by the fetch function
            state: Retry state already updated for this attempt

        Returns:
            RetryDecision for the worker
        """
        if isinstance(error, NoDataError):
            return RetryDecision(RetryAction.EMPTY)
        if isinstance(error, FatalFetchError):
            return RetryDecision(RetryAction.ABORT)
        if not isinstance(error, TransientFetchError):
            # Unknown failures (decoder bugs etc.) are not worth retrying
            return RetryDecision(RetryAction.ABORT)
        if state.attempts >= self.max_attempts:
            return RetryDecision(RetryAction.ABORT)
        return RetryDecision(RetryAction.RETRY, self.backoff(state.attempts))
