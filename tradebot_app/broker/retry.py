"""Reusable retry policy for brokerage HTTP calls."""

import time
from http.client import HTTPException
from typing import Callable, Optional, TypeVar

import structlog

logger = structlog.get_logger(__name__)

T = TypeVar("T")

# Socket and timeout failures, plus truncated or dropped HTTP responses
TRANSIENT_ERRORS: tuple[type[BaseException], ...] = (OSError, HTTPException)


def is_retryable_status(status: int) -> bool:
    """Rate limiting (429) and server errors (5xx) are retried."""
    return status == 429 or status >= 500


def linear_backoff(unit_seconds: float) -> Callable[[int], float]:
    """Backoff of ``unit * (attempt_index + 1)`` seconds."""
    def backoff(attempt_index: int) -> float:
        return unit_seconds * (attempt_index + 1)
    return backoff


class RetryPolicy:
    """
    Bounded retry loop decoupled from endpoint logic.

    ``execute`` calls ``send`` up to ``max_attempts`` times. A response whose
    status satisfies ``is_retryable`` is retried while attempts remain and
    returned as-is once they run out; an exception listed in
    ``transient_errors`` is retried likewise and re-raised after the last
    attempt. Between attempts the policy sleeps ``backoff(attempt_index)``.
    """

    def __init__(
        self,
        max_attempts: int = 3,
        backoff: Optional[Callable[[int], float]] = None,
        is_retryable: Callable[[int], bool] = is_retryable_status,
        transient_errors: tuple[type[BaseException], ...] = TRANSIENT_ERRORS
    ):
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.max_attempts = max_attempts
        self.backoff = backoff or linear_backoff(2.0)
        self.is_retryable = is_retryable
        self.transient_errors = transient_errors

    @classmethod
    def linear(cls, max_retries: int = 2, unit_seconds: float = 2.0) -> "RetryPolicy":
        """Policy with ``max_retries`` retries and linearly increasing backoff."""
        return cls(max_attempts=max_retries + 1, backoff=linear_backoff(unit_seconds))

    def execute(
        self,
        send: Callable[[], T],
        status_of: Callable[[T], int],
        sleep: Callable[[float], None] = time.sleep,
        description: str = ""
    ) -> T:
        """Run ``send`` under this policy and return the final response."""
        attempt = 0
        while True:
            last_attempt = attempt >= self.max_attempts - 1
            try:
                response = send()
            except self.transient_errors as e:
                if last_attempt:
                    raise
                delay = self.backoff(attempt)
                logger.warning(
                    "Transient I/O failure, retrying",
                    request=description,
                    attempt=attempt + 1,
                    delay_seconds=delay,
                    error=str(e)
                )
                sleep(delay)
                attempt += 1
                continue

            status = status_of(response)
            if self.is_retryable(status) and not last_attempt:
                delay = self.backoff(attempt)
                logger.warning(
                    "Retryable status, retrying",
                    request=description,
                    attempt=attempt + 1,
                    status=status,
                    delay_seconds=delay
                )
                sleep(delay)
                attempt += 1
                continue

            return response
