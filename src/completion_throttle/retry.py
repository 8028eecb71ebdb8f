# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""
Bounded retry loop with a fixed backoff schedule.

Each logical request runs through ``RetryExecutor.execute``, which calls the
attempt function at most ``max_retries + 1`` times. Between attempts it
sleeps for the scheduled delay, or for the provider's Retry-After when a
429 asks for more than the schedule would wait.

State machine per request::

    Attempting -> Success                                  (terminal)
    Attempting -> NonRetryableFailure -> Aborted           (terminal)
    Attempting -> RetryableFailure -> Backoff -> Attempting
    Attempting -> RetryableFailure (last attempt) -> Aborted
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

from .classification import classify_error
from .config import RetryPolicy
from .exceptions import ErrorCategory, ProviderError, ThrottleError
from .types.request import AttemptOutcome, RequestAttempt

logger = logging.getLogger(__name__)

T = TypeVar("T")

RetryCallback = Callable[[ProviderError, int], None]
SleepFunc = Callable[[float], Awaitable[Any]]


class RetryExecutor:
    """
    Runs one logical request with classified, schedule-driven retries.

    Attributes:
        policy: Immutable retry policy
        retried_requests: Retries performed by this executor since creation
    """

    def __init__(
        self,
        policy: RetryPolicy | None = None,
        sleep: SleepFunc = asyncio.sleep,
        on_retry: RetryCallback | None = None,
    ) -> None:
        """
        Initialize the executor.

        Args:
            policy: Retry policy (defaults to 3 retries at 2s, 4s, 8s)
            sleep: Awaitable sleep used for backoff; injectable for tests
            on_retry: Called with (error, next_attempt_index) before each backoff
        """
        self.policy = policy or RetryPolicy()
        self._sleep = sleep
        self._on_retry = on_retry
        self.retried_requests = 0

    def calculate_retry_delay(self, error: ProviderError, attempt: int) -> float:
        """
        Delay before ``attempt`` (1-based) after ``error``.

        A 429 Retry-After wins only when it asks for a longer wait than the
        schedule.
        """
        delay = self.policy.delay_for(attempt)
        if (
            error.category in (ErrorCategory.RATE_LIMIT, ErrorCategory.QUOTA_EXCEEDED)
            and error.retry_after is not None
            and error.retry_after > delay
        ):
            return error.retry_after
        return delay

    async def execute(
        self, attempt_fn: Callable[[], Awaitable[T]], request_id: str
    ) -> T:
        """
        Execute ``attempt_fn`` with retries.

        Args:
            attempt_fn: Performs exactly one network call
            request_id: Identifier used in logs

        Returns:
            Result of the first successful attempt

        Raises:
            ProviderError: The final classified error, with a caller-safe
                message and ``attempts`` set to the number of calls made
        """
        max_attempts = self.policy.max_retries + 1
        delay = 0.0

        for attempt_index in range(max_attempts):
            if attempt_index > 0 and delay > 0:
                await self._sleep(delay)

            attempt = RequestAttempt(request_id=request_id, attempt_index=attempt_index)
            try:
                result = await attempt_fn()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                error = classify_error(e)
            else:
                attempt.outcome = AttemptOutcome.SUCCESS
                if attempt_index > 0:
                    logger.info(
                        f"Request {request_id} succeeded on attempt {attempt_index + 1}"
                    )
                return result

            if not error.retryable:
                attempt.outcome = AttemptOutcome.NON_RETRYABLE_FAILURE
                logger.error(
                    f"Request {request_id} aborted: non-retryable "
                    f"{error.category.value} ({error})"
                )
                raise error.surfaced(attempts=attempt_index + 1) from error

            attempt.outcome = AttemptOutcome.RETRYABLE_FAILURE

            if attempt_index + 1 >= max_attempts:
                logger.error(
                    f"Request {request_id} failed after {max_attempts} attempts: "
                    f"{error.category.value} ({error})"
                )
                raise error.surfaced(attempts=max_attempts) from error

            delay = self.calculate_retry_delay(error, attempt_index + 1)
            self.retried_requests += 1
            if self._on_retry is not None:
                self._on_retry(error, attempt_index + 1)

            logger.warning(
                f"Request {request_id} attempt {attempt_index + 1}/{max_attempts} "
                f"failed with {error.category.value} after {attempt.elapsed:.2f}s, "
                f"retrying in {delay:.1f}s"
            )

        raise ThrottleError(f"Request {request_id} failed after all retries")


__all__ = ["RetryExecutor"]
