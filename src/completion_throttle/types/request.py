# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""
Per-attempt request types.

A RequestAttempt is created for every iteration of the retry loop and
discarded once the logical request resolves.
"""

import secrets
import time
from dataclasses import dataclass, field
from enum import Enum


class AttemptOutcome(Enum):
    """
    Result of a single attempt.

    The retry executor moves an attempt from PENDING to exactly one of the
    terminal outcomes:
        * SUCCESS: the provider answered
        * RETRYABLE_FAILURE: classified as transient, backoff follows
        * NON_RETRYABLE_FAILURE: classified as a caller/config defect
    """

    PENDING = "pending"
    SUCCESS = "success"
    RETRYABLE_FAILURE = "retryable_failure"
    NON_RETRYABLE_FAILURE = "non_retryable_failure"


@dataclass
class RequestAttempt:
    """
    One network attempt of a logical request.

    Attributes:
        request_id: Identifier of the logical request this attempt belongs to
        attempt_index: Zero-based attempt number
        started_at: Monotonic timestamp when the attempt started
        outcome: How the attempt ended
    """

    request_id: str
    attempt_index: int
    started_at: float = field(default_factory=time.monotonic)
    outcome: AttemptOutcome = AttemptOutcome.PENDING

    @property
    def elapsed(self) -> float:
        """Seconds since the attempt started."""
        return time.monotonic() - self.started_at


def generate_request_id(prefix: str = "req") -> str:
    """Build an id of the form ``req_<epoch ms>_<9 random chars>``."""
    return f"{prefix}_{int(time.time() * 1000)}_{secrets.token_hex(5)[:9]}"


__all__ = ["AttemptOutcome", "RequestAttempt", "generate_request_id"]
