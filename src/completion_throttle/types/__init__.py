# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""Type definitions for requests, statistics, quota and status."""

from .quota import QuotaInfo, SubscriptionInfo, UsageInfo
from .request import AttemptOutcome, RequestAttempt, generate_request_id
from .stats import Stats
from .status import (
    CredentialStatus,
    PolicyStatus,
    QueueStatus,
    RateLimitStatus,
    StatsSnapshot,
    StatusSnapshot,
)

__all__ = [
    # Request types
    "AttemptOutcome",
    "CredentialStatus",
    "PolicyStatus",
    # Quota types
    "QuotaInfo",
    # Status types
    "QueueStatus",
    "RateLimitStatus",
    "RequestAttempt",
    "Stats",
    "StatsSnapshot",
    "StatusSnapshot",
    "SubscriptionInfo",
    "UsageInfo",
    "generate_request_id",
]
