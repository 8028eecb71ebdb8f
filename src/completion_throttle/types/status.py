# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""
Read-only status snapshot returned by RequestManager.get_status().
"""

from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from .quota import QuotaInfo


class QueueStatus(BaseModel):
    """RateLimiter observability counters."""

    model_config = ConfigDict(frozen=True)

    queued: int
    running: int
    done: int
    failed: int


class RateLimitStatus(BaseModel):
    """Reservoir state against its configured per-minute limit."""

    model_config = ConfigDict(frozen=True)

    reservoir: int
    requests_per_minute: int


class PolicyStatus(BaseModel):
    """Effective retry and admission policy."""

    model_config = ConfigDict(frozen=True)

    max_retries: int
    delay_schedule: tuple[float, ...]
    max_concurrent: int
    min_spacing: float


class StatsSnapshot(BaseModel):
    """Copy of the running Stats plus derived success rate."""

    model_config = ConfigDict(frozen=True)

    total_requests: int = 0
    successful_requests: int = 0
    failed_requests: int = 0
    retried_requests: int = 0
    rate_limit_hits: int = 0
    quota_warnings: int = 0
    average_response_time: float = 0.0
    last_request_time: datetime | None = None
    success_rate: int = 0


class CredentialStatus(BaseModel):
    """Masked credential configuration; never holds the raw key."""

    model_config = ConfigDict(frozen=True)

    configured: bool
    masked_key: str | None = None
    base_url: str
    organization: str | None = None


class StatusSnapshot(BaseModel):
    """Composite, side-effect-free view of the request manager."""

    model_config = ConfigDict(frozen=True)

    queue: QueueStatus
    rate_limit: RateLimitStatus
    policy: PolicyStatus
    stats: StatsSnapshot
    quota: QuotaInfo | None = None
    credentials: CredentialStatus
    running: bool = False
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    def to_log_dict(self) -> dict[str, Any]:
        """JSON-compatible dict for structured logging."""
        return self.model_dump(mode="json")


__all__ = [
    "CredentialStatus",
    "PolicyStatus",
    "QueueStatus",
    "RateLimitStatus",
    "StatsSnapshot",
    "StatusSnapshot",
]
