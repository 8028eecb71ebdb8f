# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""
Quota snapshot models.

A QuotaInfo is assembled by the QuotaMonitor from two independent reads
(usage, subscription) and replaced wholesale on each refresh.
"""

from datetime import date, datetime, timezone

from pydantic import BaseModel, ConfigDict, Field


class UsageInfo(BaseModel):
    """Spend for the current billing period, in USD."""

    model_config = ConfigDict(frozen=True)

    total_usage: float
    daily_usage: float
    period_start: date
    period_end: date


class SubscriptionInfo(BaseModel):
    """Account billing limits, in USD."""

    model_config = ConfigDict(frozen=True)

    has_payment_method: bool
    soft_limit: float | None = None
    hard_limit: float | None = None
    access_until: datetime | None = None


class QuotaInfo(BaseModel):
    """
    Point-in-time view of provider usage and limits.

    Either part may be None when its read failed; the failure is then
    described in ``warnings`` instead of being raised.
    """

    model_config = ConfigDict(frozen=True)

    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    usage: UsageInfo | None = None
    subscription: SubscriptionInfo | None = None
    warnings: list[str] = Field(default_factory=list)

    @property
    def usage_percentage(self) -> float | None:
        """Total usage as a percentage of the soft limit, when both are known."""
        if self.usage is None or self.subscription is None:
            return None
        soft_limit = self.subscription.soft_limit
        if not soft_limit:
            return None
        return self.usage.total_usage / soft_limit * 100

    @property
    def has_critical_warning(self) -> bool:
        return any(w.startswith("CRITICAL") for w in self.warnings)


__all__ = ["QuotaInfo", "SubscriptionInfo", "UsageInfo"]
