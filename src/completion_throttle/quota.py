# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""
Quota monitoring for the chat-completion provider.

The QuotaMonitor reads billing usage and subscription limits, caches the
assembled QuotaInfo for ``cache_ttl`` seconds and turns usage against the
soft limit into escalating warnings. It never raises: a failed read is
recorded as a warning string so the request path is never blocked or
failed by quota bookkeeping.
"""

import asyncio
import logging
import time
from collections.abc import Callable
from datetime import date, datetime, timedelta, timezone
from typing import Any

from .config import QuotaConfig
from .exceptions import ProviderError
from .observability import (
    QUOTA_CHECKS_TOTAL,
    QUOTA_USAGE_PERCENT,
    QUOTA_WARNINGS_TOTAL,
    MetricsCollector,
)
from .protocols import CompletionTransport
from .types.quota import QuotaInfo, SubscriptionInfo, UsageInfo

logger = logging.getLogger(__name__)

CENTS_PER_DOLLAR = 100.0


def billing_period(today: date) -> tuple[date, date]:
    """Start of the current month and tomorrow (end date is exclusive)."""
    return today.replace(day=1), today + timedelta(days=1)


def parse_usage(body: dict[str, Any], start: date, end: date) -> UsageInfo:
    """
    Convert a usage response into UsageInfo.

    ``total_usage`` and ``daily_costs[].line_items[].cost`` are reported in
    cents; the most recent day in ``daily_costs`` is taken as today's usage.
    """
    total_cents = float(body.get("total_usage") or 0.0)
    daily_cents = 0.0
    daily_costs = body.get("daily_costs") or []
    if not isinstance(daily_costs, list):
        raise TypeError(f"daily_costs must be a list, got {type(daily_costs).__name__}")
    if daily_costs:
        latest = daily_costs[-1]
        daily_cents = sum(
            float(item.get("cost") or 0.0) for item in latest.get("line_items") or []
        )
    return UsageInfo(
        total_usage=total_cents / CENTS_PER_DOLLAR,
        daily_usage=daily_cents / CENTS_PER_DOLLAR,
        period_start=start,
        period_end=end,
    )


def parse_subscription(body: dict[str, Any]) -> SubscriptionInfo:
    """Convert a subscription response into SubscriptionInfo."""
    access_until = body.get("access_until")
    return SubscriptionInfo(
        has_payment_method=bool(body.get("has_payment_method", False)),
        soft_limit=body.get("soft_limit_usd"),
        hard_limit=body.get("hard_limit_usd"),
        access_until=(
            datetime.fromtimestamp(access_until, tz=timezone.utc)
            if isinstance(access_until, (int, float))
            else None
        ),
    )


class QuotaMonitor:
    """
    TTL-cached view of provider usage and billing limits.

    Example:
        >>> monitor = QuotaMonitor(client, QuotaConfig())
        >>> info = await monitor.check_and_update_quota()
        >>> if info.has_critical_warning:
        ...     alert(info.warnings)
    """

    def __init__(
        self,
        transport: CompletionTransport,
        config: QuotaConfig | None = None,
        metrics_collector: MetricsCollector | None = None,
        clock: Callable[[], float] = time.monotonic,
        today: Callable[[], date] | None = None,
    ) -> None:
        """
        Initialize the monitor.

        Args:
            transport: Performs the usage and subscription reads
            config: Cache TTL and thresholds
            metrics_collector: Optional collector for quota metrics
            clock: Monotonic clock for cache age
            today: Returns the current UTC date (injectable for tests)
        """
        self._transport = transport
        self.config = config or QuotaConfig()
        self._metrics = metrics_collector
        self._clock = clock
        self._today = today or (lambda: datetime.now(timezone.utc).date())

        self._info: QuotaInfo | None = None
        self._fetched_at: float | None = None
        self._lock = asyncio.Lock()
        self.fetch_count = 0

    @property
    def last_info(self) -> QuotaInfo | None:
        """Most recent snapshot, without triggering a fetch."""
        return self._info

    def is_fresh(self) -> bool:
        if self._info is None or self._fetched_at is None:
            return False
        return self._clock() - self._fetched_at < self.config.cache_ttl

    async def check_and_update_quota(self, force: bool = False) -> QuotaInfo:
        """
        Return cached quota info, refreshing it when stale or forced.

        Concurrent callers share one refresh.
        """
        if not force and self._info is not None and self.is_fresh():
            return self._info

        async with self._lock:
            # Another caller may have refreshed while we waited.
            if not force and self._info is not None and self.is_fresh():
                return self._info

            info = await self._fetch()
            self._info = info
            self._fetched_at = self._clock()
            return info

    async def _fetch(self) -> QuotaInfo:
        start, end = billing_period(self._today())
        self.fetch_count += 1
        if self._metrics:
            self._metrics.inc_counter(QUOTA_CHECKS_TOTAL)

        usage_result, subscription_result = await asyncio.gather(
            self._transport.get_usage(start, end),
            self._transport.get_subscription(),
            return_exceptions=True,
        )

        warnings: list[str] = []
        usage: UsageInfo | None = None
        subscription: SubscriptionInfo | None = None

        if isinstance(usage_result, BaseException):
            self._reraise_cancellation(usage_result)
            warnings.append(f"Usage check failed: {self._describe(usage_result)}")
        else:
            try:
                usage = parse_usage(usage_result, start, end)
            except (TypeError, ValueError, AttributeError, LookupError) as e:
                warnings.append(f"Usage check failed: unexpected response ({e})")

        if isinstance(subscription_result, BaseException):
            self._reraise_cancellation(subscription_result)
            warnings.append(
                f"Subscription check failed: {self._describe(subscription_result)}"
            )
        else:
            try:
                subscription = parse_subscription(subscription_result)
            except (TypeError, ValueError, AttributeError, LookupError) as e:
                warnings.append(f"Subscription check failed: unexpected response ({e})")

        warnings.extend(self.evaluate_thresholds(usage, subscription))

        info = QuotaInfo(usage=usage, subscription=subscription, warnings=warnings)

        if self._metrics:
            percentage = info.usage_percentage
            if percentage is not None:
                self._metrics.set_gauge(QUOTA_USAGE_PERCENT, percentage)
            if warnings:
                self._metrics.inc_counter(QUOTA_WARNINGS_TOTAL)

        for warning in warnings:
            logger.warning(f"Quota: {warning}")
        return info

    def evaluate_thresholds(
        self,
        usage: UsageInfo | None,
        subscription: SubscriptionInfo | None,
    ) -> list[str]:
        """
        Warnings for the current usage against the account limits.

        Usage at or above the info threshold is only logged; the warning and
        critical thresholds add entries.
        """
        warnings: list[str] = []
        if subscription is not None and not subscription.has_payment_method:
            warnings.append(
                "WARNING: no payment method on file; requests will fail once credit runs out"
            )

        if usage is None or subscription is None:
            return warnings

        hard_limit = subscription.hard_limit
        if hard_limit and usage.total_usage >= hard_limit:
            warnings.append(
                f"CRITICAL: hard limit reached (${usage.total_usage:.2f} of ${hard_limit:.2f})"
            )

        soft_limit = subscription.soft_limit
        if not soft_limit:
            return warnings

        percentage = usage.total_usage / soft_limit * 100
        summary = (
            f"usage at {percentage:.1f}% of soft limit "
            f"(${usage.total_usage:.2f} of ${soft_limit:.2f})"
        )
        if percentage >= self.config.critical_threshold:
            warnings.append(f"CRITICAL: {summary}")
        elif percentage >= self.config.warning_threshold:
            warnings.append(f"WARNING: {summary}")
        elif percentage >= self.config.info_threshold:
            logger.info(f"Quota {summary}")
        return warnings

    @staticmethod
    def _reraise_cancellation(error: BaseException) -> None:
        if isinstance(error, asyncio.CancelledError):
            raise error

    @staticmethod
    def _describe(error: BaseException) -> str:
        if isinstance(error, ProviderError) and error.status_code is not None:
            return f"HTTP {error.status_code} ({error.category.value})"
        if isinstance(error, ProviderError):
            return error.category.value
        return f"{type(error).__name__}: {error}"


__all__ = [
    "QuotaMonitor",
    "billing_period",
    "parse_subscription",
    "parse_usage",
]
