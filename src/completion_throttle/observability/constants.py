# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""
Metric name constants following Prometheus naming conventions.

All metric names use the ``completion_throttle_`` prefix.

Naming Conventions:
    - Counter metrics end with `_total`
    - Histogram metrics for time end with `_seconds`
    - Gauges use present-tense descriptive names

Label Best Practices:
    Use only categorical labels such as `category` (an ErrorCategory value).
    NEVER label with request ids or user ids; they are unbounded.
"""

METRIC_PREFIX = "completion_throttle"
"""Prefix for all Prometheus metrics in this library."""


# =============================================================================
# Request Metrics (manager.py, retry.py)
# =============================================================================

REQUESTS_TOTAL = f"{METRIC_PREFIX}_requests_total"
"""Logical requests submitted to the manager."""

REQUESTS_SUCCEEDED_TOTAL = f"{METRIC_PREFIX}_requests_succeeded_total"
"""Logical requests that returned a provider response."""

REQUESTS_FAILED_TOTAL = f"{METRIC_PREFIX}_requests_failed_total"
"""Logical requests that surfaced a classified error, by category."""

RETRIES_TOTAL = f"{METRIC_PREFIX}_retries_total"
"""Retry attempts, by the category of the error that triggered them."""

RATE_LIMIT_HITS_TOTAL = f"{METRIC_PREFIX}_rate_limit_hits_total"
"""HTTP 429 responses received from the provider."""

RESPONSE_TIME_SECONDS = f"{METRIC_PREFIX}_response_time_seconds"
"""End-to-end latency of a logical request, queueing and retries included."""


# =============================================================================
# Limiter Gauges (limiter.py, maintenance.py)
# =============================================================================

IN_FLIGHT_REQUESTS = f"{METRIC_PREFIX}_in_flight_requests"
"""Requests admitted by the limiter and not yet finished."""

QUEUED_REQUESTS = f"{METRIC_PREFIX}_queued_requests"
"""Requests waiting for admission."""

RESERVOIR_REMAINING = f"{METRIC_PREFIX}_reservoir_remaining"
"""Tokens left in the current reservoir window."""

HIGH_CONCURRENCY_WARNINGS_TOTAL = f"{METRIC_PREFIX}_high_concurrency_warnings_total"
"""Watchdog ticks that found in-flight load near the cap."""


# =============================================================================
# Quota Metrics (quota.py)
# =============================================================================

QUOTA_CHECKS_TOTAL = f"{METRIC_PREFIX}_quota_checks_total"
"""Quota fetches performed (cache hits are not counted)."""

QUOTA_USAGE_PERCENT = f"{METRIC_PREFIX}_quota_usage_percent"
"""Last known usage as a percentage of the soft limit."""

QUOTA_WARNINGS_TOTAL = f"{METRIC_PREFIX}_quota_warnings_total"
"""Quota refreshes that produced at least one warning."""


# =============================================================================
# Histogram Buckets
# =============================================================================

LATENCY_BUCKETS: list[float] = [
    0.1,
    0.25,
    0.5,
    1.0,
    2.5,
    5.0,
    10.0,
    20.0,
    30.0,
    60.0,
    120.0,
]
"""Buckets sized for completion calls with up to 30s timeouts and backoff."""


__all__ = [
    "HIGH_CONCURRENCY_WARNINGS_TOTAL",
    "IN_FLIGHT_REQUESTS",
    "LATENCY_BUCKETS",
    "METRIC_PREFIX",
    "QUEUED_REQUESTS",
    "QUOTA_CHECKS_TOTAL",
    "QUOTA_USAGE_PERCENT",
    "QUOTA_WARNINGS_TOTAL",
    "RATE_LIMIT_HITS_TOTAL",
    "REQUESTS_FAILED_TOTAL",
    "REQUESTS_SUCCEEDED_TOTAL",
    "REQUESTS_TOTAL",
    "RESERVOIR_REMAINING",
    "RESPONSE_TIME_SECONDS",
    "RETRIES_TOTAL",
]
