# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""
Observability for the completion throttle.

Exports:
    MetricsCollector: Prometheus-backed counters, gauges and histograms
    METRIC_DEFINITIONS: Schema of every metric the library records
    Metric name constants (REQUESTS_TOTAL, RETRIES_TOTAL, ...)
"""

from .collector import METRIC_DEFINITIONS, MetricDefinition, MetricsCollector
from .constants import (
    HIGH_CONCURRENCY_WARNINGS_TOTAL,
    IN_FLIGHT_REQUESTS,
    LATENCY_BUCKETS,
    METRIC_PREFIX,
    QUEUED_REQUESTS,
    QUOTA_CHECKS_TOTAL,
    QUOTA_USAGE_PERCENT,
    QUOTA_WARNINGS_TOTAL,
    RATE_LIMIT_HITS_TOTAL,
    REQUESTS_FAILED_TOTAL,
    REQUESTS_SUCCEEDED_TOTAL,
    REQUESTS_TOTAL,
    RESERVOIR_REMAINING,
    RESPONSE_TIME_SECONDS,
    RETRIES_TOTAL,
)

__all__ = [
    "HIGH_CONCURRENCY_WARNINGS_TOTAL",
    "IN_FLIGHT_REQUESTS",
    "LATENCY_BUCKETS",
    "METRIC_DEFINITIONS",
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
    "MetricDefinition",
    "MetricsCollector",
]
