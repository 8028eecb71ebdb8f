# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""
Metrics collector backed by prometheus_client with a dict snapshot.

Features:
    1. Thread-safe counter/gauge/histogram operations
    2. Prometheus registration on a per-collector registry
    3. Dict snapshot for JSON export and tests
    4. Label cardinality protection (max 1000 unique combinations per metric)
    5. Optional HTTP server for Prometheus scraping

Usage:
    >>> collector = MetricsCollector()
    >>> collector.inc_counter(REQUESTS_FAILED_TOTAL, labels={"category": "timeout"})
    >>> collector.get_metrics()["counters"]

Thread Safety:
    The exposition server reads from its own thread, so all dict updates
    go through an RLock.
"""

from __future__ import annotations

import logging
import threading
from collections import defaultdict
from dataclasses import dataclass
from typing import Any, ClassVar

from prometheus_client import (
    CollectorRegistry,
    Counter,
    Gauge,
    Histogram,
    start_http_server,
)

from .constants import (
    HIGH_CONCURRENCY_WARNINGS_TOTAL,
    IN_FLIGHT_REQUESTS,
    LATENCY_BUCKETS,
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

logger = logging.getLogger(__name__)


@dataclass
class MetricDefinition:
    """Schema for one metric: type, description, labels and buckets."""

    name: str
    metric_type: str  # 'counter', 'gauge', 'histogram'
    description: str
    label_names: tuple[str, ...] = ()
    buckets: list[float] | None = None


METRIC_DEFINITIONS: dict[str, MetricDefinition] = {
    # === Request Counters ===
    REQUESTS_TOTAL: MetricDefinition(
        REQUESTS_TOTAL, "counter", "Logical requests submitted"
    ),
    REQUESTS_SUCCEEDED_TOTAL: MetricDefinition(
        REQUESTS_SUCCEEDED_TOTAL, "counter", "Logical requests that succeeded"
    ),
    REQUESTS_FAILED_TOTAL: MetricDefinition(
        REQUESTS_FAILED_TOTAL,
        "counter",
        "Logical requests that failed",
        ("category",),
    ),
    RETRIES_TOTAL: MetricDefinition(
        RETRIES_TOTAL, "counter", "Retry attempts", ("category",)
    ),
    RATE_LIMIT_HITS_TOTAL: MetricDefinition(
        RATE_LIMIT_HITS_TOTAL, "counter", "HTTP 429 responses received"
    ),
    RESPONSE_TIME_SECONDS: MetricDefinition(
        RESPONSE_TIME_SECONDS,
        "histogram",
        "End-to-end request latency",
        buckets=LATENCY_BUCKETS,
    ),
    # === Limiter Gauges ===
    IN_FLIGHT_REQUESTS: MetricDefinition(
        IN_FLIGHT_REQUESTS, "gauge", "Requests currently in flight"
    ),
    QUEUED_REQUESTS: MetricDefinition(
        QUEUED_REQUESTS, "gauge", "Requests waiting for admission"
    ),
    RESERVOIR_REMAINING: MetricDefinition(
        RESERVOIR_REMAINING, "gauge", "Reservoir tokens left in this window"
    ),
    HIGH_CONCURRENCY_WARNINGS_TOTAL: MetricDefinition(
        HIGH_CONCURRENCY_WARNINGS_TOTAL,
        "counter",
        "Watchdog high-concurrency warnings",
    ),
    # === Quota ===
    QUOTA_CHECKS_TOTAL: MetricDefinition(
        QUOTA_CHECKS_TOTAL, "counter", "Quota fetches performed"
    ),
    QUOTA_USAGE_PERCENT: MetricDefinition(
        QUOTA_USAGE_PERCENT, "gauge", "Usage as a percentage of the soft limit"
    ),
    QUOTA_WARNINGS_TOTAL: MetricDefinition(
        QUOTA_WARNINGS_TOTAL, "counter", "Quota refreshes with warnings"
    ),
}


class MetricsCollector:
    """
    Counter/gauge/histogram recorder mirrored into Prometheus.

    Cardinality Protection:
        At most MAX_LABEL_COMBINATIONS unique label combinations are kept per
        metric; further combinations are dropped with a warning.
    """

    MAX_LABEL_COMBINATIONS: ClassVar[int] = 1000

    def __init__(
        self,
        enable_prometheus: bool = True,
        registry: CollectorRegistry | None = None,
    ) -> None:
        """
        Initialize the metrics collector.

        Args:
            enable_prometheus: Mirror metrics into Prometheus objects
            registry: Registry to register with; a private one is created
                when omitted so several collectors can coexist
        """
        self._enable_prometheus = enable_prometheus
        self._registry = registry if registry is not None else CollectorRegistry()

        self._counters: dict[str, dict[str, int]] = defaultdict(
            lambda: defaultdict(int)
        )
        self._gauges: dict[str, dict[str, float]] = defaultdict(
            lambda: defaultdict(float)
        )
        self._histograms: dict[str, dict[str, list[float]]] = defaultdict(
            lambda: defaultdict(list)
        )

        self._lock = threading.RLock()

        self._prom_metrics: dict[str, Any] = {}
        self._label_combinations: dict[str, set[str]] = defaultdict(set)
        self._server_running = False

    @property
    def registry(self) -> CollectorRegistry:
        return self._registry

    def _labels_to_key(self, labels: dict[str, str] | None) -> str:
        """Convert labels dict to a stable string key."""
        if not labels:
            return ""
        return ",".join(f"{k}={v}" for k, v in sorted(labels.items()))

    def _check_cardinality(self, name: str, label_key: str) -> bool:
        if label_key in self._label_combinations[name]:
            return True
        if len(self._label_combinations[name]) >= self.MAX_LABEL_COMBINATIONS:
            logger.warning(
                f"Cardinality limit ({self.MAX_LABEL_COMBINATIONS}) reached "
                f"for metric {name}. Dropping label combination: {label_key}"
            )
            return False
        self._label_combinations[name].add(label_key)
        return True

    def _get_or_create_prom_metric(self, name: str, metric_type: str) -> Any | None:
        """Get or lazily register the Prometheus object for ``name``."""
        if not self._enable_prometheus:
            return None

        with self._lock:
            if name in self._prom_metrics:
                return self._prom_metrics[name]

            defn = METRIC_DEFINITIONS.get(name) or MetricDefinition(
                name, metric_type, f"Dynamic {metric_type}: {name}"
            )
            try:
                if metric_type == "counter":
                    metric: Any = Counter(
                        name,
                        defn.description,
                        list(defn.label_names),
                        registry=self._registry,
                    )
                elif metric_type == "gauge":
                    metric = Gauge(
                        name,
                        defn.description,
                        list(defn.label_names),
                        registry=self._registry,
                    )
                else:
                    metric = Histogram(
                        name,
                        defn.description,
                        list(defn.label_names),
                        buckets=defn.buckets or LATENCY_BUCKETS,
                        registry=self._registry,
                    )
            except ValueError as e:
                logger.warning(f"Failed to create Prometheus {metric_type} {name}: {e}")
                return None

            self._prom_metrics[name] = metric
            return metric

    # === Counter Operations ===

    def inc_counter(
        self,
        name: str,
        value: int = 1,
        labels: dict[str, str] | None = None,
    ) -> None:
        """
        Increment a counter metric.

        Raises:
            ValueError: If value is negative
        """
        if value < 0:
            raise ValueError("Counter increment must be non-negative")

        label_key = self._labels_to_key(labels)
        with self._lock:
            if not self._check_cardinality(name, label_key):
                return
            self._counters[name][label_key] += value

        prom_counter = self._get_or_create_prom_metric(name, "counter")
        if prom_counter is not None:
            if labels:
                prom_counter.labels(**labels).inc(value)
            else:
                prom_counter.inc(value)

    # === Gauge Operations ===

    def set_gauge(
        self,
        name: str,
        value: float,
        labels: dict[str, str] | None = None,
    ) -> None:
        """Set a gauge metric to a specific value."""
        label_key = self._labels_to_key(labels)
        with self._lock:
            if not self._check_cardinality(name, label_key):
                return
            self._gauges[name][label_key] = value

        prom_gauge = self._get_or_create_prom_metric(name, "gauge")
        if prom_gauge is not None:
            if labels:
                prom_gauge.labels(**labels).set(value)
            else:
                prom_gauge.set(value)

    # === Histogram Operations ===

    def observe_histogram(
        self,
        name: str,
        value: float,
        labels: dict[str, str] | None = None,
    ) -> None:
        """Record an observation in a histogram."""
        label_key = self._labels_to_key(labels)
        with self._lock:
            if not self._check_cardinality(name, label_key):
                return
            observations = self._histograms[name][label_key]
            observations.append(value)
            # Keep only recent observations to prevent memory growth
            if len(observations) > 10000:
                self._histograms[name][label_key] = observations[-5000:]

        prom_histogram = self._get_or_create_prom_metric(name, "histogram")
        if prom_histogram is not None:
            if labels:
                prom_histogram.labels(**labels).observe(value)
            else:
                prom_histogram.observe(value)

    # === Snapshot Operations ===

    def get_metrics(self) -> dict[str, Any]:
        """
        Snapshot of all metrics, JSON-serializable::

            {
                "counters": {"metric_name": {"label_key": value, ...}, ...},
                "gauges": {"metric_name": {"label_key": value, ...}, ...},
                "histograms": {"metric_name": {"label_key": {...}, ...}, ...}
            }
        """
        with self._lock:
            counters = {
                name: dict(label_values)
                for name, label_values in self._counters.items()
            }
            gauges = {
                name: dict(label_values) for name, label_values in self._gauges.items()
            }

            histograms: dict[str, dict[str, dict[str, Any]]] = {}
            for name, label_values in self._histograms.items():
                histograms[name] = {}
                for label_key, observations in label_values.items():
                    if observations:
                        histograms[name][label_key] = {
                            "count": len(observations),
                            "sum": sum(observations),
                            "avg": sum(observations) / len(observations),
                            "min": min(observations),
                            "max": max(observations),
                        }

        return {
            "counters": counters,
            "gauges": gauges,
            "histograms": histograms,
        }

    def get_counter(self, name: str, labels: dict[str, str] | None = None) -> int:
        with self._lock:
            return self._counters.get(name, {}).get(self._labels_to_key(labels), 0)

    def get_gauge(self, name: str, labels: dict[str, str] | None = None) -> float:
        with self._lock:
            return self._gauges.get(name, {}).get(self._labels_to_key(labels), 0.0)

    def reset(self) -> None:
        """Clear the dict snapshot. Prometheus counters are monotonic and kept."""
        with self._lock:
            self._counters.clear()
            self._gauges.clear()
            self._histograms.clear()
            self._label_combinations.clear()

        logger.debug("Metrics collector reset")

    # === Prometheus HTTP Server ===

    def start_http_server(self, host: str = "127.0.0.1", port: int = 9090) -> bool:
        """
        Start the Prometheus exposition server for this collector's registry.

        Returns:
            True if the server is running after the call
        """
        if not self._enable_prometheus:
            logger.warning("Cannot start Prometheus server: Prometheus metrics disabled")
            return False

        if self._server_running:
            logger.warning("Prometheus server already running")
            return True

        try:
            # start_http_server runs in a daemon thread
            start_http_server(port, addr=host, registry=self._registry)
        except OSError as e:
            logger.error(f"Failed to start Prometheus server: {e}")
            return False

        self._server_running = True
        logger.info(f"Prometheus metrics server started on {host}:{port}")
        return True

    @property
    def prometheus_enabled(self) -> bool:
        return self._enable_prometheus

    @property
    def server_running(self) -> bool:
        return self._server_running


__all__ = [
    "METRIC_DEFINITIONS",
    "MetricDefinition",
    "MetricsCollector",
]
