# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""
Configuration for the completion throttle.

All durations are in seconds. Every config object validates itself in
``__post_init__`` and raises ValueError on impossible values.
"""

import os
from dataclasses import dataclass, field

DEFAULT_BASE_URL = "https://api.openai.com/v1"


@dataclass
class ProviderSettings:
    """
    Connection settings for the chat-completion provider.

    The API key is excluded from ``repr`` so settings can be logged safely;
    use ``masked_api_key`` wherever the key must be displayed.
    """

    api_key: str | None = field(default=None, repr=False)
    """Bearer token sent with every provider call."""

    base_url: str = DEFAULT_BASE_URL
    """Base URL of the OpenAI-compatible API."""

    organization: str | None = None
    """Optional organization header value."""

    request_timeout: float = 30.0
    """Timeout for a single completion attempt."""

    quota_timeout: float = 10.0
    """Timeout for each usage/subscription read."""

    def __post_init__(self) -> None:
        """Validate configuration after initialization."""
        if self.request_timeout <= 0:
            raise ValueError("request_timeout must be positive")
        if self.quota_timeout <= 0:
            raise ValueError("quota_timeout must be positive")
        self.base_url = self.base_url.rstrip("/")

    @classmethod
    def from_env(cls) -> "ProviderSettings":
        """Build settings from OPENAI_API_KEY, OPENAI_BASE_URL and OPENAI_ORG_ID."""
        return cls(
            api_key=os.environ.get("OPENAI_API_KEY") or None,
            base_url=os.environ.get("OPENAI_BASE_URL") or DEFAULT_BASE_URL,
            organization=os.environ.get("OPENAI_ORG_ID") or None,
        )

    @property
    def has_api_key(self) -> bool:
        return bool(self.api_key)

    @property
    def masked_api_key(self) -> str | None:
        """First three and last four characters of the key, or None if unset."""
        if not self.api_key:
            return None
        if len(self.api_key) <= 8:
            return "*" * len(self.api_key)
        return f"{self.api_key[:3]}...{self.api_key[-4:]}"


@dataclass(frozen=True)
class RetryPolicy:
    """
    Immutable retry configuration.

    Attempt ``n`` (n >= 1) waits ``delay_schedule[n - 1]`` before running;
    attempts beyond the schedule reuse its last entry.
    """

    max_retries: int = 3
    """Retries after the first attempt, so at most max_retries + 1 calls."""

    delay_schedule: tuple[float, ...] = (2.0, 4.0, 8.0)
    """Fixed waits between successive attempts."""

    def __post_init__(self) -> None:
        """Validate configuration after initialization."""
        if self.max_retries < 0:
            raise ValueError("max_retries must be non-negative")
        if not self.delay_schedule:
            raise ValueError("delay_schedule must contain at least one delay")
        if any(delay < 0 for delay in self.delay_schedule):
            raise ValueError("delay_schedule entries must be non-negative")

    def delay_for(self, attempt: int) -> float:
        """Scheduled wait before ``attempt`` (1-based retry number)."""
        if attempt < 1:
            return 0.0
        index = min(attempt - 1, len(self.delay_schedule) - 1)
        return self.delay_schedule[index]


@dataclass
class RateLimiterConfig:
    """Admission limits enforced by the RateLimiter."""

    max_concurrent: int = 5
    """Maximum number of requests in flight at once."""

    requests_per_minute: int = 60
    """Reservoir size, hard-reset every refresh interval."""

    min_spacing: float = 0.2
    """Minimum time between two dispatches."""

    reservoir_refresh_interval: float = 60.0
    """Length of the fixed reservoir window."""

    def __post_init__(self) -> None:
        """Validate configuration after initialization."""
        if self.max_concurrent < 1:
            raise ValueError("max_concurrent must be at least 1")
        if self.requests_per_minute < 1:
            raise ValueError("requests_per_minute must be at least 1")
        if self.min_spacing < 0:
            raise ValueError("min_spacing must be non-negative")
        if self.reservoir_refresh_interval <= 0:
            raise ValueError("reservoir_refresh_interval must be positive")


@dataclass
class QuotaConfig:
    """Quota monitoring thresholds and cadence."""

    enabled: bool = True
    """Disable to skip all usage/subscription reads."""

    cache_ttl: float = 300.0
    """How long a fetched QuotaInfo is served from cache."""

    check_every_n_requests: int = 10
    """Request-count cadence for quota checks from the request path."""

    info_threshold: float = 50.0
    """Usage percentage logged at info level (not added to warnings)."""

    warning_threshold: float = 80.0
    """Usage percentage that adds a warning entry."""

    critical_threshold: float = 90.0
    """Usage percentage that adds a critical entry."""

    def __post_init__(self) -> None:
        """Validate configuration after initialization."""
        if self.cache_ttl < 0:
            raise ValueError("cache_ttl must be non-negative")
        if self.check_every_n_requests < 1:
            raise ValueError("check_every_n_requests must be at least 1")
        if not (
            0 < self.info_threshold <= self.warning_threshold <= self.critical_threshold
        ):
            raise ValueError(
                "thresholds must satisfy 0 < info <= warning <= critical"
            )


@dataclass
class MaintenanceConfig:
    """Periodic job cadence."""

    enabled: bool = True

    status_report_interval: float = 300.0
    """How often the status snapshot is logged."""

    quota_refresh_interval: float = 1800.0
    """How often quota is re-read regardless of cache age."""

    watchdog_interval: float = 10.0
    """How often in-flight load is compared to the concurrency cap."""

    high_concurrency_ratio: float = 0.8
    """Fraction of max_concurrent at which the watchdog warns."""

    def __post_init__(self) -> None:
        """Validate configuration after initialization."""
        for name in (
            "status_report_interval",
            "quota_refresh_interval",
            "watchdog_interval",
        ):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} must be positive")
        if not 0 < self.high_concurrency_ratio <= 1.0:
            raise ValueError("high_concurrency_ratio must be between 0 and 1.0")


@dataclass
class ManagerConfig:
    """
    Top-level configuration for a RequestManager.

    This groups every component's settings so a single object can be built
    at application startup and handed to the manager.
    """

    provider: ProviderSettings = field(default_factory=ProviderSettings)
    retry: RetryPolicy = field(default_factory=RetryPolicy)
    limiter: RateLimiterConfig = field(default_factory=RateLimiterConfig)
    quota: QuotaConfig = field(default_factory=QuotaConfig)
    maintenance: MaintenanceConfig = field(default_factory=MaintenanceConfig)

    metrics_enabled: bool = True
    """Record Prometheus metrics."""

    prometheus_host: str = "127.0.0.1"
    """Host for the optional metrics exposition server."""

    prometheus_port: int | None = None
    """Start an exposition server on this port when set."""

    @classmethod
    def from_env(cls) -> "ManagerConfig":
        """Default configuration with provider settings read from the environment."""
        return cls(provider=ProviderSettings.from_env())


__all__ = [
    "DEFAULT_BASE_URL",
    "MaintenanceConfig",
    "ManagerConfig",
    "ProviderSettings",
    "QuotaConfig",
    "RateLimiterConfig",
    "RetryPolicy",
]
