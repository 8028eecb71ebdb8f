# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""Completion Throttle - Request management for rate-limited completion APIs.

This library wraps an OpenAI-compatible chat-completion endpoint with
client-side throttling, fixed-schedule retries and quota monitoring.

Key Features:
    - Concurrency cap, minimum spacing and per-minute reservoir admission
    - Retries on a fixed 2s/4s/8s schedule, honoring longer Retry-After
    - Error classification with caller-safe messages (English and Arabic)
    - TTL-cached quota checks with escalating usage warnings
    - Periodic status, quota and concurrency maintenance jobs
    - Prometheus metrics

Quick Start:
    >>> from completion_throttle import ManagerConfig, RequestManager
    >>>
    >>> async with RequestManager(ManagerConfig.from_env()) as manager:
    ...     body = await manager.send_request(
    ...         {"model": "gpt-3.5-turbo", "messages": messages,
    ...          "max_tokens": 1000, "temperature": 0.7}
    ...     )
    ...     print(extract_message(body))

Main Exports:
    - RequestManager, extract_message: Public entry point
    - RateLimiter, RetryExecutor, QuotaMonitor: Building blocks
    - ManagerConfig and component configs
    - ProviderError hierarchy and ErrorCategory
    - CompletionClient: httpx transport

Version: 1.0.0
"""

__version__ = "1.0.0"

from .classification import classify_error, classify_response, parse_retry_after
from .client import CompletionClient
from .config import (
    MaintenanceConfig,
    ManagerConfig,
    ProviderSettings,
    QuotaConfig,
    RateLimiterConfig,
    RetryPolicy,
)
from .exceptions import (
    BadRequestError,
    ConfigurationError,
    EmptyResponseError,
    ErrorCategory,
    InvalidCredentialsError,
    NetworkError,
    ProviderError,
    ProviderTimeoutError,
    QuotaExceededError,
    RateLimiterClosedError,
    RateLimitError,
    ServerError,
    ThrottleError,
    UnknownProviderError,
    user_message,
)
from .limiter import RateLimiter
from .maintenance import MaintenanceScheduler
from .manager import RequestManager, extract_message
from .observability import MetricsCollector
from .protocols import CompletionTransport
from .quota import QuotaMonitor
from .retry import RetryExecutor
from .types import QuotaInfo, Stats, StatusSnapshot

__all__ = [
    "BadRequestError",
    # Transport
    "CompletionClient",
    "CompletionTransport",
    "ConfigurationError",
    "EmptyResponseError",
    # Errors
    "ErrorCategory",
    "InvalidCredentialsError",
    "MaintenanceConfig",
    "MaintenanceScheduler",
    # Config
    "ManagerConfig",
    "MetricsCollector",
    "NetworkError",
    "ProviderError",
    "ProviderSettings",
    "ProviderTimeoutError",
    "QuotaConfig",
    "QuotaExceededError",
    "QuotaInfo",
    "QuotaMonitor",
    "RateLimitError",
    # Components
    "RateLimiter",
    "RateLimiterClosedError",
    "RateLimiterConfig",
    # Manager
    "RequestManager",
    "RetryExecutor",
    "RetryPolicy",
    "ServerError",
    "Stats",
    "StatusSnapshot",
    "ThrottleError",
    "UnknownProviderError",
    "classify_error",
    "classify_response",
    "extract_message",
    "parse_retry_after",
    "user_message",
]
