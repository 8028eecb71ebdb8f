# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""
RequestManager: the public entry point for provider calls.

Each call flows through the limiter and the retry executor::

    send_request -> RateLimiter.schedule -> RetryExecutor.execute(transport)

The manager owns the process-wide Stats, triggers quota checks at fixed
checkpoints and exposes a side-effect-free status snapshot. It is an
explicit object created by the application root; nothing happens at import
time.
"""

import asyncio
import logging
import time
from collections.abc import Callable
from datetime import datetime, timezone
from functools import partial
from typing import Any

from typing_extensions import Self

from .client import CompletionClient
from .config import ManagerConfig
from .exceptions import (
    QUOTA_SENSITIVE_CATEGORIES,
    ConfigurationError,
    EmptyResponseError,
    ProviderError,
    ThrottleError,
)
from .limiter import RateLimiter
from .maintenance import MaintenanceScheduler
from .observability import (
    IN_FLIGHT_REQUESTS,
    QUEUED_REQUESTS,
    RATE_LIMIT_HITS_TOTAL,
    REQUESTS_FAILED_TOTAL,
    REQUESTS_SUCCEEDED_TOTAL,
    REQUESTS_TOTAL,
    RESERVOIR_REMAINING,
    RESPONSE_TIME_SECONDS,
    RETRIES_TOTAL,
    MetricsCollector,
)
from .protocols import CompletionTransport
from .quota import QuotaMonitor
from .retry import RetryExecutor, SleepFunc
from .types.quota import QuotaInfo
from .types.request import generate_request_id
from .types.stats import Stats
from .types.status import (
    CredentialStatus,
    PolicyStatus,
    QueueStatus,
    RateLimitStatus,
    StatsSnapshot,
    StatusSnapshot,
)

logger = logging.getLogger(__name__)


def extract_message(response: dict[str, Any]) -> str:
    """
    Return ``choices[0].message.content`` from a completion body.

    Raises:
        EmptyResponseError: If the body carries no assistant message
    """
    try:
        content = response["choices"][0]["message"]["content"]
    except (KeyError, IndexError, TypeError) as e:
        raise EmptyResponseError("No response from provider") from e
    if not content:
        raise EmptyResponseError("No response from provider")
    return str(content)


class RequestManager:
    """
    Admits, throttles, retries and accounts for chat-completion calls.

    The manager is responsible for:
    - Generating request ids and counting every logical request
    - Delegating admission to the RateLimiter and retries to the RetryExecutor
    - Maintaining Stats (success/failure, retries, 429 hits, response time)
    - Triggering quota checks every Nth request and after rate/quota failures
    - Running the maintenance jobs between ``start()`` and ``shutdown()``

    Example:
        >>> async with RequestManager(ManagerConfig.from_env()) as manager:
        ...     body = await manager.send_request(
        ...         {"model": "gpt-3.5-turbo", "messages": messages,
        ...          "max_tokens": 1000, "temperature": 0.7}
        ...     )
        ...     print(extract_message(body))
    """

    def __init__(
        self,
        config: ManagerConfig | None = None,
        transport: CompletionTransport | None = None,
        metrics_collector: MetricsCollector | None = None,
        sleep: SleepFunc = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """
        Initialize the manager.

        Args:
            config: Configuration for every component
            transport: Provider transport; an httpx CompletionClient built
                from ``config.provider`` is used (and owned) when omitted
            metrics_collector: Collector to record into; created when
                metrics are enabled and none is given
            sleep: Backoff sleep handed to the retry executor
            clock: Monotonic clock for response-time measurement

        Raises:
            ConfigurationError: If a metrics port is set with metrics disabled
        """
        self.config = config or ManagerConfig()
        if self.config.prometheus_port is not None and not self.config.metrics_enabled:
            raise ConfigurationError("prometheus_port is set but metrics are disabled")
        self._owns_transport = transport is None
        self._transport: CompletionTransport = transport or CompletionClient(
            self.config.provider
        )
        self._clock = clock

        if metrics_collector is None and self.config.metrics_enabled:
            metrics_collector = MetricsCollector()
        self.metrics_collector = metrics_collector

        self.stats = Stats()
        self.limiter = RateLimiter(self.config.limiter)
        self.retry_executor = RetryExecutor(
            self.config.retry, sleep=sleep, on_retry=self._on_retry
        )
        self.quota_monitor = QuotaMonitor(
            self._transport, self.config.quota, metrics_collector=metrics_collector
        )
        self.maintenance = MaintenanceScheduler(self, self.config.maintenance)

        self._background_tasks: set[asyncio.Task[Any]] = set()
        self._last_counted_quota: QuotaInfo | None = None
        self._running = False
        self._started_at: float | None = None

    # === Lifecycle ===

    def is_running(self) -> bool:
        return self._running

    async def start(self) -> None:
        """Start the reservoir timer, maintenance jobs and metrics server."""
        if self._running:
            return
        if not self.config.provider.has_api_key:
            logger.warning("Provider API key is not configured; requests will fail")

        await self.limiter.start()
        if self.config.maintenance.enabled:
            await self.maintenance.start()
        if self.metrics_collector and self.config.prometheus_port is not None:
            self.metrics_collector.start_http_server(
                self.config.prometheus_host, self.config.prometheus_port
            )

        self._running = True
        self._started_at = self._clock()
        logger.info(f"{self.__class__.__name__} started")

    async def shutdown(self) -> None:
        """
        Stop jobs and the limiter, then release the transport.

        Requests still queued in the limiter are rejected; in-flight ones,
        retries included, finish before the transport is closed.
        """
        if not self._running:
            return
        self._running = False
        logger.info(f"Shutting down {self.__class__.__name__}")

        await self.maintenance.stop()
        await self.limiter.stop()
        if self.limiter.running():
            logger.info(
                f"Waiting for {self.limiter.running()} in-flight requests to finish"
            )
        await self.limiter.wait_idle()

        for task in list(self._background_tasks):
            if not task.done():
                task.cancel()
        if self._background_tasks:
            await asyncio.gather(*self._background_tasks, return_exceptions=True)
        self._background_tasks.clear()

        if self._owns_transport:
            await self._transport.aclose()
        logger.info(f"{self.__class__.__name__} stopped")

    async def __aenter__(self) -> Self:
        await self.start()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: Any,
    ) -> None:
        await self.shutdown()

    # === Request path ===

    async def send_request(
        self, request_data: dict[str, Any], request_id: str | None = None
    ) -> dict[str, Any]:
        """
        Send one chat completion through the limiter and retry executor.

        Args:
            request_data: ``{model, messages, max_tokens, temperature}``
            request_id: Optional caller-supplied id; generated when omitted

        Returns:
            The provider's response body

        Raises:
            ProviderError: Classified error with a caller-safe message once
                retries are exhausted or a non-retryable failure occurs
            ThrottleError: If the manager is not running or is shut down
                while the request is queued
        """
        if not self._running:
            raise ThrottleError("RequestManager is not running")

        request_id = request_id or generate_request_id()
        messages = request_data.get("messages") or []
        logger.info(
            f"Sending completion request {request_id} "
            f"(model={request_data.get('model')}, messages={len(messages)})"
        )

        self.stats.total_requests += 1
        self.stats.last_request_time = datetime.now(timezone.utc)
        if self.metrics_collector:
            self.metrics_collector.inc_counter(REQUESTS_TOTAL)

        if self.stats.total_requests % self.config.quota.check_every_n_requests == 0:
            self._trigger_quota_check(force=False)

        started = self._clock()
        try:
            response: dict[str, Any] = await self.limiter.schedule(
                self.retry_executor.execute,
                partial(self._attempt, request_data, request_id),
                request_id,
            )
        except ProviderError as e:
            self._record_completion(started, success=False)
            if self.metrics_collector:
                self.metrics_collector.inc_counter(
                    REQUESTS_FAILED_TOTAL, labels={"category": e.category.value}
                )
            logger.error(
                f"Completion request {request_id} failed: {e.category.value} "
                f"after {e.attempts} attempt(s) ({e.detail})"
            )
            if e.category in QUOTA_SENSITIVE_CATEGORIES:
                self._trigger_quota_check(force=True)
            raise
        except ThrottleError:
            self._record_completion(started, success=False)
            raise

        self._record_completion(started, success=True)
        if self.metrics_collector:
            self.metrics_collector.inc_counter(REQUESTS_SUCCEEDED_TOTAL)
        logger.info(f"Completion request {request_id} succeeded")
        return response

    async def _attempt(
        self, request_data: dict[str, Any], request_id: str
    ) -> dict[str, Any]:
        """One network attempt; counts 429s before the executor classifies them."""
        try:
            return await self._transport.create_chat_completion(request_data)
        except ProviderError as e:
            if e.status_code == 429:
                self.stats.rate_limit_hits += 1
                if self.metrics_collector:
                    self.metrics_collector.inc_counter(RATE_LIMIT_HITS_TOTAL)
                logger.warning(
                    f"Rate limit hit for {request_id} "
                    f"(category={e.category.value}, retry_after={e.retry_after})"
                )
            raise

    def _on_retry(self, error: ProviderError, next_attempt: int) -> None:
        self.stats.retried_requests += 1
        if self.metrics_collector:
            self.metrics_collector.inc_counter(
                RETRIES_TOTAL, labels={"category": error.category.value}
            )

    def _record_completion(self, started: float, success: bool) -> None:
        elapsed = self._clock() - started
        self.stats.record_response_time(elapsed * 1000)
        if success:
            self.stats.successful_requests += 1
        else:
            self.stats.failed_requests += 1
        if self.metrics_collector:
            self.metrics_collector.observe_histogram(RESPONSE_TIME_SECONDS, elapsed)
        self.update_limiter_gauges()

    # === Quota ===

    async def refresh_quota(self, force: bool = False) -> QuotaInfo | None:
        """
        Run a quota check and count it in ``quota_warnings`` if it warns.

        Returns None when quota monitoring is disabled.
        """
        if not self.config.quota.enabled:
            return None
        info = await self.quota_monitor.check_and_update_quota(force=force)
        if info.warnings and info is not self._last_counted_quota:
            self.stats.quota_warnings += 1
            self._last_counted_quota = info
        return info

    def _trigger_quota_check(self, force: bool) -> None:
        """Run a quota check in the background so the caller never waits."""
        if not self.config.quota.enabled or not self._running:
            return
        task = asyncio.create_task(self.refresh_quota(force=force))
        self._background_tasks.add(task)
        task.add_done_callback(self._on_background_task_done)

    def _on_background_task_done(self, task: asyncio.Task[Any]) -> None:
        self._background_tasks.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.error(f"Background quota check failed: {error}")

    # === Status ===

    def reset_stats(self) -> StatsSnapshot:
        """Reset every counter and return the values from before the reset."""
        snapshot = StatsSnapshot(**self.stats.to_dict())
        self.stats.reset()
        logger.info("Stats reset")
        return snapshot

    def update_limiter_gauges(self) -> None:
        if not self.metrics_collector:
            return
        self.metrics_collector.set_gauge(IN_FLIGHT_REQUESTS, self.limiter.running())
        self.metrics_collector.set_gauge(QUEUED_REQUESTS, self.limiter.queued())
        self.metrics_collector.set_gauge(RESERVOIR_REMAINING, self.limiter.reservoir)

    def get_status(self) -> StatusSnapshot:
        """Composite read-only snapshot. Never raises, never mutates state."""
        limiter_config = self.limiter.config
        provider = self.config.provider
        return StatusSnapshot(
            queue=QueueStatus(
                queued=self.limiter.queued(),
                running=self.limiter.running(),
                done=self.limiter.done(),
                failed=self.limiter.failed(),
            ),
            rate_limit=RateLimitStatus(
                reservoir=self.limiter.reservoir,
                requests_per_minute=limiter_config.requests_per_minute,
            ),
            policy=PolicyStatus(
                max_retries=self.retry_executor.policy.max_retries,
                delay_schedule=self.retry_executor.policy.delay_schedule,
                max_concurrent=limiter_config.max_concurrent,
                min_spacing=limiter_config.min_spacing,
            ),
            stats=StatsSnapshot(**self.stats.to_dict()),
            quota=self.quota_monitor.last_info,
            credentials=CredentialStatus(
                configured=provider.has_api_key,
                masked_key=provider.masked_api_key,
                base_url=provider.base_url,
                organization=provider.organization,
            ),
            running=self._running,
        )

    def get_health(self) -> dict[str, Any]:
        """
        Health summary for a liveness endpoint.

        ``status`` is "healthy" while running with credentials configured
        and no critical quota warning, otherwise "degraded".
        """
        quota = self.quota_monitor.last_info
        quota_critical = quota is not None and quota.has_critical_warning
        healthy = (
            self._running and self.config.provider.has_api_key and not quota_critical
        )
        uptime = (
            self._clock() - self._started_at
            if self._running and self._started_at is not None
            else 0.0
        )
        return {
            "status": "healthy" if healthy else "degraded",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "uptime": uptime,
            "queue": {
                "size": self.limiter.queued(),
                "running": self.limiter.running(),
                "done": self.limiter.done(),
                "failed": self.limiter.failed(),
            },
            "quota_critical": quota_critical,
        }


__all__ = ["RequestManager", "extract_message"]
