"""
Benchmark: Limiter and Manager Overhead

Measures the overhead the RateLimiter and RequestManager add on top of an
instant provider call. Spacing is disabled and the reservoir is large so
only the admission machinery is measured.

Usage:
    uv run pytest benchmarks/test_bench_limiter_overhead.py -v --no-cov
"""

import asyncio
import time

import pytest

from completion_throttle.config import (
    MaintenanceConfig,
    ManagerConfig,
    ProviderSettings,
    QuotaConfig,
    RateLimiterConfig,
)
from completion_throttle.limiter import RateLimiter
from completion_throttle.manager import RequestManager

BENCHMARK_LIMITS = RateLimiterConfig(
    max_concurrent=50, requests_per_minute=100_000, min_spacing=0.0
)


class InstantTransport:
    """Transport whose calls return immediately."""

    async def create_chat_completion(self, request_data):
        return {"choices": [{"message": {"content": "instant"}}]}

    async def get_usage(self, start_date, end_date):
        return {"total_usage": 0}

    async def get_subscription(self):
        return {"has_payment_method": True, "soft_limit_usd": 100.0}

    async def aclose(self):
        pass


async def instant_task():
    return {"result": "instant"}


class TestLimiterOverhead:
    """Benchmark admission overhead."""

    @pytest.mark.asyncio
    async def test_sequential_schedule_overhead(self):
        """Average cost of one uncontended admission."""
        async with RateLimiter(BENCHMARK_LIMITS) as limiter:
            # Warmup
            for _ in range(10):
                await limiter.schedule(instant_task)

            iterations = 1000
            start = time.perf_counter()
            for _ in range(iterations):
                await limiter.schedule(instant_task)
            elapsed = time.perf_counter() - start

        avg_ms = (elapsed / iterations) * 1000
        print("\n--- RateLimiter Sequential Overhead ---")
        print(f"Iterations: {iterations}")
        print(f"Average latency: {avg_ms:.4f}ms per request")
        print(f"Throughput: {iterations / elapsed:.1f} ops/sec")

        assert avg_ms < 1, f"Overhead too high: {avg_ms:.4f}ms"

    @pytest.mark.asyncio
    async def test_burst_overhead(self):
        """A burst far above the concurrency cap drains in FIFO order."""
        async with RateLimiter(BENCHMARK_LIMITS) as limiter:
            burst_size = 2000
            start = time.perf_counter()
            await asyncio.gather(*(limiter.schedule(instant_task) for _ in range(burst_size)))
            elapsed = time.perf_counter() - start

        print("\n--- RateLimiter Burst Overhead ---")
        print(f"Burst size: {burst_size}")
        print(f"Total time: {elapsed:.4f}s")
        print(f"Throughput: {burst_size / elapsed:.1f} ops/sec")

        assert limiter.done() == burst_size
        assert elapsed < 5, f"Burst too slow: {elapsed:.2f}s"


class TestManagerOverhead:
    """Benchmark the full send_request path with an instant transport."""

    @pytest.mark.asyncio
    async def test_send_request_overhead(self):
        config = ManagerConfig(
            provider=ProviderSettings(api_key="sk-benchmark-00000000"),
            limiter=BENCHMARK_LIMITS,
            quota=QuotaConfig(enabled=False),
            maintenance=MaintenanceConfig(enabled=False),
        )
        payload = {"model": "benchmark-model", "messages": [{"role": "user", "content": "hi"}]}

        async with RequestManager(config, transport=InstantTransport()) as manager:
            for _ in range(10):
                await manager.send_request(payload)

            iterations = 500
            start = time.perf_counter()
            for _ in range(iterations):
                await manager.send_request(payload)
            elapsed = time.perf_counter() - start

        avg_ms = (elapsed / iterations) * 1000
        print("\n--- RequestManager send_request Overhead ---")
        print(f"Iterations: {iterations}")
        print(f"Average latency: {avg_ms:.3f}ms per request")

        assert manager.stats.successful_requests == iterations + 10
        assert avg_ms < 5, f"Overhead too high: {avg_ms:.3f}ms"
