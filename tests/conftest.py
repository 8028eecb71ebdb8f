"""
Shared fixtures for the completion throttle test suite.

FakeTransport plays back scripted results for each endpoint so tests never
touch the network, and ``sleep_recorder`` replaces backoff sleeps with a
recording no-op.
"""

from __future__ import annotations

import asyncio
from collections import deque
from datetime import date
from typing import Any

import pytest

from completion_throttle.config import (
    MaintenanceConfig,
    ManagerConfig,
    ProviderSettings,
    QuotaConfig,
    RateLimiterConfig,
)

COMPLETION_BODY: dict[str, Any] = {
    "id": "chatcmpl-123",
    "object": "chat.completion",
    "choices": [
        {
            "index": 0,
            "message": {"role": "assistant", "content": "Hello there"},
            "finish_reason": "stop",
        }
    ],
}


def usage_body(total_dollars: float, daily_dollars: float = 0.0) -> dict[str, Any]:
    """Usage response in the provider's cents-based format."""
    return {
        "object": "list",
        "total_usage": total_dollars * 100,
        "daily_costs": [
            {
                "timestamp": 1760832000,
                "line_items": [{"name": "gpt-3.5-turbo", "cost": daily_dollars * 100}],
            }
        ],
    }


def subscription_body(
    soft_limit: float | None = 100.0,
    hard_limit: float | None = 120.0,
    has_payment_method: bool = True,
) -> dict[str, Any]:
    return {
        "object": "billing_subscription",
        "has_payment_method": has_payment_method,
        "soft_limit_usd": soft_limit,
        "hard_limit_usd": hard_limit,
        "access_until": 1798761600,
    }


class FakeTransport:
    """
    Scripted CompletionTransport.

    Each queued completion result is either a response dict or an exception
    instance to raise. Once the script runs out the default body is returned.
    """

    def __init__(self) -> None:
        self.completion_results: deque[Any] = deque()
        self.usage_result: Any = usage_body(10.0)
        self.subscription_result: Any = subscription_body()
        self.completion_calls: list[dict[str, Any]] = []
        self.usage_calls: list[tuple[date, date]] = []
        self.subscription_calls = 0
        self.closed = False
        self.gate: asyncio.Event | None = None
        self.in_flight = 0
        self.peak_in_flight = 0

    def script(self, *results: Any) -> None:
        self.completion_results.extend(results)

    async def create_chat_completion(self, request_data: dict[str, Any]) -> dict[str, Any]:
        if self.closed:
            raise RuntimeError("Cannot send a request, as the client has been closed.")
        self.completion_calls.append(request_data)
        self.in_flight += 1
        self.peak_in_flight = max(self.peak_in_flight, self.in_flight)
        try:
            if self.gate is not None:
                await self.gate.wait()
            else:
                await asyncio.sleep(0)
            result = (
                self.completion_results.popleft()
                if self.completion_results
                else COMPLETION_BODY
            )
        finally:
            self.in_flight -= 1
        if isinstance(result, BaseException):
            raise result
        return result

    async def get_usage(self, start_date: date, end_date: date) -> dict[str, Any]:
        self.usage_calls.append((start_date, end_date))
        await asyncio.sleep(0)
        if isinstance(self.usage_result, BaseException):
            raise self.usage_result
        return self.usage_result

    async def get_subscription(self) -> dict[str, Any]:
        self.subscription_calls += 1
        await asyncio.sleep(0)
        if isinstance(self.subscription_result, BaseException):
            raise self.subscription_result
        return self.subscription_result

    async def aclose(self) -> None:
        self.closed = True


class SleepRecorder:
    """Async stand-in for asyncio.sleep that records requested delays."""

    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)
        await asyncio.sleep(0)


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def sleep_recorder() -> SleepRecorder:
    return SleepRecorder()


@pytest.fixture
def request_data() -> dict[str, Any]:
    return {
        "model": "gpt-3.5-turbo",
        "messages": [{"role": "user", "content": "Hello"}],
        "max_tokens": 1000,
        "temperature": 0.7,
    }


@pytest.fixture
def manager_config() -> ManagerConfig:
    """Fast manager config: no spacing, no maintenance jobs."""
    return ManagerConfig(
        provider=ProviderSettings(api_key="sk-test-1234567890abcd"),
        limiter=RateLimiterConfig(min_spacing=0.0),
        quota=QuotaConfig(),
        maintenance=MaintenanceConfig(enabled=False),
    )


@pytest.fixture
def usage_payload():
    """Factory for usage response bodies, amounts in dollars."""
    return usage_body


@pytest.fixture
def subscription_payload():
    """Factory for subscription response bodies."""
    return subscription_body
