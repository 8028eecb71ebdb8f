# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""
Protocol definitions for pluggable components.

- CompletionTransport: performs single provider calls (one network attempt
  per call, no retries of its own)
"""

from datetime import date
from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class CompletionTransport(Protocol):
    """
    Interface the RequestManager and QuotaMonitor use to reach the provider.

    Implementations must raise ProviderError subclasses for every failure so
    the retry executor can decide on retry eligibility.
    """

    async def create_chat_completion(self, request_data: dict[str, Any]) -> dict[str, Any]:
        """POST one chat completion and return the provider's JSON body."""
        ...

    async def get_usage(self, start_date: date, end_date: date) -> dict[str, Any]:
        """GET usage for the given date range."""
        ...

    async def get_subscription(self) -> dict[str, Any]:
        """GET subscription and billing limits."""
        ...

    async def aclose(self) -> None:
        """Release network resources."""
        ...


__all__ = ["CompletionTransport"]
