# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""
Admission control for outbound provider calls.

The RateLimiter admits a unit of work only when three conditions hold at
once:

1. fewer than ``max_concurrent`` tasks are in flight,
2. the per-minute reservoir has a token left,
3. ``min_spacing`` has elapsed since the previous dispatch.

The reservoir is a fixed window: ``refill()`` hard-resets it to
``requests_per_minute`` and ``start()`` runs a background task that refills
it every ``reservoir_refresh_interval``. A consumed token is never refunded,
even when the task fails.

Waiters are admitted in submission order. The wait queue is unbounded.
"""

import asyncio
import logging
import time
from collections import deque
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

from typing_extensions import Self

from .config import RateLimiterConfig
from .exceptions import RateLimiterClosedError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class RateLimiter:
    """
    Concurrency cap + fixed-window reservoir + minimum spacing.

    Example:
        >>> limiter = RateLimiter(RateLimiterConfig(max_concurrent=5))
        >>> async with limiter:
        ...     body = await limiter.schedule(client.create_chat_completion, payload)
    """

    def __init__(
        self,
        config: RateLimiterConfig | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """
        Initialize the limiter.

        Args:
            config: Admission limits
            clock: Monotonic clock used for spacing decisions
        """
        self.config = config or RateLimiterConfig()
        self._clock = clock

        self._reservoir = self.config.requests_per_minute
        self._running = 0
        self._done = 0
        self._failed = 0
        self._last_dispatch_at: float | None = None

        self._waiters: deque[asyncio.Future[None]] = deque()
        self._spacing_handle: asyncio.TimerHandle | None = None
        self._refill_task: asyncio.Task[None] | None = None
        self._closed = False
        self._idle = asyncio.Event()
        self._idle.set()

    # === Observability ===

    def queued(self) -> int:
        """Tasks waiting for admission."""
        return sum(1 for fut in self._waiters if not fut.done())

    def running(self) -> int:
        """Tasks admitted and not yet finished."""
        return self._running

    def done(self) -> int:
        """Tasks that finished successfully."""
        return self._done

    def failed(self) -> int:
        """Tasks that finished by raising."""
        return self._failed

    @property
    def reservoir(self) -> int:
        """Tokens left in the current window."""
        return self._reservoir

    @property
    def last_dispatch_at(self) -> float | None:
        return self._last_dispatch_at

    def is_running(self) -> bool:
        """Whether the refill timer is active."""
        return self._refill_task is not None and not self._refill_task.done()

    async def wait_idle(self) -> None:
        """Wait until no admitted task is still in flight."""
        await self._idle.wait()

    # === Scheduling ===

    async def schedule(
        self, task: Callable[..., Awaitable[T]], *args: Any, **kwargs: Any
    ) -> T:
        """
        Wait for admission, then run ``task(*args, **kwargs)``.

        Returns:
            Whatever the task returns

        Raises:
            RateLimiterClosedError: If the limiter was stopped before admission
            Exception: Anything the task raises is propagated unchanged
        """
        await self._acquire()
        try:
            result = await task(*args, **kwargs)
        except BaseException:
            self._failed += 1
            raise
        else:
            self._done += 1
            return result
        finally:
            self._release()

    async def _acquire(self) -> None:
        if self._closed:
            raise RateLimiterClosedError("Rate limiter is stopped")

        loop = asyncio.get_running_loop()
        waiter: asyncio.Future[None] = loop.create_future()
        self._waiters.append(waiter)
        self._dispatch()

        try:
            await waiter
        except asyncio.CancelledError:
            if waiter.done() and not waiter.cancelled() and waiter.exception() is None:
                # Admitted in the same tick the caller was cancelled.
                self._release()
            else:
                self._remove_waiter(waiter)
            raise

    def _release(self) -> None:
        self._running -= 1
        if self._running == 0:
            self._idle.set()
        self._dispatch()

    def _remove_waiter(self, waiter: asyncio.Future[None]) -> None:
        try:
            self._waiters.remove(waiter)
        except ValueError:
            pass

    def _dispatch(self) -> None:
        """Admit as many waiters as capacity, reservoir and spacing allow."""
        while self._waiters:
            waiter = self._waiters[0]
            if waiter.done():
                self._waiters.popleft()
                continue

            if self._running >= self.config.max_concurrent:
                return
            if self._reservoir <= 0:
                return

            now = self._clock()
            if self._last_dispatch_at is not None:
                wait = self._last_dispatch_at + self.config.min_spacing - now
                if wait > 0:
                    self._schedule_spacing_wakeup(wait)
                    return

            self._waiters.popleft()
            self._reservoir -= 1
            self._running += 1
            self._idle.clear()
            self._last_dispatch_at = now
            waiter.set_result(None)

    def _schedule_spacing_wakeup(self, wait: float) -> None:
        if self._spacing_handle is not None:
            return
        loop = asyncio.get_running_loop()
        self._spacing_handle = loop.call_later(wait, self._on_spacing_elapsed)

    def _on_spacing_elapsed(self) -> None:
        self._spacing_handle = None
        self._dispatch()

    # === Reservoir ===

    def refill(self) -> None:
        """Hard-reset the reservoir to the per-minute limit and admit waiters."""
        previous = self._reservoir
        self._reservoir = self.config.requests_per_minute
        if previous == 0 and self._waiters:
            logger.debug(
                f"Reservoir refilled to {self._reservoir} with "
                f"{self.queued()} requests waiting"
            )
        self._dispatch()

    async def _refill_loop(self) -> None:
        interval = self.config.reservoir_refresh_interval
        while True:
            await asyncio.sleep(interval)
            self.refill()

    # === Lifecycle ===

    async def start(self) -> None:
        """Start the reservoir refill timer."""
        if self._closed:
            raise RateLimiterClosedError("Rate limiter is stopped")
        if self.is_running():
            return
        self._refill_task = asyncio.create_task(self._refill_loop())
        logger.info(
            f"RateLimiter started (max_concurrent={self.config.max_concurrent}, "
            f"requests_per_minute={self.config.requests_per_minute}, "
            f"min_spacing={self.config.min_spacing}s)"
        )

    async def stop(self) -> None:
        """
        Stop the refill timer and reject every request still waiting.

        Tasks already in flight are left to finish.
        """
        if self._closed:
            return
        self._closed = True

        if self._spacing_handle is not None:
            self._spacing_handle.cancel()
            self._spacing_handle = None

        if self._refill_task is not None:
            self._refill_task.cancel()
            try:
                await self._refill_task
            except asyncio.CancelledError:
                pass
            self._refill_task = None

        rejected = 0
        while self._waiters:
            waiter = self._waiters.popleft()
            if not waiter.done():
                waiter.set_exception(
                    RateLimiterClosedError("Rate limiter stopped while request was queued")
                )
                rejected += 1

        logger.info(f"RateLimiter stopped ({rejected} queued requests rejected)")

    async def __aenter__(self) -> Self:
        await self.start()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: Any,
    ) -> None:
        await self.stop()


__all__ = ["RateLimiter"]
