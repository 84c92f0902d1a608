from __future__ import annotations

import asyncio
import logging
import random
import time
from collections import deque
from typing import Any, Awaitable, Callable, Deque, Optional, Tuple

from blockfeed.config.settings import RATE_LIMIT_COOLDOWN_SEC
from blockfeed.core.errors import is_rate_limit_error


logger = logging.getLogger(__name__)

Task = Callable[[], Awaitable[Any]]


class AsyncRateLimiter:
    """
    Serialized FIFO task queue with a fixed spacing between task starts.

    Exactly one task runs at a time. A task's failure is delivered to its own
    future only; the drain loop keeps going. No retries happen here.
    """

    def __init__(
        self,
        requests_per_sec: float,
        rate_limit_cooldown: float = RATE_LIMIT_COOLDOWN_SEC,
    ) -> None:
        if requests_per_sec <= 0:
            raise ValueError("requests_per_sec must be > 0")
        self._delay = 1.0 / requests_per_sec
        self._cooldown = rate_limit_cooldown
        self._queue: Deque[Tuple[Task, asyncio.Future]] = deque()
        self._draining = False
        self._drain_task: Optional[asyncio.Task] = None
        self._current: Optional[asyncio.Future] = None
        self._last_start: Optional[float] = None

    @property
    def delay(self) -> float:
        return self._delay

    @property
    def pending(self) -> int:
        return len(self._queue)

    @property
    def draining(self) -> bool:
        return self._draining

    def submit(self, task: Task) -> asyncio.Future:
        loop = asyncio.get_running_loop()
        fut = loop.create_future()
        self._queue.append((task, fut))
        if not self._draining:
            self._draining = True
            self._drain_task = loop.create_task(self._drain())
        return fut

    async def close(self) -> None:
        task = self._drain_task
        if task is not None and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        while self._queue:
            _, fut = self._queue.popleft()
            if not fut.done():
                fut.cancel()
        self._draining = False

    # ---------- internal ----------

    async def _drain(self) -> None:
        loop = asyncio.get_running_loop()
        try:
            while self._queue:
                task, fut = self._queue.popleft()
                self._current = fut
                if fut.cancelled():
                    continue

                # spacing is measured from the previous start, across restarts
                if self._last_start is not None:
                    sleep_for = self._delay - (loop.time() - self._last_start)
                    if sleep_for > 0:
                        await asyncio.sleep(sleep_for)
                        if fut.cancelled():
                            continue

                self._last_start = loop.time()
                await self._run(task, fut)
        finally:
            if self._current is not None and not self._current.done():
                self._current.cancel()
            self._current = None
            self._draining = False

    async def _run(self, task: Task, fut: asyncio.Future) -> None:
        try:
            result = await task()
        except asyncio.CancelledError:
            if not fut.done():
                fut.cancel()
            current = asyncio.current_task()
            if current is not None and current.cancelling():
                raise
            return
        except Exception as e:
            if is_rate_limit_error(e):
                logger.warning("Rate limited upstream, cooling down %.1fs: %s", self._cooldown, e)
                await asyncio.sleep(self._cooldown)
            if not fut.done():
                fut.set_exception(e)
            return

        if not fut.done():
            fut.set_result(result)


def backoff_sleep(attempt: int, base: float = 0.5, cap: float = 8.0) -> float:
    t = min(cap, base * (2 ** attempt))
    t *= 0.7 + random.random() * 0.6
    time.sleep(t)
    return t
