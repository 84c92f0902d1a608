import asyncio
import unittest

from blockfeed.adapters.chain.rate_limiter import AsyncRateLimiter
from blockfeed.core.errors import DataSourceError, RateLimitError

TOLERANCE = 0.005


class AsyncRateLimiterTests(unittest.IsolatedAsyncioTestCase):
    def _recording_task(self, starts, value, delay=0.0, error=None):
        async def task():
            starts.append((value, asyncio.get_running_loop().time()))
            if delay:
                await asyncio.sleep(delay)
            if error is not None:
                raise error
            return value

        return task

    def test_rejects_non_positive_rate(self) -> None:
        with self.assertRaises(ValueError):
            AsyncRateLimiter(0)
        with self.assertRaises(ValueError):
            AsyncRateLimiter(-5)

    async def test_spacing_holds_for_sequential_submits(self) -> None:
        limiter = AsyncRateLimiter(20)   # 50ms
        starts = []

        await limiter.submit(self._recording_task(starts, 1))
        await limiter.submit(self._recording_task(starts, 2))
        await limiter.submit(self._recording_task(starts, 3))

        times = [t for _, t in starts]
        for a, b in zip(times, times[1:]):
            self.assertGreaterEqual(b - a, limiter.delay - TOLERANCE)

    async def test_task_raising_cancelled_does_not_stall_queue(self) -> None:
        limiter = AsyncRateLimiter(1000)
        starts = []

        async def cancelled_inside():
            raise asyncio.CancelledError()

        bad = limiter.submit(cancelled_inside)
        ok = limiter.submit(self._recording_task(starts, "after"))

        self.assertEqual(await asyncio.wait_for(ok, timeout=1), "after")
        self.assertTrue(bad.cancelled())
        self.assertEqual(limiter.pending, 0)

    async def test_close_cancels_running_task_future(self) -> None:
        limiter = AsyncRateLimiter(1000)
        never = asyncio.Event()

        async def blocked():
            await never.wait()

        fut = limiter.submit(blocked)
        queued = limiter.submit(blocked)
        await asyncio.sleep(0.01)

        await limiter.close()

        self.assertTrue(fut.cancelled())
        self.assertTrue(queued.cancelled())
        self.assertFalse(limiter.draining)

    async def test_results_go_to_their_own_callers(self) -> None:
        limiter = AsyncRateLimiter(200)
        starts = []
        futs = [limiter.submit(self._recording_task(starts, i)) for i in range(5)]

        results = await asyncio.gather(*futs)

        self.assertEqual(results, [0, 1, 2, 3, 4])
        self.assertEqual([v for v, _ in starts], [0, 1, 2, 3, 4])

    async def test_start_spacing_respects_rate(self) -> None:
        limiter = AsyncRateLimiter(50)   # 20ms
        starts = []
        futs = [limiter.submit(self._recording_task(starts, i)) for i in range(4)]
        await asyncio.gather(*futs)

        times = [t for _, t in starts]
        for a, b in zip(times, times[1:]):
            self.assertGreaterEqual(b - a, limiter.delay - TOLERANCE)

    async def test_one_task_at_a_time(self) -> None:
        limiter = AsyncRateLimiter(1000)
        running = 0
        peak = 0

        async def task():
            nonlocal running, peak
            running += 1
            peak = max(peak, running)
            await asyncio.sleep(0.01)
            running -= 1

        await asyncio.gather(*[limiter.submit(task) for _ in range(5)])

        self.assertEqual(peak, 1)

    async def test_failure_is_isolated_to_its_caller(self) -> None:
        limiter = AsyncRateLimiter(500)
        starts = []
        ok_1 = limiter.submit(self._recording_task(starts, "a"))
        bad = limiter.submit(self._recording_task(starts, "b", error=DataSourceError("node down")))
        ok_2 = limiter.submit(self._recording_task(starts, "c"))

        self.assertEqual(await ok_1, "a")
        with self.assertRaises(DataSourceError):
            await bad
        self.assertEqual(await ok_2, "c")
        self.assertEqual([v for v, _ in starts], ["a", "b", "c"])

    async def test_rate_limit_error_triggers_cooldown(self) -> None:
        limiter = AsyncRateLimiter(1000, rate_limit_cooldown=0.05)
        starts = []
        bad = limiter.submit(self._recording_task(starts, "a", error=RateLimitError("429")))
        ok = limiter.submit(self._recording_task(starts, "b"))

        with self.assertRaises(RateLimitError):
            await bad
        await ok

        gap = starts[1][1] - starts[0][1]
        self.assertGreaterEqual(gap, 0.05 - TOLERANCE)

    async def test_rate_limit_message_also_counts(self) -> None:
        limiter = AsyncRateLimiter(1000, rate_limit_cooldown=0.05)
        starts = []
        bad = limiter.submit(self._recording_task(starts, "a", error=RuntimeError("Rate limit exceeded")))
        ok = limiter.submit(self._recording_task(starts, "b"))

        with self.assertRaises(RuntimeError):
            await bad
        await ok

        self.assertGreaterEqual(starts[1][1] - starts[0][1], 0.05 - TOLERANCE)

    async def test_drain_loop_restarts_after_idle(self) -> None:
        limiter = AsyncRateLimiter(1000)
        starts = []
        await limiter.submit(self._recording_task(starts, 1))
        await asyncio.sleep(0)
        self.assertFalse(limiter.draining)
        self.assertEqual(limiter.pending, 0)

        self.assertEqual(await limiter.submit(self._recording_task(starts, 2)), 2)

    async def test_cancelled_entry_is_skipped(self) -> None:
        limiter = AsyncRateLimiter(1000)
        starts = []
        first = limiter.submit(self._recording_task(starts, 1, delay=0.01))
        skipped = limiter.submit(self._recording_task(starts, 2))
        last = limiter.submit(self._recording_task(starts, 3))
        skipped.cancel()

        await first
        await last

        self.assertEqual([v for v, _ in starts], [1, 3])

    async def test_close_cancels_pending(self) -> None:
        limiter = AsyncRateLimiter(1)   # 1s spacing, second task never starts in time
        starts = []
        first = limiter.submit(self._recording_task(starts, 1))
        second = limiter.submit(self._recording_task(starts, 2))
        await first

        await limiter.close()

        self.assertTrue(second.cancelled())
        self.assertEqual(limiter.pending, 0)
        self.assertFalse(limiter.draining)


if __name__ == "__main__":
    unittest.main()
