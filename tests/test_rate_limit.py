"""Fixed-window rate limiting and progressive delay, driven by a fake clock."""

import threading
import unittest

from bitebox.services.rate_limit import FixedWindowCounter, RateLimiter, SpeedLimiter


class FakeClock:
    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class TestFixedWindowCounter(unittest.TestCase):
    def test_counts_per_key_and_resets_after_window(self) -> None:
        clock = FakeClock()
        counter = FixedWindowCounter(60, clock=clock)
        self.assertEqual(counter.hit("a")[0], 1)
        self.assertEqual(counter.hit("a")[0], 2)
        self.assertEqual(counter.hit("b")[0], 1)
        clock.advance(30)
        hits, reset_after = counter.hit("a")
        self.assertEqual(hits, 3)
        self.assertEqual(reset_after, 30)
        clock.advance(30)
        self.assertEqual(counter.hit("a")[0], 1)

    def test_prune_drops_finished_windows(self) -> None:
        clock = FakeClock()
        counter = FixedWindowCounter(10, clock=clock)
        counter.hit("a")
        clock.advance(5)
        counter.hit("b")
        clock.advance(6)
        self.assertEqual(counter.prune(), 1)
        self.assertEqual(counter.hit("b")[0], 2)

    def test_hits_prune_finished_windows_inline(self) -> None:
        clock = FakeClock()
        counter = FixedWindowCounter(60, clock=clock, prune_every=3)
        counter.hit("10.0.0.1")
        counter.hit("10.0.0.2")
        clock.advance(61)
        counter.hit("10.0.0.3")
        self.assertEqual(len(counter), 1)

    def test_no_prune_before_threshold(self) -> None:
        clock = FakeClock()
        counter = FixedWindowCounter(60, clock=clock, prune_every=10)
        counter.hit("10.0.0.1")
        clock.advance(61)
        counter.hit("10.0.0.2")
        self.assertEqual(len(counter), 2)

    def test_concurrent_hits_are_all_counted(self) -> None:
        counter = FixedWindowCounter(3600)
        barrier = threading.Barrier(20)

        def worker() -> None:
            barrier.wait()
            for _ in range(50):
                counter.hit("shared")

        threads = [threading.Thread(target=worker) for _ in range(20)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        self.assertEqual(counter.hit("shared")[0], 1001)


class TestRateLimiter(unittest.TestCase):
    def test_sixth_auth_attempt_refused(self) -> None:
        clock = FakeClock()
        limiter = RateLimiter(5, 900, "Too many authentication attempts", clock=clock)
        results = [limiter.hit("10.0.0.1") for _ in range(6)]
        self.assertTrue(all(r.allowed for r in results[:5]))
        self.assertFalse(results[5].allowed)
        self.assertEqual(results[4].remaining, 0)
        self.assertEqual(results[5].headers()["RateLimit-Remaining"], "0")
        self.assertEqual(results[5].headers()["RateLimit-Limit"], "5")

    def test_other_clients_unaffected(self) -> None:
        limiter = RateLimiter(1, 900, "limited", clock=FakeClock())
        limiter.hit("10.0.0.1")
        self.assertFalse(limiter.hit("10.0.0.1").allowed)
        self.assertTrue(limiter.hit("10.0.0.2").allowed)

    def test_allowed_again_in_next_window(self) -> None:
        clock = FakeClock()
        limiter = RateLimiter(1, 900, "limited", clock=clock)
        limiter.hit("c")
        self.assertFalse(limiter.hit("c").allowed)
        clock.advance(900)
        self.assertTrue(limiter.hit("c").allowed)

    def test_reset_header_rounds_up(self) -> None:
        clock = FakeClock()
        limiter = RateLimiter(5, 900, "limited", clock=clock)
        limiter.hit("c")
        clock.advance(0.5)
        self.assertEqual(limiter.hit("c").reset_seconds, 900)


class TestSpeedLimiter(unittest.TestCase):
    def setUp(self) -> None:
        self.sleeps: list[float] = []
        self.limiter = SpeedLimiter(
            delay_after=5,
            delay_ms=500,
            max_delay_ms=10_000,
            window_seconds=900,
            clock=FakeClock(),
            sleep=self.sleeps.append,
        )

    def test_delay_grows_then_caps(self) -> None:
        self.assertEqual(self.limiter.delay_for(5), 0.0)
        self.assertEqual(self.limiter.delay_for(6), 0.5)
        self.assertEqual(self.limiter.delay_for(8), 1.5)
        self.assertEqual(self.limiter.delay_for(25), 10.0)
        self.assertEqual(self.limiter.delay_for(100), 10.0)

    def test_throttle_sleeps_only_past_threshold(self) -> None:
        for _ in range(7):
            self.limiter.throttle("c")
        self.assertEqual(self.sleeps, [0.5, 1.0])
