"""Fixed-window request counting per client: hard limits and progressive delay."""

import math
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass


@dataclass(frozen=True)
class RateLimitInfo:
    """Counter state after one hit; used for the RateLimit-* response headers."""

    limit: int
    remaining: int
    reset_seconds: int
    hits: int
    allowed: bool

    def headers(self) -> dict[str, str]:
        return {
            "RateLimit-Limit": str(self.limit),
            "RateLimit-Remaining": str(max(0, self.remaining)),
            "RateLimit-Reset": str(self.reset_seconds),
        }


class FixedWindowCounter:
    """
    Counts hits per key within fixed windows of ``window_seconds``.

    Counters are shared by all request threads; every read-modify-write happens
    under one lock so concurrent hits are never lost. Every ``prune_every`` hits
    the windows that have ended are dropped, so one-off clients do not pile up.
    """

    def __init__(
        self,
        window_seconds: int,
        clock: Callable[[], float] = time.monotonic,
        prune_every: int = 1000,
    ) -> None:
        self.window_seconds = window_seconds
        self.clock = clock
        self.prune_every = prune_every
        self._windows: dict[str, tuple[float, int]] = {}
        self._hits_since_prune = 0
        self._lock = threading.Lock()

    def hit(self, key: str) -> tuple[int, float]:
        """Record one hit; return (hits in current window, seconds until it resets)."""
        now = self.clock()
        with self._lock:
            started, hits = self._windows.get(key, (now, 0))
            if now - started >= self.window_seconds:
                started, hits = now, 0
            hits += 1
            self._windows[key] = (started, hits)
            self._hits_since_prune += 1
            if self._hits_since_prune >= self.prune_every:
                self._drop_stale(now)
        return hits, max(0.0, started + self.window_seconds - now)

    def _drop_stale(self, now: float) -> int:
        # Caller holds self._lock.
        stale = [k for k, (started, _) in self._windows.items() if now - started >= self.window_seconds]
        for k in stale:
            del self._windows[k]
        self._hits_since_prune = 0
        return len(stale)

    def prune(self) -> int:
        """Drop windows that have already ended."""
        now = self.clock()
        with self._lock:
            return self._drop_stale(now)

    def __len__(self) -> int:
        with self._lock:
            return len(self._windows)


class RateLimiter:
    """At most ``limit`` requests per client per window; the rest are refused."""

    def __init__(
        self,
        limit: int,
        window_seconds: int,
        message: str,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.limit = limit
        self.message = message
        self.counter = FixedWindowCounter(window_seconds, clock=clock)

    def hit(self, key: str) -> RateLimitInfo:
        hits, reset_after = self.counter.hit(key)
        return RateLimitInfo(
            limit=self.limit,
            remaining=self.limit - hits,
            reset_seconds=math.ceil(reset_after),
            hits=hits,
            allowed=hits <= self.limit,
        )


class SpeedLimiter:
    """
    Never refuses; once a client passes ``delay_after`` hits in the window each
    further request waits ``(hits - delay_after) * delay_ms``, capped at ``max_delay_ms``.
    """

    def __init__(
        self,
        delay_after: int,
        delay_ms: int,
        max_delay_ms: int,
        window_seconds: int,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.delay_after = delay_after
        self.delay_ms = delay_ms
        self.max_delay_ms = max_delay_ms
        self.sleep = sleep
        self.counter = FixedWindowCounter(window_seconds, clock=clock)

    def delay_for(self, hits: int) -> float:
        """Seconds to wait for the ``hits``-th request of a window."""
        over = hits - self.delay_after
        if over <= 0:
            return 0.0
        return min(over * self.delay_ms, self.max_delay_ms) / 1000.0

    def throttle(self, key: str) -> float:
        hits, _ = self.counter.hit(key)
        delay = self.delay_for(hits)
        if delay > 0:
            self.sleep(delay)
        return delay
