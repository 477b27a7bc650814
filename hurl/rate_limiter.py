from __future__ import annotations

import time
from typing import Callable


class RateLimiter:
    """Per-worker rate limiter that spaces request starts by 1/rate seconds.

    Not shared between threads: each worker owns one, so aggregate
    throughput is parallelism x rate. The rate is read through a callable
    so a live change takes effect on the next request.
    """

    def __init__(
        self,
        rate: Callable[[], int],
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._rate = rate
        self._clock = clock
        self._sleep = sleep
        self.last_request_at: float | None = None

    def mark(self) -> None:
        """Record the start of a request."""
        self.last_request_at = self._clock()

    def interval(self) -> float:
        rate = self._rate()
        return 1.0 / rate if rate > 0 else 0.0

    def throttle(self) -> float:
        """Sleep for whatever remains of the interval since the last request start.

        Returns the time slept in seconds.
        """
        if self.last_request_at is None:
            return 0.0
        remaining = self.interval() - (self._clock() - self.last_request_at)
        if remaining <= 0:
            return 0.0
        self._sleep(remaining)
        return remaining
