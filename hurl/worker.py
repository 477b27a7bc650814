from __future__ import annotations

import enum
import time
from typing import Callable, Optional

from .errors import FetchCancelled, QueueClosed
from .log import get_logger
from .models import FetchResult, WorkItem
from .rate_limiter import RateLimiter
from .requester import Requester, describe_error
from .settings import SettingsStore
from .storage import StorageBase
from .work_queue import WorkQueue


logger = get_logger(__name__)

DEFAULT_TICK_SECONDS = 1.0


class WorkerState(enum.Enum):
    IDLE = "idle"
    THROTTLING = "throttling"
    IN_FLIGHT = "in_flight"
    RETIRING = "retiring"
    STOPPED = "stopped"


class Worker:
    """A long-lived fetch loop bound to one pool slot.

    The worker pulls items until the queue is closed and drained. Once per
    tick it compares its slot index with the target parallelism and retires
    when the index is out of range; this is the only way the pool shrinks,
    so a request is never interrupted by a scale-down.

    Items whose fetch was abandoned by the cancel event go to on_abandon,
    when given, instead of producing a result line.
    """

    def __init__(
        self,
        index: int,
        queue: WorkQueue,
        settings: SettingsStore,
        requester: Requester,
        storage: StorageBase,
        tick: float = DEFAULT_TICK_SECONDS,
        clock: Callable[[], float] = time.monotonic,
        on_abandon: Optional[Callable[[WorkItem], None]] = None,
    ) -> None:
        self.index = index
        self._queue = queue
        self._settings = settings
        self._requester = requester
        self._storage = storage
        self._tick = tick
        self._clock = clock
        self._on_abandon = on_abandon
        self.limiter = RateLimiter(lambda: settings.rate, clock=clock)
        self.state = WorkerState.IDLE
        self.processed = 0
        self.retired = False

    @property
    def last_request_at(self) -> Optional[float]:
        return self.limiter.last_request_at

    def run(self) -> None:
        logger.debug("worker_started", slot=self.index)
        next_tick = self._clock() + self._tick
        try:
            while True:
                now = self._clock()
                if now >= next_tick:
                    next_tick = now + self._tick
                    if self.index >= self._settings.parallelism:
                        self.state = WorkerState.RETIRING
                        self.retired = True
                        logger.debug("worker_retiring", slot=self.index, parallelism=self._settings.parallelism)
                        return
                try:
                    item = self._queue.get(timeout=max(0.0, next_tick - self._clock()))
                except QueueClosed:
                    return
                if item is None:
                    continue
                self._process(item)
        finally:
            self.state = WorkerState.STOPPED
            logger.debug("worker_stopped", slot=self.index, processed=self.processed)

    def _process(self, item: WorkItem) -> None:
        self.state = WorkerState.IN_FLIGHT
        self.limiter.mark()
        started = self._clock()
        status, error, attempts = self._requester.fetch(item.url)
        if isinstance(error, FetchCancelled) and self._on_abandon is not None:
            # Never fetched: reported for the resume cursor instead of as a result line.
            self._on_abandon(item)
            self.state = WorkerState.IDLE
            return
        self._storage.write(
            FetchResult(
                url=item.url,
                line_index=item.line_index,
                status_code=status,
                error=None if error is None else describe_error(error),
                attempts=attempts,
                latency_ms=int((self._clock() - started) * 1000),
            )
        )
        self.processed += 1

        self.state = WorkerState.THROTTLING
        self.limiter.throttle()
        self.state = WorkerState.IDLE
