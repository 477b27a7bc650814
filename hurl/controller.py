from __future__ import annotations

import threading
import time
from typing import Callable, Dict, List, Optional

from .log import get_logger
from .settings import SettingsStore
from .worker import Worker


logger = get_logger(__name__)


class PoolSupervisor:
    """Owns the worker slots and grows the pool to the target parallelism.

    scale() starts workers until the number of occupied slots reaches the
    current parallelism. It never stops a worker: on a decrease the excess
    workers notice at their next tick and retire on their own, so shrink
    latency is bounded by the worker tick period.
    """

    def __init__(self, settings: SettingsStore, make_worker: Callable[[int], Worker]) -> None:
        self._settings = settings
        self._make_worker = make_worker

        self._lock = threading.Lock()
        self._cv = threading.Condition(self._lock)

        self._workers: Dict[int, Worker] = {}
        self._threads: List[threading.Thread] = []
        self.started_total = 0

    def start(self) -> List[int]:
        """Start the initial set of workers."""
        return self.scale()

    def scale(self) -> List[int]:
        """Spawn workers up to the target; return the slot indexes started."""
        with self._cv:
            spawned = self._allocate()
        return self._launch(spawned)

    def _allocate(self) -> List[Worker]:
        # Caller holds the lock.
        target = self._settings.parallelism
        spawned: List[Worker] = []
        while len(self._workers) < target:
            index = self._free_slot()
            worker = self._make_worker(index)
            self._workers[index] = worker
            spawned.append(worker)
        self.started_total += len(spawned)
        return spawned

    def _launch(self, spawned: List[Worker]) -> List[int]:
        for worker in spawned:
            thread = threading.Thread(target=self._run, args=(worker,), name=f"hurl-worker-{worker.index}")
            self._threads.append(thread)
            thread.start()

        if spawned:
            logger.debug("pool_scaled", target=self._settings.parallelism, started=len(spawned), active=self.active)
        return [w.index for w in spawned]

    def _free_slot(self) -> int:
        # Lowest unused index; equals the active count when slots are contiguous.
        index = 0
        while index in self._workers:
            index += 1
        return index

    def _run(self, worker: Worker) -> None:
        try:
            worker.run()
        finally:
            with self._cv:
                if self._workers.get(worker.index) is worker:
                    del self._workers[worker.index]
                # A scale() racing this retirement saw the slot still taken;
                # refill under the same lock so wait() never sees a gap.
                spawned = self._allocate() if worker.retired else []
                self._cv.notify_all()
            self._launch(spawned)

    @property
    def active(self) -> int:
        with self._lock:
            return len(self._workers)

    def slots(self) -> List[int]:
        with self._lock:
            return sorted(self._workers)

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block until every worker has stopped. Return False on timeout."""
        deadline = None if timeout is None else time.monotonic() + timeout
        with self._cv:
            while self._workers:
                if deadline is None:
                    self._cv.wait()
                    continue
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    return False
                self._cv.wait(remaining)
        return True
