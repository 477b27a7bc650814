from __future__ import annotations

import threading
import time
from collections import deque
from typing import Deque, List, Optional

from .errors import QueueClosed
from .models import WorkItem


class WorkQueue:
    """Bounded, closable FIFO shared by the dispatcher and the workers.

    With the default capacity of 1 a put() behaves like a hand-off: the
    dispatcher stays at most one item ahead of the slowest free worker,
    which keeps the resume cursor close to what was actually fetched.
    Whichever worker calls get() first receives the next item.
    """

    def __init__(self, capacity: int = 1) -> None:
        self._capacity = max(1, capacity)
        self._items: Deque[WorkItem] = deque()
        self._cv = threading.Condition(threading.Lock())
        self._closed = False

    def put(self, item: WorkItem, timeout: Optional[float] = None) -> bool:
        """Offer an item; return False if it was not accepted within timeout."""
        deadline = None if timeout is None else time.monotonic() + timeout
        with self._cv:
            while not self._closed and len(self._items) >= self._capacity:
                if deadline is None:
                    self._cv.wait()
                    continue
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    return False
                self._cv.wait(remaining)
            if self._closed:
                raise QueueClosed("put on closed queue")
            self._items.append(item)
            self._cv.notify_all()
            return True

    def get(self, timeout: Optional[float] = None) -> Optional[WorkItem]:
        """Take the next item, or None on timeout.

        Raises QueueClosed once the queue is closed and empty.
        """
        deadline = None if timeout is None else time.monotonic() + timeout
        with self._cv:
            while not self._items:
                if self._closed:
                    raise QueueClosed("queue closed")
                if deadline is None:
                    self._cv.wait()
                    continue
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    return None
                self._cv.wait(remaining)
            item = self._items.popleft()
            self._cv.notify_all()
            return item

    def drain(self) -> List[WorkItem]:
        """Remove and return every queued item, oldest first."""
        with self._cv:
            items = list(self._items)
            self._items.clear()
            self._cv.notify_all()
            return items

    def close(self) -> None:
        """Stop accepting items; queued items remain available to get()."""
        with self._cv:
            self._closed = True
            self._cv.notify_all()

    @property
    def closed(self) -> bool:
        return self._closed

    def __len__(self) -> int:
        with self._cv:
            return len(self._items)
