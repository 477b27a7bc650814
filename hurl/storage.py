from __future__ import annotations

import json
import queue
import sys
import threading
import time
from abc import ABC, abstractmethod
from typing import Iterable, Optional, TextIO

from .log import get_logger
from .models import FetchResult


logger = get_logger(__name__)


class StorageBase(ABC):
    """Abstract base class for result sinks.

    Workers call write() concurrently, so implementations must be thread-safe.
    """

    @abstractmethod
    def write(self, result: FetchResult) -> None:
        """Persist a single fetch result."""

    @abstractmethod
    def close(self) -> None:
        """Flush pending writes and release resources."""


class LineStorage(StorageBase):
    """Writes ``<url> <status|error>`` lines, one per result, to a text stream."""

    def __init__(self, stream: Optional[TextIO] = None) -> None:
        self._stream = stream if stream is not None else sys.stdout
        self._lock = threading.Lock()

    def write(self, result: FetchResult) -> None:
        line = result.line() + "\n"
        with self._lock:
            self._stream.write(line)
            self._stream.flush()

    def close(self) -> None:
        with self._lock:
            self._stream.flush()


class JsonlStorage(StorageBase):
    """Appends one JSON record per result to a .jsonl file from a writer thread.

    Workers never touch the file. The writer flushes whenever it has caught
    up with the queue, so a burst of results costs one flush, and close()
    reports how many records reached the file.
    """

    def __init__(self, path: str) -> None:
        self._path = path
        self._queue: queue.Queue[Optional[FetchResult]] = queue.Queue()
        self.written = 0
        self._thread = threading.Thread(target=self._writer, name="hurl-jsonl", daemon=True)
        self._thread.start()

    def write(self, result: FetchResult) -> None:
        self._queue.put(result)

    def close(self) -> None:
        self._queue.put(None)
        self._thread.join(timeout=5)
        logger.debug("results_written", path=self._path, records=self.written)

    def _writer(self) -> None:
        with open(self._path, "a", encoding="utf-8") as f:
            while True:
                item = self._queue.get()
                if item is None:
                    break
                record = {"timestamp": time.time(), **item.to_record()}
                f.write(json.dumps(record, ensure_ascii=False) + "\n")
                self.written += 1
                if self._queue.empty():
                    f.flush()


class FanoutStorage(StorageBase):
    """Forwards every result to several sinks."""

    def __init__(self, sinks: Iterable[StorageBase]) -> None:
        self._sinks = list(sinks)

    def write(self, result: FetchResult) -> None:
        for sink in self._sinks:
            sink.write(result)

    def close(self) -> None:
        for sink in self._sinks:
            sink.close()
