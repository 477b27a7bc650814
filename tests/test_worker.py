"""Tests for the Worker loop."""

import threading
import time
import unittest

from hurl.errors import FetchCancelled
from hurl.models import WorkItem
from hurl.settings import SettingsStore
from hurl.storage import StorageBase
from hurl.work_queue import WorkQueue
from hurl.worker import Worker, WorkerState


class StubRequester:
    """Returns a fixed outcome for every URL and records the calls."""

    def __init__(self, status=200, error=None, delay=0.0):
        self.status = status
        self.error = error
        self.delay = delay
        self.urls = []
        self._lock = threading.Lock()

    def fetch(self, url):
        with self._lock:
            self.urls.append(url)
        if self.delay:
            time.sleep(self.delay)
        if self.error is not None:
            return None, self.error, 3
        return self.status, None, 1


class ListStorage(StorageBase):
    def __init__(self):
        self.results = []
        self._lock = threading.Lock()

    def write(self, result):
        with self._lock:
            self.results.append(result)

    def close(self):
        pass


def _fill(q, n):
    for i in range(n):
        q.put(WorkItem(url=f"http://example.com/{i}", line_index=i))


class TestWorker(unittest.TestCase):
    """Verify processing, throttling, draining and retirement."""

    def test_processes_items_until_queue_drained(self):
        q = WorkQueue(capacity=10)
        _fill(q, 3)
        q.close()
        storage = ListStorage()
        worker = Worker(0, q, SettingsStore(rate=1000), StubRequester(status=404), storage, tick=0.05)
        worker.run()
        self.assertEqual(worker.state, WorkerState.STOPPED)
        self.assertEqual(worker.processed, 3)
        self.assertEqual([r.line() for r in storage.results], [f"http://example.com/{i} 404" for i in range(3)])
        self.assertIsNotNone(worker.last_request_at)

    def test_exhausted_retries_become_error_lines(self):
        q = WorkQueue(capacity=1)
        _fill(q, 1)
        q.close()
        storage = ListStorage()
        worker = Worker(0, q, SettingsStore(rate=1000), StubRequester(error=ConnectionError("refused")), storage)
        worker.run()
        result = storage.results[0]
        self.assertFalse(result.success)
        self.assertEqual(result.attempts, 3)
        self.assertEqual(result.line(), "http://example.com/0 ConnectionError: refused")

    def test_rate_bounds_throughput(self):
        """k items at rate r take at least (k-1)/r seconds."""
        q = WorkQueue(capacity=5)
        _fill(q, 5)
        q.close()
        worker = Worker(0, q, SettingsStore(rate=10), StubRequester(), ListStorage())
        start = time.monotonic()
        worker.run()
        self.assertGreaterEqual(time.monotonic() - start, 4 / 10)
        self.assertEqual(worker.processed, 5)

    def test_retires_when_slot_out_of_range(self):
        q = WorkQueue()
        settings = SettingsStore(parallelism=1)
        worker = Worker(1, q, settings, StubRequester(), ListStorage(), tick=0.05)
        t = threading.Thread(target=worker.run)
        start = time.monotonic()
        t.start()
        t.join(timeout=1)
        self.assertFalse(t.is_alive())
        self.assertLess(time.monotonic() - start, 0.5)
        self.assertEqual(worker.state, WorkerState.STOPPED)
        self.assertFalse(q.closed)

    def test_in_range_worker_keeps_waiting(self):
        q = WorkQueue()
        settings = SettingsStore(parallelism=2)
        worker = Worker(1, q, settings, StubRequester(), ListStorage(), tick=0.02)
        t = threading.Thread(target=worker.run)
        t.start()
        time.sleep(0.1)
        self.assertTrue(t.is_alive())
        settings.set_parallelism(1)
        t.join(timeout=1)
        self.assertFalse(t.is_alive())

    def test_request_not_interrupted_by_shrink(self):
        q = WorkQueue(capacity=1)
        _fill(q, 1)
        settings = SettingsStore(parallelism=1, rate=1000)
        storage = ListStorage()
        worker = Worker(0, q, settings, StubRequester(delay=0.2), storage, tick=0.02)
        t = threading.Thread(target=worker.run)
        t.start()
        time.sleep(0.05)
        settings.set_parallelism(0)
        t.join(timeout=2)
        self.assertEqual(len(storage.results), 1)

    def test_cancelled_fetch_goes_to_on_abandon(self):
        q = WorkQueue(capacity=10)
        _fill(q, 2)
        q.close()
        storage = ListStorage()
        abandoned = []
        requester = StubRequester(error=FetchCancelled("http://example.com/"))
        worker = Worker(0, q, SettingsStore(rate=1000), requester, storage, on_abandon=abandoned.append)
        worker.run()
        self.assertEqual(storage.results, [])
        self.assertEqual([i.line_index for i in abandoned], [0, 1])
        self.assertEqual(worker.processed, 0)

    def test_cancelled_fetch_without_callback_is_a_result_line(self):
        q = WorkQueue(capacity=1)
        _fill(q, 1)
        q.close()
        storage = ListStorage()
        requester = StubRequester(error=FetchCancelled("http://example.com/0"))
        Worker(0, q, SettingsStore(rate=1000), requester, storage).run()
        self.assertEqual(len(storage.results), 1)
        self.assertFalse(storage.results[0].success)

    def test_retired_flag_set_only_on_shrink(self):
        q = WorkQueue()
        q.close()
        drained = Worker(0, q, SettingsStore(parallelism=1), StubRequester(), ListStorage(), tick=0.02)
        drained.run()
        self.assertFalse(drained.retired)
        shrunk = Worker(0, WorkQueue(), SettingsStore(parallelism=0), StubRequester(), ListStorage(), tick=0.02)
        shrunk.run()
        self.assertTrue(shrunk.retired)


if __name__ == "__main__":
    unittest.main()
