from __future__ import annotations

import threading
import time
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from typing import Optional, Tuple

from .errors import AttemptTimeout, FetchCancelled
from .log import get_logger
from .settings import SettingsStore
from .transports import Transport


logger = get_logger(__name__)

DEFAULT_ATTEMPT_THREADS = 512


def describe_error(exc: BaseException) -> str:
    message = str(exc)
    if not message:
        return type(exc).__name__
    return f"{type(exc).__name__}: {message}"


class Requester:
    """Performs a GET with a retry budget and a fresh deadline per attempt.

    Each attempt runs on an internal thread pool so the caller can stop
    waiting on it when the attempt deadline passes or the cancel event
    fires. An abandoned attempt keeps running on its pool thread until the
    transport's own timeout ends it.
    """

    def __init__(
        self,
        transport: Transport,
        settings: SettingsStore,
        cancel: Optional[threading.Event] = None,
        max_attempt_threads: int = DEFAULT_ATTEMPT_THREADS,
        poll_interval: float = 0.05,
    ) -> None:
        self._transport = transport
        self._settings = settings
        self.cancel = cancel if cancel is not None else threading.Event()
        self._poll_interval = poll_interval
        self._executor = ThreadPoolExecutor(max_workers=max_attempt_threads, thread_name_prefix="hurl-attempt")

    def fetch(
        self,
        url: str,
        timeout: Optional[float] = None,
        retries: Optional[int] = None,
        cancel: Optional[threading.Event] = None,
    ) -> Tuple[Optional[int], Optional[BaseException], int]:
        """Return ``(status, None, attempts)`` on the first completed attempt or
        ``(None, last_error, attempts)`` once the budget is spent.

        timeout and retries default to the live settings at call time.
        """
        per_try = self._settings.timeout if timeout is None else timeout
        budget = self._settings.retries if retries is None else retries
        cancel = self.cancel if cancel is None else cancel

        last_error: Optional[BaseException] = None
        attempt = 0
        while attempt < budget:
            if cancel.is_set():
                return None, FetchCancelled(url), attempt
            attempt += 1
            try:
                status = self._attempt(url, per_try, cancel)
                return status, None, attempt
            except FetchCancelled as exc:
                return None, exc, attempt
            except Exception as exc:  # noqa: BLE001
                last_error = exc
                logger.debug("attempt_failed", url=url, attempt=attempt, retries=budget, error=describe_error(exc))
        return None, last_error, attempt

    def _attempt(self, url: str, timeout: float, cancel: threading.Event) -> int:
        future: Future = self._executor.submit(self._transport.get, url, timeout)
        deadline = time.monotonic() + timeout
        while True:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                future.cancel()
                raise AttemptTimeout(url, timeout)
            done, _ = wait([future], timeout=min(remaining, self._poll_interval), return_when=FIRST_COMPLETED)
            if done:
                return future.result()
            if cancel.is_set():
                future.cancel()
                raise FetchCancelled(url)

    def close(self) -> None:
        self._executor.shutdown(wait=False, cancel_futures=True)
        self._transport.close()
