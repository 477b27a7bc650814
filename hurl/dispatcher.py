from __future__ import annotations

import queue
import threading
from typing import Iterable, Optional

from .commands import CommandInterpreter
from .errors import QueueClosed
from .log import get_logger
from .models import ResumeCursor, WorkItem
from .work_queue import WorkQueue


logger = get_logger(__name__)


class Dispatcher:
    """Feeds source lines into the work queue.

    While waiting for the queue to accept an item it applies pending
    control commands and watches the cancel event. The queue is closed on
    every exit path so workers drain and stop.
    """

    def __init__(
        self,
        work_queue: WorkQueue,
        cancel: threading.Event,
        interpreter: Optional[CommandInterpreter] = None,
        commands: Optional["queue.Queue[str]"] = None,
        poll_interval: float = 0.05,
    ) -> None:
        self._queue = work_queue
        self._cancel = cancel
        self._interpreter = interpreter
        self._commands = commands
        self._poll_interval = poll_interval
        self.enqueued = 0

    def dispatch(self, lines: Iterable[str], skip: int = 0) -> Optional[ResumeCursor]:
        """Enqueue every non-blank line after the first ``skip`` non-blank ones.

        Returns None when the source is exhausted, or the resume cursor when
        the cancel event stopped dispatching early.
        """
        consumed = 0
        try:
            for line_index, raw in enumerate(lines):
                url = raw.strip()
                if not url:
                    continue
                if consumed < skip:
                    consumed += 1
                    continue
                if not self._offer(WorkItem(url=url, line_index=line_index, ordinal=consumed)):
                    logger.debug("dispatch_cancelled", line=line_index, enqueued=self.enqueued)
                    return ResumeCursor(line_index=line_index, skip=consumed)
                consumed += 1
                self.enqueued += 1
        finally:
            self._queue.close()
        logger.debug("dispatch_complete", enqueued=self.enqueued, skipped=min(consumed, skip))
        return None

    def _offer(self, item: WorkItem) -> bool:
        while True:
            if self._cancel.is_set():
                return False
            if self._interpreter is not None and self._commands is not None:
                self._interpreter.apply_pending(self._commands)
            try:
                if self._queue.put(item, timeout=self._poll_interval):
                    return True
            except QueueClosed:
                return False
