"""Live control commands.

Operators type ``<key>=<value>`` lines on the control stream while a run
is in progress:

    p=100   target parallelism (number of workers)
    r=16    max requests per second, per worker
    t=10s   per-attempt timeout
    c=3     attempts per URL
"""
from __future__ import annotations

import queue
import sys
import threading
from dataclasses import dataclass
from typing import Any, Callable, Optional, TextIO

from .errors import SettingError
from .log import get_logger
from .settings import SettingsStore


logger = get_logger(__name__)


@dataclass(frozen=True)
class CommandOutcome:
    command: str
    accepted: bool
    name: Optional[str] = None
    value: Any = None
    error: Optional[str] = None


class CommandInterpreter:
    """Parses control lines and applies them to the settings store.

    After every accepted command on_change is invoked; the pool supervisor
    uses it to spawn workers when the target parallelism went up.
    """

    def __init__(self, settings: SettingsStore, on_change: Optional[Callable[[], Any]] = None) -> None:
        self._settings = settings
        self._on_change = on_change

    def apply(self, line: str) -> CommandOutcome:
        text = line.strip()
        if not text:
            return CommandOutcome(command=text, accepted=False, error="empty command")

        for setting in self._settings.settings():
            prefix = setting.short + "="
            if not text.startswith(prefix):
                continue
            raw = text[len(prefix):]
            try:
                value = setting.store_text(raw)
            except SettingError as exc:
                logger.warning("command_rejected", command=text, setting=setting.name, error=str(exc))
                return CommandOutcome(command=text, accepted=False, name=setting.name, error=str(exc))
            logger.info("command_applied", setting=setting.name, value=setting.format(value))
            if self._on_change is not None:
                self._on_change()
            return CommandOutcome(command=text, accepted=True, name=setting.name, value=value)

        logger.warning("unknown_command", command=text)
        return CommandOutcome(command=text, accepted=False, error="unknown command")

    def apply_pending(self, commands: "queue.Queue[str]") -> int:
        """Apply every command already waiting in the queue without blocking."""
        applied = 0
        while True:
            try:
                line = commands.get_nowait()
            except queue.Empty:
                return applied
            self.apply(line)
            applied += 1


class ControlReader:
    """Reads control lines from a stream on a daemon thread into a queue."""

    def __init__(self, stream: Optional[TextIO] = None) -> None:
        self._stream = stream if stream is not None else sys.stdin
        self.commands: queue.Queue[str] = queue.Queue()
        self._thread = threading.Thread(target=self._reader, name="hurl-control", daemon=True)

    def start(self) -> None:
        self._thread.start()

    def join(self, timeout: Optional[float] = None) -> None:
        self._thread.join(timeout)

    def _reader(self) -> None:
        try:
            for line in self._stream:
                text = line.strip()
                if text:
                    self.commands.put(text)
        except (OSError, ValueError) as exc:
            logger.info("stopped_reading_input", error=str(exc))
            return
        logger.info("stopped_reading_input")
