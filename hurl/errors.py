from __future__ import annotations


class HurlError(Exception):
    """Base class for all errors raised by hurl."""


class SettingError(HurlError, ValueError):
    """A control value could not be parsed or failed validation."""

    def __init__(self, name: str, raw: str, reason: str) -> None:
        super().__init__(f"invalid {name} {raw!r}: {reason}")
        self.name = name
        self.raw = raw
        self.reason = reason


class AttemptTimeout(HurlError, TimeoutError):
    """A single request attempt exceeded its per-attempt deadline."""

    def __init__(self, url: str, timeout: float) -> None:
        super().__init__(f"attempt exceeded {timeout:g}s deadline")
        self.url = url
        self.timeout = timeout


class FetchCancelled(HurlError):
    """The enclosing cancellation signal fired while a fetch was in progress."""

    def __init__(self, url: str) -> None:
        super().__init__("fetch cancelled")
        self.url = url


class QueueClosed(HurlError):
    """Raised by WorkQueue.get() once the queue is closed and drained."""
