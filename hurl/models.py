from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional


@dataclass(frozen=True)
class WorkItem:
    url: str
    line_index: int
    # Non-blank lines before this one; the skip value that resumes at this item.
    ordinal: int = 0


@dataclass(frozen=True)
class FetchResult:
    url: str
    line_index: int
    status_code: Optional[int]
    error: Optional[str]
    attempts: int
    latency_ms: int

    @property
    def success(self) -> bool:
        return self.error is None

    def to_record(self) -> Dict[str, Any]:
        return {
            "url": self.url,
            "line": self.line_index,
            "ok": self.success,
            "status_code": self.status_code,
            "error": self.error,
            "attempts": self.attempts,
            "latency_ms": self.latency_ms,
        }

    def line(self) -> str:
        """Render the result line written to stdout: ``<url> <status|error>``."""
        if self.error is not None:
            return f"{self.url} {self.error}"
        return f"{self.url} {self.status_code}"


@dataclass(frozen=True)
class SettingsSnapshot:
    parallelism: int
    rate: int
    timeout: float
    retries: int


@dataclass(frozen=True)
class ResumeCursor:
    """Where an interrupted run stopped.

    line_index is the 0-based index of the next unread source line;
    skip is the number of non-blank lines already consumed, i.e. the
    value to pass as ``skipLines`` on the next run.
    """

    line_index: int
    skip: int
