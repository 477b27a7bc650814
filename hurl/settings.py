from __future__ import annotations

import re
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

from .errors import SettingError
from .models import SettingsSnapshot


DEFAULT_PARALLELISM = 1
DEFAULT_RATE = 1
DEFAULT_TIMEOUT = 10.0
DEFAULT_RETRIES = 3

_UNIT_SECONDS = {
    "ns": 1e-9,
    "us": 1e-6,
    "µs": 1e-6,
    "μs": 1e-6,
    "ms": 1e-3,
    "s": 1.0,
    "m": 60.0,
    "h": 3600.0,
}
_DURATION_PART = re.compile(r"(\d+(?:\.\d*)?|\.\d+)(ns|us|µs|μs|ms|s|m|h)")
_BARE_NUMBER = re.compile(r"\d+(?:\.\d*)?|\.\d+")


def parse_duration(text: str) -> float:
    """Parse a duration literal such as ``10s``, ``1m30s`` or ``250ms`` into seconds.

    A bare number is taken as seconds. Raises ValueError on anything else.
    """
    raw = text.strip()
    sign = 1.0
    if raw[:1] in ("+", "-"):
        sign = -1.0 if raw[0] == "-" else 1.0
        raw = raw[1:]
    if not raw:
        raise ValueError(f"invalid duration {text!r}")
    if _BARE_NUMBER.fullmatch(raw):
        return sign * float(raw)

    total = 0.0
    pos = 0
    while pos < len(raw):
        match = _DURATION_PART.match(raw, pos)
        if match is None:
            raise ValueError(f"invalid duration {text!r}")
        total += float(match.group(1)) * _UNIT_SECONDS[match.group(2)]
        pos = match.end()
    return sign * total


def format_duration(seconds: float) -> str:
    if seconds >= 1 and float(seconds).is_integer():
        return f"{int(seconds)}s"
    if seconds < 1:
        return f"{seconds * 1000:g}ms"
    return f"{seconds:g}s"


class Setting(ABC):
    """One live-tunable value that knows how to parse and validate a string.

    The current value is an immutable object replaced by a single reference
    assignment, so concurrent readers always see a complete, previously
    committed value without taking a lock.
    """

    def __init__(self, name: str, short: str, initial: Any) -> None:
        self.name = name
        self.short = short
        self._value = self.validate(initial)

    @property
    def value(self) -> Any:
        return self._value

    def store(self, value: Any) -> Any:
        """Validate and commit an already-typed value."""
        checked = self.validate(value)
        self._value = checked
        return checked

    def store_text(self, raw: str) -> Any:
        """Parse, validate and commit a textual value; the field is untouched on error."""
        return self.store(self.parse(raw))

    @abstractmethod
    def parse(self, raw: str) -> Any:
        ...

    @abstractmethod
    def validate(self, value: Any) -> Any:
        ...

    @abstractmethod
    def format(self, value: Any) -> str:
        ...


class IntegerSetting(Setting):
    def __init__(self, name: str, short: str, initial: int, minimum: int = 0) -> None:
        self.minimum = minimum
        super().__init__(name, short, initial)

    def parse(self, raw: str) -> int:
        try:
            return int(raw.strip(), 10)
        except ValueError:
            raise SettingError(self.name, raw, "not an integer") from None

    def validate(self, value: Any) -> int:
        if isinstance(value, bool) or not isinstance(value, int):
            raise SettingError(self.name, str(value), "not an integer")
        if value < self.minimum:
            raise SettingError(self.name, str(value), f"must be >= {self.minimum}")
        return value

    def format(self, value: Any) -> str:
        return str(value)


class DurationSetting(Setting):
    def parse(self, raw: str) -> float:
        try:
            return parse_duration(raw)
        except ValueError:
            raise SettingError(self.name, raw, "not a duration") from None

    def validate(self, value: Any) -> float:
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise SettingError(self.name, str(value), "not a duration")
        if value <= 0:
            raise SettingError(self.name, str(value), "must be > 0")
        return float(value)

    def format(self, value: Any) -> str:
        return format_duration(value)


class SettingsStore:
    """Holds the four live-tunable parameters shared by every component.

    Each field updates independently; there is no transaction across fields.
    """

    def __init__(
        self,
        parallelism: int = DEFAULT_PARALLELISM,
        rate: int = DEFAULT_RATE,
        timeout: float = DEFAULT_TIMEOUT,
        retries: int = DEFAULT_RETRIES,
    ) -> None:
        self._parallelism = IntegerSetting("parallelism", "p", parallelism, minimum=0)
        self._rate = IntegerSetting("rate", "r", rate, minimum=1)
        self._timeout = DurationSetting("timeout", "t", timeout)
        self._retries = IntegerSetting("retries", "c", retries, minimum=1)
        # Command prefixes are matched in this order.
        self._by_short: Dict[str, Setting] = {
            s.short: s for s in (self._parallelism, self._rate, self._timeout, self._retries)
        }

    @property
    def parallelism(self) -> int:
        return self._parallelism.value

    @property
    def rate(self) -> int:
        return self._rate.value

    @property
    def timeout(self) -> float:
        return self._timeout.value

    @property
    def retries(self) -> int:
        return self._retries.value

    def snapshot(self) -> SettingsSnapshot:
        return SettingsSnapshot(
            parallelism=self.parallelism,
            rate=self.rate,
            timeout=self.timeout,
            retries=self.retries,
        )

    def set_parallelism(self, n: int) -> int:
        return self._parallelism.store(n)

    def set_rate(self, n: int) -> int:
        return self._rate.store(n)

    def set_timeout(self, seconds: float) -> float:
        return self._timeout.store(seconds)

    def set_retries(self, n: int) -> int:
        return self._retries.store(n)

    def settings(self) -> list[Setting]:
        return list(self._by_short.values())

    def lookup(self, short: str) -> Optional[Setting]:
        return self._by_short.get(short)
