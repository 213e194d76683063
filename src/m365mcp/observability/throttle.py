"""Per-category error rate limiting.

Each category gets a fixed window of `window_ms`. Up to `threshold` errors
pass per window; the rest are counted as suppressed and dropped. The first
error after the window closes reports the suppressed count once so a single
summary line can be written.
"""

from __future__ import annotations

import threading
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import NamedTuple


def _monotonic_ms() -> float:
    return time.monotonic() * 1000.0


@dataclass(slots=True)
class ThrottleRecord:
    count: int
    window_start: float
    suppressed: int = 0


class Admission(NamedTuple):
    """Outcome of one throttle check.

    allowed: whether this error should be logged
    suppressed: errors dropped in the window that just closed (0 if none)
    """
    allowed: bool
    suppressed: int = 0


@dataclass
class ErrorThrottle:
    """Fixed-window error limiter keyed by category.

    Args:
        threshold: Errors allowed per window
        window_ms: Window length in milliseconds
        clock: Millisecond clock, injectable for tests

    Example:
        >>> t = ErrorThrottle(threshold=1, window_ms=1000, clock=lambda: 0.0)
        >>> t.admit("mail").allowed, t.admit("mail").allowed
        (True, False)
    """

    threshold: int = 10
    window_ms: float = 1000.0
    clock: Callable[[], float] = _monotonic_ms
    _records: dict[str, ThrottleRecord] = field(default_factory=dict, repr=False)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def admit(self, category: str) -> Admission:
        now = self.clock()
        with self._lock:
            record = self._records.get(category)
            if record is None:
                self._records[category] = ThrottleRecord(count=1, window_start=now)
                return Admission(True)
            if now - record.window_start > self.window_ms:
                suppressed = record.suppressed
                record.count, record.window_start, record.suppressed = 1, now, 0
                return Admission(True, suppressed)
            if record.count >= self.threshold:
                record.suppressed += 1
                return Admission(False)
            record.count += 1
            return Admission(True)

    def record(self, category: str) -> ThrottleRecord | None:
        """Copy of the current record for a category."""
        with self._lock:
            r = self._records.get(category)
            return ThrottleRecord(r.count, r.window_start, r.suppressed) if r else None

    def reset(self) -> None:
        with self._lock:
            self._records.clear()

    def summary_message(self, category: str, suppressed: int) -> str:
        return f"Suppressed {suppressed} similar errors in category '{category}' in the last {self.window_ms:g}ms"
