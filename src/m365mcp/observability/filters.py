"""Noise filters applied before a log or metric entry is accepted."""

from __future__ import annotations

import re
import threading
from dataclasses import dataclass, field
from typing import Final

INFRASTRUCTURE_PATTERNS: Final = re.compile(
    r"request received|request completed|response sent|incoming request|outgoing response"
    r"|auth status|token refreshed|health check|heartbeat",
    re.IGNORECASE,
)

EVENT_SYSTEM_METERS: Final = frozenset({
    "event_emitted",
    "event_subscribed",
    "event_unsubscribed",
    "event_listener_count",
    "events_processed",
})

QUIET_PRODUCTION_CATEGORIES: Final = frozenset({"health", "ping"})

_MODULE_REGISTERED: Final = re.compile(r"module registered|registered module", re.IGNORECASE)


@dataclass
class LogFilter:
    """Stateful filter; remembers which modules already announced registration.

    Args:
        development: Keep infrastructure chatter when True
        production: Drop health/ping categories when True
        silent: With production, drop debug entries
        slow_metric_floor_ms: Timing metrics below this value are dropped
    """

    development: bool = True
    production: bool = False
    silent: bool = False
    slow_metric_floor_ms: float = 10.0
    _announced: set[str] = field(default_factory=set, repr=False)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def accept_log(self, level: str, message: str, category: str, context: dict[str, object] | None = None) -> bool:
        if self.production and category in QUIET_PRODUCTION_CATEGORIES:
            return False
        if level == "debug" and self.production and self.silent:
            return False
        if level in ("info", "debug") and not self.development and INFRASTRUCTURE_PATTERNS.search(message):
            return False
        if _MODULE_REGISTERED.search(message):
            key = str((context or {}).get("moduleId") or (context or {}).get("module") or message)
            with self._lock:
                if key in self._announced:
                    return False
                self._announced.add(key)
        return True

    def accept_metric(self, name: str, value: float, unit: str | None = "ms", category: str | None = None) -> bool:
        if name in EVENT_SYSTEM_METERS:
            return False
        if unit == "ms" and value < self.slow_metric_floor_ms:
            return False
        return not (self.production and category in QUIET_PRODUCTION_CATEGORIES)

    def reset(self) -> None:
        with self._lock:
            self._announced.clear()
