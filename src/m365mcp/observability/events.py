"""In-process event bus for log and system events.

Subscribers are called in subscription order. Emission is best-effort: a
failing subscriber is reported to stderr and never reaches the emitter.
Coroutine subscribers are scheduled on the running loop and not awaited.
"""

from __future__ import annotations

import asyncio
import inspect
import itertools
import sys
import threading
from collections.abc import Callable
from typing import Any, Final

LOG_ERROR: Final = "log:error"
LOG_WARN: Final = "log:warn"
LOG_INFO: Final = "log:info"
LOG_DEBUG: Final = "log:debug"
LOG_METRIC: Final = "log:metric"
MEMORY_WARNING: Final = "system:memory:warning"
EMERGENCY: Final = "system:emergency"

LOG_EVENTS: Final = (LOG_ERROR, LOG_WARN, LOG_INFO, LOG_DEBUG)
EVENT_NAMES: Final = (*LOG_EVENTS, LOG_METRIC, MEMORY_WARNING, EMERGENCY)

Listener = Callable[[Any], Any]


def log_event(level: str) -> str:
    return f"log:{level}"


def stderr_report(tag: str, message: str, exc: BaseException | None = None) -> None:
    """Unbuffered out-of-band write. Never raises."""
    try:
        detail = f": {type(exc).__name__}: {exc}" if exc is not None else ""
        sys.stderr.write(f"{tag} {message}{detail}\n")
        sys.stderr.flush()
    except Exception:  # noqa: BLE001 - stderr itself is gone
        pass


class EventBus:
    """Named-event pub/sub with integer subscription ids.

    Example:
        >>> bus = EventBus()
        >>> seen = []
        >>> sid = bus.subscribe("log:info", seen.append)
        >>> bus.emit("log:info", {"message": "hi"})
        >>> seen
        [{'message': 'hi'}]
        >>> bus.unsubscribe(sid)
        True
    """

    __slots__ = ("_listeners", "_ids", "_lock", "_pending")

    def __init__(self) -> None:
        self._listeners: dict[str, dict[int, Listener]] = {}
        self._ids = itertools.count(1)
        self._lock = threading.Lock()
        self._pending: set[asyncio.Task[Any]] = set()

    def subscribe(self, event: str, listener: Listener) -> int:
        with self._lock:
            sid = next(self._ids)
            self._listeners.setdefault(event, {})[sid] = listener
            return sid

    def unsubscribe(self, sid: int) -> bool:
        with self._lock:
            for listeners in self._listeners.values():
                if listeners.pop(sid, None) is not None:
                    return True
            return False

    def listener_count(self, event: str) -> int:
        return len(self._listeners.get(event, ()))

    def emit(self, event: str, payload: Any) -> None:
        with self._lock:
            listeners = tuple(self._listeners.get(event, {}).values())
        for listener in listeners:
            try:
                result = listener(payload)
                if inspect.isawaitable(result):
                    self._schedule(event, result)
            except Exception as e:  # noqa: BLE001 - subscriber faults stay out-of-band
                stderr_report("[EVENT BUS]", f"listener for '{event}' failed", e)

    def _schedule(self, event: str, awaitable: Any) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            if inspect.iscoroutine(awaitable):
                awaitable.close()
            stderr_report("[EVENT BUS]", f"async listener for '{event}' dropped: no running loop")
            return
        task = loop.create_task(awaitable)
        self._pending.add(task)
        task.add_done_callback(lambda t: self._finish(event, t))

    def _finish(self, event: str, task: asyncio.Task[Any]) -> None:
        self._pending.discard(task)
        if not task.cancelled() and (exc := task.exception()) is not None:
            stderr_report("[EVENT BUS]", f"async listener for '{event}' failed", exc)

    def clear(self) -> None:
        with self._lock:
            self._listeners.clear()


_bus: EventBus | None = None


def get_event_bus() -> EventBus:
    global _bus
    if _bus is None:
        _bus = EventBus()
    return _bus


def set_event_bus(bus: EventBus) -> None:
    global _bus
    _bus = bus


def reset_event_bus() -> None:
    global _bus
    _bus = None
