"""Monitoring service: the public logging and metrics contract.

Every component logs through MonitoringService. Entries land in the circular
buffer and the file/console sink, and are announced on the event bus. The
service also listens on the bus for `log:*` events published by other
components and records them without re-emitting.

Construction is two-phase: __init__ only stores collaborators and never logs;
wire() subscribes to the bus and attaches the user-log store once both exist.

Failure semantics: no public method raises. Internal faults are written to
stderr tagged `INFRASTRUCTURE ERROR`.

Example:
    >>> monitor = MonitoringService()
    >>> monitor.info("calendar synced", {"events": 3}, "calendar")
    >>> monitor.get_latest_logs(1)[0]["message"]
    'calendar synced'
"""

from __future__ import annotations

import asyncio
import inspect
import os
import socket
import uuid
from collections.abc import Awaitable, Callable
from contextvars import ContextVar
from datetime import UTC, datetime
from functools import wraps
from typing import TYPE_CHECKING, Any, ParamSpec, Protocol, TypeVar, runtime_checkable

from m365mcp import __version__
from m365mcp.foundation.errors import McpError, ensure_error

from .buffer import CircularBuffer
from .events import LOG_ERROR, LOG_EVENTS, LOG_METRIC, EventBus, log_event, stderr_report
from .filters import LogFilter
from .memory import MemoryGovernor
from .sink import LogSink
from .throttle import ErrorThrottle

if TYPE_CHECKING:
    from m365mcp.foundation.config import M365Settings

P = ParamSpec("P")
T = TypeVar("T")

LogEntry = dict[str, Any]

# Set while this service is publishing, so its own events are not re-recorded
_publishing: ContextVar[bool] = ContextVar("monitor_publishing", default=False)


@runtime_checkable
class UserLogStore(Protocol):
    """Persistent per-user log storage collaborator."""

    def add_user_log(
        self,
        user_id: str,
        level: str,
        message: str,
        category: str,
        context: dict[str, Any],
        trace_id: str | None = None,
        device_id: str | None = None,
    ) -> Awaitable[None]: ...


def _guarded(default: Any = None) -> Callable[[Callable[P, T]], Callable[P, T]]:
    """Contain any failure inside the observability core."""
    def decorator(fn: Callable[P, T]) -> Callable[P, T]:
        @wraps(fn)
        def wrapper(*args: P.args, **kwargs: P.kwargs) -> T:
            try:
                return fn(*args, **kwargs)
            except Exception as e:  # noqa: BLE001
                stderr_report("INFRASTRUCTURE ERROR", f"monitoring.{fn.__name__} failed", e)
                return default
        return wrapper
    return decorator


def _now() -> str:
    return datetime.now(UTC).isoformat()


class MonitoringService:
    """Buffer + sink + bus + throttle + governor behind one contract.

    Args:
        buffer: Circular log buffer (default capacity 100)
        throttle: Per-category error limiter
        governor: Memory governor consulted on every submission
        log_filter: Noise filters
        sink: File/console sink; None keeps entries in memory only
        version: Application version stamped on entries
    """

    def __init__(
        self,
        *,
        buffer: CircularBuffer[LogEntry] | None = None,
        throttle: ErrorThrottle | None = None,
        governor: MemoryGovernor | None = None,
        log_filter: LogFilter | None = None,
        sink: LogSink | None = None,
        version: str = __version__,
    ) -> None:
        self.buffer: CircularBuffer[LogEntry] = buffer or CircularBuffer(100)
        self.throttle = throttle or ErrorThrottle()
        self.governor = governor or MemoryGovernor()
        self.filter = log_filter or LogFilter()
        self.sink = sink
        self.version = version
        self.bus: EventBus | None = None
        self.store: UserLogStore | None = None
        self._subscriptions: list[int] = []
        self._pending: set[asyncio.Task[Any]] = set()
        self._pid = os.getpid()
        self._hostname = socket.gethostname()

    @classmethod
    def from_settings(cls, settings: M365Settings) -> MonitoringService:
        obs = settings.observability
        return cls(
            buffer=CircularBuffer(obs.buffer_size),
            throttle=ErrorThrottle(threshold=obs.throttle_threshold, window_ms=float(obs.throttle_window_ms)),
            governor=MemoryGovernor(
                warning_ratio=obs.memory_warning_ratio,
                emergency_ratio=obs.memory_emergency_ratio,
                recovery_ratio=obs.memory_recovery_ratio,
                check_interval=obs.memory_check_interval,
                emergency_interval=obs.emergency_check_interval,
            ),
            log_filter=LogFilter(
                development=settings.is_development,
                production=settings.is_production,
                silent=settings.silent_mode,
                slow_metric_floor_ms=obs.slow_metric_floor_ms,
            ),
            sink=LogSink(
                path=settings.log_path,
                max_bytes=int(obs.log_max_bytes),
                backup_count=obs.log_backup_count,
                console=not settings.silent_mode,
            ),
            version=settings.version,
        )

    # ─────────────────────────────────────────────────────────────────────────
    # Wiring (second construction phase)
    # ─────────────────────────────────────────────────────────────────────────

    @_guarded()
    def wire(self, bus: EventBus | None = None, store: UserLogStore | None = None) -> None:
        """Attach the event bus and user-log store. Re-wiring replaces both."""
        self.unwire()
        self.store = store
        self.bus = bus
        self.governor.bus = bus
        if bus is not None:
            self._subscriptions = [bus.subscribe(e, self.handle_log_event) for e in (*LOG_EVENTS, LOG_METRIC)]

    def unwire(self) -> None:
        if self.bus is not None:
            for sid in self._subscriptions:
                self.bus.unsubscribe(sid)
        self._subscriptions = []

    # ─────────────────────────────────────────────────────────────────────────
    # Public contract
    # ─────────────────────────────────────────────────────────────────────────

    @_guarded()
    def log_error(self, err: McpError | BaseException | str | dict[str, Any], user_id: str | None = None,
                  session_id: str | None = None) -> None:
        """Record a structured error, subject to per-category throttling."""
        error = ensure_error(err)
        self.governor.check_emergency()
        if not self._admit_error(error.category):
            return
        entry = self._entry(
            "error", error.message, error.context, error.category,
            error.trace_id, user_id or error.user_id, error.device_id, session_id,
        )
        entry.update(id=error.id, severity=str(error.severity), timestamp=error.timestamp)
        if error.stack:
            entry["stack"] = error.stack
        self._commit(entry)
        self._publish(LOG_ERROR, entry)
        self._forward(entry)

    @_guarded()
    def error(self, message: str, context: dict[str, Any] | None = None, category: str = "system",
              trace_id: str | None = None, user_id: str | None = None, device_id: str | None = None,
              session_id: str | None = None) -> None:
        self.governor.check_emergency()
        if not self._admit_error(category):
            return
        self._log("error", message, context, category, trace_id, user_id, device_id, session_id)

    @_guarded()
    def warn(self, message: str, context: dict[str, Any] | None = None, category: str = "system",
             trace_id: str | None = None, user_id: str | None = None, device_id: str | None = None,
             session_id: str | None = None) -> None:
        if not self.governor.check_emergency():
            self._log("warn", message, context, category, trace_id, user_id, device_id, session_id)

    @_guarded()
    def info(self, message: str, context: dict[str, Any] | None = None, category: str = "system",
             trace_id: str | None = None, user_id: str | None = None, device_id: str | None = None,
             session_id: str | None = None) -> None:
        if not self.governor.check_emergency():
            self._log("info", message, context, category, trace_id, user_id, device_id, session_id)

    @_guarded()
    def debug(self, message: str, context: dict[str, Any] | None = None, category: str = "system",
              trace_id: str | None = None, user_id: str | None = None, device_id: str | None = None,
              session_id: str | None = None) -> None:
        if not self.governor.check_emergency():
            self._log("debug", message, context, category, trace_id, user_id, device_id, session_id)

    @_guarded()
    def track_metric(self, name: str, value: float, context: dict[str, Any] | None = None,
                     user_id: str | None = None, device_id: str | None = None, session_id: str | None = None,
                     *, unit: str | None = "ms") -> None:
        """Record a metric. Metrics are never published on the bus."""
        if self.governor.check_emergency():
            return
        context = dict(context or {})
        if not self.filter.accept_metric(name, value, unit, context.get("category")):
            return
        entry: LogEntry = {
            "id": uuid.uuid4().hex,
            "type": "metric",
            "name": name,
            "value": value,
            "unit": unit,
            "context": context,
            "timestamp": _now(),
            **self._stamp(user_id, device_id, session_id),
        }
        self._commit(entry)
        self._forward({**entry, "level": "info", "category": "metric", "message": f"Metric: {name} = {value}"})

    def subscribe_to_logs(self, callback: Callable[[LogEntry], Any]) -> Callable[[], None]:
        """Subscribe to every log level. Returns an unsubscribe callable."""
        return self._subscribe(LOG_EVENTS, callback)

    def subscribe_to_metrics(self, callback: Callable[[LogEntry], Any]) -> Callable[[], None]:
        return self._subscribe((LOG_METRIC,), callback)

    def _subscribe(self, events: tuple[str, ...], callback: Callable[[LogEntry], Any]) -> Callable[[], None]:
        bus = self.bus
        if bus is None:
            return lambda: None
        ids = [bus.subscribe(e, callback) for e in events]

        def unsubscribe() -> None:
            for sid in ids:
                bus.unsubscribe(sid)
        return unsubscribe

    @_guarded(default=[])
    def get_latest_logs(self, limit: int = 100) -> list[LogEntry]:
        """Most recent entries, newest first."""
        if limit <= 0:
            return []
        return self.buffer.snapshot()[::-1][:limit]

    @_guarded()
    def handle_log_event(self, entry: LogEntry) -> None:
        """Record a `log:*` event published by another component. Never re-emits."""
        if _publishing.get() or not isinstance(entry, dict):
            return
        if entry.get("type") == "metric":
            if self.governor.check_emergency() or not self.filter.accept_metric(
                    str(entry.get("name", "")), entry.get("value") or 0.0, entry.get("unit"),
                    (entry.get("context") or {}).get("category")):
                return
        else:
            level = str(entry.get("level", "info"))
            if level != "error" and self.governor.check_emergency():
                return
            if not self.filter.accept_log(level, str(entry.get("message", "")), str(entry.get("category", "")),
                                          entry.get("context")):
                return
        self._commit(entry)

    async def drain(self) -> None:
        """Wait for in-flight user-log writes (shutdown and tests)."""
        if self._pending:
            await asyncio.gather(*tuple(self._pending), return_exceptions=True)

    def clear(self) -> None:
        self.buffer.clear()
        self.throttle.reset()
        self.filter.reset()

    # ─────────────────────────────────────────────────────────────────────────
    # Internals
    # ─────────────────────────────────────────────────────────────────────────

    def _admit_error(self, category: str) -> bool:
        allowed, suppressed = self.throttle.admit(category)
        # The summary is a warn entry, which emergency mode withholds
        if suppressed and not self.governor.emergency_disabled:
            self._commit(self._entry(
                "warn", self.throttle.summary_message(category, suppressed),
                {"suppressed": suppressed}, category,
            ))
        return allowed

    def _stamp(self, user_id: str | None, device_id: str | None, session_id: str | None) -> LogEntry:
        stamp: LogEntry = {"pid": self._pid, "hostname": self._hostname, "version": self.version}
        for key, value in (("userId", user_id), ("deviceId", device_id), ("sessionId", session_id)):
            if value:
                stamp[key] = value
        return stamp

    def _entry(self, level: str, message: str, context: dict[str, Any] | None, category: str,
               trace_id: str | None = None, user_id: str | None = None, device_id: str | None = None,
               session_id: str | None = None) -> LogEntry:
        entry: LogEntry = {
            "id": uuid.uuid4().hex,
            "timestamp": _now(),
            "level": level,
            "category": category,
            "message": message,
            "context": dict(context or {}),
            **self._stamp(user_id, device_id, session_id),
        }
        if trace_id:
            entry["traceId"] = trace_id
        return entry

    def _log(self, level: str, message: str, context: dict[str, Any] | None, category: str,
             trace_id: str | None, user_id: str | None, device_id: str | None, session_id: str | None) -> None:
        if not self.filter.accept_log(level, message, category, context):
            return
        entry = self._entry(level, message, context, category, trace_id, user_id, device_id, session_id)
        self._commit(entry)
        self._publish(log_event(level), entry)
        self._forward(entry)

    def _commit(self, entry: LogEntry) -> None:
        self.buffer.add(entry)
        if self.sink is not None:
            self.sink.write(entry)

    def _publish(self, event: str, entry: LogEntry) -> None:
        if self.bus is None or _publishing.get():
            return
        token = _publishing.set(True)
        try:
            self.bus.emit(event, entry)
        finally:
            _publishing.reset(token)

    def _forward(self, entry: LogEntry) -> None:
        """Fire-and-forget user-log persistence."""
        user_id = entry.get("userId")
        if self.store is None or not user_id:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return
        result = self.store.add_user_log(
            user_id, entry.get("level", "info"), entry.get("message", ""), entry.get("category", ""),
            entry.get("context", {}), entry.get("traceId"), entry.get("deviceId"),
        )
        if not inspect.isawaitable(result):
            return
        task = loop.create_task(self._persist(result))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    @staticmethod
    async def _persist(result: Awaitable[None]) -> None:
        try:
            await result
        except Exception as e:  # noqa: BLE001
            stderr_report("INFRASTRUCTURE ERROR", "user log persistence failed", e)


# ─────────────────────────────────────────────────────────────────────────────
# Global instance
# ─────────────────────────────────────────────────────────────────────────────

_monitor: MonitoringService | None = None


def get_monitor() -> MonitoringService:
    """Get the process-wide monitoring service, built from settings on first use."""
    global _monitor
    if _monitor is None:
        from m365mcp.foundation.config import get_settings
        _monitor = MonitoringService.from_settings(get_settings())
    return _monitor


def set_monitor(monitor: MonitoringService) -> None:
    global _monitor
    _monitor = monitor


def reset_monitor() -> None:
    global _monitor
    if _monitor is not None:
        _monitor.unwire()
        if _monitor.sink is not None:
            _monitor.sink.close()
    _monitor = None
