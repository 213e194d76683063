"""Observability core: buffer, event bus, throttle, memory governor, filters, sinks.

Quick Start:
    >>> from m365mcp.observability import get_monitor
    >>> monitor = get_monitor()
    >>> monitor.info("server started", {"tools": 64}, "system")
    >>> monitor.track_metric("tool.getInbox.duration", 125.0)
"""

from .buffer import CircularBuffer
from .events import (
    EMERGENCY,
    EVENT_NAMES,
    LOG_DEBUG,
    LOG_ERROR,
    LOG_EVENTS,
    LOG_INFO,
    LOG_METRIC,
    LOG_WARN,
    MEMORY_WARNING,
    EventBus,
    get_event_bus,
    reset_event_bus,
    set_event_bus,
    stderr_report,
)
from .filters import LogFilter
from .memory import MemoryGovernor, process_memory_ratio
from .monitor import MonitoringService, UserLogStore, get_monitor, reset_monitor, set_monitor
from .sink import ConsoleFormatter, JsonLineFormatter, LogSink
from .throttle import Admission, ErrorThrottle, ThrottleRecord

__all__ = [
    # Storage
    "CircularBuffer",
    # Events
    "EventBus", "get_event_bus", "set_event_bus", "reset_event_bus", "stderr_report",
    "LOG_ERROR", "LOG_WARN", "LOG_INFO", "LOG_DEBUG", "LOG_METRIC", "MEMORY_WARNING", "EMERGENCY",
    "LOG_EVENTS", "EVENT_NAMES",
    # Policies
    "ErrorThrottle", "ThrottleRecord", "Admission", "MemoryGovernor", "process_memory_ratio", "LogFilter",
    # Sinks
    "LogSink", "JsonLineFormatter", "ConsoleFormatter",
    # Service
    "MonitoringService", "UserLogStore", "get_monitor", "set_monitor", "reset_monitor",
]
